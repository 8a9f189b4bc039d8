import logging

from page_segmenter import segment_pages
from page_segmenter.log_sink import TRACE, LogSink


class Tracer:
    def __init__(self):
        self.traces = []

    def trace(self, message, context=None):
        self.traces.append((message, context))


def test_enabled_follows_target_methods(recording_logger):
    assert LogSink(Tracer()).enabled
    assert not LogSink(recording_logger).enabled


def test_enabled_follows_logger_level():
    log = logging.getLogger("page_segmenter.tests.sink")
    log.setLevel(logging.DEBUG)
    assert not LogSink(log).enabled
    log.setLevel(TRACE)
    assert LogSink(log).enabled
    assert LogSink(None, fallback=log).enabled


def test_missing_methods_are_skipped(recording_logger):
    sink = LogSink(recording_logger)
    sink.trace("dropped")
    sink.warn("kept", {"a": 1})
    assert recording_logger.records == [("warn", "kept", {"a": 1})]


def test_logger_target_receives_context(caplog):
    log = logging.getLogger("page_segmenter.tests.ctx")
    with caplog.at_level(logging.INFO, logger=log.name):
        LogSink(log).info("built", {"pages": 2})
    assert caplog.records[-1].getMessage() == "built {'pages': 2}"


def test_breakpoint_iterations_are_traced(make_pages):
    tracer = Tracer()
    segment_pages(make_pages("a", "b"), {"breakpoints": [""], "maxPages": 0, "logger": tracer})
    iterations = [ctx for message, ctx in tracer.traces if message == "[breakpoints] iteration"]
    assert iterations and iterations[0]["currentFromIdx"] == 0


def test_no_trace_records_without_a_trace_method(make_pages, recording_logger):
    options = {"breakpoints": [""], "maxPages": 0, "logger": recording_logger}
    segment_pages(make_pages("a", "b"), options)
    assert all(message != "[breakpoints] iteration" for _, message, _ in recording_logger.records)
