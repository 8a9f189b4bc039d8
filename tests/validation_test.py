from page_segmenter import segment_pages
from page_segmenter.config import SplitRule
from page_segmenter.models import Segment
from page_segmenter.validation import (
    build_preview,
    format_validation_report,
    validate_rules,
    validate_segments,
)


class TestValidateRules:
    def test_clean_rules(self):
        rules = [{"lineStartsWith": ["{{bab}} "]}, {"regex": "raqms"}]
        assert validate_rules(rules) == [None, None]

    def test_missing_braces(self):
        results = validate_rules([{"lineStartsWith": ["raqms:num"]}])
        issue = results[0]["lineStartsWith"][0]
        assert issue.type == "missing_braces"
        assert issue.suggestion == "{{raqms:num}}"
        assert format_validation_report(results) == [
            'Rule 1, lineStartsWith: Missing {{}} around token "raqms"'
        ]

    def test_braced_tokens_are_not_reported_as_bare(self):
        assert validate_rules([{"lineStartsAfter": ["{{raqms}} {{dash}} "]}]) == [None]

    def test_unknown_token_in_template(self):
        results = validate_rules([{"template": "{{nope}} x"}])
        assert results[0]["template"].token == "nope"
        assert format_validation_report(results) == ['Rule 1, template: Unknown token "{{nope}}"']

    def test_duplicates_are_parallel_to_patterns(self):
        results = validate_rules([{"lineStartsWith": ["{{bab}}", "{{fasl}}", "{{bab}}"]}])
        issues = results[0]["lineStartsWith"]
        assert [i.type if i else None for i in issues] == [None, None, "duplicate"]
        assert format_validation_report(results) == [
            'Rule 1, lineStartsWith: Duplicate pattern "{{bab}}"'
        ]

    def test_empty_pattern(self):
        results = validate_rules([{"line_starts_with": [" "]}])
        assert format_validation_report(results) == [
            "Rule 1, lineStartsWith: Empty pattern is not allowed"
        ]

    def test_accepts_rule_models(self):
        results = validate_rules([SplitRule(line_ends_with=["{{tarqim}}", "dash"])])
        assert results[0]["lineEndsWith"][1].token == "dash"


class TestValidateSegments:
    def test_segmenter_output_is_clean(self, make_pages):
        pages = make_pages("alpha", "beta")
        options = {"breakpoints": [""], "maxPages": 0}
        report = validate_segments(pages, options, segment_pages(pages, options))
        assert report.ok
        assert report.summary() == {
            "errors": 0,
            "issues": 0,
            "pageCount": 2,
            "segmentCount": 2,
            "warnings": 0,
        }

    def test_unknown_page(self, make_pages):
        report = validate_segments(make_pages("a"), None, [Segment("a", 9)])
        assert [i.type for i in report.issues] == ["page_not_found"]
        assert report.errors == 1

    def test_max_pages_zero_violation(self, make_pages):
        pages = make_pages("alpha", "beta")
        report = validate_segments(pages, {"maxPages": 0}, [Segment("alpha beta", 1, 2)])
        assert report.has_issues()
        assert {i.type for i in report.issues} == {"max_pages_violation"}

    def test_span_violation(self, make_pages):
        pages = make_pages("a", "b", "c")
        report = validate_segments(pages, {"maxPages": 1}, [Segment("a b c", 1, 3)])
        issue = report.issues[0]
        assert issue.type == "max_pages_violation"
        assert issue.expected == {"from": 1, "to": 2}

    def test_attribution_mismatch(self, make_pages):
        pages = make_pages("alpha", "beta")
        report = validate_segments(pages, None, [Segment("beta", 1, 2)])
        issue = report.issues[0]
        assert issue.type == "page_attribution_mismatch"
        assert issue.expected == {"from": 2, "to": 2}

    def test_content_not_found(self, make_pages):
        pages = make_pages("alpha", "beta")
        report = validate_segments(pages, None, [Segment("zzz", 1, 2)])
        assert [i.type for i in report.issues] == ["content_not_found"]


def test_preview_collapses_whitespace_and_truncates():
    assert build_preview("a \n b") == "a b"
    assert build_preview("x" * 10, limit=4) == "xxxx..."
