import warnings

import pytest
from pydantic import ValidationError

from page_segmenter.config import SegmentationOptions, coerce_options, load_options


def test_defaults():
    opts = SegmentationOptions()
    assert opts.rules == ()
    assert opts.prefer == "longer"
    assert opts.page_joiner == "space"
    assert not opts.breakpoints_enabled


def test_coerce_accepts_models_and_mappings():
    opts = SegmentationOptions(max_pages=2)
    assert coerce_options(opts) is opts
    assert coerce_options({"maxPages": 2}).max_pages == 2
    assert coerce_options(None) == SegmentationOptions()


def test_string_shorthands():
    opts = coerce_options({"breakpoints": ["", "{{tarqim}}"], "preprocess": ["condenseEllipsis"]})
    assert opts.breakpoints[0].is_page_boundary
    assert opts.breakpoints[1].pattern == "{{tarqim}}"
    assert opts.preprocess[0].type == "condenseEllipsis"


def test_breakpoints_enabled_needs_a_limit():
    assert coerce_options({"breakpoints": [""], "maxPages": 0}).breakpoints_enabled
    assert coerce_options({"breakpoints": [""], "maxContentLength": 60}).breakpoints_enabled
    assert not coerce_options({"maxPages": 0}).breakpoints_enabled


@pytest.mark.parametrize(
    "options",
    [
        {"maxContentLength": 49},
        {"maxPages": -1},
        {"prefer": "middle"},
        {"pageJoiner": "tab"},
        {"rules": [{"regex": "a", "lineStartsWith": ["b"]}]},
        {"breakpoints": [{"pattern": "", "regex": "x"}]},
        {"breakpoints": [{"words": [" "]}]},
        {"unknown": 1},
    ],
)
def test_invalid_options(options):
    with pytest.raises(ValidationError):
        coerce_options(options)


def test_exclude_accepts_page_spec_string():
    opts = coerce_options({"breakpoints": [{"pattern": "", "exclude": "1,3-5"}]})
    assert opts.breakpoints[0].exclude == (1, (3, 5))


def test_load_yaml(tmp_path):
    path = tmp_path / "segmenter.yaml"
    path.write_text(
        "maxPages: 1\nbreakpoints: ['']\nrules:\n  - lineStartsWith: ['## ']\n",
        encoding="utf-8",
    )
    opts = load_options(path)
    assert opts.max_pages == 1
    assert opts.rules[0].line_starts_with == ("## ",)


def test_missing_file_gives_defaults(tmp_path):
    assert load_options(tmp_path / "absent.yaml") == SegmentationOptions()


def test_env_and_overrides(tmp_path, monkeypatch):
    path = tmp_path / "segmenter.yaml"
    path.write_text("max_pages: 1\nprefer: shorter\n", encoding="utf-8")
    monkeypatch.setenv("PAGE_SEGMENTER__MAX_PAGES", "4")
    assert load_options(path).max_pages == 4
    opts = load_options(path, overrides={"maxPages": 7})
    assert opts.max_pages == 7
    assert opts.prefer == "shorter"


def test_unknown_keys_warn_and_are_dropped(tmp_path):
    path = tmp_path / "segmenter.yaml"
    path.write_text("bogus: 1\nmaxPages: 2\n", encoding="utf-8")
    with pytest.warns(UserWarning, match="Unknown segmentation options: bogus"):
        opts = load_options(path)
    assert opts.max_pages == 2


def test_known_keys_do_not_warn(tmp_path):
    path = tmp_path / "segmenter.yaml"
    path.write_text("page_joiner: newline\n", encoding="utf-8")
    with warnings.catch_warnings():
        warnings.simplefilter("error")
        assert load_options(path).page_joiner == "newline"


def test_non_mapping_yaml(tmp_path):
    path = tmp_path / "segmenter.yaml"
    path.write_text("- a\n- b\n", encoding="utf-8")
    with pytest.raises(TypeError, match="top-level mapping"):
        load_options(path)
