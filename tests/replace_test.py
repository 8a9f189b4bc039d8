import re

import pytest

from page_segmenter.config import Replacement
from page_segmenter.models import Page
from page_segmenter.replace import apply_replacements, parse_flags, translate_replacement


def test_translate_js_replacement_syntax():
    assert translate_replacement("$1-$<n>-$&-$$") == r"\g<1>-\g<n>-\g<0>-$"
    assert translate_replacement(r"\1") == r"\1"


def test_parse_flags():
    assert parse_flags("gim") == re.IGNORECASE | re.MULTILINE
    assert parse_flags(None) == 0


def test_unknown_flag_is_rejected():
    with pytest.raises(ValueError, match='Invalid replace regex flag: "x"'):
        parse_flags("x")


def test_replacement_uses_groups():
    pages = [Page(1, "ص 12 و 3")]
    out = apply_replacements(pages, [Replacement(regex=r"(\d+)", replacement="[$1]")])
    assert out[0].content == "ص [12] و [3]"


def test_named_groups_in_js_syntax():
    rule = Replacement(regex=r"(?<n>\d+)", replacement="<$<n>>")
    assert apply_replacements([Page(1, "a 5")], [rule])[0].content == "a <5>"


def test_page_ids_scope_rules():
    pages = [Page(1, "x"), Page(2, "x")]
    out = apply_replacements(pages, [Replacement(regex="x", replacement="y", page_ids=[2])])
    assert [p.content for p in out] == ["x", "y"]


def test_empty_page_ids_disable_the_rule():
    pages = [Page(1, "x")]
    out = apply_replacements(pages, [Replacement(regex="x", replacement="y", page_ids=[])])
    assert out[0].content == "x"


def test_case_insensitive_flag():
    rule = Replacement(regex="abc", replacement="-", flags="i")
    assert apply_replacements([Page(1, "ABC abc")], [rule])[0].content == "- -"


def test_unchanged_pages_are_returned_as_is():
    page = Page(1, "x")
    assert apply_replacements([page], [Replacement(regex="z")])[0] is page


def test_invalid_regex():
    with pytest.raises(ValueError, match=r"Invalid replace regex: \("):
        apply_replacements([Page(1, "x")], [Replacement(regex="(")])
