import re

import pytest

from page_segmenter.fuzzy import contains_arabic, escape_regex, make_diacritic_insensitive


@pytest.mark.parametrize(
    "literal, text",
    [
        ("باب", "بَابُ الإيمان"),
        ("الصلاة", "كتاب الصلاه"),
        ("احمد", "حدثنا أحمد"),
        ("على", "على"),
        ("على", "علي"),
    ],
)
def test_diacritic_insensitive_matches_variants(literal, text):
    assert re.search(make_diacritic_insensitive(literal), text)


def test_diacritic_insensitive_rejects_other_words():
    assert not re.search(make_diacritic_insensitive("باب"), "كتاب")


def test_whitespace_is_collapsed_and_trimmed():
    assert make_diacritic_insensitive("  باب  ") == make_diacritic_insensitive("باب")


def test_escape_regex():
    assert escape_regex("a.b(c)") == r"a\.b\(c\)"
    assert re.fullmatch(escape_regex("[x]*"), "[x]*")


def test_contains_arabic():
    assert contains_arabic("باب")
    assert not contains_arabic("abc 123")
