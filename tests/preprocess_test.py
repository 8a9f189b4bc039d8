import pytest

from page_segmenter.config import PreprocessRule
from page_segmenter.preprocess import (
    apply_preprocess_to_page,
    condense_ellipsis,
    fix_trailing_waw,
    is_zero_width,
    remove_zero_width,
)

ZWSP = "\N{ZERO WIDTH SPACE}"


@pytest.mark.parametrize(
    "ch", [ZWSP, "\N{RIGHT-TO-LEFT MARK}", "\N{WORD JOINER}", "\N{ZERO WIDTH NO-BREAK SPACE}"]
)
def test_zero_width_characters(ch):
    assert is_zero_width(ch)


def test_visible_characters_are_not_zero_width():
    assert not is_zero_width("a")
    assert not is_zero_width(" ")


def test_strip_mode_removes():
    assert remove_zero_width(f"a{ZWSP}{ZWSP}b") == "ab"


@pytest.mark.parametrize(
    "text, expected",
    [
        (f"a{ZWSP}b", "a b"),
        (f"a{ZWSP}{ZWSP}b", "a b"),
        (f"{ZWSP}a", "a"),
        (f"a {ZWSP}b", "a b"),
    ],
)
def test_space_mode_never_doubles_spaces(text, expected):
    assert remove_zero_width(text, "space") == expected


def test_condense_ellipsis():
    assert condense_ellipsis("قال... ثم.. انتهى.") == "قال\N{HORIZONTAL ELLIPSIS} ثم\N{HORIZONTAL ELLIPSIS} انتهى."


def test_fix_trailing_waw():
    assert fix_trailing_waw("قال و محمد") == "قال ومحمد"
    assert fix_trailing_waw("قال ومحمد") == "قال ومحمد"


def test_transforms_respect_page_range():
    rules = [PreprocessRule(type="condenseEllipsis", min=2)]
    assert apply_preprocess_to_page("a...", 1, rules) == "a..."
    assert apply_preprocess_to_page("a...", 2, rules) == "a\N{HORIZONTAL ELLIPSIS}"


def test_transforms_run_in_order():
    rules = [
        PreprocessRule(type="removeZeroWidth", mode="space"),
        PreprocessRule(type="fixTrailingWaw"),
    ]
    assert apply_preprocess_to_page(f"قال{ZWSP}و محمد", 1, rules) == "قال ومحمد"
