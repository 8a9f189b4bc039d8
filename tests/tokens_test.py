import pytest

from page_segmenter.fuzzy import make_diacritic_insensitive
from page_segmenter.tokens import (
    TOKEN_PATTERNS,
    contains_tokens,
    escape_template_brackets,
    expand_tokens,
    expand_tokens_with_captures,
    fuzzy_literal,
    get_available_tokens,
    get_token_pattern,
    should_default_to_fuzzy,
    template_to_regex,
)


class TestExpandTokens:
    def test_plain_token_is_substituted(self):
        assert expand_tokens("{{bab}} ") == "باب "

    def test_alternation_token_is_grouped(self):
        assert expand_tokens("{{fasl}}") == "(?:فصل|مسألة)"

    def test_named_capture(self):
        result = expand_tokens_with_captures("{{raqms:num}} {{dash}} ")
        assert result.pattern == f"(?P<num>{TOKEN_PATTERNS['raqms']}) {TOKEN_PATTERNS['dash']} "
        assert result.capture_names == ("num",)
        assert result.has_captures

    def test_anonymous_token_captures_rest(self):
        result = expand_tokens_with_captures("{{:title}}")
        assert result.pattern == "(?P<title>.+)"
        assert result.capture_names == ("title",)

    def test_unknown_token_stays_literal(self):
        assert expand_tokens("{{nope}} x") == "{{nope}} x"

    def test_duplicate_capture_names_are_suffixed(self):
        result = expand_tokens_with_captures("{{raqms:n}}/{{raqms:n}}")
        assert result.capture_names == ("n", "n_2")

    def test_capture_prefix_namespaces_groups(self):
        result = expand_tokens_with_captures("{{raqms:num}}", capture_prefix="r0_")
        assert result.pattern.startswith("(?P<r0_num>")
        assert result.capture_names == ("r0_num",)

    def test_fuzzy_applies_to_arabic_alternatives_only(self):
        result = expand_tokens_with_captures("{{raqms}} {{bab}}", make_diacritic_insensitive)
        assert TOKEN_PATTERNS["raqms"] in result.pattern
        assert make_diacritic_insensitive("باب") in result.pattern


class TestTokenIntrospection:
    def test_available_tokens(self):
        tokens = get_available_tokens()
        assert {"bab", "raqms", "dash", "tarqim"} <= set(tokens)

    def test_get_token_pattern(self):
        assert get_token_pattern("kitab") == "كتاب"
        assert get_token_pattern("missing") is None

    @pytest.mark.parametrize(
        "query, expected",
        [("{{raqms}}", True), ("plain", False), ("{{:name}}", False), ("{{a}} b", True)],
    )
    def test_contains_tokens(self, query, expected):
        assert contains_tokens(query) is expected

    @pytest.mark.parametrize(
        "patterns, expected",
        [(["{{bab}} "], True), (["{{naql}}"], True), (["{{raqms}}"], False), ([], False)],
    )
    def test_should_default_to_fuzzy(self, patterns, expected):
        assert should_default_to_fuzzy(patterns) is expected


def test_template_to_regex_compiles_and_matches():
    regex = template_to_regex("{{raqms}}")
    assert regex is not None
    assert regex.fullmatch("١٢٣")


def test_template_to_regex_returns_none_for_invalid():
    assert template_to_regex("(") is None


def test_escape_template_brackets_leaves_tokens_alone():
    assert escape_template_brackets("(a) [b] {{raqms}}") == r"\(a\) \[b\] {{raqms}}"


def test_fuzzy_literal_keeps_surrounding_space():
    fragment = fuzzy_literal("بل ", make_diacritic_insensitive)
    assert fragment.endswith(" ")
    assert fragment == make_diacritic_insensitive("بل") + " "
