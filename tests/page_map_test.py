from page_segmenter.models import Page
from page_segmenter.page_map import build_page_map, convert_page_breaks, normalize_line_endings


def _mapped(*contents, ids=None):
    ids = ids or range(1, len(contents) + 1)
    return build_page_map([Page(i, c) for i, c in zip(ids, contents)])


def test_pages_are_joined_with_newline():
    result = _mapped("ab", "cd", "ef")
    assert result.content == "ab\ncd\nef"
    assert result.page_map.page_breaks == (2, 5)
    assert result.normalized == ("ab", "cd", "ef")


def test_get_id_maps_offsets_to_pages():
    pm = _mapped("ab", "cd", ids=[10, 20]).page_map
    assert [pm.get_id(i) for i in range(5)] == [10, 10, 10, 20, 20]


def test_separator_offset_belongs_to_previous_page():
    # the joiner at offset 2 sits between pages and resolves to the earlier one
    pm = _mapped("ab", "cd", ids=[1, 2]).page_map
    assert pm.get_id(2) == 1
    assert pm.get_id(3) == 2


def test_out_of_range_offsets_resolve_to_last_page():
    pm = _mapped("ab", "cd", ids=[1, 7]).page_map
    assert pm.get_id(99) == 7


def test_empty_page_map_returns_zero():
    assert build_page_map([]).page_map.get_id(0) == 0


def test_line_endings_are_normalized_per_page():
    assert normalize_line_endings("a\r\nb\rc") == "a\nb\nc"
    assert _mapped("a\r\nb", "c").content == "a\nb\nc"


def test_breaks_in_range_are_relative():
    pm = _mapped("ab", "cd", "ef").page_map
    assert pm.breaks_in_range(0, 8) == (2, 5)
    assert pm.breaks_in_range(3, 8) == (2,)
    assert pm.breaks_in_range(3, 5) == ()


def test_page_start_index():
    pm = _mapped("ab", "cd").page_map
    assert pm.page_start_index(0) == 0
    assert pm.page_start_index(3) == 1
    assert pm.page_start_index(1) is None


def test_convert_page_breaks_only_touches_separators():
    result = _mapped("a\nb", "c")
    pm = result.page_map
    assert convert_page_breaks(result.content, 0, pm) == "a\nb c"
    assert convert_page_breaks(result.content, 0, pm, "\n") == "a\nb\nc"
