from __future__ import annotations

from livepatch.core.fast_paths import camel_case, style_entries, try_css_change, try_src_change, try_text_change
from tests.helpers import APP_SOURCE, BUTTON_LINE, IMG_LINE, make_element


def _changed_lines(before: str, after: str) -> list[int]:
    before_lines = before.split("\n")
    after_lines = after.split("\n")
    assert len(before_lines) == len(after_lines)
    return [index for index, (old, new) in enumerate(zip(before_lines, after_lines)) if old != new]


def test_css_fast_path_inserts_style_prop_on_matching_line():
    patched = try_css_change(APP_SOURCE, BUTTON_LINE, make_element(), {"color": "red"})
    assert patched is not None
    assert "<button style={{ color: 'red' }} className=\"btn\">Old</button>" in patched
    assert _changed_lines(APP_SOURCE, patched) == [BUTTON_LINE - 1]


def test_css_fast_path_merges_into_existing_style_object():
    source = "<div className=\"card\" style={{ margin: 4 }}>x</div>"
    element = make_element(tag_name="div", class_name="card")
    patched = try_css_change(source, 1, element, {"background-color": "blue", "margin": "8px"})
    assert patched == "<div className=\"card\" style={{ margin: 4, backgroundColor: 'blue' }}>x</div>"


def test_css_fast_path_converts_string_style():
    source = "<span id=\"tag\" style=\"color: green; font-size: 12px\">x</span>"
    element = make_element(tag_name="span", class_name="", element_id="tag")
    patched = try_css_change(source, 1, element, {"color": "red"})
    assert patched == "<span id=\"tag\" style={{ color: 'red', fontSize: '12px' }}>x</span>"


def test_css_fast_path_refuses_elements_without_class_or_id():
    element = make_element(class_name="", element_id="")
    assert try_css_change(APP_SOURCE, BUTTON_LINE, element, {"color": "red"}) is None
    assert try_css_change("<button>Old</button>", 1, element, {"color": "red"}) is None


def test_css_fast_path_returns_none_when_properties_already_present():
    source = "<button className=\"btn\" style={{ color: 'red' }}>Old</button>"
    assert try_css_change(source, 1, make_element(), {"color": "blue"}) is None


def test_css_fast_path_ignores_lines_outside_window():
    source = "\n" * 80 + "<button className=\"btn\">Old</button>"
    assert try_css_change(source, 1, make_element(), {"color": "red"}) is None


def test_text_fast_path_rewrites_jsx_text_node():
    patched = try_text_change(APP_SOURCE, "Old", "New")
    assert patched is not None
    assert "<button className=\"btn\">New</button>" in patched
    assert _changed_lines(APP_SOURCE, patched) == [BUTTON_LINE - 1]


def test_text_fast_path_handles_string_and_template_literals():
    assert try_text_change("const label = 'Save'", "Save", "Store") == "const label = 'Store'"
    assert try_text_change("const label = `Save`", "Save", "Store") == "const label = `Store`"


def test_text_fast_path_replaces_only_first_match():
    source = "<b>Old</b>\n<i>Old</i>"
    assert try_text_change(source, "Old", "New") == "<b>New</b>\n<i>Old</i>"


def test_text_fast_path_returns_none_without_structural_match():
    assert try_text_change("const Old = 1", "Old", "New") is None
    assert try_text_change(APP_SOURCE, "Old", "Old") is None


def test_src_fast_path_preserves_quote_character():
    patched = try_src_change(APP_SOURCE, IMG_LINE, "b.png")
    assert patched is not None
    assert 'src="b.png"' in patched
    single = try_src_change("<img src='a.png' />", 1, "b.png")
    assert single == "<img src='b.png' />"


def test_src_fast_path_rewrites_jsx_expression():
    assert try_src_change("<img src={heroImage} />", 1, "/b.png") == '<img src="/b.png" />'


def test_src_fast_path_returns_none_for_no_op_or_miss():
    assert try_src_change(APP_SOURCE, IMG_LINE, "a.png") is None
    assert try_src_change("<div>nothing</div>", 1, "b.png") is None


def test_style_helpers_camel_case_properties():
    assert camel_case("background-color") == "backgroundColor"
    assert camel_case("--brand") == "--brand"
    assert style_entries({"font-size": "12px", "--brand": "red"}) == "fontSize: '12px', '--brand': 'red'"
