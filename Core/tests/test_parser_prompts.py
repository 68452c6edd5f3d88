from __future__ import annotations

import pytest

from livepatch.core.exceptions import ModelResponseError
from livepatch.llm.parser import clean_model_output, is_prose, parse_code_response, strip_code_fences
from livepatch.llm.prompts import build_change_description, build_cloud_patch_prompt, build_fast_apply_prompt, is_remove_request
from tests.helpers import make_element


@pytest.mark.parametrize(
    "text",
    [
        "The provided code already has a style prop.",
        "I cannot find the element.",
        "I apologize, but the snippet is incomplete.",
        "Unfortunately the update is ambiguous.",
        "This change would break the layout.",
        "Here's how you could do it:",
        "<div> does not make sense here",
        "The update is not valid",
        "First you should add a class",
    ],
)
def test_prose_indicators_reject_first_line(text):
    assert is_prose(text + "\n<div />")
    with pytest.raises(ModelResponseError):
        parse_code_response(text)


def test_prose_check_only_reads_first_line():
    assert not is_prose("<div>\n  {/* you should not see this */}\n</div>")


def test_parse_code_response_cleans_chat_tokens_and_fences():
    raw = "```tsx\n<main>\n  <p>Hi</p>\n</main>\n```<|im_end|>\n<|im_start|>assistant\nextra"
    assert parse_code_response(raw) == "<main>\n  <p>Hi</p>\n</main>\n"
    assert clean_model_output("  <p />\n<|im_end|>") == "  <p />\n"
    assert strip_code_fences("<p />") == "<p />"


def test_parse_code_response_rejects_empty_output():
    with pytest.raises(ModelResponseError):
        parse_code_response("")
    with pytest.raises(ModelResponseError):
        parse_code_response("```\n```")


def test_change_description_for_css_and_removal():
    element = make_element(class_name="btn primary")
    css = build_change_description(element, {"color": "red"}, None)
    assert css == "FIND: <button className=\"btn\">\nREPLACE WITH: <button style={{ color: 'red' }} className=\"btn\">"

    removal = build_change_description(element, {}, "remove this button")
    assert removal.startswith("FIND: <button className=\"btn\">\nREPLACE WITH: {false && <button")
    assert build_change_description(element, {}, "make it bounce") == "make it bounce"
    assert is_remove_request("please hide the banner")
    assert not is_remove_request("make it red")


def test_fast_apply_prompt_embeds_code_and_update():
    prompt = build_fast_apply_prompt("<div>{value}</div>", "FIND: <div>")
    assert "<code>\n<div>{value}</div>\n</code>" in prompt
    assert "<update>\nFIND: <div>\n</update>" in prompt


def test_cloud_prompt_searches_by_element_when_identifiable():
    prompt = build_cloud_patch_prompt(
        code_window="<button className=\"btn\">Old</button>",
        element=make_element(),
        css_changes={"backgroundColor": "red"},
        user_request=None,
        source_file="src/App.tsx",
        target_line=6,
        start_line=0,
        end_line=12,
    )
    assert "CSS changes to apply: background-color: red" in prompt
    assert "1. SEARCH the snippet for a <button> element containing text \"Old\" with class \"btn\"" in prompt
    assert "SAME NUMBER of elements" in prompt
    assert "Preserve exact indentation and formatting" in prompt
    assert "Target line in original file: 6" in prompt
    assert "Snippet shows lines 1 to 12" in prompt


def test_cloud_prompt_anchors_on_line_for_anonymous_elements():
    prompt = build_cloud_patch_prompt(
        code_window="<div />",
        element=make_element(tag_name="div", class_name="", text=""),
        css_changes={},
        user_request="\"Welcome\"",
        source_file="src/App.tsx",
        target_line=40,
        start_line=0,
        end_line=80,
    )
    assert "1. Find the JSX element near line 40" in prompt
    assert "Update the text content of the element" in prompt
    assert "- Classes: none" in prompt


def test_cloud_prompt_flags_unreliable_line_numbers():
    prompt = build_cloud_patch_prompt(
        code_window="<div />",
        element=make_element(tag_name="div", class_name="", text=""),
        css_changes={},
        user_request="delete this",
        source_file="src/App.tsx",
        target_line=3,
        start_line=0,
        end_line=3,
        line_number_reliable=False,
    )
    assert "may be inaccurate" in prompt
    assert "SEARCH the snippet for a <div> element" in prompt
    assert "{false && <element>...</element>}" in prompt


def test_cloud_prompt_without_changes_is_none():
    assert (
        build_cloud_patch_prompt(
            code_window="<div />",
            element=make_element(),
            css_changes={},
            user_request=None,
            source_file="src/App.tsx",
            target_line=1,
            start_line=0,
            end_line=1,
        )
        is None
    )
