from __future__ import annotations

import re

from livepatch.config.schema import SelectedElement
from livepatch.core.fast_paths import style_entries

FAST_APPLY_SYSTEM_PROMPT = """You are a coding assistant that applies code updates by REPLACING matching elements in-place. When given an update snippet, find the matching element in the original code and REPLACE it - do NOT insert a duplicate. Preserve all other code exactly. Return only the complete updated code."""

FAST_APPLY_USER_TEMPLATE = """Apply the update to the code. If the update shows "FIND: X" and "REPLACE WITH: Y", find X in the code and replace it with Y. Do NOT insert duplicates - replace in-place.

<code>
{original_code}
</code>

<update>
{update_snippet}
</update>

Return only the complete updated code."""

CLOUD_SYSTEM_PROMPT = """You are a React/TypeScript code modifier. Given a code snippet and requested changes, output ONLY the modified snippet."""

REMOVE_REQUEST = re.compile(r"(?:remove|delete|hide)\s+(?:this|that|it|the|element)?", re.IGNORECASE)
REMOVE_TARGETED = re.compile(r"(?:remove|delete|hide)\s+(?:this|that|it|the)", re.IGNORECASE)
TEXT_REQUEST = (
    re.compile(r"^[\"'][^\"']+[\"']$"),
    re.compile(r"(?:change|set|update)\s+(?:text|label|content|title)", re.IGNORECASE),
    re.compile(r"text\s*(?:to|:|=)", re.IGNORECASE),
)


def build_fast_apply_prompt(original_code: str, update_snippet: str) -> str:
    return FAST_APPLY_USER_TEMPLATE.format(original_code=original_code, update_snippet=update_snippet)


def is_remove_request(user_request: str | None) -> bool:
    return bool(user_request and REMOVE_REQUEST.search(user_request))


def build_change_description(
    element: SelectedElement,
    css_changes: dict[str, str],
    user_request: str | None,
) -> str:
    """Synthesizes a FIND/REPLACE instruction for the local apply model."""

    class_attr = f' className="{element.primary_class}"' if element.primary_class else ""
    original_tag = f"<{element.tag_name}{class_attr}>"
    if is_remove_request(user_request):
        return f"FIND: {original_tag}\nREPLACE WITH: {{false && {original_tag}...</{element.tag_name}>}}"
    if css_changes:
        new_tag = f"<{element.tag_name} style={{{{ {style_entries(css_changes)} }}}}{class_attr}>"
        return f"FIND: {original_tag}\nREPLACE WITH: {new_tag}"
    return user_request or ""


def _kebab_case(prop: str) -> str:
    return re.sub(r"([A-Z])", r"-\1", prop).lower()


def build_cloud_patch_prompt(
    *,
    code_window: str,
    element: SelectedElement,
    css_changes: dict[str, str],
    user_request: str | None,
    source_file: str,
    target_line: int,
    start_line: int,
    end_line: int,
    line_number_reliable: bool = True,
) -> str | None:
    """Builds the natural-language patch instructions, or None when nothing is requested."""

    has_css = bool(css_changes)
    css_string = "; ".join(f"{_kebab_case(prop)}: {value}" for prop, value in css_changes.items())
    if has_css and user_request:
        change_description = f'CSS changes to apply: {css_string}\n\nUser\'s request: "{user_request}"'
    elif has_css:
        change_description = f"CSS changes to apply: {css_string}"
    elif user_request:
        change_description = f'User\'s request: "{user_request}"'
    else:
        return None

    steps: list[str] = []
    search_by_element = not line_number_reliable or bool(element.text) or bool(element.class_name)
    if search_by_element:
        step = f"SEARCH the snippet for a <{element.tag_name}> element"
        if element.text:
            step += f' containing text "{element.text[:50]}"'
        if element.primary_class:
            step += f' with class "{element.primary_class}"'
        steps.append(step)
    else:
        steps.append(f"Find the JSX element near line {target_line} (should be near the middle of the snippet)")

    if has_css:
        steps.extend(
            [
                "MODIFY the existing element's opening tag to add/merge a style prop - DO NOT create a duplicate element",
                "If using Tailwind, convert to Tailwind classes where appropriate",
                "The result should have the SAME NUMBER of elements - only the style prop changes",
            ]
        )
    if user_request:
        is_text_change = any(pattern.search(user_request.strip()) for pattern in TEXT_REQUEST)
        if REMOVE_TARGETED.search(user_request):
            steps.extend(
                [
                    "To remove/delete/hide the element, add style={{ display: 'none' }} to it",
                    "Or if the user wants it fully removed, wrap it in {false && <element>...</element>}",
                ]
            )
        elif is_text_change or not has_css:
            steps.extend(
                [
                    "Update the text content of the element based on the user's request",
                    'If the request is quoted text like "New Text", use that as the new content',
                ]
            )
    steps.extend(
        [
            f"Output ONLY the modified snippet (lines {start_line + 1} to {end_line}), no explanations",
            "Preserve exact indentation and formatting",
            "CRITICAL: Do NOT duplicate elements - modify in-place",
        ]
    )
    instructions = "\n".join(f"{index}. {step}" for index, step in enumerate(steps, start=1))

    if line_number_reliable:
        line_hint = f"Target line in original file: {target_line}"
    else:
        line_hint = "(Line number from source map may be inaccurate - search by element characteristics)"

    return f"""Source file: {source_file}
{line_hint}
Snippet shows lines {start_line + 1} to {end_line}

Code snippet:
```
{code_window}
```

Element being modified:
- Tag: {element.tag_name}
- Classes: {element.class_name or 'none'}
- ID: {element.id or 'none'}
- Current text content: {element.text[:100] or 'none'}

{change_description}

Instructions:
{instructions}

Output the modified code snippet:"""
