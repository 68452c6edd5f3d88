from __future__ import annotations

import logging
import re

from livepatch.config.schema import SelectedElement

log = logging.getLogger(__name__)

SRC_SEARCH_RADIUS = 15
CSS_SEARCH_RADIUS = 30

_IMG_TAG = re.compile(r"<img\s", re.IGNORECASE)
_SRC_ATTR = re.compile(r"src\s*=", re.IGNORECASE)
_SRC_QUOTED = re.compile(r"src\s*=\s*(['\"])([^'\"]*)\1")
_SRC_JSX = re.compile(r"src\s*=\s*\{([^}]*)\}")
_STYLE_OBJECT = re.compile(r"style=\{(\{[^}]*\})\}")
_STYLE_STRING = re.compile(r"style=\"([^\"]*)\"")


def camel_case(prop: str) -> str:
    if prop.startswith("--"):
        return prop
    return re.sub(r"-([a-z])", lambda match: match.group(1).upper(), prop.strip())


def style_entries(css_changes: dict[str, str]) -> str:
    """Renders CSS changes as JSX style-object entries."""

    return ", ".join(f"{_style_key(prop)}: {_style_value(value)}" for prop, value in css_changes.items())


def _style_key(prop: str) -> str:
    key = camel_case(prop)
    return key if re.fullmatch(r"[A-Za-z_$][\w$]*", key) else f"'{key}'"


def _style_value(value: str) -> str:
    escaped = str(value).replace("\\", "\\\\").replace("'", "\\'")
    return f"'{escaped}'"


def _search_bounds(line_count: int, source_line: int, radius: int) -> tuple[int, int]:
    target = min(max(source_line, 1), line_count)
    return max(0, target - radius - 1), min(line_count, target + radius)


def try_src_change(original_content: str, source_line: int, new_src: str) -> str | None:
    """Rewrites the nearest img src attribute around the reported line."""

    lines = original_content.split("\n")
    start, end = _search_bounds(len(lines), source_line, SRC_SEARCH_RADIUS)
    for index in range(start, end):
        line = lines[index]
        if not (_IMG_TAG.search(line) or _SRC_ATTR.search(line)):
            continue
        quoted = _SRC_QUOTED.search(line)
        jsx = _SRC_JSX.search(line)
        if quoted:
            quote = quoted.group(1)
            replacement = f"src={quote}{new_src}{quote}"
            lines[index] = line[: quoted.start()] + replacement + line[quoted.end() :]
        elif jsx:
            lines[index] = line[: jsx.start()] + f'src="{new_src}"' + line[jsx.end() :]
        else:
            continue
        log.debug("Src fast path matched line %d", index + 1)
        patched = "\n".join(lines)
        return patched if patched != original_content else None
    return None


def try_text_change(original_content: str, old_text: str, new_text: str) -> str | None:
    """Replaces the first structural occurrence of old_text anywhere in the file."""

    if not old_text or old_text == new_text:
        return None
    escaped = re.escape(old_text)
    patterns = (
        re.compile(rf"(>\s*){escaped}(\s*<)"),
        re.compile(rf"(['\"]){escaped}(\1)"),
        re.compile(rf"(`){escaped}(`)"),
    )
    for pattern in patterns:
        match = pattern.search(original_content)
        if not match:
            continue
        patched = (
            original_content[: match.start()]
            + match.group(1)
            + new_text
            + match.group(2)
            + original_content[match.end() :]
        )
        if patched != original_content:
            log.debug("Text fast path matched pattern %s", pattern.pattern)
            return patched
    return None


def try_css_change(
    original_content: str,
    source_line: int,
    element: SelectedElement,
    css_changes: dict[str, str],
) -> str | None:
    """Merges CSS changes into the element's style prop near the reported line."""

    if not css_changes:
        return None
    class_name = element.primary_class
    element_id = element.id
    if not class_name and not element_id:
        log.info("CSS fast path skipped: element has neither class nor id")
        return None

    tag = re.escape(element.tag_name)
    tag_pattern = re.compile(rf"<{tag}[\s>]", re.IGNORECASE)
    class_pattern = (
        re.compile(rf"(?:className|class)=[\"'`{{][^\"'`]*(?<![\w-]){re.escape(class_name)}(?![\w-])")
        if class_name
        else None
    )
    id_pattern = re.compile(rf"id=[\"'`]{re.escape(element_id)}[\"'`]") if element_id else None

    lines = original_content.split("\n")
    start, end = _search_bounds(len(lines), source_line, CSS_SEARCH_RADIUS)
    for index in range(start, end):
        line = lines[index]
        has_tag = bool(tag_pattern.search(line))
        has_class = bool(class_pattern and class_pattern.search(line))
        has_id = bool(id_pattern and id_pattern.search(line))
        if not ((has_tag and has_class) or (has_tag and has_id) or (has_id and not has_tag)):
            continue
        patched_line = _apply_style(line, tag, css_changes)
        if patched_line is None:
            continue
        if patched_line == line:
            log.info("CSS fast path: style properties already present on line %d", index + 1)
            return None
        lines[index] = patched_line
        log.debug("CSS fast path matched line %d", index + 1)
        return "\n".join(lines)
    return None


def _apply_style(line: str, tag: str, css_changes: dict[str, str]) -> str | None:
    existing_object = _STYLE_OBJECT.search(line)
    if existing_object:
        body = existing_object.group(1)
        additions = {
            prop: value
            for prop, value in css_changes.items()
            if not re.search(rf"(?<![\w$'\"]){re.escape(camel_case(prop))}['\"]?\s*:", body)
        }
        if not additions:
            return line
        inner = body[1:-1].strip().rstrip(",").strip()
        merged = f"{{ {inner}, {style_entries(additions)} }}" if inner else f"{{ {style_entries(additions)} }}"
        return line[: existing_object.start()] + f"style={{{merged}}}" + line[existing_object.end() :]

    existing_string = _STYLE_STRING.search(line)
    if existing_string:
        current: dict[str, str] = {}
        for declaration in existing_string.group(1).split(";"):
            if ":" not in declaration:
                continue
            prop, value = declaration.split(":", 1)
            if prop.strip():
                current[camel_case(prop.strip())] = value.strip()
        for prop, value in css_changes.items():
            current[camel_case(prop)] = value
        return line[: existing_string.start()] + f"style={{{{ {style_entries(current)} }}}}" + line[existing_string.end() :]

    opening = re.search(rf"(<{tag})([\s>])", line, re.IGNORECASE)
    if not opening:
        return None
    insertion = f"{opening.group(1)} style={{{{ {style_entries(css_changes)} }}}}{opening.group(2)}"
    return line[: opening.start()] + insertion + line[opening.end() :]
