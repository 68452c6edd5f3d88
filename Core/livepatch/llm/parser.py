from __future__ import annotations

import re

from livepatch.core.exceptions import ModelResponseError

PROSE_INDICATORS = (
    re.compile(r"^The provided", re.IGNORECASE),
    re.compile(r"^I cannot", re.IGNORECASE),
    re.compile(r"^I apologize", re.IGNORECASE),
    re.compile(r"^Unfortunately", re.IGNORECASE),
    re.compile(r"^This (code|update|change)", re.IGNORECASE),
    re.compile(r"^Here'?s (how|an example)", re.IGNORECASE),
    re.compile(r"does not make sense", re.IGNORECASE),
    re.compile(r"is not (a )?valid", re.IGNORECASE),
    re.compile(r"you (should|can|need to)", re.IGNORECASE),
)

_CODE_FENCE = re.compile(r"```(?:tsx?|jsx?|typescript|javascript|html|vue|svelte)?[^\S\n]*\n?([\s\S]*?)```")
_CHAT_END = re.compile(r"<\|im_end\|>")
_CHAT_TRAILER = re.compile(r"<\|im_start\|>[\s\S]*$")


def clean_model_output(text: str) -> str:
    cleaned = _CHAT_END.sub("", text)
    return _CHAT_TRAILER.sub("", cleaned)


def strip_code_fences(text: str) -> str:
    match = _CODE_FENCE.search(text)
    if match:
        return match.group(1)
    return text


def is_prose(text: str) -> bool:
    stripped = text.strip()
    if not stripped:
        return False
    first_line = stripped.split("\n", 1)[0]
    return any(pattern.search(first_line) for pattern in PROSE_INDICATORS)


def parse_code_response(response: str | None, *, strip_fences: bool = True) -> str:
    """Extracts a code window from a model response or raises ModelResponseError."""

    if response is None or not response.strip():
        raise ModelResponseError("Model returned an empty response")
    code = clean_model_output(response)
    if strip_fences:
        code = strip_code_fences(code)
    if not code.strip():
        raise ModelResponseError("Model returned an empty code block")
    if is_prose(code):
        raise ModelResponseError("Model returned prose instead of code")
    return code
