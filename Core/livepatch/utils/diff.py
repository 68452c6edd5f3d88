from __future__ import annotations

from difflib import SequenceMatcher, unified_diff as _unified_diff
from pathlib import PurePath


def count_line_changes(before: str, after: str) -> tuple[int, int]:
    """Counts added and removed lines between two versions of a file."""

    matcher = SequenceMatcher(a=before.split("\n"), b=after.split("\n"), autojunk=False)
    additions = 0
    deletions = 0
    for tag, i1, i2, j1, j2 in matcher.get_opcodes():
        if tag in ("replace", "delete"):
            deletions += i2 - i1
        if tag in ("replace", "insert"):
            additions += j2 - j1
    return additions, deletions


def unified_diff(before: str, after: str, file_path: str = "", context: int = 3) -> str:
    name = PurePath(file_path).name if file_path else "file"
    return "\n".join(
        _unified_diff(
            before.split("\n"),
            after.split("\n"),
            fromfile=f"a/{name}",
            tofile=f"b/{name}",
            n=context,
            lineterm="",
        )
    )
