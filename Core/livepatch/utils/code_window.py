from __future__ import annotations

from dataclasses import dataclass


@dataclass(slots=True)
class CodeWindow:
    """A contiguous slice of a file's lines, addressed by zero-based offsets."""

    lines: list[str]
    start: int
    end: int
    target_line: int

    @property
    def text(self) -> str:
        return "\n".join(self.lines[self.start : self.end])

    @property
    def empty(self) -> bool:
        return self.start >= self.end

    def fit(self, replacement: str) -> str:
        """Gives model output the window's own leading and trailing whitespace."""

        text = self.text
        body = replacement.strip()
        if not text.strip() or not body:
            return replacement
        leading = text[: len(text) - len(text.lstrip())]
        trailing = text[len(text.rstrip()) :]
        return leading + body + trailing

    def splice(self, replacement: str) -> str:
        """Returns the full file with this window replaced by the given text."""

        return "\n".join([*self.lines[: self.start], *replacement.split("\n"), *self.lines[self.end :]])


def clamp_line(line: int, line_count: int) -> int:
    if line_count <= 0:
        return 0
    return min(max(line, 1), line_count)


def extract_window(content: str, source_line: int, context_lines: int) -> CodeWindow:
    lines = content.split("\n")
    target = clamp_line(source_line, len(lines))
    start = max(0, target - context_lines)
    end = min(len(lines), target + context_lines)
    return CodeWindow(lines=lines, start=start, end=end, target_line=target)
