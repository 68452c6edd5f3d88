from __future__ import annotations

import asyncio
from pathlib import Path

from livepatch.config.schema import FastApplyConfig, SelectedElement, SourceLocation, SourceLocationEntry
from livepatch.core.files import FileService
from livepatch.core.metadata import SourcePatch
from livepatch.core.page import LivePage
from livepatch.llm.client import LocalFastApplyClient, TextGenerationClient

APP_SOURCE = "\n".join(
    [
        "import React from 'react'",
        "",
        "export function App() {",
        "  return (",
        "    <main className=\"app\">",
        "      <button className=\"btn\">Old</button>",
        "      <img className=\"hero\" src=\"a.png\" alt=\"hero\" />",
        "      <p>Keep me</p>",
        "    </main>",
        "  )",
        "}",
        "",
    ]
)
BUTTON_LINE = 6
IMG_LINE = 7


def make_element(
    tag_name: str = "button",
    class_name: str = "btn",
    element_id: str = "",
    text: str = "Old",
    file_ref: str | None = "src/App.tsx",
    line: int = BUTTON_LINE,
    xpath: str = "/html/body/main/button",
) -> SelectedElement:
    source_location = None
    if file_ref is not None:
        source_location = SourceLocation(
            sources=[SourceLocationEntry(file=file_ref, line=line)],
            summary=f"{file_ref}:{line}",
        )
    return SelectedElement(
        tag_name=tag_name,
        class_name=class_name,
        id=element_id,
        text=text,
        xpath=xpath,
        source_location=source_location,
    )


def make_patch(file_path: str, original: str = APP_SOURCE, generated_by: str = "fast-path") -> SourcePatch:
    return SourcePatch(
        file_path=file_path,
        original_content=original,
        patched_content=original.replace(">Old<", ">New<"),
        line_number=BUTTON_LINE,
        generated_by=generated_by,
    )


class MemoryFileService(FileService):
    def __init__(self, files: dict[str, str] | None = None, cwd: str = "/tmp/project") -> None:
        self.files = dict(files or {})
        self.cwd = cwd
        self.writes: list[tuple[str, str]] = []
        self.fail_writes = False

    async def read_file(self, path: str) -> str:
        if path not in self.files:
            raise FileNotFoundError(path)
        return self.files[path]

    async def write_file(self, path: str, content: str) -> None:
        if self.fail_writes:
            raise OSError("disk full")
        self.writes.append((path, content))
        self.files[path] = content

    async def get_cwd(self) -> str:
        return self.cwd


class FakePage(LivePage):
    def __init__(self) -> None:
        self.scripts: list[str] = []

    async def execute_javascript(self, code: str):
        self.scripts.append(code)
        return True


class FakeClock:
    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def advance(self, ms: float) -> None:
        self.now += ms

    def __call__(self) -> float:
        return self.now


class StubFastApplyClient(LocalFastApplyClient):
    def __init__(self, response: str | Exception | None = None) -> None:
        super().__init__(FastApplyConfig(endpoint="http://127.0.0.1:8765", model="stub-apply"))
        self.response = response
        self.calls: list[tuple[str, str]] = []

    def apply(self, original_code: str, update_snippet: str) -> str:
        self.calls.append((original_code, update_snippet))
        if isinstance(self.response, Exception):
            raise self.response
        return self.response if self.response is not None else original_code


class StubTextClient(TextGenerationClient):
    provider_name = "stub"

    def __init__(self, response: str) -> None:
        self.response = response
        self.prompts: list[str] = []

    def generate_text(self, prompt: str, *, system: str | None = None) -> str:
        self.prompts.append(prompt)
        return self.response


class StubGenerator:
    """Stands in for SourcePatchGenerator with a controllable result."""

    def __init__(self, patch: SourcePatch | None = None, delay: float = 0.0) -> None:
        self.patch = patch
        self.delay = delay
        self.calls = 0
        self.release = asyncio.Event()
        self.wait_for_release = False

    async def generate(self, element, css_changes, provider_config, **kwargs) -> SourcePatch | None:
        self.calls += 1
        if self.wait_for_release:
            await self.release.wait()
        if self.delay:
            await asyncio.sleep(self.delay)
        return self.patch


def source_path(project: Path) -> str:
    return str(project / "src" / "App.tsx")
