from __future__ import annotations

import asyncio
import os
from abc import ABC, abstractmethod
from pathlib import Path


class FileService(ABC):
    """Async file access used by the patch pipeline."""

    @abstractmethod
    async def read_file(self, path: str) -> str:
        raise NotImplementedError

    @abstractmethod
    async def write_file(self, path: str, content: str) -> None:
        raise NotImplementedError

    @abstractmethod
    async def get_cwd(self) -> str:
        raise NotImplementedError


class LocalFileService(FileService):
    def __init__(self, cwd: str | Path | None = None) -> None:
        self._cwd = Path(cwd) if cwd is not None else None

    async def read_file(self, path: str) -> str:
        return await asyncio.to_thread(Path(path).read_text, encoding="utf-8")

    async def write_file(self, path: str, content: str) -> None:
        await asyncio.to_thread(self._write, Path(path), content)

    async def get_cwd(self) -> str:
        return str(self._cwd or Path(os.getcwd()))

    @staticmethod
    def _write(path: Path, content: str) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
