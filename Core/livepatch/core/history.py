from __future__ import annotations

import hashlib
import json
import logging
import re
import time
import uuid
from dataclasses import asdict, dataclass, field
from pathlib import Path, PurePath

from livepatch.core.exceptions import HistoryError
from livepatch.core.metadata import Checkpoint, HistoryEntry, HistoryStatus

log = logging.getLogger(__name__)

MAX_HISTORY_PER_FILE = 100
MAX_CHECKPOINTS_PER_FILE = 20


@dataclass(slots=True)
class _FileHistory:
    undo_stack: list[HistoryEntry] = field(default_factory=list)
    redo_stack: list[HistoryEntry] = field(default_factory=list)
    checkpoints: list[Checkpoint] = field(default_factory=list)


def _generate_id(prefix: str) -> str:
    return f"{prefix}_{int(time.time() * 1000)}_{uuid.uuid4().hex[:8]}"


class PatchHistory:
    """Per-file undo/redo stacks and checkpoints, persisted as JSON documents.

    The store only records content; writing source files is left to the caller.
    """

    def __init__(self, root: str | Path) -> None:
        self.root = Path(root)
        self._files: dict[str, _FileHistory] = {}

    def history_path(self, file_path: str) -> Path:
        name = re.sub(r"[^\w.-]", "_", PurePath(file_path).name) or "file"
        digest = hashlib.sha256(file_path.encode("utf-8")).hexdigest()[:16]
        return self.root / f"{name}_{digest}.json"

    def record(
        self,
        file_path: str,
        before_content: str,
        after_content: str,
        description: str,
        generated_by: str = "unknown",
        line_number: int = 0,
    ) -> HistoryEntry:
        history = self._load(file_path)
        entry = HistoryEntry(
            id=_generate_id("patch"),
            file_path=file_path,
            before_content=before_content,
            after_content=after_content,
            timestamp=time.time(),
            description=description,
            generated_by=generated_by,
            line_number=line_number,
        )
        history.undo_stack.append(entry)
        del history.undo_stack[:-MAX_HISTORY_PER_FILE]
        history.redo_stack.clear()
        self._save(file_path)
        log.info("Recorded patch %s for %s", entry.id, file_path)
        return entry

    def pop_undo(self, file_path: str) -> HistoryEntry:
        history = self._load(file_path)
        if not history.undo_stack:
            raise HistoryError("Nothing to undo")
        entry = history.undo_stack.pop()
        history.redo_stack.append(entry)
        self._save(file_path)
        return entry

    def pop_redo(self, file_path: str) -> HistoryEntry:
        history = self._load(file_path)
        if not history.redo_stack:
            raise HistoryError("Nothing to redo")
        entry = history.redo_stack.pop()
        history.undo_stack.append(entry)
        self._save(file_path)
        return entry

    def add_checkpoint(self, file_path: str, content: str, name: str | None = None) -> Checkpoint:
        history = self._load(file_path)
        checkpoint = Checkpoint(
            id=_generate_id("checkpoint"),
            name=name or time.strftime("Checkpoint %Y-%m-%d %H:%M:%S"),
            file_path=file_path,
            content=content,
            timestamp=time.time(),
        )
        history.checkpoints.append(checkpoint)
        del history.checkpoints[:-MAX_CHECKPOINTS_PER_FILE]
        self._save(file_path)
        return checkpoint

    def get_checkpoint(self, file_path: str, checkpoint_id: str) -> Checkpoint:
        for checkpoint in self._load(file_path).checkpoints:
            if checkpoint.id == checkpoint_id:
                return checkpoint
        raise HistoryError(f"Checkpoint not found: {checkpoint_id}")

    def list_checkpoints(self, file_path: str) -> list[Checkpoint]:
        return sorted(self._load(file_path).checkpoints, key=lambda item: item.timestamp, reverse=True)

    def delete_checkpoint(self, file_path: str, checkpoint_id: str) -> None:
        history = self._load(file_path)
        remaining = [item for item in history.checkpoints if item.id != checkpoint_id]
        if len(remaining) == len(history.checkpoints):
            raise HistoryError(f"Checkpoint not found: {checkpoint_id}")
        history.checkpoints = remaining
        self._save(file_path)

    def status(self, file_path: str) -> HistoryStatus:
        history = self._load(file_path)
        return HistoryStatus(
            file_path=file_path,
            undo_count=len(history.undo_stack),
            redo_count=len(history.redo_stack),
            checkpoint_count=len(history.checkpoints),
        )

    def last_entry(self, file_path: str) -> HistoryEntry | None:
        undo_stack = self._load(file_path).undo_stack
        return undo_stack[-1] if undo_stack else None

    def entries(self, file_path: str, limit: int = 20, include_content: bool = False) -> list[dict[str, object]]:
        """Newest-first summaries of the undo stack."""

        recent = list(reversed(self._load(file_path).undo_stack))[:limit]
        summaries = []
        for entry in recent:
            payload = asdict(entry)
            if not include_content:
                payload.pop("before_content")
                payload.pop("after_content")
            summaries.append(payload)
        return summaries

    def clear(self, file_path: str) -> None:
        history = self._load(file_path)
        history.undo_stack.clear()
        history.redo_stack.clear()
        self._save(file_path)

    def _load(self, file_path: str) -> _FileHistory:
        if file_path in self._files:
            return self._files[file_path]
        history = _FileHistory()
        path = self.history_path(file_path)
        if path.exists():
            try:
                payload = json.loads(path.read_text(encoding="utf-8"))
                history = _FileHistory(
                    undo_stack=[HistoryEntry(**item) for item in payload.get("undo_stack", [])],
                    redo_stack=[HistoryEntry(**item) for item in payload.get("redo_stack", [])],
                    checkpoints=[Checkpoint(**item) for item in payload.get("checkpoints", [])],
                )
            except (OSError, ValueError, TypeError) as exc:
                log.warning("Ignoring unreadable patch history %s: %s", path, exc)
        self._files[file_path] = history
        return history

    def _save(self, file_path: str) -> None:
        history = self._files[file_path]
        payload = {
            "file_path": file_path,
            "undo_stack": [asdict(item) for item in history.undo_stack],
            "redo_stack": [asdict(item) for item in history.redo_stack],
            "checkpoints": [asdict(item) for item in history.checkpoints],
            "last_modified": time.time(),
        }
        try:
            self.root.mkdir(parents=True, exist_ok=True)
            self.history_path(file_path).write_text(json.dumps(payload, indent=2), encoding="utf-8")
        except OSError as exc:
            raise HistoryError(f"Could not persist patch history for {file_path}: {exc}") from exc
