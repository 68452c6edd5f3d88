from __future__ import annotations

import logging
from datetime import UTC, datetime
from pathlib import PurePath

from livepatch.core.applicator import PatchApplicator
from livepatch.core.metadata import EditedFile, RestoreResult
from livepatch.core.page import TabRegistry
from livepatch.utils.diff import count_line_changes

log = logging.getLogger(__name__)


class EditedFilesTracker:
    """Session-level accounting of files the pipeline has written."""

    def __init__(self, applicator: PatchApplicator, tabs: TabRegistry | None = None) -> None:
        self.applicator = applicator
        self.tabs = tabs
        self._files: dict[str, EditedFile] = {}

    @property
    def files(self) -> list[EditedFile]:
        return sorted(self._files.values(), key=lambda item: item.timestamp, reverse=True)

    def get(self, path: str) -> EditedFile | None:
        return self._files.get(path)

    def add(
        self,
        path: str,
        original_content: str,
        new_content: str,
        undo_code: str | None = None,
        tab_id: str | None = None,
    ) -> EditedFile:
        additions, deletions = count_line_changes(original_content, new_content)
        record = self._files.get(path)
        if record is None:
            record = EditedFile(
                path=path,
                file_name=PurePath(path).name,
                original_content=original_content,
            )
            self._files[path] = record
        record.additions += additions
        record.deletions += deletions
        if undo_code:
            record.undo_code = undo_code
        if tab_id:
            record.tab_id = tab_id
        record.timestamp = datetime.now(UTC)
        return record

    def dismiss(self, path: str) -> None:
        self._files.pop(path, None)

    def keep_all(self) -> None:
        self._files.clear()

    async def undo_file_edit(self, path: str) -> RestoreResult:
        record = self._files.get(path)
        result = await self.applicator.undo(path)
        if not result.success:
            log.warning("Undo failed for %s: %s", path, result.error)
            return result
        if record is not None and record.undo_code and self.tabs is not None:
            page = self.tabs.get(record.tab_id)
            if page is not None:
                try:
                    await page.execute_javascript(record.undo_code)
                except Exception as exc:  # noqa: BLE001 - the file is already restored.
                    log.warning("Could not revert live preview for %s: %s", path, exc)
        self._files.pop(path, None)
        return result

    async def undo_all(self) -> list[RestoreResult]:
        return [await self.undo_file_edit(path) for path in list(self._files)]
