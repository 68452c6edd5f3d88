from __future__ import annotations

import asyncio
import logging
from collections import defaultdict

from livepatch.core.exceptions import HistoryError
from livepatch.core.files import FileService
from livepatch.core.history import PatchHistory
from livepatch.core.metadata import ApplyPatchResult, Checkpoint, HistoryStatus, RestoreResult, SourcePatch
from livepatch.utils.diff import unified_diff

log = logging.getLogger(__name__)


class PatchApplicator:
    """The only component that writes patched source files to disk."""

    def __init__(self, file_service: FileService, history: PatchHistory) -> None:
        self.file_service = file_service
        self.history = history
        self._locks: defaultdict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    async def apply_patch(self, patch: SourcePatch, description: str | None = None) -> ApplyPatchResult:
        if not patch.changed:
            return ApplyPatchResult(success=False, file_path=patch.file_path, error="No changes to apply")
        patch_description = description or f"Code patch ({patch.generated_by}) at line {patch.line_number}"

        async with self._locks[patch.file_path]:
            try:
                await self.file_service.write_file(patch.file_path, patch.patched_content)
            except Exception as exc:  # noqa: BLE001 - surfaced to the caller as a failed result.
                log.error("Failed to write %s: %s", patch.file_path, exc)
                return ApplyPatchResult(success=False, file_path=patch.file_path, error=str(exc))

            patch_id = None
            try:
                entry = self.history.record(
                    patch.file_path,
                    patch.original_content,
                    patch.patched_content,
                    patch_description,
                    generated_by=patch.generated_by,
                    line_number=patch.line_number,
                )
                patch_id = entry.id
            except Exception as exc:  # noqa: BLE001 - the file write already succeeded.
                log.warning("Patch written but history was not recorded for %s: %s", patch.file_path, exc)

        log.info("Applied %s patch to %s", patch.generated_by, patch.file_path)
        return ApplyPatchResult(
            success=True,
            file_path=patch.file_path,
            patch_id=patch_id,
            can_undo=self.history.status(patch.file_path).can_undo,
        )

    async def undo(self, file_path: str) -> RestoreResult:
        async with self._locks[file_path]:
            try:
                entry = self.history.pop_undo(file_path)
            except HistoryError as exc:
                return RestoreResult(success=False, file_path=file_path, error=str(exc))
            try:
                await self.file_service.write_file(file_path, entry.before_content)
            except Exception as exc:  # noqa: BLE001 - stacks are rolled back and the failure returned.
                self.history.pop_redo(file_path)
                return RestoreResult(success=False, file_path=file_path, error=str(exc))
        return RestoreResult(
            success=True,
            file_path=file_path,
            restored_content=entry.before_content,
            patch_id=entry.id,
            description=entry.description,
        )

    async def redo(self, file_path: str) -> RestoreResult:
        async with self._locks[file_path]:
            try:
                entry = self.history.pop_redo(file_path)
            except HistoryError as exc:
                return RestoreResult(success=False, file_path=file_path, error=str(exc))
            try:
                await self.file_service.write_file(file_path, entry.after_content)
            except Exception as exc:  # noqa: BLE001 - stacks are rolled back and the failure returned.
                self.history.pop_undo(file_path)
                return RestoreResult(success=False, file_path=file_path, error=str(exc))
        return RestoreResult(
            success=True,
            file_path=file_path,
            restored_content=entry.after_content,
            patch_id=entry.id,
            description=entry.description,
        )

    async def create_checkpoint(self, file_path: str, name: str | None = None) -> Checkpoint:
        content = await self.file_service.read_file(file_path)
        return self.history.add_checkpoint(file_path, content, name)

    async def restore_checkpoint(self, file_path: str, checkpoint_id: str) -> RestoreResult:
        async with self._locks[file_path]:
            try:
                checkpoint = self.history.get_checkpoint(file_path, checkpoint_id)
                current = await self.file_service.read_file(file_path)
                await self.file_service.write_file(file_path, checkpoint.content)
            except Exception as exc:  # noqa: BLE001 - surfaced to the caller as a failed result.
                return RestoreResult(success=False, file_path=file_path, error=str(exc))
            entry = self.history.record(
                file_path,
                current,
                checkpoint.content,
                f"Restored checkpoint: {checkpoint.name}",
                generated_by="checkpoint-restore",
            )
        return RestoreResult(
            success=True,
            file_path=file_path,
            restored_content=checkpoint.content,
            patch_id=entry.id,
            description=entry.description,
        )

    def status(self, file_path: str) -> HistoryStatus:
        return self.history.status(file_path)

    @staticmethod
    def preview(patch: SourcePatch) -> str:
        return unified_diff(patch.original_content, patch.patched_content, patch.file_path)
