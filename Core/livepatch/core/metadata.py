from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Literal

from livepatch.config.schema import SelectedElement, SrcChange, TextChange

GeneratedBy = Literal["fast-path", "fast-apply", "gemini"]
PatchStatus = Literal["preparing", "ready", "error"]
ApprovalOutcome = Literal["accepted", "rejected", "cancelled"]
CancelReason = Literal["superseded", "context_change"]


@dataclass(slots=True)
class SourcePatch:
    file_path: str
    original_content: str
    patched_content: str
    line_number: int
    generated_by: GeneratedBy
    duration_ms: int | None = None
    model: str | None = None

    @property
    def changed(self) -> bool:
        return self.original_content != self.patched_content


@dataclass(slots=True)
class FastApplyResult:
    success: bool
    code: str | None = None
    duration_ms: int | None = None
    error: str | None = None


@dataclass(slots=True)
class PendingDOMApproval:
    id: str
    element: SelectedElement
    css_changes: dict[str, str]
    description: str
    undo_code: str
    apply_code: str
    user_request: str
    tab_id: str
    text_change: TextChange | None = None
    src_change: SrcChange | None = None
    project_path: str | None = None
    patch_status: PatchStatus = "preparing"
    patch: SourcePatch | None = None
    patch_error: str | None = None
    user_approved: bool = False
    auto_approved: bool = False

    @property
    def change_type(self) -> str:
        if self.src_change is not None:
            return "src"
        if self.text_change is not None:
            return "text"
        if self.css_changes:
            return "style"
        return "structure"


@dataclass(slots=True)
class ApplyPatchResult:
    success: bool
    file_path: str | None = None
    patch_id: str | None = None
    can_undo: bool = False
    error: str | None = None


@dataclass(slots=True)
class RestoreResult:
    success: bool
    file_path: str
    restored_content: str | None = None
    patch_id: str | None = None
    description: str | None = None
    error: str | None = None


@dataclass(slots=True)
class HistoryEntry:
    id: str
    file_path: str
    before_content: str
    after_content: str
    timestamp: float
    description: str
    generated_by: str = "unknown"
    line_number: int = 0


@dataclass(slots=True)
class Checkpoint:
    id: str
    name: str
    file_path: str
    content: str
    timestamp: float


@dataclass(slots=True)
class HistoryStatus:
    file_path: str
    undo_count: int = 0
    redo_count: int = 0
    checkpoint_count: int = 0

    @property
    def can_undo(self) -> bool:
        return self.undo_count > 0

    @property
    def can_redo(self) -> bool:
        return self.redo_count > 0


@dataclass(slots=True)
class EditedFile:
    path: str
    file_name: str
    additions: int = 0
    deletions: int = 0
    undo_code: str | None = None
    original_content: str | None = None
    tab_id: str | None = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))


@dataclass(slots=True)
class ConversationMessage:
    id: str
    role: Literal["system", "assistant"]
    content: str
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))
