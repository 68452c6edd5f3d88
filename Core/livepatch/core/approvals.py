from __future__ import annotations

import asyncio
import logging
import uuid
from collections.abc import Callable
from pathlib import PurePath

from livepatch.config.schema import PipelineSettings, ProviderConfig, SelectedElement, SrcChange, TextChange
from livepatch.core.applicator import PatchApplicator
from livepatch.core.dom_scripts import build_preview_scripts
from livepatch.core.edited_files import EditedFilesTracker
from livepatch.core.metadata import CancelReason, ConversationMessage, PendingDOMApproval, SourcePatch
from livepatch.core.orchestrator import SourcePatchGenerator
from livepatch.core.page import TabRegistry
from livepatch.logging.decisions import ApprovalDecisionLog
from livepatch.logging.telemetry import DomEditTelemetryRecorder

log = logging.getLogger(__name__)

PATCH_FAILED_MESSAGE = "Could not generate source patch."
NO_PATCH_MESSAGE = "Could not prepare a source patch for this change."


def _new_approval_id() -> str:
    return f"dom-{uuid.uuid4().hex[:12]}"


class DomApprovalController:
    """Owns the single active live-preview approval and drives it to a terminal outcome.

    A newer edit supersedes an older unapproved one, reverting its preview.
    Results from patch generation are discarded when the approval they belong
    to has been cancelled or a newer generation attempt has started.
    """

    def __init__(
        self,
        generator: SourcePatchGenerator,
        applicator: PatchApplicator,
        tabs: TabRegistry,
        provider_config: ProviderConfig,
        settings: PipelineSettings | None = None,
        telemetry: DomEditTelemetryRecorder | None = None,
        edited_files: EditedFilesTracker | None = None,
        decisions: ApprovalDecisionLog | None = None,
        active_tab_id: str | None = None,
        id_factory: Callable[[], str] = _new_approval_id,
    ) -> None:
        self.generator = generator
        self.applicator = applicator
        self.tabs = tabs
        self.provider_config = provider_config
        self.settings = settings or PipelineSettings()
        self.telemetry = telemetry or DomEditTelemetryRecorder(self.settings.telemetry_path)
        self.edited_files = edited_files
        if decisions is None and self.settings.decisions_dir is not None:
            decisions = ApprovalDecisionLog(self.settings.decisions_dir)
        self.decisions = decisions
        self.active_tab_id = active_tab_id
        self.selected_xpath: str | None = None
        self.id_factory = id_factory
        self.messages: list[ConversationMessage] = []
        self._approvals: dict[str, PendingDOMApproval] = {}
        self._active_id: str | None = None
        self._cancelled: set[str] = set()
        self._tokens: dict[str, str] = {}
        self._writing: set[str] = set()
        self._tasks: set[asyncio.Task] = set()

    @property
    def active_approval(self) -> PendingDOMApproval | None:
        if self._active_id is None:
            return None
        return self._approvals.get(self._active_id)

    @property
    def tracked_approvals(self) -> list[PendingDOMApproval]:
        return list(self._approvals.values())

    def is_writing(self, approval_id: str | None = None) -> bool:
        if approval_id is None:
            return bool(self._writing)
        return approval_id in self._writing

    async def begin_edit(
        self,
        element: SelectedElement,
        css_changes: dict[str, str] | None = None,
        *,
        description: str = "",
        user_request: str = "",
        project_path: str | None = None,
        text_change: TextChange | None = None,
        src_change: SrcChange | None = None,
        tab_id: str | None = None,
    ) -> PendingDOMApproval:
        """Applies the live preview in the page and starts generating its source patch."""

        css_changes = dict(css_changes or {})
        target_tab = tab_id or self.active_tab_id
        apply_code, undo_code = build_preview_scripts(element.xpath or "", css_changes, text_change, src_change)
        await self._supersede()
        page = self.tabs.get(target_tab)
        if page is not None:
            await page.execute_javascript(apply_code)
        else:
            log.warning("No live page registered for tab %s, preview not applied", target_tab)

        approval_id = self.id_factory()
        await self.prepare_dom_patch(
            approval_id,
            element,
            css_changes,
            description or user_request or f"Edit <{element.tag_name}>",
            undo_code,
            apply_code,
            user_request,
            project_path,
            text_change,
            src_change,
            tab_id=target_tab,
        )
        return self._approvals[approval_id]

    async def prepare_dom_patch(
        self,
        approval_id: str,
        element: SelectedElement,
        css_changes: dict[str, str],
        description: str,
        undo_code: str,
        apply_code: str,
        user_request: str,
        project_path: str | None = None,
        text_change: TextChange | None = None,
        src_change: SrcChange | None = None,
        *,
        tab_id: str | None = None,
    ) -> None:
        """Opens (or re-arms) an approval and schedules patch generation without waiting for it."""

        approval = self._approvals.get(approval_id)
        if approval is None:
            approval = PendingDOMApproval(
                id=approval_id,
                element=element,
                css_changes=dict(css_changes),
                description=description,
                undo_code=undo_code,
                apply_code=apply_code,
                user_request=user_request,
                tab_id=tab_id or self.active_tab_id or "",
                text_change=text_change,
                src_change=src_change,
                project_path=project_path,
            )
            await self._open(approval)
        else:
            approval.patch_status = "preparing"
            approval.patch = None
            approval.patch_error = None

        self._cancelled.discard(approval_id)
        token = uuid.uuid4().hex
        self._tokens[approval_id] = token
        self.telemetry.mark(approval_id, "patch_generation_started")
        log.info(
            "Preparing source patch for %s (<%s>, project=%s)",
            approval_id,
            element.tag_name,
            project_path or "NOT SET",
        )
        self._track(asyncio.create_task(self._run_generation(approval, token)))

    async def accept(self, approval_id: str | None = None) -> bool:
        approval = self._approvals.get(approval_id or self._active_id or "")
        if approval is None or approval.id in self._cancelled:
            return False
        if approval.patch_status == "preparing":
            approval.user_approved = True
            log.info("Approval %s accepted while preparing, will apply when ready", approval.id)
            return True
        await self._accept(approval)
        return True

    async def reject(self, approval_id: str | None = None) -> bool:
        approval = self._approvals.get(approval_id or self._active_id or "")
        if approval is None:
            return False
        if approval.id in self._writing:
            log.info("Approval %s is already being written, reject ignored", approval.id)
            return False
        self._tokens.pop(approval.id, None)
        self.telemetry.mark(approval.id, "user_reject")
        self._cancelled.add(approval.id)
        await self._revert(approval)
        self._close(approval.id)
        self._record_decision(approval, "reject")
        self._finalize(approval.id, "rejected")
        return True

    async def cancel_pending(self, reason: CancelReason) -> bool:
        approval = self.active_approval
        if approval is None or approval.user_approved or approval.id in self._writing:
            return False
        await self._cancel(approval, reason)
        return True

    async def set_active_tab(self, tab_id: str) -> None:
        self.active_tab_id = tab_id
        approval = self.active_approval
        if approval is not None and approval.tab_id and approval.tab_id != tab_id:
            log.info("Tab switched from %s to %s, cancelling pending change", approval.tab_id, tab_id)
            await self.cancel_pending("context_change")

    async def select_element(self, xpath: str | None) -> None:
        self.selected_xpath = xpath
        approval = self.active_approval
        if approval is None or not xpath or not approval.element.xpath:
            return
        if xpath != approval.element.xpath:
            log.info("Selection changed from %s to %s, cancelling pending change", approval.element.xpath, xpath)
            await self.cancel_pending("context_change")

    async def drain(self) -> None:
        """Waits for every scheduled generation and follow-up task to settle."""

        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def _supersede(self, new_id: str | None = None) -> None:
        """Cancels the active approval, unless approved, before another preview is applied."""

        previous = self.active_approval
        if previous is None or previous.id == new_id:
            return
        if previous.user_approved or previous.id in self._writing:
            log.info("Approval %s superseded after approval, letting it finish", previous.id)
        else:
            await self._cancel(previous, "superseded")

    async def _open(self, approval: PendingDOMApproval) -> None:
        await self._supersede(approval.id)
        self._approvals[approval.id] = approval
        self._active_id = approval.id
        self.telemetry.ensure(approval.id, tab_id=approval.tab_id, element_xpath=approval.element.xpath)
        self.telemetry.mark(approval.id, "preview_applied")

    async def _run_generation(self, approval: PendingDOMApproval, token: str) -> None:
        approval_id = approval.id
        generation = asyncio.create_task(
            self.generator.generate(
                approval.element,
                approval.css_changes,
                self.provider_config,
                project_path=approval.project_path,
                user_request=approval.user_request,
                text_change=approval.text_change,
                src_change=approval.src_change,
            )
        )
        self._track(generation)
        timeout = self.settings.patch_timeout_seconds
        done, _ = await asyncio.wait({generation}, timeout=timeout)

        if self._tokens.get(approval_id) != token:
            return
        del self._tokens[approval_id]
        if approval_id in self._cancelled or self._approvals.get(approval_id) is not approval:
            return

        patch: SourcePatch | None = None
        if not done:
            error = f"Source patch generation timed out after {timeout:g}s."
            log.warning("Approval %s: %s", approval_id, error)
        else:
            try:
                patch = generation.result()
                error = None if patch is not None else PATCH_FAILED_MESSAGE
            except Exception as exc:  # noqa: BLE001 - surfaced on the approval instead.
                error = str(exc) or "Failed to generate source patch"

        if patch is None:
            self.telemetry.mark(approval_id, "patch_failed")
            approval.patch_status = "error"
            approval.patch = None
            approval.patch_error = error
            if approval.user_approved:
                await self._accept(approval)
            return

        self.telemetry.mark(approval_id, "patch_ready")
        approval.patch_status = "ready"
        approval.patch = patch
        approval.patch_error = None
        log.info("Approval %s ready: %s patch for %s", approval_id, patch.generated_by, patch.file_path)
        if self.settings.fast_path_auto_apply and patch.generated_by == "fast-path" and not approval.user_approved:
            approval.user_approved = True
            approval.auto_approved = True
            self.telemetry.mark_auto_approved(approval_id)
        if approval.user_approved:
            await self._accept(approval)

    async def _accept(self, approval: PendingDOMApproval) -> None:
        if approval.id in self._writing:
            return
        self._tokens.pop(approval.id, None)
        self.telemetry.mark(approval.id, "user_accept")

        if approval.patch_status == "error" or approval.patch is None:
            self._post(approval.patch_error or NO_PATCH_MESSAGE)
            self._close(approval.id)
            self._finalize(approval.id, "cancelled")
            return

        patch = approval.patch
        self._writing.add(approval.id)
        self._post(f"Approved: {approval.description}. Updating source code...")
        if not approval.auto_approved:
            self._record_decision(approval, "accept")
        self.telemetry.mark(approval.id, "source_write_started")
        try:
            result = await self.applicator.apply_patch(patch, approval.description)
            if result.success:
                self.telemetry.mark(approval.id, "source_write_succeeded")
                self._post(f"Source code updated: {PurePath(patch.file_path).name}")
                if self.edited_files is not None:
                    self.edited_files.add(
                        patch.file_path,
                        patch.original_content,
                        patch.patched_content,
                        undo_code=approval.undo_code,
                        tab_id=approval.tab_id,
                    )
            else:
                self.telemetry.mark(approval.id, "source_write_failed")
                self._post(f"Failed to save: {result.error or 'Unknown error'}")
        finally:
            self._writing.discard(approval.id)
            self._close(approval.id)
            self._finalize(approval.id, "accepted")

    async def _cancel(self, approval: PendingDOMApproval, reason: CancelReason) -> None:
        log.info("Cancelling pending change %s (%s)", approval.id, reason)
        self._tokens.pop(approval.id, None)
        self.telemetry.ensure(approval.id, tab_id=approval.tab_id, element_xpath=approval.element.xpath)
        self.telemetry.mark(approval.id, "auto_cancel")
        self._cancelled.add(approval.id)
        await self._revert(approval)
        self._close(approval.id)
        self._finalize(approval.id, "cancelled")

    async def _revert(self, approval: PendingDOMApproval) -> None:
        page = self.tabs.get(approval.tab_id)
        if page is None or not approval.undo_code:
            return
        try:
            await page.execute_javascript(approval.undo_code)
        except Exception as exc:  # noqa: BLE001 - a closed page has nothing left to revert.
            log.warning("Could not revert live preview for %s: %s", approval.id, exc)

    def _close(self, approval_id: str) -> None:
        self._approvals.pop(approval_id, None)
        if self._active_id == approval_id:
            self._active_id = None

    def _finalize(self, approval_id: str, outcome: str) -> None:
        self._cancelled.discard(approval_id)
        try:
            self.telemetry.finalize(approval_id, outcome)
        except Exception:  # noqa: BLE001 - telemetry never affects the approval flow.
            log.exception("Telemetry finalize failed for %s", approval_id)

    def _record_decision(self, approval: PendingDOMApproval, decision: str) -> None:
        if self.decisions is None or not approval.project_path:
            return
        file_path = approval.patch.file_path if approval.patch else ""
        self.decisions.record(approval.project_path, file_path, decision, approval.change_type)

    def _post(self, content: str) -> None:
        self.messages.append(
            ConversationMessage(id=f"msg-{uuid.uuid4().hex[:12]}", role="system", content=content)
        )

    def _track(self, task: asyncio.Task) -> None:
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
