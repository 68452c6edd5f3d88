from __future__ import annotations

import logging
import time

from livepatch.config.schema import PipelineSettings, ProviderConfig, SelectedElement, SrcChange, TextChange
from livepatch.core.adapters import CloudPatchAdapter, FastApplyAdapter
from livepatch.core.exceptions import PathResolutionError
from livepatch.core.fast_paths import try_css_change, try_src_change, try_text_change
from livepatch.core.files import FileService
from livepatch.core.metadata import SourcePatch
from livepatch.core.resolver import PathResolver
from livepatch.llm.prompts import build_change_description
from livepatch.utils.code_window import extract_window

log = logging.getLogger(__name__)

FAST_APPLY_CONTEXT_LINES = 30
CLOUD_CONTEXT_LINES = 100


class SourcePatchGenerator:
    """Turns a live element edit into a full-file source patch.

    Strategies run cheapest first: deterministic fast paths, the local apply
    model, then the cloud model. The first strategy that changes the file wins.
    """

    def __init__(
        self,
        file_service: FileService,
        resolver: PathResolver | None = None,
        fast_apply: FastApplyAdapter | None = None,
        cloud: CloudPatchAdapter | None = None,
        settings: PipelineSettings | None = None,
    ) -> None:
        self.settings = settings or PipelineSettings()
        self.file_service = file_service
        self.resolver = resolver or PathResolver(
            protected_segments=self.settings.protected_segments,
            allowed_subfolder=self.settings.allowed_subfolder,
        )
        self.fast_apply = fast_apply or FastApplyAdapter(None)
        self.cloud = cloud or CloudPatchAdapter()

    async def generate(
        self,
        element: SelectedElement,
        css_changes: dict[str, str],
        provider_config: ProviderConfig,
        project_path: str | None = None,
        user_request: str | None = None,
        text_change: TextChange | None = None,
        src_change: SrcChange | None = None,
    ) -> SourcePatch | None:
        started = time.monotonic()
        try:
            patch = await self._generate(
                element,
                css_changes,
                provider_config,
                project_path,
                user_request,
                text_change,
                src_change,
            )
        except PathResolutionError as exc:
            log.info("Source patch aborted: %s", exc)
            return None
        except Exception:  # noqa: BLE001 - generation failures never reach the caller.
            log.exception("Source patch generation failed for <%s>", element.tag_name)
            return None
        if patch is not None and patch.duration_ms is None:
            patch.duration_ms = int((time.monotonic() - started) * 1000)
        return patch

    async def _generate(
        self,
        element: SelectedElement,
        css_changes: dict[str, str],
        provider_config: ProviderConfig,
        project_path: str | None,
        user_request: str | None,
        text_change: TextChange | None,
        src_change: SrcChange | None,
    ) -> SourcePatch | None:
        source = element.source_location.primary if element.source_location else None
        if source is None:
            log.info("Source patch aborted: <%s> has no source location", element.tag_name)
            return None

        file_path = await self._resolve(source.file, project_path)
        original_content = await self.file_service.read_file(file_path)
        log.info("Generating source patch for %s:%d", file_path, source.line)

        def fast_path(patched: str | None) -> SourcePatch | None:
            if patched is None or patched == original_content:
                return None
            return SourcePatch(
                file_path=file_path,
                original_content=original_content,
                patched_content=patched,
                line_number=source.line,
                generated_by="fast-path",
            )

        has_css = bool(css_changes)
        has_text = text_change is not None and bool(text_change.old_text) and bool(text_change.new_text)
        has_src = src_change is not None and bool(src_change.new_src)

        if has_src and not has_css and not has_text:
            patch = fast_path(try_src_change(original_content, source.line, src_change.new_src))
            if patch:
                return patch
            log.info("Src fast path missed, falling back to models")
        if has_text and not has_css and not has_src:
            patch = fast_path(try_text_change(original_content, text_change.old_text, text_change.new_text))
            if patch:
                return patch
            log.info("Text fast path missed, falling back to models")
        if has_css and not has_src and (text_change is None or not text_change.new_text):
            patch = fast_path(try_css_change(original_content, source.line, element, css_changes))
            if patch:
                return patch
            log.info("CSS fast path missed, falling back to models")

        window = extract_window(original_content, source.line, FAST_APPLY_CONTEXT_LINES)
        if source.line > len(window.lines):
            log.info("Source line %d exceeds file length %d, clamping", source.line, len(window.lines))
        result = await self.fast_apply.apply(window.text, build_change_description(element, css_changes, user_request))
        if result.success and result.code is not None:
            code = window.fit(result.code)
            if code != window.text:
                patched = window.splice(code)
                return SourcePatch(
                    file_path=file_path,
                    original_content=original_content,
                    patched_content=patched,
                    line_number=source.line,
                    generated_by="fast-apply",
                    duration_ms=result.duration_ms,
                    model=self.fast_apply.client.model if self.fast_apply.client else None,
                )
            log.info("Fast apply returned unchanged content, falling back to cloud model")
        else:
            log.info("Fast apply unavailable or failed: %s", result.error)

        window = extract_window(original_content, source.line, CLOUD_CONTEXT_LINES)
        if window.empty:
            log.info("Source patch aborted: empty line range %d-%d", window.start, window.end)
            return None
        patched_window = await self.cloud.apply(
            window.text,
            element,
            css_changes,
            user_request,
            source.file,
            window.target_line,
            window.start,
            window.end,
            provider_config,
            line_number_reliable=source.line <= len(window.lines),
        )
        if patched_window is None:
            return None
        patched_window = window.fit(patched_window)
        if patched_window == window.text:
            log.info("Cloud model returned unchanged content")
            return None
        patched = window.splice(patched_window)
        return SourcePatch(
            file_path=file_path,
            original_content=original_content,
            patched_content=patched,
            line_number=source.line,
            generated_by="gemini",
            model=provider_config.model_id,
        )

    async def _resolve(self, file_ref: str, project_path: str | None) -> str:
        cwd = None
        if not project_path and self.resolver.needs_root(file_ref):
            cwd = await self.file_service.get_cwd()
        return self.resolver.resolve(file_ref, project_path=project_path, cwd=cwd)
