from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable

from livepatch.config.schema import ProviderConfig, ProviderId, SelectedElement
from livepatch.core.exceptions import ModelResponseError
from livepatch.core.metadata import FastApplyResult
from livepatch.llm.client import LocalFastApplyClient, TextGenerationClient, create_text_client
from livepatch.llm.parser import parse_code_response
from livepatch.llm.prompts import CLOUD_SYSTEM_PROMPT, build_cloud_patch_prompt

log = logging.getLogger(__name__)

ClientFactory = Callable[[ProviderId, str, str | None], TextGenerationClient]


class FastApplyAdapter:
    """Runs a small code window through the local apply model."""

    def __init__(self, client: LocalFastApplyClient | None) -> None:
        self.client = client

    @property
    def available(self) -> bool:
        return self.client is not None and self.client.available

    async def apply(self, code_window: str, change_description: str) -> FastApplyResult:
        if not self.available:
            return FastApplyResult(success=False, error="Fast Apply not available")
        started = time.monotonic()
        try:
            raw = await asyncio.to_thread(self.client.apply, code_window, change_description)
            code = parse_code_response(raw)
        except ModelResponseError as exc:
            log.info("Fast apply rejected model output: %s", exc)
            return FastApplyResult(success=False, error=str(exc))
        except Exception as exc:  # noqa: BLE001 - any transport failure falls through to the cloud path.
            log.warning("Fast apply failed: %s", exc)
            return FastApplyResult(success=False, error=str(exc))
        duration_ms = int((time.monotonic() - started) * 1000)
        return FastApplyResult(success=True, code=code, duration_ms=duration_ms)


class CloudPatchAdapter:
    """Asks the configured cloud model to rewrite a larger code window."""

    def __init__(self, client_factory: ClientFactory = create_text_client) -> None:
        self.client_factory = client_factory

    async def apply(
        self,
        code_window: str,
        element: SelectedElement,
        css_changes: dict[str, str],
        user_request: str | None,
        source_file: str,
        target_line: int,
        start_line: int,
        end_line: int,
        provider_config: ProviderConfig,
        line_number_reliable: bool = True,
    ) -> str | None:
        api_key = provider_config.api_key_for()
        if not api_key:
            log.info("No API key available for provider %s", provider_config.provider.value)
            return None

        prompt = build_cloud_patch_prompt(
            code_window=code_window,
            element=element,
            css_changes=css_changes,
            user_request=user_request,
            source_file=source_file,
            target_line=target_line,
            start_line=start_line,
            end_line=end_line,
            line_number_reliable=line_number_reliable,
        )
        if prompt is None:
            log.info("No changes specified, skipping cloud patch")
            return None

        try:
            client = self.client_factory(provider_config.provider, api_key, provider_config.model_id)
            raw = await asyncio.to_thread(client.generate_text, prompt, system=CLOUD_SYSTEM_PROMPT)
            return parse_code_response(raw)
        except ModelResponseError as exc:
            log.info("Cloud model output rejected: %s", exc)
            return None
        except Exception:  # noqa: BLE001 - cloud failures end the cascade with no patch.
            log.exception("Cloud patch generation failed for %s", source_file)
            return None
