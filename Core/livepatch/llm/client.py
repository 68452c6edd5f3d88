from __future__ import annotations

import json
import os
from abc import ABC, abstractmethod
from typing import Any
from urllib import error, request

from google import genai
from google.genai import types as genai_types

from livepatch.config.schema import FastApplyConfig, ProviderId
from livepatch.llm.prompts import FAST_APPLY_SYSTEM_PROMPT, build_fast_apply_prompt

DEFAULT_MODELS: dict[ProviderId, str] = {
    ProviderId.GOOGLE: "gemini-2.0-flash-001",
    ProviderId.OPENAI: "gpt-4o-mini",
    ProviderId.ANTHROPIC: "claude-3-5-sonnet-latest",
}


class TextGenerationClient(ABC):
    """Provider-neutral interface for one-shot text generation."""

    provider_name = "unknown"
    model = ""

    @abstractmethod
    def generate_text(self, prompt: str, *, system: str | None = None) -> str:
        raise NotImplementedError


class GeminiTextClient(TextGenerationClient):
    provider_name = "gemini"

    def __init__(self, api_key: str, model: str | None = None, max_output_tokens: int = 8000) -> None:
        self.model = model or os.getenv("GEMINI_MODEL", DEFAULT_MODELS[ProviderId.GOOGLE])
        self.max_output_tokens = max_output_tokens
        self._client = genai.Client(api_key=api_key)

    def generate_text(self, prompt: str, *, system: str | None = None) -> str:
        response = self._client.models.generate_content(
            model=self.model,
            contents=prompt,
            config=genai_types.GenerateContentConfig(
                system_instruction=system,
                temperature=0,
                max_output_tokens=self.max_output_tokens,
            ),
        )
        content = (response.text or "").strip("\n")
        if not content.strip():
            raise RuntimeError("Gemini returned an empty response")
        return content


class OpenAITextClient(TextGenerationClient):
    provider_name = "openai"
    endpoint = "https://api.openai.com/v1/chat/completions"

    def __init__(self, api_key: str, model: str | None = None) -> None:
        self.api_key = api_key
        self.model = model or os.getenv("OPENAI_MODEL", DEFAULT_MODELS[ProviderId.OPENAI])

    def generate_text(self, prompt: str, *, system: str | None = None) -> str:
        messages = [{"role": "system", "content": system}] if system else []
        messages.append({"role": "user", "content": prompt})
        body = {"model": self.model, "temperature": 0, "messages": messages}
        response = _post_json(
            self.endpoint,
            body,
            headers={
                "Authorization": f"Bearer {self.api_key}",
                "Content-Type": "application/json",
            },
        )
        return response["choices"][0]["message"]["content"]


class AnthropicTextClient(TextGenerationClient):
    provider_name = "anthropic"
    endpoint = "https://api.anthropic.com/v1/messages"

    def __init__(self, api_key: str, model: str | None = None) -> None:
        self.api_key = api_key
        self.model = model or os.getenv("ANTHROPIC_MODEL", DEFAULT_MODELS[ProviderId.ANTHROPIC])

    def generate_text(self, prompt: str, *, system: str | None = None) -> str:
        body: dict[str, Any] = {
            "model": self.model,
            "max_tokens": 8000,
            "temperature": 0,
            "messages": [{"role": "user", "content": prompt}],
        }
        if system:
            body["system"] = system
        response = _post_json(
            self.endpoint,
            body,
            headers={
                "x-api-key": self.api_key,
                "anthropic-version": "2023-06-01",
                "Content-Type": "application/json",
            },
        )
        return "".join(part.get("text", "") for part in response.get("content", []) if isinstance(part, dict))


class LocalFastApplyClient(TextGenerationClient):
    """Talks to a local OpenAI-compatible inference server running the apply model."""

    provider_name = "fast-apply"

    def __init__(self, config: FastApplyConfig) -> None:
        self.config = config
        self.model = config.model

    @property
    def available(self) -> bool:
        return self.config.available

    def apply(self, original_code: str, update_snippet: str) -> str:
        return self.generate_text(build_fast_apply_prompt(original_code, update_snippet), system=FAST_APPLY_SYSTEM_PROMPT)

    def generate_text(self, prompt: str, *, system: str | None = None) -> str:
        messages = [{"role": "system", "content": system}] if system else []
        messages.append({"role": "user", "content": prompt})
        body = {
            "model": self.model,
            "temperature": self.config.temperature,
            "max_tokens": self.config.max_tokens,
            "messages": messages,
        }
        url = f"{self.config.endpoint.rstrip('/')}/v1/chat/completions"
        response = _post_json(
            url,
            body,
            headers={"Content-Type": "application/json"},
            timeout=self.config.timeout_seconds,
        )
        choices = response.get("choices", [])
        if not choices:
            raise RuntimeError("Fast apply server returned no choices")
        return choices[0].get("message", {}).get("content", "")


def create_text_client(provider: ProviderId, api_key: str, model: str | None = None) -> TextGenerationClient:
    if not api_key:
        raise RuntimeError(f"An API key is required for provider {provider.value}")
    if provider == ProviderId.GOOGLE:
        return GeminiTextClient(api_key, model)
    if provider == ProviderId.OPENAI:
        return OpenAITextClient(api_key, model)
    if provider == ProviderId.ANTHROPIC:
        return AnthropicTextClient(api_key, model)
    raise RuntimeError(f"Unsupported LLM provider: {provider}")


def _post_json(
    url: str,
    payload: dict[str, Any],
    headers: dict[str, str],
    timeout: float = 30,
) -> dict[str, Any]:
    encoded = json.dumps(payload).encode("utf-8")
    req = request.Request(url, data=encoded, headers=headers, method="POST")
    try:
        with request.urlopen(req, timeout=timeout) as response:
            raw = response.read().decode("utf-8")
    except error.HTTPError as exc:
        detail = exc.read().decode("utf-8", errors="replace")
        raise RuntimeError(f"LLM request failed with status {exc.code}: {detail}") from exc
    except error.URLError as exc:
        raise RuntimeError(f"LLM request could not be completed: {exc.reason}") from exc
    return json.loads(raw)
