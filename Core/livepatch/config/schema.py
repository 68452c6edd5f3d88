from __future__ import annotations

import os
from enum import Enum
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel


class InspectorModel(BaseModel):
    """Accepts the camelCase payloads produced by the element inspector."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


class SourceLocationEntry(InspectorModel):
    file: str
    line: int = 0
    end_line: int | None = None
    column: int | None = None
    name: str | None = None


class SourceLocation(InspectorModel):
    sources: list[SourceLocationEntry] = Field(default_factory=list)
    summary: str = ""

    @property
    def primary(self) -> SourceLocationEntry | None:
        return self.sources[0] if self.sources else None


class Rect(InspectorModel):
    x: float = 0.0
    y: float = 0.0
    width: float = 0.0
    height: float = 0.0


class Position(InspectorModel):
    x: float
    y: float


class SelectedElement(InspectorModel):
    tag_name: str
    id: str = ""
    class_name: str = ""
    text: str = ""
    outer_html: str = ""
    attributes: dict[str, str] = Field(default_factory=dict)
    computed_style: dict[str, str] = Field(default_factory=dict)
    rect: Rect | None = None
    xpath: str | None = None
    source_location: SourceLocation | None = None
    target_position: Position | None = None
    original_position: Position | None = None

    @field_validator("tag_name")
    @classmethod
    def normalize_tag(cls, value: str) -> str:
        normalized = value.strip().lower()
        if not normalized:
            raise ValueError("tag_name must not be empty")
        return normalized

    @property
    def class_list(self) -> list[str]:
        return [item for item in self.class_name.split() if item]

    @property
    def primary_class(self) -> str:
        classes = self.class_list
        return classes[0] if classes else ""


class TextChange(InspectorModel):
    old_text: str
    new_text: str


class SrcChange(InspectorModel):
    old_src: str = ""
    new_src: str


class ProviderId(str, Enum):
    GOOGLE = "google"
    OPENAI = "openai"
    ANTHROPIC = "anthropic"


MODEL_PROVIDER_MAP: dict[str, ProviderId] = {
    "gemini-3-pro-preview": ProviderId.GOOGLE,
    "gemini-2.5-flash": ProviderId.GOOGLE,
    "gemini-2.5-pro": ProviderId.GOOGLE,
    "gemini-2.0-flash": ProviderId.GOOGLE,
    "gemini-2.0-flash-001": ProviderId.GOOGLE,
    "gemini-2.0-flash-lite": ProviderId.GOOGLE,
    "gemini-1.5-pro": ProviderId.GOOGLE,
    "gemini-1.5-flash": ProviderId.GOOGLE,
    "gpt-4o": ProviderId.OPENAI,
    "gpt-4o-mini": ProviderId.OPENAI,
    "gpt-4-turbo": ProviderId.OPENAI,
    "gpt-4": ProviderId.OPENAI,
    "o1": ProviderId.OPENAI,
    "o1-mini": ProviderId.OPENAI,
    "claude-3-5-sonnet-latest": ProviderId.ANTHROPIC,
    "claude-3-5-sonnet-20241022": ProviderId.ANTHROPIC,
    "claude-4-sonnet-20250514": ProviderId.ANTHROPIC,
    "claude-3-opus-20240229": ProviderId.ANTHROPIC,
    "claude-3-haiku-20240307": ProviderId.ANTHROPIC,
}

API_KEY_ENV_VARS: dict[ProviderId, tuple[str, ...]] = {
    ProviderId.GOOGLE: ("GEMINI_API_KEY", "GOOGLE_API_KEY"),
    ProviderId.OPENAI: ("OPENAI_API_KEY",),
    ProviderId.ANTHROPIC: ("ANTHROPIC_API_KEY",),
}


class ProviderCredential(BaseModel):
    id: ProviderId
    api_key: str = ""


class ProviderConfig(BaseModel):
    model_id: str = "gemini-2.0-flash-001"
    providers: list[ProviderCredential] = Field(default_factory=list)
    provider: ProviderId | None = None

    @model_validator(mode="after")
    def resolve_provider(self) -> ProviderConfig:
        resolved = MODEL_PROVIDER_MAP.get(self.model_id)
        if resolved is None:
            raise ValueError(f"Unknown model: {self.model_id}")
        if self.provider is not None and self.provider != resolved:
            raise ValueError(f"Model {self.model_id} belongs to {resolved.value}, not {self.provider.value}")
        self.provider = resolved
        return self

    def api_key_for(self, provider: ProviderId | None = None) -> str:
        target = provider or self.provider
        for credential in self.providers:
            if credential.id == target and credential.api_key:
                return credential.api_key
        for env_name in API_KEY_ENV_VARS.get(target, ()):
            value = os.getenv(env_name, "")
            if value:
                return value
        return ""


class FastApplyConfig(BaseModel):
    enabled: bool = True
    endpoint: str = ""
    model: str = "fast-apply"
    timeout_seconds: float = 30.0
    temperature: float = 0.1
    max_tokens: int = 8192

    @property
    def available(self) -> bool:
        return self.enabled and bool(self.endpoint)


def _default_history_dir() -> Path:
    return Path.home() / ".cache" / "livepatch" / "patch-history"


class PipelineSettings(BaseModel):
    fast_path_auto_apply: bool = False
    patch_timeout_seconds: float = 30.0
    protected_segments: list[str] = Field(default_factory=lambda: ["ai-cluso"])
    allowed_subfolder: str = "website"
    history_dir: Path = Field(default_factory=_default_history_dir)
    telemetry_path: Path | None = None
    decisions_dir: Path | None = None
    headless: bool = True

    @field_validator("patch_timeout_seconds")
    @classmethod
    def validate_timeout(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("patch_timeout_seconds must be positive")
        return value


class LivePatchConfig(BaseModel):
    provider: ProviderConfig = Field(default_factory=ProviderConfig)
    fast_apply: FastApplyConfig = Field(default_factory=FastApplyConfig)
    settings: PipelineSettings = Field(default_factory=PipelineSettings)
