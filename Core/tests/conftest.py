from __future__ import annotations

import pytest

from livepatch.config.schema import PipelineSettings, ProviderConfig
from livepatch.core.applicator import PatchApplicator
from livepatch.core.history import PatchHistory
from livepatch.core.page import TabRegistry
from livepatch.logging.telemetry import DomEditTelemetryRecorder
from tests.helpers import APP_SOURCE, FakePage, FakeClock, MemoryFileService


@pytest.fixture(autouse=True)
def clear_provider_keys(monkeypatch):
    for name in ("GEMINI_API_KEY", "GOOGLE_API_KEY", "OPENAI_API_KEY", "ANTHROPIC_API_KEY"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture()
def project(tmp_path):
    source = tmp_path / "src" / "App.tsx"
    source.parent.mkdir(parents=True)
    source.write_text(APP_SOURCE, encoding="utf-8")
    return tmp_path


@pytest.fixture()
def file_service(project):
    return MemoryFileService({str(project / "src" / "App.tsx"): APP_SOURCE}, cwd=str(project))


@pytest.fixture()
def settings(tmp_path):
    return PipelineSettings(history_dir=tmp_path / "history", patch_timeout_seconds=1)


@pytest.fixture()
def provider_config():
    return ProviderConfig(model_id="gemini-2.0-flash-001")


@pytest.fixture()
def applicator(file_service, settings):
    return PatchApplicator(file_service, PatchHistory(settings.history_dir))


@pytest.fixture()
def tabs():
    registry = TabRegistry()
    registry.register("tab-1", FakePage())
    registry.register("tab-2", FakePage())
    return registry


@pytest.fixture()
def clock():
    return FakeClock()


@pytest.fixture()
def telemetry(clock):
    return DomEditTelemetryRecorder(clock=clock)
