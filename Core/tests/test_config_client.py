from __future__ import annotations

import json

import pytest
from pydantic import ValidationError

from livepatch.config.loader import ConfigLoader
from livepatch.config.schema import FastApplyConfig, ProviderConfig, ProviderId, SelectedElement
from livepatch.llm import client as client_module
from livepatch.llm.client import (
    AnthropicTextClient,
    GeminiTextClient,
    LocalFastApplyClient,
    OpenAITextClient,
    create_text_client,
)


def test_config_loader_validates_json(tmp_path):
    config_path = tmp_path / "livepatch.json"
    config_path.write_text(
        json.dumps(
            {
                "provider": {
                    "model_id": "claude-3-5-sonnet-latest",
                    "providers": [{"id": "anthropic", "api_key": "sk-ant"}]
                },
                "fast_apply": {"endpoint": "http://127.0.0.1:8765"},
                "settings": {
                    "fast_path_auto_apply": True,
                    "history_dir": str(tmp_path / "history")
                }
            }
        ),
        encoding="utf-8",
    )
    config = ConfigLoader.load(config_path)
    assert config.provider.provider == ProviderId.ANTHROPIC
    assert config.provider.api_key_for() == "sk-ant"
    assert config.fast_apply.available
    assert config.settings.fast_path_auto_apply
    assert config.settings.patch_timeout_seconds == 30


def test_unknown_model_is_a_validation_error():
    with pytest.raises(ValidationError):
        ProviderConfig(model_id="made-up-model")


def test_api_key_falls_back_to_environment(monkeypatch):
    config = ProviderConfig(model_id="gemini-2.5-flash")
    assert config.api_key_for() == ""
    monkeypatch.setenv("GOOGLE_API_KEY", "env-key")
    assert config.api_key_for() == "env-key"
    assert config.api_key_for(ProviderId.OPENAI) == ""


def test_selected_element_accepts_inspector_payload():
    element = SelectedElement.model_validate(
        {
            "tagName": "BUTTON",
            "className": "btn btn-primary",
            "text": "Save",
            "xpath": "/html/body/button",
            "sourceLocation": {
                "sources": [{"file": "src/App.tsx", "line": 42, "endLine": 44}],
                "summary": "App.tsx:42"
            }
        }
    )
    assert element.tag_name == "button"
    assert element.primary_class == "btn"
    assert element.source_location.primary.end_line == 44


def test_text_client_factory_supports_every_provider():
    gemini = create_text_client(ProviderId.GOOGLE, "test-key")
    assert isinstance(gemini, GeminiTextClient)
    assert gemini.provider_name == "gemini"
    assert isinstance(create_text_client(ProviderId.OPENAI, "test-key", "gpt-4o"), OpenAITextClient)
    assert isinstance(create_text_client(ProviderId.ANTHROPIC, "test-key"), AnthropicTextClient)
    with pytest.raises(RuntimeError):
        create_text_client(ProviderId.OPENAI, "")


def test_openai_client_sends_system_prompt(monkeypatch):
    captured = {}

    def fake_post(url, payload, headers, timeout=30):
        captured.update(url=url, payload=payload, headers=headers)
        return {"choices": [{"message": {"content": "<div />"}}]}

    monkeypatch.setattr(client_module, "_post_json", fake_post)
    result = OpenAITextClient("sk-test", "gpt-4o").generate_text("patch it", system="only code")

    assert result == "<div />"
    assert captured["payload"]["messages"][0] == {"role": "system", "content": "only code"}
    assert captured["headers"]["Authorization"] == "Bearer sk-test"


def test_local_fast_apply_client_targets_chat_completions(monkeypatch):
    captured = {}

    def fake_post(url, payload, headers, timeout=30):
        captured.update(url=url, payload=payload, timeout=timeout)
        return {"choices": [{"message": {"content": "<p />"}}]}

    monkeypatch.setattr(client_module, "_post_json", fake_post)
    client = LocalFastApplyClient(FastApplyConfig(endpoint="http://127.0.0.1:8765/", timeout_seconds=12))

    assert client.apply("<p>", "FIND: <p>") == "<p />"
    assert captured["url"] == "http://127.0.0.1:8765/v1/chat/completions"
    assert captured["payload"]["temperature"] == 0.1
    assert captured["payload"]["max_tokens"] == 8192
    assert captured["timeout"] == 12
    assert "<update>\nFIND: <p>\n</update>" in captured["payload"]["messages"][1]["content"]
    assert not LocalFastApplyClient(FastApplyConfig()).available
