from __future__ import annotations

import json
from pathlib import Path

from livepatch.config.schema import LivePatchConfig


class ConfigLoader:
    """Loads and validates the JSON pipeline configuration."""

    @staticmethod
    def load(path: str | Path) -> LivePatchConfig:
        config_path = Path(path)
        with config_path.open("r", encoding="utf-8") as handle:
            payload = json.load(handle)
        return LivePatchConfig.model_validate(payload)
