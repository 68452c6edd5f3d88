from __future__ import annotations

import hashlib
import json
import logging
import time
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Literal

log = logging.getLogger(__name__)

Decision = Literal["accept", "reject", "edit"]

MAX_DECISIONS = 100


@dataclass(slots=True)
class ApprovalDecision:
    file_path: str
    timestamp: float
    decision: Decision
    change_type: str | None = None


@dataclass(slots=True)
class ApprovalPatterns:
    project_path: str
    decisions: list[ApprovalDecision]
    accept_ratio: float
    recent_decisions: list[ApprovalDecision]


@dataclass(slots=True)
class SuggestedAction:
    action: Literal["accept", "reject", "manual"]
    confidence: float


class ApprovalDecisionLog:
    """Remembers accept/reject decisions per project and suggests a default action."""

    def __init__(self, root: str | Path | None = None) -> None:
        self.root = Path(root) if root else None
        self._cache: dict[str, list[ApprovalDecision]] = {}

    def _path(self, project_path: str) -> Path | None:
        if self.root is None:
            return None
        digest = hashlib.sha256(project_path.encode("utf-8")).hexdigest()[:16]
        return self.root / f"patch-decisions-{digest}.json"

    def _load(self, project_path: str) -> list[ApprovalDecision]:
        if project_path in self._cache:
            return self._cache[project_path]
        decisions: list[ApprovalDecision] = []
        path = self._path(project_path)
        if path is not None and path.exists():
            try:
                decisions = [ApprovalDecision(**item) for item in json.loads(path.read_text(encoding="utf-8"))]
            except (OSError, ValueError, TypeError) as exc:
                log.warning("Ignoring unreadable decision log %s: %s", path, exc)
        self._cache[project_path] = decisions
        return decisions

    def _save(self, project_path: str) -> None:
        path = self._path(project_path)
        if path is None:
            return
        path.parent.mkdir(parents=True, exist_ok=True)
        payload = [asdict(item) for item in self._cache.get(project_path, [])]
        path.write_text(json.dumps(payload, indent=2), encoding="utf-8")

    def record(
        self,
        project_path: str,
        file_path: str,
        decision: Decision,
        change_type: str | None = None,
    ) -> None:
        decisions = self._load(project_path)
        decisions.append(ApprovalDecision(file_path, time.time(), decision, change_type))
        del decisions[:-MAX_DECISIONS]
        try:
            self._save(project_path)
        except OSError as exc:
            log.warning("Could not persist approval decision for %s: %s", project_path, exc)

    def patterns(self, project_path: str) -> ApprovalPatterns:
        decisions = list(self._load(project_path))
        accepted = sum(1 for item in decisions if item.decision == "accept")
        accept_ratio = accepted / len(decisions) if decisions else 0.5
        return ApprovalPatterns(project_path, decisions, accept_ratio, decisions[-10:])

    def suggest_action(self, project_path: str, change_type: str | None = None) -> SuggestedAction:
        patterns = self.patterns(project_path)
        if len(patterns.decisions) < 3:
            return SuggestedAction("manual", 0.0)

        if change_type is None:
            if patterns.accept_ratio > 0.7:
                return SuggestedAction("accept", patterns.accept_ratio)
            if patterns.accept_ratio < 0.3:
                return SuggestedAction("reject", 1 - patterns.accept_ratio)
            return SuggestedAction("manual", 0.5)

        typed = [item for item in patterns.decisions if item.change_type == change_type]
        if len(typed) < 2:
            return SuggestedAction("manual", 0.0)
        ratio = sum(1 for item in typed if item.decision == "accept") / len(typed)
        if ratio > 0.75:
            return SuggestedAction("accept", ratio)
        if ratio < 0.25:
            return SuggestedAction("reject", 1 - ratio)
        return SuggestedAction("manual", 0.5)

    def stats(self, project_path: str) -> dict[str, object]:
        decisions = self._load(project_path)
        by_type: dict[str, dict[str, int]] = {}
        for item in decisions:
            counts = by_type.setdefault(item.change_type or "unknown", {"accept": 0, "reject": 0, "edit": 0})
            counts[item.decision] += 1
        total = len(decisions)
        accepted = sum(1 for item in decisions if item.decision == "accept")
        return {
            "total": total,
            "accept": accepted,
            "reject": sum(1 for item in decisions if item.decision == "reject"),
            "edit": sum(1 for item in decisions if item.decision == "edit"),
            "accept_ratio": accepted / total if total else 0.5,
            "by_change_type": by_type,
        }

    def clear(self, project_path: str) -> None:
        self._cache.pop(project_path, None)
        path = self._path(project_path)
        if path is not None and path.exists():
            path.unlink()
