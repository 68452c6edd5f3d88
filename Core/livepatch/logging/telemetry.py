from __future__ import annotations

import json
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Literal

log = logging.getLogger(__name__)

TelemetryEvent = Literal[
    "preview_applied",
    "patch_generation_started",
    "patch_ready",
    "patch_failed",
    "user_accept",
    "user_reject",
    "auto_cancel",
    "source_write_started",
    "source_write_succeeded",
    "source_write_failed",
]


def _monotonic_ms() -> float:
    return time.monotonic() * 1000


@dataclass(slots=True)
class DomEditTelemetry:
    created_at_ms: float
    tab_id: str | None = None
    element_xpath: str | None = None
    auto_approved: bool = False
    events: dict[str, float] = field(default_factory=dict)


def _elapsed(start: float | None, end: float | None) -> int | None:
    if start is None or end is None:
        return None
    return round(end - start)


def _first(events: dict[str, float], *names: str) -> float | None:
    for name in names:
        if name in events:
            return events[name]
    return None


class DomEditTelemetryRecorder:
    """Timestamps approval lifecycle events and logs a duration summary per approval."""

    def __init__(self, jsonl_path: str | Path | None = None, clock: Callable[[], float] = _monotonic_ms) -> None:
        self.jsonl_path = Path(jsonl_path) if jsonl_path else None
        self.clock = clock
        self._records: dict[str, DomEditTelemetry] = {}

    def __contains__(self, approval_id: object) -> bool:
        return approval_id in self._records

    def ensure(
        self,
        approval_id: str,
        tab_id: str | None = None,
        element_xpath: str | None = None,
    ) -> DomEditTelemetry:
        record = self._records.get(approval_id)
        if record is None:
            record = DomEditTelemetry(created_at_ms=self.clock())
            self._records[approval_id] = record
        if tab_id is not None:
            record.tab_id = tab_id
        if element_xpath is not None:
            record.element_xpath = element_xpath
        return record

    def mark(self, approval_id: str, event: TelemetryEvent) -> None:
        record = self.ensure(approval_id)
        record.events.setdefault(event, self.clock())

    def mark_auto_approved(self, approval_id: str) -> None:
        self.ensure(approval_id).auto_approved = True

    def events(self, approval_id: str) -> dict[str, float]:
        record = self._records.get(approval_id)
        return dict(record.events) if record else {}

    def finalize(self, approval_id: str, outcome: str) -> dict[str, Any] | None:
        record = self._records.pop(approval_id, None)
        if record is None:
            return None
        events = record.events
        write_end = _first(events, "source_write_succeeded", "source_write_failed")
        summary: dict[str, Any] = {
            "outcome": outcome,
            "tabId": record.tab_id,
            "xpath": record.element_xpath,
            "previewToPatchReadyMs": _elapsed(events.get("preview_applied"), events.get("patch_ready")),
            "patchGenMs": _elapsed(
                events.get("patch_generation_started"),
                _first(events, "patch_ready", "patch_failed"),
            ),
            "acceptToWriteMs": _elapsed(events.get("user_accept"), write_end),
            "createdToEndMs": _elapsed(
                record.created_at_ms,
                _first(
                    events,
                    "source_write_succeeded",
                    "source_write_failed",
                    "user_reject",
                    "auto_cancel",
                    "patch_failed",
                ),
            ),
        }
        if record.auto_approved:
            summary["autoApproved"] = True
        log.info("[Telemetry][DOM Edit] %s %s", approval_id, summary)
        self._write(approval_id, summary)
        return summary

    def _write(self, approval_id: str, summary: dict[str, Any]) -> None:
        if self.jsonl_path is None:
            return
        try:
            self.jsonl_path.parent.mkdir(parents=True, exist_ok=True)
            with self.jsonl_path.open("a", encoding="utf-8") as handle:
                handle.write(json.dumps({"id": approval_id, **summary}) + "\n")
        except OSError as exc:
            log.warning("Could not write telemetry for %s: %s", approval_id, exc)
