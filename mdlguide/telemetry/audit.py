from __future__ import annotations

import json
import os
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Tuple


@dataclass(frozen=True)
class AuditTrail:
    records: List[Dict[str, Any]] = field(default_factory=list)
    # Line numbers (1-based) that were not valid JSON records, e.g. a torn write.
    bad_lines: List[int] = field(default_factory=list)

    def event_types(self) -> List[str]:
        return [str(r.get("event_type")) for r in self.records]


class AuditLogger:
    """
    Append-only JSONL trail of composition runs.

    Each line is {ts, correlation_id, actor, event_type, payload}; all events of one run
    share a correlation_id.
    """

    def __init__(self, path: str, *, actor: str = "mdlguide"):
        self.path = path
        self.actor = actor
        parent = os.path.dirname(path)
        if parent:
            os.makedirs(parent, exist_ok=True)

    def new_correlation_id(self) -> str:
        return uuid.uuid4().hex

    def _record(self, correlation_id: str, event_type: str, payload: Dict[str, Any], timestamp: Optional[str]) -> str:
        ts = timestamp or datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")
        return json.dumps(
            {"ts": ts, "correlation_id": correlation_id, "actor": self.actor, "event_type": event_type, "payload": payload},
            ensure_ascii=False,
        )

    def write(self, correlation_id: str, event_type: str, payload: Dict[str, Any], *, timestamp: Optional[str] = None) -> None:
        self.write_many(correlation_id, [(event_type, payload)], timestamp=timestamp)

    def write_many(
        self,
        correlation_id: str,
        events: Iterable[Tuple[str, Dict[str, Any]]],
        *,
        timestamp: Optional[str] = None,
    ) -> None:
        # One append per run keeps a run's events contiguous in the file.
        lines = [self._record(correlation_id, et, payload, timestamp) for et, payload in events]
        if not lines:
            return
        with open(self.path, "a", encoding="utf-8") as f:
            f.write("\n".join(lines) + "\n")

    def read(self, *, correlation_id: Optional[str] = None) -> AuditTrail:
        trail = AuditTrail()
        if not os.path.exists(self.path):
            return trail
        with open(self.path, "r", encoding="utf-8") as f:
            for lineno, line in enumerate(f, start=1):
                line = line.strip()
                if not line:
                    continue
                try:
                    rec = json.loads(line)
                except json.JSONDecodeError:
                    trail.bad_lines.append(lineno)
                    continue
                if not isinstance(rec, dict):
                    trail.bad_lines.append(lineno)
                    continue
                if correlation_id and rec.get("correlation_id") != correlation_id:
                    continue
                trail.records.append(rec)
        return trail
