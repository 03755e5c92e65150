from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any


LOG_FILENAME = "svnl-log.jsonl"


@dataclass(frozen=True)
class LogEntry:
    operation: str  # "discover" | "scrape" | "scrape-all"
    duration_ms: int
    details: dict[str, Any] = field(default_factory=dict)
    timestamp: str = ""

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "timestamp": self.timestamp or datetime.now(timezone.utc).isoformat(timespec="milliseconds"),
            "operation": self.operation,
            "durationMs": self.duration_ms,
        }
        if self.details:
            out["details"] = dict(self.details)
        return out


def append_log(entry: LogEntry, log_dir: Path) -> Path:
    """Append one JSON line to `<log_dir>/svnl-log.jsonl`."""
    log_dir.mkdir(parents=True, exist_ok=True)
    path = log_dir / LOG_FILENAME
    with path.open("a", encoding="utf-8") as f:
        f.write(json.dumps(entry.to_dict(), ensure_ascii=False) + "\n")
    return path


def read_log(log_dir: Path) -> list[dict[str, Any]]:
    path = log_dir / LOG_FILENAME
    if not path.exists():
        return []
    out: list[dict[str, Any]] = []
    for line in path.read_text(encoding="utf-8").splitlines():
        line = line.strip()
        if line:
            out.append(json.loads(line))
    return out
