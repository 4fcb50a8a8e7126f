"""Append-only JSON Lines trail of webhook and sync outcomes."""

from __future__ import annotations

import fcntl
import os
from pathlib import Path

from karla_delivery.models import AuditEvent


def read_audit_events(log_path: Path) -> list[AuditEvent]:
    """Load every event recorded in an audit log file."""
    if not log_path.exists():
        return []
    return [
        AuditEvent.model_validate_json(line)
        for line in log_path.read_text().splitlines()
        if line.strip()
    ]


class AuditLogger:
    """Append-only structured audit logger."""

    def __init__(self, log_path: str) -> None:
        self.log_path = Path(log_path)

    @classmethod
    def from_env(cls, log_path: str | None = None) -> AuditLogger | None:
        """Create an AuditLogger from ``KARLA_AUDIT_LOG`` unless a path is given."""
        path = log_path or os.environ.get("KARLA_AUDIT_LOG")
        return cls(path) if path else None

    def log(self, event: AuditEvent) -> None:
        self.log_path.parent.mkdir(parents=True, exist_ok=True)
        line = event.model_dump_json()

        # Exclusive lock so concurrent workers never interleave lines
        with open(self.log_path, "a") as f:
            fcntl.flock(f, fcntl.LOCK_EX)
            try:
                f.write(line + "\n")
            finally:
                fcntl.flock(f, fcntl.LOCK_UN)
