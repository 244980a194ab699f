"""Operational audit log: append-only JSON Lines with size-based rotation."""

from __future__ import annotations

import fcntl
import json
import logging
import os
from pathlib import Path

from src.models import AuditEvent

logger = logging.getLogger(__name__)


def read_audit_events(log_path: Path) -> list[dict[str, object]]:
    """Load every event of a single (unrotated) audit log file."""
    if not log_path.exists():
        return []
    text = log_path.read_text().strip()
    if not text:
        return []
    return [json.loads(line) for line in text.split("\n")]


class AuditLogger:
    """Appends dispatch, ingress and LLM events to a JSON Lines file."""

    def __init__(
        self,
        log_path: str,
        max_bytes: int = 10_485_760,
        backup_count: int = 5,
    ) -> None:
        self.log_path = Path(log_path)
        self._max_bytes = max_bytes
        self._backup_count = backup_count

    @classmethod
    def from_env(cls, log_path: str) -> AuditLogger:
        """Create AuditLogger with rotation settings from environment variables."""
        max_bytes = int(os.environ.get("AUDIT_LOG_MAX_BYTES", "10485760"))
        backup_count = int(os.environ.get("AUDIT_LOG_BACKUP_COUNT", "5"))
        return cls(log_path=log_path, max_bytes=max_bytes, backup_count=backup_count)

    def _maybe_rotate(self) -> None:
        if not self.log_path.exists():
            return
        if self.log_path.stat().st_size < self._max_bytes:
            return

        oldest = self.log_path.parent / f"{self.log_path.name}.{self._backup_count}"
        if oldest.exists():
            oldest.unlink()

        for i in range(self._backup_count - 1, 0, -1):
            src = self.log_path.parent / f"{self.log_path.name}.{i}"
            dst = self.log_path.parent / f"{self.log_path.name}.{i + 1}"
            if src.exists():
                src.rename(dst)

        self.log_path.rename(self.log_path.parent / f"{self.log_path.name}.1")

    def log(self, event: AuditEvent) -> None:
        self.log_path.parent.mkdir(parents=True, exist_ok=True)
        line = event.model_dump_json(exclude_none=True)

        lock_file = self.log_path.parent / f".{self.log_path.name}.lock"
        try:
            with open(lock_file, "w") as lf:
                fcntl.flock(lf, fcntl.LOCK_EX)
                try:
                    # Rotation happens under the lock so concurrent writers agree
                    self._maybe_rotate()
                    with open(self.log_path, "a") as f:
                        f.write(line + "\n")
                finally:
                    fcntl.flock(lf, fcntl.LOCK_UN)
        except OSError as exc:
            logger.warning("Failed to write audit event %s: %s", event.event_type.value, exc)
