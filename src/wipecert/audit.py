"""
Verification audit trail.

Every verification attempt is recorded with the digest that was checked,
the verdict and the time of the check. The file-backed log appends one JSON
line per attempt under the same exclusive ``portalocker`` lock used for the
NDJSON ledger, fsyncing before it returns::

    {"certID": "c1", "certHashHex": "..", "check": "document",
     "verified": true, "verifiedAt": "2026-01-01T00:00:00Z"}
"""

from __future__ import annotations

import json
import logging
import os
import threading
from abc import ABC, abstractmethod
from pathlib import Path

from pydantic import ValidationError

from .errors import AuditWriteFailure
from .schemas import VerificationEntry
from .tools.locking import exclusive_file_lock

__all__ = ["FileVerificationLog", "InMemoryVerificationLog", "VerificationLog"]

logger = logging.getLogger(__name__)


class VerificationLog(ABC):
    """Append-only record of verification attempts."""

    @abstractmethod
    def record(self, entry: VerificationEntry) -> None:
        """Persist ``entry`` before returning.

        Raises:
            AuditWriteFailure: If the entry could not be persisted.
        """

    @abstractmethod
    def entries(self) -> list[VerificationEntry]:
        """Return every recorded entry in append order."""


class InMemoryVerificationLog(VerificationLog):
    """List-backed log for tests and the ephemeral backend."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._entries: list[VerificationEntry] = []

    def record(self, entry: VerificationEntry) -> None:
        with self._lock:
            self._entries.append(entry)

    def entries(self) -> list[VerificationEntry]:
        with self._lock:
            return list(self._entries)


class FileVerificationLog(VerificationLog):
    """NDJSON verification log.

    Args:
        log_path: Location of the log; created on first record.
    """

    def __init__(self, log_path: str | Path) -> None:
        self.log_path = Path(log_path)

    def record(self, entry: VerificationEntry) -> None:
        line = json.dumps(entry.model_dump_wire(), separators=(",", ":"))
        try:
            with exclusive_file_lock(self.log_path):
                with self.log_path.open("ab") as fh:
                    fh.write(line.encode("utf-8") + b"\n")
                    fh.flush()
                    os.fsync(fh.fileno())
        except OSError as exc:
            raise AuditWriteFailure(
                f"Failed to append verification entry to {self.log_path}: {exc}"
            ) from exc

    def entries(self) -> list[VerificationEntry]:
        try:
            raw = self.log_path.read_bytes()
        except FileNotFoundError:
            return []

        found: list[VerificationEntry] = []
        for idx, line in enumerate(raw.splitlines(), start=1):
            if not line.strip():
                continue
            try:
                found.append(VerificationEntry.model_validate_json(line))
            except ValidationError:
                logger.warning(
                    "Skipping malformed verification log line",
                    extra={"path": str(self.log_path), "line": idx},
                )
        return found
