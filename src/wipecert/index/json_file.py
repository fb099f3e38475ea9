"""
JSON-file certificate index with cross-process safe, durable updates.

The file holds a single object keyed by certificate id::

    {"c1": {"txHash": "0x..", "certHashHex": "..", "signatureBase64": ".."}}

Every :meth:`JsonFileIndex.put` re-reads the file under an exclusive lock,
merges the new record and atomically replaces the file, so concurrent
writers in other threads or processes never discard each other's entries.
"""

from __future__ import annotations

import json
import logging
import time
from pathlib import Path

from pydantic import ValidationError

from ..errors import IndexWriteFailure
from ..schemas import IndexRecord
from ..tools.locking import atomic_write_bytes, exclusive_file_lock
from .base import CertificateIndex

logger = logging.getLogger(__name__)


class _CorruptIndex(Exception):
    """Internal marker for an index file that cannot be parsed."""


class JsonFileIndex(CertificateIndex):
    """Certificate index persisted as one JSON document.

    Args:
        index_path: Location of the JSON file; created on first write.
    """

    def __init__(self, index_path: str | Path) -> None:
        self.index_path = Path(index_path)

    def _load_raw(self) -> dict[str, object]:
        try:
            raw = self.index_path.read_bytes()
        except FileNotFoundError:
            return {}
        if not raw.strip():
            return {}
        try:
            data = json.loads(raw.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError, RecursionError) as exc:
            raise _CorruptIndex(f"{type(exc).__name__}: {exc}") from exc
        if not isinstance(data, dict):
            raise _CorruptIndex("index root is not an object")
        return data

    def _parse(self, cert_id: str, value: object) -> IndexRecord | None:
        try:
            return IndexRecord.model_validate(value)
        except ValidationError:
            logger.warning(
                "Skipping malformed index entry",
                extra={"cert_id": cert_id, "path": str(self.index_path)},
            )
            return None

    def _load_tolerant(self) -> dict[str, object]:
        try:
            return self._load_raw()
        except (_CorruptIndex, OSError) as exc:
            logger.warning(
                "Certificate index unreadable",
                extra={"path": str(self.index_path), "error": str(exc)},
            )
            return {}

    def get(self, cert_id: str) -> IndexRecord | None:
        raw = self._load_tolerant()
        if cert_id not in raw:
            return None
        return self._parse(cert_id, raw[cert_id])

    def cert_ids(self) -> list[str]:
        raw = self._load_tolerant()
        return sorted(
            key for key, value in raw.items() if self._parse(key, value) is not None
        )

    def _quarantine(self) -> None:
        target = self.index_path.with_name(
            f"{self.index_path.name}.corrupt-{int(time.time())}"
        )
        self.index_path.replace(target)
        logger.error(
            "Quarantined corrupt certificate index",
            extra={"path": str(self.index_path), "quarantine": str(target)},
        )

    def put(self, cert_id: str, record: IndexRecord) -> None:
        try:
            with exclusive_file_lock(self.index_path):
                try:
                    raw = self._load_raw()
                except _CorruptIndex:
                    self._quarantine()
                    raw = {}
                raw[cert_id] = record.model_dump(mode="json", by_alias=True)
                payload = json.dumps(raw, indent=2, sort_keys=True).encode("utf-8")
                atomic_write_bytes(self.index_path, payload + b"\n")
        except (OSError, ValueError, TypeError) as exc:
            raise IndexWriteFailure(
                f"Failed to persist index entry for {cert_id!r} to {self.index_path}: {exc}"
            ) from exc
