"""Ephemeral in-process certificate index."""

from __future__ import annotations

import threading

from ..schemas import IndexRecord
from .base import CertificateIndex


class InMemoryCertificateIndex(CertificateIndex):
    """Dictionary-backed index guarded by a lock."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._records: dict[str, IndexRecord] = {}

    def get(self, cert_id: str) -> IndexRecord | None:
        with self._lock:
            return self._records.get(cert_id)

    def put(self, cert_id: str, record: IndexRecord) -> None:
        with self._lock:
            self._records[cert_id] = record

    def cert_ids(self) -> list[str]:
        with self._lock:
            return sorted(self._records)
