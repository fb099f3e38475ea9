"""In-process ledger used for tests and ephemeral deployments."""

from __future__ import annotations

import hashlib
import logging
import threading
import time
from collections.abc import Callable
from typing import Literal

from ..errors import AnchorRejectedError
from .base import AnchorGateway, AnchorRecord

LOGGER = logging.getLogger(__name__)

ConflictPolicy = Literal["reject", "overwrite"]


class InMemoryAnchorGateway(AnchorGateway):
    """Thread-safe dictionary ledger.

    Args:
        issuer: Identity recorded as the issuer of every entry.
        on_conflict: ``"reject"`` refuses a different digest for an anchored
            certificate id; ``"overwrite"`` replaces it, modelling ledgers
            whose contract stores into a plain mapping.
        clock: Source of unix timestamps.
    """

    backend_name = "memory"

    def __init__(
        self,
        issuer: str = "wipecert-local",
        *,
        on_conflict: ConflictPolicy = "reject",
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._issuer = issuer
        self._on_conflict = on_conflict
        self._clock = clock
        self._lock = threading.Lock()
        self._records: dict[str, tuple[AnchorRecord, str]] = {}
        self._sequence = 0

    def submit(self, cert_id: str, digest_hex: str) -> str:
        with self._lock:
            existing = self._records.get(cert_id)
            if existing is not None:
                record, tx_hash = existing
                if record.cert_hash_hex == digest_hex:
                    return tx_hash
                if self._on_conflict == "reject":
                    raise AnchorRejectedError(
                        f"Certificate {cert_id!r} is already anchored with a different digest"
                    )
                LOGGER.warning(
                    "Overwriting anchored certificate",
                    extra={"cert_id": cert_id, "backend": self.backend_name},
                )

            self._sequence += 1
            timestamp = int(self._clock())
            tx_hash = "0x" + hashlib.sha256(
                f"{self._sequence}:{cert_id}:{digest_hex}:{timestamp}".encode("utf-8")
            ).hexdigest()
            record = AnchorRecord(
                cert_hash_hex=digest_hex, timestamp=timestamp, issuer=self._issuer
            )
            self._records[cert_id] = (record, tx_hash)
            return tx_hash

    def query(self, cert_id: str, digest_hex: str) -> bool:
        with self._lock:
            existing = self._records.get(cert_id)
        return existing is not None and existing[0].cert_hash_hex == digest_hex

    def read(self, cert_id: str) -> AnchorRecord | None:
        with self._lock:
            existing = self._records.get(cert_id)
        return existing[0] if existing is not None else None

    def transaction_id(self, cert_id: str) -> str | None:
        """Return the transaction id of the current record for ``cert_id``."""

        with self._lock:
            existing = self._records.get(cert_id)
        return existing[1] if existing is not None else None
