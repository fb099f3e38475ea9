"""Base types for ledger anchoring gateways."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone


@dataclass(frozen=True, slots=True)
class AnchorRecord:
    """Authoritative ledger entry for an anchored certificate."""

    cert_hash_hex: str
    timestamp: int
    issuer: str

    @property
    def issued_at(self) -> datetime:
        """Return the anchoring time as an aware UTC datetime."""

        return datetime.fromtimestamp(self.timestamp, tz=timezone.utc)


class AnchorGateway(ABC):
    """Abstract access to an external append-only ledger.

    Implementations must treat a certificate id as create-once: submitting the
    digest already anchored for ``cert_id`` is a no-op returning the original
    transaction id, while a different digest raises
    :class:`~wipecert.errors.AnchorRejectedError` unless the implementation
    documents overwrite semantics.
    """

    backend_name: str = "abstract"

    @abstractmethod
    def submit(self, cert_id: str, digest_hex: str) -> str:
        """Anchor ``digest_hex`` under ``cert_id`` and return the transaction id.

        Returns only once the write is confirmed and durable.

        Raises:
            AnchorUnavailableError: On transport or contract failure.
            AnchorTimeoutError: When confirmation did not arrive in time; the
                write may or may not have landed.
            AnchorRejectedError: When the ledger refuses the write.
        """

    @abstractmethod
    def query(self, cert_id: str, digest_hex: str) -> bool:
        """Return whether ``(cert_id, digest_hex)`` is recorded on the ledger."""

    @abstractmethod
    def read(self, cert_id: str) -> AnchorRecord | None:
        """Return the ledger record for ``cert_id`` or ``None`` when absent.

        Raises only for transport failures, never for a missing record.
        """
