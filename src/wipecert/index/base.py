"""Storage abstraction for the local certificate index."""

from __future__ import annotations

from abc import ABC, abstractmethod

from ..schemas import IndexRecord


class CertificateIndex(ABC):
    """Non-authoritative certID-keyed cache of anchoring metadata.

    Losing or corrupting the index only degrades convenience features such as
    transaction-id display; verification never consults it.
    """

    @abstractmethod
    def get(self, cert_id: str) -> IndexRecord | None:
        """Return the cached record for ``cert_id`` if one exists."""

    @abstractmethod
    def put(self, cert_id: str, record: IndexRecord) -> None:
        """Store ``record`` durably before returning.

        Raises:
            IndexWriteFailure: If the record could not be persisted.
        """

    @abstractmethod
    def cert_ids(self) -> list[str]:
        """Return every certificate id currently held by the index."""
