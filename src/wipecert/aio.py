"""Asyncio facade over :class:`~wipecert.service.CertificationService`."""

from __future__ import annotations

import asyncio
from collections.abc import Mapping

from .schemas import (
    CertificateStats,
    CertificateView,
    HashCheckResult,
    IssueResult,
    VerifyResult,
)
from .service import CertificationService

__all__ = ["AsyncCertificationService"]


class AsyncCertificationService:
    """Run blocking protocol calls in worker threads.

    Ledger round-trips can take seconds; delegating them to
    :func:`asyncio.to_thread` keeps an event-loop transport responsive while
    the wrapped service's per-certificate locking still applies.
    """

    def __init__(self, service: CertificationService) -> None:
        self.service = service

    async def issue(self, cert_id: str, document: Mapping[str, object]) -> IssueResult:
        return await asyncio.to_thread(self.service.issue, cert_id, document)

    async def verify(
        self, cert_id: str, document: Mapping[str, object], signature_base64: str
    ) -> VerifyResult:
        return await asyncio.to_thread(
            self.service.verify, cert_id, document, signature_base64
        )

    async def verify_hash(self, cert_id: str, digest_hex: str) -> HashCheckResult:
        return await asyncio.to_thread(self.service.verify_hash, cert_id, digest_hex)

    async def fetch(self, cert_id: str) -> CertificateView:
        return await asyncio.to_thread(self.service.fetch, cert_id)

    async def stats(self) -> CertificateStats:
        return await asyncio.to_thread(self.service.stats)
