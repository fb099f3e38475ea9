"""Tests for the asyncio service facade."""

from __future__ import annotations

import asyncio

import pytest

from wipecert.aio import AsyncCertificationService
from wipecert.errors import CertificateNotFoundError
from wipecert.service import CertificationService


async def test_concurrent_issue_and_fetch(service: CertificationService):
    facade = AsyncCertificationService(service)
    results = await asyncio.gather(
        facade.issue("c1", {"device": "X1"}),
        facade.issue("c2", {"device": "X2"}),
    )

    views = await asyncio.gather(facade.fetch("c1"), facade.fetch("c2"))
    assert [v.cert_hash_hex for v in views] == [r.cert_hash_hex for r in results]

    verdict = await facade.verify("c1", {"device": "X1"}, results[0].signature_base64)
    assert verdict.valid_signature and verdict.anchored

    check = await facade.verify_hash("c2", results[1].cert_hash_hex)
    assert check.anchored is True

    stats = await facade.stats()
    assert stats.total_certificates == 2


async def test_errors_propagate(service: CertificationService):
    facade = AsyncCertificationService(service)
    with pytest.raises(CertificateNotFoundError):
        await facade.fetch("missing")
