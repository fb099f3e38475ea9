"""Pytest configuration and fixtures."""

from __future__ import annotations

import asyncio
import inspect
import os
import sys
from pathlib import Path
from typing import Any

import pytest

# Ensure src/ is on sys.path for tests so the src layout is used during test runs
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
SRC = os.path.join(ROOT, "src")
if SRC not in sys.path:
    sys.path.insert(0, SRC)

from cryptography.hazmat.primitives.asymmetric import rsa  # noqa: E402

from wipecert.anchor import InMemoryAnchorGateway  # noqa: E402
from wipecert.index import InMemoryCertificateIndex  # noqa: E402
from wipecert.service import CertificationService  # noqa: E402
from wipecert.tools.signing import Signer, generate_keypair  # noqa: E402


def pytest_configure(config: pytest.Config) -> None:
    config.addinivalue_line("markers", "asyncio: mark test as requiring an event loop")


def pytest_pyfunc_call(pyfuncitem: Any) -> bool | None:
    """Execute async test functions without requiring pytest-asyncio."""

    if inspect.iscoroutinefunction(pyfuncitem.obj):
        call_kwargs = {
            name: pyfuncitem.funcargs[name]
            for name in pyfuncitem._fixtureinfo.argnames  # type: ignore[attr-defined]
        }

        event_loop = asyncio.new_event_loop()
        try:
            event_loop.run_until_complete(pyfuncitem.obj(**call_kwargs))
        finally:
            event_loop.close()
        return True
    return None


@pytest.fixture(scope="session")
def rsa_private_key() -> rsa.RSAPrivateKey:
    """One RSA key per test session; generation is slow."""

    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture
def signer(rsa_private_key: rsa.RSAPrivateKey) -> Signer:
    return Signer(rsa_private_key)


@pytest.fixture
def key_files(tmp_path: Path) -> tuple[Path, Path]:
    """Write a fresh PEM keypair and return ``(private, public)`` paths."""

    private_path = tmp_path / "keys" / "private.pem"
    public_path = tmp_path / "keys" / "public.pem"
    generate_keypair(private_path, public_path)
    return private_path, public_path


@pytest.fixture
def ledger() -> InMemoryAnchorGateway:
    return InMemoryAnchorGateway(issuer="0xIssuer", clock=lambda: 1_700_000_000)


@pytest.fixture
def index() -> InMemoryCertificateIndex:
    return InMemoryCertificateIndex()


@pytest.fixture
def service(
    signer: Signer, ledger: InMemoryAnchorGateway, index: InMemoryCertificateIndex
) -> CertificationService:
    return CertificationService(signer, ledger, index)


@pytest.fixture
def clean_env(monkeypatch: pytest.MonkeyPatch) -> pytest.MonkeyPatch:
    """Remove every WIPECERT_* variable so settings see only test values."""

    for name in list(os.environ):
        if name.startswith("WIPECERT_"):
            monkeypatch.delenv(name, raising=False)
    return monkeypatch
