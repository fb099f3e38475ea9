"""Tests for wiring the service from settings."""

from __future__ import annotations

from pathlib import Path

import pytest

from wipecert.anchor import FileAnchorGateway, HttpAnchorGateway, InMemoryAnchorGateway
from wipecert.audit import FileVerificationLog, InMemoryVerificationLog
from wipecert.errors import KeyUnavailableError
from wipecert.index import InMemoryCertificateIndex, JsonFileIndex
from wipecert.service import build_service
from wipecert.settings import WipeCertSettings


def _settings(key_files: tuple[Path, Path], **overrides: object) -> WipeCertSettings:
    private_path, public_path = key_files
    return WipeCertSettings(
        private_key_path=str(private_path),
        public_key_path=str(public_path),
        **overrides,
    )


def test_file_backend(key_files, tmp_path: Path):
    service = build_service(
        _settings(
            key_files,
            ledger_path=str(tmp_path / "l.ndjson"),
            index_path=str(tmp_path / "i.json"),
            verification_log_path=str(tmp_path / "v.ndjson"),
        )
    )
    assert isinstance(service.anchor, FileAnchorGateway)
    assert isinstance(service.index, JsonFileIndex)
    assert isinstance(service.audit, FileVerificationLog)
    assert service.recursive_canonical is True


def test_memory_backend_and_legacy_mode(key_files):
    service = build_service(
        _settings(key_files, ledger_backend="memory", canonical_mode="top_level")
    )
    assert isinstance(service.anchor, InMemoryAnchorGateway)
    assert isinstance(service.index, InMemoryCertificateIndex)
    assert isinstance(service.audit, InMemoryVerificationLog)
    assert service.recursive_canonical is False


def test_http_backend(key_files):
    service = build_service(
        _settings(key_files, ledger_backend="http", ledger_url="https://bridge.test")
    )
    assert isinstance(service.anchor, HttpAnchorGateway)


def test_missing_keys_are_fatal(tmp_path: Path):
    with pytest.raises(KeyUnavailableError):
        build_service(WipeCertSettings(private_key_path=str(tmp_path / "none.pem")))


def test_blank_verification_log_disables_audit(key_files, tmp_path: Path):
    service = build_service(
        _settings(
            key_files,
            ledger_path=str(tmp_path / "l.ndjson"),
            index_path=str(tmp_path / "i.json"),
            verification_log_path="",
        )
    )
    assert service.audit is None
    assert service.verification_history() == []
