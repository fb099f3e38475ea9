"""
Append-only NDJSON ledger with hash-chained integrity.

Each line records one anchoring transaction::

    {"certID": ..., "certHashHex": ..., "timestamp": ..., "issuer": ...,
     "prev_hash": ..., "txHash": "0x..."}

``txHash`` is the SHA-256 of the canonical entry body (every field except
``txHash``) and ``prev_hash`` repeats the previous line's ``txHash``, so any
edit to a historical line breaks the chain from that point on. Appends run
under an exclusive ``portalocker`` lock and are fsynced and atomically
renamed into place before :meth:`FileAnchorGateway.submit` returns.
"""

from __future__ import annotations

import json
import logging
import time
from collections.abc import Callable, Iterator
from pathlib import Path

from ..errors import AnchorRejectedError, AnchorUnavailableError
from ..tools.canonicalize import canonicalize
from ..tools.digest import digest
from ..tools.locking import atomic_write_bytes, exclusive_file_lock
from .base import AnchorGateway, AnchorRecord

logger = logging.getLogger(__name__)

_BODY_FIELDS = ("certID", "certHashHex", "timestamp", "issuer", "prev_hash")


def _entry_tx_hash(entry: dict[str, object]) -> str:
    body = {key: entry[key] for key in _BODY_FIELDS if key in entry}
    return "0x" + digest(canonicalize(body))


def _iter_entries(raw: bytes, source: Path) -> Iterator[tuple[int, dict[str, object]]]:
    for idx, line in enumerate(raw.splitlines(), start=1):
        if not line.strip():
            continue
        try:
            entry = json.loads(line.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise AnchorUnavailableError(
                f"Ledger {source} is corrupt at line {idx}"
            ) from exc
        if not isinstance(entry, dict):
            raise AnchorUnavailableError(f"Ledger {source} is corrupt at line {idx}")
        yield idx, entry


class FileAnchorGateway(AnchorGateway):
    """Ledger gateway backed by a local hash-chained NDJSON file.

    Args:
        ledger_path: NDJSON ledger location; created on first submission.
        issuer: Identity recorded as the issuer of every new entry.
        clock: Source of unix timestamps.
    """

    backend_name = "file"

    def __init__(
        self,
        ledger_path: str | Path,
        issuer: str = "wipecert-local",
        *,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.ledger_path = Path(ledger_path)
        self._issuer = issuer
        self._clock = clock

    def _read_raw(self) -> bytes:
        try:
            return self.ledger_path.read_bytes()
        except FileNotFoundError:
            return b""
        except OSError as exc:
            raise AnchorUnavailableError(
                f"Unable to read ledger {self.ledger_path}: {exc}"
            ) from exc

    def _latest(self, raw: bytes, cert_id: str) -> dict[str, object] | None:
        latest: dict[str, object] | None = None
        for _, entry in _iter_entries(raw, self.ledger_path):
            if entry.get("certID") == cert_id:
                latest = entry
        return latest

    def submit(self, cert_id: str, digest_hex: str) -> str:
        try:
            with exclusive_file_lock(self.ledger_path):
                raw = self._read_raw()
                existing = self._latest(raw, cert_id)
                if existing is not None:
                    if existing.get("certHashHex") == digest_hex:
                        return str(existing["txHash"])
                    raise AnchorRejectedError(
                        f"Certificate {cert_id!r} is already anchored with a different digest"
                    )

                last_tx: str | None = None
                for _, entry in _iter_entries(raw, self.ledger_path):
                    last_tx = str(entry.get("txHash"))

                entry = {
                    "certID": cert_id,
                    "certHashHex": digest_hex,
                    "timestamp": int(self._clock()),
                    "issuer": self._issuer,
                }
                if last_tx is not None:
                    entry["prev_hash"] = last_tx
                tx_hash = _entry_tx_hash(entry)
                entry["txHash"] = tx_hash

                if raw and not raw.endswith(b"\n"):
                    raw += b"\n"
                line = json.dumps(entry, separators=(",", ":")).encode("utf-8")
                atomic_write_bytes(self.ledger_path, raw + line + b"\n")
        except OSError as exc:
            raise AnchorUnavailableError(
                f"Failed to append to ledger {self.ledger_path}: {exc}"
            ) from exc

        logger.debug(
            "Appended ledger entry",
            extra={"cert_id": cert_id, "tx_hash": tx_hash, "backend": self.backend_name},
        )
        return tx_hash

    def query(self, cert_id: str, digest_hex: str) -> bool:
        record = self.read(cert_id)
        return record is not None and record.cert_hash_hex == digest_hex

    def read(self, cert_id: str) -> AnchorRecord | None:
        entry = self._latest(self._read_raw(), cert_id)
        if entry is None:
            return None
        try:
            return AnchorRecord(
                cert_hash_hex=str(entry["certHashHex"]),
                timestamp=int(entry["timestamp"]),  # type: ignore[call-overload]
                issuer=str(entry["issuer"]),
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise AnchorUnavailableError(
                f"Ledger entry for {cert_id!r} is malformed"
            ) from exc


def validate_ledger(ledger_path: str | Path) -> tuple[bool, int]:
    """
    Validate an NDJSON ledger.

    Returns ``(ok, first_bad_line_number)``. If ``ok`` is ``False`` and the ledger
    exists, ``first_bad_line_number`` is the 1-based line index where validation
    failed. A value of ``-1`` indicates that the ledger file does not exist.
    """
    path = Path(ledger_path)
    if not path.exists():
        return False, -1

    prev_tx: str | None = None
    with path.open("rb") as f:
        for idx, raw_line in enumerate(f, start=1):
            if not raw_line.strip():
                continue
            try:
                entry = json.loads(raw_line.decode("utf-8"))
            except (UnicodeDecodeError, json.JSONDecodeError, RecursionError):
                return False, idx
            if not isinstance(entry, dict) or "txHash" not in entry:
                return False, idx

            try:
                expected = _entry_tx_hash(entry)
            except (KeyError, ValueError):
                return False, idx
            if entry["txHash"] != expected:
                return False, idx
            if entry.get("prev_hash") != prev_tx:
                return False, idx
            prev_tx = expected

    return True, -1
