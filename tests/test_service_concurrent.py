"""Concurrency tests for certificate issuance."""

from __future__ import annotations

import threading
import time
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

from wipecert.anchor import AnchorGateway, AnchorRecord, FileAnchorGateway, InMemoryAnchorGateway
from wipecert.index import JsonFileIndex
from wipecert.locks import KeyedLock
from wipecert.service import CertificationService
from wipecert.tools.signing import Signer


class _SlowLedger(AnchorGateway):
    """Delegate to an in-memory ledger, sleeping inside submit."""

    backend_name = "slow"

    def __init__(self, inner: InMemoryAnchorGateway, delay: float) -> None:
        self.inner = inner
        self.delay = delay

    def submit(self, cert_id: str, digest_hex: str) -> str:
        time.sleep(self.delay)
        return self.inner.submit(cert_id, digest_hex)

    def query(self, cert_id: str, digest_hex: str) -> bool:
        return self.inner.query(cert_id, digest_hex)

    def read(self, cert_id: str) -> AnchorRecord | None:
        return self.inner.read(cert_id)


def test_distinct_cert_ids_issue_concurrently(signer: Signer, tmp_path: Path):
    service = CertificationService(
        signer,
        FileAnchorGateway(tmp_path / "ledger.ndjson", "0xIssuer"),
        JsonFileIndex(tmp_path / "index.json"),
    )
    cert_ids = [f"c{n}" for n in range(8)]

    with ThreadPoolExecutor(max_workers=8) as pool:
        results = list(
            pool.map(lambda cid: service.issue(cid, {"device": cid}), cert_ids)
        )

    for cert_id, result in zip(cert_ids, results):
        view = service.fetch(cert_id)
        assert view.cert_hash_hex == result.cert_hash_hex
        assert view.tx_hash == result.tx_hash
        assert service.verify(cert_id, {"device": cert_id}, result.signature_base64).anchored
    assert service.stats().total_certificates == len(cert_ids)


def test_same_cert_id_index_matches_ledger(signer: Signer, tmp_path: Path):
    """Racing issuances under overwrite semantics leave a consistent index."""

    inner = InMemoryAnchorGateway("0xIssuer", on_conflict="overwrite")
    service = CertificationService(
        signer, _SlowLedger(inner, 0.05), JsonFileIndex(tmp_path / "index.json")
    )
    barrier = threading.Barrier(2)
    results = []

    def issue(device: str) -> None:
        barrier.wait()
        results.append(service.issue("shared", {"device": device}))

    threads = [threading.Thread(target=issue, args=(d,)) for d in ("A", "B")]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert len(results) == 2
    cached = service.index.get("shared")
    assert cached is not None
    assert cached.tx_hash == inner.transaction_id("shared")
    assert cached.cert_hash_hex == inner.read("shared").cert_hash_hex  # type: ignore[union-attr]
    assert cached.tx_hash in {r.tx_hash for r in results}
    assert service.fetch("shared").tx_hash == cached.tx_hash


def test_same_cert_id_reject_policy_one_winner(signer: Signer, tmp_path: Path):
    inner = InMemoryAnchorGateway("0xIssuer")
    service = CertificationService(
        signer, _SlowLedger(inner, 0.02), JsonFileIndex(tmp_path / "index.json")
    )
    outcomes: list[object] = []

    def issue(device: str) -> None:
        try:
            outcomes.append(service.issue("shared", {"device": device}))
        except Exception as exc:  # noqa: BLE001 - collected for assertions
            outcomes.append(exc)

    threads = [threading.Thread(target=issue, args=(d,)) for d in ("A", "B")]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    winners = [o for o in outcomes if not isinstance(o, Exception)]
    assert len(winners) == 1
    assert service.index.get("shared").tx_hash == winners[0].tx_hash  # type: ignore[union-attr]


def test_keyed_lock_serialises_same_key_only():
    locks = KeyedLock()
    active: dict[str, int] = {"a": 0, "b": 0}
    peak: dict[str, int] = {"a": 0, "b": 0}
    guard = threading.Lock()

    def work(key: str) -> None:
        with locks.hold(key):
            with guard:
                active[key] += 1
                peak[key] = max(peak[key], active[key])
            time.sleep(0.01)
            with guard:
                active[key] -= 1

    threads = [threading.Thread(target=work, args=(k,)) for k in "abababab"]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert peak == {"a": 1, "b": 1}
    assert len(locks) == 0
