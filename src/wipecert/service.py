"""Certificate issuance and verification against the anchoring ledger.

The protocol binds a certificate document to its signature and anchors the
binding on an external ledger:

1. the document is canonicalized,
2. the canonical bytes are signed with the service's RSA key,
3. ``digest = sha256(canonical || "||" || base64(signature))``,
4. the digest is anchored under the certificate id,
5. the transaction id is cached in the local index.

Verification re-derives the digest from caller-supplied data and asks the
ledger directly, so it never depends on the local index.
"""

from __future__ import annotations

import logging
import re
import time
from collections.abc import Callable, Mapping
from datetime import datetime, timezone
from pathlib import Path
from typing import Literal

from .anchor import (
    AnchorGateway,
    FileAnchorGateway,
    HttpAnchorGateway,
    InMemoryAnchorGateway,
)
from .audit import FileVerificationLog, InMemoryVerificationLog, VerificationLog
from .errors import (
    AnchorError,
    AuditWriteFailure,
    CertificateNotFoundError,
    MissingInputError,
)
from .index import CertificateIndex, InMemoryCertificateIndex, JsonFileIndex
from .locks import KeyedLock
from .schemas import (
    CertificateStats,
    CertificateView,
    HashCheckResult,
    IndexRecord,
    IssueResult,
    VerificationEntry,
    VerifyResult,
)
from .settings import WipeCertSettings, get_settings
from .tools.canonicalize import canonicalize
from .tools.digest import certificate_digest
from .tools.signing import Signer, load_keypair

__all__ = ["CertificationService", "build_service"]

LOGGER = logging.getLogger(__name__)

_DIGEST_RE = re.compile(r"[0-9a-f]{64}")


def _require_cert_id(cert_id: object) -> str:
    if not isinstance(cert_id, str) or not cert_id.strip():
        raise MissingInputError("certID is required")
    return cert_id


class CertificationService:
    """Orchestrate signing, digesting, anchoring and index reconciliation.

    Args:
        signer: Keypair loaded once at startup and shared read-only.
        anchor: Gateway to the authoritative ledger.
        index: Local, non-authoritative certificate index.
        recursive_canonical: Canonicalize nested mappings as well as the top
            level. Disable only to verify certificates from legacy signers.
        audit: Optional verification log; every verification attempt is
            appended to it.
        clock: Source of unix timestamps for audit entries.

    The service is safe to share between threads. Issuance for the same
    certificate id is serialised across the ledger submission and the index
    write so the index always reflects the last successful anchoring; calls
    for different ids run fully concurrently.
    """

    def __init__(
        self,
        signer: Signer,
        anchor: AnchorGateway,
        index: CertificateIndex,
        *,
        recursive_canonical: bool = True,
        audit: VerificationLog | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.signer = signer
        self.anchor = anchor
        self.index = index
        self.recursive_canonical = recursive_canonical
        self.audit = audit
        self._clock = clock
        self._issue_locks = KeyedLock()

    def _canonical(self, document: Mapping[str, object]) -> bytes:
        return canonicalize(document, recursive=self.recursive_canonical)

    def issue(self, cert_id: str, document: Mapping[str, object]) -> IssueResult:
        """Sign, digest and anchor ``document`` under ``cert_id``.

        Returns:
            The digest, signature and ledger transaction id. ``indexed`` is
            ``False`` when anchoring succeeded but the index write failed.

        Raises:
            MissingInputError: If ``cert_id`` or ``document`` is absent.
            InvalidDocumentError: If ``document`` cannot be canonicalized.
            AnchorUnavailableError: If the ledger could not be reached; safe
                to retry.
            AnchorTimeoutError: If confirmation did not arrive in time. The
                write may have landed; check with :meth:`fetch` first.
            AnchorRejectedError: If the ledger refused the write.
        """

        cert_id = _require_cert_id(cert_id)
        if document is None:
            raise MissingInputError("certificate document is required")

        canonical = self._canonical(document)
        signature = self.signer.sign(canonical)
        digest_hex = certificate_digest(canonical, signature)

        with self._issue_locks.hold(cert_id):
            tx_hash = self.anchor.submit(cert_id, digest_hex)
            LOGGER.info(
                "Certificate anchored",
                extra={
                    "cert_id": cert_id,
                    "tx_hash": tx_hash,
                    "backend": self.anchor.backend_name,
                },
            )
            record = IndexRecord(
                tx_hash=tx_hash, cert_hash_hex=digest_hex, signature_base64=signature
            )
            indexed = True
            try:
                self.index.put(cert_id, record)
            except Exception as exc:
                indexed = False
                LOGGER.error(
                    "Certificate anchored but index write failed",
                    extra={"cert_id": cert_id, "tx_hash": tx_hash},
                    exc_info=exc,
                )

        return IssueResult(
            cert_id=cert_id,
            cert_hash_hex=digest_hex,
            signature_base64=signature,
            tx_hash=tx_hash,
            indexed=indexed,
        )

    def verify(
        self,
        cert_id: str,
        document: Mapping[str, object],
        signature_base64: str,
    ) -> VerifyResult:
        """Check the signature and, only if it holds, the ledger anchoring.

        An invalid signature short-circuits to ``validSignature=False,
        anchored=False`` without contacting the ledger. Ledger failures
        propagate rather than being reported as "not anchored". Completed
        checks are appended to the verification log when one is configured.
        """

        cert_id = _require_cert_id(cert_id)
        if document is None:
            raise MissingInputError("certificate document is required")
        if not isinstance(signature_base64, str) or not signature_base64:
            raise MissingInputError("signatureBase64 is required")

        canonical = self._canonical(document)
        digest_hex = certificate_digest(canonical, signature_base64)
        if not self.signer.verify(canonical, signature_base64):
            LOGGER.info("Signature rejected", extra={"cert_id": cert_id})
            self._record(cert_id, digest_hex, "document", False)
            return VerifyResult(valid_signature=False, anchored=False)

        anchored = self.anchor.query(cert_id, digest_hex)
        self._record(cert_id, digest_hex, "document", anchored)
        return VerifyResult(valid_signature=True, anchored=anchored)

    def verify_hash(self, cert_id: str, digest_hex: str) -> HashCheckResult:
        """Ask the ledger whether ``digest_hex`` is anchored under ``cert_id``.

        No signature is checked; this serves holders of a previously issued
        ``certHashHex`` who no longer have the document itself.

        Raises:
            MissingInputError: If ``cert_id`` is absent or ``digest_hex`` is
                not a 64-character hex SHA-256 digest.
        """

        cert_id = _require_cert_id(cert_id)
        if not isinstance(digest_hex, str):
            raise MissingInputError("certHashHex is required")
        normalized = digest_hex.strip().lower()
        if not _DIGEST_RE.fullmatch(normalized):
            raise MissingInputError(
                "certHashHex must be a 64-character hex SHA-256 digest"
            )

        anchored = self.anchor.query(cert_id, normalized)
        self._record(cert_id, normalized, "hash", anchored)
        return HashCheckResult(
            cert_id=cert_id, cert_hash_hex=normalized, anchored=anchored
        )

    def verification_history(
        self, cert_id: str | None = None
    ) -> list[VerificationEntry]:
        """Return recorded verification attempts, optionally for one certificate."""

        if self.audit is None:
            return []
        entries = self.audit.entries()
        if cert_id is None:
            return entries
        return [entry for entry in entries if entry.cert_id == cert_id]

    def _record(
        self,
        cert_id: str,
        digest_hex: str,
        check: Literal["document", "hash"],
        verified: bool,
    ) -> None:
        if self.audit is None:
            return
        entry = VerificationEntry(
            cert_id=cert_id,
            cert_hash_hex=digest_hex,
            check=check,
            verified=verified,
            verified_at=datetime.fromtimestamp(self._clock(), tz=timezone.utc),
        )
        try:
            self.audit.record(entry)
        except AuditWriteFailure as exc:
            LOGGER.error(
                "Verification completed but audit entry was not written",
                extra={"cert_id": cert_id},
                exc_info=exc,
            )

    def fetch(self, cert_id: str) -> CertificateView:
        """Return the ledger record for ``cert_id`` with its cached tx id.

        Raises:
            CertificateNotFoundError: If the ledger has no record, whatever
                the index holds.
        """

        cert_id = _require_cert_id(cert_id)
        record = self.anchor.read(cert_id)
        if record is None:
            raise CertificateNotFoundError(f"Certificate {cert_id!r} not found")

        tx_hash: str | None = None
        try:
            cached = self.index.get(cert_id)
        except Exception as exc:
            LOGGER.warning(
                "Index read failed; returning ledger record without tx id",
                extra={"cert_id": cert_id, "error_type": type(exc).__name__},
                exc_info=exc,
            )
            cached = None
        if cached is not None:
            if cached.cert_hash_hex == record.cert_hash_hex:
                tx_hash = cached.tx_hash
            else:
                LOGGER.warning(
                    "Index entry disagrees with ledger; ignoring cached tx id",
                    extra={"cert_id": cert_id},
                )

        return CertificateView(
            cert_id=cert_id,
            cert_hash_hex=record.cert_hash_hex,
            timestamp=record.timestamp,
            issuer=record.issuer,
            tx_hash=tx_hash,
        )

    def stats(self) -> CertificateStats:
        """Aggregate ledger records for every certificate in the local index.

        Certificates whose ledger read fails or returns nothing are logged
        and left out of the aggregate.
        """

        total = 0
        issuers: set[str] = set()
        latest: int | None = None
        for cert_id in self.index.cert_ids():
            try:
                record = self.anchor.read(cert_id)
            except AnchorError as exc:
                LOGGER.warning(
                    "Skipping certificate in stats: ledger read failed",
                    extra={"cert_id": cert_id, "error_type": type(exc).__name__},
                    exc_info=exc,
                )
                continue
            if record is None:
                LOGGER.warning(
                    "Skipping certificate in stats: not on ledger",
                    extra={"cert_id": cert_id},
                )
                continue
            total += 1
            issuers.add(record.issuer)
            if latest is None or record.timestamp > latest:
                latest = record.timestamp

        return CertificateStats(
            total_certificates=total,
            unique_issuers=len(issuers),
            last_issued=(
                datetime.fromtimestamp(latest, tz=timezone.utc)
                if latest is not None
                else None
            ),
        )


def build_service(settings: WipeCertSettings | None = None) -> CertificationService:
    """Wire a :class:`CertificationService` from environment settings.

    Raises:
        KeyUnavailableError: If the signing keypair cannot be loaded. This is
            fatal at startup.
    """

    settings_obj = settings or get_settings()
    signer = load_keypair(settings_obj.private_key_path, settings_obj.public_key_path)

    anchor: AnchorGateway
    index: CertificateIndex
    if settings_obj.ledger_backend == "http":
        anchor = HttpAnchorGateway(settings=settings_obj)
    elif settings_obj.ledger_backend == "memory":
        anchor = InMemoryAnchorGateway(settings_obj.issuer)
    else:
        anchor = FileAnchorGateway(Path(settings_obj.ledger_path), settings_obj.issuer)

    audit: VerificationLog | None = None
    if settings_obj.ledger_backend == "memory":
        index = InMemoryCertificateIndex()
        audit = InMemoryVerificationLog()
    else:
        index = JsonFileIndex(Path(settings_obj.index_path))
        if settings_obj.verification_log_path:
            audit = FileVerificationLog(Path(settings_obj.verification_log_path))

    LOGGER.info(
        "Certification service ready",
        extra={
            "backend": anchor.backend_name,
            "key_fingerprint": signer.fingerprint,
            "canonical_mode": settings_obj.canonical_mode,
        },
    )
    return CertificationService(
        signer,
        anchor,
        index,
        recursive_canonical=settings_obj.recursive_canonical,
        audit=audit,
    )
