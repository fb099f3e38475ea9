"""Exception taxonomy for certificate issuance and verification."""

from __future__ import annotations

__all__ = [
    "AnchorError",
    "AnchorRejectedError",
    "AnchorTimeoutError",
    "AnchorUnavailableError",
    "AuditWriteFailure",
    "CertificateNotFoundError",
    "IndexWriteFailure",
    "InvalidDocumentError",
    "KeyUnavailableError",
    "MissingInputError",
    "WipeCertError",
    "WipeEngineError",
    "WipeEngineTimeout",
]


class WipeCertError(RuntimeError):
    """Base class for all wipecert failures."""


class MissingInputError(WipeCertError, ValueError):
    """Raised when a required request argument is absent, empty or malformed."""


class InvalidDocumentError(WipeCertError, ValueError):
    """Raised when a certificate document cannot be canonicalized."""


class KeyUnavailableError(WipeCertError):
    """Raised when the signing keypair cannot be loaded."""


class AnchorError(WipeCertError):
    """Base class for ledger-layer failures."""


class AnchorUnavailableError(AnchorError):
    """Raised on ledger transport or contract failures."""


class AnchorTimeoutError(AnchorError):
    """Raised when a ledger call exceeds its deadline.

    For submissions the outcome is unknown: the write may have landed, so
    callers should check with a read before re-submitting.
    """


class AnchorRejectedError(AnchorError):
    """Raised when the ledger refuses a write."""


class IndexWriteFailure(WipeCertError):
    """Raised when the local index cannot be durably persisted."""


class AuditWriteFailure(WipeCertError):
    """Raised when a verification audit entry cannot be persisted."""


class CertificateNotFoundError(WipeCertError, LookupError):
    """Raised when the ledger holds no record for a certificate id."""


class WipeEngineError(WipeCertError):
    """Raised when the external wipe engine cannot be run."""


class WipeEngineTimeout(WipeEngineError):
    """Raised when the wipe engine exceeds its time budget."""
