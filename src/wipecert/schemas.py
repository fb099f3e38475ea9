"""Pydantic models describing the public wipecert schemas.

Field aliases are the camelCase wire names used by the certificate API;
models accept either spelling on input and dump aliases with
``model_dump_wire``.
"""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

__all__ = [
    "CertificateStats",
    "CertificateView",
    "HashCheckResult",
    "IndexRecord",
    "IssueResult",
    "VerificationEntry",
    "VerifyResult",
]


class _WireModel(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="forbid")

    def model_dump_wire(self) -> dict[str, object]:
        """Return a JSON-serialisable payload keyed by wire names."""

        return self.model_dump(mode="json", by_alias=True)


class IndexRecord(_WireModel):
    """Locally cached metadata for an anchored certificate."""

    tx_hash: str = Field(
        ..., alias="txHash", min_length=1, description="Ledger transaction id."
    )
    cert_hash_hex: str = Field(
        ...,
        alias="certHashHex",
        pattern=r"^[0-9a-f]{64}$",
        description="SHA-256 digest of the signed certificate blob.",
    )
    signature_base64: str = Field(
        ...,
        alias="signatureBase64",
        min_length=1,
        description="Base64 RSA-SHA256 signature over the canonical form.",
    )


class IssueResult(_WireModel):
    """Outcome of issuing and anchoring a certificate."""

    cert_id: str = Field(..., alias="certID", min_length=1)
    cert_hash_hex: str = Field(..., alias="certHashHex")
    signature_base64: str = Field(..., alias="signatureBase64")
    tx_hash: str = Field(..., alias="txHash")
    indexed: bool = Field(
        default=True,
        description=(
            "False when the ledger write succeeded but the local index could "
            "not be persisted."
        ),
    )


class VerifyResult(_WireModel):
    """Outcome of verifying a certificate against its signature and the ledger."""

    valid_signature: bool = Field(..., alias="validSignature")
    anchored: bool


class CertificateView(_WireModel):
    """Ledger record merged with locally cached convenience fields."""

    cert_id: str = Field(..., alias="certID")
    cert_hash_hex: str = Field(..., alias="certHashHex")
    timestamp: int = Field(..., ge=0, description="Unix anchoring time.")
    issuer: str
    tx_hash: str | None = Field(default=None, alias="txHash")


class CertificateStats(_WireModel):
    """Aggregate view over the certificates known to the local index."""

    total_certificates: int = Field(..., alias="totalCertificates", ge=0)
    unique_issuers: int = Field(..., alias="uniqueIssuers", ge=0)
    last_issued: datetime | None = Field(default=None, alias="lastIssued")


class HashCheckResult(_WireModel):
    """Outcome of checking a precomputed digest against the ledger."""

    cert_id: str = Field(..., alias="certID")
    cert_hash_hex: str = Field(..., alias="certHashHex")
    anchored: bool


class VerificationEntry(_WireModel):
    """One line of the verification audit trail."""

    cert_id: str = Field(..., alias="certID", min_length=1)
    cert_hash_hex: str = Field(..., alias="certHashHex")
    check: Literal["document", "hash"] = Field(
        ...,
        description=(
            "``document`` for signature plus ledger verification, ``hash`` for "
            "a bare digest lookup."
        ),
    )
    verified: bool
    verified_at: datetime = Field(..., alias="verifiedAt")
