"""SHA-256 digest over the signed certificate blob."""

from __future__ import annotations

import hashlib
from typing import Final

__all__ = ["SEPARATOR", "certificate_digest", "compose_signed_blob", "digest"]

SEPARATOR: Final[bytes] = b"||"


def compose_signed_blob(canonical: bytes, signature_b64: str) -> bytes:
    """Return ``canonical || SEPARATOR || signature`` as bytes."""

    return canonical + SEPARATOR + signature_b64.encode("ascii")


def digest(data: bytes) -> str:
    """Return the lowercase SHA-256 hex digest of ``data``."""

    return hashlib.sha256(data).hexdigest()


def certificate_digest(canonical: bytes, signature_b64: str) -> str:
    """Return the digest binding a canonical document to its signature."""

    return digest(compose_signed_blob(canonical, signature_b64))
