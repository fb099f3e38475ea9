"""
Tools package with the cryptographic primitives of the certification protocol.

Canonicalization, RSA signing and SHA-256 digesting are pure helpers with no
ledger or index knowledge; the file locking helpers back the durable stores.
"""

from .canonicalize import canonicalize
from .digest import SEPARATOR, certificate_digest, compose_signed_blob, digest
from .signing import Signer, load_keypair, verify_signature

__all__ = [
    "SEPARATOR",
    "Signer",
    "canonicalize",
    "certificate_digest",
    "compose_signed_blob",
    "digest",
    "load_keypair",
    "verify_signature",
]
