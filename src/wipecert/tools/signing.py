"""
RSA-SHA256 signing and verification for certificate canonical forms.

Provides:
- Signer: holds the process-wide keypair and produces base64 signatures
- load_keypair(private_path, public_path): load PEM key material once
- verify_signature(data, signature_b64, public_key): boolean verification
- generate_keypair(private_path, public_path): write a fresh PEM pair

Signatures use PKCS#1 v1.5 padding with SHA-256, the scheme produced by
``openssl dgst -sha256 -sign`` and Node's ``crypto.createSign('SHA256')``.
"""

from __future__ import annotations

import base64
import binascii
import hashlib
import logging
import os
from pathlib import Path

from cryptography.exceptions import InvalidSignature, UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import padding, rsa

from ..errors import KeyUnavailableError

__all__ = [
    "SIGNATURE_ALGORITHM",
    "Signer",
    "generate_keypair",
    "load_keypair",
    "load_public_key",
    "verify_signature",
]

LOGGER = logging.getLogger(__name__)

SIGNATURE_ALGORITHM = "rsa-sha256"


def _public_pem(public_key: rsa.RSAPublicKey) -> str:
    return public_key.public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    ).decode("ascii")


def verify_signature(
    data: bytes, signature_b64: str, public_key: rsa.RSAPublicKey
) -> bool:
    """Return whether ``signature_b64`` is a valid signature over ``data``.

    Never raises for a mismatched, truncated or non-base64 signature; those
    simply verify as ``False``.
    """

    if not isinstance(signature_b64, str) or not signature_b64:
        return False
    try:
        signature = base64.b64decode(signature_b64, validate=True)
    except (binascii.Error, ValueError):
        return False
    try:
        public_key.verify(signature, data, padding.PKCS1v15(), hashes.SHA256())
    except InvalidSignature:
        return False
    return True


class Signer:
    """
    Signing abstraction over a single RSA keypair.

    Args:
    ----
        private_key: Loaded RSA private key.
        public_key: Optional RSA public key. When ``None`` it is derived from
            ``private_key``. When supplied it must match the private half.

    Attributes:
    ----------
        algorithm: Always ``"rsa-sha256"``.
        fingerprint: SHA-256 hex of the DER-encoded public key.

    """

    def __init__(
        self,
        private_key: rsa.RSAPrivateKey,
        public_key: rsa.RSAPublicKey | None = None,
    ) -> None:
        if not isinstance(private_key, rsa.RSAPrivateKey):
            raise KeyUnavailableError("Signing key must be an RSA private key")
        derived = private_key.public_key()
        if public_key is not None and public_key.public_numbers() != (
            derived.public_numbers()
        ):
            raise KeyUnavailableError(
                "Public key does not match the configured private key"
            )
        self._priv = private_key
        self.public_key: rsa.RSAPublicKey = public_key or derived
        self.algorithm = SIGNATURE_ALGORITHM
        der = self.public_key.public_bytes(
            encoding=serialization.Encoding.DER,
            format=serialization.PublicFormat.SubjectPublicKeyInfo,
        )
        self.fingerprint = hashlib.sha256(der).hexdigest()

    @property
    def public_key_pem(self) -> str:
        """PEM text of the public half, for out-of-band verification."""

        return _public_pem(self.public_key)

    def sign(self, data: bytes) -> str:
        """Return the base64 RSA-SHA256 signature over ``data``."""

        signature = self._priv.sign(data, padding.PKCS1v15(), hashes.SHA256())
        return base64.b64encode(signature).decode("ascii")

    def verify(self, data: bytes, signature_b64: str) -> bool:
        """Verify ``signature_b64`` against this signer's public key."""

        return verify_signature(data, signature_b64, self.public_key)


def _read_key_bytes(path: Path, label: str) -> bytes:
    try:
        return path.read_bytes()
    except OSError as exc:
        raise KeyUnavailableError(
            f"Unable to read {label} key material at {path}: {exc}"
        ) from exc


def load_public_key(path: str | Path) -> rsa.RSAPublicKey:
    """Load an RSA public key from a PEM file.

    Raises:
        KeyUnavailableError: If the file is missing, unreadable or not RSA.
    """

    key_path = Path(path)
    raw = _read_key_bytes(key_path, "public")
    try:
        key = serialization.load_pem_public_key(raw)
    except (ValueError, TypeError, UnsupportedAlgorithm) as exc:
        raise KeyUnavailableError(f"Invalid public key PEM at {key_path}") from exc
    if not isinstance(key, rsa.RSAPublicKey):
        raise KeyUnavailableError(f"Public key at {key_path} is not an RSA key")
    return key


def load_keypair(
    private_key_path: str | Path,
    public_key_path: str | Path | None = None,
    *,
    password: bytes | None = None,
) -> Signer:
    """Load the signing keypair from PEM files.

    Args:
        private_key_path: PEM-encoded RSA private key (PKCS#1 or PKCS#8).
        public_key_path: Optional PEM public key. When omitted the public
            half is derived from the private key.
        password: Optional passphrase for an encrypted private key.

    Returns:
        A :class:`Signer` holding the keypair for the process lifetime.

    Raises:
        KeyUnavailableError: If any key material is missing or unusable.
    """

    priv_path = Path(private_key_path)
    raw = _read_key_bytes(priv_path, "private")
    try:
        private_key = serialization.load_pem_private_key(raw, password=password)
    except (ValueError, TypeError, UnsupportedAlgorithm) as exc:
        raise KeyUnavailableError(f"Invalid private key PEM at {priv_path}") from exc
    if not isinstance(private_key, rsa.RSAPrivateKey):
        raise KeyUnavailableError(f"Private key at {priv_path} is not an RSA key")

    public_key = load_public_key(public_key_path) if public_key_path else None
    signer = Signer(private_key, public_key)
    LOGGER.info(
        "Loaded signing keypair",
        extra={"key_fingerprint": signer.fingerprint, "key_path": str(priv_path)},
    )
    return signer


def generate_keypair(
    private_key_path: str | Path,
    public_key_path: str | Path,
    *,
    key_size: int = 2048,
) -> Signer:
    """Generate an RSA keypair and write both halves as PEM files.

    The private key file is created with mode ``0o600``.
    """

    private_key = rsa.generate_private_key(public_exponent=65537, key_size=key_size)
    priv_path = Path(private_key_path)
    pub_path = Path(public_key_path)
    priv_path.parent.mkdir(parents=True, exist_ok=True)
    pub_path.parent.mkdir(parents=True, exist_ok=True)

    private_pem = private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    )
    fd = os.open(str(priv_path), os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
    with os.fdopen(fd, "wb") as fh:
        fh.write(private_pem)
    pub_path.write_text(_public_pem(private_key.public_key()), encoding="ascii")

    return Signer(private_key)
