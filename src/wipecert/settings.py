"""Environment-backed settings primitives for :mod:`wipecert`."""

from __future__ import annotations

from typing import Literal

from pydantic import Field, ValidationInfo, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

__all__ = ["WipeCertSettings", "get_settings"]

_FLOAT_DEFAULTS: dict[str, float] = {
    "ledger_timeout": 10.0,
    "confirm_timeout": 60.0,
    "wipe_timeout": 3600.0,
}


class WipeCertSettings(BaseSettings):
    """Expose environment-derived configuration knobs for the certificate service.

    All environment access goes through this class. Attributes correspond to
    documented environment variables and fall back to local-development
    defaults when the variable is not present.

    Attributes:
        private_key_path: PEM file holding the RSA signing key.
        public_key_path: PEM file holding the matching public key. Optional;
            derived from the private key when unset.
        index_path: JSON file backing the local certificate index.
        verification_log_path: NDJSON audit trail of verification attempts.
            Blank disables it; the ``memory`` backend keeps it in process.
        ledger_backend: ``file`` (local NDJSON ledger), ``http`` (ledger
            bridge) or ``memory`` (ephemeral, tests only).
        ledger_path: NDJSON ledger location for the ``file`` backend.
        ledger_url: Base URL of the ledger bridge for the ``http`` backend.
        ledger_token: Optional bearer token for the ledger bridge.
        ledger_timeout: Per-request ledger timeout in seconds.
        confirm_timeout: Maximum wait for transaction confirmation in seconds.
        issuer: Issuer identity recorded by local ledger backends.
        canonical_mode: ``recursive`` sorts keys at every level;
            ``top_level`` reproduces certificates issued by legacy signers.
        wipe_engine_path: Path to the external wipe executable.
        wipe_timeout: Time budget for a wipe engine run in seconds.
    """

    private_key_path: str = Field(
        default="keys/private.pem", alias="WIPECERT_PRIVATE_KEY_PATH"
    )
    public_key_path: str | None = Field(
        default="keys/public.pem", alias="WIPECERT_PUBLIC_KEY_PATH"
    )
    index_path: str = Field(default="data/cert_index.json", alias="WIPECERT_INDEX_PATH")
    verification_log_path: str | None = Field(
        default="data/verification_log.ndjson", alias="WIPECERT_VERIFICATION_LOG"
    )
    ledger_backend: Literal["file", "http", "memory"] = Field(
        default="file", alias="WIPECERT_LEDGER_BACKEND"
    )
    ledger_path: str = Field(default="data/ledger.ndjson", alias="WIPECERT_LEDGER_PATH")
    ledger_url: str | None = Field(default=None, alias="WIPECERT_LEDGER_URL")
    ledger_token: str | None = Field(default=None, alias="WIPECERT_LEDGER_TOKEN")
    ledger_timeout: float = Field(default=10.0, alias="WIPECERT_LEDGER_TIMEOUT")
    confirm_timeout: float = Field(default=60.0, alias="WIPECERT_CONFIRM_TIMEOUT")
    issuer: str = Field(default="wipecert-local", alias="WIPECERT_ISSUER")
    canonical_mode: Literal["recursive", "top_level"] = Field(
        default="recursive", alias="WIPECERT_CANONICAL_MODE"
    )
    wipe_engine_path: str | None = Field(default=None, alias="WIPECERT_WIPE_ENGINE")
    wipe_timeout: float = Field(default=3600.0, alias="WIPECERT_WIPE_TIMEOUT")

    model_config = SettingsConfigDict(
        env_file=None, extra="ignore", populate_by_name=True
    )

    @field_validator("ledger_timeout", "confirm_timeout", "wipe_timeout", mode="before")
    @classmethod
    def _parse_positive_float(
        cls, value: object, info: ValidationInfo
    ) -> float:
        """Parse timeout fields, falling back to the default on malformed input.

        Args:
            value: Raw environment value.

        Returns:
            Parsed positive float, or the field default when conversion fails.
        """

        default = _FLOAT_DEFAULTS[info.field_name or ""]
        parsed: float | None = None
        if isinstance(value, (int, float)):
            parsed = float(value)
        elif isinstance(value, str):
            try:
                parsed = float(value.strip())
            except ValueError:
                parsed = None
        if parsed is None or parsed <= 0:
            return default
        return parsed

    @field_validator(
        "public_key_path",
        "ledger_url",
        "ledger_token",
        "verification_log_path",
        mode="before",
    )
    @classmethod
    def _blank_as_none(cls, value: object) -> object:
        """Treat empty environment values as unset."""

        if isinstance(value, str) and not value.strip():
            return None
        return value

    @property
    def recursive_canonical(self) -> bool:
        """Return whether documents are canonicalized at every nesting level."""

        return self.canonical_mode == "recursive"


def get_settings() -> WipeCertSettings:
    """Return a :class:`WipeCertSettings` instance.

    Returns:
        Settings parsed from environment variables.
    """

    return WipeCertSettings()
