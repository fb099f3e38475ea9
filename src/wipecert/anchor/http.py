"""Ledger bridge client speaking JSON over HTTP."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from typing import Any, cast
from urllib.parse import quote

import httpx

from ..errors import AnchorRejectedError, AnchorTimeoutError, AnchorUnavailableError
from ..settings import WipeCertSettings, get_settings
from .base import AnchorGateway, AnchorRecord

LOGGER = logging.getLogger(__name__)

_FAILED_STATES = frozenset({"failed", "reverted", "rejected"})
# Client errors that signal a busy or slow bridge rather than a refusal.
_TRANSIENT_STATUSES = frozenset({408, 425, 429})


class HttpAnchorGateway(AnchorGateway):
    """Anchor certificate digests through an HTTP ledger bridge.

    The bridge fronts the certificate registry contract and exposes:

    - ``POST /certificates`` with ``{certID, certHashHex}``
    - ``GET /transactions/{txHash}`` reporting ``pending``/``confirmed``/``failed``
    - ``GET /certificates/{certID}/verify?certHashHex=...``
    - ``GET /certificates/{certID}``

    Every request carries an explicit timeout. A submission is only reported
    as successful once the bridge says the transaction is ``confirmed``.
    """

    backend_name = "http"

    def __init__(
        self,
        base_url: str | None = None,
        *,
        api_token: str | None = None,
        timeout_seconds: float | None = None,
        confirm_timeout_seconds: float | None = None,
        poll_interval_seconds: float = 1.0,
        settings: WipeCertSettings | None = None,
        sleep: Callable[[float], None] = time.sleep,
        monotonic: Callable[[], float] = time.monotonic,
    ) -> None:
        settings_obj = settings or get_settings()
        resolved = base_url or settings_obj.ledger_url
        if not resolved:
            raise ValueError("HttpAnchorGateway requires a ledger base URL")
        self._base = resolved.rstrip("/")
        self._token = api_token or settings_obj.ledger_token
        self._timeout = (
            timeout_seconds
            if timeout_seconds is not None
            else settings_obj.ledger_timeout
        )
        self._confirm_timeout = (
            confirm_timeout_seconds
            if confirm_timeout_seconds is not None
            else settings_obj.confirm_timeout
        )
        self._poll_interval = poll_interval_seconds
        self._sleep = sleep
        self._monotonic = monotonic

    def _headers(self) -> dict[str, str]:
        headers = {"accept": "application/json"}
        if self._token:
            headers["authorization"] = f"Bearer {self._token}"
        return headers

    def _request(
        self,
        method: str,
        path: str,
        *,
        cert_id: str,
        json_body: dict[str, object] | None = None,
        params: dict[str, str] | None = None,
        allow_not_found: bool = False,
    ) -> dict[str, Any] | None:
        url = f"{self._base}{path}"
        try:
            with httpx.Client(timeout=self._timeout) as client:
                response = client.request(
                    method, url, headers=self._headers(), json=json_body, params=params
                )
                if allow_not_found and response.status_code == 404:
                    return None
                response.raise_for_status()
                payload = response.json()
        except httpx.TimeoutException as exc:
            LOGGER.warning(
                "Ledger request timed out",
                extra={"cert_id": cert_id, "url": url, "backend": self.backend_name},
            )
            raise AnchorTimeoutError(
                f"Ledger request {method} {path} timed out after {self._timeout}s"
            ) from exc
        except httpx.HTTPStatusError as exc:
            status = exc.response.status_code
            LOGGER.warning(
                "Ledger HTTP error",
                extra={
                    "cert_id": cert_id,
                    "url": url,
                    "status_code": status,
                    "backend": self.backend_name,
                },
            )
            if (
                method == "POST"
                and 400 <= status < 500
                and status not in _TRANSIENT_STATUSES
            ):
                raise AnchorRejectedError(
                    f"Ledger refused {method} {path}: HTTP {status}"
                ) from exc
            raise AnchorUnavailableError(
                f"Ledger request {method} {path} failed: HTTP {status}"
            ) from exc
        except httpx.HTTPError as exc:
            LOGGER.warning(
                "Ledger transport error",
                extra={"cert_id": cert_id, "url": url, "backend": self.backend_name},
                exc_info=exc,
            )
            raise AnchorUnavailableError(
                f"Ledger request {method} {path} failed: {exc}"
            ) from exc
        except ValueError as exc:
            raise AnchorUnavailableError(
                f"Ledger returned a non-JSON response for {method} {path}"
            ) from exc

        if not isinstance(payload, dict):
            raise AnchorUnavailableError(
                f"Ledger returned an unexpected payload for {method} {path}"
            )
        return payload

    def submit(self, cert_id: str, digest_hex: str) -> str:
        payload = cast(
            dict[str, Any],
            self._request(
                "POST",
                "/certificates",
                cert_id=cert_id,
                json_body={"certID": cert_id, "certHashHex": digest_hex},
            ),
        )
        tx_hash = payload.get("txHash")
        if not isinstance(tx_hash, str) or not tx_hash:
            raise AnchorUnavailableError("Ledger response missing txHash")

        status = str(payload.get("status", "pending")).lower()
        deadline = self._monotonic() + self._confirm_timeout
        while status != "confirmed":
            if status in _FAILED_STATES:
                raise AnchorRejectedError(
                    f"Ledger transaction {tx_hash} for {cert_id!r} ended as {status}"
                )
            if self._monotonic() >= deadline:
                raise AnchorTimeoutError(
                    f"Transaction {tx_hash} for {cert_id!r} not confirmed within "
                    f"{self._confirm_timeout}s; outcome unknown"
                )
            self._sleep(self._poll_interval)
            receipt = cast(
                dict[str, Any],
                self._request(
                    "GET",
                    f"/transactions/{quote(tx_hash, safe='')}",
                    cert_id=cert_id,
                ),
            )
            status = str(receipt.get("status", "pending")).lower()

        LOGGER.info(
            "Ledger transaction confirmed",
            extra={"cert_id": cert_id, "tx_hash": tx_hash, "backend": self.backend_name},
        )
        return tx_hash

    def query(self, cert_id: str, digest_hex: str) -> bool:
        payload = cast(
            dict[str, Any],
            self._request(
                "GET",
                f"/certificates/{quote(cert_id, safe='')}/verify",
                cert_id=cert_id,
                params={"certHashHex": digest_hex},
            ),
        )
        valid = payload.get("valid")
        if not isinstance(valid, bool):
            raise AnchorUnavailableError("Ledger verify response missing 'valid'")
        return valid

    def read(self, cert_id: str) -> AnchorRecord | None:
        payload = self._request(
            "GET",
            f"/certificates/{quote(cert_id, safe='')}",
            cert_id=cert_id,
            allow_not_found=True,
        )
        if payload is None:
            return None
        try:
            return AnchorRecord(
                cert_hash_hex=str(payload["certHashHex"]),
                timestamp=int(payload["timestamp"]),
                issuer=str(payload["issuer"]),
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise AnchorUnavailableError(
                f"Ledger record for {cert_id!r} is malformed"
            ) from exc
