"""Wipecert - tamper-evident wipe certificates anchored on an append-only ledger."""

from __future__ import annotations

from importlib import import_module
from typing import Any, TYPE_CHECKING

__all__ = [
    "AsyncCertificationService",
    "CertificationService",
    "IssueResult",
    "VerifyResult",
    "build_service",
    "canonicalize",
    "load_keypair",
]

if TYPE_CHECKING:
    from .aio import AsyncCertificationService
    from .schemas import IssueResult, VerifyResult
    from .service import CertificationService, build_service
    from .tools.canonicalize import canonicalize
    from .tools.signing import load_keypair


def __getattr__(name: str) -> Any:
    """Lazily import modules so ``import wipecert`` stays cheap."""

    module_map = {
        "AsyncCertificationService": "aio",
        "CertificationService": "service",
        "IssueResult": "schemas",
        "VerifyResult": "schemas",
        "build_service": "service",
        "canonicalize": "tools.canonicalize",
        "load_keypair": "tools.signing",
    }

    if name not in module_map:
        raise AttributeError(name)

    module = import_module(f".{module_map[name]}", __name__)
    return getattr(module, name)
