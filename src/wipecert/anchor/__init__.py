"""Ledger anchoring gateways and the authoritative record type."""

from __future__ import annotations

from wipecert.anchor.base import AnchorGateway, AnchorRecord
from wipecert.anchor.http import HttpAnchorGateway
from wipecert.anchor.memory import InMemoryAnchorGateway
from wipecert.anchor.ndjson import FileAnchorGateway, validate_ledger

__all__ = [
    "AnchorGateway",
    "AnchorRecord",
    "FileAnchorGateway",
    "HttpAnchorGateway",
    "InMemoryAnchorGateway",
    "validate_ledger",
]
