"""Local certificate index implementations."""

from __future__ import annotations

from wipecert.index.base import CertificateIndex
from wipecert.index.json_file import JsonFileIndex
from wipecert.index.memory import InMemoryCertificateIndex

__all__ = ["CertificateIndex", "InMemoryCertificateIndex", "JsonFileIndex"]
