"""Deterministic JSON canonicalization for certificate documents.

Two modes exist. The default sorts keys at every nesting level and emits
compact ``json.dumps`` output. The legacy top-level mode reproduces, byte for
byte, ``JSON.stringify`` over an object whose top-level keys were sorted,
which is how certificates from the earlier JavaScript signer were produced.
That covers its number formatting, UTF-16 code unit key ordering and the
integer-like-keys-first ordering of plain objects.
"""

from __future__ import annotations

import json
import math
from collections.abc import Mapping
from decimal import Decimal

from ..errors import InvalidDocumentError

__all__ = ["canonicalize", "canonical_text"]

_MAX_ARRAY_INDEX = 2**32 - 1


def _normalize(value: object, *, recursive: bool, path: str) -> object:
    """Return a JSON-ready copy of ``value`` restricted to safe types.

    Mappings are rebuilt with sorted keys when ``recursive`` is true and in
    insertion order otherwise. Hostile objects (custom classes, bytes, sets)
    are rejected rather than serialised through ``repr``.
    """

    if value is None or isinstance(value, (str, bool, int)):
        return value
    if isinstance(value, float):
        if math.isnan(value) or math.isinf(value):
            raise InvalidDocumentError(f"Non-finite number at {path}")
        return value
    if isinstance(value, (list, tuple)):
        return [
            _normalize(item, recursive=recursive, path=f"{path}[{index}]")
            for index, item in enumerate(value)
        ]
    if isinstance(value, Mapping):
        for key in value:
            if not isinstance(key, str):
                raise InvalidDocumentError(
                    f"Non-string key {key!r} at {path}; document keys must be strings"
                )
        keys = sorted(value) if recursive else list(value)
        return {
            key: _normalize(value[key], recursive=recursive, path=f"{path}.{key}")
            for key in keys
        }
    raise InvalidDocumentError(
        f"Unsupported value of type {type(value).__name__} at {path}"
    )


def _is_array_index(key: str) -> bool:
    """Return whether ``key`` is an integer-like property name.

    Plain objects list such keys first, in ascending numeric order, ahead of
    every other key.
    """

    if key == "0":
        return True
    if not key or key[0] not in "123456789" or not key.isascii() or not key.isdigit():
        return False
    return int(key) < _MAX_ARRAY_INDEX


def _object_key_order(keys: list[str]) -> list[str]:
    indices = sorted((key for key in keys if _is_array_index(key)), key=int)
    return indices + [key for key in keys if not _is_array_index(key)]


def _js_number(value: float) -> str:
    """Format a finite float the way ``JSON.stringify`` renders numbers.

    Both runtimes pick the shortest round-tripping digit string; only the
    placement of the decimal point and exponent differs.
    """

    if value == 0:
        return "0"
    sign = "-" if value < 0 else ""
    _, digit_tuple, exponent = Decimal(repr(abs(value))).as_tuple()
    digits = "".join(str(d) for d in digit_tuple)
    point = len(digits) + int(exponent)
    digits = digits.rstrip("0")
    count = len(digits)

    if count <= point <= 21:
        text = digits + "0" * (point - count)
    elif 0 < point <= 21:
        text = f"{digits[:point]}.{digits[point:]}"
    elif -6 < point <= 0:
        text = "0." + "0" * -point + digits
    else:
        power = point - 1
        mantissa = digits if count == 1 else f"{digits[0]}.{digits[1:]}"
        text = f"{mantissa}e{'+' if power > 0 else '-'}{abs(power)}"
    return sign + text


def _legacy_text(value: object) -> str:
    if value is None:
        return "null"
    if value is True:
        return "true"
    if value is False:
        return "false"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        return _js_number(value)
    if isinstance(value, str):
        return json.dumps(value, ensure_ascii=False)
    if isinstance(value, list):
        return "[" + ",".join(_legacy_text(item) for item in value) + "]"
    if isinstance(value, dict):
        members = (
            f"{json.dumps(key, ensure_ascii=False)}:{_legacy_text(value[key])}"
            for key in _object_key_order(list(value))
        )
        return "{" + ",".join(members) + "}"
    raise InvalidDocumentError(f"Unsupported value of type {type(value).__name__}")


def _utf16_units(key: str) -> bytes:
    return key.encode("utf-16-be", "surrogatepass")


def canonical_text(doc: object, *, recursive: bool = True) -> str:
    """Return the canonical JSON text for a certificate document.

    Args:
        doc: Non-empty mapping of field names to JSON-compatible values.
        recursive: When ``True`` keys are sorted at every nesting level. When
            ``False`` the output matches the legacy JavaScript signer: only
            top-level keys are sorted (by UTF-16 code units), nested mappings
            keep their insertion order and numbers use JavaScript formatting
            (``512.0`` renders as ``512``, ``1e-07`` as ``1e-7``).

    Returns:
        Compact JSON text (``,``/``:`` separators, non-ASCII unescaped).

    Raises:
        InvalidDocumentError: If ``doc`` is not a non-empty mapping or holds
            values that have no stable JSON form.
    """

    if not isinstance(doc, Mapping):
        raise InvalidDocumentError(
            f"Certificate document must be a mapping, got {type(doc).__name__}"
        )
    if not doc:
        raise InvalidDocumentError("Certificate document must not be empty")

    for key in doc:
        if not isinstance(key, str):
            raise InvalidDocumentError(
                f"Non-string key {key!r} at $; document keys must be strings"
            )
    # Top-level keys are always sorted; ``recursive`` only governs nesting.
    keys = sorted(doc) if recursive else sorted(doc, key=_utf16_units)
    top = {
        key: _normalize(doc[key], recursive=recursive, path=f"$.{key}")
        for key in keys
    }

    if not recursive:
        return _legacy_text(top)
    return json.dumps(
        top,
        separators=(",", ":"),
        ensure_ascii=False,
        allow_nan=False,
    )


def canonicalize(doc: object, *, recursive: bool = True) -> bytes:
    """Return the canonical form of ``doc`` as UTF-8 bytes."""

    return canonical_text(doc, recursive=recursive).encode("utf-8")
