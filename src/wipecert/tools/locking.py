"""
Cross-process file locking and durable rewrite helpers.

Both the NDJSON ledger and the JSON index are rewritten wholesale: the new
contents go to a temporary file in the same directory, which is flushed,
fsynced and atomically moved over the original with :func:`os.replace`.
The directory entry is then fsynced so the rename itself survives a crash.
Concurrent writers, including those in other processes, are serialised by
an exclusive ``portalocker`` lock on a sibling ``.lock`` file.
"""

from __future__ import annotations

import logging
import os
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import IO, Iterator

import portalocker

__all__ = ["atomic_write_bytes", "exclusive_file_lock", "fsync_directory"]

logger = logging.getLogger(__name__)


@contextmanager
def exclusive_file_lock(target: Path) -> Iterator[IO[bytes]]:
    """Hold an exclusive advisory lock guarding rewrites of ``target``."""

    lock_path = target.with_suffix(target.suffix + ".lock")
    lock_path.parent.mkdir(parents=True, exist_ok=True)
    with lock_path.open("a+b") as lock_fp:
        portalocker.lock(lock_fp, portalocker.LOCK_EX)
        try:
            yield lock_fp
        finally:
            try:
                portalocker.unlock(lock_fp)
            except portalocker.exceptions.LockException as exc:
                logger.warning("Failed to release file lock: %s", exc)


def fsync_directory(path: Path) -> None:
    """Durably flush directory metadata when supported by the platform."""
    if os.name == "nt":  # pragma: no cover - Windows does not need dir fsync
        return
    flags = getattr(os, "O_DIRECTORY", None)
    if flags is None:  # pragma: no cover - platform without O_DIRECTORY
        return
    fd = os.open(str(path), flags)
    try:
        os.fsync(fd)
    finally:
        os.close(fd)


def atomic_write_bytes(target: Path, data: bytes) -> None:
    """Replace ``target`` with ``data`` durably.

    Callers are expected to hold :func:`exclusive_file_lock` for ``target``.
    Any :class:`OSError` propagates after the temporary file is removed.
    """

    target.parent.mkdir(parents=True, exist_ok=True)
    temp_path: Path | None = None
    try:
        with tempfile.NamedTemporaryFile(
            "wb", dir=str(target.parent), prefix=f".{target.name}.", delete=False
        ) as tmp:
            temp_path = Path(tmp.name)
            tmp.write(data)
            tmp.flush()
            os.fsync(tmp.fileno())
        os.replace(temp_path, target)
    except Exception:
        if temp_path is not None and temp_path.exists():
            temp_path.unlink(missing_ok=True)
        raise

    try:
        fsync_directory(target.parent)
    except OSError as exc:
        logger.warning(
            "Failed to fsync directory",
            extra={"path": str(target.parent), "error": str(exc)},
        )
