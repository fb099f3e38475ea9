"""Bounded-time invocation of the external wipe engine.

The engine is a separate executable that overwrites the files under a target
folder and writes a JSON log. It is not part of the certification protocol;
its log can be fed to :meth:`CertificationService.issue` as the certificate
document.
"""

from __future__ import annotations

import json
import logging
import subprocess  # nosec B404: fixed argv, no shell
from dataclasses import dataclass
from pathlib import Path

from .errors import WipeEngineError, WipeEngineTimeout

__all__ = ["WipeResult", "run_wipe_engine"]

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class WipeResult:
    """Structured outcome of a wipe engine run."""

    success: bool
    returncode: int
    stdout: str
    stderr: str
    log: dict[str, object] | None = None

    def to_dict(self) -> dict[str, object]:
        return {
            "success": self.success,
            "returncode": self.returncode,
            "stdout": self.stdout,
            "stderr": self.stderr,
            "log": self.log,
        }


def _read_log(output: Path) -> dict[str, object] | None:
    try:
        data = json.loads(output.read_text(encoding="utf-8"))
    except FileNotFoundError:
        return None
    except (OSError, json.JSONDecodeError) as exc:
        LOGGER.warning(
            "Wipe engine log unreadable",
            extra={"path": str(output), "error": str(exc)},
        )
        return None
    return data if isinstance(data, dict) else None


def run_wipe_engine(
    target: str | Path,
    *,
    engine_path: str | Path,
    output: str | Path | None = None,
    timeout_seconds: float = 3600.0,
) -> WipeResult:
    """Run the wipe engine against ``target`` and wait at most ``timeout_seconds``.

    Args:
        target: Folder handed to the engine's ``--target`` option.
        engine_path: Path to the engine executable.
        output: Optional JSON log path handed to ``--output``; parsed into
            :attr:`WipeResult.log` when the engine wrote it.
        timeout_seconds: Hard time budget; the process is killed on expiry.

    Returns:
        A :class:`WipeResult`. A non-zero exit status yields
        ``success=False`` rather than an exception.

    Raises:
        WipeEngineError: If the executable cannot be started.
        WipeEngineTimeout: If the engine exceeded ``timeout_seconds``.
    """

    argv = [str(engine_path), "--target", str(target)]
    output_path = Path(output) if output is not None else None
    if output_path is not None:
        output_path.parent.mkdir(parents=True, exist_ok=True)
        argv += ["--output", str(output_path)]

    LOGGER.info(
        "Starting wipe engine",
        extra={"engine": str(engine_path), "target": str(target)},
    )
    try:
        completed = subprocess.run(  # nosec B603: argv list, no shell
            argv,
            capture_output=True,
            text=True,
            timeout=timeout_seconds,
            check=False,
        )
    except subprocess.TimeoutExpired as exc:
        raise WipeEngineTimeout(
            f"Wipe engine exceeded {timeout_seconds}s for {target}"
        ) from exc
    except OSError as exc:
        raise WipeEngineError(f"Unable to start wipe engine {engine_path}: {exc}") from exc

    success = completed.returncode == 0
    if not success:
        LOGGER.error(
            "Wipe engine failed",
            extra={"returncode": completed.returncode, "stderr": completed.stderr},
        )
    log = _read_log(output_path) if output_path is not None and success else None
    return WipeResult(
        success=success,
        returncode=completed.returncode,
        stdout=completed.stdout,
        stderr=completed.stderr,
        log=log,
    )
