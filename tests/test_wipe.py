"""Tests for the external wipe engine runner."""

from __future__ import annotations

import os
import stat
import subprocess
from pathlib import Path
from unittest.mock import patch

import pytest

from wipecert.errors import WipeEngineError, WipeEngineTimeout
from wipecert.wipe import run_wipe_engine

posix_only = pytest.mark.skipif(os.name != "posix", reason="shell script engine")


def _engine(tmp_path: Path, body: str) -> Path:
    script = tmp_path / "engine.sh"
    script.write_text("#!/bin/sh\n" + body, encoding="utf-8")
    script.chmod(script.stat().st_mode | stat.S_IXUSR)
    return script


@posix_only
def test_successful_run_parses_log(tmp_path: Path):
    engine = _engine(
        tmp_path,
        'echo "wiped $2"\n'
        'printf \'{"folder":"%s","files":[]}\' "$2" > "$4"\n',
    )
    output = tmp_path / "logs" / "wipe_log.json"

    result = run_wipe_engine(
        tmp_path / "target", engine_path=engine, output=output, timeout_seconds=10
    )

    assert result.success is True
    assert result.returncode == 0
    assert "wiped" in result.stdout
    assert result.log == {"folder": str(tmp_path / "target"), "files": []}


@posix_only
def test_non_zero_exit_is_structured_failure(tmp_path: Path):
    engine = _engine(tmp_path, 'echo "permission denied" >&2\nexit 3\n')
    result = run_wipe_engine("/nowhere", engine_path=engine, timeout_seconds=10)
    assert result.success is False
    assert result.returncode == 3
    assert "permission denied" in result.stderr
    assert result.log is None
    assert result.to_dict()["returncode"] == 3


def test_missing_engine_raises(tmp_path: Path):
    with pytest.raises(WipeEngineError):
        run_wipe_engine("/x", engine_path=tmp_path / "absent", timeout_seconds=1)


def test_timeout_raises_distinct_error(tmp_path: Path):
    with patch(
        "wipecert.wipe.subprocess.run",
        side_effect=subprocess.TimeoutExpired(cmd="engine", timeout=1),
    ):
        with pytest.raises(WipeEngineTimeout):
            run_wipe_engine("/x", engine_path="engine", timeout_seconds=1)
