"""Tests for relgate.platform.process module."""

from __future__ import annotations

import sys
from pathlib import Path

import pytest

from relgate.core.result import Err, Ok
from relgate.platform.process import ProcessError, run

PY = sys.executable


class TestProcessError:
    def test_str_short_command(self) -> None:
        error = ProcessError(
            command=("git", "status"),
            returncode=1,
            stdout="",
            stderr="fatal: not a git repository",
        )
        assert str(error) == "git status failed (exit 1)"

    def test_str_long_command_truncated(self) -> None:
        error = ProcessError(
            command=("git", "-C", "/repo", "log", "--format=%H"),
            returncode=128,
            stdout="",
            stderr="error",
        )
        assert str(error) == "git -C /repo ... failed (exit 128)"

    def test_str_timed_out(self) -> None:
        error = ProcessError(("git", "log"), -1, "", "", timed_out=True)
        assert str(error) == "git log timed out"

    def test_frozen(self) -> None:
        error = ProcessError(("cmd",), 1, "", "")
        with pytest.raises(AttributeError):
            error.returncode = 2  # type: ignore[misc]


class TestRun:
    def test_success_returns_stdout(self, tmp_path: Path) -> None:
        result = run([PY, "-c", "print('hello')"], cwd=tmp_path)

        assert isinstance(result, Ok)
        assert "hello" in result.value

    def test_failure_returns_error(self, tmp_path: Path) -> None:
        result = run(
            [PY, "-c", "import sys; sys.stderr.write('bad ref'); sys.exit(42)"], cwd=tmp_path
        )

        assert isinstance(result, Err)
        assert result.error.returncode == 42
        assert "bad ref" in result.error.stderr
        assert result.error.timed_out is False

    def test_command_not_found(self, tmp_path: Path) -> None:
        result = run(["nonexistent_command_12345"], cwd=tmp_path)

        assert isinstance(result, Err)
        assert result.error.returncode == -1
        assert len(result.error.stderr) > 0

    def test_timeout_is_flagged(self, tmp_path: Path) -> None:
        result = run([PY, "-c", "import time; time.sleep(10)"], cwd=tmp_path, timeout=0.2)

        assert isinstance(result, Err)
        assert result.error.timed_out is True
        assert "timed out" in result.error.stderr.lower()
