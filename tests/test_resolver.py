"""
Tests for Claude Code executable resolution.
"""

from __future__ import annotations

import threading
from pathlib import Path
from unittest.mock import patch

import pytest

from cce.core.launch import ExecutableNotFoundError, ExecutableResolver


def _which_only(name: str, path: str):
    def fake_which(candidate: str) -> str | None:
        return path if candidate == name else None

    return fake_which


class TestExecutableResolver:
    """Tests for ExecutableResolver."""

    def test_primary_name_first(self) -> None:
        with patch("shutil.which", side_effect=lambda c: f"/usr/bin/{c}"):
            assert ExecutableResolver().resolve() == "/usr/bin/claude-code"

    def test_falls_back_to_alternatives(self) -> None:
        with patch("shutil.which", side_effect=_which_only("claude", "/opt/bin/claude")):
            assert ExecutableResolver().resolve() == "/opt/bin/claude"

    def test_not_found_lists_candidates(self) -> None:
        with patch("shutil.which", return_value=None):
            with pytest.raises(ExecutableNotFoundError) as exc_info:
                ExecutableResolver().resolve()

        error = exc_info.value
        assert error.candidates == ["claude-code", "claude", "claude_code"]
        assert "claude-code" in str(error)
        assert any("PATH" in s for s in error.suggestions)

    def test_result_is_cached(self) -> None:
        with patch("shutil.which", return_value="/usr/bin/claude-code") as mock_which:
            resolver = ExecutableResolver()
            resolver.resolve()
            resolver.resolve()

        assert mock_which.call_count == 1
        assert resolver.cached_path == "/usr/bin/claude-code"

    def test_failure_is_not_cached(self) -> None:
        resolver = ExecutableResolver()
        with patch("shutil.which", return_value=None):
            with pytest.raises(ExecutableNotFoundError):
                resolver.resolve()

        with patch("shutil.which", return_value="/usr/bin/claude-code"):
            assert resolver.resolve() == "/usr/bin/claude-code"

    def test_set_path_bypasses_lookup(self) -> None:
        resolver = ExecutableResolver()
        resolver.set_path("/custom/claude")

        with patch("shutil.which") as mock_which:
            assert resolver.resolve() == "/custom/claude"
        mock_which.assert_not_called()

    def test_explicit_path_checked_first(self, tmp_path: Path) -> None:
        exe = tmp_path / "claude"
        exe.write_text("#!/bin/sh\nexit 0\n")
        exe.chmod(0o755)

        resolver = ExecutableResolver(explicit_path=str(exe))
        with patch("shutil.which", return_value="/usr/bin/claude-code"):
            assert resolver.resolve() == str(exe)

    def test_non_executable_explicit_path_skipped(self, tmp_path: Path) -> None:
        exe = tmp_path / "claude"
        exe.write_text("not executable")
        exe.chmod(0o644)

        resolver = ExecutableResolver(explicit_path=str(exe))
        with patch("shutil.which", return_value="/usr/bin/claude-code"):
            assert resolver.resolve() == "/usr/bin/claude-code"

    def test_non_executable_explicit_path_not_found(self, tmp_path: Path) -> None:
        exe = tmp_path / "claude"
        exe.write_text("not executable")
        exe.chmod(0o644)

        resolver = ExecutableResolver(explicit_path=str(exe), alternatives=())
        with patch("shutil.which", return_value=None):
            with pytest.raises(ExecutableNotFoundError) as exc_info:
                resolver.resolve()
        assert exc_info.value.candidates[0] == str(exe)

    def test_custom_names(self) -> None:
        resolver = ExecutableResolver("my-claude", ["fallback"])
        assert resolver.candidates == ["my-claude", "fallback"]

    def test_concurrent_resolution_walks_path_once(self) -> None:
        resolver = ExecutableResolver()
        results: list[str] = []
        barrier = threading.Barrier(8)

        def worker() -> None:
            barrier.wait()
            results.append(resolver.resolve())

        with patch("shutil.which", return_value="/usr/bin/claude-code") as mock_which:
            threads = [threading.Thread(target=worker) for _ in range(8)]
            for t in threads:
                t.start()
            for t in threads:
                t.join()

        assert results == ["/usr/bin/claude-code"] * 8
        assert mock_which.call_count == 1
