"""Tests for the Path Guard allow-list / denylist validator."""

import os
import shutil
import sys
import tempfile
from pathlib import Path

import pytest

from codetrace.path_guard import PathGuard, blocked_patterns_for


class TestAllowedRoots:
    """Paths inside and outside the configured roots."""

    def test_path_inside_root_is_allowed(self, path_guard, temp_dir):
        """Test a nested path under an allowed root."""
        result = path_guard.validate(str(temp_dir / "src" / "Main.java"))

        assert result.ok
        assert result.normalized_path == os.path.abspath(str(temp_dir / "src" / "Main.java"))

    def test_root_itself_is_allowed(self, path_guard, temp_dir):
        """Test the allowed root itself."""
        assert path_guard.is_allowed(str(temp_dir))

    def test_path_outside_root_is_rejected(self, path_guard):
        """Test a path outside every allowed root."""
        outside = Path(tempfile.mkdtemp())
        try:
            result = path_guard.validate(str(outside))
        finally:
            shutil.rmtree(outside, ignore_errors=True)

        assert not result.ok
        assert result.code == "OUTSIDE_ALLOWED_ROOTS"

    def test_sibling_with_common_prefix_is_rejected(self, path_guard, temp_dir):
        """Test that /a/root-other does not count as inside /a/root."""
        result = path_guard.validate(str(temp_dir) + "-other")

        assert not result.ok
        assert result.code == "OUTSIDE_ALLOWED_ROOTS"

    def test_pathlike_is_accepted(self, path_guard, temp_dir):
        """Test that Path objects validate like strings."""
        assert path_guard.is_allowed(temp_dir / "a.txt")


class TestRejections:
    """Traversal, denylist and malformed input."""

    def test_traversal_rejected(self, path_guard, temp_dir):
        """Test that '..' segments are rejected before normalization hides them."""
        result = path_guard.validate(f"{temp_dir}/src/../../outside")

        assert not result.ok
        assert result.code == "TRAVERSAL_DETECTED"

    def test_dotdot_inside_name_is_not_traversal(self, path_guard, temp_dir):
        """Test that a file named 'a..b' is not a traversal."""
        assert path_guard.is_allowed(str(temp_dir / "a..b.txt"))

    @pytest.mark.parametrize("name", [".ssh/config", "keys/server.pem", "deploy/private.key", "id_rsa.pub"])
    def test_credential_paths_blocked(self, path_guard, temp_dir, name):
        """Test universal credential patterns inside an allowed root."""
        result = path_guard.validate(str(temp_dir / name))

        assert not result.ok
        assert result.code == "BLOCKED_PATH"

    @pytest.mark.parametrize("value", ["", None, 42])
    def test_invalid_input(self, path_guard, value):
        """Test empty and non-string input."""
        result = path_guard.validate(value)

        assert not result.ok
        assert result.code == "INVALID_INPUT"

    def test_path_too_long(self, temp_dir):
        """Test the path length ceiling."""
        guard = PathGuard([str(temp_dir)], max_path_length=50)
        result = guard.validate(str(temp_dir / ("x" * 60)))

        assert not result.ok
        assert result.code == "PATH_TOO_LONG"

    def test_extra_blocked_patterns(self, temp_dir):
        """Test caller-supplied denylist entries."""
        guard = PathGuard([str(temp_dir)], extra_blocked=[r"secrets"])

        assert not guard.is_allowed(str(temp_dir / "secrets" / "db.txt"))
        assert guard.is_allowed(str(temp_dir / "public" / "db.txt"))

    def test_system_directory_blocked_even_when_allowed(self):
        """Test that the platform denylist wins over an overly broad root."""
        guard = PathGuard(["/"], platform="linux")
        result = guard.validate("/etc/hosts")

        assert not result.ok
        assert result.code == "BLOCKED_PATH"


class TestPlatformPatterns:
    """Denylist selection by platform."""

    def test_windows_patterns(self):
        """Test Windows system directories."""
        patterns = blocked_patterns_for("win32")

        assert any(p.search(r"C:\Windows\System32") for p in patterns)
        assert any(p.search(r"D:\Program Files\App") for p in patterns)
        assert not any(p.search(r"C:\Users\dev\project") for p in patterns)

    def test_macos_includes_unix_directories(self):
        """Test that darwin blocks both /System and /etc."""
        patterns = blocked_patterns_for("darwin")

        assert any(p.search("/System/Library") for p in patterns)
        assert any(p.search("/etc/hosts") for p in patterns)

    def test_linux_does_not_block_home_or_tmp(self):
        """Test that user directories are governed by the allow-list only."""
        patterns = blocked_patterns_for("linux")

        assert not any(p.search("/home/dev/project") for p in patterns)
        assert not any(p.search("/tmp/build") for p in patterns)


@pytest.mark.skipif(sys.platform == "win32", reason="symlinks need privileges on Windows")
class TestSymlinks:
    """Symbolic link resolution."""

    def test_symlink_inside_root_allowed(self, path_guard, temp_dir):
        """Test a link whose target stays inside the root."""
        target = temp_dir / "real.txt"
        target.write_text("data")
        link = temp_dir / "link.txt"
        link.symlink_to(target)

        assert path_guard.is_allowed(str(link))

    def test_symlink_escaping_root_rejected(self, path_guard, temp_dir):
        """Test a link pointing outside the allowed roots."""
        outside = Path(tempfile.mkdtemp())
        try:
            link = temp_dir / "escape"
            link.symlink_to(outside, target_is_directory=True)
            result = path_guard.validate(str(link))
        finally:
            shutil.rmtree(outside, ignore_errors=True)

        assert not result.ok
        assert "SYMLINK_TO_BLOCKED" in path_guard.stats()["violations_by_type"]

    def test_symlink_loop_terminates(self, path_guard, temp_dir):
        """Test that a two-link cycle is rejected instead of recursing forever."""
        a = temp_dir / "a"
        b = temp_dir / "b"
        a.symlink_to(b)
        b.symlink_to(a)

        assert not path_guard.validate(str(a)).ok


class TestSecurityLog:
    """Bounded violation log and statistics."""

    def test_violations_recorded(self, path_guard, temp_dir):
        """Test that each rejection is logged by type."""
        path_guard.validate(f"{temp_dir}/../x")
        path_guard.validate(str(temp_dir / ".ssh" / "known_hosts"))

        stats = path_guard.stats()
        assert stats["total_violations"] == 2
        assert stats["violations_by_type"] == {"TRAVERSAL_ATTEMPT": 1, "BLOCKED_PATH": 1}

    def test_log_capacity_is_bounded(self, temp_dir):
        """Test that the oldest violations fall out of the ring buffer."""
        guard = PathGuard([str(temp_dir)], log_capacity=3)
        for i in range(5):
            guard.validate(f"{temp_dir}/../x{i}")

        stats = guard.stats()
        assert stats["total_violations"] == 3
        assert len(stats["recent_violations"]) == 3

    def test_logged_path_truncated(self, temp_dir):
        """Test that logged paths are cut to 100 characters."""
        guard = PathGuard([str(temp_dir)])
        guard.validate(str(temp_dir / "x" / ".." / ("y" * 200)))

        recent = guard.stats()["recent_violations"][-1]
        assert len(recent["path"]) <= 100

    def test_validate_many(self, path_guard, temp_dir):
        """Test batch validation keeps order and input paths."""
        paths = [str(temp_dir / "ok.txt"), f"{temp_dir}/../bad"]
        results = path_guard.validate_many(paths)

        assert [r["path"] for r in results] == paths
        assert [r["ok"] for r in results] == [True, False]
