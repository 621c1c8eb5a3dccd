"""Tests for directory walking and file classification."""

import os
import sys

import pytest

from codetrace.path_guard import PathGuard
from codetrace.walker import FileWalker, expand_file_types, file_type_for


class TestFileTypes:
    """File type taxonomy."""

    @pytest.mark.parametrize(
        "name,expected",
        [
            ("Main.java", "java"),
            ("app.properties", "java"),
            ("index.tsx", "javascript"),
            ("tool.py", "python"),
            ("schema.sql", "sql"),
            ("settings.yaml", "config"),
            ("deploy.sh", "shell"),
            ("guide.md", "docs"),
            ("README", "docs"),
            ("CHANGELOG", "docs"),
            ("Makefile", "build"),
            ("Dockerfile", "build"),
            ("photo.xyz", "unknown"),
        ],
    )
    def test_file_type_for(self, name, expected):
        """Test classification by extension and by well-known names."""
        assert file_type_for(f"/repo/{name}") == expected

    def test_known_extension_beats_doc_name(self):
        """Test that a recognised extension wins over doc-like file names."""
        assert file_type_for("/repo/readme_parser.py") == "python"

    def test_expand_aliases(self):
        """Test type filter aliases."""
        assert expand_file_types(["config"]) == {"config", "build"}
        assert "java" in expand_file_types(["code"])
        assert expand_file_types(["java", "SQL"]) == {"java", "sql"}

    def test_all_disables_filtering(self):
        """Test that 'all' and an empty filter mean no filtering."""
        assert expand_file_types(["all"]) is None
        assert expand_file_types([]) is None


class TestWalk:
    """FileWalker.walk behaviour."""

    def test_skips_vendor_and_hidden_directories(self, walker, sample_project):
        """Test that node_modules and .git are never entered."""
        result = walker.walk(str(sample_project))
        paths = [e.relative_path for e in result.entries]

        assert paths
        assert not any("node_modules" in p for p in paths)
        assert not any(p.startswith(".git") for p in paths)

    def test_entries_sorted_and_classified(self, walker, sample_project):
        """Test deterministic order and per-entry metadata."""
        first = walker.walk(str(sample_project))
        second = walker.walk(str(sample_project))

        assert [e.path for e in first.entries] == [e.path for e in second.entries]
        by_name = {e.name: e for e in first.entries}
        assert by_name["schema.sql"].file_type == "sql"
        assert by_name["schema.sql"].extension == ".sql"
        assert by_name["schema.sql"].relative_path == os.path.join("db", "schema.sql")

    def test_depth_bound(self, walker, temp_dir, make_tree):
        """Test that files deeper than max_depth are not returned."""
        make_tree(temp_dir, {
            "top.txt": "0",
            "a/one.txt": "1",
            "a/b/two.txt": "2",
            "a/b/c/three.txt": "3",
            "a/b/c/d/four.txt": "4",
        })
        result = walker.walk(str(temp_dir), max_depth=2)
        names = {e.name for e in result.entries}

        assert names == {"top.txt", "one.txt", "two.txt"}
        assert all(e.relative_path.count(os.sep) <= 2 for e in result.entries)

    def test_binary_files_skipped(self, walker, temp_dir, make_tree):
        """Test that binary extensions are counted as skipped."""
        make_tree(temp_dir, {"logo.png": "not really", "code.js": "x"})
        result = walker.walk(str(temp_dir))

        assert [e.name for e in result.entries] == ["code.js"]
        assert result.skipped == 1
        assert result.discovered == 2

    def test_large_files_skipped(self, path_guard, temp_dir, make_tree):
        """Test the per-file size limit."""
        make_tree(temp_dir, {"small.txt": "ok", "big.txt": "x" * 200})
        walker = FileWalker(path_guard, max_file_size=100)
        result = walker.walk(str(temp_dir))

        assert [e.name for e in result.entries] == ["small.txt"]
        assert result.skipped == 1

    def test_extension_filter(self, walker, sample_project):
        """Test the extension allow-list."""
        result = walker.walk(str(sample_project), extensions=["java"])

        assert result.entries
        assert all(e.extension == ".java" for e in result.entries)

    def test_extra_skip_dirs(self, walker, sample_project):
        """Test caller-supplied directory names to skip."""
        result = walker.walk(str(sample_project), skip_dirs=["web"])

        assert not any(e.name == "app.js" for e in result.entries)

    def test_accept_predicate_and_limit(self, walker, sample_project):
        """Test the entry predicate and the early-stop limit."""
        java_only = walker.walk(str(sample_project), accept=lambda e: e.file_type == "java")
        limited = walker.walk(str(sample_project), limit=2)

        assert java_only.entries and all(e.file_type == "java" for e in java_only.entries)
        assert len(limited.entries) == 2

    def test_missing_root_reports_error(self, walker, temp_dir):
        """Test that a missing root produces a diagnostic instead of raising."""
        result = walker.walk(str(temp_dir / "missing"))

        assert result.entries == []
        assert result.errors and result.errors[0].startswith("DirectoryReadError")

    def test_unreadable_directory_skipped(self, walker, temp_dir, make_tree, monkeypatch):
        """Test that a directory that cannot be listed is reported and its siblings still walked."""
        make_tree(temp_dir, {"a/one.py": "1", "locked/two.py": "2", "z/three.py": "3"})
        real_scandir = os.scandir

        def scandir(path):
            if os.path.basename(os.fspath(path)) == "locked":
                raise PermissionError(13, "Permission denied", os.fspath(path))
            return real_scandir(path)

        with monkeypatch.context() as patched:
            patched.setattr(os, "scandir", scandir)
            result = walker.walk(str(temp_dir))

        assert [e.relative_path for e in result.entries] == [
            os.path.join("a", "one.py"),
            os.path.join("z", "three.py"),
        ]
        assert len(result.errors) == 1
        assert result.errors[0].startswith("DirectoryReadError")
        assert "locked" in result.errors[0]

    def test_disallowed_root_reports_error(self, temp_dir, make_tree):
        """Test that a root rejected by the Path Guard is not walked."""
        make_tree(temp_dir, {"allowed/a.txt": "a", "other/b.txt": "b"})
        walker = FileWalker(PathGuard([str(temp_dir / "allowed")]))
        result = walker.walk(str(temp_dir / "other"))

        assert result.entries == []
        assert result.errors[0].startswith("InvalidPathError")

    @pytest.mark.skipif(sys.platform == "win32", reason="symlinks need privileges on Windows")
    def test_symlink_cycle_terminates(self, walker, temp_dir, make_tree):
        """Test that following a link back to an ancestor does not loop."""
        make_tree(temp_dir, {"pkg/mod.py": "x = 1\n"})
        (temp_dir / "pkg" / "loop").symlink_to(temp_dir, target_is_directory=True)

        result = walker.walk(str(temp_dir), follow_symlinks=True)

        assert [e.name for e in result.entries] == ["mod.py"]

    @pytest.mark.skipif(sys.platform == "win32", reason="symlinks need privileges on Windows")
    def test_symlinks_ignored_by_default(self, walker, temp_dir, make_tree):
        """Test that links are skipped unless follow_symlinks is set."""
        make_tree(temp_dir, {"real.py": "x = 1\n"})
        (temp_dir / "alias.py").symlink_to(temp_dir / "real.py")

        result = walker.walk(str(temp_dir))

        assert [e.name for e in result.entries] == ["real.py"]


class TestDirectoryStats:
    """Directory statistics."""

    def test_counts_by_type(self, walker, sample_project):
        """Test per-type and per-extension counts."""
        stats = walker.directory_stats([str(sample_project)])

        assert stats.total_files == 6
        assert stats.files_by_type["java"] == 3
        assert stats.files_by_extension[".sql"] == 1
        assert stats.directories[0]["accessible"] is True

    def test_missing_directory(self, walker, temp_dir):
        """Test that a missing root is reported as inaccessible."""
        stats = walker.directory_stats([str(temp_dir / "nope")])

        assert stats.total_files == 0
        assert stats.directories[0]["accessible"] is False
