"""Depth-bounded, security-checked directory enumeration.

Directories are walked with an explicit worklist rather than recursion so
deep or adversarial trees cannot exhaust the stack.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional, Set, Tuple

from .errors import DirectoryReadError, InvalidPathError, diagnostic
from .models import DirectoryStats, FileEntry, WalkResult
from .path_guard import PathGuard

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# File type taxonomy
# ---------------------------------------------------------------------------
FILE_TYPES: Dict[str, Tuple[str, ...]] = {
    "java": (".java", ".jsp", ".jspx", ".properties", ".groovy", ".kt", ".kts", ".scala", ".clj"),
    "javascript": (".js", ".jsx", ".ts", ".tsx", ".mjs", ".cjs", ".vue", ".svelte", ".elm", ".dart",
                   ".gql", ".graphql"),
    "python": (".py", ".pyw", ".pyi", ".ipynb"),
    "cpp": (".cpp", ".c", ".cc", ".cxx", ".h", ".hpp", ".hxx", ".s", ".asm"),
    "csharp": (".cs",),
    "web": (".html", ".htm", ".xhtml", ".css", ".scss", ".sass", ".less"),
    "config": (".json", ".yaml", ".yml", ".xml", ".toml", ".ini", ".env"),
    "build": (".gradle", ".maven", ".pom", ".cmake", ".makefile", ".dockerfile"),
    "sql": (".sql", ".ddl", ".dml"),
    "shell": (".sh", ".bash", ".zsh", ".ksh", ".bat", ".ps1", ".cmd"),
    "docs": (".md", ".txt", ".rst", ".adoc", ".tex", ".bib", ".log", ".csv", ".tsv", ".rmd"),
}

_EXTENSION_TYPES: Dict[str, str] = {}
for _type, _exts in FILE_TYPES.items():
    for _ext in _exts:
        _EXTENSION_TYPES.setdefault(_ext, _type)

DOC_FILENAMES = ("readme", "changelog", "license", "todo", "notes")

TYPE_ALIASES: Dict[str, Tuple[str, ...]] = {
    "config": ("config", "build"),
    "code": ("java", "javascript", "python", "cpp", "csharp", "web", "sql", "shell"),
}

SKIP_DIRS: Set[str] = {
    "node_modules", ".git", ".svn", ".hg", "target", "build", "dist",
    "bin", "obj", ".vscode", ".idea", "__pycache__", ".gradle",
    "vendor", "coverage", ".nyc_output", "logs", ".next", "out",
    "tmp", "temp", ".cache", ".pytest_cache", ".mypy_cache",
    "bower_components", "jspm_packages", ".sass-cache",
}

BINARY_EXTENSIONS: Set[str] = {
    ".exe", ".dll", ".so", ".dylib", ".bin", ".class", ".jar", ".war",
    ".zip", ".tar", ".gz", ".rar", ".7z", ".pdf", ".doc", ".docx",
    ".xls", ".xlsx", ".ppt", ".pptx", ".png", ".jpg", ".jpeg", ".gif",
    ".bmp", ".svg", ".ico", ".mp3", ".mp4", ".avi", ".mov", ".wmv",
}


def file_type_for(path: str) -> str:
    """Classify *path* into the type taxonomy (``unknown`` when nothing fits)."""
    name = os.path.basename(path).lower()
    ext = os.path.splitext(name)[1]
    # Extension-less names such as "Makefile" or "Dockerfile"
    file_type = _EXTENSION_TYPES.get(ext or "." + name, "unknown")
    if file_type == "unknown" and any(doc in name for doc in DOC_FILENAMES):
        return "docs"
    return file_type


def expand_file_types(file_types: Iterable[str]) -> Optional[Set[str]]:
    """Resolve type filter aliases; ``None`` means no filtering."""
    requested = [t.lower() for t in file_types]
    if not requested or "all" in requested:
        return None
    allowed: Set[str] = set()
    for name in requested:
        allowed.update(TYPE_ALIASES.get(name, (name,)))
    return allowed


class FileWalker:
    """Enumerate files under a root, honouring depth, skip sets and size limits."""

    def __init__(
        self,
        path_guard: Optional[PathGuard] = None,
        max_file_size: int = 50 * 1024 * 1024,
        max_depth: int = 30,
    ) -> None:
        self.path_guard = path_guard
        self.max_file_size = max_file_size
        self.max_depth = max_depth

    def walk(
        self,
        root: str,
        max_depth: Optional[int] = None,
        skip_dirs: Iterable[str] = (),
        extensions: Iterable[str] = (),
        accept: Optional[Callable[[FileEntry], bool]] = None,
        limit: Optional[int] = None,
        follow_symlinks: bool = False,
    ) -> WalkResult:
        """Walk *root* and return every eligible file.

        Args:
            root: Directory to enumerate.
            max_depth: Deepest directory level read (root is level 0).
            skip_dirs: Directory names skipped in addition to the defaults.
            extensions: If given, only files with these extensions are kept.
            accept: Extra predicate applied to each candidate entry.
            limit: Stop once this many entries have been collected.
            follow_symlinks: Descend into symlinked directories and files.

        Returns:
            WalkResult with entries in deterministic (sorted) order.
        """
        result = WalkResult()
        depth_limit = self.max_depth if max_depth is None else max_depth
        skip = SKIP_DIRS | {d.lower() for d in skip_dirs}
        wanted_exts = {e.lower() if e.startswith(".") else "." + e.lower() for e in extensions}

        root_path = os.path.abspath(os.path.expanduser(str(root)))
        if self.path_guard is not None:
            check = self.path_guard.validate(root_path)
            if not check.ok:
                result.errors.append(diagnostic(InvalidPathError, str(root), check.reason))
                return result
        if not os.path.isdir(root_path):
            result.errors.append(diagnostic(DirectoryReadError, str(root), "not a directory"))
            return result

        visited: Set[str] = {os.path.realpath(root_path)}
        # LIFO worklist; children pushed in reverse so they pop in name order
        worklist: List[Tuple[str, int]] = [(root_path, 0)]

        while worklist:
            if limit is not None and len(result.entries) >= limit:
                break
            directory, depth = worklist.pop()
            if depth > depth_limit:
                continue

            try:
                with os.scandir(directory) as it:
                    children = sorted(it, key=lambda e: e.name)
            except OSError as exc:
                logger.warning("Cannot read directory %s: %s", directory, exc)
                result.errors.append(diagnostic(DirectoryReadError, directory, exc))
                continue

            subdirs: List[str] = []
            for entry in children:
                if limit is not None and len(result.entries) >= limit:
                    break
                try:
                    is_link = entry.is_symlink()
                    if is_link and not follow_symlinks:
                        continue
                    if is_link and not self._link_allowed(entry.path, result):
                        continue

                    if entry.is_dir(follow_symlinks=follow_symlinks):
                        name = entry.name
                        if name.startswith(".") or name.lower() in skip:
                            logger.debug("Skipping directory: %s", entry.path)
                            continue
                        real = os.path.realpath(entry.path)
                        if real in visited:
                            continue
                        visited.add(real)
                        subdirs.append(entry.path)
                    elif entry.is_file(follow_symlinks=follow_symlinks):
                        if follow_symlinks:
                            real = os.path.realpath(entry.path)
                            if real in visited:
                                continue
                            visited.add(real)
                        result.discovered += 1
                        self._consider_file(entry, root_path, wanted_exts, accept, result)
                except OSError as exc:
                    logger.warning("Error processing entry %s: %s", entry.path, exc)
                    result.errors.append(diagnostic(DirectoryReadError, entry.path, exc))

            if depth + 1 <= depth_limit:
                for sub in reversed(subdirs):
                    worklist.append((sub, depth + 1))

        return result

    def _link_allowed(self, path: str, result: WalkResult) -> bool:
        if self.path_guard is None:
            return True
        check = self.path_guard.validate(path)
        if not check.ok:
            result.errors.append(diagnostic(InvalidPathError, path, check.reason))
            return False
        return True

    def _consider_file(
        self,
        entry: os.DirEntry,
        root_path: str,
        wanted_exts: Set[str],
        accept: Optional[Callable[[FileEntry], bool]],
        result: WalkResult,
    ) -> None:
        name = entry.name
        ext = os.path.splitext(name)[1].lower()
        if ext in BINARY_EXTENSIONS:
            result.skipped += 1
            return
        if wanted_exts and ext not in wanted_exts:
            return
        if entry.stat().st_size > self.max_file_size:
            logger.debug("Skipping large file: %s", entry.path)
            result.skipped += 1
            return

        file_entry = FileEntry(
            path=entry.path,
            relative_path=os.path.relpath(entry.path, root_path),
            name=name,
            extension=ext,
            file_type=file_type_for(entry.path),
            directory=os.path.dirname(entry.path),
        )
        if accept is not None and not accept(file_entry):
            return
        result.entries.append(file_entry)

    # ------------------------------------------------------------------
    # Directory statistics
    # ------------------------------------------------------------------

    def directory_stats(self, roots: Iterable[str]) -> DirectoryStats:
        """Count files by type and extension for each root."""
        stats = DirectoryStats()
        for root in roots:
            if not root:
                continue
            if not Path(root).is_dir():
                stats.directories.append({
                    "path": str(root),
                    "accessible": False,
                    "error": "Path is not a directory",
                    "file_count": 0,
                    "file_types": {},
                    "extensions": {},
                })
                continue

            walked = self.walk(root)
            dir_stats = {
                "path": str(root),
                "accessible": not any(e.startswith("InvalidPathError") for e in walked.errors),
                "error": walked.errors[0] if walked.errors else None,
                "file_count": len(walked.entries),
                "file_types": {},
                "extensions": {},
            }
            for entry in walked.entries:
                ext = entry.extension or "no-extension"
                dir_stats["file_types"][entry.file_type] = dir_stats["file_types"].get(entry.file_type, 0) + 1
                dir_stats["extensions"][ext] = dir_stats["extensions"].get(ext, 0) + 1
                stats.files_by_type[entry.file_type] = stats.files_by_type.get(entry.file_type, 0) + 1
                stats.files_by_extension[ext] = stats.files_by_extension.get(ext, 0) + 1

            stats.directories.append(dir_stats)
            stats.total_files += len(walked.entries)
        return stats
