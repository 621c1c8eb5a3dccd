"""Multi-strategy pattern search over a discovered file universe.

Each file gets a weighted list of regular-expression strategies chosen from
its type and the shape of the query.  Strategies run in weight order until
the per-file match ceiling is hit; matches keep the weight of the strategy
that found them as their relevance score.

Files are searched in fixed-size batches on a thread pool.  A batch is fully
joined before the next one starts, and no further batches are issued once the
running match count reaches ``max_results``.
"""

from __future__ import annotations

import bisect
import logging
import os
import re
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, replace
from typing import Callable, Dict, Iterable, Iterator, List, Optional, Pattern, Sequence, Tuple, Union

from .cache import NullCache, ResultCache, cache_key
from .config import SearchSettings
from .errors import FileReadError, InvalidArgumentError, InvalidPathError, MalformedPatternError, diagnostic
from .models import FileEntry, SearchMatch, SearchQuery, SearchResponse, SearchSummary
from .path_guard import PathGuard
from .walker import FileWalker, expand_file_types

logger = logging.getLogger(__name__)

FUNCTION_TYPES = {"javascript", "python", "cpp", "csharp"}


@dataclass(frozen=True)
class Strategy:
    name: str
    pattern: str
    weight: float
    case_sensitive: bool


def build_strategies(query: str, file_type: str, case_sensitive: bool = False) -> List[Strategy]:
    """Return the strategies for *file_type*, highest weight first.

    The sort is stable, so among equal weights the order of insertion below
    decides which strategy is tried first.
    """
    cs = case_sensitive
    strategies: List[Strategy] = []

    if file_type == "java":
        if "class" in query:
            strategies.append(Strategy("java_class", query, 10, cs))
        if "import" in query:
            strategies.append(Strategy("java_import", query, 10, cs))
        if "package" in query:
            strategies.append(Strategy("java_package", query, 10, cs))
        if "(" in query or "method" in query:
            pattern = query if "(" in query else rf"{query}\s*\("
            strategies.append(Strategy("java_method", pattern, 9, cs))

    if file_type == "docs":
        strategies.append(Strategy("heading", rf"^#+\s*.*{query}", 8, cs))
        strategies.append(Strategy("list_item", rf"^\s*[-*]\s*.*{query}", 7, cs))

    if file_type in FUNCTION_TYPES:
        keyword = "def" if file_type == "python" else "function"
        pattern = query if keyword in query else rf"{keyword}\s+{query}"
        strategies.append(Strategy("function", pattern, 8, cs))

    strategies.append(Strategy("variable", rf"\b{query}\b", 6, cs))
    if not case_sensitive:
        strategies.append(Strategy("case_insensitive", query, 5, False))
    # The exact strategy never ignores case; that is what makes it exact.
    strategies.append(Strategy("exact", query, 10, True))

    return sorted(strategies, key=lambda s: -s.weight)


def compile_strategy(strategy: Strategy) -> Tuple[Pattern[str], bool]:
    """Compile a strategy, falling back to a literal pattern if the regex is malformed.

    Returns:
        Tuple of (compiled pattern, whether the literal fallback was used).
    """
    flags = re.MULTILINE
    if not strategy.case_sensitive:
        flags |= re.IGNORECASE
    try:
        return re.compile(strategy.pattern, flags), False
    except (re.error, OverflowError, RecursionError) as exc:
        logger.debug("%s", diagnostic(MalformedPatternError, strategy.name, exc))
        return re.compile(re.escape(strategy.pattern), flags), True


class _LineIndex:
    """Maps character offsets to 1-based line numbers and columns."""

    def __init__(self, content: str) -> None:
        self.lines = content.split("\n")
        self.starts: List[int] = [0]
        for line in self.lines[:-1]:
            self.starts.append(self.starts[-1] + len(line) + 1)

    def locate(self, offset: int) -> Tuple[int, int]:
        line = bisect.bisect_right(self.starts, offset)
        return line, offset - self.starts[line - 1] + 1

    def context(self, line: int, radius: int) -> str:
        start = max(0, line - radius - 1)
        end = min(len(self.lines), line + radius)
        return "\n".join(self.lines[start:end])


class SearchEngine:
    """Pattern search engine bound to one Path Guard, walker and cache."""

    def __init__(
        self,
        settings: Optional[SearchSettings] = None,
        path_guard: Optional[PathGuard] = None,
        walker: Optional[FileWalker] = None,
        cache: Optional[ResultCache] = None,
    ) -> None:
        self.settings = settings or SearchSettings()
        self.path_guard = path_guard if path_guard is not None else PathGuard(self.settings.allowed_paths)
        self.walker = walker or FileWalker(
            self.path_guard,
            max_file_size=self.settings.max_file_size,
            max_depth=self.settings.max_depth,
        )
        self.cache: ResultCache = cache if cache is not None else NullCache()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def make_query(self, text: str, **options) -> SearchQuery:
        return SearchQuery.from_options(text, self.settings.query_defaults, **options)

    def search(self, query: str, roots: Union[str, Sequence[str]], **options) -> SearchResponse:
        """Search *roots* for *query*.

        Args:
            query: Pattern text; treated as a regex, literal if malformed.
            roots: One root directory or a list of them.
            **options: ``file_types``, ``case_sensitive``, ``max_results``,
                ``max_files``, ``context_lines``, ``exclude_patterns``.

        Returns:
            SearchResponse with ranked matches and a summary.

        Raises:
            InvalidArgumentError: No roots, or a blank query.
        """
        root_list = normalize_roots(roots)
        return self.run(self.make_query(query, **options), root_list)

    def run(self, query: SearchQuery, roots: List[str]) -> SearchResponse:
        if not roots:
            raise InvalidArgumentError("At least one search root is required")
        if not query.text or not query.text.strip():
            raise InvalidArgumentError("Search query must not be empty")

        key = cache_key("search", query, roots)
        cached = self.cache.get(key)
        if cached is not None:
            logger.debug("Cache hit for query %r", query.text)
            return _copy_response(cached)

        files, summary = self.discover(roots, query)
        if not files:
            summary.message = "No files found matching the specified file types"
            response = SearchResponse(query.text, list(roots), [], summary)
        else:
            results = self.search_files(query, files, summary)
            summary.match_count = len(results)
            response = SearchResponse(query.text, list(roots), results, summary)

        logger.debug(
            "Search for %r complete: %d matches in %d files",
            query.text, summary.match_count, summary.processed_files,
        )
        self.cache.set(key, _copy_response(response))
        return response

    def discover(self, roots: Iterable[str], query: SearchQuery) -> Tuple[List[FileEntry], SearchSummary]:
        """Enumerate and filter the file universe for *query*.

        At most ``query.max_files`` entries are returned; enumeration stops as
        soon as that many have been collected.
        """
        summary = SearchSummary()
        files: List[FileEntry] = []
        accept = self.file_filter(query.file_types, query.exclude_patterns)

        for root in roots:
            remaining = query.max_files - len(files)
            if remaining <= 0:
                logger.debug("Reached max files (%d); not walking %s", query.max_files, root)
                break
            walked = self.walker.walk(root, accept=accept, limit=remaining)
            summary.total_files += walked.discovered
            summary.skipped_files += walked.skipped
            summary.errors.extend(walked.errors)
            files.extend(walked.entries)
            logger.debug("Found %d eligible files in %s (%d seen)", len(walked.entries), root, walked.discovered)

        summary.filtered_files = len(files)
        return files, summary

    def search_files(
        self,
        query: SearchQuery,
        files: Sequence[FileEntry],
        summary: Optional[SearchSummary] = None,
    ) -> List[SearchMatch]:
        """Search an already-discovered file universe."""
        summary = summary if summary is not None else SearchSummary()
        if query.max_results <= 0 or not files:
            return []

        strategies_by_type: Dict[str, List[Strategy]] = {}
        for entry in files:
            if entry.file_type not in strategies_by_type:
                strategies_by_type[entry.file_type] = build_strategies(
                    query.text, entry.file_type, query.case_sensitive
                )

        batch_size = max(1, self.settings.batch_size)
        found: List[SearchMatch] = []

        def work(entry: FileEntry) -> Tuple[List[SearchMatch], Optional[str]]:
            return self._search_file_safe(entry, query, strategies_by_type[entry.file_type])

        with ThreadPoolExecutor(max_workers=max(1, self.settings.max_workers)) as executor:
            for start in range(0, len(files), batch_size):
                batch = files[start:start + batch_size]
                for matches, error in executor.map(work, batch):
                    if error:
                        summary.errors.append(error)
                        continue
                    summary.processed_files += 1
                    found.extend(matches)
                if len(found) >= query.max_results:
                    logger.debug("Reached max results (%d), stopping early", query.max_results)
                    break

        return rank_matches(found, query.max_results)

    def search_file(self, entry: FileEntry, query: SearchQuery) -> List[SearchMatch]:
        """Search a single file; errors propagate to the caller."""
        strategies = build_strategies(query.text, entry.file_type, query.case_sensitive)
        return self._search_file(entry, query, strategies)

    # ------------------------------------------------------------------
    # File filtering
    # ------------------------------------------------------------------

    @staticmethod
    def file_filter(
        file_types: Iterable[str],
        exclude_patterns: Iterable[str] = (),
    ) -> Callable[[FileEntry], bool]:
        allowed = expand_file_types(file_types)
        excludes = [_compile_exclude(p) for p in exclude_patterns if p]

        def accept(entry: FileEntry) -> bool:
            if allowed is not None and entry.file_type not in allowed:
                return False
            return not any(rx.search(entry.path) for rx in excludes)

        return accept

    # ------------------------------------------------------------------
    # Per-file search
    # ------------------------------------------------------------------

    def _search_file_safe(
        self,
        entry: FileEntry,
        query: SearchQuery,
        strategies: List[Strategy],
    ) -> Tuple[List[SearchMatch], Optional[str]]:
        try:
            return self._search_file(entry, query, strategies), None
        except _SkipFile as skip:
            return [], skip.diagnostic
        except (OSError, UnicodeError) as exc:
            logger.warning("Cannot read file %s: %s", entry.path, exc)
            return [], diagnostic(FileReadError, entry.path, exc)
        except Exception as exc:
            logger.warning("Error searching file %s: %s", entry.path, exc)
            return [], diagnostic(FileReadError, entry.path, exc)

    def _search_file(
        self,
        entry: FileEntry,
        query: SearchQuery,
        strategies: List[Strategy],
    ) -> List[SearchMatch]:
        if self.path_guard is not None:
            check = self.path_guard.validate(entry.path)
            if not check.ok:
                raise _SkipFile(diagnostic(InvalidPathError, entry.path, check.reason))
        if os.path.getsize(entry.path) > self.settings.max_file_size:
            raise _SkipFile(diagnostic(FileReadError, entry.path, "exceeds size limit"))

        with open(entry.path, "r", encoding="utf-8", errors="replace") as f:
            content = f.read()

        index = _LineIndex(content)
        ceiling = max(1, self.settings.max_matches_per_file)
        collected: List[SearchMatch] = []

        for strategy in strategies:
            if len(collected) >= ceiling:
                break
            collected.extend(self._find_matches(entry, content, index, strategy, query.context_lines, ceiling))

        best: Dict[int, SearchMatch] = {}
        for match in collected:
            current = best.get(match.line)
            if current is None or match.score > current.score:
                best[match.line] = match

        ordered = sorted(best.values(), key=lambda m: (-m.score, m.line))
        return ordered[:ceiling]

    @staticmethod
    def _find_matches(
        entry: FileEntry,
        content: str,
        index: _LineIndex,
        strategy: Strategy,
        context_lines: int,
        limit: int,
    ) -> List[SearchMatch]:
        regex, _ = compile_strategy(strategy)
        results: List[SearchMatch] = []
        seen_lines = set()
        for start, text in _iter_matches(regex, content):
            line, column = index.locate(start)
            if line in seen_lines:
                continue
            seen_lines.add(line)
            results.append(
                SearchMatch(
                    file=entry,
                    line=line,
                    column=column,
                    match_text=text,
                    context=index.context(line, context_lines),
                    strategy=strategy.name,
                    score=strategy.weight,
                )
            )
            if len(results) >= limit:
                break
        return results


class _SkipFile(Exception):
    def __init__(self, diagnostic_text: str) -> None:
        super().__init__(diagnostic_text)
        self.diagnostic = diagnostic_text


def _iter_matches(regex: Pattern[str], content: str) -> Iterator[Tuple[int, str]]:
    for m in regex.finditer(content):
        if m.end() > m.start():
            yield m.start(), m.group(0)


def _compile_exclude(pattern: str) -> Pattern[str]:
    try:
        return re.compile(pattern)
    except re.error:
        return re.compile(re.escape(pattern))


def rank_matches(matches: Iterable[SearchMatch], limit: int) -> List[SearchMatch]:
    """Deduplicate by (file, line) keeping the best score, then sort and cut."""
    best: Dict[Tuple[str, int], SearchMatch] = {}
    for match in matches:
        current = best.get(match.key)
        if current is None or match.score > current.score:
            best[match.key] = match
    ordered = sorted(
        best.values(),
        key=lambda m: (-m.score, m.file.relative_path, m.file.path, m.line),
    )
    return ordered[:max(0, limit)]


def normalize_roots(roots: Union[str, os.PathLike, Sequence[str], None]) -> List[str]:
    if roots is None:
        return []
    if isinstance(roots, (str, os.PathLike)):
        roots = [os.fspath(roots)]
    return [os.fspath(r) for r in roots if r]


def _copy_response(response: SearchResponse) -> SearchResponse:
    return SearchResponse(
        query=response.query,
        roots=list(response.roots),
        results=list(response.results),
        summary=replace(response.summary, errors=list(response.summary.errors)),
    )
