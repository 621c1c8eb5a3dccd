"""Service facade wiring the Path Guard, walker, search engine, tracer and resolver."""

from __future__ import annotations

from typing import Dict, Optional, Sequence, Union

from .cache import NullCache, ResultCache
from .config import SearchSettings, load_settings
from .log_tracer import LogTracer
from .models import AnalysisResult, DirectoryStats, SearchResponse, TraceReport
from .path_guard import PathGuard
from .resolver import DependencyResolver
from .search_engine import SearchEngine, normalize_roots
from .walker import FileWalker

Roots = Union[str, Sequence[str]]


class CodeTraceService:
    """Owns one instance of every core component; nothing is process-global."""

    def __init__(self, settings: Optional[SearchSettings] = None, cache: Optional[ResultCache] = None):
        self.settings = settings or load_settings()
        if cache is None:
            cache = ResultCache(self.settings.cache_size) if self.settings.cache_enabled else NullCache()
        self.cache = cache
        self.path_guard = PathGuard(self.settings.allowed_paths)
        self.walker = FileWalker(
            self.path_guard,
            max_file_size=self.settings.max_file_size,
            max_depth=self.settings.max_depth,
        )
        self.engine = SearchEngine(self.settings, self.path_guard, self.walker, self.cache)
        self.tracer = LogTracer(self.engine)
        self.resolver = DependencyResolver(
            self.engine,
            max_traversal_depth=self.settings.max_traversal_depth,
            config_namespaces=self.settings.config_namespaces,
        )

    def search(self, query: str, roots: Roots, **options) -> SearchResponse:
        return self.engine.search(query, roots, **options)

    def trace(self, log: str, roots: Roots, **options) -> str:
        return self.tracer.trace(log, roots, **options)

    def trace_report(self, log: str, roots: Roots, **options) -> TraceReport:
        return self.tracer.trace_report(log, roots, **options)

    def resolve_dependencies(self, snippet: str, root: str, primary_file: Optional[str] = None) -> AnalysisResult:
        return self.resolver.resolve(snippet, root, primary_file=primary_file)

    def directory_stats(self, roots: Roots) -> DirectoryStats:
        return self.walker.directory_stats(normalize_roots(roots))

    def security_stats(self) -> Dict[str, object]:
        return self.path_guard.stats()

    def cache_stats(self) -> Dict[str, object]:
        return self.cache.stats()
