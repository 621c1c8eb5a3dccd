"""Trace a free-form error log back to the source lines most likely to have produced it."""

from __future__ import annotations

import logging
import re
from typing import Dict, List, Optional, Sequence, Tuple, Union

from .errors import InvalidArgumentError
from .models import SearchMatch, TraceHit, TraceReport
from .normalizer import extract_error_types, extract_key_phrases, normalize_log
from .search_engine import SearchEngine, normalize_roots

logger = logging.getLogger(__name__)

NO_MATCH = "No matching source found for the error log."

TRACE_FILE_TYPES = (
    "java", "javascript", "python", "cpp", "csharp",
    "web", "config", "build", "docs", "sql", "shell",
)

MIN_QUERY_LENGTH = 3
MIN_PHRASE_PART_LENGTH = 10
ENOUGH_RESULTS = 5
FEW_RESULTS = 3
RESULTS_PER_QUERY = 3
REPORT_SIZE = 3

CONTEXT_BONUS = {
    "key_phrase": 8,
    "light_normalized": 5,
    "error_type": 4,
}

# (keyword in the log, file suffix it promotes)
LANGUAGE_HINTS = (
    ("java", ".java"),
    ("javascript", ".js"),
    ("python", ".py"),
)


def relevance(query: str, match: SearchMatch, log: str, search_context: str) -> int:
    """Score a search match against the log it is meant to explain."""
    score = 0
    if query.lower() in match.context.lower():
        score += 10

    log_lower = log.lower()
    for keyword, suffix in LANGUAGE_HINTS:
        if keyword in log_lower and match.file.path.endswith(suffix):
            score += 5

    where = match.file.relative_path.lower()
    if "error" in where or "exception" in where:
        score += 3

    return score + CONTEXT_BONUS.get(search_context, 0)


def format_report(hits: Sequence[TraceHit]) -> str:
    if not hits:
        return NO_MATCH

    entries = []
    for idx, hit in enumerate(hits, start=1):
        context_lines = hit.match.context.split("\n") if hit.match.context else []
        first = context_lines[0].strip() if context_lines else "No context available"
        path = hit.match.file.relative_path
        short_path = "..." + path[-47:] if len(path) > 50 else path
        score = f" [relevance: {hit.score}]" if hit.score else ""
        entries.append(f"{idx}. {short_path}:{hit.match.line}\n   {first}{score}")
    return "\n\n".join(entries)


class LogTracer:
    """Progressive log-to-source tracer built on a :class:`SearchEngine`.

    Strategies run from most to least specific: key phrases, the lightly
    normalized log, the moderately normalized log and its sub-phrases, then
    error-type tokens.  Later strategies only run while fewer than three
    results have been collected.
    """

    def __init__(self, engine: SearchEngine):
        self.engine = engine

    def trace(self, log: str, roots: Union[str, Sequence[str]], **options) -> str:
        """Return a numbered report of the top matches, or :data:`NO_MATCH`."""
        report = self.trace_report(log, roots, **options)
        return format_report(report.hits) if report.found else NO_MATCH

    def trace_report(self, log: str, roots: Union[str, Sequence[str]], **options) -> TraceReport:
        root_list = normalize_roots(roots)
        if not root_list:
            raise InvalidArgumentError("At least one search root is required")
        if not log or not log.strip():
            return TraceReport(hits=[], queries_tried=[])

        search_options = dict(options)
        search_options["file_types"] = list(options.get("file_types") or TRACE_FILE_TYPES)
        search_options["max_results"] = RESULTS_PER_QUERY
        try:
            self.engine.make_query(log, **search_options)
        except (TypeError, ValueError) as exc:
            raise InvalidArgumentError(f"Invalid trace options: {exc}") from exc

        session = _TraceSession(self.engine, log, root_list, search_options)

        # 1. Key phrases, searched literally
        for phrase in extract_key_phrases(log):
            session.attempt(phrase, "key_phrase", literal=True)
            if session.count >= ENOUGH_RESULTS:
                break

        # 2. Light normalization
        if session.count < FEW_RESULTS:
            session.attempt(normalize_log(log, "light"), "light_normalized")

        # 3. Moderate normalization and its delimited parts
        if session.count < FEW_RESULTS:
            moderate = normalize_log(log, "moderate")
            session.attempt(moderate, "moderate_normalized")
            for part in re.split(r"[:\-|]", moderate):
                if len(part) > MIN_PHRASE_PART_LENGTH:
                    session.attempt(part.strip(), "phrase_part")
                    if session.count >= ENOUGH_RESULTS:
                        break

        # 4. Error-type tokens
        if session.count < FEW_RESULTS:
            for error_type in extract_error_types(log):
                session.attempt(error_type, "error_type", literal=True)
                if session.count >= ENOUGH_RESULTS:
                    break

        hits = _merge_hits(session.hits)
        logger.debug("Trace tried %d queries, %d unique hits", len(session.tried), len(hits))
        return TraceReport(hits=hits[:REPORT_SIZE], queries_tried=session.tried)


class _TraceSession:
    """Per-call state: queries already tried and hits collected so far."""

    def __init__(self, engine: SearchEngine, log: str, roots: List[str], options: Dict):
        self.engine = engine
        self.log = log
        self.roots = roots
        self.options = options
        self.tried: List[str] = []
        self._seen = set()
        self.hits: List[TraceHit] = []

    @property
    def count(self) -> int:
        return len(self.hits)

    def attempt(self, query: str, search_context: str, literal: bool = False) -> int:
        if len(query) < MIN_QUERY_LENGTH or query in self._seen:
            return 0
        self._seen.add(query)
        self.tried.append(query)

        pattern = re.escape(query) if literal else query
        matches = self._search(pattern)
        for match in matches:
            score = relevance(query, match, self.log, search_context)
            self.hits.append(TraceHit(match=match, score=score, search_context=search_context, query=query))
        return len(matches)

    def _search(self, pattern: str) -> List[SearchMatch]:
        try:
            return self.engine.search(pattern, self.roots, **self.options).results
        except Exception as exc:
            logger.warning("Trace sub-search for %r failed: %s", pattern[:80], exc)
            return []


def _merge_hits(hits: List[TraceHit]) -> List[TraceHit]:
    """Deduplicate by (file, line) keeping the higher score, then rank by score."""
    merged: Dict[Tuple[str, int], TraceHit] = {}
    for hit in hits:
        current: Optional[TraceHit] = merged.get(hit.match.key)
        if current is None:
            merged[hit.match.key] = hit
        elif hit.score > current.score:
            current.score = hit.score
            current.search_context = hit.search_context
    return sorted(merged.values(), key=lambda h: -h.score)
