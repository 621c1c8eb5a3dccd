"""Core data models shared by the walker, search engine, tracer and resolver."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Tuple


@dataclass(frozen=True)
class FileEntry:
    path: str
    relative_path: str
    name: str
    extension: str
    file_type: str
    directory: str


@dataclass
class WalkResult:
    entries: List[FileEntry] = field(default_factory=list)
    discovered: int = 0
    skipped: int = 0
    errors: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class SearchQuery:
    """Caller-supplied search request; read-only for the duration of a search."""
    text: str
    case_sensitive: bool = False
    file_types: Tuple[str, ...] = ("all",)
    exclude_patterns: Tuple[str, ...] = ()
    max_results: int = 500
    max_files: int = 20000
    context_lines: int = 3

    @classmethod
    def from_options(
        cls,
        text: str,
        defaults: Mapping[str, int],
        file_types: Optional[List[str]] = None,
        case_sensitive: bool = False,
        max_results: Optional[int] = None,
        max_files: Optional[int] = None,
        context_lines: Optional[int] = None,
        exclude_patterns: Optional[List[str]] = None,
    ) -> "SearchQuery":
        return cls(
            text=text,
            case_sensitive=bool(case_sensitive),
            file_types=tuple(file_types) if file_types else ("all",),
            exclude_patterns=tuple(exclude_patterns or ()),
            max_results=max(0, int(max_results if max_results is not None else defaults["max_results"])),
            max_files=max(0, int(max_files if max_files is not None else defaults["max_files"])),
            context_lines=max(0, int(context_lines if context_lines is not None else 3)),
        )


@dataclass(frozen=True)
class SearchMatch:
    file: FileEntry
    line: int
    column: int
    match_text: str
    context: str
    strategy: str
    score: float

    @property
    def key(self) -> Tuple[str, int]:
        return (self.file.path, self.line)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "file": self.file.relative_path,
            "full_path": self.file.path,
            "file_type": self.file.file_type,
            "line": self.line,
            "column": self.column,
            "match_text": self.match_text,
            "context": self.context,
            "strategy": self.strategy,
            "score": self.score,
        }


@dataclass
class SearchSummary:
    total_files: int = 0
    filtered_files: int = 0
    processed_files: int = 0
    skipped_files: int = 0
    match_count: int = 0
    errors: List[str] = field(default_factory=list)
    message: str = ""


@dataclass
class SearchResponse:
    query: str
    roots: List[str]
    results: List[SearchMatch]
    summary: SearchSummary

    def to_dict(self) -> Dict[str, Any]:
        return {
            "query": self.query,
            "roots": list(self.roots),
            "results": [m.to_dict() for m in self.results],
            "summary": asdict(self.summary),
        }


@dataclass
class TraceStep:
    step: int
    description: str
    location: str

    def __str__(self) -> str:
        return f"{self.step}. {self.description} ({self.location})"


@dataclass
class TraceHit:
    """A search match re-scored by the log tracer."""
    match: SearchMatch
    score: float
    search_context: str
    query: str


@dataclass
class TraceReport:
    hits: List[TraceHit]
    queries_tried: List[str]

    @property
    def found(self) -> bool:
        return bool(self.hits)


@dataclass
class DependencySource:
    file: str
    line: int
    context: str
    value: Optional[str] = None
    query: Optional[str] = None
    columns: List[Dict[str, str]] = field(default_factory=list)


@dataclass
class ConfigurationSource:
    name: str
    sql_query: Optional[str] = None
    table_name: Optional[str] = None
    population_steps: List[TraceStep] = field(default_factory=list)


@dataclass
class Dependency:
    dep_type: str
    name: str
    pattern: str
    sources: List[DependencySource] = field(default_factory=list)
    configuration: Optional[ConfigurationSource] = None

    @property
    def resolved(self) -> bool:
        return bool(self.sources)


@dataclass
class DataSourceAnalysis:
    arrays: List[Dict[str, Any]] = field(default_factory=list)
    constants: List[Dict[str, Any]] = field(default_factory=list)
    queries: List[Dict[str, Any]] = field(default_factory=list)
    configurations: List[Dict[str, Any]] = field(default_factory=list)
    external_sources: List[Dict[str, Any]] = field(default_factory=list)


@dataclass
class TraversalVisit:
    file: str
    depth: int
    revisit: bool = False


@dataclass
class Recommendation:
    type: str
    message: str
    suggestion: str
    priority: str = "medium"


@dataclass
class References:
    variables: List[str] = field(default_factory=list)
    constants: List[str] = field(default_factory=list)
    configurations: List[str] = field(default_factory=list)
    tables: List[str] = field(default_factory=list)
    collections: List[Tuple[str, str]] = field(default_factory=list)
    environment: List[str] = field(default_factory=list)
    jdbc_calls: List[str] = field(default_factory=list)

    def is_empty(self) -> bool:
        return not (self.variables or self.constants or self.configurations or self.tables)


@dataclass
class AnalysisResult:
    primary_file: str
    snippet: str
    references: References = field(default_factory=References)
    dependencies: List[Dependency] = field(default_factory=list)
    data_source_analysis: DataSourceAnalysis = field(default_factory=DataSourceAnalysis)
    traversal_path: List[TraversalVisit] = field(default_factory=list)
    recommendations: List[Recommendation] = field(default_factory=list)
    trace_steps: List[TraceStep] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)

    @property
    def configuration_sources(self) -> List[ConfigurationSource]:
        return [d.configuration for d in self.dependencies if d.configuration is not None]

    def dependencies_of_type(self, dep_type: str) -> List[Dependency]:
        return [d for d in self.dependencies if d.dep_type == dep_type]

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class DirectoryStats:
    directories: List[Dict[str, Any]] = field(default_factory=list)
    total_files: int = 0
    files_by_type: Dict[str, int] = field(default_factory=dict)
    files_by_extension: Dict[str, int] = field(default_factory=dict)
