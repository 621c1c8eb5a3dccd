"""Resolve the identifiers of a code snippet back to their data sources.

Given a snippet (typically the line an error was raised from), the resolver
pulls out variables, constants, configuration accessors and table names and
traces each one through the codebase with the :class:`SearchEngine`:

* variables to their assignment / population / load statements,
* constants to their declarations and literal values,
* configuration accessors to the method that populates them, the SQL that
  method runs and the table that SQL reads,
* tables to their schema definitions and the queries that touch them.

Everything is regex-based and best effort; a missing resolution is recorded
as an empty :class:`Dependency`, never raised.
"""

from __future__ import annotations

import logging
import re
from collections import deque
from typing import Callable, Deque, Dict, FrozenSet, List, Optional, Sequence, Set, Tuple

from .errors import InvalidArgumentError, ResolutionNotFound, diagnostic
from .models import (
    AnalysisResult,
    ConfigurationSource,
    DataSourceAnalysis,
    Dependency,
    DependencySource,
    FileEntry,
    Recommendation,
    References,
    SearchMatch,
    SearchQuery,
    TraceStep,
    TraversalVisit,
)
from .search_engine import SearchEngine, normalize_roots
from .sql import (
    extract_constant_value,
    extract_sql_from_context,
    extract_table_columns,
    extract_tables_from_sql,
    find_method_definition,
    method_body_at_line,
    population_calls,
    primary_table,
)

logger = logging.getLogger(__name__)

SNIPPET_FILE = "<snippet>"

# ---------------------------------------------------------------------------
# Search patterns ({} is replaced by the escaped identifier)
# ---------------------------------------------------------------------------
VARIABLE_PATTERNS = [
    r"{}\s*=\s*",
    r"{}\.add",
    r"{}\.put",
    r"populate.*{}",
    r"load.*{}",
    r"init.*{}",
    r"set{}",
    r"{}\s*=.*query",
    r"{}\s*=.*SELECT",
]

CONSTANT_PATTERNS = [
    r"static.*final.*{}",
    r"const.*{}",
    r"public.*static.*{}",
    r"{}\s*=\s*[\"']",
    r"{}\s*=\s*\d+",
    r"enum.*\{{[^}}]*{}",
]

CONFIGURATION_PATTERNS = [
    r"populate\w*{}",
    r"load\w*{}",
    r"init\w*{}",
    r"{}.*populate",
    r"{}.*put",
    r"{}.*add",
    r"{}\s*=.*query",
    r"SELECT.*INTO.*{}",
]

SCHEMA_PATTERNS = [
    r"CREATE\s+TABLE\s+{}",
    r"ALTER\s+TABLE\s+{}",
    r"{}.*PRIMARY\s+KEY",
    r"FOREIGN\s+KEY.*{}",
]

TABLE_QUERY_PATTERNS = [
    r"SELECT.*FROM\s+{}",
    r"INSERT\s+INTO\s+{}",
    r"UPDATE\s+{}",
    r"DELETE\s+FROM\s+{}",
]

CODE_TYPES = ("java", "javascript", "python")
CONSTANT_TYPES = ("java", "javascript", "python", "config")
SCHEMA_TYPES = ("sql", "java", "docs")
QUERY_TYPES = ("java", "javascript", "python", "sql")
PROPERTY_EXTENSIONS = {".properties", ".yml", ".yaml", ".json", ".xml", ".ini", ".toml", ".env", ".conf"}

SEARCH_LIMIT = 10
CONSTANT_LIMIT = 5

# ---------------------------------------------------------------------------
# Lexical tables
# ---------------------------------------------------------------------------
LANGUAGE_KEYWORDS = {
    "abstract", "and", "as", "assert", "async", "await", "boolean", "break", "byte", "case",
    "catch", "char", "class", "const", "continue", "def", "default", "del", "do", "double",
    "elif", "else", "enum", "except", "export", "extends", "false", "final", "finally",
    "float", "for", "from", "function", "global", "if", "implements", "import", "in",
    "instanceof", "int", "interface", "is", "lambda", "let", "long", "new", "none", "not",
    "null", "or", "package", "pass", "private", "protected", "public", "raise", "return",
    "self", "short", "static", "super", "switch", "synchronized", "this", "throw", "throws",
    "true", "try", "typeof", "undefined", "var", "void", "while", "with", "yield",
}

SQL_KEYWORDS = {
    "SELECT", "FROM", "WHERE", "INSERT", "INTO", "UPDATE", "DELETE", "SET", "VALUES",
    "JOIN", "LEFT", "RIGHT", "INNER", "OUTER", "ON", "AND", "OR", "NOT", "NULL", "IS",
    "IN", "LIKE", "ORDER", "GROUP", "BY", "HAVING", "LIMIT", "AS", "DISTINCT", "CREATE",
    "TABLE", "ALTER", "DROP", "PRIMARY", "FOREIGN", "KEY", "REFERENCES", "UNION", "ALL",
    "CASE", "WHEN", "THEN", "ELSE", "END", "COUNT", "SUM", "MAX", "MIN", "AVG",
}

_STRING_LITERAL = re.compile(r'"(?:[^"\\\n]|\\.)*"|\'(?:[^\'\\\n]|\\.)*\'|`[^`]*`')
_IDENTIFIER = re.compile(r"(?<![\w.$])([a-z_][A-Za-z0-9_]*)\b")
_CONSTANT = re.compile(r"\b([A-Z][A-Z0-9_]{2,})\b")
_METHOD_NAME = re.compile(r"\b([A-Za-z_]\w*)\s*\(")
_TABLE_REF = re.compile(r"\b(?:FROM|JOIN|INTO|UPDATE)\s+(\w+)", re.IGNORECASE)
_COLLECTION_OP = re.compile(r"\b([\w.]*\w)\.(add|put|push|addAll|putAll|contains|containsKey)\s*\(")
_ENVIRONMENT = re.compile(
    r"process\.env\.\w+"
    r"|System\.getenv\([^)]*\)"
    r"|os\.environ(?:\[[^\]]*\]|\.get\([^)]*\))"
    r"|os\.getenv\([^)]*\)"
)
_JDBC_CALL = re.compile(r"\b(?:namedParameterJdbcTemplate|jdbcTemplate)\.(?:query\w*|update)\s*\([^;]*")
_IF_CONDITION = re.compile(r"\bif\s*\(")


class DependencyResolver:
    """Trace snippet identifiers through one pre-discovered file universe per call."""

    def __init__(
        self,
        engine: SearchEngine,
        max_traversal_depth: int = 10,
        config_namespaces: Sequence[str] = ("ConfigStore", "Const", "Config", "AppConfig", "Settings"),
    ):
        self.engine = engine
        self.max_traversal_depth = max_traversal_depth
        self.config_namespaces = tuple(config_namespaces)
        names = "|".join(re.escape(n) for n in self.config_namespaces)
        self.config_ref = re.compile(rf"(?<![\w.])((?:{names})\.([A-Za-z_]\w*))")

    # ------------------------------------------------------------------
    # Reference extraction
    # ------------------------------------------------------------------

    def extract_references(self, snippet: str) -> References:
        """Scan *snippet* for traceable identifiers.

        String literals are blanked before identifiers are collected, so SQL
        or messages inside quotes never become variables or constants.
        Tables, environment references and JDBC calls are read from the raw
        text because they usually live inside those literals.
        """
        refs = References()
        code = _STRING_LITERAL.sub('""', snippet)

        config_members: Set[str] = set()
        for m in self.config_ref.finditer(code):
            _append_unique(refs.configurations, m.group(1))
            config_members.add(m.group(2))

        method_names = {m.group(1) for m in _METHOD_NAME.finditer(code)}

        for m in _IDENTIFIER.finditer(code):
            name = m.group(1)
            if name.lower() in LANGUAGE_KEYWORDS or name.upper() in SQL_KEYWORDS:
                continue
            if name in method_names or name in config_members:
                continue
            _append_unique(refs.variables, name)

        for m in _CONSTANT.finditer(code):
            name = m.group(1)
            if name in SQL_KEYWORDS or name in self.config_namespaces:
                continue
            _append_unique(refs.constants, name)

        for m in _TABLE_REF.finditer(snippet):
            table = m.group(1).upper()
            if table not in SQL_KEYWORDS:
                _append_unique(refs.tables, table)

        configurations = set(refs.configurations)
        for m in _COLLECTION_OP.finditer(code):
            receiver, operation = m.group(1), m.group(2)
            # Configuration accessors are traced through their population logic instead
            if receiver in configurations:
                continue
            if (receiver, operation) not in refs.collections:
                refs.collections.append((receiver, operation))

        for m in _ENVIRONMENT.finditer(snippet):
            _append_unique(refs.environment, m.group(0))
        for m in _JDBC_CALL.finditer(snippet):
            _append_unique(refs.jdbc_calls, m.group(0).strip())

        return refs

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------

    def resolve(self, snippet: str, root: str, primary_file: Optional[str] = None) -> AnalysisResult:
        """Resolve *snippet* against the codebase under *root*.

        Args:
            snippet: Source text to analyse.
            root: Directory searched for definitions.
            primary_file: File the snippet came from, if known.

        Returns:
            AnalysisResult with dependencies, data-source analysis,
            recommendations and trace steps.

        Raises:
            InvalidArgumentError: No root given.
        """
        roots = normalize_roots(root)
        if not roots:
            raise InvalidArgumentError("A search root is required")
        snippet = snippet or ""

        primary = primary_file or SNIPPET_FILE
        result = AnalysisResult(primary_file=primary, snippet=snippet)
        result.references = self.extract_references(snippet)

        session = _ResolutionSession(self, roots, result)
        session.traverse(primary, result.references)

        result.data_source_analysis = session.analyze_data_sources(result.references)
        result.recommendations = generate_recommendations(result)
        result.trace_steps = build_trace_steps(result)
        logger.debug(
            "Resolved %d dependencies across %d traversal steps",
            len(result.dependencies), len(result.traversal_path),
        )
        return result


class _ResolutionSession:
    """State for one :meth:`DependencyResolver.resolve` call."""

    def __init__(self, resolver: DependencyResolver, roots: List[str], result: AnalysisResult):
        self.resolver = resolver
        self.engine = resolver.engine
        self.result = result
        self.traced: Set[Tuple[str, str]] = set()
        self.population_logic: Dict[str, List[Dict[str, object]]] = {}
        self.constant_values: List[Dict[str, object]] = []
        # constant -> constants whose values led to it
        self.chains: Dict[str, FrozenSet[str]] = {}
        self.loops: Set[Tuple[str, str]] = set()
        self._contents: Dict[str, str] = {}
        self._subsets: Dict[Tuple[str, ...], List[FileEntry]] = {}

        discovery = SearchQuery(text="*", max_files=self.engine.settings.max_files)
        self.universe, summary = self.engine.discover(roots, discovery)
        result.errors.extend(summary.errors)

    # -- traversal -----------------------------------------------------

    def traverse(self, start_file: str, references: References) -> None:
        worklist: Deque[Tuple[str, References, int]] = deque([(start_file, references, 0)])
        max_depth = self.resolver.max_traversal_depth

        while worklist:
            current, refs, depth = worklist.popleft()
            if depth >= max_depth:
                logger.debug("Traversal depth %d reached at %s", max_depth, current)
                continue
            self.result.traversal_path.append(TraversalVisit(current, depth))

            follow_ups: Dict[str, References] = {}
            for variable in refs.variables:
                if self._claim("variable", variable):
                    self.trace_variable(variable)
            for constant in refs.constants:
                if self._claim("constant", constant):
                    self.trace_constant(constant, follow_ups, depth)
            for config in refs.configurations:
                if self._claim("configuration", config):
                    self.trace_configuration(config, follow_ups)
            for table in refs.tables:
                if self._claim("table", table):
                    self.trace_table(table)

            for path, found in follow_ups.items():
                if self._has_untraced(found):
                    worklist.append((path, found, depth + 1))

    def _claim(self, kind: str, name: str) -> bool:
        key = (kind, name)
        if key in self.traced:
            return False
        self.traced.add(key)
        return True

    def _has_untraced(self, refs: References) -> bool:
        return (
            any(("constant", c) not in self.traced for c in refs.constants)
            or any(("configuration", c) not in self.traced for c in refs.configurations)
            or any(("table", t) not in self.traced for t in refs.tables)
        )

    # -- searching -----------------------------------------------------

    def search(self, pattern: str, files: List[FileEntry], limit: int = SEARCH_LIMIT) -> List[SearchMatch]:
        if not files:
            return []
        query = SearchQuery(text=pattern, max_results=limit, max_files=len(files))
        return self.engine.search_files(query, files)

    def files_of(self, file_types: Tuple[str, ...]) -> List[FileEntry]:
        if file_types not in self._subsets:
            accept = SearchEngine.file_filter(file_types)
            self._subsets[file_types] = [f for f in self.universe if accept(f)]
        return self._subsets[file_types]

    def files_where(self, key: Tuple[str, ...], predicate: Callable[[FileEntry], bool]) -> List[FileEntry]:
        if key not in self._subsets:
            self._subsets[key] = [f for f in self.universe if predicate(f)]
        return self._subsets[key]

    def read(self, path: str) -> str:
        if path not in self._contents:
            try:
                with open(path, "r", encoding="utf-8", errors="replace") as f:
                    self._contents[path] = f.read()
            except OSError as exc:
                logger.warning("Cannot read file %s: %s", path, exc)
                self._contents[path] = ""
        return self._contents[path]

    def line_text(self, match: SearchMatch) -> str:
        lines = self.read(match.file.path).split("\n")
        return lines[match.line - 1].strip() if 0 < match.line <= len(lines) else ""

    def _not_found(self, dep_type: str, name: str) -> None:
        logger.debug("%s", diagnostic(ResolutionNotFound, name, f"no {dep_type} found"))
        self.result.dependencies.append(Dependency(dep_type=dep_type, name=name, pattern=""))

    # -- tracers -------------------------------------------------------

    def trace_variable(self, variable: str) -> None:
        files = self.files_of(CODE_TYPES)
        found = False
        for template in VARIABLE_PATTERNS:
            pattern = template.format(re.escape(variable))
            matches = self.search(pattern, files)
            if not matches:
                continue
            found = True
            self.result.dependencies.append(Dependency(
                dep_type="variable_source",
                name=variable,
                pattern=pattern,
                sources=[_source(m) for m in matches],
            ))
        if not found:
            self._not_found("variable_source", variable)

    def trace_constant(self, constant: str, follow_ups: Dict[str, References], depth: int = 0) -> None:
        files = self.files_of(CONSTANT_TYPES)
        found = False
        for template in CONSTANT_PATTERNS:
            pattern = template.format(re.escape(constant))
            matches = self.search(pattern, files, CONSTANT_LIMIT)
            if not matches:
                continue
            found = True
            sources = []
            for m in matches:
                value = extract_constant_value(m.context, constant)
                sources.append(_source(m, value=value))
                if value is None:
                    continue
                if not any(c["name"] == constant for c in self.constant_values):
                    self.constant_values.append({
                        "name": constant, "value": value, "file": m.file.path, "line": m.line,
                    })
                self._queue_identifier_value(value, constant, m, follow_ups, depth)
            self.result.dependencies.append(Dependency(
                dep_type="constant_definition", name=constant, pattern=pattern, sources=sources,
            ))
        if not found:
            self._not_found("constant_definition", constant)

    def _queue_identifier_value(
        self,
        value: str,
        constant: str,
        match: SearchMatch,
        follow_ups: Dict[str, References],
        depth: int,
    ) -> None:
        """A constant defined as another constant or accessor is traced one level deeper.

        A value that leads back into the constant's own definition chain is
        recorded as a revisit of the defining file and not followed.
        """
        if value == constant:
            return
        # Quoted values are literals, not identifiers
        if re.search(rf"{re.escape(constant)}\s*=\s*[\"']", match.context):
            return
        if self.resolver.config_ref.fullmatch(value):
            _append_unique(follow_ups.setdefault(match.file.path, References()).configurations, value)
            return
        if not _CONSTANT.fullmatch(value) or value in SQL_KEYWORDS:
            return

        chain = self.chains.get(constant, frozenset()) | {constant}
        if value in chain:
            if (constant, value) not in self.loops:
                self.loops.add((constant, value))
                logger.debug("Constant %s loops back to %s in %s", constant, value, match.file.path)
                self.result.traversal_path.append(TraversalVisit(match.file.path, depth + 1, revisit=True))
            return
        self.chains.setdefault(value, chain)
        _append_unique(follow_ups.setdefault(match.file.path, References()).constants, value)

    def trace_configuration(self, config: str, follow_ups: Dict[str, References]) -> None:
        member = config.split(".", 1)[1]
        escaped = re.escape(member)
        files = self.files_of(CODE_TYPES)
        seen: Set[Tuple[str, int]] = set()
        logic = self.population_logic.setdefault(config, [])
        found = False

        for template in CONFIGURATION_PATTERNS:
            pattern = template.format(escaped)
            matches = [m for m in self.search(pattern, files) if m.key not in seen]
            if not matches:
                continue
            found = True
            plain: List[DependencySource] = []
            for match in matches:
                seen.add(match.key)
                logic.append({"file": match.file.path, "line": match.line, "context": match.context})
                configuration, body = self._population_chain(config, match)
                if body:
                    _merge_references(follow_ups.setdefault(match.file.path, References()),
                                      self.resolver.extract_references(body))
                if configuration is None:
                    plain.append(_source(match))
                    continue
                self.result.dependencies.append(Dependency(
                    dep_type="configuration_source",
                    name=config,
                    pattern=pattern,
                    sources=[_source(match, query=configuration.sql_query)],
                    configuration=configuration,
                ))
            if plain:
                self.result.dependencies.append(Dependency(
                    dep_type="configuration_source", name=config, pattern=pattern, sources=plain,
                ))

        property_files = self.files_where(("<properties>",), lambda f: f.extension in PROPERTY_EXTENSIONS)
        property_hits = self.search(escaped, property_files, CONSTANT_LIMIT)
        if property_hits:
            found = True
            logic.extend(_location(m) for m in property_hits)
            self.result.dependencies.append(Dependency(
                dep_type="configuration_source",
                name=config,
                pattern=escaped,
                sources=[_source(m, value=extract_constant_value(m.context, member)) for m in property_hits],
            ))

        if not found:
            self._not_found("configuration_source", config)

    def _population_chain(self, config: str, match: SearchMatch) -> Tuple[Optional[ConfigurationSource], str]:
        """Find the SQL behind one population hit and build the usage-to-table chain.

        Returns:
            Tuple of (configuration source or None when no SQL was found,
            the population method body used, possibly empty).
        """
        content = self.read(match.file.path)
        signature = self.line_text(match).rstrip("{").strip()
        location = f"{match.file.path}:{match.line}"

        body = method_body_at_line(content, match.line)
        if not body:
            # The hit is a call site; follow it to the declaration in the same file
            for name in population_calls(signature):
                definition = find_method_definition(content, name)
                if definition is not None:
                    body = definition.body
                    signature = definition.signature
                    location = f"{match.file.path}:{definition.line}"
                    break

        sql = extract_sql_from_context(match.context) or extract_sql_from_context(body)
        if not sql:
            return None, body

        table = primary_table(sql)
        steps = [
            TraceStep(1, f"Configuration accessed: {config}", "Usage point"),
            TraceStep(2, f"Resolved to method: {signature}", location),
            TraceStep(3, "Data loaded from database", table or "Database table"),
            TraceStep(4, f"SQL Query: {sql}", "Database query"),
        ]
        return ConfigurationSource(name=config, sql_query=sql, table_name=table, population_steps=steps), body

    def trace_table(self, table: str) -> None:
        escaped = re.escape(table)
        found = False

        schema_files = self.files_of(SCHEMA_TYPES)
        for template in SCHEMA_PATTERNS:
            pattern = template.format(escaped)
            matches = self.search(pattern, schema_files)
            if not matches:
                continue
            found = True
            self.result.dependencies.append(Dependency(
                dep_type="database_schema",
                name=table,
                pattern=pattern,
                sources=[_source(m, columns=extract_table_columns(m.context)) for m in matches],
            ))

        query_files = self.files_of(QUERY_TYPES)
        for template in TABLE_QUERY_PATTERNS:
            pattern = template.format(escaped)
            matches = self.search(pattern, query_files)
            if not matches:
                continue
            found = True
            sources = []
            for m in matches:
                sql = extract_sql_from_context(m.context) or _bare_statement(self.line_text(m))
                sources.append(_source(m, query=sql))
            self.result.dependencies.append(Dependency(
                dep_type="database_query", name=table, pattern=pattern, sources=sources,
            ))

        if not found:
            self._not_found("database_schema", table)

    # -- data sources --------------------------------------------------

    def analyze_data_sources(self, refs: References) -> DataSourceAnalysis:
        analysis = DataSourceAnalysis()
        code_files = self.files_of(CODE_TYPES)

        for receiver, operation in refs.collections:
            name = receiver.rsplit(".", 1)[-1]
            matches = self.search(rf"{re.escape(name)}.*=.*new", code_files)
            analysis.arrays.append({
                "name": receiver,
                "operation": operation,
                "initialization": [_location(m) for m in matches],
            })

        analysis.constants.extend(self.constant_values)

        for call in refs.jdbc_calls:
            sql = extract_sql_from_context(call)
            if sql:
                analysis.queries.append({
                    "type": "jdbc_query", "query": sql, "context": call, "tables": extract_tables_from_sql(sql),
                })
        for dep in self.result.dependencies:
            if dep.configuration is not None and dep.configuration.sql_query:
                sql = dep.configuration.sql_query
                analysis.queries.append({
                    "type": "configuration_query", "name": dep.name, "query": sql,
                    "tables": extract_tables_from_sql(sql),
                })
            elif dep.dep_type == "database_query":
                for source in dep.sources:
                    if source.query:
                        analysis.queries.append({
                            "type": "table_query", "name": dep.name, "query": source.query,
                            "tables": extract_tables_from_sql(source.query),
                        })

        for config in refs.configurations:
            analysis.configurations.append({
                "name": config,
                "population_logic": list(self.population_logic.get(config, [])),
            })

        for env in refs.environment:
            analysis.external_sources.append({
                "type": "environment_variable",
                "name": env,
                "usage": "Check system environment or deployment configuration",
            })
        return analysis


# ---------------------------------------------------------------------------
# Recommendations and trace steps
# ---------------------------------------------------------------------------

def generate_recommendations(result: AnalysisResult) -> List[Recommendation]:
    """Heuristic follow-ups derived from what was (and was not) resolved."""
    recs: List[Recommendation] = []
    data = result.data_source_analysis

    for array in data.arrays:
        if not array["initialization"]:
            recs.append(Recommendation(
                type="uninitialized_collection",
                message=f"Collection '{array['name']}' is used but its initialization was not found",
                suggestion=f"Search for where '{array['name']}' is created or passed in as a parameter",
            ))

    for config in data.configurations:
        if not config["population_logic"]:
            recs.append(Recommendation(
                type="missing_configuration",
                message=f"Configuration '{config['name']}' is used but its population logic was not found",
                suggestion="Check configuration initialization, database queries and property files",
                priority="high",
            ))

    for query in data.queries:
        if not query.get("query") or not query.get("tables"):
            recs.append(Recommendation(
                type="incomplete_query",
                message="SQL query found but it appears incomplete or malformed",
                suggestion="Verify the SQL syntax and its table references",
            ))

    if data.external_sources:
        recs.append(Recommendation(
            type="external_dependencies",
            message=f"Found {len(data.external_sources)} external dependencies (environment variables)",
            suggestion="Ensure every environment variable is set in each deployment",
            priority="low",
        ))

    if any(visit.revisit for visit in result.traversal_path):
        recs.append(Recommendation(
            type="potential_circular_dependency",
            message="Detected a potential circular dependency in file references",
            suggestion="Review the dependency chain for references that loop back",
        ))

    verified: Set[str] = set()
    for source in result.configuration_sources:
        if source.sql_query and source.name not in verified:
            verified.add(source.name)
            recs.append(Recommendation(
                type="database_verification",
                message=f"Verify the data source of {source.name} (table {source.table_name or 'unknown'})",
                suggestion=f"Execute and check the result of: {source.sql_query}",
                priority="high",
            ))

    for constant in data.constants:
        recs.append(Recommendation(
            type="constant_check",
            message=f"Current value of {constant['name']}: {constant['value']}",
            suggestion=f"Check that {constant['name']} = \"{constant['value']}\" is correct",
        ))

    return recs


def build_trace_steps(result: AnalysisResult) -> List[TraceStep]:
    """Symptom-to-source chain: error location, failed condition, population chains."""
    steps: List[TraceStep] = []
    first_line = next((l.strip() for l in result.snippet.splitlines() if l.strip()), "")
    steps.append(TraceStep(1, f"Error occurs at: {first_line}", result.primary_file))

    condition = extract_condition(result.snippet)
    if condition:
        steps.append(TraceStep(len(steps) + 1, f"Condition that failed: {condition}", result.primary_file))

    for source in result.configuration_sources:
        for step in source.population_steps:
            steps.append(TraceStep(len(steps) + 1, step.description, step.location))
    return steps


def extract_condition(snippet: str) -> Optional[str]:
    """Expression inside the first ``if (...)``, with balanced parentheses."""
    m = _IF_CONDITION.search(snippet)
    if not m:
        return None
    depth = 1
    for i in range(m.end(), len(snippet)):
        ch = snippet[i]
        if ch == "(":
            depth += 1
        elif ch == ")":
            depth -= 1
            if depth == 0:
                return snippet[m.end():i].strip() or None
    return None


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _append_unique(items: List[str], value: str) -> None:
    if value not in items:
        items.append(value)


def _merge_references(into: References, other: References) -> None:
    for name in other.constants:
        _append_unique(into.constants, name)
    for name in other.configurations:
        _append_unique(into.configurations, name)
    for name in other.tables:
        _append_unique(into.tables, name)


def _source(match: SearchMatch, **extra) -> DependencySource:
    return DependencySource(file=match.file.path, line=match.line, context=match.context, **extra)


def _location(match: SearchMatch) -> Dict[str, object]:
    return {"file": match.file.path, "line": match.line, "context": match.context}


def _bare_statement(line: str) -> Optional[str]:
    """An unquoted SQL statement line, as found in .sql files."""
    stripped = line.strip().rstrip(";")
    if re.match(r"(?:SELECT|INSERT|UPDATE|DELETE)\b", stripped, re.IGNORECASE):
        return stripped
    return None

