"""Regex heuristics for SQL, constants and method bodies.

None of this is a parser.  Every helper is best effort and returns ``None``
or an empty list when the text does not have the expected shape.
"""

from __future__ import annotations

import re
from typing import Dict, List, NamedTuple, Optional

SQL_VERBS = r"(?:SELECT|INSERT|UPDATE|DELETE)\b"

# Triple-quoted strings first so their quotes are not read as empty literals
_SQL_LITERALS = [
    re.compile(r'"""\s*(' + SQL_VERBS + r'.*?)"""', re.IGNORECASE | re.DOTALL),
    re.compile(r'"\s*(' + SQL_VERBS + r'[^"]*)"', re.IGNORECASE),
    re.compile(r"'\s*(" + SQL_VERBS + r"[^']*)'", re.IGNORECASE),
    re.compile(r"`\s*(" + SQL_VERBS + r"[^`]*)`", re.IGNORECASE),
]
_CONCATENATION = re.compile(r"([\"'])\s*\+\s*\1")

_TABLE_CLAUSES = [
    re.compile(r"\bFROM\s+(\w+(?:\.\w+)?)", re.IGNORECASE),
    re.compile(r"\bJOIN\s+(\w+(?:\.\w+)?)", re.IGNORECASE),
    re.compile(r"\bINTO\s+(\w+(?:\.\w+)?)", re.IGNORECASE),
    re.compile(r"\bUPDATE\s+(\w+(?:\.\w+)?)", re.IGNORECASE),
]

_CREATE_TABLE_OPEN = re.compile(r"CREATE\s+TABLE\s+[\w.]+\s*\(", re.IGNORECASE)
_COLUMN = re.compile(r"(?:^|,)\s*(\w+)\s+(\w+(?:\([^)]*\))?)", re.MULTILINE)
_NOT_COLUMNS = {"CREATE", "TABLE", "PRIMARY", "FOREIGN", "KEY", "CONSTRAINT", "UNIQUE", "INDEX", "CHECK", "ALTER", "ADD"}

_POPULATION_CALL = re.compile(r"\b((?:populate|load|init)\w*)\s*\(")


class MethodBody(NamedTuple):
    line: int
    signature: str
    body: str


def extract_sql_from_context(context: str) -> Optional[str]:
    """Return the first quoted SQL statement in *context*, whitespace-collapsed."""
    if not context:
        return None
    # "SELECT * " + "FROM T" reads as one literal
    joined = _CONCATENATION.sub("", context)
    for pattern in _SQL_LITERALS:
        match = pattern.search(joined)
        if match and match.group(1).strip():
            return re.sub(r"\s+", " ", match.group(1)).strip()
    return None


def extract_tables_from_sql(sql: Optional[str]) -> List[str]:
    """Table names after FROM/JOIN/INTO/UPDATE, in clause order, unique."""
    if not sql:
        return []
    tables: Dict[str, None] = {}
    for pattern in _TABLE_CLAUSES:
        for m in pattern.finditer(sql):
            tables.setdefault(m.group(1), None)
    return list(tables)


def primary_table(sql: Optional[str]) -> Optional[str]:
    """The table a statement reads from (FROM), or else writes to (INTO/UPDATE)."""
    if not sql:
        return None
    for pattern in (_TABLE_CLAUSES[0], _TABLE_CLAUSES[2], _TABLE_CLAUSES[3]):
        m = pattern.search(sql)
        if m:
            return m.group(1)
    return None


def extract_table_columns(context: str) -> List[Dict[str, str]]:
    """Best-effort ``name type`` pairs from a CREATE TABLE body."""
    opening = _CREATE_TABLE_OPEN.search(context)
    body = context[opening.end():] if opening else context
    columns = []
    for m in _COLUMN.finditer(body):
        name, col_type = m.group(1), m.group(2)
        if name.upper() in _NOT_COLUMNS:
            continue
        columns.append({"name": name, "type": col_type})
    return columns


def extract_constant_value(context: str, name: str) -> Optional[str]:
    """Literal (or identifier) assigned to *name* in *context*."""
    escaped = re.escape(name)
    patterns = [
        rf'{escaped}\s*=\s*"([^"]+)"',
        rf"{escaped}\s*=\s*'([^']+)'",
        rf"{escaped}\s*=\s*(-?\d+(?:\.\d+)?)",
        rf"{escaped}\s*=\s*([\w.]+)",
    ]
    for pattern in patterns:
        m = re.search(pattern, context)
        if m:
            return m.group(1)
    return None


def extract_method_body(content: str, start: int) -> str:
    """Brace-matched block beginning at the first ``{`` at or after *start*.

    Returns an empty string if a statement ends (``;``) before any brace
    opens, i.e. *start* is a call site rather than a declaration.
    """
    brace = content.find("{", start)
    if brace < 0 or ";" in content[start:brace]:
        return ""
    depth = 0
    for i in range(brace, len(content)):
        ch = content[i]
        if ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return content[brace:i + 1]
    return content[brace:]


def method_body_at_line(content: str, line: int) -> str:
    """Body of the block declared on 1-based *line* (empty when none opens there)."""
    lines = content.split("\n")
    if line < 1 or line > len(lines):
        return ""
    offset = sum(len(l) + 1 for l in lines[:line - 1])
    return extract_method_body(content, offset)


def find_method_definition(content: str, method_name: str) -> Optional[MethodBody]:
    """Locate a method *declaration* (not a call) named *method_name*."""
    pattern = re.compile(
        r"^[ \t]*(?:[\w<>\[\],.@]+[ \t]+)*" + re.escape(method_name)
        + r"\s*\([^)]*\)\s*(?:throws\s+[\w.,\s]+)?\{",
        re.MULTILINE,
    )
    for m in pattern.finditer(content):
        signature = m.group(0).strip()
        # "return populateX() {" style false positives are skipped
        if signature.split(None, 1)[0] in ("return", "new", "else"):
            continue
        line = content.count("\n", 0, m.start()) + 1
        return MethodBody(line=line, signature=signature.rstrip("{").strip(), body=extract_method_body(content, m.start()))
    return None


def population_calls(text: str) -> List[str]:
    """Names of populate*/load*/init* methods called in *text*."""
    names: Dict[str, None] = {}
    for m in _POPULATION_CALL.finditer(text):
        names.setdefault(m.group(1), None)
    return list(names)
