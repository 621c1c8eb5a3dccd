"""Log text normalization and key-phrase extraction."""

from __future__ import annotations

import re
from typing import Dict, List, Pattern, Tuple

from .errors import InvalidArgumentError

LEVELS = ("light", "moderate", "heavy")

# Status and error codes that carry meaning on their own
PRESERVED_NUMBERS = {"200", "404", "500", "403", "401", "503", "400", "0", "1", "-1"}

# Order matters: the most specific shapes are replaced first.
# Steps that match lowercase must also match the uppercase form, since the
# result is case-folded and has to be stable under a second pass.
_MODERATE_STEPS: List[Tuple[Pattern[str], str]] = [
    (re.compile(r"[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}"), "UUID"),
    (re.compile(r"0[xX][0-9a-fA-F]+"), "HEX"),
    (re.compile(r"\b(?:\d{1,3}\.){3}\d{1,3}\b"), "IP"),
    (re.compile(r"[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}"), "EMAIL"),
    (re.compile(r"(?<![\w/])(?:/[\w.-]+)+(?:\.\w+)?"), "FILEPATH"),
    (re.compile(r"(?:[A-Za-z]:\\[\w\\.-]+)+(?:\.\w+)?"), "FILEPATH"),
    (re.compile(r"\d{4}-\d{2}-\d{2}[T ]\d{2}:\d{2}:\d{2}(?:\.\d+)?(?:Z|[+-]\d{2}:\d{2})?"), "TIMESTAMP"),
    (re.compile(r"\d{2}/\d{2}/\d{4}\s+\d{2}:\d{2}:\d{2}"), "TIMESTAMP"),
    (re.compile(r'"(?:[^"\\]|\\.)*"'), "STR"),
    (re.compile(r"'(?:[^'\\]|\\.)*'"), "STR"),
    (re.compile(r"%[sdifoxX]", re.IGNORECASE), "PLACEHOLDER"),
    (re.compile(r"\$\{\w+\}"), "PLACEHOLDER"),
    (re.compile(r"\{\d+\}"), "PLACEHOLDER"),
    (re.compile(r"\{[A-Z_]+\}"), "PLACEHOLDER"),
    (re.compile(r"\b\d+\.\d+\b"), "NUM"),
    (re.compile(r"\b\d{4,}\b"), "NUM"),
]

_SHORT_NUMBER = re.compile(r"\b\d{1,3}\b")
_CAMEL_BOUNDARY = re.compile(r"([a-z])([A-Z])")
_WHITESPACE = re.compile(r"\s+")
# Everything except word characters, whitespace and "." (package/class names)
_PUNCTUATION = re.compile(r"[!\"#$%&'()*+,\-/:;<=>?@\[\\\]^`{|}~]")

_CLASS_NAME = re.compile(r"\b[A-Z][a-zA-Z0-9]*(?:\.[A-Z][a-zA-Z0-9]*)+\b")
_METHOD_CALL = re.compile(r"\b([a-zA-Z_][a-zA-Z0-9_]*)\s*\(")
_ERROR_MESSAGE = re.compile(r"(?:error|exception|failed?|warning):\s*([^.!?\n]+)", re.IGNORECASE)
_QUOTED = re.compile(r"\"([^\"]{3,50})\"|'([^']{3,50})'")
_STACK_FRAME = re.compile(r"\bat\s+([\w.$]+(?:\([^)]*\))?)")
_FILE_NAME = re.compile(r"\b[\w-]+\.\w{2,4}\b")

_ERROR_TYPE_PATTERNS = [
    re.compile(r"\b\w*Exception\b"),
    re.compile(r"\b\w*Error\b"),
    re.compile(r"\b\w*Fault\b"),
    re.compile(r"\b\w*Failure\b"),
    re.compile(r"\b\w*Timeout\b"),
    re.compile(r"\b\w*Invalid\w*\b"),
    re.compile(r"\b\w*NotFound\w*\b"),
    re.compile(r"\b\w*Denied\b"),
    re.compile(r"\b\w*Unauthorized\b"),
    re.compile(r"\b[45]\d{2}\s+\w+"),
]


def _keep_status_code(match: re.Match) -> str:
    text = match.group(0)
    return text if text in PRESERVED_NUMBERS else "NUM"


def _collapse(text: str) -> str:
    return _WHITESPACE.sub(" ", text).strip()


def normalize_log(text: str, level: str = "moderate") -> str:
    """Normalize free-form log text so it can be used as a search query.

    Args:
        text: Raw log text.
        level: ``light`` (whitespace only), ``moderate`` (volatile tokens
            replaced by placeholders, case-folded) or ``heavy`` (moderate
            plus punctuation stripping).

    Returns:
        The normalized text.  ``moderate`` is idempotent.

    Raises:
        InvalidArgumentError: Unknown level.
    """
    if level not in LEVELS:
        raise InvalidArgumentError(f"Unknown normalization level: {level!r}")

    if level == "light":
        return _collapse(text)

    if level == "heavy":
        return _collapse(_PUNCTUATION.sub(" ", normalize_log(text, "moderate")))

    for pattern, replacement in _MODERATE_STEPS:
        text = pattern.sub(replacement, text)
    text = _SHORT_NUMBER.sub(_keep_status_code, text)
    text = _CAMEL_BOUNDARY.sub(r"\1 \2", text)
    return _collapse(text.lower())


def extract_key_phrases(log: str) -> List[str]:
    """Pull the most specific searchable fragments out of *log*, in order, without repeats."""
    phrases: Dict[str, None] = {}

    def add(phrase: str) -> None:
        phrase = phrase.strip()
        if phrase:
            phrases.setdefault(phrase, None)

    for m in _CLASS_NAME.finditer(log):
        add(m.group(0))
    for m in _METHOD_CALL.finditer(log):
        add(m.group(1))
    for m in _ERROR_MESSAGE.finditer(log):
        add(m.group(1))
    for m in _QUOTED.finditer(log):
        add(m.group(1) or m.group(2))
    for m in _STACK_FRAME.finditer(log):
        add(m.group(1))
    for m in _FILE_NAME.finditer(log):
        add(m.group(0))

    return list(phrases)


def extract_error_types(log: str) -> List[str]:
    """Exception/error class names and ``4xx``/``5xx <word>`` status fragments."""
    types: Dict[str, None] = {}
    for pattern in _ERROR_TYPE_PATTERNS:
        for m in pattern.finditer(log):
            types.setdefault(m.group(0), None)
    return list(types)
