"""Error taxonomy for the search, trace and resolution core.

Only :class:`InvalidArgumentError` ever reaches a caller.  Every other class
describes a degraded outcome that the core converts into a diagnostic string
(see :func:`diagnostic`) and continues past.
"""

from __future__ import annotations


class CodeTraceError(Exception):
    """Base class for all CodeTrace errors."""


class InvalidArgumentError(CodeTraceError, ValueError):
    """Raised when a top-level call is made with unusable arguments."""


class InvalidPathError(CodeTraceError):
    """A path failed Path Guard validation and was skipped."""

    def __init__(self, path: str, reason: str, code: str = "INVALID_PATH"):
        super().__init__(f"{path}: {reason}")
        self.path = path
        self.reason = reason
        self.code = code


class DirectoryReadError(CodeTraceError):
    """A directory could not be listed."""


class FileReadError(CodeTraceError):
    """A file could not be read."""


class MalformedPatternError(CodeTraceError):
    """A search strategy's regular expression failed to compile."""


class ResolutionNotFound(CodeTraceError):
    """A traced identifier produced no matches."""


def diagnostic(kind: type, path: str, detail: object) -> str:
    """Format a non-fatal failure for a summary ``errors`` list."""
    return f"{kind.__name__}: {path}: {detail}"
