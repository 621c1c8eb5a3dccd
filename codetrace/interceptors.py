"""Call interceptors for outer surfaces (CLI, RPC dispatch).

The core degrades quietly when a root fails the Path Guard: the walk is
empty and a diagnostic lands in the summary.  Surfaces that talk to a user
want a hard, early failure instead, so they wrap the service calls here.
"""

from __future__ import annotations

import functools
import inspect
import logging
from typing import Callable, Iterable, TypeVar

from .errors import InvalidPathError
from .orchestrator import CodeTraceService
from .search_engine import normalize_roots

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable)

ROOT_ARGUMENTS = ("roots", "root")


def validate_roots(func: F) -> F:
    """Run the owning service's Path Guard over ``roots``/``root`` before *func*.

    The decorated callable must be a method of an object with a
    ``path_guard`` attribute.

    Raises:
        InvalidPathError: The first root that fails validation.
    """
    signature = inspect.signature(func)

    @functools.wraps(func)
    def wrapper(self, *args, **kwargs):
        bound = signature.bind_partial(self, *args, **kwargs)
        for name in ROOT_ARGUMENTS:
            if name in bound.arguments:
                _check(self.path_guard, normalize_roots(bound.arguments[name]))
        return func(self, *args, **kwargs)

    return wrapper  # type: ignore[return-value]


def _check(path_guard, roots: Iterable[str]) -> None:
    for root in roots:
        result = path_guard.validate(root)
        if not result.ok:
            logger.warning("Rejected root %s: %s", root, result.reason)
            raise InvalidPathError(root, result.reason, result.code)


class GuardedCodeTraceService(CodeTraceService):
    """:class:`CodeTraceService` that rejects disallowed roots up front."""

    @validate_roots
    def search(self, query, roots, **options):
        return super().search(query, roots, **options)

    @validate_roots
    def trace(self, log, roots, **options):
        return super().trace(log, roots, **options)

    @validate_roots
    def trace_report(self, log, roots, **options):
        return super().trace_report(log, roots, **options)

    @validate_roots
    def resolve_dependencies(self, snippet, root, primary_file=None):
        return super().resolve_dependencies(snippet, root, primary_file=primary_file)

    @validate_roots
    def directory_stats(self, roots):
        return super().directory_stats(roots)
