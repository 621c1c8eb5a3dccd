"""Path validation for every file-system access made by the core.

A path is accepted only when it is free of ``..`` segments, sits inside one
of the allowed roots, does not hit the platform denylist, and (if it is a
symlink) its target passes the same checks.
"""

from __future__ import annotations

import logging
import os
import re
import sys
from collections import Counter, deque
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from typing import Deque, Dict, Iterable, List, Optional, Pattern

logger = logging.getLogger(__name__)

MAX_PATH_LENGTH = 4096
SECURITY_LOG_CAPACITY = 1000

_BLOCKED_LINUX = [
    r"^/etc(/|$)",
    r"^/boot(/|$)",
    r"^/sys(/|$)",
    r"^/proc(/|$)",
    r"^/dev(/|$)",
    r"^/var/log(/|$)",
    r"^/usr/bin(/|$)",
    r"^/usr/sbin(/|$)",
    r"^/lib(/|$)",
    r"^/lib64(/|$)",
    r"^/sbin(/|$)",
    r"^/bin(/|$)",
    r"^/var/spool(/|$)",
    r"^/var/cache(/|$)",
    r"^/var/run(/|$)",
    r"^/lost\+found(/|$)",
]

_BLOCKED_MACOS = [
    r"^/System(/|$)",
    r"^/Library/Application Support(/|$)",
    r"^/Library/LaunchDaemons(/|$)",
    r"^/Library/LaunchAgents(/|$)",
    r"^/Library/Frameworks(/|$)",
    r"^/usr/libexec(/|$)",
    r"^/Applications/Utilities(/|$)",
]

_BLOCKED_WINDOWS = [
    r"^[A-Z]:\\Windows(\\|$)",
    r"^[A-Z]:\\Program Files(\\|$)",
    r"^[A-Z]:\\ProgramData(\\|$)",
    r"^[A-Z]:\\System Volume Information(\\|$)",
    r"^[A-Z]:\\Recovery(\\|$)",
    r"^[A-Z]:\\Boot(\\|$)",
    r"^[A-Z]:\\\$Recycle\.Bin(\\|$)",
    r"hiberfil\.sys$",
    r"pagefile\.sys$",
    r"swapfile\.sys$",
]

_BLOCKED_UNIVERSAL = [
    r"[/\\]\.ssh([/\\]|$)",
    r"[/\\]\.gnupg([/\\]|$)",
    r"id_rsa",
    r"id_ed25519",
    r"\.key$",
    r"\.pem$",
    r"shadow",
    r"passwd$",
    r"sudoers",
]


def blocked_patterns_for(platform: str) -> List[Pattern[str]]:
    """Compile the denylist for *platform* (a ``sys.platform`` value)."""
    raw = list(_BLOCKED_UNIVERSAL)
    if platform == "win32":
        raw += _BLOCKED_WINDOWS
    elif platform == "darwin":
        # macOS shares the Unix system directories
        raw += _BLOCKED_MACOS + _BLOCKED_LINUX
    else:
        raw += _BLOCKED_LINUX
    return [re.compile(p, re.IGNORECASE) for p in raw]


@dataclass(frozen=True)
class ValidationResult:
    ok: bool
    normalized_path: Optional[str] = None
    reason: str = ""
    code: str = ""


@dataclass(frozen=True)
class SecurityViolation:
    type: str
    path: str
    timestamp: str
    platform: str


class PathGuard:
    """Allow-list / denylist validator with a bounded violation log."""

    def __init__(
        self,
        allowed_roots: Iterable[str],
        platform: Optional[str] = None,
        max_path_length: int = MAX_PATH_LENGTH,
        log_capacity: int = SECURITY_LOG_CAPACITY,
        extra_blocked: Iterable[str] = (),
    ) -> None:
        self.platform = platform or sys.platform
        self.max_path_length = max_path_length
        self.allowed_roots = self._expand_roots(allowed_roots)
        self.blocked = blocked_patterns_for(self.platform)
        self.blocked += [re.compile(p, re.IGNORECASE) for p in extra_blocked]
        self.security_log: Deque[SecurityViolation] = deque(maxlen=log_capacity)

    @staticmethod
    def _expand_roots(roots: Iterable[str]) -> List[str]:
        expanded: List[str] = []
        for root in roots:
            if not root:
                continue
            root = os.path.expanduser(str(root))
            for candidate in (os.path.abspath(root), os.path.realpath(root)):
                if candidate not in expanded:
                    expanded.append(candidate)
        return expanded

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def validate(self, path: object) -> ValidationResult:
        return self._validate(path, seen=set())

    def is_allowed(self, path: object) -> bool:
        return self.validate(path).ok

    def validate_many(self, paths: Iterable[object]) -> List[Dict[str, object]]:
        return [{"path": p, **asdict(self.validate(p))} for p in paths]

    def _validate(self, path: object, seen: set) -> ValidationResult:
        if not path or not isinstance(path, (str, os.PathLike)):
            return ValidationResult(False, reason="Invalid path: must be a non-empty string", code="INVALID_INPUT")

        raw = os.fspath(path)
        if len(raw) > self.max_path_length:
            return ValidationResult(
                False,
                reason=f"Path too long: exceeds {self.max_path_length} characters",
                code="PATH_TOO_LONG",
            )

        normalized = os.path.normpath(raw)
        if _has_parent_segment(raw) or _has_parent_segment(normalized):
            self._record("TRAVERSAL_ATTEMPT", raw)
            return ValidationResult(False, reason="Directory traversal detected", code="TRAVERSAL_DETECTED")

        absolute = os.path.abspath(normalized)

        if not self._inside_allowed_root(absolute):
            self._record("OUTSIDE_ALLOWED_ROOTS", absolute)
            return ValidationResult(False, reason="Path is outside the allowed roots", code="OUTSIDE_ALLOWED_ROOTS")

        for pattern in self.blocked:
            if pattern.search(absolute):
                self._record("BLOCKED_PATH", absolute)
                return ValidationResult(False, reason="Access denied: system or credential path", code="BLOCKED_PATH")

        if os.path.islink(absolute):
            target = os.path.realpath(absolute)
            if target in seen:
                self._record("SYMLINK_LOOP", absolute)
                return ValidationResult(False, reason="Symbolic link loop", code="SYMLINK_LOOP")
            seen.add(absolute)
            result = self._validate(target, seen)
            if not result.ok:
                self._record("SYMLINK_TO_BLOCKED", absolute)
                return result

        return ValidationResult(True, normalized_path=absolute)

    def _inside_allowed_root(self, absolute: str) -> bool:
        for root in self.allowed_roots:
            if absolute == root:
                return True
            prefix = root if root.endswith(os.sep) else root + os.sep
            if absolute.startswith(prefix):
                return True
        return False

    # ------------------------------------------------------------------
    # Violation log
    # ------------------------------------------------------------------

    def _record(self, violation_type: str, path: str) -> None:
        self.security_log.append(
            SecurityViolation(
                type=violation_type,
                path=path[:100],
                timestamp=datetime.now(timezone.utc).isoformat(),
                platform=self.platform,
            )
        )
        logger.warning("[SECURITY] %s: blocked access attempt", violation_type)

    def stats(self) -> Dict[str, object]:
        counts = Counter(v.type for v in self.security_log)
        return {
            "total_violations": len(self.security_log),
            "violations_by_type": dict(counts),
            "recent_violations": [asdict(v) for v in list(self.security_log)[-10:]],
        }


def _has_parent_segment(path: str) -> bool:
    return ".." in re.split(r"[/\\]", path)
