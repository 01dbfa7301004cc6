"""
Errors of the sync engine and the tracker the orchestrator reports them to.

Every exception carries the story, page path or index it concerns as
``source_id``, plus an optional hint on how to recover. The orchestrator
records the failures of full syncs and webhook events in an ``ErrorTracker``,
whose report is served on ``/status``. The tracker is bounded: a long-running
host keeps only the most recent errors.
"""

import time
from collections import Counter, deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Deque, Dict, List, Optional


class ErrorSeverity(Enum):
    WARNING = "WARNING"    # a single story or bulk item was dropped
    ERROR = "ERROR"        # a webhook event could not be applied
    CRITICAL = "CRITICAL"  # a full sync aborted, the index may be incomplete

    @property
    def rank(self) -> int:
        return list(ErrorSeverity).index(self)


class SyncException(Exception):
    """Base class for all sync engine exceptions."""
    def __init__(self, message: str, source_id: Optional[str] = None, recovery_suggestion: Optional[str] = None):
        self.message = message
        self.source_id = source_id
        self.recovery_suggestion = recovery_suggestion
        super().__init__(self.message)


class ConfigurationError(SyncException):
    """The YAML file or environment variables do not form a valid configuration."""


class SourceFetchError(SyncException):
    """A request to the Storyblok content delivery API failed."""


class ExternalServiceError(SyncException):
    """Elasticsearch was unreachable or rejected a request."""


class FullSyncError(SyncException):
    """A full sync was aborted. The index may be empty or partially populated."""


class MissingStoryError(SyncException):
    """A story could not be found, or its data is unusable."""


class InvalidSlugError(MissingStoryError):
    """A story has an empty or malformed full_slug."""


class UnauthorizedEditorError(SyncException):
    """The visual editor token did not match or has expired."""


@dataclass
class SyncError:
    """One recorded failure."""
    message: str
    source_id: Optional[str] = None
    severity: ErrorSeverity = ErrorSeverity.ERROR
    details: Dict[str, Any] = field(default_factory=dict)
    recovery_suggestion: Optional[str] = None
    occurred_at: float = field(default_factory=time.time)

    @classmethod
    def from_exception(cls, exc: SyncException, severity: ErrorSeverity,
                       details: Optional[Dict[str, Any]] = None) -> 'SyncError':
        return cls(
            message=exc.message,
            source_id=exc.source_id,
            severity=severity,
            details={'error_type': type(exc).__name__, **(details or {})},
            recovery_suggestion=exc.recovery_suggestion,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "message": self.message,
            "source_id": self.source_id,
            "severity": self.severity.value,
            "details": self.details,
            "recovery_suggestion": self.recovery_suggestion,
            "occurred_at": self.occurred_at,
        }


class ErrorTracker:
    """Keeps the most recent ``max_errors`` failures of one orchestrator."""

    def __init__(self, max_errors: int = 500):
        self.errors: Deque[SyncError] = deque(maxlen=max_errors)
        self.dropped = 0

    def _record(self, error: SyncError) -> None:
        if len(self.errors) == self.errors.maxlen:
            self.dropped += 1
        self.errors.append(error)

    def report(self, message: str, source_id: Optional[str] = None, severity: ErrorSeverity = ErrorSeverity.ERROR,
               details: Optional[Dict[str, Any]] = None, recovery_suggestion: Optional[str] = None) -> None:
        self._record(SyncError(
            message=message,
            source_id=source_id,
            severity=severity,
            details=details or {},
            recovery_suggestion=recovery_suggestion,
        ))

    def report_exception(self, exc: SyncException, severity: ErrorSeverity = ErrorSeverity.ERROR,
                         details: Optional[Dict[str, Any]] = None) -> None:
        self._record(SyncError.from_exception(exc, severity, details))

    def get_errors(self, min_severity: ErrorSeverity = ErrorSeverity.WARNING) -> List[SyncError]:
        return [e for e in self.errors if e.severity.rank >= min_severity.rank]

    def has_critical_errors(self) -> bool:
        return any(e.severity == ErrorSeverity.CRITICAL for e in self.errors)

    def generate_report(self) -> Dict[str, Any]:
        """Counts per severity, plus the retained errors oldest first."""
        counts = Counter(e.severity.value for e in self.errors)
        return {
            "total_errors": len(self.errors),
            "dropped": self.dropped,
            "by_severity": {severity.value: counts.get(severity.value, 0) for severity in ErrorSeverity},
            "errors": [e.to_dict() for e in self.errors],
        }
