"""
Blueprint Engine — Structured Exception Hierarchy

Typed errors so the embedding application can distinguish between:
- Input failures  → the generated text is unusable, ask the user to retry
- Shape failures  → the JSON parsed but matches no known blueprint schema
- Read failures   → the persisted row could not be adapted into a record
- Config failures → the engine refused to start

Reconciliation errors are *returned* as values, not raised; they still
subclass Exception so callers may choose to raise them via unwrap().
"""

from __future__ import annotations

from enum import Enum
from typing import Any


USER_RETRY_MESSAGE = "Content unavailable, please retry."


class Severity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


# ═══════════════════════════════════════════════════════════════
# Base
# ═══════════════════════════════════════════════════════════════

class BlueprintEngineError(Exception):
    """Base exception for all blueprint engine errors."""
    severity: Severity = Severity.MEDIUM
    retryable: bool = False
    code: str = "engine_error"

    def __init__(self, message: str = "", **kwargs: Any):
        self.detail = kwargs
        super().__init__(message)

    @property
    def user_message(self) -> str:
        return USER_RETRY_MESSAGE

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": self.code,
            "message": str(self),
            "severity": self.severity.value,
            "retryable": self.retryable,
        }


# ═══════════════════════════════════════════════════════════════
# Reconciliation Errors: returned by the schema reconciler
# ═══════════════════════════════════════════════════════════════

class ReconciliationError(BlueprintEngineError):
    """Generated artifact could not be turned into a canonical blueprint."""
    retryable = True  # a fresh generation may succeed


class MalformedInputError(ReconciliationError):
    """Raw artifact text is not parseable as JSON. Terminal, no repair."""
    code = "malformed_input"

    def __init__(self, reason: str, excerpt: str = ""):
        self.reason = reason
        self.excerpt = excerpt
        super().__init__(
            f"Artifact is not valid JSON: {reason}",
            reason=reason,
            excerpt=excerpt,
        )


class SchemaMismatchError(ReconciliationError):
    """Artifact parsed but matches no known blueprint shape, even after repair."""
    code = "schema_mismatch"

    def __init__(self, message: str, cause: Exception | None = None,
                 issues: list[dict[str, Any]] | None = None):
        self.cause = cause
        self.issues = issues or []
        super().__init__(message, issue_count=len(self.issues))

    def to_dict(self) -> dict[str, Any]:
        out = super().to_dict()
        out["issues"] = self.issues
        return out


# ═══════════════════════════════════════════════════════════════
# Routing Errors: never escape the resume router
# ═══════════════════════════════════════════════════════════════

class RoutingError(BlueprintEngineError):
    """Failures inside resume routing."""
    severity = Severity.LOW


class RecordReadError(RoutingError):
    """Persisted row could not be read or adapted into a BlueprintRecord."""
    code = "record_read_error"


class RecoverableRoutingFault(RoutingError):
    """Unexpected fault while computing a route; converted to the safe route."""
    code = "recoverable_routing_fault"

    def __init__(self, blueprint_id: str, cause: BaseException):
        self.blueprint_id = blueprint_id
        self.cause = cause
        super().__init__(
            f"Routing fault for blueprint {blueprint_id!r}: "
            f"{type(cause).__name__}: {cause}",
            blueprint_id=blueprint_id,
        )


# ═══════════════════════════════════════════════════════════════
# Configuration Errors
# ═══════════════════════════════════════════════════════════════

class ConfigError(BlueprintEngineError):
    """Invalid engine configuration. Raised at start-up."""
    severity = Severity.HIGH
    code = "config_error"
