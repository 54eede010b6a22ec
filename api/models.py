"""
Blueprint Engine — API Models

Request/response dataclasses for the API server.
No FastAPI dependency — used by server and tests.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any


@dataclass
class ReconcileRequest:
    """POST /v1/artifacts/reconcile request body."""
    raw: Any

    def validate(self) -> list[str]:
        """Return list of validation errors (empty = valid)."""
        errors = []
        if not isinstance(self.raw, str):
            errors.append("raw is required and must be a string")
        return errors


@dataclass
class StaticAnswersRequest:
    """POST /v1/static-answers/complete request body."""
    static_answers: Any

    def validate(self) -> list[str]:
        errors = []
        if self.static_answers is not None and not isinstance(self.static_answers, dict):
            errors.append("static_answers must be an object")
        return errors


@dataclass
class StaticAnswersResponse:
    complete: bool
    generation: str | None = None
    fields: dict[str, dict[str, bool]] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class HealthResponse:
    status: str
    env: str
    version: str = "0.1.0"

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)
