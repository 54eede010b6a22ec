"""
Blueprint Engine — Persisted Record

BlueprintRecord is the read-only snapshot the engine classifies. It is
owned by the persistence collaborator: the engine never writes status,
version or content back. Answer and question fields are deliberately left
untyped because their shape changed across questionnaire generations.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Mapping

from lifecycle.exceptions import RecordReadError

logger = logging.getLogger("blueprint_engine.record")


class RecordStatus(str, enum.Enum):
    """Blueprint lifecycle states as stored by the persistence layer."""
    DRAFT      = "draft"
    GENERATING = "generating"
    COMPLETED  = "completed"
    ERROR      = "error"


# Legal lifecycle moves: from_state → set of valid to_states.
_STATUS_TRANSITIONS: dict[RecordStatus, set[RecordStatus]] = {
    RecordStatus.DRAFT:      {RecordStatus.GENERATING},
    RecordStatus.GENERATING: {RecordStatus.COMPLETED, RecordStatus.ERROR},
    RecordStatus.ERROR:      {RecordStatus.GENERATING, RecordStatus.DRAFT},
    RecordStatus.COMPLETED:  {RecordStatus.GENERATING},
}


def can_transition(current: RecordStatus, target: RecordStatus) -> bool:
    """Whether the surrounding application may move a record current → target."""
    return target in _STATUS_TRANSITIONS.get(current, set())


def parse_status(value: Any) -> RecordStatus:
    """
    Coerce a stored status. Unrecognised strings (e.g. an intermediate
    "answering" state) resume with the draft rules; anything that is not a
    string cannot be classified.
    """
    if isinstance(value, RecordStatus):
        return value
    if not isinstance(value, str):
        raise RecordReadError(f"Unreadable blueprint status {value!r}", status=value)
    try:
        return RecordStatus(value.strip().lower())
    except ValueError:
        logger.warning("Unknown blueprint status %r, treating as draft", value)
        return RecordStatus.DRAFT


def parse_timestamp(value: Any) -> datetime | None:
    """
    Accept datetimes, ISO-8601 strings (a trailing Z included) and epoch
    seconds. Naive values are taken as UTC.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, bool):
        raise RecordReadError(f"Unreadable updated_at {value!r}")
    elif isinstance(value, (int, float)):
        dt = datetime.fromtimestamp(value, tz=timezone.utc)
    elif isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            dt = datetime.fromisoformat(text)
        except ValueError:
            raise RecordReadError(f"Unreadable updated_at {value!r}") from None
    else:
        raise RecordReadError(f"Unreadable updated_at {value!r}")
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


@dataclass(frozen=True)
class BlueprintRecord:
    """Snapshot of one blueprint row."""
    id: str
    owner_id: str = ""
    version: int = 1
    status: RecordStatus = RecordStatus.DRAFT
    static_answers: Any = field(default_factory=dict)
    dynamic_questions: Any = field(default_factory=list)
    dynamic_answers: Any = field(default_factory=dict)
    generated_artifact_json: Any = None
    generated_artifact_markdown: str | None = None
    updated_at: datetime | None = None
    questionnaire_version: int | None = None

    def __post_init__(self):
        object.__setattr__(self, "status", parse_status(self.status))

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> BlueprintRecord:
        """
        Adapt a persistence row (snake_case columns) into a record.

        Answer and question columns are passed through untouched, whatever
        their type; the inspector decides what is usable.
        """
        if not isinstance(row, Mapping):
            raise RecordReadError(f"Blueprint row must be a mapping, got {type(row).__name__}")
        blueprint_id = row.get("id")
        if blueprint_id is None or str(blueprint_id).strip() == "":
            raise RecordReadError("Blueprint row has no id")

        version = row.get("version", 1)
        if isinstance(version, bool) or not isinstance(version, int):
            try:
                version = int(version)
            except (TypeError, ValueError):
                raise RecordReadError(f"Unreadable version {version!r}") from None

        qv = row.get("questionnaire_version")
        return cls(
            id=str(blueprint_id),
            owner_id=str(row.get("user_id") or row.get("owner_id") or ""),
            version=version,
            status=parse_status(row.get("status", RecordStatus.DRAFT.value)),
            static_answers=row.get("static_answers"),
            dynamic_questions=row.get("dynamic_questions"),
            dynamic_answers=row.get("dynamic_answers"),
            generated_artifact_json=row.get("blueprint_json"),
            generated_artifact_markdown=row.get("blueprint_markdown"),
            updated_at=parse_timestamp(row.get("updated_at")),
            questionnaire_version=qv if isinstance(qv, int) and not isinstance(qv, bool) else None,
        )
