"""
Blueprint Engine — State Inspector

Boolean completeness predicates for one record snapshot. The inspector
never raises: any malformed sub-field (wrong type, missing) counts as
absent, so the router always has a full set of facts to route on.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Mapping

from lifecycle.accessors import get_key, is_non_empty, list_or_empty, mapping_or_empty
from lifecycle.migrator import detect_generation
from lifecycle.record import BlueprintRecord, RecordStatus

DEFAULT_STALE_AFTER_MINUTES = 10


@dataclass(frozen=True)
class RecordState:
    static_complete: bool = False
    has_dynamic_questions: bool = False
    dynamic_complete: bool = False
    has_content: bool = False
    is_stale: bool = False
    has_dynamic_answers: bool = False
    # Completed with no content; detected, never raised.
    integrity_violation: bool = False
    static_generation: str | None = None
    missing_required: tuple[str, ...] = field(default_factory=tuple)
    minutes_since_update: float | None = None

    def to_dict(self) -> dict[str, Any]:
        out = asdict(self)
        out["missing_required"] = list(self.missing_required)
        return out


def required_question_ids(dynamic_questions: Any) -> list[str]:
    """Ids of every question flagged required, across all sections, in order."""
    ids: list[str] = []
    for section in list_or_empty(dynamic_questions):
        for question in list_or_empty(get_key(section, "questions")):
            if not isinstance(question, Mapping):
                continue
            qid = question.get("id")
            if question.get("required") and qid is not None and str(qid) != "":
                ids.append(str(qid))
    return ids


def missing_required_answers(dynamic_questions: Any, dynamic_answers: Any) -> list[str]:
    answers = mapping_or_empty(dynamic_answers)
    return [qid for qid in required_question_ids(dynamic_questions)
            if not is_non_empty(answers.get(qid))]


def dynamic_answers_complete(dynamic_questions: Any, dynamic_answers: Any) -> bool:
    """
    Every required question answered. When the questionnaire encodes no
    requirements at all, any saved answer counts as completion.
    """
    answers = mapping_or_empty(dynamic_answers)
    if not required_question_ids(dynamic_questions):
        return len(answers) > 0
    return not missing_required_answers(dynamic_questions, answers)


def has_content(record: BlueprintRecord) -> bool:
    markdown = record.generated_artifact_markdown
    if isinstance(markdown, str) and markdown != "":
        return True
    return len(mapping_or_empty(record.generated_artifact_json)) > 0


def minutes_since(updated_at: datetime | None, now: datetime) -> float | None:
    if not isinstance(updated_at, datetime):
        return None
    if updated_at.tzinfo is None:
        updated_at = updated_at.replace(tzinfo=timezone.utc)
    return (now - updated_at).total_seconds() / 60.0


def compute_state(
    record: BlueprintRecord,
    now: datetime | None = None,
    stale_after_minutes: float = DEFAULT_STALE_AFTER_MINUTES,
) -> RecordState:
    """Derive every routing predicate from a record snapshot."""
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)

    generation = detect_generation(record.static_answers)
    questions = record.dynamic_questions
    answers = mapping_or_empty(record.dynamic_answers)
    content = has_content(record)
    elapsed = minutes_since(record.updated_at, now)

    return RecordState(
        static_complete=generation is not None,
        has_dynamic_questions=len(list_or_empty(questions)) > 0,
        dynamic_complete=dynamic_answers_complete(questions, answers),
        has_content=content,
        is_stale=(
            record.status is RecordStatus.GENERATING
            and elapsed is not None
            and elapsed > stale_after_minutes
        ),
        has_dynamic_answers=len(answers) > 0,
        integrity_violation=record.status is RecordStatus.COMPLETED and not content,
        static_generation=generation.value if generation else None,
        missing_required=tuple(missing_required_answers(questions, answers)),
        minutes_since_update=elapsed,
    )
