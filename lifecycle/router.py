"""
Blueprint Engine — Resume Router

Pure state machine from (status, inspector predicates) to exactly one
resume route. Rules are evaluated top to bottom within the record's
status; the first match wins.

  error       has_dynamic_answers                   → GENERATING
  error       not static_complete                   → STATIC_WIZARD
  error       static_complete                       → LOAD_DYNAMIC_QUESTIONS
  generating  always, stale or not                  → GENERATING
  completed   has_content                           → VIEWER
  completed   no content, has_dynamic_answers       → GENERATING
  completed   no content, no dynamic answers        → DYNAMIC_WIZARD
  draft       not static_complete                   → STATIC_WIZARD
  draft       no dynamic questions                  → LOAD_DYNAMIC_QUESTIONS
  draft       dynamic answers incomplete            → DYNAMIC_WIZARD
  draft       everything answered                   → GENERATING

Staleness never changes the route; it is reported on the decision so the
caller can offer a retry affordance.

The router never raises. Unreadable records and unexpected faults fall
back to STATIC_WIZARD, the earliest wizard step, with a logged diagnostic.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Mapping, Union

from lifecycle.config import EngineConfig
from lifecycle.exceptions import RecordReadError, RecoverableRoutingFault
from lifecycle.inspector import RecordState, compute_state
from lifecycle.logging import DecisionLogger
from lifecycle.migrator import field_report
from lifecycle.record import BlueprintRecord, RecordStatus


class Route(str, enum.Enum):
    STATIC_WIZARD          = "STATIC_WIZARD"
    LOAD_DYNAMIC_QUESTIONS = "LOAD_DYNAMIC_QUESTIONS"
    DYNAMIC_WIZARD         = "DYNAMIC_WIZARD"
    GENERATING             = "GENERATING"
    VIEWER                 = "VIEWER"


SAFE_ROUTE = Route.STATIC_WIZARD


@dataclass(frozen=True)
class Rule:
    status: RecordStatus
    when: Callable[[RecordState], bool]
    route: Route
    reason: str


# Order within a status is significant.
TRANSITIONS: tuple[Rule, ...] = (
    Rule(RecordStatus.ERROR, lambda s: s.has_dynamic_answers,
         Route.GENERATING, "error with dynamic answers: retry generation"),
    Rule(RecordStatus.ERROR, lambda s: not s.static_complete,
         Route.STATIC_WIZARD, "error with incomplete static answers"),
    Rule(RecordStatus.ERROR, lambda s: s.static_complete and not s.has_dynamic_answers,
         Route.LOAD_DYNAMIC_QUESTIONS, "error before dynamic answers: regenerate questions"),

    Rule(RecordStatus.GENERATING, lambda s: True,
         Route.GENERATING, "generation in progress"),

    Rule(RecordStatus.COMPLETED, lambda s: s.has_content,
         Route.VIEWER, "completed with content"),
    Rule(RecordStatus.COMPLETED, lambda s: not s.has_content and s.has_dynamic_answers,
         Route.GENERATING, "completed without content: regenerate"),
    Rule(RecordStatus.COMPLETED, lambda s: not s.has_content and not s.has_dynamic_answers,
         Route.DYNAMIC_WIZARD, "completed without content or answers: back to questionnaire"),

    Rule(RecordStatus.DRAFT, lambda s: not s.static_complete,
         Route.STATIC_WIZARD, "static answers incomplete"),
    Rule(RecordStatus.DRAFT, lambda s: s.static_complete and not s.has_dynamic_questions,
         Route.LOAD_DYNAMIC_QUESTIONS, "no dynamic questions yet"),
    Rule(RecordStatus.DRAFT,
         lambda s: s.static_complete and s.has_dynamic_questions and not s.dynamic_complete,
         Route.DYNAMIC_WIZARD, "dynamic answers incomplete"),
    Rule(RecordStatus.DRAFT,
         lambda s: s.static_complete and s.has_dynamic_questions and s.dynamic_complete,
         Route.GENERATING, "all questionnaires complete"),
)


@dataclass(frozen=True)
class ResumeDecision:
    route: Route
    blueprint_id: str
    reason: str
    state: RecordState | None = None
    fallback: bool = False
    status: str | None = None

    @property
    def is_stale(self) -> bool:
        return bool(self.state and self.state.is_stale)

    def path(self, config: EngineConfig) -> str:
        """Render the route into the embedding application's URL."""
        return config.route_template(self.route.value).replace("{id}", self.blueprint_id)

    def to_dict(self, config: EngineConfig | None = None) -> dict[str, Any]:
        out: dict[str, Any] = {
            "route": self.route.value,
            "blueprint_id": self.blueprint_id,
            "reason": self.reason,
            "fallback": self.fallback,
            "status": self.status,
            "is_stale": self.is_stale,
            "state": self.state.to_dict() if self.state else None,
        }
        if config is not None:
            out["path"] = self.path(config)
        return out


def select_route(status: RecordStatus, state: RecordState) -> Rule:
    """First matching rule for the status. The table is exhaustive per status."""
    for rule in TRANSITIONS:
        if rule.status is status and rule.when(state):
            return rule
    raise LookupError(f"No resume rule matches status={status.value} state={state}")


RecordSource = Union[BlueprintRecord, Mapping[str, Any], Callable[[], Any], None]


def _materialize(source: RecordSource) -> BlueprintRecord:
    if callable(source) and not isinstance(source, (BlueprintRecord, Mapping)):
        source = source()
    if source is None:
        raise RecordReadError("Blueprint not found")
    if isinstance(source, BlueprintRecord):
        return source
    return BlueprintRecord.from_row(source)


def _guess_id(source: Any, fallback_id: str) -> str:
    if fallback_id:
        return fallback_id
    if isinstance(source, BlueprintRecord):
        return source.id
    if isinstance(source, Mapping) and source.get("id") is not None:
        return str(source["id"])
    return ""


def route_for(
    source: RecordSource,
    config: EngineConfig | None = None,
    now: datetime | None = None,
    blueprint_id: str = "",
    trace_id: str | None = None,
) -> ResumeDecision:
    """
    Decide where the user should resume.

    `source` is a BlueprintRecord, a persistence row, or a zero-argument
    loader. Loader failures are routing faults like any other.
    """
    config = config or EngineConfig()
    bid = _guess_id(source, blueprint_id)
    log = DecisionLogger("router", blueprint_id=bid, trace_id=trace_id)

    try:
        record = _materialize(source)
        bid = bid or record.id
        log.blueprint_id = bid

        state = compute_state(record, now=now, stale_after_minutes=config.stale_after_minutes)
        log.static_completeness(state.static_complete, state.static_generation,
                                field_report(record.static_answers))
        if state.is_stale:
            log.stale_generation(state.minutes_since_update or 0.0)

        rule = select_route(record.status, state)
        if state.integrity_violation:
            log.integrity_violation(record.status.value, rule.route.value)

        log.route_decision(
            rule.route.value, record.status.value, rule.reason,
            state={**state.to_dict(), "questionnaire_version": record.questionnaire_version},
        )
        return ResumeDecision(
            route=rule.route,
            blueprint_id=bid,
            reason=rule.reason,
            state=state,
            status=record.status.value,
        )
    except Exception as e:
        fault = RecoverableRoutingFault(bid, e)
        fault.__cause__ = e
        log.route_fallback(SAFE_ROUTE.value, fault)
        return ResumeDecision(
            route=SAFE_ROUTE,
            blueprint_id=bid,
            reason=str(fault),
            fallback=True,
        )
