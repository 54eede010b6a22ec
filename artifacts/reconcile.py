"""
Blueprint Engine — Schema Reconciler

Turns whatever the generation service returned into a CanonicalBlueprint,
or into a structured error value. Tiers run in order; the first success
wins and later tiers are not attempted:

  parse     JSON parse. Failure is a terminal MalformedInputError.
  strict    Validate directly against CanonicalBlueprint.
  extended  Validate against ExtendedArtifact, map with the strict accessor,
            re-validate. A failed re-validation is terminal.
  repair    Only when the extended validation itself failed: map the raw
            object with the tolerant accessor, re-validate.

When every tier fails the error carries the *strict* tier's cause, the
most informative of the three for whoever fixes the prompt.

Nothing here raises for bad input; callers branch on result.ok.

Usage:
    from artifacts.reconcile import reconcile_artifact

    result = reconcile_artifact(llm_text)
    if result.ok:
        save(result.blueprint.to_dict())
    else:
        show(result.error.user_message)
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Callable, Mapping

from pydantic import ValidationError

from artifacts.mapping import STRICT, TOLERANT, MappingFault, map_to_canonical
from artifacts.schemas import EXTENDED_ONLY_KEYS, CanonicalBlueprint, ExtendedArtifact
from lifecycle.config import EngineConfig
from lifecycle.exceptions import MalformedInputError, ReconciliationError, SchemaMismatchError
from lifecycle.logging import DecisionLogger

TIER_PARSE = "parse"
TIER_STRICT = "strict"
TIER_EXTENDED = "extended"
TIER_REPAIR = "repair"

EXCERPT_CHARS = 120


# ═══════════════════════════════════════════════════════════════════
# Result types
# ═══════════════════════════════════════════════════════════════════

@dataclass
class TierOutcome:
    tier: str
    ok: bool
    blueprint: CanonicalBlueprint | None = None
    cause: Exception | None = None
    # A terminal failure stops the pipeline; later tiers are not tried.
    terminal: bool = False
    skipped: bool = False

    @property
    def issues(self) -> list[dict[str, Any]]:
        return validation_issues(self.cause, self.tier)


@dataclass
class ReconcileResult:
    blueprint: CanonicalBlueprint | None = None
    error: ReconciliationError | None = None
    tier: str | None = None
    attempts: list[TierOutcome] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.blueprint is not None

    @property
    def issues(self) -> list[dict[str, Any]]:
        if isinstance(self.error, SchemaMismatchError):
            return self.error.issues
        return []

    def unwrap(self) -> CanonicalBlueprint:
        """Return the blueprint or raise the error value."""
        if self.blueprint is None:
            raise self.error or ReconciliationError("Reconciliation produced no result")
        return self.blueprint

    def to_dict(self) -> dict[str, Any]:
        if self.ok:
            return {"ok": True, "tier": self.tier, "blueprint": self.blueprint.to_dict()}
        out = {"ok": False, "tier": self.tier}
        if self.error is not None:
            out.update(self.error.to_dict())
            out["user_message"] = self.error.user_message
        return out


def validation_issues(cause: Exception | None, tier: str) -> list[dict[str, Any]]:
    """Flatten a validation cause into JSON-safe issue dicts."""
    if cause is None:
        return []
    if isinstance(cause, ValidationError):
        return [
            {
                "tier": tier,
                "location": ".".join(str(part) for part in err.get("loc", ())) or "root",
                "message": err.get("msg", ""),
                "type": err.get("type", ""),
            }
            for err in cause.errors(include_url=False)
        ]
    return [{"tier": tier, "location": "root", "message": str(cause),
             "type": type(cause).__name__}]


def _reject_constant(name: str) -> Any:
    raise ValueError(f"non-standard JSON constant {name}")


def parse_json(raw_text: Any) -> Any:
    """Strict JSON parse: text only, no NaN/Infinity. Raises MalformedInputError."""
    if isinstance(raw_text, (bytes, bytearray)):
        try:
            raw_text = raw_text.decode("utf-8")
        except UnicodeDecodeError as e:
            raise MalformedInputError(f"not UTF-8 text ({e.reason})") from e
    if not isinstance(raw_text, str):
        raise MalformedInputError(f"expected text, got {type(raw_text).__name__}")
    try:
        return json.loads(raw_text, parse_constant=_reject_constant)
    except ValueError as e:
        raise MalformedInputError(str(e), excerpt=raw_text[:EXCERPT_CHARS]) from e


def is_extended_shaped(value: Any) -> bool:
    return isinstance(value, Mapping) and any(k in value for k in EXTENDED_ONLY_KEYS)


# ═══════════════════════════════════════════════════════════════════
# Reconciler
# ═══════════════════════════════════════════════════════════════════

class SchemaReconciler:
    """
    Ordered pipeline of independent validators.

    Each tier takes the parsed value plus the outcomes so far and returns
    a TierOutcome; it never raises for bad input.
    """

    def __init__(self, config: EngineConfig | None = None):
        self.config = config or EngineConfig()
        self.tiers: list[Callable[[Any, list[TierOutcome]], TierOutcome]] = [
            self.validate_strict,
            self.validate_extended,
            self.repair,
        ]

    # ── Tiers ───────────────────────────────────────────────────

    def validate_strict(self, parsed: Any, prior: list[TierOutcome]) -> TierOutcome:
        try:
            return TierOutcome(TIER_STRICT, True,
                               blueprint=CanonicalBlueprint.model_validate(parsed))
        except ValidationError as e:
            return TierOutcome(TIER_STRICT, False, cause=e)

    def validate_extended(self, parsed: Any, prior: list[TierOutcome]) -> TierOutcome:
        try:
            extended = ExtendedArtifact.model_validate(parsed)
        except ValidationError as e:
            return TierOutcome(TIER_EXTENDED, False, cause=e)

        # From here on the artifact is known to be extended-shaped: any
        # failure is terminal rather than a reason to try repair.
        try:
            mapped = map_to_canonical(extended.model_dump(), STRICT, self.config.defaults)
            return TierOutcome(TIER_EXTENDED, True,
                               blueprint=CanonicalBlueprint.model_validate(mapped))
        except (ValidationError, MappingFault) as e:
            return TierOutcome(TIER_EXTENDED, False, cause=e, terminal=True)

    def repair(self, parsed: Any, prior: list[TierOutcome]) -> TierOutcome:
        if not self.config.repair_enabled or not is_extended_shaped(parsed):
            return TierOutcome(TIER_REPAIR, False, skipped=True)
        mapped = map_to_canonical(parsed, TOLERANT, self.config.defaults)
        try:
            return TierOutcome(TIER_REPAIR, True,
                               blueprint=CanonicalBlueprint.model_validate(mapped))
        except ValidationError as e:
            return TierOutcome(TIER_REPAIR, False, cause=e)

    # ── Pipeline ────────────────────────────────────────────────

    def reconcile(self, raw_text: Any, trace_id: str | None = None) -> ReconcileResult:
        """Parse raw generation output and reconcile it."""
        log = DecisionLogger("reconciler", trace_id=trace_id)
        try:
            parsed = parse_json(raw_text)
        except MalformedInputError as e:
            log.reconcile_failed(e.code, str(e))
            return ReconcileResult(error=e, tier=TIER_PARSE)
        return self._run(parsed, log)

    def reconcile_value(self, parsed: Any, trace_id: str | None = None) -> ReconcileResult:
        """Reconcile already-decoded JSON, e.g. a stored blueprint_json column."""
        return self._run(parsed, DecisionLogger("reconciler", trace_id=trace_id))

    def _run(self, parsed: Any, log: DecisionLogger) -> ReconcileResult:
        attempts: list[TierOutcome] = []
        for tier in self.tiers:
            outcome = tier(parsed, attempts)
            attempts.append(outcome)
            if outcome.skipped:
                continue
            log.reconcile_tier(outcome.tier, outcome.ok, len(outcome.issues))

            if outcome.ok:
                log.reconcile_success(outcome.tier, len(outcome.blueprint.modules))
                return ReconcileResult(blueprint=outcome.blueprint, tier=outcome.tier,
                                       attempts=attempts)
            if outcome.terminal:
                error = SchemaMismatchError(
                    "Mapped extended artifact failed canonical validation",
                    cause=outcome.cause,
                    issues=outcome.issues,
                )
                log.reconcile_failed(error.code, str(error))
                return ReconcileResult(error=error, tier=outcome.tier, attempts=attempts)

        strict = attempts[0]
        error = SchemaMismatchError(
            "Blueprint JSON failed schema validation",
            cause=strict.cause,
            issues=strict.issues,
        )
        log.reconcile_failed(error.code, str(error))
        return ReconcileResult(error=error, tier=TIER_STRICT, attempts=attempts)


def reconcile_artifact(raw_text: Any, config: EngineConfig | None = None,
                       trace_id: str | None = None) -> ReconcileResult:
    """Module-level convenience for one-off reconciliation."""
    return SchemaReconciler(config).reconcile(raw_text, trace_id=trace_id)
