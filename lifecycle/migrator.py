"""
Blueprint Engine — Static Answer Version Migrator

Static answers have been written by three questionnaire generations and
are never rewritten afterwards. This module reads across all three shapes:

  NESTED_V2       section_1_role_experience.current_role, ...
  LEGACY_FLAT     learningObjective, targetAudience, ...
  CANONICAL_FLAT  role, organization, learningGap, ...

Tiers are checked in that priority order; the first fully-satisfied tier
decides. Nothing here mutates the answers it is given.
"""

from __future__ import annotations

import enum
from typing import Any, Mapping

from lifecycle.accessors import ABSENT, get_key, get_nested, has_text


class SchemaGeneration(str, enum.Enum):
    NESTED_V2 = "nested_v2"
    LEGACY_FLAT = "legacy_flat"
    CANONICAL_FLAT = "canonical_flat"


# Priority order matters: nested-v2 first, canonical flat last.
REQUIRED_FIELDS: dict[SchemaGeneration, tuple[str, ...]] = {
    SchemaGeneration.NESTED_V2: (
        "section_1_role_experience.current_role",
        "section_2_organization.organization_name",
        "section_3_learning_gap.learning_gap_description",
    ),
    SchemaGeneration.LEGACY_FLAT: (
        "learningObjective",
        "targetAudience",
        "deliveryMethod",
        "duration",
        "assessmentType",
    ),
    SchemaGeneration.CANONICAL_FLAT: (
        "role",
        "organization",
        "learningGap",
        "resources",
        "constraints",
    ),
}


def _lookup(answers: Any, generation: SchemaGeneration, field: str) -> Any:
    # Flat generations address top-level keys verbatim; only nested-v2
    # paths are dotted.
    if generation is SchemaGeneration.NESTED_V2:
        return get_nested(answers, field)
    return get_key(answers, field)


def tier_complete(answers: Any, generation: SchemaGeneration) -> bool:
    return all(has_text(_lookup(answers, generation, f))
               for f in REQUIRED_FIELDS[generation])


def detect_generation(static_answers: Mapping[str, Any] | None) -> SchemaGeneration | None:
    """Return the first generation whose required fields are all filled."""
    if not isinstance(static_answers, Mapping):
        return None
    for generation in REQUIRED_FIELDS:
        if tier_complete(static_answers, generation):
            return generation
    return None


def is_static_complete(static_answers: Mapping[str, Any] | None) -> bool:
    """True when any known questionnaire generation is fully answered."""
    return detect_generation(static_answers) is not None


def field_report(static_answers: Mapping[str, Any] | None) -> dict[str, dict[str, bool]]:
    """
    Per-generation map of field → filled, for diagnostics.

    Example:
        {"nested_v2": {"section_1_role_experience.current_role": True, ...}, ...}
    """
    answers = static_answers if isinstance(static_answers, Mapping) else ABSENT
    return {
        generation.value: {
            f: has_text(_lookup(answers, generation, f))
            for f in fields
        }
        for generation, fields in REQUIRED_FIELDS.items()
    }


def read_field(static_answers: Mapping[str, Any] | None, *candidates: str) -> Any:
    """
    First present value among candidate paths, across generations.

    read_field(answers, "section_2_organization.organization_name",
               "organization") returns whichever shape the record used.
    """
    for path in candidates:
        value = get_nested(static_answers, path)
        if value is not ABSENT and value is not None:
            return value
    return ABSENT
