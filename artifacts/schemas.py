"""
Blueprint Engine — Artifact Schemas

Structured contracts for the generated blueprint artifact:

  CanonicalBlueprint  the one shape the rest of the application consumes
  ExtendedArtifact    the richer prompt-shaped output the generation
                      service may emit instead, mapped to canonical form

Canonical fields are strictly typed: a number is never accepted where
text is expected and booleans never pass as integers.
"""

from typing import Annotated, Any, Optional, Union

from pydantic import (
    BaseModel, ConfigDict, Field, StrictFloat, StrictInt, StrictStr, StringConstraints,
)

NonEmptyStr = Annotated[str, StringConstraints(strict=True, min_length=1)]


# ---------------------------------------------------------------------------
# Canonical blueprint
# ---------------------------------------------------------------------------

class BlueprintModule(BaseModel):
    """One teachable unit of the blueprint."""
    model_config = ConfigDict(extra="allow")

    title: NonEmptyStr = Field(description="Module title")
    duration: StrictInt = Field(ge=0, description="Duration in whole hours")
    topics: list[NonEmptyStr] = Field(min_length=1, description="Topics covered")
    activities: list[Union[NonEmptyStr, dict[str, Any]]] = Field(
        min_length=1,
        description="Learning activities; plain text or structured entries",
    )
    assessments: list[Union[NonEmptyStr, dict[str, Any]]] = Field(
        min_length=1,
        description="How learning in this module is assessed",
    )


class BlueprintResource(BaseModel):
    """A person, tool, budget line or reference used by the programme."""
    model_config = ConfigDict(extra="allow")

    name: NonEmptyStr
    type: NonEmptyStr
    url: Optional[StrictStr] = None


class CanonicalBlueprint(BaseModel):
    """Validated learning blueprint. Unknown keys are preserved, never stripped."""
    model_config = ConfigDict(extra="allow")

    title: NonEmptyStr = Field(description="Blueprint title")
    overview: NonEmptyStr = Field(description="One-paragraph overview")
    learningObjectives: list[NonEmptyStr] = Field(
        min_length=1, description="Measurable learning objectives",
    )
    modules: list[BlueprintModule] = Field(min_length=1)
    timeline: Optional[dict[str, StrictStr]] = Field(
        default=None, description="Phase name → 'start to end'",
    )
    resources: Optional[list[BlueprintResource]] = None

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(exclude_unset=True)


# ---------------------------------------------------------------------------
# Extended (prompt-shaped) artifact
# ---------------------------------------------------------------------------

class ArtifactMetadata(BaseModel):
    organization: StrictStr
    role: Optional[StrictStr] = None


class ExtendedObjective(BaseModel):
    title: StrictStr


class OutlineEntry(BaseModel):
    title: Optional[StrictStr] = None
    module: Optional[StrictStr] = None
    topics: list[StrictStr] = Field(default_factory=list)
    duration: Optional[StrictStr] = None
    delivery_method: Optional[StrictStr] = None
    prerequisites: list[StrictStr] = Field(default_factory=list)


class HumanResource(BaseModel):
    name: StrictStr
    role: StrictStr


class ToolResource(BaseModel):
    name: StrictStr
    category: StrictStr


class BudgetLine(BaseModel):
    item: StrictStr
    amount: Union[StrictInt, StrictFloat]
    currency: StrictStr


class ExtendedResources(BaseModel):
    human: list[HumanResource] = Field(default_factory=list)
    tools: list[ToolResource] = Field(default_factory=list)
    budget: list[BudgetLine] = Field(default_factory=list)


class TimelinePhase(BaseModel):
    name: StrictStr
    start: StrictStr
    end: StrictStr


class ExtendedTimeline(BaseModel):
    phases: list[TimelinePhase] = Field(default_factory=list)


class Kpi(BaseModel):
    name: StrictStr


class ExtendedAssessment(BaseModel):
    kpis: list[Kpi] = Field(default_factory=list)
    methods: list[StrictStr] = Field(default_factory=list)


class InstructionalStrategy(BaseModel):
    cohort_model: Optional[StrictStr] = None


class ExtendedArtifact(BaseModel):
    """Prompt-shaped blueprint emitted by older generation templates."""
    metadata: ArtifactMetadata
    objectives: list[ExtendedObjective]
    content_outline: list[OutlineEntry]
    resources: Optional[ExtendedResources] = None
    timeline: Optional[ExtendedTimeline] = None
    assessment: Optional[ExtendedAssessment] = None
    instructional_strategy: Optional[InstructionalStrategy] = None


# Keys only the extended shape uses; their presence marks an object as
# worth a heuristic repair.
EXTENDED_ONLY_KEYS = frozenset({
    "metadata",
    "objectives",
    "learning_objectives",
    "content_outline",
    "assessment",
    "instructional_strategy",
    "executive_summary",
})
