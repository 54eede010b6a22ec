"""
Blueprint Engine — Extended → Canonical Mapping

One mapping function turns a prompt-shaped artifact into the canonical
blueprint dict. How it reads the input is injected:

  StrictAccessor    used on an artifact that already passed ExtendedArtifact
                    validation. A branch of the wrong type is a fault.
  TolerantAccessor  used for heuristic repair of incomplete artifacts. Every
                    wrong-typed or missing branch reads as absent, and the
                    field aliases emitted by other generation templates are
                    recognised.

Both return ABSENT for text that is missing, null or blank, and [] for
missing lists, so the mapping rules below never check types themselves.
"""

from __future__ import annotations

import math
import re
from typing import Any, Mapping

from lifecycle.accessors import ABSENT, get_key, string_form
from lifecycle.config import ReconcilerDefaults

OVERVIEW_SEPARATOR = " • "
SUMMARY_EXCERPT_CHARS = 200

_HOURS = re.compile(r"(\d+(?:\.\d+)?)\s*h", re.IGNORECASE)
_MINUTES = re.compile(r"(\d+)\s*m", re.IGNORECASE)
_BARE_NUMBER = re.compile(r"^-?\d+(?:\.\d+)?$")


class MappingFault(ValueError):
    """A validated artifact had a branch of an unexpected type."""


# ═══════════════════════════════════════════════════════════════════
# Duration Rule
# ═══════════════════════════════════════════════════════════════════

def _round_half_up(value: float) -> int:
    """Whole hours, never negative. Non-finite values count as unparseable."""
    if not math.isfinite(value):
        return 0
    return max(0, int(math.floor(value + 0.5)))


def parse_duration(value: Any) -> int:
    """
    Human-readable duration → whole hours.

      "2h" → 2, "1.5h" → 2, "90m" → 2, "3" → 3, "" → 0, "abc" → 0

    Hours are tried first, then minutes, then a bare number. Anything
    else, and any negative result, is 0.
    """
    if isinstance(value, bool) or value is None or value is ABSENT:
        return 0
    try:
        if isinstance(value, (int, float)):
            return _round_half_up(float(value))
        if not isinstance(value, str):
            return 0

        match = _HOURS.search(value)
        if match:
            return _round_half_up(float(match.group(1)))

        match = _MINUTES.search(value)
        if match:
            return _round_half_up(int(match.group(1)) / 60)

        text = value.strip()
        if _BARE_NUMBER.match(text):
            return _round_half_up(float(text))
    except (OverflowError, ValueError):
        return 0
    return 0


def format_amount(amount: Any) -> str:
    if isinstance(amount, float) and amount.is_integer():
        return str(int(amount))
    return string_form(amount)


# ═══════════════════════════════════════════════════════════════════
# Accessor strategies
# ═══════════════════════════════════════════════════════════════════

class StrictAccessor:
    name = "strict"

    def _wrong(self, key: str, expected: str, value: Any) -> Any:
        raise MappingFault(f"{key!r} must be {expected}, got {type(value).__name__}")

    def node(self, obj: Any, key: str) -> Any:
        value = get_key(obj, key)
        if value is ABSENT or value is None:
            return ABSENT
        if not isinstance(value, Mapping):
            return self._wrong(key, "an object", value)
        return value

    def items(self, obj: Any, key: str) -> list[Any]:
        value = get_key(obj, key)
        if value is ABSENT or value is None:
            return []
        if not isinstance(value, list):
            return self._wrong(key, "a list", value)
        return value

    def entry(self, value: Any) -> Any:
        if not isinstance(value, Mapping):
            return self._wrong("entry", "an object", value)
        return value

    def text(self, obj: Any, key: str) -> Any:
        value = get_key(obj, key)
        if value is ABSENT or value is None:
            return ABSENT
        if not isinstance(value, str):
            return self._wrong(key, "a string", value)
        value = value.strip()
        return value if value else ABSENT

    def strings(self, obj: Any, key: str) -> list[str]:
        values = self.items(obj, key)
        for v in values:
            if not isinstance(v, str):
                self._wrong(key, "a list of strings", v)
        return list(values)

    def number(self, obj: Any, key: str) -> Any:
        value = get_key(obj, key)
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            return self._wrong(key, "a number", value)
        return value

    def duration(self, entry: Any) -> Any:
        return self.text(entry, "duration")

    # ── Shape lookups (aliases live in the tolerant strategy) ──

    def objectives(self, root: Any) -> list[Any]:
        return self.items(root, "objectives")

    def objective_text(self, objective: Any) -> Any:
        return self.text(self.entry(objective), "title")

    def outline(self, root: Any) -> list[Any]:
        return self.items(root, "content_outline")

    def listed_activities(self, entry: Any) -> list[str]:
        return []

    def summary(self, root: Any) -> Any:
        return ABSENT

    def human(self, resources: Any) -> list[Any]:
        return self.items(resources, "human")

    def tools(self, resources: Any) -> list[Any]:
        return self.items(resources, "tools")

    def budget(self, resources: Any) -> list[Any]:
        return self.items(resources, "budget")


class TolerantAccessor(StrictAccessor):
    name = "tolerant"

    def _wrong(self, key: str, expected: str, value: Any) -> Any:
        return ABSENT

    def items(self, obj: Any, key: str) -> list[Any]:
        value = get_key(obj, key)
        return value if isinstance(value, list) else []

    def entry(self, value: Any) -> Any:
        return value if isinstance(value, Mapping) else {}

    def strings(self, obj: Any, key: str) -> list[str]:
        return [v for v in self.items(obj, key) if isinstance(v, str) and v.strip()]

    def number(self, obj: Any, key: str) -> Any:
        value = get_key(obj, key)
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            return ABSENT
        return value

    def duration(self, entry: Any) -> Any:
        # Durations are only ever written as text ("2h", "90m").
        value = get_key(entry, "duration")
        return value if isinstance(value, str) else ABSENT

    def objectives(self, root: Any) -> list[Any]:
        raw = get_key(root, "learning_objectives")
        if raw is ABSENT or raw is None:
            raw = get_key(root, "objectives")
        if isinstance(raw, list):
            return raw
        return self.items(raw, "objectives")

    def objective_text(self, objective: Any) -> Any:
        if isinstance(objective, str):
            return objective.strip() or ABSENT
        text = self.text(objective, "title")
        if text is ABSENT:
            text = self.text(objective, "description")
        return text

    def outline(self, root: Any) -> list[Any]:
        raw = get_key(root, "content_outline")
        if isinstance(raw, list):
            return raw
        return self.items(raw, "modules")

    def listed_activities(self, entry: Any) -> list[str]:
        out: list[str] = []
        for activity in self.items(entry, "learning_activities"):
            if isinstance(activity, str):
                if activity.strip():
                    out.append(activity)
                continue
            label = self.text(activity, "activity")
            if label is not ABSENT:
                out.append(label)
                continue
            kind = self.text(activity, "type")
            if kind is not ABSENT:
                spent = self.text(activity, "duration")
                out.append(f"{kind} ({spent})" if spent is not ABSENT else kind)
        return out

    def summary(self, root: Any) -> Any:
        content = self.text(self.node(root, "executive_summary"), "content")
        if content is ABSENT:
            return ABSENT
        return content[:SUMMARY_EXCERPT_CHARS]

    def human(self, resources: Any) -> list[Any]:
        return self.items(resources, "human_resources") or self.items(resources, "human")

    def tools(self, resources: Any) -> list[Any]:
        return self.items(resources, "tools_and_platforms") or self.items(resources, "tools")

    def budget(self, resources: Any) -> list[Any]:
        raw = get_key(resources, "budget")
        if isinstance(raw, Mapping):
            return self.items(raw, "items")
        return raw if isinstance(raw, list) else []


STRICT = StrictAccessor()
TOLERANT = TolerantAccessor()


# ═══════════════════════════════════════════════════════════════════
# Mapping rules
# ═══════════════════════════════════════════════════════════════════

def _overview(root: Any, acc: StrictAccessor, defaults: ReconcilerDefaults) -> str:
    parts: list[str] = []
    role = acc.text(acc.node(root, "metadata"), "role")
    if role is not ABSENT:
        parts.append(f"Role: {role}")
    summary = acc.summary(root)
    if summary is not ABSENT:
        parts.append(summary)
    cohort = acc.text(acc.node(root, "instructional_strategy"), "cohort_model")
    if cohort is not ABSENT:
        parts.append(f"Cohort: {cohort}")
    kpis = [acc.text(acc.entry(k), "name") for k in acc.items(acc.node(root, "assessment"), "kpis")]
    kpi_names = [k for k in kpis if k is not ABSENT]
    if kpi_names:
        parts.append(f"KPIs: {', '.join(kpi_names)}")
    return OVERVIEW_SEPARATOR.join(parts) or defaults.overview


def _modules(root: Any, acc: StrictAccessor, defaults: ReconcilerDefaults) -> list[dict[str, Any]]:
    methods = acc.strings(acc.node(root, "assessment"), "methods")
    modules = []
    for raw in acc.outline(root):
        entry = acc.entry(raw)
        title = acc.text(entry, "title")
        if title is ABSENT:
            title = acc.text(entry, "module")
        if title is ABSENT:
            title = "Module"

        activities = acc.listed_activities(entry)
        delivery = acc.text(entry, "delivery_method")
        if not activities and delivery is not ABSENT:
            activities.append(f"Delivery: {delivery}")
        prerequisites = acc.strings(entry, "prerequisites")
        if prerequisites:
            activities.append(f"Prerequisites: {', '.join(prerequisites)}")
        if not activities:
            activities.append(defaults.activity)

        modules.append({
            "title": title,
            "duration": parse_duration(acc.duration(entry)),
            "topics": acc.strings(entry, "topics") or [title],
            "activities": activities,
            "assessments": list(methods) or [defaults.assessment],
        })

    if not modules:
        modules.append({
            "title": defaults.module_title,
            "duration": defaults.module_duration,
            "topics": [defaults.module_topic],
            "activities": [defaults.activity],
            "assessments": [defaults.assessment],
        })
    return modules


def _timeline(root: Any, acc: StrictAccessor) -> dict[str, str]:
    timeline: dict[str, str] = {}
    for raw in acc.items(acc.node(root, "timeline"), "phases"):
        phase = acc.entry(raw)
        name = acc.text(phase, "name")
        start = acc.text(phase, "start")
        end = acc.text(phase, "end")
        if ABSENT not in (name, start, end):
            timeline[name] = f"{start} to {end}"
    return timeline


def _resources(root: Any, acc: StrictAccessor) -> list[dict[str, str]]:
    resources_node = acc.node(root, "resources")
    resources: list[dict[str, str]] = []

    for raw in acc.human(resources_node):
        person = acc.entry(raw)
        name, role = acc.text(person, "name"), acc.text(person, "role")
        if ABSENT not in (name, role):
            resources.append({"name": f"{name} ({role})", "type": "Human"})

    for raw in acc.tools(resources_node):
        tool = acc.entry(raw)
        category, name = acc.text(tool, "category"), acc.text(tool, "name")
        if ABSENT not in (category, name):
            resources.append({"name": f"{category}: {name}", "type": "Tool"})

    for raw in acc.budget(resources_node):
        line = acc.entry(raw)
        item, currency = acc.text(line, "item"), acc.text(line, "currency")
        amount = acc.number(line, "amount")
        if ABSENT not in (item, currency, amount):
            resources.append({
                "name": f"{item} ({currency} {format_amount(amount)})",
                "type": "Budget",
            })
    return resources


def map_to_canonical(
    root: Any,
    accessor: StrictAccessor = STRICT,
    defaults: ReconcilerDefaults | None = None,
) -> dict[str, Any]:
    """
    Build a canonical blueprint dict from a prompt-shaped artifact.

    The result is not validated here; the reconciler re-validates it.
    """
    defaults = defaults or ReconcilerDefaults()
    organization = accessor.text(accessor.node(root, "metadata"), "organization")

    objectives = [accessor.objective_text(o) for o in accessor.objectives(root)]
    learning_objectives = [o for o in objectives if o is not ABSENT]
    if not learning_objectives:
        learning_objectives.append(defaults.objective)

    blueprint: dict[str, Any] = {
        "title": (f"{organization} Learning Blueprint"
                  if organization is not ABSENT else defaults.title),
        "overview": _overview(root, accessor, defaults),
        "learningObjectives": learning_objectives,
        "modules": _modules(root, accessor, defaults),
    }

    timeline = _timeline(root, accessor)
    if timeline:
        blueprint["timeline"] = timeline
    resources = _resources(root, accessor)
    if resources:
        blueprint["resources"] = resources
    return blueprint
