"""
Blueprint Engine — Artifacts Package

Canonical and extended blueprint schemas, the extended → canonical
mapping, and the tiered schema reconciler.
"""

from artifacts.schemas import CanonicalBlueprint, ExtendedArtifact
from artifacts.mapping import map_to_canonical, parse_duration
from artifacts.reconcile import ReconcileResult, SchemaReconciler, reconcile_artifact
