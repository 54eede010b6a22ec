"""
Blueprint Engine — Lifecycle Package

Public surface for the embedding application:

  route_for(record)                      → ResumeDecision
  reconcile_artifact(raw_text)           → ReconcileResult
  is_static_answers_complete(answers)    → bool

Reconciliation symbols live in the artifacts package, which itself
imports lifecycle.config; they are loaded lazily to keep the import
graph acyclic.
"""

from lifecycle.config import EngineConfig, load_engine_config
from lifecycle.inspector import RecordState, compute_state
from lifecycle.migrator import SchemaGeneration, detect_generation
from lifecycle.migrator import is_static_complete as is_static_answers_complete
from lifecycle.record import BlueprintRecord, RecordStatus, can_transition
from lifecycle.router import ResumeDecision, Route, route_for


def __getattr__(name):
    """Lazy-load reconciler symbols."""
    _reconcile_symbols = {
        "reconcile_artifact", "SchemaReconciler", "ReconcileResult",
    }
    if name in _reconcile_symbols:
        import artifacts.reconcile as _reconcile
        return getattr(_reconcile, name)

    raise AttributeError(f"module 'lifecycle' has no attribute {name!r}")
