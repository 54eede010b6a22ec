"""
Blueprint Engine — Structured Logging

JSON log lines for routing and reconciliation decisions. Every decision
carries a trace_id so a single resume or reconcile call can be followed
through the log stream.

Usage:
    from lifecycle.logging import configure_logging, DecisionLogger

    configure_logging(level="INFO")
    log = DecisionLogger(component="router", blueprint_id="bp_123")
    log.route_decision(route="VIEWER", status="completed", reason="has content")
"""

from __future__ import annotations

import json
import logging
import sys
import uuid
from datetime import datetime, timezone
from typing import Any

ROOT_LOGGER = "blueprint_engine"

# Attributes DecisionLogger sets on every record it emits.
DECISION_KEYS = ("trace_id", "component", "action", "blueprint_id")


# ═══════════════════════════════════════════════════════════════════
# JSON Formatter
# ═══════════════════════════════════════════════════════════════════

class JSONFormatter(logging.Formatter):
    """
    One JSON object per line.

    Decision records (see DecisionLogger) lead with trace_id, component,
    action and blueprint_id followed by their own fields. Plain records
    from logging.getLogger(...) calls carry the formatted message instead.
    """

    def __init__(self, service_name: str = ROOT_LOGGER):
        super().__init__()
        self.service_name = service_name

    def formatTime(self, record: logging.LogRecord, datefmt: str | None = None) -> str:
        stamp = datetime.fromtimestamp(record.created, tz=timezone.utc)
        return stamp.isoformat(timespec="milliseconds")

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": self.formatTime(record),
            "level": record.levelname,
            "logger": record.name,
            "service": self.service_name,
        }
        for key in DECISION_KEYS:
            value = getattr(record, key, None)
            if value:
                entry[key] = value
        if "action" in entry:
            entry.update(getattr(record, "fields", {}))
        else:
            entry["message"] = record.getMessage()

        if record.exc_info and record.exc_info[0] is not None:
            entry["exception.type"] = record.exc_info[0].__name__
            entry["exception.message"] = str(record.exc_info[1])

        return json.dumps(entry, default=str)


# ═══════════════════════════════════════════════════════════════════
# Log Configuration
# ═══════════════════════════════════════════════════════════════════

def configure_logging(
    level: str = "INFO",
    stream: Any = None,
    service_name: str = ROOT_LOGGER,
) -> logging.Logger:
    """
    Configure the blueprint_engine logger with JSON output.

    Safe to call repeatedly; the previous handler is replaced. Component
    loggers (blueprint_engine.router, ...) propagate to this one.
    """
    logger = logging.getLogger(ROOT_LOGGER)
    numeric = getattr(logging, level.upper(), logging.INFO)
    logger.setLevel(numeric)
    logger.handlers.clear()

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(JSONFormatter(service_name=service_name))
    handler.setLevel(numeric)
    logger.addHandler(handler)
    logger.propagate = False
    return logger


def get_logger(name: str = "") -> logging.Logger:
    """Get a child logger under the blueprint_engine namespace."""
    if name:
        return logging.getLogger(f"{ROOT_LOGGER}.{name}")
    return logging.getLogger(ROOT_LOGGER)


def generate_trace_id() -> str:
    return uuid.uuid4().hex


# ═══════════════════════════════════════════════════════════════════
# Decision Logger
# ═══════════════════════════════════════════════════════════════════

class DecisionLogger:
    """
    Emits one structured entry per engine decision.

    Fields common to every entry: trace_id, component, blueprint_id.
    """

    def __init__(
        self,
        component: str,
        blueprint_id: str = "",
        trace_id: str | None = None,
    ):
        self.component = component
        self.blueprint_id = blueprint_id
        self.trace_id = trace_id or generate_trace_id()
        self._logger = get_logger(component)

    def _emit(self, level: int, action: str, exc_info: Any = None, **fields: Any) -> None:
        self._logger.log(level, action, exc_info=exc_info, extra={
            "trace_id": self.trace_id,
            "component": self.component,
            "action": action,
            "blueprint_id": self.blueprint_id,
            "fields": fields,
        })

    # ── Routing ─────────────────────────────────────────────────

    def static_completeness(self, complete: bool, generation: str | None,
                            report: dict[str, Any]) -> None:
        self._emit(
            logging.DEBUG, "static_completeness",
            complete=complete,
            generation=generation,
            report=report,
        )

    def route_decision(self, route: str, status: str, reason: str,
                       state: dict[str, Any] | None = None) -> None:
        self._emit(
            logging.INFO, "route_decision",
            route=route,
            status=status,
            reason=reason[:500],
            state=state or {},
        )

    def route_fallback(self, route: str, error: BaseException) -> None:
        self._emit(
            logging.WARNING, "route_fallback",
            exc_info=(type(error), error, error.__traceback__),
            route=route,
            error=str(error)[:500],
        )

    def integrity_violation(self, status: str, route: str) -> None:
        self._emit(
            logging.ERROR, "integrity_violation",
            status=status,
            route=route,
        )

    def stale_generation(self, minutes_since_update: float) -> None:
        self._emit(
            logging.WARNING, "stale_generation",
            minutes_since_update=round(minutes_since_update, 1),
        )

    # ── Reconciliation ──────────────────────────────────────────

    def reconcile_tier(self, tier: str, ok: bool, issue_count: int = 0) -> None:
        self._emit(
            logging.DEBUG, "reconcile_tier",
            tier=tier,
            ok=ok,
            issue_count=issue_count,
        )

    def reconcile_success(self, tier: str, module_count: int) -> None:
        self._emit(
            logging.INFO, "reconcile_success",
            tier=tier,
            module_count=module_count,
        )

    def reconcile_failed(self, error_code: str, message: str) -> None:
        self._emit(
            logging.WARNING, "reconcile_failed",
            error=error_code,
            message=message[:500],
        )
