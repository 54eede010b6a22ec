"""
Blueprint Engine — API Server

FastAPI application serving:
  POST /v1/resume                   — resume route for a persisted blueprint row
  POST /v1/artifacts/reconcile      — reconcile raw generation output
  POST /v1/static-answers/complete  — static questionnaire completeness
  GET  /health                      — liveness

The engine is pure: every endpoint classifies the payload it is given and
writes nothing. Loading rows and saving reconciled blueprints stay with
the calling application.

Usage:
    uvicorn api.server:app --host 0.0.0.0 --port 8080
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from api.models import HealthResponse, ReconcileRequest, StaticAnswersRequest, StaticAnswersResponse
from artifacts.reconcile import SchemaReconciler
from lifecycle.config import EngineConfig, load_engine_config
from lifecycle.logging import configure_logging
from lifecycle.migrator import detect_generation, field_report
from lifecycle.router import route_for

logger = logging.getLogger("blueprint_engine.api")


async def _json_body(request: Request) -> tuple[Any, JSONResponse | None]:
    try:
        return await request.json(), None
    except ValueError:
        logger.info("Rejected non-JSON body on %s", request.url.path)
        return None, JSONResponse(status_code=400, content={"errors": ["body must be JSON"]})


def create_app(config: EngineConfig | None = None) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Separated from module-level creation so tests can build instances
    with their own configuration.
    """
    config = config or load_engine_config()
    reconciler = SchemaReconciler(config)

    app = FastAPI(
        title="Blueprint Lifecycle Engine",
        version="0.1.0",
        description="Resume routing and artifact reconciliation for learning blueprints",
    )
    app.state.engine_config = config

    # ── Resume ────────────────────────────────────────────────

    @app.post("/v1/resume")
    async def resume(request: Request):
        # Routing never fails the request: unreadable rows resume at the
        # static wizard like any other routing fault.
        body, error = await _json_body(request)
        if error is not None:
            body = None
        trace_id = request.headers.get("x-trace-id")
        decision = route_for(body, config=config, trace_id=trace_id)
        return JSONResponse(status_code=200, content=decision.to_dict(config))

    # ── Reconcile ─────────────────────────────────────────────

    @app.post("/v1/artifacts/reconcile")
    async def reconcile(request: Request):
        body, error = await _json_body(request)
        if error is not None:
            return error
        payload = ReconcileRequest(raw=body.get("raw") if isinstance(body, dict) else None)
        errors = payload.validate()
        if errors:
            return JSONResponse(status_code=422, content={"errors": errors})

        result = reconciler.reconcile(payload.raw, trace_id=request.headers.get("x-trace-id"))
        if result.ok:
            return JSONResponse(status_code=200, content=result.to_dict())
        return JSONResponse(status_code=422, content=result.to_dict())

    # ── Static answers ────────────────────────────────────────

    @app.post("/v1/static-answers/complete")
    async def static_complete(request: Request):
        body, error = await _json_body(request)
        if error is not None:
            return error
        # Accept the answers map itself or wrapped as {"static_answers": {...}}.
        answers = body
        if isinstance(body, dict) and "static_answers" in body:
            answers = body["static_answers"]
        payload = StaticAnswersRequest(static_answers=answers)
        errors = payload.validate()
        if errors:
            return JSONResponse(status_code=422, content={"errors": errors})

        generation = detect_generation(payload.static_answers)
        response = StaticAnswersResponse(
            complete=generation is not None,
            generation=generation.value if generation else None,
            fields=field_report(payload.static_answers),
        )
        return JSONResponse(status_code=200, content=response.to_dict())

    # ── Health ────────────────────────────────────────────────

    @app.get("/health")
    async def health():
        return HealthResponse(status="ok", env=config.env).to_dict()

    return app


def _build_default_app() -> FastAPI:
    config = load_engine_config()
    configure_logging(level=config.log_level)
    return create_app(config)


app = _build_default_app()
