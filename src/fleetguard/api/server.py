import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

import structlog
from fastapi import FastAPI, HTTPException, Request
from fastapi.exception_handlers import http_exception_handler
from fastapi.responses import JSONResponse

from fleetguard import __version__
from fleetguard.api.middleware.decision_scope import DecisionScopeMiddleware
from fleetguard.api.routes import authorize, health
from fleetguard.application.policy.audit import AuditEmitter
from fleetguard.application.policy.engine import (
    DecisionEngine,
    EngineConfig,
    set_decision_engine,
)
from fleetguard.infrastructure.audit.sinks import JsonlAuditSink, StructlogAuditSink
from fleetguard.infrastructure.graph.in_memory import InMemoryGraphAdapter
from fleetguard.infrastructure.graph.snapshot import load_graph_snapshot


def configure_logging(loglevel: Optional[str] = None) -> None:
    """Configure stdlib logging and structlog from ``LOGLEVEL``."""
    level_name = (loglevel or os.getenv("LOGLEVEL", "INFO")).upper()
    log_level = getattr(logging, level_name, logging.INFO)
    if not isinstance(log_level, int):
        log_level = logging.INFO

    logging.basicConfig(level=log_level, format="%(message)s")
    structlog.configure(
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
    )


logger = structlog.get_logger()


async def fleetguard_http_exception_handler(
    request: Request,
    exc: HTTPException,
) -> JSONResponse:
    """Return standardized error responses for Fleetguard exceptions."""
    if (
        exc.headers
        and exc.headers.get("X-Fleetguard-Error") == "1"
        and isinstance(exc.detail, dict)
    ):
        return JSONResponse(
            status_code=exc.status_code, content=exc.detail, headers=exc.headers
        )
    return await http_exception_handler(request, exc)


def build_engine_from_env() -> DecisionEngine:
    """Build a decision engine from ``FLEETGUARD_*`` environment variables.

    - ``FLEETGUARD_CONFIG``: engine YAML config
    - ``FLEETGUARD_GRAPH``: graph snapshot (empty graph when unset)
    - ``FLEETGUARD_AUDIT_LOG``: optional JSONL audit file
    """
    config_path = os.getenv("FLEETGUARD_CONFIG")
    config = EngineConfig.from_yaml(config_path) if config_path else EngineConfig()

    graph_path = os.getenv("FLEETGUARD_GRAPH")
    if graph_path:
        graph = load_graph_snapshot(graph_path)
    else:
        logger.warning("authz.graph.empty", reason="FLEETGUARD_GRAPH not set")
        graph = InMemoryGraphAdapter()

    sinks = [StructlogAuditSink()]
    audit_log = os.getenv("FLEETGUARD_AUDIT_LOG")
    if audit_log:
        sinks.append(JsonlAuditSink(Path(audit_log)))

    return DecisionEngine(graph, audit=AuditEmitter(sinks), config=config)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for FastAPI startup/shutdown events."""
    engine: DecisionEngine = app.state.engine
    set_decision_engine(engine)
    await logger.ainfo("fastapi.startup", message="Fleetguard authorization sidecar starting...")
    yield
    if engine.audit is not None:
        await engine.audit.flush()
    set_decision_engine(None)
    await logger.ainfo("fastapi.shutdown", message="Fleetguard authorization sidecar shutting down...")


def create_app(engine: Optional[DecisionEngine] = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        engine: Decision engine to serve (built from the environment if omitted)

    Returns:
        Configured FastAPI application
    """
    configure_logging()

    app = FastAPI(
        title="Fleetguard Authorization API",
        description="Multi-tenant authorization decisions for fleet compliance records",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )
    app.state.engine = engine or build_engine_from_env()

    app.add_exception_handler(HTTPException, fleetguard_http_exception_handler)
    app.add_middleware(DecisionScopeMiddleware)

    app.include_router(authorize.router, prefix="/api/v1", tags=["authorization"])
    app.include_router(health.router, tags=["health"])

    return app
