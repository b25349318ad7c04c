"""FastAPI application exposing the cleaners as a service."""

from __future__ import annotations

import time
from contextlib import asynccontextmanager
from typing import AsyncIterator

import structlog
from fastapi import FastAPI, HTTPException
from fastapi.responses import JSONResponse

from privacy_shield.config import APP_VERSION, settings
from privacy_shield.models import (
    CleanRequest,
    CleanResponse,
    HealthResponse,
    RulesResponse,
    SessionStats,
)
from privacy_shield.pipeline.rules import load_ruleset
from privacy_shield.pipeline.scrub import scrub
from privacy_shield.stats import StatsCounter
from privacy_shield.utils.logging import configure_logging

logger = structlog.get_logger(__name__)

_startup_time: float = 0.0


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Load the rule set once and create the service-wide counter."""
    global _startup_time
    configure_logging(settings.environment, settings.log_level)
    log = structlog.get_logger(__name__)
    log.info("privacy_shield.startup", environment=settings.environment, port=settings.port)

    app.state.ruleset = load_ruleset(settings.whitelist, settings.rules_path)
    app.state.stats = StatsCounter()

    _startup_time = time.time()
    log.info("privacy_shield.ready", rules=len(app.state.ruleset.rules))

    yield

    log.info("privacy_shield.shutdown")


app = FastAPI(
    title="PrivacyShield",
    description="Strips tracking parameters and fragment tokens from URLs.",
    version=APP_VERSION,
    lifespan=lifespan,
)


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------


@app.post("/clean", response_model=CleanResponse, summary="Strip tracking tokens from a URL")
async def clean_url(body: CleanRequest) -> CleanResponse:
    """Run the query rewriter and the fragment cleaner over one address."""
    url = body.url.strip()
    if not url:
        raise HTTPException(status_code=400, detail="URL cannot be blank.")

    result = scrub(url, app.state.ruleset)
    app.state.stats.add_stripped(result.tokens)

    logger.debug("clean.done", removed=result.removed, fragment_cleaned=result.fragment_cleaned)
    return CleanResponse(
        url=url,
        cleaned=result.url,
        removed=result.removed,
        fragment_cleaned=result.fragment_cleaned,
    )


@app.get("/rules", response_model=RulesResponse, summary="Active rule set")
async def rules() -> RulesResponse:
    ruleset = app.state.ruleset
    return RulesResponse(
        rules=list(ruleset.rules),
        whitelist=ruleset.whitelist(),
        excluded_domains=list(ruleset.excluded_domains),
        fragment_patterns=[p.pattern for p in ruleset.fragment_patterns],
    )


@app.get("/stats", response_model=SessionStats, summary="Tokens stripped since startup")
async def stats() -> SessionStats:
    return app.state.stats.snapshot()


@app.get("/health", response_model=HealthResponse, summary="Service health check")
async def health() -> HealthResponse:
    uptime = time.time() - _startup_time if _startup_time else 0.0
    ruleset = getattr(app.state, "ruleset", None)
    return HealthResponse(
        status="ok" if ruleset is not None else "degraded",
        rules_loaded=len(ruleset.rules) if ruleset is not None else 0,
        uptime_seconds=round(uptime, 1),
    )


# ---------------------------------------------------------------------------
# Generic error handler
# ---------------------------------------------------------------------------


@app.exception_handler(Exception)
async def generic_exception_handler(request, exc: Exception) -> JSONResponse:  # noqa: ANN001
    """Catch-all error handler that logs and returns a structured response."""
    logger.error("unhandled_exception", path=str(request.url), error=str(exc))
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error.", "error": str(exc)},
    )
