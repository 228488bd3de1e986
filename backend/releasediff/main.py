"""
ReleaseDiff — FastAPI Backend

Endpoints:
  POST /v1/changes  — Change set between two reference points
  GET  /health      — Health check

Azure DevOps / JFrog access is supplied by the host process through
configure_providers(); the service itself holds no credentials.
"""

import time
import uuid

from fastapi import FastAPI, HTTPException, Request, Response
from fastapi.middleware.cors import CORSMiddleware

from releasediff import __version__
from releasediff.core.config import settings
from releasediff.engine.cache import ComparisonCache
from releasediff.engine.orchestrator import ChangeAggregator
from releasediff.errors import ProvidersNotConfiguredError, ReleaseDiffError
from releasediff.models.job import ComparisonResult
from releasediff.models.request import ChangesRequest
from releasediff.providers.base import Providers
from releasediff.utils.logging import configure_logging, logger


app = FastAPI(
    title="ReleaseDiff API",
    description=(
        "Compute the set of changes (commits, pull requests, work items) "
        "between two commits, refs, dates, pipeline runs or releases."
    ),
    version=__version__,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["X-Request-Id", "X-Comparison-Duration-Ms"],
)

configure_logging(settings.log_level)

app.state.providers = None
app.state.cache = ComparisonCache(max_entries=settings.engine.cache_max_entries)


def configure_providers(target: FastAPI, providers: Providers) -> None:
    """Attach the provider set every request will use."""
    target.state.providers = providers


@app.on_event("startup")
async def _startup_banner():
    logger.info("")
    logger.info("╔══════════════════════════════════════════════════╗")
    logger.info("║           ReleaseDiff  ·  API Server v1          ║")
    logger.info("╠══════════════════════════════════════════════════╣")
    logger.info("║  POST /v1/changes       → Change set             ║")
    logger.info("║  GET  /health           → Health check           ║")
    logger.info("╠══════════════════════════════════════════════════╣")
    logger.info("║  Max changes : %-34d║", settings.engine.max_changes)
    logger.info("║  Cache size  : %-34d║", settings.engine.cache_max_entries)
    logger.info("║  Providers   : %-34s║", "✓ attached" if app.state.providers else "✗ not attached")
    logger.info("╚══════════════════════════════════════════════════╝")
    logger.info("")


# ──────────────────────────────────────────────────────────
# Endpoints
# ──────────────────────────────────────────────────────────

@app.get("/health")
async def health():
    return {
        "status": "ok",
        "service": "releasediff-api",
        "version": __version__,
        "providers": app.state.providers is not None,
        "cache_entries": len(app.state.cache),
    }


@app.post(
    "/v1/changes",
    response_model=ComparisonResult,
    responses={
        422: {"description": "Validation or comparison error"},
        500: {"description": "Unexpected error"},
        503: {"description": "Providers not configured"},
    },
)
async def get_changes(req: ChangesRequest, request: Request, response: Response):
    """
    Compare two reference points and return the grouped change set.

    Data handling: nothing is persisted. Only raw pairwise comparison
    results are memoised in process memory.
    """
    request_id = uuid.uuid4().hex[:12]
    start = time.perf_counter()
    logger.info(
        "[%s] POST /v1/changes — %s %s → %s | project=%s",
        request_id, req.range_type.value, req.from_value, req.to_value, req.team_project,
    )

    providers = request.app.state.providers
    if providers is None:
        exc = ProvidersNotConfiguredError()
        logger.error("[%s] %s", request_id, exc.message)
        raise HTTPException(status_code=503, detail=exc.to_dict())

    try:
        aggregator = ChangeAggregator(req, providers, request.app.state.cache)
        result = await aggregator.run()
    except ReleaseDiffError as exc:
        logger.warning("[%s] ReleaseDiff error: %s", request_id, exc.code)
        raise HTTPException(status_code=422, detail=exc.to_dict())
    except Exception as exc:
        logger.exception("[%s] Comparison failed", request_id)
        raise HTTPException(status_code=500, detail=str(exc))

    elapsed_ms = (time.perf_counter() - start) * 1000
    logger.info("[%s] Complete — %d changes in %.0f ms", request_id, result.total_changes, elapsed_ms)
    response.headers["X-Request-Id"] = request_id
    response.headers["X-Comparison-Duration-Ms"] = f"{elapsed_ms:.0f}"
    return result
