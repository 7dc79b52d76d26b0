"""
Pulse Pipeline: API Server
==========================

Thin HTTP front door that triggers pipeline runs and reads results.

Endpoints:
- POST   /api/scrape        -> Scrape + analyze run
- POST   /api/analyze       -> Analyze-only run over pending documents
- GET    /api/posts         -> Analyzed documents
- GET    /api/health        -> Store statistics + engine status
- DELETE /api/clear         -> Delete every stored document
- POST   /api/engine/reset  -> Leave degraded mode

Usage:
    uvicorn backend.api.server:app --reload
"""
from contextlib import asynccontextmanager
from typing import List, Optional

import structlog
from fastapi import Depends, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from ..config import PipelineConfig
from ..engine import PipelineOrchestrator, build_orchestrator
from ..observability import configure_logging


logger = structlog.get_logger(__name__)


# =============================================================================
# INFRASTRUCTURE SETUP
# =============================================================================

# Global orchestrator instance
orchestrator_instance: Optional[PipelineOrchestrator] = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build the pipeline once on startup."""
    global orchestrator_instance

    config = PipelineConfig.from_env()
    configure_logging(config.logging.level, config.logging.json_output)
    logger.info("server.starting", db_path=str(config.storage.db_path))

    orchestrator_instance = build_orchestrator(config)

    yield

    logger.info("server.stopping")
    orchestrator_instance.close()
    orchestrator_instance = None


app = FastAPI(
    title="Pulse Pipeline API",
    version="0.1.0",
    description="Fetch, store and analyze social posts",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["GET", "POST", "DELETE"],
    allow_headers=["*"],
)


def get_orchestrator() -> PipelineOrchestrator:
    if orchestrator_instance is None:
        raise HTTPException(status_code=503, detail="Pipeline not initialized")
    return orchestrator_instance


# =============================================================================
# REQUEST MODELS
# =============================================================================

class ScrapeRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    sources: Optional[List[str]] = None
    per_source_limit: Optional[int] = Field(default=None, alias="perSourceLimit", ge=1, le=100)


# =============================================================================
# ENDPOINTS
# =============================================================================

@app.post("/api/scrape")
def scrape(
    request: Optional[ScrapeRequest] = None,
    orchestrator: PipelineOrchestrator = Depends(get_orchestrator)
):
    """
    Run fetch → store → analyze.

    Partial failures are reported in-band with 200; only a run that
    fetched nothing returns 500.
    """
    request = request or ScrapeRequest()
    result = orchestrator.run_scrape_and_analyze(
        sources=request.sources,
        per_source_limit=request.per_source_limit,
    )
    if not result.success:
        return JSONResponse(status_code=500, content=result.to_dict())
    return result.to_dict()


@app.post("/api/analyze")
def analyze(orchestrator: PipelineOrchestrator = Depends(get_orchestrator)):
    """Analyze every stored document that has no analysis yet."""
    result = orchestrator.run_analyze_only()
    if not result.success:
        return JSONResponse(status_code=500, content=result.to_dict())
    return result.to_dict()


@app.get("/api/posts")
def list_posts(orchestrator: PipelineOrchestrator = Depends(get_orchestrator)):
    documents = orchestrator.completed_documents()
    return {
        "posts": [d.to_dict() for d in documents],
        "count": len(documents),
    }


@app.get("/api/health")
def health_check(orchestrator: PipelineOrchestrator = Depends(get_orchestrator)):
    """Store statistics and engine status."""
    try:
        stats = orchestrator.stats()
    except Exception as e:
        logger.exception("server.health_failed")
        return JSONResponse(
            status_code=500,
            content={"status": "unhealthy", "error": str(e)},
        )
    return {
        "status": "healthy",
        "database": stats.to_dict(),
        **orchestrator.status(),
    }


@app.delete("/api/clear")
def clear_documents(orchestrator: PipelineOrchestrator = Depends(get_orchestrator)):
    deleted = orchestrator.clear()
    logger.info("server.cleared", deleted=deleted)
    return {"success": True, "deleted": deleted}


@app.post("/api/engine/reset")
def reset_engine(orchestrator: PipelineOrchestrator = Depends(get_orchestrator)):
    """Return the analysis engine to primary mode."""
    orchestrator.reset_degradation()
    return {"success": True, "engine": orchestrator.engine.status()}
