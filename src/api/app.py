"""
FastAPI application for the claim decision engine.

Provides:
- Coverage, risk and escalation endpoints over a claim snapshot
- Full decision cycle endpoint (scoring, routing, lifecycle, SIU briefing)
- Jurisdiction reference lookup
- Health check and status endpoints
"""

# Configure library log levels before they are imported
import logging

logging.getLogger("python_multipart").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)
logging.getLogger("httpx").setLevel(logging.WARNING)

from contextlib import asynccontextmanager
from datetime import date
from typing import Any, Optional

from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from ..engine.config import load_engine_config
from ..engine.coverage import evaluate_coverage
from ..engine.exceptions import ClaimEngineError, InvalidSnapshot, MissingReferenceData
from ..engine.schema import EscalationTrigger, build_claim_snapshot
from ..routing import ClaimProcessor
from ..storage import get_audit_store
from ..utils.config import settings

logging.basicConfig(
    level=logging.DEBUG if settings.debug else getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


# Claim processor (built lazily from settings on first use)
_processor: Optional[ClaimProcessor] = None


def get_processor() -> ClaimProcessor:
    """Get or create the processor wired to the deployment settings."""
    global _processor
    if _processor is None:
        _processor = ClaimProcessor(
            config=load_engine_config(settings),
            audit_sink=get_audit_store(settings.audit_db_path),
        )
    return _processor


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    logger.info("Starting claim decision engine...")
    processor = get_processor()
    logger.info(f"Engine config version: {processor.config.version}")
    logger.info(f"Jurisdictions loaded: {len(processor.rule_book.states)}")
    yield
    logger.info("Shutting down claim decision engine...")


app = FastAPI(
    title="Claim Decision Engine",
    description="Coverage, fraud risk and escalation decisions for auto claims",
    version="1.0.0",
    lifespan=lifespan,
)


class DecisionRequest(BaseModel):
    """Claim snapshot plus explicit escalation triggers."""
    claim: dict[str, Any]
    triggers: list[EscalationTrigger] = Field(default_factory=list)


@app.exception_handler(InvalidSnapshot)
async def invalid_snapshot_handler(request: Request, exc: InvalidSnapshot):
    logger.warning(f"Rejected snapshot on {request.url.path}: {exc}")
    return JSONResponse(status_code=422, content={"error": exc.to_dict()})


@app.exception_handler(MissingReferenceData)
async def missing_reference_handler(request: Request, exc: MissingReferenceData):
    logger.warning(f"Missing reference data on {request.url.path}: {exc}")
    return JSONResponse(status_code=404, content={"error": exc.to_dict()})


@app.exception_handler(ClaimEngineError)
async def engine_error_handler(request: Request, exc: ClaimEngineError):
    logger.error(f"Engine error on {request.url.path}: {exc}")
    return JSONResponse(status_code=500, content={"error": exc.to_dict()})


# =============================================================================
# Health Check Endpoints
# =============================================================================


@app.get("/")
async def root():
    """Root endpoint - basic health check."""
    return {
        "service": "Claim Decision Engine",
        "status": "running",
    }


@app.get("/health")
async def health_check(processor: ClaimProcessor = Depends(get_processor)):
    """Detailed health check endpoint."""
    return {
        "status": "healthy",
        "config": {
            "version": processor.config.version,
            "risk_breakpoints": processor.config.risk.model_dump(),
            "jurisdictions": len(processor.rule_book.states),
        },
    }


# =============================================================================
# Scoring Endpoints
# =============================================================================


@app.post("/coverage/evaluate")
async def coverage_evaluate(claim_data: dict[str, Any]):
    """Which coverages apply, exclusions, limits and deductibles."""
    claim = build_claim_snapshot(claim_data)
    return evaluate_coverage(claim).to_dict()


@app.post("/risk/score")
async def risk_score(claim_data: dict[str, Any], processor: ClaimProcessor = Depends(get_processor)):
    """Composite fraud risk score and tier; recorded in the audit trail."""
    claim = build_claim_snapshot(claim_data)
    return processor.score_claim_risk(claim).to_dict()


@app.post("/escalations/decide")
async def escalations_decide(request: DecisionRequest, processor: ClaimProcessor = Depends(get_processor)):
    """One routing decision per escalation trigger, plus the overall recommendation."""
    claim = build_claim_snapshot(request.claim)
    return processor.decide_claim_escalations(claim, request.triggers).to_dict()


@app.post("/claims/decide")
async def claims_decide(request: DecisionRequest, processor: ClaimProcessor = Depends(get_processor)):
    """
    Run a full decision cycle.

    Scores, routes and transitions the claim; the result is recorded in
    the audit trail.
    """
    claim = build_claim_snapshot(request.claim)
    result = processor.process_claim(claim, request.triggers)
    return result.to_dict()


# =============================================================================
# Reference Data Endpoints
# =============================================================================


@app.get("/jurisdictions/{state_code}")
async def get_jurisdiction(
    state_code: str,
    as_of: Optional[date] = None,
    processor: ClaimProcessor = Depends(get_processor),
):
    """Jurisdiction rule in force for a state."""
    rule = processor.rule_book.lookup(state_code, as_of or date.today())
    return rule.model_dump(mode="json")


# =============================================================================
# Main Entry Point
# =============================================================================


def main():
    """Run the FastAPI server."""
    import uvicorn

    uvicorn.run(
        "src.api.app:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level="debug" if settings.debug else "info",
    )


if __name__ == "__main__":
    main()
