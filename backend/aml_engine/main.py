"""
main.py – FastAPI application entry point.

Endpoints
---------
GET  /          – root status
GET  /health    – liveness / readiness probe with version info
POST /analyze   – upload CSV, run pattern detection (optionally score every
                  transaction), return JSON
POST /score     – score one transaction against caller-supplied history

Production concerns addressed
------------------------------
- Structured logging (INFO level)
- File-size guard before parsing the upload
- Parsing, detection and scoring run in the threadpool, off the event loop
- Request-ID header injected into every response for traceability
- parse_stats returned so callers know about dropped rows / warnings
- CORS locked to env-configurable origins
"""
from __future__ import annotations

import logging
import time
import uuid

from contextlib import asynccontextmanager

from fastapi import FastAPI, File, HTTPException, Query, Request, UploadFile
from fastapi.concurrency import run_in_threadpool
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from . import __version__
from .analytics import batch_statistics, top_suspicious_accounts
from .config import CORS_ORIGINS, MAX_FILE_SIZE_BYTES
from .errors import InvalidBatchError
from .history import FrameHistoryProvider
from .models import ScoreRequest
from .parser import parse_csv
from .pattern_detector import detect_patterns
from .risk_scorer import compute_risk_score, score_batch

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-8s %(name)s │ %(message)s",
    datefmt="%Y-%m-%dT%H:%M:%S",
)
log = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------
@asynccontextmanager
async def lifespan(app: FastAPI):
    log.info("AML Detection Engine v%s starting up", __version__)
    yield
    log.info("AML Detection Engine shutting down")


# ---------------------------------------------------------------------------
# App
# ---------------------------------------------------------------------------
app = FastAPI(
    title="AML Detection Engine",
    description="Score transactions and detect money-laundering patterns",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ---------------------------------------------------------------------------
# Request-ID middleware
# ---------------------------------------------------------------------------
@app.middleware("http")
async def add_request_id(request: Request, call_next):
    request_id = request.headers.get("X-Request-ID", str(uuid.uuid4()))
    response = await call_next(request)
    response.headers["X-Request-ID"] = request_id
    return response


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------
@app.get("/", include_in_schema=False)
def root():
    return {"status": "ok", "service": "AML Detection Engine", "version": __version__}


@app.get("/health")
def health():
    """Liveness / readiness probe."""
    return {
        "status": "healthy",
        "version": __version__,
        "max_file_size_mb": MAX_FILE_SIZE_BYTES // (1024 * 1024),
    }


@app.post("/analyze")
async def analyze(
    file: UploadFile = File(...),
    score: bool = Query(False, description="Also risk-score every transaction"),
):
    """
    Upload a CSV of transactions and receive a pattern analysis.

    Expected CSV columns: transaction_id, from_account_id, to_account_id,
    amount, timestamp (optional: created_at, currency, transaction_type)
    """
    # ---- basic validation ----
    if not (file.filename or "").lower().endswith(".csv"):
        raise HTTPException(status_code=400, detail="Only CSV files are accepted.")

    file_bytes = await file.read()

    if len(file_bytes) > MAX_FILE_SIZE_BYTES:
        raise HTTPException(
            status_code=413,
            detail=f"File too large. Maximum size is {MAX_FILE_SIZE_BYTES // (1024*1024)} MB.",
        )

    start_time = time.perf_counter()

    # ---- 1. Parse ----
    try:
        transactions, parse_stats = await run_in_threadpool(parse_csv, file_bytes)
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc))

    if parse_stats.warnings:
        log.warning("Parse warnings for %s: %s", file.filename, parse_stats.warnings)

    # ---- 2. Detect patterns ----
    try:
        patterns = await run_in_threadpool(detect_patterns, transactions)
    except InvalidBatchError as exc:
        raise HTTPException(status_code=422, detail=str(exc))

    result = {
        "patterns": patterns.model_dump(mode="json", by_alias=True),
        "parse_stats": parse_stats.model_dump(),
    }

    # ---- 3. Optional per-transaction scoring ----
    if score:
        scored = await run_in_threadpool(score_batch, transactions)
        result["risk_scores"] = [a.model_dump(mode="json") for _, a in scored]
        result["statistics"] = batch_statistics(scored).model_dump()
        result["top_suspicious_accounts"] = [
            acc.model_dump() for acc in top_suspicious_accounts(scored)
        ]

    elapsed = time.perf_counter() - start_time
    result["processing_time_seconds"] = round(elapsed, 3)

    log.info(
        "Analysis complete for %s in %.2fs: %d transactions",
        file.filename,
        elapsed,
        len(transactions),
    )
    return JSONResponse(content=result)


@app.post("/score")
def score_transaction(request: ScoreRequest):
    """Score one transaction; ``history`` stands in for the ledger snapshot."""
    provider = FrameHistoryProvider(request.history).at(request.transaction.timestamp)
    assessment = compute_risk_score(request.transaction, provider)
    return assessment.model_dump(mode="json")
