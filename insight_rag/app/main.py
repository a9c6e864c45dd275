from __future__ import annotations

"""FastAPI application entrypoint for the blog question-answering service."""

import hashlib
import logging
import uuid
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from insight_rag.app.dependencies import get_embedding_config_report, get_pipeline
from insight_rag.app.metrics import metrics_middleware, metrics_response, record_ask_outcome
from insight_rag.app.schemas import (
    AskRequest,
    AskResponse,
    CorpusStatsResponse,
    EmbeddingHealthResponse,
    ErrorResponse,
    SourceItem,
)
from insight_rag.app.security import resolve_client_identity
from insight_rag.app.settings import settings
from insight_rag.rag.errors import QuestionValidationError, RAGError, RateLimitExceeded
from insight_rag.rag.pipeline import RAGPipeline, hash_identity

logger = logging.getLogger(__name__)

GENERIC_ERROR = "Something went wrong"
ASK_PATH = "/api/ask"
RATE_LIMIT_ERROR = "Too many requests. Please try again in an hour."


def _configure_logging() -> None:
    """Configure root logging using environment settings."""
    level_name = settings.log_level.strip().upper()
    level = getattr(logging, level_name, logging.INFO)
    root_logger = logging.getLogger()
    if not root_logger.handlers:
        logging.basicConfig(
            level=level,
            format="%(asctime)s %(levelname)s %(name)s %(message)s",
        )
    logger.setLevel(level)


_configure_logging()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Load the corpus before serving so a broken artifact fails startup."""
    if settings.preload_corpus:
        pipeline = get_pipeline()
        pipeline.corpus.load()
    yield


app = FastAPI(title="Insight RAG", version="0.1.0", lifespan=lifespan)


def _request_id(request: Request) -> str:
    return getattr(request.state, "request_id", None) or str(uuid.uuid4())


def _error(status_code: int, message: str, headers: dict[str, str] | None = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=message).model_dump(),
        headers=headers,
    )


@app.middleware("http")
async def add_request_id(request: Request, call_next):
    """Attach or create a request ID for traceability."""
    request_id = request.headers.get("x-request-id") or str(uuid.uuid4())
    request.state.request_id = request_id
    try:
        response = await call_next(request)
    except Exception as exc:
        response = _unhandled_error(request, exc)
    response.headers["X-Request-ID"] = request_id
    return response


@app.middleware("http")
async def record_metrics(request: Request, call_next):
    """Capture request metrics before returning the response."""
    return await metrics_middleware(request, call_next)


@app.exception_handler(RequestValidationError)
async def invalid_body_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    logger.info(
        "ask_invalid_body",
        extra={"request_id": _request_id(request), "errors": len(exc.errors())},
    )
    record_ask_outcome("invalid")
    return _error(400, "No question provided")


@app.exception_handler(QuestionValidationError)
async def question_validation_handler(
    request: Request, exc: QuestionValidationError
) -> JSONResponse:
    record_ask_outcome("invalid")
    return _error(400, "No question provided")


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    record_ask_outcome("rate_limited")
    return _error(429, RATE_LIMIT_ERROR, headers={"Retry-After": str(exc.retry_after)})


def _server_error(event: str, request: Request, exc: Exception) -> JSONResponse:
    logger.error(
        event,
        extra={
            "request_id": _request_id(request),
            "error_type": type(exc).__name__,
            "path": request.url.path,
        },
        exc_info=exc,
    )
    if request.url.path == ASK_PATH:
        record_ask_outcome("error")
    return _error(500, GENERIC_ERROR)


def _unhandled_error(request: Request, exc: Exception) -> JSONResponse:
    return _server_error("unhandled_error", request, exc)


@app.exception_handler(RAGError)
async def rag_error_handler(request: Request, exc: RAGError) -> JSONResponse:
    return _server_error("request_failed", request, exc)


@app.get("/metrics")
async def metrics():
    """Expose Prometheus-style metrics."""
    return metrics_response()


@app.get("/health")
async def health() -> dict[str, str]:
    """Simple health probe for uptime checks."""
    return {"status": "ok"}


@app.get("/stats", response_model=CorpusStatsResponse)
async def stats(pipeline: RAGPipeline = Depends(get_pipeline)) -> CorpusStatsResponse:
    """Return stats for the loaded corpus."""
    return CorpusStatsResponse(**pipeline.corpus.stats())


@app.get("/stats/embedding", response_model=EmbeddingHealthResponse)
async def embedding_health(
    pipeline: RAGPipeline = Depends(get_pipeline),
) -> EmbeddingHealthResponse:
    """Check that the query embedding settings match the corpus."""
    corpus_dimension = pipeline.corpus.load().dimension
    report = get_embedding_config_report(corpus_dimension)
    return EmbeddingHealthResponse(**report.__dict__)


@app.post(
    ASK_PATH,
    response_model=AskResponse,
    responses={400: {"model": ErrorResponse}, 429: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
async def ask(
    request: AskRequest,
    http_request: Request,
    pipeline: RAGPipeline = Depends(get_pipeline),
) -> AskResponse:
    """Answer a question from the blog corpus."""
    request_id = _request_id(http_request)
    identity = resolve_client_identity(http_request)
    question = request.question or ""
    logger.info(
        "ask_received",
        extra={
            "request_id": request_id,
            "identity": hash_identity(identity),
            "question_length": len(question),
            "question_hash": hashlib.sha256(question.encode("utf-8")).hexdigest(),
        },
    )
    result = await pipeline.answer(question, identity)
    record_ask_outcome("answered")
    logger.info(
        "ask_completed",
        extra={
            "request_id": request_id,
            "answer_length": len(result.answer),
            "sources": len(result.sources),
        },
    )
    return AskResponse(
        answer=result.answer,
        sources=[SourceItem(**source.as_dict()) for source in result.sources],
    )
