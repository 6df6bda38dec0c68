"""FastAPI application for the adaptive research engine."""

import asyncio
from functools import lru_cache
from typing import AsyncIterator

import structlog
from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import BaseModel, Field, ValidationError

from adaptive_research import __version__
from adaptive_research.config import get_settings
from adaptive_research.events import CompleteEvent, ErrorEvent, HeartbeatEvent, SSEEvent
from adaptive_research.exceptions import ResearchPipelineError
from adaptive_research.models import (
    ConversationTurn,
    Question,
    RecallAnswer,
    RecallMultipleMatches,
    RecallNoMatch,
    ResearchOutcome,
    RouterClassification,
    UserProfile,
)
from adaptive_research.providers.sessions import InMemorySessionStore
from adaptive_research.recall import RecallHandler
from adaptive_research.router import TierRouter
from adaptive_research.workflow import run_research_workflow

log = structlog.get_logger("adaptive_research.server")

# SSE Configuration
HEARTBEAT_INTERVAL = 30  # seconds
MAX_DURATION = 600  # 10 minutes
MAX_QUEUE_SIZE = 100


# --- Request/Response schemas ---


class ResearchRequest(BaseModel):
    """Incoming research request."""

    question: str = Field(
        min_length=1,
        max_length=2000,
        description="Research question (1-2000 characters)",
        examples=["Metformin yan etkilerini araştır"],
    )
    profile: UserProfile | None = Field(default=None, description="Optional diabetes profile")
    conversation_history: list[ConversationTurn] = Field(default_factory=list)

    def to_question(self) -> Question:
        return Question(
            question=self.question,
            profile=self.profile,
            conversation_history=self.conversation_history,
        )


class RecallRequest(BaseModel):
    question: str = Field(min_length=1, max_length=2000, examples=["Metformin hakkında ne bulmuştuk?"])
    search_terms: str | None = Field(
        default=None, description="Terms for the session lookup; the question is used when omitted"
    )


class ErrorResponse(BaseModel):
    """Structured error response."""

    error: str = Field(
        description=(
            "Error type (PlanningError, ReflectionError, RefinementError, RankingError, RecallError, "
            "ValidationError, InternalServerError)"
        ),
        examples=["PlanningError"],
    )
    detail: str = Field(
        description="User-friendly error message explaining what went wrong",
        examples=["Unable to create research plan. Please try a different question."],
    )


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = Field(description="Service health status", examples=["ok"])
    version: str = Field(default="", description="Service version (only included in /health endpoint)")


# --- Components ---


@lru_cache(maxsize=1)
def get_router() -> TierRouter:
    settings = get_settings()
    return TierRouter(
        deep_research_enabled=settings.deep_research_enabled,
        research_trigger_pattern=settings.research_trigger_pattern,
    )


@lru_cache(maxsize=1)
def get_recall_handler() -> RecallHandler:
    settings = get_settings()
    return RecallHandler(ambiguity_gap=settings.recall_ambiguity_gap, max_candidates=settings.recall_max_candidates)


@lru_cache(maxsize=1)
def get_session_store() -> InMemorySessionStore:
    return InMemorySessionStore()


# --- Exception handlers ---

_SAFE_ERROR_MESSAGES: dict[str, str] = {
    "PlanningError": "Unable to create research plan. Please try a different question.",
    "ReflectionError": "Unable to evaluate the gathered evidence. Please try again.",
    "RefinementError": "Unable to refine the research query. Please try again.",
    "RankingError": "Unable to rank the research sources. Please try again.",
    "RecallError": "Unable to answer from the past research session. Please try again.",
}


def _get_safe_error_message(exc: Exception) -> str:
    return _SAFE_ERROR_MESSAGES.get(type(exc).__name__, "An error occurred processing your request.")


async def _handle_pipeline_error(request: Request, exc: ResearchPipelineError) -> JSONResponse:
    error_type = type(exc).__name__
    log.warning("request.pipeline_error", error_type=error_type, detail=str(exc))
    return JSONResponse(
        status_code=422,
        content=ErrorResponse(error=error_type, detail=_get_safe_error_message(exc)).model_dump(),
    )


async def _handle_validation_error(request: Request, exc: ValidationError) -> JSONResponse:
    log.warning("request.validation_error", detail=str(exc))
    return JSONResponse(
        status_code=422,
        content=ErrorResponse(error="ValidationError", detail=str(exc)).model_dump(),
    )


async def _handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    log.exception("request.unexpected_error", error=str(exc))
    return JSONResponse(
        status_code=500,
        content=ErrorResponse(error="InternalServerError", detail="An unexpected error occurred.").model_dump(),
    )


# --- App factory ---


def get_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    application = FastAPI(
        title="Adaptive Research Service",
        description="""
Multi-round medical research for a diabetes assistant.

1. **Planning** - one model call proposes a strategy and the number of rounds
2. **Rounds** - each round queries web, PubMed, medRxiv and ClinicalTrials.gov in
   parallel, deduplicates, reflects on evidence quality and refines the query
3. **Ranking** - keyword, credibility and recency scoring against the question
4. **Selection** - top sources within a token budget for answer synthesis
        """,
        version=__version__,
    )

    application.add_exception_handler(ResearchPipelineError, _handle_pipeline_error)  # type: ignore[arg-type]
    application.add_exception_handler(ValidationError, _handle_validation_error)  # type: ignore[arg-type]
    application.add_exception_handler(Exception, _handle_unexpected_error)

    @application.post(
        "/research",
        response_model=ResearchOutcome,
        status_code=status.HTTP_200_OK,
        summary="Run multi-round research",
        tags=["Research"],
        responses={422: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
    )
    async def research(body: ResearchRequest) -> ResearchOutcome:
        return await run_research_workflow(body.to_question())

    @application.post(
        "/research/stream",
        response_class=StreamingResponse,
        responses={
            200: {
                "description": "Server-Sent Events stream of research progress",
                "content": {"text/event-stream": {"example": "event: round_started\ndata: {...}\n\n"}},
            },
            422: {"model": ErrorResponse},
        },
        summary="Run multi-round research with streaming progress",
        description="""
**Event Types:** `planning_started`, `planning_complete`, `round_started`,
`api_started`, `api_completed`, `source_found`, `round_complete`,
`reflection_started`, `reflection_complete`, `source_selection_started`,
`synthesis_preparation`, then exactly one of `complete` or `error`.
A `: keepalive` comment is sent every 30s.

**Connection:** Closes after completion or the 10-minute limit.
        """,
        tags=["Research"],
    )
    async def research_stream(request: Request, research_request: ResearchRequest) -> StreamingResponse:
        """Execute the research workflow with SSE progress streaming."""

        async def event_generator() -> AsyncIterator[str]:
            event_queue: asyncio.Queue[SSEEvent] = asyncio.Queue(maxsize=MAX_QUEUE_SIZE)
            workflow_complete = asyncio.Event()

            async def event_callback(event: SSEEvent) -> None:
                """Queue an event, dropping it if the consumer stalls."""
                try:
                    await asyncio.wait_for(event_queue.put(event), timeout=5.0)
                except asyncio.TimeoutError:
                    log.warning("event_queue_full", event_type=event.event.value)

            async def run_workflow_task() -> None:
                try:
                    result = await run_research_workflow(
                        research_request.to_question(),
                        event_callback=event_callback,
                    )
                    await event_queue.put(CompleteEvent(data=result.model_dump(mode="json")))
                except Exception as e:
                    log.error("workflow_error", error=str(e), exc_info=True)
                    await event_queue.put(
                        ErrorEvent(data={"error": _get_safe_error_message(e), "error_type": type(e).__name__})
                    )
                finally:
                    workflow_complete.set()

            workflow_task = asyncio.create_task(run_workflow_task())

            loop = asyncio.get_running_loop()
            start_time = loop.time()
            next_heartbeat = start_time + HEARTBEAT_INTERVAL

            try:
                while not workflow_complete.is_set():
                    current_time = loop.time()
                    elapsed = current_time - start_time

                    if elapsed > MAX_DURATION:
                        log.warning("stream_timeout", elapsed=elapsed, max=MAX_DURATION)
                        workflow_task.cancel()
                        yield ErrorEvent(
                            data={
                                "error": "Research timeout - workflow exceeded 10 minutes",
                                "error_type": "TimeoutError",
                            }
                        ).format()
                        break

                    if await request.is_disconnected():
                        log.info("client_disconnected", elapsed=elapsed)
                        workflow_task.cancel()
                        break

                    if current_time >= next_heartbeat:
                        yield HeartbeatEvent().format()
                        next_heartbeat += HEARTBEAT_INTERVAL

                    try:
                        event = await asyncio.wait_for(event_queue.get(), timeout=0.1)
                        yield event.format()
                    except asyncio.TimeoutError:
                        continue

                while not event_queue.empty():
                    yield event_queue.get_nowait().format()

            finally:
                workflow_task.cancel()
                try:
                    await asyncio.wait_for(workflow_task, timeout=10.0)
                except asyncio.CancelledError:
                    log.info("workflow_cancelled")
                except asyncio.TimeoutError:
                    log.error("workflow_cancellation_timeout")
                except Exception as e:
                    log.exception("workflow_failed_during_cleanup", error=str(e))

        return StreamingResponse(
            event_generator(),
            media_type="text/event-stream",
            headers={
                "Cache-Control": "no-cache",
                "X-Accel-Buffering": "no",
                "Connection": "keep-alive",
            },
        )

    @application.post(
        "/route",
        response_model=RouterClassification,
        summary="Classify a question into a tier",
        tags=["Routing"],
    )
    async def route(body: ResearchRequest) -> RouterClassification:
        return await get_router().classify(body.question, body.profile, body.conversation_history)

    @application.post(
        "/recall",
        response_model=RecallAnswer | RecallMultipleMatches | RecallNoMatch,
        summary="Answer from past research sessions",
        tags=["Routing"],
        responses={422: {"model": ErrorResponse}},
    )
    async def recall(body: RecallRequest) -> RecallAnswer | RecallMultipleMatches | RecallNoMatch:
        return await get_recall_handler().answer_from_store(body.question, body.search_terms, get_session_store())

    @application.get("/health", response_model=HealthResponse, summary="Health Check", tags=["Health"])
    async def health() -> HealthResponse:
        return HealthResponse(status="ok", version=__version__)

    @application.get("/health/liveness", response_model=HealthResponse, summary="Liveness Probe", tags=["Health"])
    async def liveness() -> HealthResponse:
        return HealthResponse(status="alive")

    @application.get("/health/readiness", response_model=HealthResponse, summary="Readiness Probe", tags=["Health"])
    async def readiness() -> HealthResponse:
        return HealthResponse(status="ready")

    return application


app = get_app()
