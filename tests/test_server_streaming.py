"""Integration tests for /research/stream endpoint."""

import asyncio
import json
import time
from unittest.mock import AsyncMock, patch

import httpx
import pytest
from fastapi import FastAPI

from adaptive_research.events import (
    ApiCompletedEvent,
    PlanningCompleteEvent,
    PlanningStartedEvent,
    RoundStartedEvent,
)
from adaptive_research.exceptions import PlanningError, ReflectionError
from adaptive_research.models import (
    ProviderSources,
    QualityMetrics,
    RankingMetadata,
    ResearchOutcome,
    ResearchPlan,
    RoundResult,
    SelectionResult,
)
from adaptive_research.server import get_app


def _make_outcome(question: str = "test") -> ResearchOutcome:
    """Helper to create a valid ResearchOutcome for mocking."""
    return ResearchOutcome(
        question=question,
        plan=ResearchPlan(strategy="comprehensive", focus_areas=["safety"], estimated_rounds=2),
        rounds=[RoundResult(round_number=1, query=question, sources=ProviderSources(), source_count=0, duration_ms=5)],
        total_sources=0,
        total_duration_ms=100,
        ranking=RankingMetadata(average_relevance=0.0, top_source_score=0, ranking_duration_ms=1),
        selection=SelectionResult(
            selected_sources=[],
            total_sources=0,
            deduplicated_count=0,
            total_tokens=0,
            strategy="base",
            selection_strategy="Included all sources (below limit)",
            quality_metrics=QualityMetrics(),
        ),
        completeness_score=0.4,
    )


@pytest.fixture
def app() -> FastAPI:
    return get_app()


async def _collect_events(response: httpx.Response) -> list[tuple[str, dict]]:
    """Parse SSE stream into list of (event_type, data) tuples."""
    events: list[tuple[str, dict]] = []
    current_event = None
    current_data = None

    async for line in response.aiter_lines():
        if line.startswith("event:"):
            current_event = line.split(": ", 1)[1]
        elif line.startswith("data:"):
            current_data = json.loads(line.split(": ", 1)[1])
        elif line == "" and current_event and current_data is not None:
            events.append((current_event, current_data))
            current_event = None
            current_data = None

    return events


class TestResearchStreamEndpoint:
    """Tests for /research/stream endpoint."""

    @pytest.mark.asyncio
    async def test__research_stream__emits_progress_events(self, app: FastAPI) -> None:
        async def workflow_with_events(*args, event_callback=None, **kwargs):
            if event_callback:
                await event_callback(PlanningStartedEvent(data={"message": "Araştırma stratejisi planlanıyor..."}))
                await event_callback(PlanningCompleteEvent(data={"plan": {"estimated_rounds": 2}}))
                await event_callback(RoundStartedEvent(data={"round": 1, "query": "q", "estimatedSources": 25}))
            await asyncio.sleep(0.1)
            return _make_outcome("Metformin yan etkilerini araştır")

        with patch("adaptive_research.server.run_research_workflow", new=workflow_with_events):
            async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test") as client:
                async with client.stream(
                    "POST",
                    "/research/stream",
                    json={"question": "Metformin yan etkilerini araştır"},
                ) as response:
                    assert response.status_code == 200
                    assert response.headers["content-type"].startswith("text/event-stream")

                    events = await _collect_events(response)
                    event_types = [e[0] for e in events]

                    assert event_types == ["planning_started", "planning_complete", "round_started", "complete"]
                    assert events[0][1]["message"] == "Araştırma stratejisi planlanıyor..."

    @pytest.mark.asyncio
    async def test__research_stream__complete_event_with_full_outcome(self, app: FastAPI) -> None:
        outcome = _make_outcome("full test question")

        with patch("adaptive_research.server.run_research_workflow", new=AsyncMock(return_value=outcome)):
            async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test") as client:
                async with client.stream(
                    "POST",
                    "/research/stream",
                    json={"question": "full test question"},
                ) as response:
                    events = await _collect_events(response)

        complete_events = [e for e in events if e[0] == "complete"]
        assert len(complete_events) == 1
        complete_data = complete_events[0][1]
        assert complete_data["question"] == "full test question"
        for key in ("plan", "rounds", "ranking", "selection", "completeness_score"):
            assert key in complete_data

    @pytest.mark.asyncio
    async def test__research_stream__pipeline_error_emits_safe_error_event(self, app: FastAPI) -> None:
        async def failing_workflow(*args, event_callback=None, **kwargs):
            if event_callback:
                await event_callback(PlanningStartedEvent(data={"message": "..."}))
            await asyncio.sleep(0.1)
            raise PlanningError(topic="test", reason="internal model detail")

        with patch("adaptive_research.server.run_research_workflow", new=failing_workflow):
            async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test") as client:
                async with client.stream("POST", "/research/stream", json={"question": "test"}) as response:
                    events = await _collect_events(response)

        event_types = [e[0] for e in events]
        assert event_types == ["planning_started", "error"]
        error_data = events[-1][1]
        assert error_data["error_type"] == "PlanningError"
        assert error_data["error"] == "Unable to create research plan. Please try a different question."
        assert "internal model detail" not in json.dumps(error_data)

    @pytest.mark.asyncio
    async def test__research_stream__error_mid_workflow_has_no_complete(self, app: FastAPI) -> None:
        async def workflow_with_error(*args, event_callback=None, **kwargs):
            if event_callback:
                await event_callback(RoundStartedEvent(data={"round": 1, "query": "q", "estimatedSources": 25}))
            raise ReflectionError(round_number=1, reason="Reflection failed")

        with patch("adaptive_research.server.run_research_workflow", new=workflow_with_error):
            async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test") as client:
                async with client.stream("POST", "/research/stream", json={"question": "test"}) as response:
                    events = await _collect_events(response)

        event_types = [e[0] for e in events]
        assert "round_started" in event_types
        assert event_types[-1] == "error"
        assert "complete" not in event_types

    @pytest.mark.asyncio
    async def test__research_stream__partial_provider_failure_still_completes(self, app: FastAPI) -> None:
        async def workflow_with_partial_failure(*args, event_callback=None, **kwargs):
            if event_callback:
                await event_callback(ApiCompletedEvent(data={"api": "medrxiv", "count": 0, "success": False}))
                await event_callback(ApiCompletedEvent(data={"api": "pubmed", "count": 6, "success": True}))
            await asyncio.sleep(0.1)
            return _make_outcome()

        with patch("adaptive_research.server.run_research_workflow", new=workflow_with_partial_failure):
            async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test") as client:
                async with client.stream("POST", "/research/stream", json={"question": "test"}) as response:
                    events = await _collect_events(response)

        assert [e[1]["success"] for e in events if e[0] == "api_completed"] == [False, True]
        assert events[-1][0] == "complete"

    @pytest.mark.asyncio
    async def test__research_stream__invalid_question_returns_422(self, app: FastAPI) -> None:
        async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test") as client:
            response = await client.post("/research/stream", json={"question": ""})
            assert response.status_code == 422

    @pytest.mark.asyncio
    async def test__research_stream__enforces_timeout(self, app: FastAPI) -> None:
        async def slow_workflow(*args, **kwargs):
            await asyncio.sleep(700)
            return _make_outcome()

        with patch("adaptive_research.server.run_research_workflow", new=slow_workflow):
            async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test") as client:
                with patch("adaptive_research.server.MAX_DURATION", 1):
                    start = time.time()
                    async with client.stream("POST", "/research/stream", json={"question": "test"}) as response:
                        events = await _collect_events(response)
                    elapsed = time.time() - start

        assert elapsed < 5, "Timeout took too long"
        error_events = [e for e in events if e[0] == "error"]
        assert len(error_events) == 1
        assert error_events[0][1]["error_type"] == "TimeoutError"
        assert "timeout" in error_events[0][1]["error"].lower()

    @pytest.mark.asyncio
    async def test__research_stream__sends_heartbeats(self, app: FastAPI) -> None:
        async def slow_workflow(*args, event_callback=None, **kwargs):
            for _ in range(5):
                await asyncio.sleep(0.5)
                if event_callback:
                    await event_callback(PlanningStartedEvent(data={"message": "..."}))
            return _make_outcome()

        with patch("adaptive_research.server.run_research_workflow", new=slow_workflow):
            with patch("adaptive_research.server.HEARTBEAT_INTERVAL", 0.5):
                async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test") as client:
                    heartbeat_count = 0

                    async with client.stream("POST", "/research/stream", json={"question": "test"}) as response:
                        async for line in response.aiter_lines():
                            if line == ": keepalive":
                                heartbeat_count += 1

        assert heartbeat_count >= 2, f"Only got {heartbeat_count} heartbeats"

    @pytest.mark.asyncio
    async def test__research_stream__handles_client_disconnect(self, app: FastAPI) -> None:
        async def slow_workflow(*args, event_callback=None, **kwargs):
            if event_callback:
                await event_callback(PlanningStartedEvent(data={"message": "..."}))
            await asyncio.sleep(10)
            return _make_outcome()

        with patch("adaptive_research.server.run_research_workflow", new=slow_workflow):
            async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test") as client:
                async with client.stream("POST", "/research/stream", json={"question": "test"}) as response:
                    async for line in response.aiter_lines():
                        if line:
                            break

    @pytest.mark.asyncio
    async def test__research_stream__workflow_finishes_or_is_cancelled(self, app: FastAPI) -> None:
        workflow_finished = False

        async def monitored_workflow(*args, event_callback=None, **kwargs):
            nonlocal workflow_finished
            try:
                if event_callback:
                    await event_callback(PlanningStartedEvent(data={"message": "..."}))
                await asyncio.sleep(0.5)
                return _make_outcome()
            finally:
                workflow_finished = True

        with patch("adaptive_research.server.run_research_workflow", new=monitored_workflow):
            async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test") as client:
                async with client.stream("POST", "/research/stream", json={"question": "test"}) as response:
                    line_count = 0
                    async for _ in response.aiter_lines():
                        line_count += 1
                        if line_count > 5:
                            break

        await asyncio.sleep(0.5)
        assert workflow_finished, "Workflow cleanup did not execute"

    @pytest.mark.asyncio
    async def test__research_stream__handles_multiple_concurrent_streams(self, app: FastAPI) -> None:
        async def workflow_with_delay(question, *args, **kwargs):
            await asyncio.sleep(0.5)
            return _make_outcome(question.question)

        with patch("adaptive_research.server.run_research_workflow", new=workflow_with_delay):
            async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test") as client:

                async def run_stream(question: str) -> list[tuple[str, dict]]:
                    async with client.stream("POST", "/research/stream", json={"question": question}) as response:
                        return await _collect_events(response)

                results = await asyncio.gather(*[run_stream(f"question_{i}") for i in range(10)])

        assert len(results) == 10
        for i, events in enumerate(results):
            complete = [e for e in events if e[0] == "complete"]
            assert len(complete) == 1
            assert complete[0][1]["question"] == f"question_{i}"
