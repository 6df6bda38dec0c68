"""SSE event models for research progress streaming.

One subclass per event name. All of them serialize the same way, so the
transport (SSE, websocket, in-process queue) only ever calls ``format()`` or
``model_dump()``.
"""

import json
from enum import Enum
from typing import Any, Awaitable, Callable

from pydantic import BaseModel, Field


class SSEEventType(str, Enum):
    """SSE event types emitted during a research run."""

    ROUTING_COMPLETE = "routing_complete"
    RECALL_COMPLETE = "recall_complete"
    PLANNING_STARTED = "planning_started"
    PLANNING_COMPLETE = "planning_complete"
    ROUND_STARTED = "round_started"
    API_STARTED = "api_started"
    API_COMPLETED = "api_completed"
    SOURCE_FOUND = "source_found"
    ROUND_COMPLETE = "round_complete"
    REFLECTION_STARTED = "reflection_started"
    REFLECTION_COMPLETE = "reflection_complete"
    SOURCE_SELECTION_STARTED = "source_selection_started"
    SYNTHESIS_PREPARATION = "synthesis_preparation"
    HEARTBEAT = "heartbeat"
    COMPLETE = "complete"
    ERROR = "error"


class SSEEvent(BaseModel):
    """Base SSE event model."""

    event: SSEEventType = Field(description="Event type identifier")
    data: dict[str, Any] = Field(default_factory=dict, description="Event payload data")

    def format(self) -> str:
        """Format as SSE message: 'event: type\\ndata: json\\n\\n'."""
        return f"event: {self.event.value}\ndata: {json.dumps(self.data, ensure_ascii=False)}\n\n"


EventCallback = Callable[[SSEEvent], Awaitable[None]]


class RoutingCompleteEvent(SSEEvent):
    event: SSEEventType = SSEEventType.ROUTING_COMPLETE
    data: dict[str, Any] = Field(examples=[{"tier": 2, "confidence": 0.9, "reasoning": "..."}])


class RecallCompleteEvent(SSEEvent):
    event: SSEEventType = SSEEventType.RECALL_COMPLETE
    data: dict[str, Any] = Field(examples=[{"kind": "no_match", "message": "..."}])


class PlanningStartedEvent(SSEEvent):
    event: SSEEventType = SSEEventType.PLANNING_STARTED
    data: dict[str, Any] = Field(examples=[{"message": "Araştırma stratejisi planlanıyor..."}])


class PlanningCompleteEvent(SSEEvent):
    event: SSEEventType = SSEEventType.PLANNING_COMPLETE
    data: dict[str, Any] = Field(
        examples=[{"plan": {"strategy": "comprehensive", "focus_areas": ["safety"], "estimated_rounds": 3}}]
    )


class RoundStartedEvent(SSEEvent):
    event: SSEEventType = SSEEventType.ROUND_STARTED
    data: dict[str, Any] = Field(examples=[{"round": 1, "query": "metformin side effects", "estimatedSources": 25}])


class ApiStartedEvent(SSEEvent):
    event: SSEEventType = SSEEventType.API_STARTED
    data: dict[str, Any] = Field(examples=[{"api": "pubmed", "count": 8, "query": "metformin side effects"}])


class ApiCompletedEvent(SSEEvent):
    """Emitted as each provider settles, in completion order."""

    event: SSEEventType = SSEEventType.API_COMPLETED
    data: dict[str, Any] = Field(examples=[{"api": "pubmed", "count": 8, "duration": 1250, "success": True}])


class SourceFoundEvent(SSEEvent):
    event: SSEEventType = SSEEventType.SOURCE_FOUND
    data: dict[str, Any] = Field(examples=[{"title": "Metformin and lactic acidosis", "sourceType": "pubmed"}])


class RoundCompleteEvent(SSEEvent):
    event: SSEEventType = SSEEventType.ROUND_COMPLETE
    data: dict[str, Any] = Field(
        examples=[{"round": 1, "sourceCount": 21, "duration": 3400, "sources": [], "status": "complete"}]
    )


class ReflectionStartedEvent(SSEEvent):
    event: SSEEventType = SSEEventType.REFLECTION_STARTED
    data: dict[str, Any] = Field(examples=[{"round": 1}])


class ReflectionCompleteEvent(SSEEvent):
    event: SSEEventType = SSEEventType.REFLECTION_COMPLETE
    data: dict[str, Any] = Field(
        examples=[
            {
                "round": 1,
                "reflection": {
                    "evidence_quality": "medium",
                    "gaps_identified": ["No recent studies"],
                    "should_continue": True,
                    "reasoning": "...",
                },
            }
        ]
    )


class SourceSelectionStartedEvent(SSEEvent):
    event: SSEEventType = SSEEventType.SOURCE_SELECTION_STARTED
    data: dict[str, Any] = Field(examples=[{"message": "En ilgili kaynakları seçiyorum"}])


class SynthesisPreparationEvent(SSEEvent):
    event: SSEEventType = SSEEventType.SYNTHESIS_PREPARATION
    data: dict[str, Any] = Field(examples=[{"message": "Bilgileri bir araya getiriyorum"}])


class HeartbeatEvent(SSEEvent):
    """Heartbeat event to prevent proxy buffering.

    Formatted as SSE comment (': keepalive\\n\\n') instead of
    named event to avoid requiring client-side handling.
    """

    event: SSEEventType = SSEEventType.HEARTBEAT

    def format(self) -> str:
        return ": keepalive\n\n"


class CompleteEvent(SSEEvent):
    """Terminal success event carrying the serialized result."""

    event: SSEEventType = SSEEventType.COMPLETE


class ErrorEvent(SSEEvent):
    """Terminal failure event. Exactly one is emitted for a failed run."""

    event: SSEEventType = SSEEventType.ERROR
    data: dict[str, str] = Field(
        examples=[{"error": "Unable to create research plan", "error_type": "PlanningError"}]
    )
