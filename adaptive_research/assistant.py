"""Entry point tying the router to recall and research."""

from typing import Sequence

from adaptive_research.config import get_settings
from adaptive_research.events import EventCallback, RecallCompleteEvent, RoutingCompleteEvent, SSEEvent
from adaptive_research.logging import get_logger
from adaptive_research.models import AssistantResponse, ConversationTurn, Question, Tier, UserProfile
from adaptive_research.orchestrator import RoundOrchestrator
from adaptive_research.planner import ResearchPlanner
from adaptive_research.providers.base import SessionStore
from adaptive_research.ranker import RelevanceRanker
from adaptive_research.recall import RecallHandler
from adaptive_research.router import TierRouter
from adaptive_research.selector import SourceSelector
from adaptive_research.workflow import run_research_workflow

log = get_logger("adaptive_research.assistant")


class ResearchAssistant:
    def __init__(
        self,
        *,
        router: TierRouter | None = None,
        recall_handler: RecallHandler | None = None,
        session_store: SessionStore | None = None,
        planner: ResearchPlanner | None = None,
        orchestrator: RoundOrchestrator | None = None,
        ranker: RelevanceRanker | None = None,
        selector: SourceSelector | None = None,
    ) -> None:
        settings = get_settings()
        self.router = router or TierRouter(
            deep_research_enabled=settings.deep_research_enabled,
            research_trigger_pattern=settings.research_trigger_pattern,
        )
        self.recall_handler = recall_handler or RecallHandler(
            ambiguity_gap=settings.recall_ambiguity_gap,
            max_candidates=settings.recall_max_candidates,
        )
        self.session_store = session_store
        self.planner = planner
        self.orchestrator = orchestrator
        self.ranker = ranker
        self.selector = selector

    async def handle(
        self,
        question: str,
        profile: UserProfile | None = None,
        history: Sequence[ConversationTurn] | None = None,
        event_callback: EventCallback | None = None,
    ) -> AssistantResponse:
        """Route ``question`` and run whatever its tier requires."""

        async def _emit(event: SSEEvent) -> None:
            if event_callback:
                await event_callback(event)

        classification = await self.router.classify(question, profile, history)
        await _emit(
            RoutingCompleteEvent(
                data={
                    "tier": classification.tier.value,
                    "confidence": classification.confidence,
                    "reasoning": classification.reasoning,
                }
            )
        )

        if classification.tier == Tier.RECALL:
            if self.session_store is None:
                log.warning("assistant.recall.no_store")
                recall = await self.recall_handler.recall(question, [])
            else:
                recall = await self.recall_handler.answer_from_store(
                    question, classification.search_terms, self.session_store
                )
            await _emit(RecallCompleteEvent(data=recall.model_dump(mode="json")))
            return AssistantResponse(classification=classification, recall=recall)

        if classification.tier == Tier.MODEL:
            return AssistantResponse(classification=classification)

        research = await run_research_workflow(
            Question(question=question, profile=profile, conversation_history=list(history or [])),
            planner=self.planner,
            orchestrator=self.orchestrator,
            ranker=self.ranker,
            selector=self.selector,
            event_callback=event_callback,
        )
        return AssistantResponse(classification=classification, research=research)
