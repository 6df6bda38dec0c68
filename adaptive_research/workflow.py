"""Research workflow: plan, run rounds, rank, select."""

from time import perf_counter

from adaptive_research.config import ResearchSettings, get_settings
from adaptive_research.events import (
    EventCallback,
    PlanningCompleteEvent,
    PlanningStartedEvent,
    SourceSelectionStartedEvent,
    SSEEvent,
    SynthesisPreparationEvent,
)
from adaptive_research.logging import bind_research_context, get_logger
from adaptive_research.models import (
    ProviderSources,
    Question,
    RankingMetadata,
    ResearchOutcome,
    SelectionConfig,
)
from adaptive_research.orchestrator import RoundOrchestrator
from adaptive_research.planner import ResearchPlanner
from adaptive_research.ranker import RelevanceRanker
from adaptive_research.selector import SourceSelector, format_selected_sources_for_synthesis

log = get_logger("adaptive_research.workflow")


def selection_config_from_settings(settings: ResearchSettings) -> SelectionConfig:
    return SelectionConfig(
        base_limit=settings.selection_base_limit,
        extended_limit=settings.selection_extended_limit,
        high_quality_threshold=settings.selection_high_quality_threshold,
        token_budget=settings.selection_token_budget,
        min_relevance_score=settings.selection_min_relevance_score,
        semantic_similarity_threshold=settings.selection_similarity_threshold,
        enable_semantic_dedup=settings.selection_semantic_dedup,
    )


async def run_research_workflow(
    question: Question | str,
    *,
    planner: ResearchPlanner | None = None,
    orchestrator: RoundOrchestrator | None = None,
    ranker: RelevanceRanker | None = None,
    selector: SourceSelector | None = None,
    selection_config: SelectionConfig | None = None,
    event_callback: EventCallback | None = None,
) -> ResearchOutcome:
    """Execute the multi-round research workflow.

    Args:
        question: Research question, optionally with profile and history.
        planner: Override the default planner (for testing).
        orchestrator: Override the default round orchestrator (for testing).
        ranker: Override the default ranker (for testing).
        selector: Override the default selector (for testing).
        selection_config: Override the selection limits from settings.
        event_callback: Optional async callback receiving progress events.

    Returns:
        ResearchOutcome with the plan, every round, ranking metadata and the
        selected sources.

    Raises:
        PlanningError: When plan creation fails.
        ReflectionError: When reflecting on a round fails.
        RefinementError: When refining the next round's query fails.
        RankingError: When ranking the accumulated sources fails.
    """
    if isinstance(question, str):
        question = Question(question=question)

    settings = get_settings()
    bind_research_context(question.question)

    _planner = planner or ResearchPlanner(default_estimated_rounds=settings.default_estimated_rounds)
    _orchestrator = orchestrator or RoundOrchestrator.from_settings(settings)
    _ranker = ranker or RelevanceRanker(top_n=settings.ranking_top_n)
    _selector = selector or SourceSelector()
    _selection_config = selection_config or selection_config_from_settings(settings)

    async def _emit(event: SSEEvent) -> None:
        if event_callback:
            await event_callback(event)

    workflow_start = perf_counter()
    log.info("workflow.started", question=question.question)

    # Phase 1: Planning
    await _emit(PlanningStartedEvent(data={"message": "Araştırma stratejisi planlanıyor..."}))
    plan = await _planner.plan(question)
    await _emit(PlanningCompleteEvent(data={"plan": plan.model_dump()}))

    # Phase 2: Rounds
    rounds = await _orchestrator.run(question, plan, event_callback)
    accumulated = ProviderSources.merge([r.sources for r in rounds]).all_records()
    log.info("workflow.rounds.completed", rounds=len(rounds), total_sources=len(accumulated))

    # Phase 3: Ranking and selection
    await _emit(SourceSelectionStartedEvent(data={"message": "En ilgili kaynakları seçiyorum"}))
    ranking = _ranker.rank(question.question, accumulated)
    selection = _selector.select(ranking.ranked_sources, _selection_config)
    await _emit(SynthesisPreparationEvent(data={"message": "Bilgileri bir araya getiriyorum"}))

    last_reflection = next((r.reflection for r in reversed(rounds) if r.reflection), None)
    completeness = _orchestrator.evaluator.calculate_completeness_score(rounds, last_reflection)
    total_ms = int((perf_counter() - workflow_start) * 1000)
    log.info(
        "workflow.completed",
        total_ms=total_ms,
        rounds=len(rounds),
        selected=selection.selected_count,
        completeness=completeness,
    )

    return ResearchOutcome(
        question=question.question,
        plan=plan,
        rounds=rounds,
        total_sources=len(accumulated),
        total_duration_ms=total_ms,
        ranking=RankingMetadata(
            average_relevance=ranking.average_relevance,
            top_source_score=ranking.top_sources[0].relevance_score if ranking.top_sources else 0,
            ranking_duration_ms=ranking.ranking_duration_ms,
        ),
        selection=selection,
        completeness_score=completeness,
    )


def format_research_for_synthesis(outcome: ResearchOutcome) -> str:
    """Render an outcome as the context block handed to answer synthesis."""
    selection = outcome.selection
    lines = [
        "# RESEARCH FINDINGS\n",
        "## Research Overview",
        f"- Rounds completed: {len(outcome.rounds)}/{outcome.plan.estimated_rounds}",
        f"- Strategy: {outcome.plan.strategy}",
        f"- Focus areas: {', '.join(outcome.plan.focus_areas)}",
        f"- Total sources found: {outcome.total_sources}",
        f"- Selected for synthesis: {selection.selected_count} ({selection.selection_strategy})",
        f"- Average relevance: {selection.quality_metrics.average_relevance:.1f}/100\n",
    ]
    return "\n".join(lines) + "\n" + format_selected_sources_for_synthesis(selection.selected_sources)
