"""Bounded multi-round research loop: fetch, deduplicate, reflect, stop or refine."""

import asyncio
from time import perf_counter
from typing import Any

import httpx

from adaptive_research.analyzer import QueryAnalyzer
from adaptive_research.config import ResearchSettings
from adaptive_research.dedup import SourceDeduplicator
from adaptive_research.events import (
    EventCallback,
    ReflectionCompleteEvent,
    ReflectionStartedEvent,
    RoundCompleteEvent,
    RoundStartedEvent,
    SourceFoundEvent,
    SSEEvent,
)
from adaptive_research.logging import get_logger
from adaptive_research.models import (
    ClinicalTrial,
    EvidenceRecord,
    JournalArticle,
    Preprint,
    ProviderName,
    ProviderSources,
    Question,
    ResearchPlan,
    RoundResult,
)
from adaptive_research.providers.fetcher import ParallelRoundFetcher
from adaptive_research.ranker import CREDIBILITY_BADGES
from adaptive_research.reflector import Reflector
from adaptive_research.refiner import QueryRefiner
from adaptive_research.stopping import StoppingConditionEvaluator, should_reflect

log = get_logger("adaptive_research.orchestrator")

MAX_ROUNDS = 4
SOURCE_FOUND_SAMPLE = 3

_CLIENT_TYPES = {
    ProviderName.EXA: "medical_source",
    ProviderName.PUBMED: "pubmed",
    ProviderName.MEDRXIV: "medrxiv",
    ProviderName.CLINICAL_TRIALS: "clinical_trial",
}


def format_source_for_client(record: EvidenceRecord) -> dict[str, Any]:
    """Flat source shape sent with ``round_complete``."""
    provider = ProviderName(record.provider)
    if isinstance(record, JournalArticle):
        domain = "pubmed.ncbi.nlm.nih.gov"
    elif isinstance(record, Preprint):
        domain = "medrxiv.org"
    elif isinstance(record, ClinicalTrial):
        domain = "clinicaltrials.gov"
    else:
        domain = record.domain
    return {
        "id": record.identity_key,
        "url": record.url,
        "domain": domain,
        "title": record.title,
        "snippet": record.snippet,
        "publishDate": record.publish_date,
        "author": record.author,
        "credibilityBadge": CREDIBILITY_BADGES[provider],
        "type": _CLIENT_TYPES[provider],
    }


class RoundOrchestrator:
    """Runs up to ``min(plan.estimated_rounds, max_rounds)`` rounds for one question.

    Provider failures are absorbed by the fetcher. Reflection and refinement
    failures propagate and end the run.
    """

    def __init__(
        self,
        *,
        analyzer: QueryAnalyzer,
        fetcher: ParallelRoundFetcher,
        reflector: Reflector,
        evaluator: StoppingConditionEvaluator,
        refiner: QueryRefiner,
        max_rounds: int = MAX_ROUNDS,
        first_round_primary_count: int = 10,
        first_round_api_count: int = 15,
        followup_round_primary_count: int = 5,
        followup_round_api_count: int = 10,
    ) -> None:
        self.analyzer = analyzer
        self.fetcher = fetcher
        self.reflector = reflector
        self.evaluator = evaluator
        self.refiner = refiner
        self.max_rounds = max_rounds
        self.first_round_budget = (first_round_primary_count, first_round_api_count)
        self.followup_round_budget = (followup_round_primary_count, followup_round_api_count)

    @classmethod
    def from_settings(
        cls, settings: ResearchSettings, client: httpx.AsyncClient | None = None
    ) -> "RoundOrchestrator":
        return cls(
            analyzer=QueryAnalyzer(),
            fetcher=ParallelRoundFetcher.from_settings(settings, client=client),
            reflector=Reflector(
                round_one_min_sources=settings.round_one_min_sources,
                min_total_sources=settings.min_total_sources,
            ),
            evaluator=StoppingConditionEvaluator(
                min_total_sources=settings.min_total_sources,
                target_total_sources=settings.target_total_sources,
            ),
            refiner=QueryRefiner(),
            max_rounds=settings.max_rounds,
            first_round_primary_count=settings.first_round_primary_count,
            first_round_api_count=settings.first_round_api_count,
            followup_round_primary_count=settings.followup_round_primary_count,
            followup_round_api_count=settings.followup_round_api_count,
        )

    def round_budget(self, round_number: int) -> tuple[int, int]:
        """(primary count, other providers' count) for a round."""
        return self.first_round_budget if round_number == 1 else self.followup_round_budget

    async def run(
        self,
        question: Question,
        plan: ResearchPlan,
        event_callback: EventCallback | None = None,
        *,
        deduplicator: SourceDeduplicator | None = None,
    ) -> list[RoundResult]:
        """Execute the round loop and return the round history in order."""

        async def _emit(event: SSEEvent) -> None:
            if event_callback:
                await event_callback(event)

        dedup = deduplicator or SourceDeduplicator()
        cap = min(plan.estimated_rounds, self.max_rounds)
        rounds: list[RoundResult] = []
        query = question.question

        for round_number in range(1, cap + 1):
            round_start = perf_counter()
            primary_count, api_count = self.round_budget(round_number)
            budget = primary_count + api_count
            log.info("orchestrator.round.started", round=round_number, cap=cap, query=query)
            await _emit(RoundStartedEvent(data={"round": round_number, "query": query, "estimatedSources": budget}))

            distribution = await self.analyzer.analyze(query, api_count)
            counts = {
                ProviderName.EXA: primary_count,
                ProviderName.PUBMED: distribution.pubmed,
                ProviderName.MEDRXIV: distribution.medrxiv,
                ProviderName.CLINICAL_TRIALS: distribution.clinical_trials,
            }
            if sum(counts.values()) != budget:
                log.warning(
                    "orchestrator.budget.mismatch",
                    round=round_number,
                    expected=budget,
                    actual=sum(counts.values()),
                )

            unique = await self._fetch_round(query, counts, dedup, event_callback)

            for record in unique.all_records()[:SOURCE_FOUND_SAMPLE]:
                await _emit(SourceFoundEvent(data={"title": record.title, "sourceType": record.provider}))

            result = RoundResult(
                round_number=round_number,
                query=query,
                sources=unique,
                source_count=unique.count,
                duration_ms=int((perf_counter() - round_start) * 1000),
            )
            rounds.append(result)
            await _emit(
                RoundCompleteEvent(
                    data={
                        "round": round_number,
                        "sourceCount": result.source_count,
                        "duration": result.duration_ms,
                        "sources": [format_source_for_client(r) for r in unique.all_records()],
                        "status": "complete",
                    }
                )
            )
            log.info(
                "orchestrator.round.completed",
                round=round_number,
                source_count=result.source_count,
                duration_ms=result.duration_ms,
            )

            if not should_reflect(round_number, cap):
                log.info("orchestrator.final_round", round=round_number)
                break

            await _emit(ReflectionStartedEvent(data={"round": round_number}))
            reflection = await self.reflector.reflect(question.question, result, rounds[:-1], cap)
            result.reflection = reflection
            await _emit(
                ReflectionCompleteEvent(data={"round": round_number, "reflection": reflection.model_dump(mode="json")})
            )

            decision = self.evaluator.evaluate(round_number, cap, result, rounds, reflection)
            if decision.should_stop:
                log.info("orchestrator.stopped", round=round_number, reason=decision.reason)
                break

            if reflection.gaps_identified:
                refined = await self.refiner.refine(question.question, reflection.gaps_identified, round_number + 1)
                query = refined.refined

        dedup.log_summary()
        return rounds

    async def _fetch_round(
        self,
        query: str,
        counts: dict[ProviderName, int],
        dedup: SourceDeduplicator,
        event_callback: EventCallback | None,
    ) -> ProviderSources:
        """Fan out, then deduplicate once all providers have settled.

        If the run is cancelled mid fan-out, the dispatched calls still finish
        and their records are committed to ``dedup`` before the cancellation
        propagates.
        """
        fetch_task = asyncio.ensure_future(self.fetcher.fetch(query, counts, event_callback))
        try:
            raw = await asyncio.shield(fetch_task)
        except asyncio.CancelledError:
            log.info("orchestrator.cancelled.draining_fetch")
            raw = await fetch_task
            dedup.filter_round(raw)
            raise
        return dedup.filter_round(raw)
