"""Concurrent fan-out of one round's query to every evidence provider."""

import asyncio
from time import perf_counter
from typing import Mapping, Sequence

import httpx

from adaptive_research.config import ResearchSettings
from adaptive_research.events import ApiCompletedEvent, ApiStartedEvent, EventCallback
from adaptive_research.logging import get_logger
from adaptive_research.models import EvidenceRecord, ProviderName, ProviderSources
from adaptive_research.providers.base import EvidenceProvider
from adaptive_research.providers.clinical_trials import ClinicalTrialsProvider
from adaptive_research.providers.exa import ExaProvider
from adaptive_research.providers.medrxiv import MedRxivProvider
from adaptive_research.providers.pubmed import PubMedProvider

log = get_logger("adaptive_research.providers.fetcher")

DEFAULT_TIMEOUT_S = 3.0


class ParallelRoundFetcher:
    """Runs the provider calls of a round concurrently, each under its own timeout.

    A failed or timed-out provider contributes an empty list and an
    ``api_completed`` event with ``success: false``; it never fails the round.
    Providers with a zero count are not called and emit nothing.
    """

    def __init__(
        self,
        providers: Sequence[EvidenceProvider],
        timeouts: Mapping[ProviderName, float] | None = None,
    ) -> None:
        self.providers = {ProviderName(p.name): p for p in providers}
        self.timeouts = dict(timeouts or {})

    @classmethod
    def from_settings(
        cls, settings: ResearchSettings, client: httpx.AsyncClient | None = None
    ) -> "ParallelRoundFetcher":
        """Default wiring with the four HTTP adapters."""
        return cls(
            providers=[
                ExaProvider(settings.exa_api_key, client=client),
                PubMedProvider(settings.pubmed_api_key, client=client),
                MedRxivProvider(client=client),
                ClinicalTrialsProvider(client=client),
            ],
            timeouts={
                ProviderName.EXA: settings.exa_timeout_s,
                ProviderName.PUBMED: settings.pubmed_timeout_s,
                ProviderName.MEDRXIV: settings.medrxiv_timeout_s,
                ProviderName.CLINICAL_TRIALS: settings.clinical_trials_timeout_s,
            },
        )

    async def fetch(
        self,
        query: str,
        counts: Mapping[ProviderName, int],
        event_callback: EventCallback | None = None,
    ) -> ProviderSources:
        """Fetch ``counts[name]`` records from each provider; results are not deduplicated."""
        results: dict[ProviderName, list[EvidenceRecord]] = {name: [] for name in ProviderName}

        async def _emit(event: ApiStartedEvent | ApiCompletedEvent) -> None:
            # a failing progress listener must not cancel the other providers
            if event_callback is None:
                return
            try:
                await event_callback(event)
            except Exception as e:
                log.warning("fetcher.event.failed", event_type=event.event.value, error=str(e) or type(e).__name__)

        async def _fetch_one(provider: EvidenceProvider, count: int) -> None:
            name = ProviderName(provider.name)
            await _emit(ApiStartedEvent(data={"api": name.value, "count": count, "query": query}))
            start = perf_counter()
            try:
                async with asyncio.timeout(self.timeouts.get(name, DEFAULT_TIMEOUT_S)):
                    records = list(await provider.fetch(query, count))
            except Exception as e:
                duration_ms = int((perf_counter() - start) * 1000)
                log.warning(
                    "fetcher.provider.failed",
                    api=name.value,
                    duration_ms=duration_ms,
                    error=str(e) or type(e).__name__,
                )
                await _emit(
                    ApiCompletedEvent(data={"api": name.value, "count": 0, "duration": duration_ms, "success": False})
                )
                return

            duration_ms = int((perf_counter() - start) * 1000)
            results[name] = records
            log.info("fetcher.provider.completed", api=name.value, count=len(records), duration_ms=duration_ms)
            await _emit(
                ApiCompletedEvent(
                    data={"api": name.value, "count": len(records), "duration": duration_ms, "success": True}
                )
            )

        async with asyncio.TaskGroup() as tg:
            for name in ProviderName:
                count = counts.get(name, 0)
                if count <= 0:
                    continue
                provider = self.providers.get(name)
                if provider is None:
                    log.warning("fetcher.provider.missing", api=name.value, count=count)
                    continue
                tg.create_task(_fetch_one(provider, count))

        return ProviderSources(
            exa=results[ProviderName.EXA],
            pubmed=results[ProviderName.PUBMED],
            medrxiv=results[ProviderName.MEDRXIV],
            clinical_trials=results[ProviderName.CLINICAL_TRIALS],
        )
