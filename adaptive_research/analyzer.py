"""Query categorisation and per-provider budget split."""

import math
import re
from typing import Any

from pydantic import BaseModel, Field
from pydantic_ai import Agent

from adaptive_research.agents import get_analyzer_agent
from adaptive_research.logging import get_logger
from adaptive_research.models import SourceDistribution
from adaptive_research.parsing import parse_json_output

log = get_logger("adaptive_research.analyzer")


class _AnalyzerOutput(BaseModel):
    category: str = "general"
    pubmed_ratio: float = Field(ge=0.0, allow_inf_nan=False)
    medrxiv_ratio: float = Field(ge=0.0, allow_inf_nan=False)
    clinical_trials_ratio: float = Field(ge=0.0, allow_inf_nan=False)


Ratios = tuple[float, float, float]

EVEN_SPLIT: Ratios = (1 / 3, 1 / 3, 1 / 3)

# (category, pattern, (pubmed, medrxiv, clinical_trials)); first match wins
KEYWORD_CATEGORIES: tuple[tuple[str, re.Pattern[str], Ratios], ...] = (
    (
        "drug_safety",
        re.compile(r"yan etki|etkileş|güvenli mi|side effect|interaction|contraindic|doz", re.IGNORECASE),
        (0.7, 0.1, 0.2),
    ),
    (
        "new_research",
        re.compile(r"latest|yeni|güncel|202[4-6]|breakthrough|recent|clinical trial", re.IGNORECASE),
        (0.5, 0.3, 0.2),
    ),
    (
        "nutrition",
        re.compile(r"beslenme|nutrition|diet|food|yemek|tarif|recipe|carb|protein", re.IGNORECASE),
        (0.8, 0.15, 0.05),
    ),
    (
        "treatment",
        re.compile(r"tedavi|treatment|therapy|guideline|protocol|hedef|target", re.IGNORECASE),
        (0.65, 0.1, 0.25),
    ),
)


def categorize_by_keywords(query: str) -> tuple[str, Ratios]:
    """Deterministic category and ratios; an even split when nothing matches."""
    for category, pattern, ratios in KEYWORD_CATEGORIES:
        if pattern.search(query):
            return category, ratios
    return "general", EVEN_SPLIT


def calculate_source_counts(ratios: Ratios, budget: int) -> tuple[int, int, int]:
    """Turn ratios into integer counts summing exactly to ``budget`` (largest remainder).

    Negative ratios count as zero. If nothing is left, or the ratios do not sum
    to a finite number, the split is even.
    """
    if budget <= 0:
        return 0, 0, 0

    weights = [max(r, 0.0) for r in ratios]
    total = sum(weights)
    if total <= 0 or not math.isfinite(total):
        weights, total = list(EVEN_SPLIT), 1.0

    exact = [w / total * budget for w in weights]
    counts = [math.floor(x) for x in exact]
    remainder = budget - sum(counts)
    # ties go to the earlier provider
    order = sorted(range(3), key=lambda i: (-(exact[i] - counts[i]), i))
    for i in order[:remainder]:
        counts[i] += 1
    return counts[0], counts[1], counts[2]


class QueryAnalyzer:
    """Splits a round's non-primary budget between PubMed, medRxiv and trials.

    Never raises: a model or parse failure falls back to keyword categories.
    """

    def __init__(self, agent: Agent[Any, str] | None = None) -> None:
        self._agent = agent

    @property
    def agent(self) -> Agent[Any, str]:
        return self._agent or get_analyzer_agent()

    async def _classify(self, query: str) -> tuple[str, Ratios] | None:
        prompt = f"Query: {query}\n\nCategorize this query and return the source ratios as JSON."
        try:
            result = await self.agent.run(prompt)
        except Exception as e:
            log.warning("analyzer.model.failed", error=str(e))
            return None

        parsed = parse_json_output(result.output, _AnalyzerOutput)
        if parsed is None:
            return None
        ratios = (parsed.pubmed_ratio, parsed.medrxiv_ratio, parsed.clinical_trials_ratio)
        total = sum(ratios)
        if total <= 0 or not math.isfinite(total):
            return None
        return parsed.category or "general", ratios

    async def analyze(self, query: str, api_budget: int) -> SourceDistribution:
        classified = await self._classify(query) if query.strip() else None
        if classified is None:
            category, ratios = categorize_by_keywords(query)
            log.info("analyzer.fallback.used", category=category)
        else:
            category, ratios = classified

        pubmed, medrxiv, trials = calculate_source_counts(ratios, api_budget)
        distribution = SourceDistribution(
            category=category, pubmed=pubmed, medrxiv=medrxiv, clinical_trials=trials
        )
        log.info(
            "analyzer.distribution",
            category=category,
            pubmed=pubmed,
            medrxiv=medrxiv,
            clinical_trials=trials,
        )
        return distribution
