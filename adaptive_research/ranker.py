"""Keyword and metadata relevance ranking of accumulated sources.

Stateless: no embeddings, no model calls. A score is keyword coverage of the
original question (up to 70) plus a provider credibility boost (up to 15) plus
a recency boost (up to 15), capped at 100.
"""

import re
from datetime import date
from time import perf_counter
from typing import Sequence

from adaptive_research.exceptions import RankingError
from adaptive_research.logging import get_logger
from adaptive_research.models import EvidenceRecord, ProviderName, RankedSource, RankingResult

log = get_logger("adaptive_research.ranker")

STOP_WORDS = frozenset(
    {
        "the", "a", "an", "and", "or", "but", "is", "are", "was", "were",
        "in", "on", "at", "to", "for", "of", "with",
        "ve", "nedir", "ne", "nasıl", "için",
    }
)  # fmt: skip

KEYWORD_WEIGHT = 70
NEUTRAL_KEYWORD_SCORE = 35
TOP_SOURCES = 5

CREDIBILITY_BOOST = {
    ProviderName.PUBMED: 15,
    ProviderName.CLINICAL_TRIALS: 15,
    ProviderName.MEDRXIV: 8,
    ProviderName.EXA: 5,
}

# label shown next to a cited source
CREDIBILITY_BADGES = {
    ProviderName.PUBMED: "highly_credible",
    ProviderName.CLINICAL_TRIALS: "highly_credible",
    ProviderName.MEDRXIV: "credible",
    ProviderName.EXA: "credible",
}

_NON_WORD_RE = re.compile(r"[^\w\s]")
_YEAR_RE = re.compile(r"\b(19|20)\d{2}\b")


def extract_keywords(text: str) -> list[str]:
    words = _NON_WORD_RE.sub(" ", text.lower()).split()
    return [w for w in words if len(w) > 2 and w not in STOP_WORDS]


def keyword_score(content: str, keywords: Sequence[str]) -> int:
    if not keywords:
        return NEUTRAL_KEYWORD_SCORE
    matches = sum(1 for k in keywords if k in content)
    return round(matches / len(keywords) * KEYWORD_WEIGHT)


def publication_year(publish_date: str | None) -> int | None:
    if not publish_date:
        return None
    match = _YEAR_RE.search(publish_date)
    return int(match.group(0)) if match else None


def recency_boost(publish_date: str | None, current_year: int) -> int:
    year = publication_year(publish_date)
    if year is None:
        return 0
    age = current_year - year
    if age <= 1:
        return 15
    if age <= 3:
        return 10
    if age <= 5:
        return 5
    return 0


class RelevanceRanker:
    def __init__(self, *, top_n: int = 30, current_year: int | None = None) -> None:
        self.top_n = top_n
        self.current_year = current_year

    def score(self, record: EvidenceRecord, keywords: Sequence[str], current_year: int) -> RankedSource:
        content = f"{record.title} {record.snippet}".lower()
        kw = keyword_score(content, keywords)
        credibility = CREDIBILITY_BOOST[ProviderName(record.provider)]
        recency = recency_boost(record.publish_date, current_year)
        return RankedSource(
            record=record,
            relevance_score=min(100, kw + credibility + recency),
            reasoning=f"Keywords: {kw}, Credibility: {credibility}, Recency: {recency}",
        )

    def rank(self, original_question: str, sources: Sequence[EvidenceRecord]) -> RankingResult:
        """Score ``sources`` against the original question.

        Returns at most ``top_n`` ranked sources; the average covers every
        scored source.

        Raises:
            RankingError: On any unexpected failure while scoring.
        """
        start = perf_counter()
        try:
            keywords = extract_keywords(original_question)
            current_year = self.current_year or date.today().year
            scored = [self.score(record, keywords, current_year) for record in sources]
        except Exception as e:
            log.error("ranker.failed", error=str(e))
            raise RankingError(reason=str(e)) from e

        # sorted() is stable, ties keep accumulation order
        scored = sorted(scored, key=lambda s: s.relevance_score, reverse=True)
        average = sum(s.relevance_score for s in scored) / len(scored) if scored else 0.0
        ranked = scored[: self.top_n]
        duration_ms = int((perf_counter() - start) * 1000)

        log.info(
            "ranker.completed",
            total=len(scored),
            kept=len(ranked),
            top_scores=[s.relevance_score for s in ranked[:TOP_SOURCES]],
            average=round(average, 1),
            duration_ms=duration_ms,
        )
        return RankingResult(
            ranked_sources=ranked,
            top_sources=ranked[:TOP_SOURCES],
            total_sources=len(scored),
            average_relevance=round(average, 1),
            ranking_duration_ms=duration_ms,
        )
