"""Top-P style selection of ranked sources under a token budget."""

import math
from time import perf_counter
from typing import Sequence

from adaptive_research.logging import get_logger
from adaptive_research.models import (
    ClinicalTrial,
    JournalArticle,
    Preprint,
    ProviderName,
    QualityMetrics,
    RankedSource,
    SelectedSource,
    SelectionConfig,
    SelectionResult,
)
from adaptive_research.ranker import CREDIBILITY_BADGES, publication_year

log = get_logger("adaptive_research.selector")

HIGH_QUALITY_METRIC_THRESHOLD = 80
MIN_SIMILARITY_WORD_LENGTH = 4


def _comparison_words(source: RankedSource) -> set[str]:
    text = f"{source.record.title} {source.record.snippet}".lower()
    return {w for w in text.split() if len(w) >= MIN_SIMILARITY_WORD_LENGTH}


def jaccard_similarity(a: set[str], b: set[str]) -> float:
    union = a | b
    if not union:
        return 0.0
    return len(a & b) / len(union)


def remove_near_duplicates(
    sources: Sequence[RankedSource], threshold: float
) -> tuple[list[RankedSource], int]:
    """Drop sources too similar to a higher-ranked one already kept."""
    kept: list[tuple[RankedSource, set[str]]] = []
    removed = 0
    for source in sources:
        words = _comparison_words(source)
        if any(jaccard_similarity(words, existing) > threshold for _, existing in kept):
            removed += 1
            continue
        kept.append((source, words))
    return [s for s, _ in kept], removed


def _year(publish_date: str | None) -> str:
    year = publication_year(publish_date)
    return str(year) if year else ""


def format_citation(source: RankedSource) -> tuple[str, str, str]:
    """(citation, summary, credibility badge) for one source."""
    record = source.record
    badge = CREDIBILITY_BADGES[ProviderName(record.provider)]
    year = _year(record.publish_date)
    dated = year or "n.d."
    if isinstance(record, JournalArticle):
        first_author = record.authors[0] if record.authors else "Unknown"
        citation = f"{first_author} et al. ({dated}). {record.title}. {record.journal or 'PubMed'}."
        return citation, record.snippet, badge
    if isinstance(record, Preprint):
        citation = f"{record.authors or 'Unknown'} et al. ({dated}). {record.title}. medRxiv preprint."
        return citation, record.snippet, badge
    if isinstance(record, ClinicalTrial):
        citation = f"{record.title}. ClinicalTrials.gov ID: {record.nct_id}."
        if year:
            citation += f" Started: {year}."
        return citation, record.snippet, badge

    citation = f"{record.title}. {record.domain or 'Web'}."
    if year:
        citation += f" Published: {year}."
    return citation, record.snippet, badge


def to_selected(source: RankedSource) -> SelectedSource:
    citation, summary, badge = format_citation(source)
    return SelectedSource(
        record=source.record,
        relevance_score=source.relevance_score,
        reasoning=source.reasoning,
        citation=citation,
        summary=summary,
        credibility_badge=badge,
        estimated_tokens=math.ceil((len(citation) + len(summary)) / 4),
    )


def describe_strategy(
    total_sources: int, selected_count: int, deduplicated_count: int, window: int, base_limit: int
) -> str:
    if selected_count == total_sources:
        return "Included all sources (below limit)"
    if window > base_limit:
        return f"Extended selection to {window} sources (high-quality threshold met)"
    if deduplicated_count > 0:
        return f"Top-P selection with deduplication ({deduplicated_count} near-duplicates removed)"
    return f"Top-P selection (top {selected_count} most relevant sources)"


def quality_metrics(selected: Sequence[SelectedSource]) -> QualityMetrics:
    if not selected:
        return QualityMetrics()
    scores = [s.relevance_score for s in selected]
    return QualityMetrics(
        average_relevance=round(sum(scores) / len(scores), 1),
        min_relevance=min(scores),
        max_relevance=max(scores),
        high_quality_count=sum(1 for s in scores if s > HIGH_QUALITY_METRIC_THRESHOLD),
    )


class SourceSelector:
    """Picks the subset of ranked sources passed to answer synthesis."""

    def select(
        self, ranked_sources: Sequence[RankedSource], config: SelectionConfig | None = None
    ) -> SelectionResult:
        config = config or SelectionConfig()
        start = perf_counter()

        qualified = [s for s in ranked_sources if s.relevance_score >= config.min_relevance_score]
        high_quality = sum(1 for s in qualified if s.relevance_score >= config.high_quality_threshold)

        if high_quality > config.base_limit:
            window = min(config.extended_limit, high_quality)
            strategy = "extended"
        else:
            window = config.base_limit
            strategy = "base"

        candidates = qualified[:window]
        deduplicated = 0
        if config.enable_semantic_dedup and len(candidates) > 1:
            candidates, deduplicated = remove_near_duplicates(candidates, config.semantic_similarity_threshold)

        selected: list[SelectedSource] = []
        total_tokens = 0
        for candidate in candidates:
            formatted = to_selected(candidate)
            if total_tokens + formatted.estimated_tokens > config.token_budget:
                log.warning(
                    "selector.token_budget.reached",
                    used=total_tokens,
                    next_tokens=formatted.estimated_tokens,
                    budget=config.token_budget,
                    selected=len(selected),
                )
                break
            selected.append(formatted)
            total_tokens += formatted.estimated_tokens

        result = SelectionResult(
            selected_sources=selected,
            total_sources=len(ranked_sources),
            deduplicated_count=deduplicated,
            total_tokens=total_tokens,
            strategy=strategy,
            selection_strategy=describe_strategy(
                len(ranked_sources), len(selected), deduplicated, window, config.base_limit
            ),
            quality_metrics=quality_metrics(selected),
        )
        log.info(
            "selector.completed",
            selected=result.selected_count,
            total=result.total_sources,
            filtered_out=len(ranked_sources) - len(qualified),
            deduplicated=deduplicated,
            tokens=total_tokens,
            strategy=strategy,
            duration_ms=int((perf_counter() - start) * 1000),
        )
        return result


_SYNTHESIS_SECTIONS = (
    (ProviderName.PUBMED, "Peer-Reviewed Articles (PubMed)", 500),
    (ProviderName.CLINICAL_TRIALS, "Clinical Trials", 500),
    (ProviderName.MEDRXIV, "Recent Medical Research (medRxiv)", 500),
    (ProviderName.EXA, "Medical Websites", 400),
)


def format_selected_sources_for_synthesis(selected: Sequence[SelectedSource]) -> str:
    """Group selected sources by provider with continuous numbering."""
    parts = [f"# SELECTED RESEARCH SOURCES ({len(selected)} sources)\n\n"]
    number = 0
    for provider, heading, limit in _SYNTHESIS_SECTIONS:
        group = [s for s in selected if s.source_type == provider]
        if not group:
            continue
        parts.append(f"## {heading} - {len(group)} sources\n\n")
        for source in group:
            number += 1
            summary = source.summary[:limit] + ("..." if len(source.summary) > limit else "")
            parts.append(
                f"### [{number}] {source.citation}\n"
                f"**Relevance:** {source.relevance_score}/100 | **Credibility:** {source.credibility_badge}\n\n"
                f"{summary}\n\n"
            )
    return "".join(parts)
