"""Tests for relevance ranking."""

import pytest

from adaptive_research.exceptions import RankingError
from adaptive_research.models import ClinicalTrial, JournalArticle, Preprint, WebPassage
from adaptive_research.ranker import (
    RelevanceRanker,
    extract_keywords,
    keyword_score,
    publication_year,
    recency_boost,
)


def _article(pmid: str, title: str, snippet: str = "", publish_date: str | None = None) -> JournalArticle:
    return JournalArticle(
        pmid=pmid,
        url=f"https://pubmed.ncbi.nlm.nih.gov/{pmid}/",
        title=title,
        snippet=snippet,
        publish_date=publish_date,
    )


class TestKeywords:
    def test__extract_keywords__drops_stop_words_and_short_words(self) -> None:
        assert extract_keywords("What are the side effects of metformin?") == ["what", "side", "effects", "metformin"]

    def test__extract_keywords__handles_turkish_stop_words(self) -> None:
        assert extract_keywords("Metformin nedir ve nasıl kullanılır") == ["metformin", "kullanılır"]

    def test__keyword_score__is_share_of_keywords_times_70(self) -> None:
        assert keyword_score("metformin causes nausea", ["metformin", "nausea"]) == 70
        assert keyword_score("metformin causes nausea", ["metformin", "b12"]) == 35
        assert keyword_score("unrelated", ["metformin"]) == 0

    def test__keyword_score__neutral_without_keywords(self) -> None:
        assert keyword_score("anything", []) == 35


class TestRecency:
    @pytest.mark.parametrize(
        "publish_date,year",
        [("2024-05-01", 2024), ("2023 Jun", 2023), ("Published 1999", 1999), ("n.d.", None), (None, None)],
    )
    def test__publication_year__extracts_first_year(self, publish_date: str | None, year: int | None) -> None:
        assert publication_year(publish_date) == year

    @pytest.mark.parametrize(
        "publish_date,boost",
        [("2025", 15), ("2024", 15), ("2023", 10), ("2022", 10), ("2021", 5), ("2020", 5), ("2019", 0), (None, 0)],
    )
    def test__recency_boost__by_age(self, publish_date: str | None, boost: int) -> None:
        assert recency_boost(publish_date, current_year=2025) == boost


class TestRelevanceRanker:
    def test__score__combines_keywords_credibility_recency(self) -> None:
        ranker = RelevanceRanker(current_year=2025)
        source = _article("1", "Metformin side effects", "nausea and diarrhea", "2024")

        ranked = ranker.score(source, ["metformin", "side", "effects"], 2025)

        assert ranked.relevance_score == 70 + 15 + 15
        assert ranked.reasoning == "Keywords: 70, Credibility: 15, Recency: 15"

    def test__credibility__by_provider(self) -> None:
        ranker = RelevanceRanker(current_year=2025)
        records = [
            WebPassage(url="https://cdc.gov/a", title="x"),
            Preprint(url="https://www.medrxiv.org/content/a", title="x"),
            ClinicalTrial(nct_id="NCT1", url="https://clinicaltrials.gov/study/NCT1", title="x"),
        ]

        scores = [ranker.score(r, [], 2025).relevance_score for r in records]

        assert scores == [35 + 5, 35 + 8, 35 + 15]

    def test__rank__sorts_descending_and_reports_average(self) -> None:
        ranker = RelevanceRanker(current_year=2025)
        sources = [
            _article("1", "Insulin pumps overview"),
            _article("2", "Metformin side effects review", publish_date="2024"),
            _article("3", "Metformin dosing"),
        ]

        result = ranker.rank("metformin side effects", sources)

        assert [s.record.identity_key for s in result.ranked_sources] == ["2", "3", "1"]
        scores = [s.relevance_score for s in result.ranked_sources]
        assert scores == [100, 38, 15]
        assert result.total_sources == 3
        assert result.average_relevance == pytest.approx(round(sum(scores) / 3, 1))

    def test__rank__truncates_to_top_n(self) -> None:
        ranker = RelevanceRanker(top_n=30, current_year=2025)
        sources = [_article(str(i), f"Metformin study {i}") for i in range(45)]

        result = ranker.rank("metformin", sources)

        assert len(result.ranked_sources) == 30
        assert len(result.top_sources) == 5
        assert result.total_sources == 45

    def test__rank__never_invents_sources(self) -> None:
        ranker = RelevanceRanker(current_year=2025)
        sources = [_article(str(i), f"Study {i}") for i in range(10)]

        result = ranker.rank("metformin", sources)

        input_keys = {s.identity_key for s in sources}
        assert {s.record.identity_key for s in result.ranked_sources} <= input_keys

    def test__rank__ties_keep_input_order(self) -> None:
        ranker = RelevanceRanker(current_year=2025)
        sources = [_article(str(i), "Same title") for i in range(4)]

        result = ranker.rank("unrelated question", sources)

        assert [s.record.identity_key for s in result.ranked_sources] == ["0", "1", "2", "3"]

    def test__rank__empty_input(self) -> None:
        result = RelevanceRanker().rank("metformin", [])

        assert result.ranked_sources == []
        assert result.top_sources == []
        assert result.average_relevance == 0.0

    def test__rank__unexpected_failure_raises_ranking_error(self) -> None:
        with pytest.raises(RankingError):
            RelevanceRanker().rank("metformin", [object()])  # type: ignore[list-item]
