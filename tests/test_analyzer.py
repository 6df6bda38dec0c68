"""Tests for query categorisation and budget splitting."""

from unittest.mock import AsyncMock

import pytest
from pydantic_ai import Agent
from pydantic_ai.models.test import TestModel

from adaptive_research.analyzer import QueryAnalyzer, calculate_source_counts, categorize_by_keywords


def _agent(output: str) -> Agent[None, str]:
    return Agent(TestModel(custom_output_text=output), output_type=str)


class TestCalculateSourceCounts:
    @pytest.mark.parametrize("budget", [0, 1, 2, 5, 10, 15, 17, 100])
    @pytest.mark.parametrize(
        "ratios",
        [(0.7, 0.1, 0.2), (0.5, 0.3, 0.2), (0.8, 0.15, 0.05), (1 / 3, 1 / 3, 1 / 3), (1.0, 0.0, 0.0), (2, 1, 1)],
    )
    def test__counts__sum_to_budget(self, ratios, budget: int) -> None:
        counts = calculate_source_counts(ratios, budget)
        assert sum(counts) == budget
        assert all(c >= 0 for c in counts)

    def test__remainder__ties_go_to_earlier_provider(self) -> None:
        # 0.7 * 15 = 10.5, 0.1 * 15 = 1.5, 0.2 * 15 = 3.0
        assert calculate_source_counts((0.7, 0.1, 0.2), 15) == (11, 1, 3)

    def test__even_split__extra_goes_to_pubmed(self) -> None:
        assert calculate_source_counts((1 / 3, 1 / 3, 1 / 3), 10) == (4, 3, 3)

    def test__unnormalised_ratios__are_scaled(self) -> None:
        assert calculate_source_counts((2, 1, 1), 8) == (4, 2, 2)

    def test__all_zero_ratios__fall_back_to_even_split(self) -> None:
        assert calculate_source_counts((0, 0, 0), 9) == (3, 3, 3)

    @pytest.mark.parametrize("ratios", [(float("inf"), 0.1, 0.2), (1e308, 1e308, 0.0), (float("nan"), 0.5, 0.5)])
    def test__non_finite_total__falls_back_to_even_split(self, ratios) -> None:
        assert calculate_source_counts(ratios, 15) == (5, 5, 5)


class TestCategorizeByKeywords:
    @pytest.mark.parametrize(
        "query,category",
        [
            ("Metformin yan etkileri nelerdir", "drug_safety"),
            ("latest research on beta cell regeneration", "new_research"),
            ("Diyabet için beslenme önerileri", "nutrition"),
            ("Tip 1 diyabet tedavi seçenekleri", "treatment"),
            ("HbA1c nedir", "general"),
        ],
    )
    def test__category__matches_keywords(self, query: str, category: str) -> None:
        assert categorize_by_keywords(query)[0] == category

    def test__first_match__wins(self) -> None:
        # mentions both a side effect and treatment
        assert categorize_by_keywords("treatment side effects")[0] == "drug_safety"


class TestQueryAnalyzer:
    @pytest.mark.asyncio
    async def test__model_ratios__drive_distribution(self) -> None:
        agent = _agent(
            '{"category": "new_research", "pubmed_ratio": 0.6, "medrxiv_ratio": 0.2, "clinical_trials_ratio": 0.2}'
        )

        distribution = await QueryAnalyzer(agent).analyze("yeni GLP-1 çalışmaları", 15)

        assert distribution.category == "new_research"
        assert (distribution.pubmed, distribution.medrxiv, distribution.clinical_trials) == (9, 3, 3)
        assert distribution.total == 15

    @pytest.mark.asyncio
    async def test__unparsable_output__falls_back_to_keywords(self) -> None:
        distribution = await QueryAnalyzer(_agent("I think PubMed mostly")).analyze("Metformin yan etkileri", 10)

        assert distribution.category == "drug_safety"
        assert (distribution.pubmed, distribution.medrxiv, distribution.clinical_trials) == (7, 1, 2)

    @pytest.mark.asyncio
    async def test__model_failure__falls_back_to_keywords(self) -> None:
        agent = _agent("unused")
        agent.run = AsyncMock(side_effect=RuntimeError("quota exceeded"))

        distribution = await QueryAnalyzer(agent).analyze("HbA1c nedir", 10)

        assert distribution.category == "general"
        assert distribution.total == 10

    @pytest.mark.asyncio
    async def test__zero_ratio_output__falls_back(self) -> None:
        agent = _agent('{"category": "x", "pubmed_ratio": 0, "medrxiv_ratio": 0, "clinical_trials_ratio": 0}')

        distribution = await QueryAnalyzer(agent).analyze("Diyabet ve beslenme", 10)

        assert distribution.category == "nutrition"
        assert distribution.total == 10

    @pytest.mark.asyncio
    async def test__empty_query__skips_model(self) -> None:
        agent = _agent("unused")
        agent.run = AsyncMock()

        distribution = await QueryAnalyzer(agent).analyze("   ", 9)

        agent.run.assert_not_called()
        assert distribution.total == 9

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "output",
        [
            '{"category": "x", "pubmed_ratio": 1e400, "medrxiv_ratio": 0.1, "clinical_trials_ratio": 0.1}',
            '{"category": "x", "pubmed_ratio": 1e308, "medrxiv_ratio": 1e308, "clinical_trials_ratio": 0.1}',
        ],
    )
    async def test__non_finite_ratios__fall_back_to_keywords(self, output: str) -> None:
        distribution = await QueryAnalyzer(_agent(output)).analyze("Metformin yan etkileri", 15)

        assert distribution.category == "drug_safety"
        assert distribution.total == 15
