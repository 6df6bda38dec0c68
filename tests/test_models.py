"""Tests for research engine Pydantic models."""

import pytest
from pydantic import TypeAdapter, ValidationError

from adaptive_research.models import (
    ClinicalTrial,
    EvidenceRecord,
    JournalArticle,
    Preprint,
    ProviderSources,
    QualityMetrics,
    Question,
    RecallNoMatch,
    RecallResult,
    ResearchPlan,
    SelectionConfig,
    SelectionResult,
    SessionMatch,
    SourceDistribution,
    Tier,
    WebPassage,
)


def _sources() -> ProviderSources:
    return ProviderSources(
        exa=[WebPassage(url="https://www.mayoclinic.org/a", title="Web")],
        pubmed=[JournalArticle(pmid="111", url="https://pubmed.ncbi.nlm.nih.gov/111/", title="Article")],
        medrxiv=[Preprint(url="https://www.medrxiv.org/content/10.1/x", title="Preprint")],
        clinical_trials=[ClinicalTrial(nct_id="NCT01", url="https://clinicaltrials.gov/study/NCT01", title="Trial")],
    )


class TestQuestion:
    def test__valid_creation__succeeds(self) -> None:
        question = Question(question="Metformin yan etkilerini araştır")
        assert question.profile is None
        assert question.conversation_history == []

    def test__empty_question__raises_validation_error(self) -> None:
        with pytest.raises(ValidationError):
            Question(question="")

    def test__question_too_long__raises_validation_error(self) -> None:
        with pytest.raises(ValidationError):
            Question(question="x" * 2001)

    def test__question__is_immutable(self) -> None:
        question = Question(question="test")
        with pytest.raises(ValidationError):
            question.question = "changed"  # type: ignore[misc]


class TestResearchPlan:
    def test__zero_rounds__raises_validation_error(self) -> None:
        with pytest.raises(ValidationError):
            ResearchPlan(strategy="comprehensive", estimated_rounds=0)

    def test__focus_areas__default_to_empty(self) -> None:
        plan = ResearchPlan(strategy="comprehensive", estimated_rounds=2)
        assert plan.focus_areas == []


class TestEvidenceRecords:
    def test__identity_keys__follow_provider_identity(self) -> None:
        sources = _sources()
        assert sources.exa[0].identity_key == "https://www.mayoclinic.org/a"
        assert sources.pubmed[0].identity_key == "111"
        assert sources.medrxiv[0].identity_key == "https://www.medrxiv.org/content/10.1/x"
        assert sources.clinical_trials[0].identity_key == "NCT01"

    def test__discriminator__restores_concrete_type(self) -> None:
        adapter = TypeAdapter(EvidenceRecord)
        record = adapter.validate_python({"provider": "clinicaltrials", "nct_id": "NCT9", "url": "https://x"})
        assert isinstance(record, ClinicalTrial)

    def test__unknown_provider__raises_validation_error(self) -> None:
        with pytest.raises(ValidationError):
            TypeAdapter(EvidenceRecord).validate_python({"provider": "scholar", "url": "https://x"})


class TestProviderSources:
    def test__count__sums_all_providers(self) -> None:
        assert _sources().count == 4

    def test__all_records__orders_journal_preprint_trial_web(self) -> None:
        providers = [r.provider for r in _sources().all_records()]
        assert providers == ["pubmed", "medrxiv", "clinicaltrials", "exa"]

    def test__merge__concatenates_in_round_order(self) -> None:
        second = ProviderSources(pubmed=[JournalArticle(pmid="222", url="https://pubmed.ncbi.nlm.nih.gov/222/")])
        merged = ProviderSources.merge([_sources(), second])
        assert [a.pmid for a in merged.pubmed] == ["111", "222"]
        assert merged.count == 5


class TestSourceDistribution:
    def test__total__sums_counts(self) -> None:
        assert SourceDistribution(pubmed=8, medrxiv=3, clinical_trials=4).total == 15

    def test__negative_count__raises_validation_error(self) -> None:
        with pytest.raises(ValidationError):
            SourceDistribution(pubmed=-1, medrxiv=0, clinical_trials=0)


class TestSelection:
    def test__selection_config__defaults(self) -> None:
        config = SelectionConfig()
        assert config.base_limit == 25
        assert config.extended_limit == 30
        assert config.high_quality_threshold == 70
        assert config.token_budget == 16800
        assert config.min_relevance_score == 40
        assert config.semantic_similarity_threshold == 0.85

    def test__selected_count__is_serialized(self) -> None:
        result = SelectionResult(
            selected_sources=[],
            total_sources=0,
            deduplicated_count=0,
            total_tokens=0,
            strategy="base",
            selection_strategy="Included all sources (below limit)",
            quality_metrics=QualityMetrics(),
        )
        assert result.model_dump()["selected_count"] == 0


class TestRouting:
    def test__tier__values(self) -> None:
        assert [t.value for t in Tier] == [0, 1, 2, 3]

    def test__session_match__rejects_score_above_one(self) -> None:
        with pytest.raises(ValidationError):
            SessionMatch(session_id="s", created_at="2025-03-05T10:00:00Z", relevance_score=1.5)

    def test__recall_result__discriminates_on_kind(self) -> None:
        result = TypeAdapter(RecallResult).validate_python({"kind": "no_match", "message": "m", "suggestion": "s"})
        assert isinstance(result, RecallNoMatch)
