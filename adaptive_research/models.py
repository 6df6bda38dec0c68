"""Pydantic models for the research engine."""

from enum import Enum
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, computed_field

# --- Inputs ---


class ConversationTurn(BaseModel):
    """A single message in a prior conversation."""

    model_config = ConfigDict(frozen=True)

    role: str = Field(description="Speaker role", examples=["user", "assistant"])
    content: str = Field(description="Message text")


class UserProfile(BaseModel):
    """Optional diabetes profile attached to a question."""

    model_config = ConfigDict(frozen=True)

    diabetes_type: str = Field(description="Diabetes type", examples=["Type 1", "LADA"])
    medications: list[str] = Field(default_factory=list, examples=[["Lantus", "Novorapid"]])


class Question(BaseModel):
    """Immutable research input."""

    model_config = ConfigDict(frozen=True)

    question: str = Field(min_length=1, max_length=2000, examples=["Metformin yan etkilerini araştır"])
    profile: UserProfile | None = None
    conversation_history: list[ConversationTurn] = Field(default_factory=list)


# --- Planning ---


class ResearchPlan(BaseModel):
    """Strategy proposed once by the planner; never mutated."""

    model_config = ConfigDict(frozen=True)

    strategy: str = Field(description="Overall research strategy", examples=["comprehensive"])
    focus_areas: list[str] = Field(default_factory=list, examples=[["safety", "efficacy"]])
    estimated_rounds: int = Field(ge=1, description="Rounds the planner expects to need", examples=[3])


# --- Evidence records ---


class ProviderName(str, Enum):
    """The four evidence providers. EXA is the primary (web) provider."""

    EXA = "exa"
    PUBMED = "pubmed"
    MEDRXIV = "medrxiv"
    CLINICAL_TRIALS = "clinicaltrials"


class _EvidenceBase(BaseModel):
    model_config = ConfigDict(frozen=True)

    url: str
    title: str = "Untitled"
    snippet: str = ""
    publish_date: str | None = None
    author: str | None = None


class WebPassage(_EvidenceBase):
    """Passage from a trusted medical website (identity: URL)."""

    provider: Literal["exa"] = "exa"
    domain: str = ""
    highlights: list[str] = Field(default_factory=list)

    @property
    def identity_key(self) -> str:
        return self.url


class JournalArticle(_EvidenceBase):
    """Peer-reviewed article (identity: PubMed id)."""

    provider: Literal["pubmed"] = "pubmed"
    pmid: str
    journal: str = ""
    authors: list[str] = Field(default_factory=list)
    doi: str | None = None

    @property
    def identity_key(self) -> str:
        return self.pmid


class Preprint(_EvidenceBase):
    """Medical preprint (identity: URL)."""

    provider: Literal["medrxiv"] = "medrxiv"
    doi: str | None = None
    authors: str = ""

    @property
    def identity_key(self) -> str:
        return self.url


class ClinicalTrial(_EvidenceBase):
    """Registered clinical trial (identity: NCT id)."""

    provider: Literal["clinicaltrials"] = "clinicaltrials"
    nct_id: str
    status: str | None = None
    sponsor: str | None = None

    @property
    def identity_key(self) -> str:
        return self.nct_id


EvidenceRecord = Annotated[
    Union[WebPassage, JournalArticle, Preprint, ClinicalTrial],
    Field(discriminator="provider"),
]


class ProviderSources(BaseModel):
    """Records grouped by provider."""

    exa: list[WebPassage] = Field(default_factory=list)
    pubmed: list[JournalArticle] = Field(default_factory=list)
    medrxiv: list[Preprint] = Field(default_factory=list)
    clinical_trials: list[ClinicalTrial] = Field(default_factory=list)

    @property
    def count(self) -> int:
        return len(self.exa) + len(self.pubmed) + len(self.medrxiv) + len(self.clinical_trials)

    def all_records(self) -> list[EvidenceRecord]:
        """Flatten in provider order: journal, preprint, trial, web."""
        return [*self.pubmed, *self.medrxiv, *self.clinical_trials, *self.exa]

    @classmethod
    def merge(cls, groups: list["ProviderSources"]) -> "ProviderSources":
        return cls(
            exa=[r for g in groups for r in g.exa],
            pubmed=[r for g in groups for r in g.pubmed],
            medrxiv=[r for g in groups for r in g.medrxiv],
            clinical_trials=[r for g in groups for r in g.clinical_trials],
        )


# --- Rounds ---


class EvidenceQuality(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class Reflection(BaseModel):
    """LLM assessment of the evidence gathered so far."""

    evidence_quality: EvidenceQuality = EvidenceQuality.MEDIUM
    gaps_identified: list[str] = Field(default_factory=list)
    should_continue: bool = False
    reasoning: str = ""


class RoundResult(BaseModel):
    """Outcome of one fetch round. Only ``reflection`` is attached after creation."""

    round_number: int = Field(ge=1)
    query: str
    sources: ProviderSources
    source_count: int = Field(ge=0)
    duration_ms: int = Field(ge=0)
    reflection: Reflection | None = None


class StoppingDecision(BaseModel):
    should_stop: bool
    reason: str


class SourceDistribution(BaseModel):
    """Per-round split of the non-primary budget."""

    category: str = "general"
    pubmed: int = Field(ge=0)
    medrxiv: int = Field(ge=0)
    clinical_trials: int = Field(ge=0)

    @property
    def total(self) -> int:
        return self.pubmed + self.medrxiv + self.clinical_trials


class RefinedQuery(BaseModel):
    original: str
    refined: str
    focus_area: str
    reasoning: str


# --- Ranking / selection ---


class RankedSource(BaseModel):
    """An accumulated record with its relevance to the original question."""

    record: EvidenceRecord
    relevance_score: int = Field(ge=0, le=100)
    reasoning: str = ""

    @property
    def source_type(self) -> ProviderName:
        return ProviderName(self.record.provider)


class RankingResult(BaseModel):
    ranked_sources: list[RankedSource]
    top_sources: list[RankedSource]
    total_sources: int = Field(ge=0)
    average_relevance: float = Field(ge=0)
    ranking_duration_ms: int = Field(ge=0)


class SelectionConfig(BaseModel):
    """Knobs for the top-P style selector."""

    base_limit: int = Field(default=25, ge=1)
    extended_limit: int = Field(default=30, ge=1)
    high_quality_threshold: int = Field(default=70, ge=0, le=100)
    token_budget: int = Field(default=16800, ge=0)
    min_relevance_score: int = Field(default=40, ge=0, le=100)
    semantic_similarity_threshold: float = Field(default=0.85, ge=0.0, le=1.0)
    enable_semantic_dedup: bool = True


class SelectedSource(RankedSource):
    """A ranked source formatted for synthesis."""

    citation: str
    summary: str
    credibility_badge: str
    estimated_tokens: int = Field(ge=0)


class QualityMetrics(BaseModel):
    average_relevance: float = 0.0
    min_relevance: int = 0
    max_relevance: int = 0
    high_quality_count: int = 0


class SelectionResult(BaseModel):
    selected_sources: list[SelectedSource]
    total_sources: int = Field(ge=0)
    deduplicated_count: int = Field(ge=0)
    total_tokens: int = Field(ge=0)
    strategy: Literal["base", "extended"]
    selection_strategy: str
    quality_metrics: QualityMetrics

    @computed_field  # type: ignore[prop-decorator]
    @property
    def selected_count(self) -> int:
        return len(self.selected_sources)


class RankingMetadata(BaseModel):
    average_relevance: float
    top_source_score: int
    ranking_duration_ms: int


class ResearchOutcome(BaseModel):
    """Aggregated result of a complete multi-round research run."""

    question: str
    plan: ResearchPlan
    rounds: list[RoundResult]
    total_sources: int = Field(ge=0)
    total_duration_ms: int = Field(ge=0)
    ranking: RankingMetadata
    selection: SelectionResult
    completeness_score: float = Field(ge=0.0, le=1.0)


# --- Routing ---


class Tier(int, Enum):
    RECALL = 0
    MODEL = 1
    HYBRID_RESEARCH = 2
    DEEP_RESEARCH = 3


class RouterClassification(BaseModel):
    tier: Tier
    reasoning: str
    confidence: float = Field(ge=0.0, le=1.0)
    explicit_deep_request: bool = False
    is_recall_request: bool = False
    search_terms: str | None = None


# --- Recall ---


class SessionMatch(BaseModel):
    """A past research session returned by the session store."""

    session_id: str
    title: str | None = None
    summary: str = ""
    key_topics: list[str] = Field(default_factory=list)
    created_at: str = Field(description="ISO-8601 timestamp", examples=["2025-03-05T10:00:00Z"])
    conversation_history: list[ConversationTurn] = Field(default_factory=list)
    relevance_score: float = Field(ge=0.0, le=1.0)


class SessionReference(BaseModel):
    session_id: str
    title: str
    date: str


class RecallCandidate(SessionReference):
    summary: str
    relevance_score: float


class RecallAnswer(BaseModel):
    kind: Literal["answer"] = "answer"
    answer: str
    session_reference: SessionReference


class RecallMultipleMatches(BaseModel):
    kind: Literal["multiple_matches"] = "multiple_matches"
    message: str
    candidates: list[RecallCandidate]


class RecallNoMatch(BaseModel):
    kind: Literal["no_match"] = "no_match"
    message: str
    suggestion: str


RecallResult = Annotated[
    Union[RecallAnswer, RecallMultipleMatches, RecallNoMatch],
    Field(discriminator="kind"),
]


# --- Assistant ---


class AssistantResponse(BaseModel):
    """What the assistant did with a question.

    Tier 1 carries only the classification; the model-only answer is produced
    by the caller.
    """

    classification: RouterClassification
    recall: RecallResult | None = None
    research: ResearchOutcome | None = None
