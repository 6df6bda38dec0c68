"""Runtime configuration loaded from environment variables (prefix ``RESEARCH_``)."""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ResearchSettings(BaseSettings):
    """Engine settings.

    The numeric thresholds below carry over from the production pipeline. They
    have no documented derivation, so they are kept as tunables rather than
    hard-coded in the components.
    """

    model_config = SettingsConfigDict(env_prefix="RESEARCH_", env_file=".env", extra="ignore")

    # --- Models (pydantic-ai model identifiers) ---
    router_model: str = "google-gla:gemini-2.5-flash-lite"
    analyzer_model: str = "google-gla:gemini-2.5-flash-lite"
    plan_model: str = "google-gla:gemini-2.5-flash"
    reflection_model: str = "google-gla:gemini-2.5-flash"
    refinement_model: str = "google-gla:gemini-2.5-flash"
    recall_model: str = "google-gla:gemini-2.5-flash"

    # --- Provider adapters ---
    exa_api_key: str = ""
    pubmed_api_key: str = ""
    exa_timeout_s: float = Field(default=10.0, gt=0)
    pubmed_timeout_s: float = Field(default=3.0, gt=0)
    medrxiv_timeout_s: float = Field(default=3.0, gt=0)
    clinical_trials_timeout_s: float = Field(default=3.0, gt=0)

    # --- Rounds ---
    max_rounds: int = Field(default=4, ge=1)
    first_round_primary_count: int = Field(default=10, ge=0)
    first_round_api_count: int = Field(default=15, ge=0)
    followup_round_primary_count: int = Field(default=5, ge=0)
    followup_round_api_count: int = Field(default=10, ge=0)
    default_estimated_rounds: int = Field(default=3, ge=1)

    # --- Reflection / stopping ---
    round_one_min_sources: int = Field(default=20, ge=0)
    min_total_sources: int = Field(default=15, ge=0)
    target_total_sources: int = Field(default=30, ge=1)

    # --- Ranking / selection ---
    ranking_top_n: int = Field(default=30, ge=1)
    selection_base_limit: int = Field(default=25, ge=1)
    selection_extended_limit: int = Field(default=30, ge=1)
    selection_high_quality_threshold: int = Field(default=70, ge=0, le=100)
    selection_token_budget: int = Field(default=16800, ge=0)
    selection_min_relevance_score: int = Field(default=40, ge=0, le=100)
    selection_similarity_threshold: float = Field(default=0.85, ge=0.0, le=1.0)
    selection_semantic_dedup: bool = True

    # --- Router / recall ---
    research_trigger_pattern: str = "araştır"
    deep_research_enabled: bool = False
    recall_ambiguity_gap: float = Field(default=0.15, ge=0.0, le=1.0)
    recall_max_candidates: int = Field(default=5, ge=1)


@lru_cache(maxsize=1)
def get_settings() -> ResearchSettings:
    """Cached settings for production wiring."""
    return ResearchSettings()
