"""PydanticAI agents for the research engine.

Every agent returns raw text; JSON-shaped replies are validated separately by
``adaptive_research.parsing`` so a malformed reply can fall back instead of
failing the run.
"""

from functools import lru_cache
from typing import Any

from pydantic_ai import Agent
from pydantic_ai.settings import ModelSettings

from adaptive_research.config import get_settings


def create_router_agent(model: Any) -> Agent[None, str]:
    """Uncached factory - use with TestModel for tests."""
    return Agent(
        model,
        instructions="""You route questions for a diabetes support assistant.
        Tier 1 (MODEL) is the default: definitions, recipes, lifestyle tips and
        general diabetes education answered from model knowledge.
        Tier 2 (HYBRID RESEARCH) only when the user explicitly asks to research
        ("araştır") or to verify something with current sources.
        Tier 3 (DEEP RESEARCH) only for explicit requests for in-depth research.
        Respond with ONLY JSON: {"tier": 1, "reasoning": "...", "confidence": 0.0}""",
        output_type=str,
        model_settings=ModelSettings(temperature=0.1, max_tokens=256),
        instrument=True,
        name="router_agent",
    )


def create_analyzer_agent(model: Any) -> Agent[None, str]:
    """Uncached factory - use with TestModel for tests."""
    return Agent(
        model,
        instructions="""You categorize medical research queries and decide how to
        split a source budget across PubMed (peer-reviewed literature), medRxiv
        (preprints, newest findings) and ClinicalTrials.gov (registered trials).
        Categories: drug_safety, new_research, treatment, nutrition, general.
        Drug safety and nutrition lean heavily on PubMed, new research on medRxiv,
        active trials on ClinicalTrials.gov.
        Respond with ONLY JSON: {"category": "...", "pubmed_ratio": 0.0,
        "medrxiv_ratio": 0.0, "clinical_trials_ratio": 0.0}. Ratios sum to 1.0.""",
        output_type=str,
        model_settings=ModelSettings(temperature=0.1, max_tokens=256),
        instrument=True,
        name="analyzer_agent",
    )


def create_plan_agent(model: Any) -> Agent[None, str]:
    """Uncached factory - use with TestModel for tests."""
    return Agent(
        model,
        instructions="""You plan multi-round medical research for a diabetes app.
        Propose a strategy, the ordered focus areas to cover and how many search
        rounds (1-4) the question needs. Simple factual questions need 1-2 rounds,
        contested or safety-critical questions 3-4.
        Respond with ONLY JSON: {"strategy": "...", "focus_areas": ["..."],
        "estimated_rounds": 3}""",
        output_type=str,
        model_settings=ModelSettings(temperature=0.3, max_tokens=1024),
        instrument=True,
        name="plan_agent",
    )


def create_reflection_agent(model: Any) -> Agent[None, str]:
    """Uncached factory - use with TestModel for tests."""
    return Agent(
        model,
        instructions="""You evaluate the evidence gathered by a medical research
        round for a diabetes support app and decide whether another round is needed.
        Evidence quality: "high" for multiple peer-reviewed studies and trials,
        "medium" for partial peer-reviewed coverage, "low" for mostly general web
        sources. Focusing on diabetes-specific aspects is expected, never a gap.
        List concrete knowledge gaps (missing safety data, no recent studies, no
        trial data, ...).
        Respond with ONLY JSON: {"evidence_quality": "low|medium|high",
        "gaps_identified": ["..."], "should_continue": true, "reasoning": "..."}""",
        output_type=str,
        model_settings=ModelSettings(temperature=0.2, max_tokens=4096),
        instrument=True,
        name="reflection_agent",
    )


def create_refinement_agent(model: Any) -> Agent[None, str]:
    """Uncached factory - use with TestModel for tests."""
    return Agent(
        model,
        instructions="""You rewrite medical search queries to target knowledge gaps
        while keeping the original intent. Add temporal constraints, study-design
        terms (randomized controlled trial, meta-analysis) or gap-specific terms.
        Respond with ONLY JSON: {"refined": "...", "focus_area": "...", "reasoning": "..."}""",
        output_type=str,
        model_settings=ModelSettings(temperature=0.8, max_tokens=512),
        instrument=True,
        name="refinement_agent",
    )


def create_recall_agent(model: Any) -> Agent[None, str]:
    """Uncached factory - use with TestModel for tests."""
    return Agent(
        model,
        instructions="""You answer a follow-up question using ONLY the transcript of a
        past research session. Do not add outside knowledge. If the transcript does
        not contain the answer, say so. Mention the date of the session. Answer in
        the language of the question.""",
        output_type=str,
        model_settings=ModelSettings(temperature=0.2, max_tokens=2048),
        instrument=True,
        name="recall_agent",
    )


@lru_cache(maxsize=1)
def get_router_agent() -> Agent[None, str]:
    """Cached getter for production."""
    return create_router_agent(get_settings().router_model)


@lru_cache(maxsize=1)
def get_analyzer_agent() -> Agent[None, str]:
    return create_analyzer_agent(get_settings().analyzer_model)


@lru_cache(maxsize=1)
def get_plan_agent() -> Agent[None, str]:
    return create_plan_agent(get_settings().plan_model)


@lru_cache(maxsize=1)
def get_reflection_agent() -> Agent[None, str]:
    return create_reflection_agent(get_settings().reflection_model)


@lru_cache(maxsize=1)
def get_refinement_agent() -> Agent[None, str]:
    return create_refinement_agent(get_settings().refinement_model)


@lru_cache(maxsize=1)
def get_recall_agent() -> Agent[None, str]:
    return create_recall_agent(get_settings().recall_model)


def clear_agent_cache() -> None:
    """Clear all agent caches."""
    get_router_agent.cache_clear()
    get_analyzer_agent.cache_clear()
    get_plan_agent.cache_clear()
    get_reflection_agent.cache_clear()
    get_refinement_agent.cache_clear()
    get_recall_agent.cache_clear()
