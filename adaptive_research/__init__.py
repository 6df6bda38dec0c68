"""Adaptive Research - multi-round evidence gathering for a diabetes assistant"""

__version__ = "0.1.0"

from adaptive_research.agents import (
    clear_agent_cache,
    create_analyzer_agent,
    create_plan_agent,
    create_recall_agent,
    create_refinement_agent,
    create_reflection_agent,
    create_router_agent,
)
from adaptive_research.exceptions import (
    PlanningError,
    RankingError,
    RecallError,
    RefinementError,
    ReflectionError,
    ResearchPipelineError,
)
from adaptive_research.models import (
    Question,
    RecallAnswer,
    RecallMultipleMatches,
    RecallNoMatch,
    ResearchOutcome,
    ResearchPlan,
    RouterClassification,
    SelectionResult,
    Tier,
)
from adaptive_research.workflow import format_research_for_synthesis, run_research_workflow

__all__ = [
    # Models
    "Question",
    "ResearchPlan",
    "ResearchOutcome",
    "SelectionResult",
    "RouterClassification",
    "Tier",
    "RecallAnswer",
    "RecallMultipleMatches",
    "RecallNoMatch",
    # Agent factories
    "create_router_agent",
    "create_analyzer_agent",
    "create_plan_agent",
    "create_reflection_agent",
    "create_refinement_agent",
    "create_recall_agent",
    "clear_agent_cache",
    # Exceptions
    "ResearchPipelineError",
    "PlanningError",
    "ReflectionError",
    "RefinementError",
    "RankingError",
    "RecallError",
    # Workflow
    "run_research_workflow",
    "format_research_for_synthesis",
]
