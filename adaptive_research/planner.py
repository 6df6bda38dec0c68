"""Research planning phase: one LLM call producing the run's strategy."""

from time import perf_counter
from typing import Any

from pydantic import BaseModel, Field
from pydantic_ai import Agent

from adaptive_research.agents import get_plan_agent
from adaptive_research.exceptions import PlanningError
from adaptive_research.logging import get_logger
from adaptive_research.models import Question, ResearchPlan
from adaptive_research.parsing import parse_json_output

log = get_logger("adaptive_research.planner")

DEFAULT_STRATEGY = "comprehensive"


class _PlanOutput(BaseModel):
    strategy: str = DEFAULT_STRATEGY
    focus_areas: list[str] = Field(default_factory=list)
    estimated_rounds: int


def _build_prompt(question: Question) -> str:
    lines = [f"Research question: {question.question}"]
    if question.profile:
        lines.append(f"Diabetes type: {question.profile.diabetes_type}")
        if question.profile.medications:
            lines.append(f"Medications: {', '.join(question.profile.medications)}")
    lines.append("\nPlan the research and return JSON.")
    return "\n".join(lines)


class ResearchPlanner:
    def __init__(self, agent: Agent[Any, str] | None = None, *, default_estimated_rounds: int = 3) -> None:
        self._agent = agent
        self.default_estimated_rounds = max(1, default_estimated_rounds)

    @property
    def agent(self) -> Agent[Any, str]:
        return self._agent or get_plan_agent()

    def default_plan(self) -> ResearchPlan:
        return ResearchPlan(
            strategy=DEFAULT_STRATEGY,
            focus_areas=[],
            estimated_rounds=self.default_estimated_rounds,
        )

    async def plan(self, question: Question) -> ResearchPlan:
        """Create the plan for a run.

        Raises:
            PlanningError: When the model call fails. Unparsable output is not
                an error; the default plan is used instead.
        """
        start = perf_counter()
        try:
            result = await self.agent.run(_build_prompt(question))
        except Exception as e:
            log.error("planner.failed", error=str(e))
            raise PlanningError(topic=question.question, reason=str(e)) from e

        parsed = parse_json_output(result.output, _PlanOutput)
        if parsed is None:
            log.warning("planner.fallback.used")
            plan = self.default_plan()
        else:
            plan = ResearchPlan(
                strategy=parsed.strategy or DEFAULT_STRATEGY,
                focus_areas=parsed.focus_areas,
                estimated_rounds=max(1, parsed.estimated_rounds),
            )

        log.info(
            "planner.completed",
            duration_ms=int((perf_counter() - start) * 1000),
            strategy=plan.strategy,
            estimated_rounds=plan.estimated_rounds,
        )
        return plan
