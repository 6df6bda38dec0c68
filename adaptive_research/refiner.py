"""Gap-driven query refinement between rounds."""

from typing import Any, Sequence

from pydantic import BaseModel
from pydantic_ai import Agent

from adaptive_research.agents import get_refinement_agent
from adaptive_research.exceptions import RefinementError
from adaptive_research.logging import get_logger
from adaptive_research.models import RefinedQuery
from adaptive_research.parsing import parse_json_output

log = get_logger("adaptive_research.refiner")

MAX_QUERY_LENGTH = 200


class _RefinementOutput(BaseModel):
    refined: str = ""
    focus_area: str = ""
    reasoning: str = ""


def truncate_query(query: str, limit: int = MAX_QUERY_LENGTH) -> str:
    if len(query) <= limit:
        return query
    return query[: limit - 3] + "..."


class QueryRefiner:
    def __init__(self, agent: Agent[Any, str] | None = None) -> None:
        self._agent = agent

    @property
    def agent(self) -> Agent[Any, str]:
        return self._agent or get_refinement_agent()

    async def refine(self, original_question: str, gaps: Sequence[str], next_round: int) -> RefinedQuery:
        """Rewrite the question to target ``gaps`` for round ``next_round``.

        Raises:
            RefinementError: When the model call fails.
        """
        if not gaps:
            return RefinedQuery(
                original=original_question,
                refined=original_question,
                focus_area="general evidence",
                reasoning="No specific gaps to address",
            )

        primary_gap = gaps[0]
        numbered = "\n".join(f"{i}. {gap}" for i, gap in enumerate(gaps, start=1))
        prompt = (
            "Refine this medical research query to address knowledge gaps:\n\n"
            f'Original query: "{original_question}"\n\n'
            f"Knowledge gaps identified:\n{numbered}\n\n"
            f'Primary gap to address: "{primary_gap}"'
        )

        try:
            result = await self.agent.run(prompt)
        except Exception as e:
            log.error("refiner.failed", round=next_round, error=str(e))
            raise RefinementError(round_number=next_round, reason=str(e)) from e

        parsed = parse_json_output(result.output, _RefinementOutput)
        if parsed is None:
            parsed = _RefinementOutput(
                refined=f"{original_question} {primary_gap}",
                focus_area=primary_gap,
                reasoning="Unparsable refinement, appending the primary gap to the original query",
            )

        refined = RefinedQuery(
            original=original_question,
            refined=truncate_query(parsed.refined.strip() or original_question),
            focus_area=parsed.focus_area or primary_gap,
            reasoning=parsed.reasoning or "Query refinement for identified gaps",
        )
        log.info("refiner.completed", round=next_round, refined=refined.refined, focus=refined.focus_area)
        return refined
