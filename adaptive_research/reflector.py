"""Evidence-quality reflection after each research round."""

from time import perf_counter
from typing import Any, Sequence
from urllib.parse import urlparse

from pydantic import BaseModel, Field
from pydantic_ai import Agent

from adaptive_research.agents import get_reflection_agent
from adaptive_research.exceptions import ReflectionError
from adaptive_research.logging import get_logger
from adaptive_research.models import EvidenceQuality, Reflection, RoundResult
from adaptive_research.parsing import parse_json_output

log = get_logger("adaptive_research.reflector")

SOURCE_SAMPLE_SIZE = 15


class _ReflectionOutput(BaseModel):
    # kept as str so an unknown quality degrades to medium instead of failing the parse
    evidence_quality: str = "medium"
    gaps_identified: list[str] = Field(default_factory=list)
    should_continue: bool = False
    reasoning: str = ""


def _rounds_summary(rounds: Sequence[RoundResult]) -> str:
    return "\n".join(
        f"Round {r.round_number}: {r.source_count} sources (PubMed: {len(r.sources.pubmed)}, "
        f"medRxiv: {len(r.sources.medrxiv)}, Trials: {len(r.sources.clinical_trials)}, "
        f"Web: {len(r.sources.exa)})"
        for r in rounds
    )


def _source_sample(rounds: Sequence[RoundResult]) -> str:
    lines: list[str] = []
    for r in rounds:
        lines += [f'PubMed: "{a.title}" (PMID: {a.pmid})' for a in r.sources.pubmed]
        lines += [f'medRxiv: "{p.title}" ({p.doi or "preprint"})' for p in r.sources.medrxiv]
        lines += [f'Trial: "{t.title}" ({t.status or "unknown status"})' for t in r.sources.clinical_trials]
        lines += [f'Web: "{w.title}" ({w.domain or urlparse(w.url).hostname})' for w in r.sources.exa]
    return "\n".join(lines[:SOURCE_SAMPLE_SIZE])


class Reflector:
    """Asks the model whether the evidence so far is sufficient, then applies
    deterministic overrides on top of its answer."""

    def __init__(
        self,
        agent: Agent[Any, str] | None = None,
        *,
        round_one_min_sources: int = 20,
        min_total_sources: int = 15,
    ) -> None:
        self._agent = agent
        self.round_one_min_sources = round_one_min_sources
        self.min_total_sources = min_total_sources

    @property
    def agent(self) -> Agent[Any, str]:
        return self._agent or get_reflection_agent()

    async def reflect(
        self,
        question: str,
        round_result: RoundResult,
        previous_rounds: Sequence[RoundResult],
        max_rounds: int,
    ) -> Reflection:
        """Reflect on ``round_result`` in the context of the earlier rounds.

        Raises:
            ReflectionError: When the model call fails.
        """
        round_number = round_result.round_number
        all_rounds = [*previous_rounds, round_result]
        total_sources = sum(r.source_count for r in all_rounds)

        prompt = (
            f"Evaluate research quality for Round {round_number}/{max_rounds}:\n\n"
            f'Query: "{question}"\n\n'
            f"{_rounds_summary(all_rounds)}\n\n"
            f"Sample sources found (first {SOURCE_SAMPLE_SIZE}):\n{_source_sample(all_rounds)}\n\n"
            f"Total sources collected: {total_sources}\n"
            f"Minimum threshold: {self.min_total_sources} sources\n"
            f"Round 1 needs at least {self.round_one_min_sources} sources before stopping."
        )

        start = perf_counter()
        try:
            result = await self.agent.run(prompt)
        except Exception as e:
            log.error("reflector.failed", round=round_number, error=str(e))
            raise ReflectionError(round_number=round_number, reason=str(e)) from e

        parsed = parse_json_output(result.output, _ReflectionOutput)
        if parsed is None:
            parsed = _ReflectionOutput(
                evidence_quality="medium",
                gaps_identified=["Unable to evaluate specific gaps"],
                should_continue=round_number < max_rounds and total_sources < self.min_total_sources,
                reasoning="Reflection output could not be parsed; continuing while under the source minimum.",
            )

        reflection = self._apply_overrides(parsed, round_result, total_sources, max_rounds)
        log.info(
            "reflector.completed",
            round=round_number,
            duration_ms=int((perf_counter() - start) * 1000),
            quality=reflection.evidence_quality.value,
            should_continue=reflection.should_continue,
            gaps=len(reflection.gaps_identified),
        )
        return reflection

    def _apply_overrides(
        self,
        output: _ReflectionOutput,
        round_result: RoundResult,
        total_sources: int,
        max_rounds: int,
    ) -> Reflection:
        round_number = round_result.round_number
        try:
            quality = EvidenceQuality(output.evidence_quality.strip().lower())
        except ValueError:
            quality = EvidenceQuality.MEDIUM

        should_continue = output.should_continue
        reasoning = output.reasoning

        if round_number >= max_rounds:
            should_continue = False
            reasoning += f" (Max rounds {max_rounds} reached)"

        if round_result.source_count == 0:
            should_continue = False
            reasoning += " (No new sources found)"

        if round_number == 1 and total_sources < self.round_one_min_sources and round_number < max_rounds:
            should_continue = True
            reasoning = f"Round 1 with only {total_sources} sources, continuing. {reasoning}"
            log.info("reflector.override.round_one", total_sources=total_sources)

        if total_sources < self.min_total_sources and round_number < max_rounds and round_result.source_count > 0:
            should_continue = True
            reasoning = f"Only {total_sources} sources collected, below minimum {self.min_total_sources}. {reasoning}"
            log.info("reflector.override.minimum", total_sources=total_sources)

        return Reflection(
            evidence_quality=quality,
            gaps_identified=output.gaps_identified,
            should_continue=should_continue,
            reasoning=reasoning.strip(),
        )
