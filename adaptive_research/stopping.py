"""Stop/continue policy evaluated after every reflected round."""

from typing import Sequence

from adaptive_research.logging import get_logger
from adaptive_research.models import EvidenceQuality, Reflection, RoundResult, StoppingDecision

log = get_logger("adaptive_research.stopping")

QUALITY_WEIGHTS = {
    EvidenceQuality.HIGH: 1.0,
    EvidenceQuality.MEDIUM: 0.6,
    EvidenceQuality.LOW: 0.3,
}


def _total_sources(round_result: RoundResult, history: Sequence[RoundResult]) -> int:
    earlier = sum(r.source_count for r in history if r.round_number != round_result.round_number)
    return earlier + round_result.source_count


def should_reflect(round_number: int, max_rounds: int) -> bool:
    """The final permitted round is never reflected on."""
    return round_number < max_rounds


class StoppingConditionEvaluator:
    """Ordered rules; the first one that matches decides."""

    def __init__(self, *, min_total_sources: int = 15, target_total_sources: int = 30) -> None:
        self.min_total_sources = min_total_sources
        self.target_total_sources = target_total_sources

    def evaluate(
        self,
        round_number: int,
        max_rounds: int,
        round_result: RoundResult,
        history: Sequence[RoundResult],
        reflection: Reflection,
    ) -> StoppingDecision:
        total = _total_sources(round_result, history)

        if round_number >= max_rounds:
            decision = StoppingDecision(should_stop=True, reason="max rounds reached")
        elif round_result.source_count == 0:
            decision = StoppingDecision(should_stop=True, reason="no new sources (diminishing returns)")
        elif total >= self.target_total_sources:
            decision = StoppingDecision(should_stop=True, reason="source target reached")
        elif (
            reflection.evidence_quality == EvidenceQuality.HIGH
            and not reflection.gaps_identified
            and total >= self.min_total_sources
        ):
            decision = StoppingDecision(should_stop=True, reason="evidence sufficient")
        elif not reflection.should_continue:
            decision = StoppingDecision(should_stop=True, reason="reflection recommends stopping")
        else:
            decision = StoppingDecision(should_stop=False, reason="continuing research")

        log.info(
            "stopping.evaluated",
            round=round_number,
            total_sources=total,
            should_stop=decision.should_stop,
            reason=decision.reason,
        )
        return decision

    def calculate_completeness_score(
        self, rounds: Sequence[RoundResult], last_reflection: Reflection | None
    ) -> float:
        """Score in [0, 1]: source volume 50%, evidence quality 30%, gap coverage 20%."""
        total = sum(r.source_count for r in rounds)
        volume = min(total / self.target_total_sources, 1.0)

        if last_reflection is None:
            quality, gap_coverage = QUALITY_WEIGHTS[EvidenceQuality.MEDIUM], 0.5
        else:
            quality = QUALITY_WEIGHTS[last_reflection.evidence_quality]
            gap_coverage = max(0.0, 1.0 - 0.2 * len(last_reflection.gaps_identified))

        return round(0.5 * volume + 0.3 * quality + 0.2 * gap_coverage, 2)
