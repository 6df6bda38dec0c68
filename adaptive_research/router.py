"""Tier routing: recall detection, LLM classification, deterministic guardrails."""

import re
from dataclasses import dataclass
from typing import Any, Sequence

from pydantic import BaseModel, Field, ValidationError
from pydantic_ai import Agent

from adaptive_research.agents import get_router_agent
from adaptive_research.logging import get_logger
from adaptive_research.models import ConversationTurn, RouterClassification, Tier, UserProfile
from adaptive_research.parsing import parse_json_output

log = get_logger("adaptive_research.router")

RECALL_REASONING = "Kullanıcı geçmiş bir araştırmayı hatırlamaya çalışıyor"
FALLBACK_CONFIDENCE = 0.5


@dataclass(frozen=True)
class PatternRule:
    """A named group of regexes; any match counts."""

    name: str
    patterns: tuple[re.Pattern[str], ...]

    def matches(self, text: str) -> bool:
        return any(p.search(text) for p in self.patterns)


def _rule(name: str, *patterns: str) -> PatternRule:
    return PatternRule(name, tuple(re.compile(p, re.IGNORECASE) for p in patterns))


RECALL_RULES: tuple[PatternRule, ...] = (
    _rule(
        "past_tense",
        r"neydi", r"ne\s+konuşmuştuk", r"ne\s+araştırmıştık", r"ne\s+bulmuştuk",
        r"ne\s+öğrenmiştik", r"ne\s+demiştik", r"ne\s+çıkmıştı", r"nasıldı",
    ),
    _rule(
        "memory_phrase",
        r"hatırlıyor\s+musun", r"hatırla", r"hatırlat\s+bana", r"hatırlamıyorum",
        r"daha\s+önce", r"geçen\s+sefer", r"o\s+zaman", r"geçenlerde",
    ),
    _rule(
        "demonstrative_reference",
        r"o\s+şey", r"şu\s+konu", r"o\s+araştırma", r"o\s+bilgi", r"şu\s+.*\s+ile\s+ilgili\s+olan",
    ),
)  # fmt: skip

# longest phrases first so "hatırlıyor musun" goes before "hatırla"
FILLER_WORDS: tuple[str, ...] = (
    "hatırlıyor musun", "daha önce", "o zaman", "o şey", "hatırlat",
    "hatırla", "nasıldı", "neydi", "geçen", "şu",
)  # fmt: skip

_FILLER_RE = re.compile(
    r"(?<!\w)(?:" + "|".join(re.escape(f).replace(r"\ ", r"\s+") for f in FILLER_WORDS) + r")(?!\w)",
    re.IGNORECASE,
)
_WHITESPACE_RE = re.compile(r"\s+")


def matched_recall_rule(question: str) -> str | None:
    """Name of the first recall rule matching ``question``, if any."""
    for rule in RECALL_RULES:
        if rule.matches(question):
            return rule.name
    return None


def extract_search_terms(question: str) -> str:
    """Strip recall filler phrases and collapse whitespace."""
    return _WHITESPACE_RE.sub(" ", _FILLER_RE.sub(" ", question)).strip()


class _RouterOutput(BaseModel):
    tier: int
    reasoning: str = ""
    confidence: float = Field(default=FALLBACK_CONFIDENCE, allow_inf_nan=False)


def _build_prompt(
    question: str, profile: UserProfile | None, history: Sequence[ConversationTurn] | None
) -> str:
    prompt = f'Question: "{question}"'
    if profile:
        prompt += f"\n\nUser Context:\n- Diabetes Type: {profile.diabetes_type}"
        if profile.medications:
            prompt += f"\n- Medications: {', '.join(profile.medications)}"
    last_user_turn = next((t for t in reversed(history or []) if t.role == "user"), None)
    if last_user_turn:
        prompt += f'\n\nPrevious Question: "{last_user_turn.content}"'
    return prompt + "\n\nClassify this question and respond with JSON."


def _fallback_classification() -> RouterClassification:
    return RouterClassification(
        tier=Tier.MODEL,
        reasoning="Classification failed, defaulting to MODEL tier",
        confidence=FALLBACK_CONFIDENCE,
    )


class TierRouter:
    """Decides which tier answers a question. Never raises."""

    def __init__(
        self,
        agent: Agent[Any, str] | None = None,
        *,
        deep_research_enabled: bool = False,
        research_trigger_pattern: str = "araştır",
    ) -> None:
        self._agent = agent
        self.deep_research_enabled = deep_research_enabled
        self.research_trigger = re.compile(research_trigger_pattern, re.IGNORECASE)

    @property
    def agent(self) -> Agent[Any, str]:
        return self._agent or get_router_agent()

    async def classify(
        self,
        question: str,
        profile: UserProfile | None = None,
        history: Sequence[ConversationTurn] | None = None,
    ) -> RouterClassification:
        rule = matched_recall_rule(question)
        if rule is not None:
            search_terms = extract_search_terms(question)
            log.info("router.recall.detected", rule=rule, search_terms=search_terms)
            return RouterClassification(
                tier=Tier.RECALL,
                reasoning=RECALL_REASONING,
                confidence=1.0,
                is_recall_request=True,
                search_terms=search_terms,
            )

        try:
            result = await self.agent.run(_build_prompt(question, profile, history))
            parsed = parse_json_output(result.output, _RouterOutput)
        except Exception as e:
            log.warning("router.model.failed", error=str(e))
            parsed = None

        if parsed is None:
            return _fallback_classification()

        try:
            classification = self._apply_guardrails(question, parsed)
        except ValidationError as e:
            log.warning("router.guardrails.failed", error=str(e))
            return _fallback_classification()

        log.info(
            "router.classified",
            tier=classification.tier.value,
            confidence=classification.confidence,
            explicit_deep_request=classification.explicit_deep_request,
        )
        return classification

    def _apply_guardrails(self, question: str, output: _RouterOutput) -> RouterClassification:
        tier = output.tier
        explicit_deep_request = False

        if tier not in (Tier.MODEL, Tier.HYBRID_RESEARCH, Tier.DEEP_RESEARCH):
            log.warning("router.tier.invalid", tier=tier)
            tier = Tier.MODEL

        if tier == Tier.DEEP_RESEARCH:
            if self.deep_research_enabled:
                explicit_deep_request = True
            else:
                log.info("router.tier.downgraded", from_tier=3, to_tier=2, reason="deep research disabled")
                tier = Tier.HYBRID_RESEARCH

        if tier == Tier.HYBRID_RESEARCH and not self.research_trigger.search(question):
            log.info("router.tier.downgraded", from_tier=2, to_tier=1, reason="no research keyword")
            tier = Tier.MODEL

        return RouterClassification(
            tier=Tier(tier),
            reasoning=output.reasoning,
            confidence=min(max(output.confidence, 0.0), 1.0),
            explicit_deep_request=explicit_deep_request,
        )
