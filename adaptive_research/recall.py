"""Answering "what did we find last time?" questions from past sessions."""

from datetime import datetime
from typing import Any, Sequence

from pydantic_ai import Agent

from adaptive_research.agents import get_recall_agent
from adaptive_research.exceptions import RecallError
from adaptive_research.logging import get_logger
from adaptive_research.models import (
    ConversationTurn,
    RecallAnswer,
    RecallCandidate,
    RecallMultipleMatches,
    RecallNoMatch,
    RecallResult,
    SessionMatch,
    SessionReference,
)
from adaptive_research.providers.base import SessionStore

log = get_logger("adaptive_research.recall")

DEFAULT_SESSION_TITLE = "Araştırma Oturumu"
NO_MATCH_MESSAGE = "Bu konuda daha önce bir araştırma kaydı bulamadım. Şimdi araştırayım mı?"
NO_MATCH_SUGGESTION = "Yeni bir araştırma başlatmak için sorunu 'araştır' diyerek tekrar sorabilirsin."

TURKISH_MONTHS = (
    "Ocak", "Şubat", "Mart", "Nisan", "Mayıs", "Haziran",
    "Temmuz", "Ağustos", "Eylül", "Ekim", "Kasım", "Aralık",
)  # fmt: skip

_ROLE_LABELS = {"user": "Kullanıcı", "assistant": "Asistan"}


def format_recall_date(iso_timestamp: str) -> str:
    """ISO-8601 timestamp to Turkish "day month year"; unparsable input is returned as is."""
    try:
        parsed = datetime.fromisoformat(iso_timestamp.replace("Z", "+00:00"))
    except (ValueError, AttributeError):
        return iso_timestamp
    return f"{parsed.day} {TURKISH_MONTHS[parsed.month - 1]} {parsed.year}"


def format_transcript(turns: Sequence[ConversationTurn]) -> str:
    return "\n\n".join(f"{_ROLE_LABELS.get(t.role, t.role.capitalize())}: {t.content}" for t in turns)


def _multiple_matches(matches: Sequence[SessionMatch], limit: int) -> RecallMultipleMatches:
    candidates = [
        RecallCandidate(
            session_id=m.session_id,
            title=m.title or DEFAULT_SESSION_TITLE,
            date=format_recall_date(m.created_at),
            summary=m.summary,
            relevance_score=m.relevance_score,
        )
        for m in matches[:limit]
    ]
    listing = "\n\n".join(
        f"{i}. **{c.title}** - {c.date} (uygunluk: %{int(c.relevance_score * 100)})"
        for i, c in enumerate(candidates, start=1)
    )
    message = (
        "Bu konuda birkaç geçmiş araştırman var:\n\n"
        f"{listing}\n\n"
        "Hangisinden bahsediyorsun?"
    )
    return RecallMultipleMatches(message=message, candidates=candidates)


class RecallHandler:
    """Resolves a recall question against scored session matches.

    The model is only called when exactly one session is a clear winner.
    """

    def __init__(
        self,
        agent: Agent[Any, str] | None = None,
        *,
        ambiguity_gap: float = 0.15,
        max_candidates: int = 5,
    ) -> None:
        self._agent = agent
        self.ambiguity_gap = ambiguity_gap
        self.max_candidates = max_candidates

    @property
    def agent(self) -> Agent[Any, str]:
        return self._agent or get_recall_agent()

    async def recall(self, question: str, matched_sessions: Sequence[SessionMatch]) -> RecallResult:
        """Answer from the best session, ask which one was meant, or report no match.

        Raises:
            RecallError: When the answer cannot be generated for a clear match.
        """
        if not matched_sessions:
            log.info("recall.no_match")
            return RecallNoMatch(message=NO_MATCH_MESSAGE, suggestion=NO_MATCH_SUGGESTION)

        ranked = sorted(matched_sessions, key=lambda m: m.relevance_score, reverse=True)
        if len(ranked) > 1 and ranked[0].relevance_score - ranked[1].relevance_score < self.ambiguity_gap:
            log.info(
                "recall.ambiguous",
                matches=len(ranked),
                top_score=ranked[0].relevance_score,
                second_score=ranked[1].relevance_score,
            )
            return _multiple_matches(ranked, self.max_candidates)

        return await self._answer(question, ranked[0])

    async def _answer(self, question: str, session: SessionMatch) -> RecallAnswer:
        date = format_recall_date(session.created_at)
        title = session.title or DEFAULT_SESSION_TITLE
        prompt = (
            f"Past research session: {title} ({date})\n"
            f"Summary: {session.summary}\n\n"
            f"Transcript:\n{format_transcript(session.conversation_history)}\n\n"
            f"Follow-up question: {question}\n\n"
            "Answer strictly from the transcript above and mention the session date."
        )
        try:
            result = await self.agent.run(prompt)
        except Exception as e:
            log.error("recall.answer.failed", session_id=session.session_id, error=str(e))
            raise RecallError(session_id=session.session_id, reason=str(e)) from e

        answer = (result.output or "").strip()
        if not answer:
            raise RecallError(session_id=session.session_id, reason="empty answer")

        log.info("recall.answered", session_id=session.session_id)
        return RecallAnswer(
            answer=answer,
            session_reference=SessionReference(session_id=session.session_id, title=title, date=date),
        )

    async def answer_from_store(self, question: str, search_terms: str | None, store: SessionStore) -> RecallResult:
        """Look sessions up by the router's search terms and resolve them."""
        matches = await store.search(search_terms or question)
        log.info("recall.store.searched", terms=search_terms, matches=len(matches))
        return await self.recall(question, matches)
