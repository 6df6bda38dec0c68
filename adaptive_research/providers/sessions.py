"""In-memory session store for local runs and tests."""

import re
from typing import Iterable

from adaptive_research.models import SessionMatch

_WORD_RE = re.compile(r"\w+")


def _words(text: str) -> set[str]:
    return {w for w in _WORD_RE.findall(text.lower()) if len(w) > 2}


class InMemorySessionStore:
    """Scores stored sessions by the share of search terms found in their text.

    Sessions with no overlap are not returned. Results are sorted by score.
    """

    def __init__(self, sessions: Iterable[SessionMatch] = ()) -> None:
        self._sessions = {s.session_id: s for s in sessions}

    def add(self, session: SessionMatch) -> None:
        self._sessions[session.session_id] = session

    async def search(self, terms: str) -> list[SessionMatch]:
        query_words = _words(terms)
        if not query_words:
            return []

        matches = []
        for session in self._sessions.values():
            haystack = " ".join([session.title or "", session.summary, *session.key_topics])
            overlap = len(query_words & _words(haystack))
            if overlap:
                score = round(overlap / len(query_words), 4)
                matches.append(session.model_copy(update={"relevance_score": score}))

        return sorted(matches, key=lambda m: m.relevance_score, reverse=True)
