"""Best-effort parsing of JSON-shaped LLM output.

Models regularly wrap JSON in markdown fences or add a sentence before it.
Callers get either a validated model or ``None`` and supply their own fallback.
"""

import re
from typing import TypeVar

from pydantic import BaseModel, ValidationError

from adaptive_research.logging import get_logger

log = get_logger("adaptive_research.parsing")

T = TypeVar("T", bound=BaseModel)

_FENCE_RE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)
_OBJECT_RE = re.compile(r"\{.*\}", re.DOTALL)


def strip_code_fences(text: str) -> str:
    """Remove a surrounding ```json ... ``` block, if any."""
    return _FENCE_RE.sub("", text.strip()).strip()


def parse_json_output(text: str | None, model: type[T]) -> T | None:
    """Validate ``text`` as ``model``; return None when it cannot be parsed."""
    if not text:
        return None

    cleaned = strip_code_fences(text)
    candidates = [cleaned]
    match = _OBJECT_RE.search(cleaned)
    if match and match.group(0) != cleaned:
        candidates.append(match.group(0))

    for candidate in candidates:
        try:
            return model.model_validate_json(candidate)
        except ValidationError:
            continue

    log.warning("parsing.json_output.invalid", model=model.__name__, raw=text[:200])
    return None
