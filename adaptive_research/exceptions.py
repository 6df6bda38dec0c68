"""Domain-specific exceptions for the research engine.

Only control-plane failures are represented here. Router and provider failures
are recovered where they happen and never surface as exceptions.
"""


class ResearchPipelineError(Exception):
    """Base exception for research pipeline errors."""


class PlanningError(ResearchPipelineError):
    """Raised when the research plan cannot be created."""

    def __init__(self, topic: str, reason: str) -> None:
        self.topic = topic
        self.reason = reason
        super().__init__(f"Failed to create research plan for '{topic}': {reason}")


class ReflectionError(ResearchPipelineError):
    """Raised when reflection on a round's evidence fails."""

    def __init__(self, round_number: int, reason: str) -> None:
        self.round_number = round_number
        self.reason = reason
        super().__init__(f"Failed to reflect on round {round_number}: {reason}")


class RefinementError(ResearchPipelineError):
    """Raised when the query cannot be refined for the next round."""

    def __init__(self, round_number: int, reason: str) -> None:
        self.round_number = round_number
        self.reason = reason
        super().__init__(f"Failed to refine query for round {round_number}: {reason}")


class RankingError(ResearchPipelineError):
    """Raised when accumulated sources cannot be ranked."""

    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(f"Failed to rank research sources: {reason}")


class RecallError(ResearchPipelineError):
    """Raised when an answer cannot be generated from a past session."""

    def __init__(self, session_id: str, reason: str) -> None:
        self.session_id = session_id
        self.reason = reason
        super().__init__(f"Failed to recall session '{session_id}': {reason}")
