"""
Recommendation engine exceptions.
"""

from typing import Optional


class RecommendationError(Exception):
    """Base class for all engine errors."""
    pass


class ProfileNotFoundError(RecommendationError):
    def __init__(self, user_id: str):
        self.user_id = user_id
        super().__init__(f"User profile not found: {user_id}")


class DataAccessError(RecommendationError):
    """Profile Store failure. Not retried inside the engine."""

    def __init__(self, operation: str, cause: Optional[BaseException] = None):
        self.operation = operation
        self.cause = cause
        message = f"Profile store failure during {operation}"
        if cause is not None:
            message = f"{message}: {cause}"
        super().__init__(message)


class ConfigurationError(RecommendationError, ValueError):
    pass


class RecommendationTimeoutError(RecommendationError):
    def __init__(self, user_id: str, timeout_seconds: float):
        self.user_id = user_id
        self.timeout_seconds = timeout_seconds
        super().__init__(f"Recommendation for {user_id} exceeded {timeout_seconds}s")


class CacheBackendError(RecommendationError):
    """Raised by cache backends; never escapes RecommendationCache."""
    pass


class ScoringFault(Exception):
    """
    Describes a failed sub-score for one candidate.

    Faults are carried as values in SubScoreResult and logged; they are not
    raised past the candidate being scored.
    """

    def __init__(self, factor: str, candidate_id: str, cause: BaseException):
        self.factor = factor
        self.candidate_id = candidate_id
        self.cause = cause
        super().__init__(f"{factor} scoring failed for candidate {candidate_id}: {cause!r}")
