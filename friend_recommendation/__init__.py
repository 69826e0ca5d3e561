"""Friend recommendation service: scoring engine, cache and Profile Store adapters."""

from .logic.engine import RecommendationEngine

__all__ = ["RecommendationEngine"]
