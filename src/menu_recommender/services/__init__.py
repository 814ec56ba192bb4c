"""Recommendation services: strategies, classifier, hybrid combiner."""

from .recommendation_service import RecommendationService

__all__ = ["RecommendationService"]
