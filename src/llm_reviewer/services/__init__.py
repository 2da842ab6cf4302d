"""Services module for llm-reviewer."""

from .review_service import ReviewService

__all__ = [
    "ReviewService",
]
