"""Feedback service reader."""

from pushgate.feedback.reader import FeedbackReader

__all__ = ["FeedbackReader"]
