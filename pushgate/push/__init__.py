"""Notification delivery engine."""

from pushgate.push.engine import PushEngine

__all__ = ["PushEngine"]
