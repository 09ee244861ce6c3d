"""Logging and timing helpers shared by interview sessions."""
from .logger import log_event
from .tracing import span

__all__ = ["log_event", "span"]
