"""Observability utilities for intake conversations."""
from .logger import log_event
from .tracing import span

__all__ = ["log_event", "span"]
