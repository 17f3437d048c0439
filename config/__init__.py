"""Configuration package for the intake flow services."""
from .registry import EXTRACTOR_KEY, bind_model, get_model, is_bound, unbind_model
from .settings import Settings, settings

__all__ = [
    "EXTRACTOR_KEY",
    "bind_model",
    "get_model",
    "is_bound",
    "unbind_model",
    "Settings",
    "settings",
]
