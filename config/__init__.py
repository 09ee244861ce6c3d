"""Configuration package for the interview orchestrator."""
from .app_config import AppConfig, LlmRoute, load_config, resolve_registry, route_for
from .registry import EVALUATION_KEY, QUESTION_GEN_KEY, bind_model, get_model, unbind_model
from .settings import Settings, settings

__all__ = [
    "AppConfig",
    "LlmRoute",
    "load_config",
    "resolve_registry",
    "route_for",
    "EVALUATION_KEY",
    "QUESTION_GEN_KEY",
    "bind_model",
    "get_model",
    "unbind_model",
    "Settings",
    "settings",
]
