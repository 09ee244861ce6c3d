"""LLM route configuration loaded from the JSON app config."""
from __future__ import annotations

from pathlib import Path
from typing import Dict, Tuple, Type

from pydantic import BaseModel, Field


class LlmRoute(BaseModel):
    """LLM endpoint configuration."""

    name: str
    base_url: str
    endpoint: str
    model: str
    timeout_s: float = Field(ge=0.1)
    max_retries: int = Field(default=1, ge=0)
    api_key_env: str | None = None
    response_format: str | None = None
    extra_headers: Dict[str, str] = Field(default_factory=dict)
    sequential: bool = False
    enforce_json: bool = True


class AppConfig(BaseModel):
    """Application configuration root."""

    llm_routes: Dict[str, LlmRoute]
    registry: Dict[str, str]


def load_config(path: Path) -> AppConfig:
    """Load configuration from disk."""

    data = Path(path).read_text(encoding="utf-8")
    return AppConfig.model_validate_json(data)


def route_for(cfg: AppConfig, target: str) -> LlmRoute:
    """Return the route bound to ``target`` in the registry section."""

    if target not in cfg.registry:
        raise KeyError(f"Registry entry missing for '{target}'")
    route_id = cfg.registry[target]
    if route_id not in cfg.llm_routes:
        raise KeyError(f"Route '{route_id}' missing for '{target}'")
    return cfg.llm_routes[route_id]


def resolve_registry(
    cfg: AppConfig, schemas: Dict[str, Type[BaseModel]]
) -> Dict[str, Tuple[LlmRoute, Type[BaseModel]]]:
    """Pair every target with its route and response schema."""

    resolved: Dict[str, Tuple[LlmRoute, Type[BaseModel]]] = {}
    for target, schema in schemas.items():
        route = route_for(cfg, target)
        if not isinstance(schema, type) or not issubclass(schema, BaseModel):
            raise TypeError(f"Schema for '{target}' must be BaseModel")
        resolved[target] = (route, schema)
    return resolved
