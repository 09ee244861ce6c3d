from __future__ import annotations  # Chat-completion gateway with schema validation

import json
import logging
import os
import threading
from typing import Any, Dict, Optional, Protocol, Sequence, Type, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from config import LlmRoute


logger = logging.getLogger(__name__)


_ROUTE_LOCKS: Dict[str, threading.Lock] = {}
_ROUTE_LOCKS_GUARD = threading.Lock()


class HttpClient(Protocol):  # Minimal HTTP client protocol
    def post(self, url: str, *, json: Dict[str, Any], headers: Dict[str, str], timeout: float) -> "HttpResponse": ...


class HttpResponse(Protocol):  # Minimal HTTP response protocol
    @property
    def status_code(self) -> int: ...

    def json(self) -> Any: ...

    @property
    def text(self) -> str: ...


class LlmGatewayError(RuntimeError):  # Base gateway error
    pass


T = TypeVar("T", bound=BaseModel)


def _lock_for(cfg: LlmRoute) -> threading.Lock:
    key = cfg.name or f"{cfg.base_url}{cfg.endpoint}"
    with _ROUTE_LOCKS_GUARD:
        lock = _ROUTE_LOCKS.get(key)
        if lock is None:
            lock = threading.Lock()
            _ROUTE_LOCKS[key] = lock
    return lock


def call(
    task: str,
    schema: Type[T],
    *,
    cfg: LlmRoute,
    client: Optional[HttpClient] = None,
    options: Optional[Dict[str, Any]] = None,
) -> T:  # Single user prompt against a configured route
    return chat(
        [{"role": "user", "content": task}],
        schema,
        cfg=cfg,
        client=client,
        options=options,
    )


def chat(
    messages: Sequence[Dict[str, str]],
    schema: Type[T],
    *,
    cfg: LlmRoute,
    client: Optional[HttpClient] = None,
    options: Optional[Dict[str, Any]] = None,
) -> T:
    if cfg.sequential:
        with _lock_for(cfg):
            return _execute(messages, schema, cfg, client, options)
    return _execute(messages, schema, cfg, client, options)


def _execute(
    messages: Sequence[Dict[str, str]],
    schema: Type[T],
    cfg: LlmRoute,
    client: Optional[HttpClient],
    options: Optional[Dict[str, Any]],
) -> T:
    base_messages = _system_messages(schema, cfg) + _normalize_messages(messages)
    attempts = cfg.max_retries + 1
    preview = _preview(base_messages)
    last_error: Optional[Exception] = None
    logger.info("LLM request start route=%s model=%s attempts=%d preview=%s", cfg.name, cfg.model, attempts, preview)
    for attempt in range(attempts):
        attempt_messages = list(base_messages)
        if last_error is not None:
            attempt_messages.append({"role": "system", "content": _retry_hint(str(last_error), cfg.enforce_json)})
        payload: Dict[str, Any] = {"model": cfg.model, "messages": attempt_messages}
        if options:
            payload.update(options)
        if cfg.response_format:
            payload["response_format"] = {"type": cfg.response_format}
        data = _post_json(f"{cfg.base_url}{cfg.endpoint}", payload, _headers(cfg), cfg.timeout_s, client)
        content = _extract_content(data)
        try:
            parsed = _validate(schema, content)
        except (json.JSONDecodeError, ValidationError) as exc:
            logger.warning("LLM output validation failed route=%s attempt=%d: %s", cfg.name, attempt + 1, exc)
            last_error = exc
            continue
        logger.info("LLM request done route=%s model=%s attempt=%d", cfg.name, cfg.model, attempt + 1)
        return parsed
    raise LlmGatewayError("LLM output validation failed") from last_error


def _system_messages(schema: Type[BaseModel], cfg: LlmRoute) -> list[Dict[str, str]]:
    if not cfg.enforce_json:
        return []
    schema_json = json.dumps(schema.model_json_schema(), indent=2)
    return [{"role": "system", "content": "Reply with a single JSON object matching this schema:\n" + schema_json}]


def _headers(cfg: LlmRoute) -> Dict[str, str]:
    headers = {"Content-Type": "application/json"}
    if cfg.api_key_env:
        api_key = os.getenv(cfg.api_key_env)
        if api_key:
            headers["Authorization"] = f"Bearer {api_key}"
    headers.update(cfg.extra_headers)
    return headers


def _post_json(
    url: str,
    payload: Dict[str, Any],
    headers: Dict[str, str],
    timeout: float,
    client: Optional[HttpClient],
) -> Any:  # Dispatch the HTTP request and decode the body
    try:
        if client is not None:
            response = client.post(url, json=payload, headers=headers, timeout=timeout)
        else:
            with httpx.Client(timeout=timeout) as http_client:
                response = http_client.post(url, json=payload, headers=headers)
    except Exception as exc:  # noqa: BLE001
        logger.error("LLM transport failure: %s", exc)
        raise LlmGatewayError("LLM transport failed") from exc
    if response.status_code >= 400:
        logger.error("LLM error status: %s", response.status_code)
        raise LlmGatewayError(f"LLM returned status {response.status_code}")
    try:
        return response.json()
    except Exception as exc:  # noqa: BLE001
        logger.error("Invalid JSON payload from LLM: %s", exc)
        raise LlmGatewayError("LLM payload was not JSON") from exc


def _normalize_messages(messages: Sequence[Dict[str, str]]) -> list[Dict[str, str]]:
    normalized: list[Dict[str, str]] = []
    for item in messages:
        if not isinstance(item, dict):
            raise TypeError("Each chat message must be a dict with role/content")
        role = str(item.get("role", "")).strip()
        if not role:
            raise ValueError("Chat message missing role")
        normalized.append({"role": role, "content": str(item.get("content", ""))})
    return normalized


def _preview(messages: Sequence[Dict[str, str]]) -> str:
    for message in reversed(messages):
        text = message.get("content", "").strip()
        if text:
            first = text.splitlines()[0]
            return first if len(first) <= 120 else first[:117] + "..."
    return ""


def _extract_content(data: Any) -> str:  # Pull the assistant text out of a chat-completion body
    if isinstance(data, dict):
        choices = data.get("choices")
        if isinstance(choices, list) and choices:
            message = choices[0].get("message") if isinstance(choices[0], dict) else None
            content = message.get("content") if isinstance(message, dict) else None
            if isinstance(content, str):
                return content
        if isinstance(data.get("content"), str):
            return data["content"]
    raise LlmGatewayError("LLM response missing content")


def _validate(schema: Type[T], content: str) -> T:
    return schema.model_validate_json(extract_json_text(content))


def extract_json_text(content: str) -> str:
    """Strip markdown fences and surrounding prose from a JSON reply."""

    text = content.strip()
    if text.startswith("```"):
        lines = text.splitlines()[1:]
        if lines and lines[-1].strip() == "```":
            lines = lines[:-1]
        text = "\n".join(lines).strip()
    starts = [pos for pos in (text.find("{"), text.find("[")) if pos != -1]
    if not starts:
        return text
    start = min(starts)
    closer = "}" if text[start] == "{" else "]"
    end = text.rfind(closer)
    if end > start:
        return text[start : end + 1]
    return text


def _retry_hint(error_text: str, enforce_json: bool) -> str:
    base = "The previous reply failed validation."
    truncated = error_text.splitlines()[0].strip() if error_text else ""
    if truncated:
        if len(truncated) > 200:
            truncated = truncated[:197] + "..."
        base += f" Reason: {truncated}."
    if enforce_json:
        return base + " Return a single JSON object that matches the schema."
    return base + " Follow the requested format precisely."
