"""Transcription adapter for AssemblyAI plus the bounded polling loop."""
from __future__ import annotations

import asyncio
import logging
import os
from typing import Any, Awaitable, Callable, Dict, Literal, Optional, Protocol

import httpx
from pydantic import BaseModel

from config import settings

from .errors import TranscriptionError, TranscriptionTimeout

logger = logging.getLogger(__name__)


class TranscriptPoll(BaseModel):  # One poll outcome
    status: Literal["pending", "done", "failed"]
    text: str = ""
    error: Optional[str] = None


class Transcriber(Protocol):  # Submit-then-poll transcription service
    async def submit(self, audio: bytes) -> str: ...

    async def poll(self, job_id: str) -> TranscriptPoll: ...


class AssemblyAiTranscriber:
    """Upload the utterance, create a transcript job and report its status."""

    def __init__(
        self,
        *,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = 30.0,
    ) -> None:
        self.api_key = api_key if api_key is not None else os.getenv(settings.ASSEMBLYAI_API_KEY_ENV, "")
        self.base_url = (base_url or settings.ASSEMBLYAI_BASE_URL).rstrip("/")
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self._owns_client = client is None

    def _headers(self) -> Dict[str, str]:
        if not self.api_key:
            raise TranscriptionError(f"Missing API key; set {settings.ASSEMBLYAI_API_KEY_ENV}")
        return {"authorization": self.api_key}

    async def submit(self, audio: bytes) -> str:
        headers = self._headers()
        try:
            upload = await self._client.post(
                f"{self.base_url}/upload",
                content=audio,
                headers={**headers, "content-type": "application/octet-stream"},
            )
            upload_url = _json_field(upload, "upload_url")
            created = await self._client.post(
                f"{self.base_url}/transcript",
                json={
                    "audio_url": upload_url,
                    "punctuate": True,
                    "format_text": True,
                    "disfluencies": False,
                    "language_code": "en",
                },
                headers=headers,
            )
            return _json_field(created, "id")
        except httpx.HTTPError as exc:
            raise TranscriptionError(f"Transcription request failed: {exc}") from exc

    async def poll(self, job_id: str) -> TranscriptPoll:
        try:
            response = await self._client.get(f"{self.base_url}/transcript/{job_id}", headers=self._headers())
        except httpx.HTTPError as exc:
            raise TranscriptionError(f"Transcription poll failed: {exc}") from exc
        if response.status_code != 200:
            raise TranscriptionError(f"Transcription poll returned status {response.status_code}")
        data = _json_body(response)
        status = data.get("status")
        if status == "completed":
            return TranscriptPoll(status="done", text=str(data.get("text") or ""))
        if status in ("queued", "processing"):
            return TranscriptPoll(status="pending")
        if status == "error":
            return TranscriptPoll(status="failed", error=str(data.get("error") or "Unknown error occurred"))
        return TranscriptPoll(status="failed", error=f"Unknown transcription status: {status}")

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()


def _json_body(response: httpx.Response) -> Dict[str, Any]:
    try:
        data = response.json()
    except ValueError as exc:
        raise TranscriptionError(f"AssemblyAI returned a non-JSON body: {response.text[:200]}") from exc
    if not isinstance(data, dict):
        raise TranscriptionError("AssemblyAI returned an unexpected JSON payload")
    return data


def _json_field(response: httpx.Response, field: str) -> str:
    if response.status_code != 200:
        raise TranscriptionError(f"AssemblyAI returned status {response.status_code}: {response.text[:200]}")
    value = _json_body(response).get(field)
    if not value:
        raise TranscriptionError(f"AssemblyAI response missing '{field}'")
    return str(value)


async def transcribe(
    transcriber: Transcriber,
    audio: bytes,
    *,
    interval_s: Optional[float] = None,
    max_polls: Optional[int] = None,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
) -> str:
    """Submit ``audio`` and poll until the job resolves or the ceiling is hit.

    Transient poll errors count against the ceiling and are retried. A job the
    service reports as failed raises ``TranscriptionError``; running out of
    polls raises ``TranscriptionTimeout``.
    """

    interval = settings.TRANSCRIPTION_POLL_INTERVAL_S if interval_s is None else interval_s
    polls = settings.TRANSCRIPTION_MAX_POLLS if max_polls is None else max_polls

    job_id = await transcriber.submit(audio)
    for attempt in range(1, polls + 1):
        try:
            result = await transcriber.poll(job_id)
        except TranscriptionError as exc:
            logger.warning("Transcription poll %d/%d for %s failed: %s", attempt, polls, job_id, exc)
        else:
            if result.status == "done":
                return result.text.strip()
            if result.status == "failed":
                raise TranscriptionError(result.error or "Transcription failed")
        if attempt < polls:
            await sleep(interval)
    raise TranscriptionTimeout(f"Transcription timed out after {polls} polls ({polls * interval:.0f}s)")


__all__ = ["AssemblyAiTranscriber", "TranscriptPoll", "Transcriber", "transcribe"]
