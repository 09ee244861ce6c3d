"""Speech output adapter backed by edge-tts and an external audio player."""
from __future__ import annotations

import asyncio
import logging
import os
import re
import shlex
import tempfile
from typing import Any, List, Optional, Protocol

from config import settings

from .errors import SpeechError

logger = logging.getLogger(__name__)

_SENTENCE_END = re.compile(r"(?<=[.!?])\s+")


class SpeechOutput(Protocol):  # What the orchestrator needs from a voice
    async def speak(self, text: str, rate: Optional[float] = None) -> None: ...

    async def stop(self) -> None: ...


def split_sentences(text: str) -> List[str]:
    return [part.strip() for part in _SENTENCE_END.split(text.strip()) if part.strip()]


def rate_to_percent(rate: Optional[float]) -> str:
    """Map a playback multiplier (1.0 = normal) to edge-tts' signed percentage."""

    if rate is None or rate <= 0:
        return "+0%"
    pct = int(round((rate - 1.0) * 100))
    return f"{pct:+d}%"


def _load_edge_tts() -> Any:
    try:
        import edge_tts
    except ImportError as exc:
        raise SpeechError("edge-tts is not installed; install the 'voice' extra") from exc
    return edge_tts


class EdgeTtsSpeech:
    """Render each sentence to a temporary MP3 and play it to completion."""

    def __init__(self, *, voice: Optional[str] = None, player: Optional[str] = None) -> None:
        self.voice = voice or settings.TTS_VOICE
        self.player = shlex.split(player or settings.AUDIO_PLAYER)
        self._proc: Optional[asyncio.subprocess.Process] = None
        self._stopped = False

    async def speak(self, text: str, rate: Optional[float] = None) -> None:
        self._stopped = False
        for sentence in split_sentences(text):
            if self._stopped:
                break
            await self._speak_one(sentence, rate)

    async def _speak_one(self, sentence: str, rate: Optional[float]) -> None:
        edge_tts = _load_edge_tts()
        fd, path = tempfile.mkstemp(suffix=".mp3")
        os.close(fd)
        try:
            try:
                communicate = edge_tts.Communicate(sentence, self.voice, rate=rate_to_percent(rate))
                await communicate.save(path)
            except Exception as exc:  # noqa: BLE001
                raise SpeechError(f"Speech synthesis failed: {exc}") from exc
            try:
                self._proc = await asyncio.create_subprocess_exec(
                    *self.player,
                    path,
                    stdout=asyncio.subprocess.DEVNULL,
                    stderr=asyncio.subprocess.DEVNULL,
                )
            except OSError as exc:
                raise SpeechError(f"Audio player unavailable: {self.player[0]}") from exc
            code = await self._proc.wait()
            if code != 0 and not self._stopped:
                raise SpeechError(f"Audio player exited with status {code}")
        finally:
            self._proc = None
            try:
                os.unlink(path)
            except OSError:
                logger.debug("Temporary speech file already removed: %s", path)

    async def stop(self) -> None:
        self._stopped = True
        proc = self._proc
        if proc is not None and proc.returncode is None:
            proc.terminate()
            try:
                await asyncio.wait_for(proc.wait(), timeout=2.0)
            except asyncio.TimeoutError:
                proc.kill()


__all__ = ["EdgeTtsSpeech", "SpeechOutput", "rate_to_percent", "split_sentences"]
