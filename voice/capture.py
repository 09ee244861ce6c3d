"""Microphone capture adapter backed by PyAudio."""
from __future__ import annotations

import asyncio
import io
import logging
import threading
import wave
from typing import Any, List, Optional, Protocol

import numpy as np

from config import settings

from .errors import CaptureError

logger = logging.getLogger(__name__)

FRAMES_PER_BUFFER = 1024


class AudioCapture(Protocol):  # Narrow recording contract used by the orchestrator
    def is_available(self) -> bool: ...

    async def start(self) -> Any: ...

    async def stop(self, handle: Any) -> Optional[bytes]: ...

    def amplitude(self, handle: Any) -> float: ...

    async def close(self) -> None: ...


def rms_level(chunk: bytes, channels: int = 1) -> float:
    """Root-mean-square level of 16-bit PCM in [0, 1]."""

    arr = np.frombuffer(chunk, dtype=np.int16)
    if arr.size == 0:
        return 0.0
    if channels > 1 and arr.size % channels == 0:
        arr = arr.reshape(-1, channels).mean(axis=1)
    level = float(np.sqrt(np.mean(arr.astype(np.float32) ** 2)) / 32768.0)
    return min(max(level, 0.0), 1.0)


def pcm_to_wav(frames: List[bytes], *, rate: int, channels: int, sample_width: int = 2) -> bytes:
    buffer = io.BytesIO()
    with wave.open(buffer, "wb") as wf:
        wf.setnchannels(channels)
        wf.setsampwidth(sample_width)
        wf.setframerate(rate)
        wf.writeframes(b"".join(frames))
    return buffer.getvalue()


class _Recording:  # One open input stream and the frames it has collected
    def __init__(self, channels: int) -> None:
        self.channels = channels
        self.frames: List[bytes] = []
        self.level = 0.0
        self.stream: Any = None
        self.lock = threading.Lock()

    def on_chunk(self, data: bytes) -> None:
        with self.lock:
            self.frames.append(data)
            self.level = rms_level(data, self.channels)


class PyAudioCapture:
    """Record 16-bit PCM from the default (or configured) input device."""

    def __init__(
        self,
        *,
        rate: Optional[int] = None,
        channels: Optional[int] = None,
        device_index: Optional[int] = None,
    ) -> None:
        self.rate = rate or settings.AUDIO_RATE
        self.channels = channels or settings.AUDIO_CHANNELS
        self.device_index = device_index if device_index is not None else settings.AUDIO_INPUT_DEVICE
        self._pa: Any = None
        self._pyaudio: Any = None

    def is_available(self) -> bool:
        try:
            self._ensure_pa()
            return self._pa.get_device_count() > 0
        except CaptureError:
            return False

    def _ensure_pa(self) -> None:
        if self._pa is not None:
            return
        try:
            import pyaudio
        except ImportError as exc:
            raise CaptureError("PyAudio is not installed; install the 'voice' extra") from exc
        self._pyaudio = pyaudio
        self._pa = pyaudio.PyAudio()

    def _open(self) -> _Recording:
        self._ensure_pa()
        pyaudio = self._pyaudio
        recording = _Recording(self.channels)

        def _callback(in_data, frame_count, time_info, status):  # noqa: ARG001
            recording.on_chunk(in_data)
            return (None, pyaudio.paContinue)

        try:
            recording.stream = self._pa.open(
                format=pyaudio.paInt16,
                channels=self.channels,
                rate=self.rate,
                input=True,
                input_device_index=self.device_index,
                frames_per_buffer=FRAMES_PER_BUFFER,
                stream_callback=_callback,
            )
            recording.stream.start_stream()
        except Exception as exc:  # noqa: BLE001
            raise CaptureError(f"Failed to open input stream: {exc}") from exc
        return recording

    async def start(self) -> _Recording:
        return await asyncio.to_thread(self._open)

    def _finish(self, recording: _Recording) -> Optional[bytes]:
        stream = recording.stream
        recording.stream = None
        if stream is not None:
            try:
                stream.stop_stream()
            finally:
                stream.close()
        with recording.lock:
            frames = list(recording.frames)
        if not frames:
            return None
        return pcm_to_wav(frames, rate=self.rate, channels=self.channels)

    async def stop(self, handle: _Recording) -> Optional[bytes]:
        try:
            return await asyncio.to_thread(self._finish, handle)
        except Exception as exc:  # noqa: BLE001
            raise CaptureError(f"Failed to stop recording: {exc}") from exc

    def amplitude(self, handle: Any) -> float:
        if not isinstance(handle, _Recording):
            return 0.0
        return handle.level

    async def close(self) -> None:
        if self._pa is None:
            return
        pa = self._pa
        self._pa = None
        await asyncio.to_thread(pa.terminate)
        logger.info("Audio device released")


__all__ = ["AudioCapture", "FRAMES_PER_BUFFER", "PyAudioCapture", "pcm_to_wav", "rms_level"]
