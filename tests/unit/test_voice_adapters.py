import asyncio
import io
import sys
import types
import wave

import numpy as np
import pytest

from voice import CaptureError, EdgeTtsSpeech, PyAudioCapture, SpeechError, rms_level, split_sentences
from voice.capture import pcm_to_wav
from voice.speech import rate_to_percent


def test_split_sentences():
    assert split_sentences("Hello there! How are you? Fine.  ") == ["Hello there!", "How are you?", "Fine."]
    assert split_sentences("   ") == []


@pytest.mark.parametrize("rate, expected", [(0.8, "-20%"), (1.0, "+0%"), (1.25, "+25%"), (None, "+0%"), (0, "+0%")])
def test_rate_to_percent(rate, expected):
    assert rate_to_percent(rate) == expected


def test_rms_level_bounds():
    assert rms_level(b"") == 0.0
    silence = np.zeros(512, dtype=np.int16).tobytes()
    loud = np.full(512, 32767, dtype=np.int16).tobytes()
    assert rms_level(silence) == 0.0
    assert 0.99 <= rms_level(loud) <= 1.0
    assert 0.0 <= rms_level(np.full(512, -16000, dtype=np.int16).tobytes(), channels=2) <= 1.0


def test_pcm_to_wav_header():
    blob = pcm_to_wav([b"\x00\x01" * 100], rate=16000, channels=1)
    with wave.open(io.BytesIO(blob)) as wf:
        assert wf.getframerate() == 16000
        assert wf.getnchannels() == 1
        assert wf.getnframes() == 100


class _FakeStream:
    def __init__(self, callback):
        self.callback = callback
        self.closed = False

    def start_stream(self):
        self.callback(np.full(256, 8000, dtype=np.int16).tobytes(), 256, None, 0)

    def stop_stream(self):
        pass

    def close(self):
        self.closed = True


def _fake_pyaudio(device_count=1, fail_open=False):
    module = types.ModuleType("pyaudio")
    module.paInt16 = 8
    module.paContinue = 0

    class PyAudio:
        terminated = False

        def get_device_count(self):
            return device_count

        def open(self, **kwargs):
            if fail_open:
                raise OSError("device busy")
            return _FakeStream(kwargs["stream_callback"])

        def terminate(self):
            PyAudio.terminated = True

    module.PyAudio = PyAudio
    return module


def test_pyaudio_capture_records_wav(monkeypatch):
    fake = _fake_pyaudio()
    monkeypatch.setitem(sys.modules, "pyaudio", fake)
    capture = PyAudioCapture(rate=16000, channels=1)

    async def _go():
        assert capture.is_available()
        handle = await capture.start()
        level = capture.amplitude(handle)
        audio = await capture.stop(handle)
        await capture.close()
        return level, audio

    level, audio = asyncio.run(_go())
    assert 0.0 < level <= 1.0
    assert audio.startswith(b"RIFF")
    assert fake.PyAudio.terminated
    assert capture.amplitude(object()) == 0.0


def test_pyaudio_open_failure_is_capture_error(monkeypatch):
    monkeypatch.setitem(sys.modules, "pyaudio", _fake_pyaudio(fail_open=True))
    with pytest.raises(CaptureError):
        asyncio.run(PyAudioCapture().start())


def test_missing_pyaudio_reports_unavailable(monkeypatch):
    monkeypatch.setitem(sys.modules, "pyaudio", None)
    capture = PyAudioCapture()
    assert capture.is_available() is False
    with pytest.raises(CaptureError):
        asyncio.run(capture.start())


def _fake_edge_tts(spoken):
    module = types.ModuleType("edge_tts")

    class Communicate:
        def __init__(self, text, voice, rate="+0%"):
            spoken.append((text, voice, rate))

        async def save(self, path):
            with open(path, "wb") as fh:
                fh.write(b"ID3")

    module.Communicate = Communicate
    return module


def test_edge_tts_speaks_sentence_by_sentence(monkeypatch):
    spoken = []
    monkeypatch.setitem(sys.modules, "edge_tts", _fake_edge_tts(spoken))
    speech = EdgeTtsSpeech(voice="en-GB-Test", player="true")
    asyncio.run(speech.speak("First sentence. Second one!", rate=0.8))
    assert spoken == [("First sentence.", "en-GB-Test", "-20%"), ("Second one!", "en-GB-Test", "-20%")]


def test_edge_tts_player_failure_is_speech_error(monkeypatch):
    monkeypatch.setitem(sys.modules, "edge_tts", _fake_edge_tts([]))
    with pytest.raises(SpeechError):
        asyncio.run(EdgeTtsSpeech(player="false").speak("Hello."))
    with pytest.raises(SpeechError):
        asyncio.run(EdgeTtsSpeech(player="/nonexistent/player").speak("Hello."))


def test_missing_edge_tts_is_speech_error(monkeypatch):
    monkeypatch.setitem(sys.modules, "edge_tts", None)
    with pytest.raises(SpeechError):
        asyncio.run(EdgeTtsSpeech(player="true").speak("Hello."))
