import asyncio
import json

import httpx
import pytest

from fakes import FakeTranscriber, FlakyTranscriber
from voice.errors import TranscriptionError, TranscriptionTimeout
from voice.transcription import AssemblyAiTranscriber, transcribe


def _run(coro):
    return asyncio.run(coro)


def test_transcribe_returns_text_after_pending_polls():
    sleeps = []

    async def _sleep(delay):
        sleeps.append(delay)

    fake = FakeTranscriber(["  Hello there.  "], pending_polls=2)
    text = _run(transcribe(fake, b"wav", interval_s=3.0, max_polls=5, sleep=_sleep))
    assert text == "Hello there."
    assert sleeps == [3.0, 3.0]


def test_transcribe_failed_job_raises():
    with pytest.raises(TranscriptionError) as excinfo:
        _run(transcribe(FakeTranscriber([None]), b"wav", interval_s=0, max_polls=3))
    assert not isinstance(excinfo.value, TranscriptionTimeout)


def test_transcribe_ceiling_raises_timeout_without_trailing_sleep():
    sleeps = []

    async def _sleep(delay):
        sleeps.append(delay)

    fake = FakeTranscriber(["late"], pending_polls=10)
    with pytest.raises(TranscriptionTimeout):
        _run(transcribe(fake, b"wav", interval_s=1.0, max_polls=4, sleep=_sleep))
    assert fake.polls["job-1"] == 4
    assert len(sleeps) == 3


def test_transient_poll_errors_are_retried():
    fake = FlakyTranscriber(["recovered"], errors=2)
    assert _run(transcribe(fake, b"wav", interval_s=0, max_polls=3)) == "recovered"


def _assemblyai_transport(statuses):
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append((request.method, request.url.path))
        assert request.headers["authorization"] == "key-123"
        if request.url.path.endswith("/upload"):
            return httpx.Response(200, json={"upload_url": "https://cdn/audio"})
        if request.method == "POST" and request.url.path.endswith("/transcript"):
            body = json.loads(request.content)
            assert body["audio_url"] == "https://cdn/audio"
            return httpx.Response(200, json={"id": "tx-1"})
        status = statuses.pop(0)
        if status == 500:
            return httpx.Response(500, text="boom")
        if isinstance(status, str):
            return httpx.Response(200, text=status, headers={"content-type": "text/html"})
        return httpx.Response(200, json=status)

    return httpx.MockTransport(handler), calls


def test_assemblyai_upload_submit_and_poll():
    transport, calls = _assemblyai_transport(
        [{"status": "queued"}, 500, {"status": "processing"}, {"status": "completed", "text": "I like Python."}]
    )

    async def _go():
        client = httpx.AsyncClient(transport=transport)
        transcriber = AssemblyAiTranscriber(api_key="key-123", base_url="https://api.test/v2", client=client)
        try:
            return await transcribe(transcriber, b"RIFF", interval_s=0, max_polls=5)
        finally:
            await client.aclose()

    assert _run(_go()) == "I like Python."
    assert calls[:2] == [("POST", "/v2/upload"), ("POST", "/v2/transcript")]
    assert calls[-1] == ("GET", "/v2/transcript/tx-1")


def test_assemblyai_error_status_maps_to_failed():
    transport, _ = _assemblyai_transport([{"status": "error", "error": "no speech"}])

    async def _go():
        async with httpx.AsyncClient(transport=transport) as client:
            transcriber = AssemblyAiTranscriber(api_key="key-123", base_url="https://api.test/v2", client=client)
            job = await transcriber.submit(b"RIFF")
            return await transcriber.poll(job)

    poll = _run(_go())
    assert poll.status == "failed" and poll.error == "no speech"


def test_assemblyai_requires_api_key(monkeypatch):
    monkeypatch.delenv("ASSEMBLYAI_API_KEY", raising=False)

    async def _go():
        async with httpx.AsyncClient() as client:
            await AssemblyAiTranscriber(client=client).submit(b"RIFF")

    with pytest.raises(TranscriptionError):
        _run(_go())


def test_non_json_poll_body_is_retried():
    transport, calls = _assemblyai_transport(["<html>gateway hiccup</html>", {"status": "completed", "text": "hello"}])

    async def _go():
        async with httpx.AsyncClient(transport=transport) as client:
            transcriber = AssemblyAiTranscriber(api_key="key-123", base_url="https://api.test/v2", client=client)
            return await transcribe(transcriber, b"RIFF", interval_s=0, max_polls=3)

    assert _run(_go()) == "hello"
    assert [path for method, path in calls if method == "GET"] == ["/v2/transcript/tx-1"] * 2


def test_non_json_upload_body_is_transcription_error():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text="<html>maintenance</html>")

    async def _go():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            transcriber = AssemblyAiTranscriber(api_key="key-123", base_url="https://api.test/v2", client=client)
            await transcriber.submit(b"RIFF")

    with pytest.raises(TranscriptionError, match="non-JSON"):
        _run(_go())
