import os
import sys
import tempfile
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))
TESTS = Path(__file__).resolve().parent
if str(TESTS) not in sys.path:
    sys.path.insert(0, str(TESTS))

from config.registry import EVALUATION_KEY, QUESTION_GEN_KEY, bind_model, unbind_model
from config.settings import settings
from fakes import good_evaluation
from storage.migrate import migrate


@pytest.fixture(autouse=True)
def tmp_db(monkeypatch):
    td = tempfile.TemporaryDirectory()
    db_path = os.path.join(td.name, "test.db")
    monkeypatch.setattr(settings, "DB_PATH", db_path, raising=False)
    migrate(db_path)
    try:
        yield db_path
    finally:
        td.cleanup()


@pytest.fixture(autouse=True)
def fast_settings(monkeypatch):
    monkeypatch.setattr(settings, "LISTEN_TIMEOUT_S", 0.5)
    monkeypatch.setattr(settings, "SPEECH_TIMEOUT_S", 1.0)
    monkeypatch.setattr(settings, "TRANSCRIPTION_POLL_INTERVAL_S", 0.0)
    monkeypatch.setattr(settings, "TRANSCRIPTION_MAX_POLLS", 3)
    monkeypatch.setattr(settings, "EVALUATION_TIMEOUT_S", 1.0)
    monkeypatch.setattr(settings, "EVALUATION_RETRY_BACKOFF_S", 0.0)
    monkeypatch.setattr(settings, "QUESTION_GENERATION_TIMEOUT_S", 1.0)


@pytest.fixture(autouse=True)
def clean_registry():
    unbind_model(QUESTION_GEN_KEY)
    unbind_model(EVALUATION_KEY)
    yield
    unbind_model(QUESTION_GEN_KEY)
    unbind_model(EVALUATION_KEY)


@pytest.fixture
def fake_models():
    def _generator(*, role, difficulty, count):
        return [
            {
                "question": f"{role.title} question {index + 1} ({difficulty})",
                "type": "technical",
                "keywords": "design, testing",
            }
            for index in range(count)
        ]

    bind_model(QUESTION_GEN_KEY, _generator)
    bind_model(EVALUATION_KEY, good_evaluation)
    return True
