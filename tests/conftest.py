import os
import tempfile
import pytest
from unittest.mock import MagicMock
from pathlib import Path

from dotenv import load_dotenv

# load test env first
env_path = Path(__file__).resolve().parents[1] / '.env.test'
if env_path.exists():
    load_dotenv(env_path)

os.environ.setdefault('TESTING', '1')
os.environ.setdefault('OPENAI_API_KEY', 'sk-test')
os.environ.setdefault('WORD_STORE_BACKEND', 'memory')
os.environ.setdefault('LOG_FILE_PATH', tempfile.mkdtemp(prefix='hanzi-logs-'))

from tests.fixtures.mock_openai import FakeOpenAIClient
from tests.fixtures.sample_data import sample_word_dicts


@pytest.fixture(autouse=True)
def silence_logger(monkeypatch):
    import hanzi_flashcards.utils.logger as logger_mod
    monkeypatch.setattr(logger_mod, 'get_logger', lambda *a, **k: MagicMock())
    yield


@pytest.fixture(autouse=True)
def reset_singletons():
    from hanzi_flashcards.enrichment import WordEnricher
    from hanzi_flashcards.utils import TaskManager
    WordEnricher._instance = None
    TaskManager._instance = None
    yield
    WordEnricher._instance = None
    TaskManager._instance = None


@pytest.fixture
def fake_openai():
    return FakeOpenAIClient()


@pytest.fixture
def enricher(fake_openai):
    from hanzi_flashcards.enrichment import WordEnricher
    return WordEnricher(client=fake_openai, model='test-model')


@pytest.fixture
def mock_openai_client(enricher):
    # install the fake-backed enricher as the process singleton
    from hanzi_flashcards.enrichment import WordEnricher
    WordEnricher._instance = enricher
    return enricher._client


@pytest.fixture
def memory_repository():
    from hanzi_flashcards.storage import MemoryKeyValueStore, WordRepository
    return WordRepository(MemoryKeyValueStore())


@pytest.fixture
def sample_words():
    from hanzi_flashcards.models import Word
    return [Word.model_validate(d) for d in sample_word_dicts()]


@pytest.fixture
def word_state(memory_repository):
    from hanzi_flashcards.flashcards import WordState
    return WordState(memory_repository)


@pytest.fixture
def app_client(word_state):
    from fastapi.testclient import TestClient
    import main as app_main
    app_main.app.state.word_state = word_state
    yield TestClient(app_main.app)
    app_main.app.state.word_state = None
