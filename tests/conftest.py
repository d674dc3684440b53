import pytest

from services.history_service import SessionStore
from tests.fakes import FakeLanguageModel, MemorySlot


@pytest.fixture
def slot() -> MemorySlot:
    return MemorySlot()


@pytest.fixture
def store(slot) -> SessionStore:
    return SessionStore(slot)


@pytest.fixture
def llm() -> FakeLanguageModel:
    return FakeLanguageModel()
