from unittest.mock import AsyncMock

import pytest

from flashgen.domain.interfaces import FlashcardsGateway, KeyValueStore
from flashgen.domain.schemas import Flashcard, FlashcardProposal, Generation

VALID_TEXT = "Photosynthesis converts light energy into chemical energy. " * 20


class MemoryStore(KeyValueStore):
    def __init__(self, initial: dict[str, str] | None = None):
        self.data = dict(initial or {})

    def get(self, key):
        return self.data.get(key)

    def set(self, key, value):
        self.data[key] = value

    def delete(self, key):
        self.data.pop(key, None)


def make_generation(count: int = 5, generation_id: int = 42) -> Generation:
    return Generation(
        id=generation_id,
        model="gpt-4o-mini",
        generated_count=count,
        generated_duration=1200,
        source_text_hash="abc123",
        source_text_length=len(VALID_TEXT.strip()),
        created_at="2024-05-01T10:00:00Z",
        proposals=[
            FlashcardProposal(front=f"Question {i}", back=f"Answer {i}") for i in range(count)
        ],
    )


def make_flashcard(flashcard_id: int, front: str = "Q", back: str = "A", source="ai-full"):
    return Flashcard(
        id=flashcard_id,
        front=front,
        back=back,
        source=source,
        generation_id=42 if source != "manual" else None,
        created_at="2024-05-01T10:00:00Z",
        updated_at="2024-05-01T10:00:00Z",
    )


@pytest.fixture
def valid_text():
    return VALID_TEXT


@pytest.fixture
def memory_store():
    return MemoryStore()


@pytest.fixture
def gateway():
    gw = AsyncMock(spec=FlashcardsGateway)
    gw.generate_proposals.return_value = make_generation()
    gw.get_existing_flashcards.return_value = []
    return gw


@pytest.fixture
def mock_home(tmp_path, monkeypatch):
    """Mocks Path.home() to point to a temp dir."""
    home = tmp_path / "home"
    home.mkdir()

    # Mocking HOME to a temp directory to isolate config and drafts
    monkeypatch.setenv("HOME", str(home))
    return home


@pytest.fixture
def generation_factory():
    return make_generation


@pytest.fixture
def flashcard_factory():
    return make_flashcard
