"""
Ports consumed by the application layer.

Infrastructure adapters implement these; the session depends only on the
abstractions.
"""

from abc import ABC, abstractmethod

from .schemas import Flashcard, FlashcardCreate, Generation


class FlashcardsGateway(ABC):
    """Remote generation and flashcard storage."""

    @abstractmethod
    async def generate_proposals(self, source_text: str) -> Generation:
        """
        Ask the LLM backend for flashcard proposals.

        Raises:
            AuthenticationError, RateLimitError, ServiceUnavailableError,
            ValidationError, NetworkError or ApiError on failure.
        """
        pass

    @abstractmethod
    async def create_flashcard(self, flashcard: FlashcardCreate) -> Flashcard:
        """Persist a single flashcard and return the stored record."""
        pass

    @abstractmethod
    async def get_existing_flashcards(
        self, generation_id: int | None = None
    ) -> list[tuple[str, str]]:
        """
        Return (front, back) for every stored flashcard.

        Must not raise: a failed page ends the listing and whatever was
        collected so far is returned.
        """
        pass


class KeyValueStore(ABC):
    """Small local persistent string store."""

    @abstractmethod
    def get(self, key: str) -> str | None:
        pass

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        pass

    @abstractmethod
    def delete(self, key: str) -> None:
        pass
