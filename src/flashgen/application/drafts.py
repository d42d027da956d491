"""
Best-effort persistence of the in-progress source text.

Storage failures are logged and swallowed so that losing a draft never
interrupts the user.
"""

import logging

from flashgen.domain.constants import DRAFT_STORAGE_KEY
from flashgen.domain.interfaces import KeyValueStore

logger = logging.getLogger(__name__)


class DraftService:
    def __init__(self, store: KeyValueStore, key: str = DRAFT_STORAGE_KEY):
        self.store = store
        self.key = key

    def save_draft(self, text: str) -> None:
        """Store the text, or delete the draft when it is blank."""
        try:
            if text.strip():
                self.store.set(self.key, text)
            else:
                self.store.delete(self.key)
        except Exception as e:
            logger.error(f"Failed to save draft: {e}")

    def load_draft(self) -> str | None:
        try:
            return self.store.get(self.key)
        except Exception as e:
            logger.error(f"Failed to load draft: {e}")
            return None

    def clear_draft(self) -> None:
        try:
            self.store.delete(self.key)
        except Exception as e:
            logger.error(f"Failed to clear draft: {e}")
