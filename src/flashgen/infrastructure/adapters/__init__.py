# Adapters Package
from .api_client import FlashcardsApiClient
from .json_store import JsonFileStore

__all__ = ["FlashcardsApiClient", "JsonFileStore"]
