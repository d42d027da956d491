# Domain Package
from .errors import (
    ApiError,
    AuthenticationError,
    NetworkError,
    RateLimitError,
    ServiceUnavailableError,
    ValidationError,
)
from .interfaces import FlashcardsGateway, KeyValueStore

__all__ = [
    "ApiError",
    "AuthenticationError",
    "NetworkError",
    "RateLimitError",
    "ServiceUnavailableError",
    "ValidationError",
    "FlashcardsGateway",
    "KeyValueStore",
]
