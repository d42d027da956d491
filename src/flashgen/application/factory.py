"""
Session Factory
Centralizes wiring of adapters from configuration.
"""

from flashgen.application.config import AppConfig
from flashgen.application.drafts import DraftService
from flashgen.application.session import GenerateSession
from flashgen.infrastructure.adapters.api_client import FlashcardsApiClient
from flashgen.infrastructure.adapters.json_store import JsonFileStore


def get_api_client(config: AppConfig) -> FlashcardsApiClient:
    return FlashcardsApiClient(
        base_url=config.api_base_url,
        token=config.api_token,
        timeout=config.request_timeout,
    )


def get_draft_service(config: AppConfig) -> DraftService:
    return DraftService(JsonFileStore(config.draft_file))


def build_session(
    config: AppConfig, gateway: FlashcardsApiClient | None = None
) -> GenerateSession:
    """
    Returns a GenerateSession wired to the REST client and the draft file.
    Must be called from inside a running event loop.
    """
    return GenerateSession(
        gateway=gateway or get_api_client(config),
        drafts=get_draft_service(config),
        tick_interval=config.tick_interval,
        draft_debounce=config.draft_debounce,
    )
