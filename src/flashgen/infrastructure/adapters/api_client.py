import logging
from typing import Any

import httpx
from pydantic import BaseModel
from pydantic import ValidationError as SchemaError

from flashgen.application.utils.helpers import parse_retry_after
from flashgen.consts import USER_AGENT
from flashgen.domain.constants import ERROR_CODE_INTERNAL, LIST_PAGE_SIZE, REQUEST_TIMEOUT
from flashgen.domain.errors import (
    ApiError,
    AuthenticationError,
    NetworkError,
    RateLimitError,
    ServiceUnavailableError,
    ValidationError,
)
from flashgen.domain.interfaces import FlashcardsGateway
from flashgen.domain.schemas import (
    CreateFlashcardsCommand,
    CreateGenerationCommand,
    ErrorResponse,
    Flashcard,
    FlashcardCreate,
    FlashcardListResponse,
    Generation,
    ListFlashcardsQuery,
    UpdateFlashcardCommand,
)


def error_from_response(response: httpx.Response) -> ApiError:
    """Classify a non-2xx response into the error taxonomy."""
    try:
        body = ErrorResponse.model_validate(response.json())
    except (ValueError, SchemaError):
        body = ErrorResponse(
            error="API Error",
            message=f"Request failed with status {response.status_code}",
            code=ERROR_CODE_INTERNAL,
        )

    message = body.message or "An error occurred"
    status = response.status_code

    if status == 401:
        return AuthenticationError(message, body)
    if status == 429:
        retry_after = parse_retry_after(response.headers.get("Retry-After"))
        return RateLimitError(message, retry_after, body)
    if status == 503:
        return ServiceUnavailableError(message, body)
    if status == 400:
        return ValidationError(message, body)
    return ApiError(message, status, body)


class FlashcardsApiClient(FlashcardsGateway):
    """Adapter for the flashcards REST API (generations and flashcards resources)."""

    def __init__(
        self,
        base_url: str = "http://localhost:3000",
        token: str | None = None,
        timeout: float = REQUEST_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.logger = logging.getLogger(__name__)
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.timeout = timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None
        self.logger.debug(f"FlashcardsApiClient initialized with base_url={self.base_url}")

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            headers = {"Content-Type": "application/json", "User-Agent": USER_AGENT}
            if self.token:
                headers["Authorization"] = f"Bearer {self.token}"
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                headers=headers,
                timeout=self.timeout,
                transport=self._transport,
            )
        return self._client

    async def _request(self, method: str, path: str, **kwargs) -> Any:
        try:
            resp = await self._get_client().request(method, path, **kwargs)
        except httpx.RequestError as e:
            self.logger.error(f"{method} {path} failed: {e}")
            raise NetworkError(str(e) or "Unable to connect to server") from e

        if resp.is_error:
            err = error_from_response(resp)
            self.logger.error(f"{method} {path} -> {resp.status_code}: {err.message}")
            raise err

        if resp.status_code == 204 or not resp.content:
            return None
        try:
            return resp.json()
        except ValueError as e:
            raise NetworkError(f"Invalid JSON in response to {method} {path}") from e

    @staticmethod
    def _parse(model: type[BaseModel], data: Any, status: int = 200) -> Any:
        try:
            return model.model_validate(data)
        except SchemaError as e:
            raise ApiError(f"Unexpected response shape: {e.error_count()} errors", status) from e

    # ---------- Generations ----------

    async def generate_proposals(self, source_text: str) -> Generation:
        command = CreateGenerationCommand(source_text=source_text)
        data = await self._request("POST", "/api/generations", json=command.model_dump())
        return self._parse(Generation, data, 201)

    # ---------- Flashcards ----------

    async def create_flashcards(self, flashcards: list[FlashcardCreate]) -> list[Flashcard]:
        command = CreateFlashcardsCommand(flashcards=flashcards)
        data = await self._request("POST", "/api/flashcards", json=command.model_dump())
        if not isinstance(data, list):
            raise ApiError("Unexpected response shape: expected a list", 201)
        return [self._parse(Flashcard, row, 201) for row in data]

    async def create_flashcard(self, flashcard: FlashcardCreate) -> Flashcard:
        created = await self.create_flashcards([flashcard])
        if not created:
            raise ApiError("No flashcard returned from API", 201)
        return created[0]

    async def list_flashcards(self, query: ListFlashcardsQuery | None = None) -> FlashcardListResponse:
        query = query or ListFlashcardsQuery()
        data = await self._request("GET", "/api/flashcards", params=query.to_params())
        return self._parse(FlashcardListResponse, data)

    async def get_existing_flashcards(
        self, generation_id: int | None = None
    ) -> list[tuple[str, str]]:
        """
        Collect (front, back) of every stored flashcard, page by page.

        A failed page stops the walk; what was gathered so far is returned so
        deduplication degrades instead of blocking a save.
        """
        collected: list[tuple[str, str]] = []
        page = 1
        while True:
            query = ListFlashcardsQuery(
                page=page, limit=LIST_PAGE_SIZE, sort="desc", generation_id=generation_id
            )
            try:
                result = await self.list_flashcards(query)
            except Exception as e:
                self.logger.warning(
                    f"Failed to fetch existing flashcards (page {page}) for deduplication: {e}"
                )
                break

            collected.extend((f.front, f.back) for f in result.data)
            if not result.pagination.has_next:
                break
            page += 1

        self.logger.debug(f"Fetched {len(collected)} existing flashcards")
        return collected

    async def update_flashcard(
        self, flashcard_id: int, front: str | None = None, back: str | None = None
    ) -> Flashcard:
        command = UpdateFlashcardCommand(front=front, back=back)
        data = await self._request(
            "PUT",
            f"/api/flashcards/{flashcard_id}",
            json=command.model_dump(exclude_none=True),
        )
        return self._parse(Flashcard, data)

    async def delete_flashcard(self, flashcard_id: int) -> bool:
        self.logger.info(f"Deleting flashcard {flashcard_id}")
        await self._request("DELETE", f"/api/flashcards/{flashcard_id}")
        return True

    async def close(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None
