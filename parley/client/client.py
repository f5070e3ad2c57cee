"""HTTP client for the extraction and scoring service.

Usage:
    async with HttpConversationService("https://models.example.com", api_key="...") as service:
        app = await service.get_app("app-1")
        session = await service.start_session(app.app_id)
        extracted = await service.extract(app.app_id, session.session_id, "hello")
"""

from typing import Any, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from parley.errors import ServiceError
from parley.observability.logging import get_logger
from parley.runtime.models import (
    ExtractResponse,
    ScoreInput,
    ScoreResponse,
    StartSessionResponse,
)
from parley.session.models import AppBinding

logger = get_logger(__name__)

ResponseT = TypeVar("ResponseT", bound=BaseModel)


class HttpConversationService:
    """ConversationService over httpx.

    Attributes:
        base_url: Base URL of the service
    """

    def __init__(
        self,
        base_url: str,
        api_key: str | None = None,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize the client.

        Args:
            base_url: Base URL of the service
            api_key: Subscription key sent with every request
            timeout: Request timeout in seconds
            transport: Custom httpx transport (tests use MockTransport)
        """
        self.base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout,
            transport=transport,
        )

    async def __aenter__(self) -> "HttpConversationService":
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    async def close(self) -> None:
        """Close the HTTP client."""
        await self._client.aclose()

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self._api_key:
            headers["Ocp-Apim-Subscription-Key"] = self._api_key
        return headers

    async def _request(
        self,
        method: str,
        path: str,
        *,
        json: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Make a service request, wrapping every failure in ServiceError."""
        try:
            response = await self._client.request(
                method=method,
                url=path,
                headers=self._headers(),
                json=json,
            )
        except httpx.HTTPError as e:
            logger.error("service_request_failed", method=method, path=path, error=str(e))
            raise ServiceError(f"Service request failed: {e}", cause=e) from e

        if response.status_code >= 400:
            try:
                message = response.json().get("error", {}).get("message", response.text)
            except (ValueError, AttributeError):
                message = response.text
            logger.error(
                "service_error_response",
                method=method,
                path=path,
                status_code=response.status_code,
            )
            raise ServiceError(message or response.reason_phrase, status_code=response.status_code)

        if response.status_code == 204:
            return {}

        try:
            return response.json()
        except ValueError as e:
            raise ServiceError("Service returned invalid JSON", cause=e) from e

    def _parse(self, model: type[ResponseT], data: dict[str, Any], path: str) -> ResponseT:
        """Validate a response body, wrapping schema mismatches in ServiceError."""
        try:
            return model.model_validate(data)
        except ValidationError as e:
            logger.error(
                "service_response_invalid",
                path=path,
                model=model.__name__,
                errors=e.error_count(),
            )
            raise ServiceError("Service returned an invalid response", cause=e) from e

    async def get_app(self, app_id: str) -> AppBinding:
        path = f"/app/{app_id}"
        return self._parse(AppBinding, await self._request("GET", path), path)

    async def start_session(self, app_id: str) -> StartSessionResponse:
        path = f"/app/{app_id}/session"
        return self._parse(StartSessionResponse, await self._request("POST", path), path)

    async def extract(self, app_id: str, session_id: str, text: str) -> ExtractResponse:
        path = f"/app/{app_id}/session/{session_id}/extractor"
        data = await self._request("PUT", path, json={"text": text})
        return self._parse(ExtractResponse, data, path)

    async def score(
        self, app_id: str, session_id: str, score_input: ScoreInput
    ) -> ScoreResponse:
        path = f"/app/{app_id}/session/{session_id}/scorer"
        data = await self._request("PUT", path, json=score_input.model_dump(mode="json"))
        return self._parse(ScoreResponse, data, path)
