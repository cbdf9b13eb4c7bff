"""
Client for the AI completion endpoints.

DESIGN DECISION: Refusals are decided by status code before any byte
of the body is decoded. A 429 or 402 answer carries a JSON error body,
not an event stream, so it is never handed to the StreamDecoder.

Nothing here retries: a failed query is reported and the user decides
whether to ask again.
"""

import json
from typing import Any, AsyncIterator, Optional, Sequence

import httpx
import structlog

from trip_finance.assistant.errors import (
    AssistantHTTPError,
    AssistantTransportError,
    QuotaExhaustedError,
    RateLimitedError,
)
from trip_finance.assistant.stream import StreamDecoder
from trip_finance.config import AssistantSettings, get_settings
from trip_finance.models.finance import ChatMessage

logger = structlog.get_logger(__name__)


async def _error_detail(response: httpx.Response) -> Optional[str]:
    """Read the "error" field of a JSON error body, if there is one."""
    body = await response.aread()
    try:
        payload = json.loads(body) if body else None
    except ValueError:
        return None
    if isinstance(payload, dict) and isinstance(payload.get("error"), str):
        return payload["error"]
    return None


class AssistantClient:
    """
    Streams answers from the analysis and chat functions.

    Both methods are async generators yielding the accumulated text
    after every content-bearing event. Closing the generator early
    (break, cancellation) closes the HTTP stream.
    """

    def __init__(
        self,
        settings: Optional[AssistantSettings] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self._settings = settings or get_settings().assistant
        self._client = client
        self._owns_client = client is None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._settings.timeout_seconds)
        return self._client

    def _headers(self) -> dict[str, str]:
        return {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self._settings.api_key}",
        }

    async def stream_analysis(
        self,
        financial_data: dict[str, Any],
    ) -> AsyncIterator[str]:
        """Ask for a one-shot analysis of the financial snapshot."""
        async for snapshot in self._stream(
            self._settings.analysis_url,
            {"financialData": financial_data},
        ):
            yield snapshot

    async def stream_chat(
        self,
        messages: Sequence[ChatMessage],
        financial_context: dict[str, Any],
    ) -> AsyncIterator[str]:
        """Continue a conversation; messages include the new user message."""
        body = {
            "messages": [m.model_dump() for m in messages],
            "financialContext": financial_context,
        }
        async for snapshot in self._stream(self._settings.chat_url, body):
            yield snapshot

    async def _stream(self, url: str, body: dict[str, Any]) -> AsyncIterator[str]:
        decoder = StreamDecoder()
        try:
            async with self._get_client().stream(
                "POST",
                url,
                json=body,
                headers=self._headers(),
            ) as response:
                if response.status_code == 429:
                    detail = await _error_detail(response)
                    logger.warning("assistant_rate_limited", url=url, detail=detail)
                    raise RateLimitedError("Assistant rate limit reached", detail)

                if response.status_code == 402:
                    detail = await _error_detail(response)
                    logger.warning("assistant_quota_exhausted", url=url, detail=detail)
                    raise QuotaExhaustedError("Assistant credits exhausted", detail)

                if not response.is_success:
                    detail = await _error_detail(response)
                    raise AssistantHTTPError(
                        response.status_code,
                        detail or f"Assistant returned status {response.status_code}",
                    )

                logger.info("assistant_stream_started", url=url)
                async for chunk in response.aiter_bytes():
                    for snapshot in decoder.feed(chunk):
                        yield snapshot
                    if decoder.done:
                        break

        except httpx.RequestError as e:
            logger.error("assistant_transport_failed", url=url, error=str(e))
            raise AssistantTransportError(str(e) or type(e).__name__) from e
        finally:
            text = decoder.finish()

        logger.info("assistant_stream_finished", url=url, characters=len(text))

    async def close(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None
