"""
AI assistant package.

Builds the snapshot payloads, streams answers from the completion
endpoints and decodes the event stream into accumulated text.
"""

from trip_finance.assistant.client import AssistantClient
from trip_finance.assistant.context import build_chat_context, build_financial_data
from trip_finance.assistant.errors import (
    AssistantError,
    AssistantHTTPError,
    AssistantRejectedError,
    AssistantTransportError,
    QuotaExhaustedError,
    RateLimitedError,
)
from trip_finance.assistant.session import (
    AssistantMode,
    AssistantOutcome,
    AssistantResult,
    AssistantSession,
    notice_for,
)
from trip_finance.assistant.stream import StreamDecoder, extract_content

__all__ = [
    "AssistantClient",
    "AssistantError",
    "AssistantHTTPError",
    "AssistantMode",
    "AssistantOutcome",
    "AssistantRejectedError",
    "AssistantResult",
    "AssistantSession",
    "AssistantTransportError",
    "QuotaExhaustedError",
    "RateLimitedError",
    "StreamDecoder",
    "build_chat_context",
    "build_financial_data",
    "extract_content",
    "notice_for",
]
