"""
Assistant Session

DESIGN DECISION: Last query wins. Starting a query cancels the one in
flight, waits for its stream to be released, and resets the
accumulated text to empty. Results are never merged across queries.

Every way a query can end maps to one AssistantOutcome with its own
user-facing notice, so "failed" is never confused with "answered
with nothing".
"""

import asyncio
from enum import Enum
from typing import AsyncIterator, Callable, Optional

import structlog
from pydantic import BaseModel

from trip_finance.assistant.errors import (
    AssistantError,
    AssistantHTTPError,
    AssistantRejectedError,
    QuotaExhaustedError,
    RateLimitedError,
)

logger = structlog.get_logger(__name__)


class AssistantMode(str, Enum):
    ANALYSIS = "analysis"
    CHAT = "chat"


class AssistantOutcome(str, Enum):
    COMPLETED = "completed"
    EMPTY = "empty"
    RATE_LIMITED = "rate_limited"
    QUOTA_EXHAUSTED = "quota_exhausted"
    FAILED = "failed"
    CANCELLED = "cancelled"


_NOTICES: dict[AssistantOutcome, str] = {
    AssistantOutcome.EMPTY: "O assistente não retornou nenhuma resposta.",
    AssistantOutcome.RATE_LIMITED: (
        "Limite de requisições excedido. Tente novamente em alguns segundos."
    ),
    AssistantOutcome.QUOTA_EXHAUSTED: "Créditos de IA esgotados.",
    AssistantOutcome.FAILED: "Erro ao analisar finanças",
    AssistantOutcome.CANCELLED: "Consulta cancelada.",
}

# The chat reassures the user that the rest of the app keeps working
_CHAT_NOTICES: dict[AssistantOutcome, str] = {
    **_NOTICES,
    AssistantOutcome.QUOTA_EXHAUSTED: (
        "Créditos de IA esgotados. A plataforma continua funcionando normalmente."
    ),
    AssistantOutcome.FAILED: (
        "Erro ao conectar com o assistente. "
        "A plataforma continua funcionando normalmente."
    ),
}


def notice_for(outcome: AssistantOutcome, mode: AssistantMode = AssistantMode.ANALYSIS) -> Optional[str]:
    """User-facing notice for an outcome (None when the query completed)."""
    notices = _CHAT_NOTICES if mode == AssistantMode.CHAT else _NOTICES
    return notices.get(outcome)


class AssistantResult(BaseModel):
    """How a query ended and what it produced."""

    mode: AssistantMode
    outcome: AssistantOutcome
    text: str = ""
    notice: Optional[str] = None
    error_message: Optional[str] = None
    status_code: Optional[int] = None

    @property
    def ok(self) -> bool:
        return self.outcome == AssistantOutcome.COMPLETED


class AssistantSession:
    """Runs at most one assistant query at a time."""

    def __init__(self):
        self._task: Optional[asyncio.Task] = None
        self._generation = 0
        self._text = ""

    @property
    def text(self) -> str:
        """Accumulated text of the current (or last) query."""
        return self._text

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def cancel(self) -> None:
        """Stop the query in flight; its stream is closed as the task unwinds."""
        self._generation += 1
        if self.running:
            self._task.cancel()

    async def run(
        self,
        stream_factory: Callable[[], AsyncIterator[str]],
        mode: AssistantMode = AssistantMode.ANALYSIS,
        on_update: Optional[Callable[[str], None]] = None,
    ) -> AssistantResult:
        """
        Run a query to its end.

        stream_factory returns the async iterator of accumulated-text
        snapshots (e.g. AssistantClient.stream_analysis(...)).
        on_update receives every snapshot of this query only.
        """
        previous = self._task
        self.cancel()
        if previous is not None and not previous.done():
            await asyncio.wait({previous})

        self._text = ""
        generation = self._generation
        task = asyncio.ensure_future(
            self._consume(stream_factory(), generation, on_update)
        )
        self._task = task

        try:
            await asyncio.wait({task})
        except asyncio.CancelledError:
            # The caller went away; take the query down with it
            task.cancel()
            raise

        if task.cancelled():
            return self._result(mode, AssistantOutcome.CANCELLED)

        error = task.exception()
        if error is None:
            text = task.result()
            outcome = AssistantOutcome.COMPLETED if text else AssistantOutcome.EMPTY
            return self._result(mode, outcome, text=text)

        if not isinstance(error, AssistantError):
            raise error

        return self._error_result(mode, error)

    async def _consume(
        self,
        stream: AsyncIterator[str],
        generation: int,
        on_update: Optional[Callable[[str], None]],
    ) -> str:
        text = ""
        try:
            async for snapshot in stream:
                if generation != self._generation:
                    break
                text = snapshot
                self._text = snapshot
                if on_update:
                    on_update(snapshot)
        finally:
            aclose = getattr(stream, "aclose", None)
            if aclose is not None:
                await aclose()
        return text

    def _error_result(self, mode: AssistantMode, error: AssistantError) -> AssistantResult:
        if isinstance(error, RateLimitedError):
            outcome = AssistantOutcome.RATE_LIMITED
        elif isinstance(error, QuotaExhaustedError):
            outcome = AssistantOutcome.QUOTA_EXHAUSTED
        else:
            outcome = AssistantOutcome.FAILED

        status_code = None
        if isinstance(error, (AssistantRejectedError, AssistantHTTPError)):
            status_code = error.status_code

        logger.warning(
            "assistant_query_unsuccessful",
            mode=mode.value,
            outcome=outcome.value,
            error=str(error),
        )
        return self._result(
            mode,
            outcome,
            text=self._text,
            error_message=str(error),
            status_code=status_code,
        )

    def _result(
        self,
        mode: AssistantMode,
        outcome: AssistantOutcome,
        text: str = "",
        error_message: Optional[str] = None,
        status_code: Optional[int] = None,
    ) -> AssistantResult:
        return AssistantResult(
            mode=mode,
            outcome=outcome,
            text=text,
            notice=notice_for(outcome, mode),
            error_message=error_message,
            status_code=status_code,
        )
