"""
Exchange Rate Service (Frankfurter API)

Fetches how many BRL one EUR buys, used to show the projected balance
in euros.

DESIGN DECISION: A missing rate is not an error for the user. The
summary treats a zero rate as "no conversion available" and shows the
BRL balance unconverted, so current_rate() falls back instead of raising.
Every current_rate() outcome is audited when an audit logger is given.
Transport failures are retried; HTTP errors and malformed payloads are not.
"""

from decimal import Decimal, InvalidOperation
from typing import TYPE_CHECKING, Optional

import httpx
import structlog
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from trip_finance.config import ExchangeRateSettings, get_settings
from trip_finance.models.finance import ExchangeRate

if TYPE_CHECKING:
    from trip_finance.audit import AuditLogger

logger = structlog.get_logger(__name__)


class ExchangeRateError(Exception):
    """The provider could not give a usable rate."""
    pass


class ExchangeRateService:
    """Client for the latest-rate endpoint of the Frankfurter API."""

    def __init__(
        self,
        settings: Optional[ExchangeRateSettings] = None,
        client: Optional[httpx.AsyncClient] = None,
        audit_logger: Optional["AuditLogger"] = None,
    ):
        self._settings = settings or get_settings().exchange_rate
        self._client = client
        self._audit_logger = audit_logger
        self._owns_client = client is None
        self._last: Optional[ExchangeRate] = None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._settings.timeout_seconds)
        return self._client

    @property
    def last_rate(self) -> Optional[ExchangeRate]:
        """The last rate fetched successfully, if any."""
        return self._last

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        retry=retry_if_exception_type(httpx.TransportError),
        reraise=True,
    )
    async def _fetch_latest(self) -> dict:
        response = await self._get_client().get(
            f"{self._settings.base_url.rstrip('/')}/latest",
            params={
                "base": self._settings.base_currency,
                "symbols": self._settings.target_currency,
            },
        )
        response.raise_for_status()
        return response.json()

    async def fetch_rate(self) -> ExchangeRate:
        """
        Fetch the latest rate.

        Raises:
            ExchangeRateError: On HTTP errors, exhausted retries or a
                payload without a positive rate for the target currency
        """
        target = self._settings.target_currency
        try:
            payload = await self._fetch_latest()
        except httpx.HTTPStatusError as e:
            raise ExchangeRateError(
                f"Rate provider returned {e.response.status_code}"
            )
        except httpx.HTTPError as e:
            raise ExchangeRateError(f"Rate provider unreachable: {e}")
        except ValueError as e:
            raise ExchangeRateError(f"Rate provider sent invalid JSON: {e}")

        rates = payload.get("rates") if isinstance(payload, dict) else None
        raw = rates.get(target) if isinstance(rates, dict) else None
        try:
            rate = Decimal(str(raw))
        except InvalidOperation:
            raise ExchangeRateError(f"No {target} rate in provider response")
        if not rate.is_finite() or rate <= 0:
            raise ExchangeRateError(f"Invalid {target} rate: {raw}")

        self._last = ExchangeRate(
            base=self._settings.base_currency,
            target=target,
            rate=rate,
        )
        logger.info(
            "exchange_rate_fetched",
            base=self._last.base,
            target=target,
            rate=str(rate),
        )
        return self._last

    async def current_rate(self) -> Decimal:
        """
        Latest rate, falling back to the last good one.

        Returns Decimal(0) when no rate was ever obtained.
        """
        try:
            rate = await self.fetch_rate()
        except ExchangeRateError as e:
            logger.warning("exchange_rate_unavailable", error=str(e))
            if self._audit_logger:
                await self._audit_logger.log_exchange_rate_failed(str(e))
            return self._last.rate if self._last else Decimal("0")

        if self._audit_logger:
            await self._audit_logger.log_exchange_rate_fetched(
                base=rate.base,
                target=rate.target,
                rate=str(rate.rate),
            )
        return rate.rate

    async def close(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None
