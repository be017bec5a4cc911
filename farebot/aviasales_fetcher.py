from __future__ import annotations

import datetime as dt
import logging
from typing import Any

import requests

from .models import Fare, FareConstraints

logger = logging.getLogger(__name__)

DEFAULT_PRICE_URL = "https://api.travelpayouts.com/aviasales/v3/prices_for_dates"
DEFAULT_LINK_BASE = "https://aviasales.ru"
RESULT_LIMIT = 15
REQUEST_TIMEOUT_S = 30
HEADERS = {
    "User-Agent": "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36",
    "Accept": "application/json",
}


class AviasalesFetcherError(RuntimeError):
    """Ошибка при обращении к Travelpayouts API."""


class RequestBuildError(AviasalesFetcherError):
    """The request could not be built (bad URL or scheme)."""


class NetworkError(AviasalesFetcherError):
    """Transport failure or timeout."""


class UpstreamStatusError(AviasalesFetcherError):
    def __init__(self, status_code: int, body: str = "") -> None:
        super().__init__(f"HTTP {status_code} – {body[:120]}")
        self.status_code = status_code


class DecodeError(AviasalesFetcherError):
    """Response body is not the expected JSON document."""


class UpstreamLogicError(AviasalesFetcherError):
    """API answered with ``success: false``."""


class DateParseError(AviasalesFetcherError):
    """A single record carries an unparseable ``departure_at``."""


def parse_departure(raw: Any) -> dt.datetime:
    """Parse an RFC 3339 timestamp, keeping the offset sent by the API."""
    if not isinstance(raw, str) or not raw:
        raise DateParseError(f"missing departure_at: {raw!r}")
    text = raw[:-1] + "+00:00" if raw.endswith(("Z", "z")) else raw
    try:
        parsed = dt.datetime.fromisoformat(text)
    except ValueError as exc:
        raise DateParseError(f"bad departure_at {raw!r}") from exc
    if parsed.tzinfo is None:
        raise DateParseError(f"departure_at without offset: {raw!r}")
    return parsed


class AviasalesFetcher:
    """
    Клиент Flight Data API v3 (``prices_for_dates``), один месяц на запрос.
    """

    def __init__(
        self,
        token: str = "",
        *,
        price_url: str = DEFAULT_PRICE_URL,
        link_base_url: str = DEFAULT_LINK_BASE,
        currency: str = "rub",
        timeout: float = REQUEST_TIMEOUT_S,
    ) -> None:
        self.token = token
        self.price_url = price_url
        self.link_base_url = link_base_url.rstrip("/")
        self.currency = currency
        self.timeout = timeout

    # ──────────────────────────────────────────────────────────

    def search_prices(
        self,
        origin: str,
        destination: str,
        month: str,
        constraints: FareConstraints,
    ) -> list[Fare]:
        """Return fares for one (origin, destination, ``YYYY-MM``) triple.

        Records above the price or duration ceiling, outside the date filter
        or with a broken timestamp are dropped. Request-level failures raise
        a subclass of :class:`AviasalesFetcherError`.
        """

        params = {
            "origin": origin,
            "destination": destination,
            "currency": self.currency,
            "departure_at": month,
            "sorting": "price",
            "direct": "false",
            "limit": RESULT_LIMIT,
            "one_way": "true",
            "token": self.token,
        }

        try:
            resp = requests.get(
                self.price_url, params=params, headers=HEADERS, timeout=self.timeout
            )
        except (
            requests.exceptions.MissingSchema,
            requests.exceptions.InvalidSchema,
            requests.exceptions.InvalidURL,
        ) as exc:
            raise RequestBuildError(str(exc)) from exc
        except requests.RequestException as exc:
            raise NetworkError(str(exc)) from exc

        if resp.status_code != 200:
            raise UpstreamStatusError(resp.status_code, resp.text)

        try:
            data = resp.json()
        except ValueError as exc:
            raise DecodeError(f"invalid JSON: {exc}") from exc
        if not isinstance(data, dict):
            raise DecodeError(f"unexpected payload type {type(data).__name__}")

        if not data.get("success"):
            raise UpstreamLogicError(f"API error: {data.get('error')}")

        records = data.get("data") or []
        if not isinstance(records, list):
            raise DecodeError("'data' is not a list")

        fares = []
        for item in records:
            try:
                fare = self._to_fare(item, origin, destination, constraints)
            except DateParseError as exc:
                logger.warning("Skipping %s->%s record: %s", origin, destination, exc)
                continue
            except (KeyError, TypeError, ValueError) as exc:
                logger.warning(
                    "Skipping malformed %s->%s record %r: %s",
                    origin,
                    destination,
                    item,
                    exc,
                )
                continue
            if fare:
                fares.append(fare)
        return fares

    def _to_fare(
        self,
        item: dict,
        origin: str,
        destination: str,
        constraints: FareConstraints,
    ) -> Fare | None:
        """Преобразует запись JSON в Fare (None = отфильтрована)."""
        price = int(item["price"])
        duration = int(item.get("duration") or 0)
        if price < 0 or duration < 0:
            raise ValueError("negative price or duration")
        if price > constraints.max_price or duration > constraints.max_duration:
            return None

        departure_at = parse_departure(item.get("departure_at"))
        flt = constraints.date_filter
        if flt is not None and not flt.allows(departure_at.date()):
            return None

        return Fare(
            origin=origin,
            destination=item.get("destination") or destination,
            departure_at=departure_at,
            price=price,
            airline=item.get("airline") or "",
            link=f"{self.link_base_url}{item.get('link') or ''}",
            duration=duration,
            transfers=max(int(item.get("transfers") or 0), 0),
        )


__all__ = [
    "AviasalesFetcher",
    "AviasalesFetcherError",
    "DateParseError",
    "DecodeError",
    "NetworkError",
    "RequestBuildError",
    "UpstreamLogicError",
    "UpstreamStatusError",
    "parse_departure",
]
