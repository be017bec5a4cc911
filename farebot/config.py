from __future__ import annotations

import json
import re
from dataclasses import dataclass, replace
from datetime import date
from functools import lru_cache
from typing import Annotated, List, Optional, Union

from dotenv import load_dotenv
from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, NoDecode

from .aviasales_fetcher import DEFAULT_LINK_BASE, DEFAULT_PRICE_URL
from .models import DateFilter, FareConstraints

load_dotenv()

IATA_CODE_RE = re.compile(r"^[A-Z]{3}$")


class SearchConfigError(ValueError):
    """Search parameters that cannot be executed."""


def iata_code(value: str) -> str:
    code = value.strip().upper()
    if not IATA_CODE_RE.match(code):
        raise SearchConfigError(f"invalid IATA code: {value!r}")
    return code


def positive(name: str, value: int) -> int:
    if value <= 0:
        raise SearchConfigError(f"{name} must be greater than 0")
    return value


@dataclass(slots=True)
class SearchConfig:
    """What to search: origins, destination, horizon and ceilings."""

    origins: List[str]
    destination: str
    months_ahead: int = 3
    max_price: int = 30000
    max_duration: int = 1440
    date_filter: Optional[DateFilter] = None

    def __post_init__(self) -> None:
        origins: List[str] = []
        for code in self.origins:
            code = iata_code(code)
            if code not in origins:
                origins.append(code)
        if not origins:
            raise SearchConfigError("at least one origin is required")
        self.origins = origins
        self.destination = iata_code(self.destination)
        positive("months_ahead", self.months_ahead)
        positive("max_price", self.max_price)
        positive("max_duration", self.max_duration)

    def copy(self) -> "SearchConfig":
        return replace(self, origins=list(self.origins))

    def constraints(self) -> FareConstraints:
        return FareConstraints(
            max_price=self.max_price,
            max_duration=self.max_duration,
            date_filter=self.date_filter,
        )


def _split(v):
    if isinstance(v, str):
        v = v.strip()
        if v.startswith("["):
            return json.loads(v)
        return [a.strip() for a in v.split(",") if a.strip()]
    return v


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    telegram_token: Optional[str] = Field(None, alias="TELEGRAM_BOT_TOKEN")
    telegram_chat_id: Optional[Union[int, str]] = Field(None, alias="TELEGRAM_CHAT_ID")
    admin_user_ids: Annotated[List[int], NoDecode] = Field(
        default_factory=list, alias="ADMIN_USER_IDS"
    )

    travelpayouts_token: str = Field("", alias="TRAVELPAYOUTS_TOKEN")
    price_url: str = Field(DEFAULT_PRICE_URL, alias="TRAVELPAYOUTS_URL_PRICE")
    link_base_url: str = Field(DEFAULT_LINK_BASE, alias="AVIASALES_URL")
    currency: str = Field("rub", alias="CURRENCY")

    origin_iata: Annotated[List[str], NoDecode] = Field(
        default_factory=lambda: ["OVB", "BAX"], alias="ORIGIN_IATA"
    )
    destination_iata: str = Field("DPS", alias="DESTINATION_IATA")
    max_price: int = Field(30000, alias="MAX_PRICE")
    months_to_search: int = Field(3, alias="MONTHS_TO_SEARCH")
    max_flight_time: int = Field(1440, alias="MAX_FLIGHT_TIME")

    date_filter_start: Optional[date] = Field(None, alias="DATE_FILTER_START")
    date_filter_end: Optional[date] = Field(None, alias="DATE_FILTER_END")
    date_filter_list: Annotated[List[date], NoDecode] = Field(
        default_factory=list, alias="DATE_FILTER_LIST"
    )

    search_cron: str = Field("0 10 * * *", alias="SEARCH_CRON")
    timezone: str = Field("UTC", alias="TIMEZONE")
    request_delay_s: float = Field(1.0, alias="REQUEST_DELAY_S")

    log_file: str = Field("farebot.log", alias="LOG_FILE")
    log_level: str = Field("INFO", alias="LOG_LEVEL")

    @field_validator("telegram_token")
    @classmethod
    def _token_non_empty(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not v.strip():
            raise ValueError("TELEGRAM_BOT_TOKEN must be a non-empty string")
        return v

    @field_validator("telegram_chat_id", mode="before")
    @classmethod
    def _chat_id(cls, v):
        # numeric ids stay ints, "@channelname" stays a string
        if isinstance(v, str):
            v = v.strip()
            if not v:
                return None
            if v.lstrip("-").isdecimal():
                return int(v)
        return v

    @field_validator("admin_user_ids", "date_filter_list", mode="before")
    @classmethod
    def _split_lists(cls, v):
        return _split(v)

    @field_validator("origin_iata", mode="before")
    @classmethod
    def _split_airports(cls, v):
        return [a.upper() for a in _split(v)]

    @field_validator("origin_iata")
    @classmethod
    def _origins_valid(cls, v: List[str]) -> List[str]:
        if not v:
            raise ValueError("ORIGIN_IATA must name at least one airport")
        for code in v:
            if not IATA_CODE_RE.match(code):
                raise ValueError(f"ORIGIN_IATA: invalid IATA code {code!r}")
        return v

    @field_validator("destination_iata")
    @classmethod
    def _destination_valid(cls, v: str) -> str:
        v = v.strip().upper()
        if not IATA_CODE_RE.match(v):
            raise ValueError(f"DESTINATION_IATA: invalid IATA code {v!r}")
        return v

    @field_validator("max_price", "months_to_search", "max_flight_time")
    @classmethod
    def _positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("must be greater than 0")
        return v

    @field_validator("request_delay_s")
    @classmethod
    def _delay_non_negative(cls, v: float) -> float:
        if v < 0:
            raise ValueError("REQUEST_DELAY_S must not be negative")
        return v

    @model_validator(mode="after")
    def _date_range_ordered(self) -> "Settings":
        if (
            self.date_filter_start
            and self.date_filter_end
            and self.date_filter_start > self.date_filter_end
        ):
            raise ValueError("DATE_FILTER_START is after DATE_FILTER_END")
        return self

    def date_filter(self) -> Optional[DateFilter]:
        flt = DateFilter(
            start=self.date_filter_start,
            end=self.date_filter_end,
            dates=frozenset(self.date_filter_list),
        )
        return flt if flt.enabled else None

    def search_config(self) -> SearchConfig:
        return SearchConfig(
            origins=list(self.origin_iata),
            destination=self.destination_iata,
            months_ahead=self.months_to_search,
            max_price=self.max_price,
            max_duration=self.max_flight_time,
            date_filter=self.date_filter(),
        )

    def recipients(self) -> List[Union[int, str]]:
        """Chats that receive scheduled reports, without duplicates."""
        ids = [self.telegram_chat_id] if self.telegram_chat_id is not None else []
        for uid in self.admin_user_ids:
            if uid not in ids:
                ids.append(uid)
        return ids


@lru_cache()
def get_settings() -> Settings:
    """Return application settings loaded from the environment."""
    return Settings()  # type: ignore[call-arg]


__all__ = [
    "SearchConfig",
    "SearchConfigError",
    "Settings",
    "get_settings",
    "iata_code",
]
