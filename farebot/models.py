"""Data models used throughout the project."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import FrozenSet, Optional


@dataclass(slots=True, frozen=True)
class Fare:
    origin: str
    destination: str
    departure_at: datetime
    price: int
    airline: str
    link: str
    duration: int
    transfers: int


@dataclass(slots=True, frozen=True)
class DateFilter:
    """Ограничение дат вылета: диапазон или список конкретных дат."""

    start: Optional[date] = None
    end: Optional[date] = None
    dates: FrozenSet[date] = field(default_factory=frozenset)

    @property
    def enabled(self) -> bool:
        return bool(self.dates) or self.start is not None or self.end is not None

    def allows(self, day: date) -> bool:
        if self.dates:
            return day in self.dates
        if self.start is not None and day < self.start:
            return False
        if self.end is not None and day > self.end:
            return False
        return True


@dataclass(slots=True, frozen=True)
class FareConstraints:
    max_price: int
    max_duration: int = 1440
    date_filter: Optional[DateFilter] = None


__all__ = ["Fare", "DateFilter", "FareConstraints"]
