"""HTML report for Telegram: one fixed-width table per departure airport."""

from __future__ import annotations

import html
from typing import Dict, Iterable, List

from .airports import DIRECTORY, AirportDirectory
from .config import SearchConfig
from .models import Fare

MAX_ROWS_PER_ORIGIN = 10
CURRENCY_SIGN = "₽"

WEEKDAYS = ("Пн", "Вт", "Ср", "Чт", "Пт", "Сб", "Вс")

TITLE = "✈️ <b>НАЙДЕНЫ ДЕШЁВЫЕ БИЛЕТЫ!</b>\n\n"
TABLE_HEADER = (
    "<code>"
    "Дата          | Цена    | Время   | Пересад | Рейс\n"
    "--------------|---------|---------|---------|------\n"
    "</code>"
)
FOOTER = "📊 <b>Информация:</b>\n   • 🎫 - ссылка на покупку\n"


def format_duration(minutes: int) -> str:
    hours, mins = divmod(minutes, 60)
    if hours and mins:
        return f"{hours}ч {mins}м"
    if hours:
        return f"{hours}ч"
    return f"{mins}м"


def transfers_text(transfers: int) -> str:
    if transfers == 0:
        return "прямой"
    return f"{transfers} перес"


def group_by_origin(fares: Iterable[Fare]) -> Dict[str, List[Fare]]:
    """Group fares by origin (first-seen order), each group sorted by price."""
    groups: Dict[str, List[Fare]] = {}
    for fare in fares:
        groups.setdefault(fare.origin, []).append(fare)
    return {origin: sorted(group, key=lambda f: f.price) for origin, group in groups.items()}


def format_row(fare: Fare) -> str:
    dep = fare.departure_at
    return (
        f"<code>{dep:%d.%m.%Y} {WEEKDAYS[dep.weekday()]} | "
        f"{fare.price:6d}{CURRENCY_SIGN} | "
        f"{format_duration(fare.duration)} | "
        f"{transfers_text(fare.transfers):>7} | "
        f"{html.escape(fare.airline)}</code> "
        f"<a href='{html.escape(fare.link, quote=True)}'>🎫</a>\n"
    )


def render_report(
    fares: Iterable[Fare],
    config: SearchConfig,
    directory: AirportDirectory = DIRECTORY,
) -> str:
    parts = [TITLE]
    dest_name = directory.display_name(config.destination)
    for origin, group in group_by_origin(fares).items():
        parts.append(
            f"🛫 <b>{html.escape(directory.display_name(origin))} → "
            f"{html.escape(dest_name)}</b>\n"
        )
        parts.append(TABLE_HEADER)
        parts.extend(format_row(fare) for fare in group[:MAX_ROWS_PER_ORIGIN])
        parts.append("\n")
    parts.append(FOOTER)
    return "".join(parts)


__all__ = [
    "MAX_ROWS_PER_ORIGIN",
    "format_duration",
    "group_by_origin",
    "render_report",
    "transfers_text",
]
