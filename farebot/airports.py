"""Справочник городов и аэропортов.

Maps free-text Russian city names (including stems and common typos used in
chat commands) to IATA airport codes, and IATA codes back to display names.
"""

from __future__ import annotations

import logging
import re
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

logger = logging.getLogger(__name__)

# ────────────────────────────────────────────────────────────────
# Таблицы
# ────────────────────────────────────────────────────────────────

CITY_AIRPORTS: Dict[str, Tuple[str, ...]] = {
    # Азия
    "бали": ("DPS",),
    "денпасар": ("DPS",),
    "бангкок": ("BKK",),
    "пхукет": ("HKT",),
    "сингапур": ("SIN",),
    "куалалумпур": ("KUL",),
    "куала-лумпур": ("KUL",),
    "ханой": ("HAN",),
    "хошимин": ("SGN",),
    "дананг": ("DAD",),
    "той": ("NRT", "HND"),
    "сеул": ("ICN", "GMP"),
    "пекин": ("PEK",),
    "шахай": ("PVG",),
    "шанхай": ("PVG",),
    "дел": ("DEL",),
    "дуба": ("DXB",),
    "дубай": ("DXB",),
    "стамбул": ("IST",),
    "сидней": ("SYD",),
    "окленд": ("AKL",),
    # Европа
    "франкфурт": ("FRA",),
    "париж": ("CDG", "ORY"),
    "лондон": ("LHR", "LGW", "STN"),
    "берлин": ("BER", "SXF", "TXL"),
    "амстердам": ("AMS",),
    "праж": ("PRG",),
    "прага": ("PRG",),
    "рим": ("FCO",),
    "милан": ("MXP", "LIN"),
    "мадрид": ("MAD",),
    "барселон": ("BCN",),
    "барселона": ("BCN",),
    "вена": ("VIE",),
    "варшав": ("WAW",),
    "варшава": ("WAW",),
    # Америка
    "ньюйорк": ("JFK", "LGA", "EWR"),
    "нью-йорк": ("JFK", "LGA", "EWR"),
    "лосанделес": ("LAX",),
    "лос-анделес": ("LAX",),
    "маям": ("MIA",),
    "майами": ("MIA",),
    "чикаг": ("ORD", "MDW"),
    "чикаго": ("ORD", "MDW"),
    "торонт": ("YYZ",),
    "торонто": ("YYZ",),
    "вancouver": ("YVR",),
    "ванкувер": ("YVR",),
    # Россия и СНГ
    "москв": ("SVO", "DME", "VKO"),
    "москва": ("SVO", "DME", "VKO"),
    "санктпетербург": ("LED",),
    "петербург": ("LED",),
    "екатеринбург": ("SVX",),
    "новосибирск": ("OVB",),
    "барнаул": ("BAX",),
    "красноярск": ("KJA",),
    "иркутск": ("IKT",),
    "владивосток": ("VVO",),
    "хабаровск": ("KHV",),
    "алмат": ("ALA",),
    "алматы": ("ALA",),
    "ташкент": ("TAS",),
    "бишкек": ("FRU",),
}

AIRPORT_NAMES: Dict[str, str] = {
    # Азия
    "DPS": "Денпасар (Бали)",
    "BKK": "Бангкок",
    "HKT": "Пхукет",
    "SYD": "Сидней",
    "AKL": "Окленд",
    "SIN": "Сингапур",
    "KUL": "Куала-Лумпур",
    "HAN": "Ханой",
    "SGN": "Хошимин",
    "DAD": "Дананг",
    "NRT": "Токио (Нарита)",
    "HND": "Токио (Ханеда)",
    "ICN": "Сеул",
    "GMP": "Сеул (Кимпхо)",
    "PEK": "Пекин",
    "PVG": "Шанхай",
    "DEL": "Дели",
    "DXB": "Дубай",
    "IST": "Стамбул",
    # Европа
    "FRA": "Франкфурт",
    "CDG": "Париж (Шарль-де-Голль)",
    "ORY": "Париж (Орли)",
    "LHR": "Лондон (Хитроу)",
    "LGW": "Лондон (Гатвик)",
    "STN": "Лондон (Станстед)",
    "BER": "Берлин",
    "SXF": "Берлин (Шёнефельд)",
    "TXL": "Берлин (Тегель)",
    "AMS": "Амстердам",
    "PRG": "Прага",
    "FCO": "Рим",
    "MXP": "Милан",
    "LIN": "Милан (Линате)",
    "MAD": "Мадрид",
    "BCN": "Барселона",
    "VIE": "Вена",
    "WAW": "Варшава",
    # Америка
    "JFK": "Нью-Йорк (Кеннеди)",
    "LGA": "Нью-Йорк (Ла-Гуардия)",
    "EWR": "Нью-Йорк (Ньюарк)",
    "LAX": "Лос-Анджелес",
    "MIA": "Майами",
    "ORD": "Чикаго",
    "MDW": "Чикаго (Мидуэй)",
    "YYZ": "Торонто",
    "YVR": "Ванкувер",
    # Россия и СНГ
    "SVO": "Москва (Шереметьево)",
    "DME": "Москва (Домодедово)",
    "VKO": "Москва (Внуково)",
    "LED": "Санкт-Петербург",
    "SVX": "Екатеринбург",
    "KJA": "Красноярск",
    "IKT": "Иркутск",
    "VVO": "Владивосток",
    "KHV": "Хабаровск",
    "ALA": "Алматы",
    "TAS": "Ташкент",
    "FRU": "Бишкек",
    # Города вылета
    "OVB": "Новосибирск",
    "BAX": "Барнаул",
}

IATA_RE = re.compile(r"^[A-Za-z]{3}$")


class UnresolvedCityError(LookupError):
    """Город не найден в справочнике."""

    def __init__(self, text: str) -> None:
        super().__init__(f"city not found: {text!r}")
        self.text = text


def normalize(text: str) -> str:
    return text.strip().lower()


class AirportDirectory:
    """Read-only lookup between city names and IATA codes.

    ``resolve`` tries an exact key first and then scans the keys in sorted
    order for a substring match in either direction, so the first key in
    alphabetical order wins. ``resolve_origin`` only does the exact step.
    """

    def __init__(
        self,
        cities: Mapping[str, Sequence[str]] = CITY_AIRPORTS,
        names: Mapping[str, str] = AIRPORT_NAMES,
    ) -> None:
        self._cities: Dict[str, Tuple[str, ...]] = {}
        for key, codes in cities.items():
            if not codes:
                raise ValueError(f"empty airport list for {key!r}")
            self._cities[normalize(key)] = tuple(c.upper() for c in codes)
        self._names = {code.upper(): name for code, name in names.items()}
        self._scan_order = sorted(self._cities)

    def display_name(self, code: str) -> str:
        """Return the human-readable name for *code* (or the code itself)."""
        return self._names.get(code.upper(), code.upper())

    def resolve(self, text: str) -> Tuple[List[str], str]:
        normalized = normalize(text)
        if not normalized:
            raise UnresolvedCityError(text)

        codes = self._cities.get(normalized)
        if codes is None:
            for key in self._scan_order:
                if key in normalized or normalized in key:
                    logger.debug("Fuzzy match %r -> %r", normalized, key)
                    codes = self._cities[key]
                    break
        if codes is None:
            raise UnresolvedCityError(text)
        return list(codes), self.display_name(codes[0])

    def resolve_origin(self, text: str) -> Tuple[List[str], str]:
        codes = self._cities.get(normalize(text))
        if codes is None:
            raise UnresolvedCityError(text)
        return list(codes), self.display_name(codes[0])

    def resolve_code(self, text: str) -> Optional[Tuple[str, str]]:
        """Accept a literal Latin IATA code such as ``BKK``."""
        candidate = text.strip()
        if not IATA_RE.match(candidate):
            return None
        code = candidate.upper()
        return code, self.display_name(code)

    def city_list(self) -> str:
        seen = set()
        lines = []
        for codes in self._cities.values():
            if codes[0] in seen:
                continue
            seen.add(codes[0])
            lines.append(f"{codes[0]} - {self.display_name(codes[0])}")
        return "\n".join(sorted(lines))


DIRECTORY = AirportDirectory()


__all__ = [
    "AIRPORT_NAMES",
    "CITY_AIRPORTS",
    "DIRECTORY",
    "AirportDirectory",
    "UnresolvedCityError",
    "normalize",
]
