from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from datetime import date
from typing import Callable, List, Optional, Tuple

from .aviasales_fetcher import AviasalesFetcher, AviasalesFetcherError
from .config import SearchConfig, SearchConfigError, iata_code, positive
from .models import Fare
from .report import render_report

logger = logging.getLogger(__name__)

NO_FARES_MESSAGE = "ℹ️ Дешёвых билетов не найдено."


# ────────────────────────────────────────────────────────────────
# Helper
# ────────────────────────────────────────────────────────────────


def month_strings(start: date, count: int) -> List[str]:
    """``YYYY-MM`` for *count* consecutive months starting at *start*."""
    base = start.year * 12 + start.month - 1
    return [f"{(base + i) // 12:04d}-{(base + i) % 12 + 1:02d}" for i in range(count)]


@dataclass
class SearchResult:
    fares: List[Fare] = field(default_factory=list)
    failures: List[Tuple[str, str, AviasalesFetcherError]] = field(default_factory=list)


# ────────────────────────────────────────────────────────────────
# Основная логика
# ────────────────────────────────────────────────────────────────


class FareSearch:
    """Owns the search configuration and runs searches one at a time.

    Runs hold ``_run_lock`` for their whole duration, so concurrent callers
    queue. The configuration is guarded by ``_config_lock`` and each run works
    on a copy taken when it starts: changes made during a run apply to the
    next one.
    """

    def __init__(
        self,
        config: SearchConfig,
        fetcher: AviasalesFetcher,
        *,
        request_delay_s: float = 1.0,
        sleep: Callable[[float], None] = time.sleep,
        today: Optional[Callable[[], date]] = None,
    ) -> None:
        self._config = config.copy()
        self.fetcher = fetcher
        self.request_delay_s = request_delay_s
        self._sleep = sleep
        self._today = today or date.today
        self._run_lock = threading.Lock()
        self._config_lock = threading.Lock()

    @property
    def running(self) -> bool:
        return self._run_lock.locked()

    def snapshot(self) -> SearchConfig:
        with self._config_lock:
            return self._config.copy()

    def update(
        self,
        *,
        destination: Optional[str] = None,
        months_ahead: Optional[int] = None,
    ) -> SearchConfig:
        """Change destination and/or horizon in one step.

        Both values are validated before anything is applied. Returns the
        configuration as it was before the change.
        """
        if destination is not None:
            destination = iata_code(destination)
        if months_ahead is not None:
            positive("months_ahead", months_ahead)
        with self._config_lock:
            old = self._config.copy()
            if destination is not None:
                self._config.destination = destination
            if months_ahead is not None:
                self._config.months_ahead = months_ahead
            new = self._config.copy()
        logger.info(
            "Search changed %s/%s mo -> %s/%s mo",
            old.destination,
            old.months_ahead,
            new.destination,
            new.months_ahead,
        )
        return old

    def set_destination(self, code: str) -> str:
        """Switch destination, returning the previous code."""
        return self.update(destination=code).destination

    def set_months_ahead(self, months: int) -> int:
        return self.update(months_ahead=months).months_ahead

    def set_origin(self, code: str) -> List[str]:
        """Search from *code* only, unless it is already one of the origins.

        Returns the previous origin list.
        """
        code = iata_code(code)
        with self._config_lock:
            old = list(self._config.origins)
            if code not in old:
                self._config.origins = [code]
            new = list(self._config.origins)
        logger.info("Origins %s -> %s", "/".join(old), "/".join(new))
        return old

    def collect(self, config: Optional[SearchConfig] = None) -> SearchResult:
        """Fetch every (origin, month) pair; failed fetches are skipped."""
        cfg = config.copy() if config is not None else self.snapshot()
        if not cfg.origins:
            raise SearchConfigError("no origins configured")
        if cfg.months_ahead <= 0:
            raise SearchConfigError("months_ahead must be greater than 0")

        constraints = cfg.constraints()
        result = SearchResult()
        for origin in cfg.origins:
            for month in month_strings(self._today(), cfg.months_ahead):
                logger.info("Fetching: %s ➔ %s (%s)", origin, cfg.destination, month)
                try:
                    fares = self.fetcher.search_prices(
                        origin, cfg.destination, month, constraints
                    )
                except AviasalesFetcherError as exc:
                    logger.warning(
                        "  Failed to fetch %s->%s %s: %s",
                        origin,
                        cfg.destination,
                        month,
                        exc,
                    )
                    result.failures.append((origin, month, exc))
                else:
                    result.fares.extend(fares)
                if self.request_delay_s > 0:
                    self._sleep(self.request_delay_s)

        logger.info(
            "Collected %d fares, %d failed requests",
            len(result.fares),
            len(result.failures),
        )
        return result

    def run(self, config: Optional[SearchConfig] = None) -> str:
        """Run one search and return the rendered report."""
        with self._run_lock:
            cfg = config.copy() if config is not None else self.snapshot()
            result = self.collect(cfg)
            if not result.fares:
                return NO_FARES_MESSAGE
            return render_report(result.fares, cfg)


__all__ = ["FareSearch", "NO_FARES_MESSAGE", "SearchResult", "month_strings"]
