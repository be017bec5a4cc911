"""tasks.py – расписание на APScheduler.

• по ``SEARCH_CRON`` (по умолчанию каждый день в 10:00) – поиск
  и отправка отчёта в чат и администраторам
"""

from __future__ import annotations

import asyncio
import logging
from typing import Iterable, Union

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from telegram import Bot
from telegram.error import TelegramError
from telegram.ext import Application

from .config import Settings
from .notifier import send_report
from .search import FareSearch

logger = logging.getLogger(__name__)

JOB_ID = "scheduled_search"


async def scheduled_search(
    bot: Bot, search: FareSearch, recipients: Iterable[Union[int, str]]
) -> None:
    """Run a search and deliver the report to every recipient."""
    logger.info("Scheduled search started")
    try:
        text = await asyncio.to_thread(search.run)
    except Exception:
        logger.exception("Scheduled search failed")
        return

    for chat_id in recipients:
        try:
            await send_report(bot, chat_id, text, silent=True)
        except TelegramError:
            logger.exception("Failed to deliver report to %s", chat_id)


def build_scheduler(
    application: Application, search: FareSearch, settings: Settings
) -> AsyncIOScheduler:
    """Create the cron scheduler and register it with *application*.

    The scheduler is started from the application's ``post_init`` hook so it
    shares the bot's event loop.
    """
    recipients = settings.recipients()
    if not recipients:
        logger.warning("No TELEGRAM_CHAT_ID or ADMIN_USER_IDS: scheduled reports go nowhere")

    sched = AsyncIOScheduler(timezone=settings.timezone)
    sched.add_job(
        scheduled_search,
        CronTrigger.from_crontab(settings.search_cron, timezone=settings.timezone),
        args=[application.bot, search, recipients],
        id=JOB_ID,
        max_instances=1,
        coalesce=True,
    )
    application.bot_data["scheduler"] = sched
    return sched


__all__ = ["build_scheduler", "scheduled_search"]
