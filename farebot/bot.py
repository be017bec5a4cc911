"""Telegram bot: command handlers on top of :class:`FareSearch`."""

from __future__ import annotations

import asyncio
import functools
import html
import logging
from typing import List, Optional, Tuple

from telegram import Update
from telegram.constants import ParseMode
from telegram.ext import (
    Application,
    CommandHandler,
    ContextTypes,
    MessageHandler,
    filters,
)

from .airports import DIRECTORY, UnresolvedCityError
from .config import SearchConfigError, Settings
from .notifier import send_report
from .search import FareSearch

logger = logging.getLogger(__name__)

DENIED_TEXT = "❌ У вас нет прав для использования этого бота."
UNKNOWN_TEXT = "❓ Неизвестная команда. Используйте /help для просмотра доступных команд."
SEARCH_STARTED_TEXT = "🔍 <b>Начинаю поиск билетов...</b>\nЭто займет несколько секунд."
SEARCH_QUEUED_TEXT = "⏳ Поиск уже выполняется, ваш запрос поставлен в очередь."

HELP_TEXT = """❓ <b>Помощь по боту</b>

<b>Команды:</b>
/search - Запустить поиск билетов
/search ГОРОД [МЕСЯЦЕВ] - Сменить направление и искать
/cities - Список городов
/origin list - Города вылета
/origin set ГОРОД - Сменить город вылета
/status - Показать статус бота
/help - Эта справка

<b>Автоматический поиск:</b>
Бот автоматически ищет билеты по расписанию и присылает уведомления.

<b>Ручной поиск:</b>
Используйте команду /search в любое время для запуска поиска."""

SEARCH_USAGE = (
    "💡 <i>Используйте:</i>\n"
    "<code>/search бангкок</code> - поиск по названию\n"
    "<code>/search BKK</code> - поиск по коду аэропорта\n"
    "<code>/search бангкок 6</code> - поиск на 6 месяцев\n"
    "<code>/cities</code> - список доступных городов"
)

ORIGIN_USAGE = (
    "💡 <i>Используйте:</i>\n"
    "<code>/origin list</code> - список доступных городов\n"
    "<code>/origin set москва</code> - установить Москву"
)


def _search(context: ContextTypes.DEFAULT_TYPE) -> FareSearch:
    return context.bot_data["search"]


def is_user_allowed(user_id: Optional[int], admin_ids: List[int]) -> bool:
    """An empty allow-list lets everyone in."""
    if not admin_ids:
        return True
    return user_id in admin_ids


def restricted(handler):
    @functools.wraps(handler)
    async def wrapper(update: Update, context: ContextTypes.DEFAULT_TYPE):
        user = update.effective_user
        admin_ids = context.bot_data.get("admin_ids") or []
        if not is_user_allowed(user.id if user else None, admin_ids):
            logger.info("Rejected command from user %s", user.id if user else None)
            await update.effective_message.reply_text(DENIED_TEXT)
            return None
        return await handler(update, context)

    return wrapper


async def _reply(update: Update, text: str) -> None:
    await update.effective_message.reply_text(text, parse_mode=ParseMode.HTML)


def parse_search_args(args: List[str]) -> Tuple[str, Optional[int]]:
    """Split ``/search`` arguments into city text and optional month count."""
    if len(args) >= 2:
        try:
            months = int(args[-1])
        except ValueError:
            pass
        else:
            return " ".join(args[:-1]), months
    return " ".join(args), None


# ────────────────────────────────────────────────────────────────
# Handlers
# ────────────────────────────────────────────────────────────────


@restricted
async def start(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    cfg = _search(context).snapshot()
    origins = "/".join(DIRECTORY.display_name(c) for c in cfg.origins)
    text = (
        "👋 <b>Бот поиска дешёвых авиабилетов</b>\n\n"
        "<b>Команды:</b>\n"
        "/search - 🔍 Начать поиск билетов\n"
        "/status - 📊 Статус бота\n"
        "/help - ❓ Помощь\n\n"
        "<b>Направления:</b>\n"
        f"• {html.escape(origins)} → {html.escape(DIRECTORY.display_name(cfg.destination))}\n"
        f"• Макс. цена: {cfg.max_price:,} руб.\n"
        f"• Поиск на {cfg.months_ahead} мес. вперёд"
    )
    await _reply(update, text)


@restricted
async def help_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    await _reply(update, HELP_TEXT)


@restricted
async def status(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    search = _search(context)
    cfg = search.snapshot()
    schedule = context.bot_data.get("schedule", "")
    text = (
        "📊 <b>Статус бота</b>\n\n"
        "<b>Направления поиска:</b>\n"
        f"• {'/'.join(cfg.origins)} → {cfg.destination}\n\n"
        "<b>Параметры:</b>\n"
        f"• Макс. цена: {cfg.max_price} руб.\n"
        f"• Макс. время в пути: {cfg.max_duration} мин.\n"
        f"• Глубина поиска: {cfg.months_ahead} месяцев\n"
    )
    if schedule:
        text += f"• Авто-поиск: <code>{html.escape(schedule)}</code>\n"
    text += "\n" + ("Идёт поиск 🔄" if search.running else "Бот работает в штатном режиме 🟢")
    await _reply(update, text)


@restricted
async def cities(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    text = (
        "🏙️ <b>Доступные города для поиска:</b>\n\n"
        + html.escape(DIRECTORY.city_list())
        + "\n\n💡 <i>Используйте команду /search ГОРОД для поиска</i>\n"
        + "<code>/search</code> - поиск в текущее направление"
    )
    await send_report(context.bot, update.effective_chat.id, text)


@restricted
async def search(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    fare_search = _search(context)
    args = context.args or []

    if args:
        city, months = parse_search_args(args)
        resolved = DIRECTORY.resolve_code(city)
        if resolved is not None:
            codes, name = [resolved[0]], resolved[1]
        else:
            try:
                codes, name = DIRECTORY.resolve(city)
            except UnresolvedCityError:
                await _reply(
                    update,
                    f"❌ <b>Город '{html.escape(city)}' не найден.</b>\n\n{SEARCH_USAGE}",
                )
                return
        if months is not None and months <= 0:
            await _reply(update, "❌ Количество месяцев должно быть больше нуля.")
            return

        old = fare_search.update(destination=codes[0], months_ahead=months)
        lines = [
            "✅ <b>Направление изменено:</b>",
            f"{DIRECTORY.display_name(old.destination)} ➡️ {html.escape(name)}",
        ]
        if len(codes) > 1:
            lines.append(f"🏢 Доступные аэропорты: {', '.join(codes)}")
        if months is not None:
            lines.append(f"📅 Глубина поиска: {old.months_ahead} мес. → {months} мес.")
        await _reply(update, "\n".join(lines))

    await _reply(update, SEARCH_QUEUED_TEXT if fare_search.running else SEARCH_STARTED_TEXT)

    try:
        result = await asyncio.to_thread(fare_search.run)
    except SearchConfigError as exc:
        await _reply(update, f"❌ <b>Ошибка при поиске:</b>\n<code>{html.escape(str(exc))}</code>")
        return
    except Exception as exc:
        logger.exception("Search failed")
        await _reply(update, f"❌ <b>Ошибка при поиске:</b>\n<code>{html.escape(str(exc))}</code>")
        return

    await send_report(context.bot, update.effective_chat.id, result)


@restricted
async def origin(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    fare_search = _search(context)
    args = context.args or []

    if not args or args[0].lower() == "list":
        cfg = fare_search.snapshot()
        text = (
            "🛫 <b>Текущие города вылета:</b> "
            + ", ".join(f"{c} ({DIRECTORY.display_name(c)})" for c in cfg.origins)
            + "\n\n"
            + ORIGIN_USAGE
        )
        await _reply(update, text)
        return

    if args[0].lower() != "set" or len(args) < 2:
        await _reply(update, "❌ Укажите город вылета. Например: <code>/origin set москва</code>")
        return

    city = " ".join(args[1:])
    try:
        codes, name = DIRECTORY.resolve_origin(city)
    except UnresolvedCityError:
        await _reply(
            update,
            f"❌ <b>Город вылета '{html.escape(city)}' не найден.</b>\n\n{ORIGIN_USAGE}",
        )
        return

    old_origins = fare_search.set_origin(codes[0])
    new_origins = fare_search.snapshot().origins
    text = (
        "✅ <b>Город вылета изменен:</b>\n"
        f"{'/'.join(old_origins)} ➡️ {'/'.join(new_origins)} ({html.escape(name)})"
    )
    if len(codes) > 1:
        text += f"\n🏢 Доступные аэропорты: {', '.join(codes)}"
    await _reply(update, text)


@restricted
async def unknown(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    await update.effective_message.reply_text(UNKNOWN_TEXT)


# ────────────────────────────────────────────────────────────────
# Application
# ────────────────────────────────────────────────────────────────


async def _post_init(application: Application) -> None:
    me = await application.bot.get_me()
    logger.info("Authorized as %s", me.username)
    scheduler = application.bot_data.get("scheduler")
    if scheduler is not None:
        scheduler.start()
        logger.info("Scheduler started")


async def _post_shutdown(application: Application) -> None:
    scheduler = application.bot_data.get("scheduler")
    if scheduler is not None and scheduler.running:
        scheduler.shutdown(wait=False)


def build_application(settings: Settings, fare_search: FareSearch) -> Application:
    if not settings.telegram_token:
        raise SearchConfigError("TELEGRAM_BOT_TOKEN is not set")

    application = (
        Application.builder()
        .token(settings.telegram_token)
        .post_init(_post_init)
        .post_shutdown(_post_shutdown)
        .build()
    )
    application.bot_data["search"] = fare_search
    application.bot_data["admin_ids"] = list(settings.admin_user_ids)
    application.bot_data["schedule"] = settings.search_cron

    application.add_handler(CommandHandler("start", start))
    application.add_handler(CommandHandler("help", help_command))
    application.add_handler(CommandHandler("status", status))
    application.add_handler(CommandHandler(["search", "find"], search, block=False))
    application.add_handler(CommandHandler("cities", cities))
    application.add_handler(CommandHandler("origin", origin))
    application.add_handler(MessageHandler(filters.COMMAND, unknown))
    return application


__all__ = ["build_application", "is_user_allowed", "parse_search_args"]
