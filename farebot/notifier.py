from __future__ import annotations

import logging
from typing import List, Union

from telegram import Bot, LinkPreviewOptions
from telegram.constants import MessageLimit, ParseMode

logger = logging.getLogger(__name__)

NO_PREVIEW = LinkPreviewOptions(is_disabled=True)


def split_message(text: str, limit: int = MessageLimit.MAX_TEXT_LENGTH) -> List[str]:
    """Split *text* into chunks of at most *limit* characters.

    Cuts at blank lines (between report groups) first, then at line ends, so
    HTML tags opened on a line are closed within the same chunk.
    """
    if len(text) <= limit:
        return [text]

    chunks: List[str] = []
    current = ""
    for block in text.split("\n\n"):
        piece = block + "\n\n"
        if len(current) + len(piece) <= limit:
            current += piece
            continue
        if current:
            chunks.append(current.rstrip("\n"))
            current = ""
        if len(piece) <= limit:
            current = piece
            continue
        for line in piece.splitlines(keepends=True):
            if len(current) + len(line) > limit and current:
                chunks.append(current.rstrip("\n"))
                current = ""
            while len(line) > limit:
                chunks.append(line[:limit])
                line = line[limit:]
            current += line
    if current.strip():
        chunks.append(current.rstrip("\n"))
    return chunks


async def send_report(
    bot: Bot, chat_id: Union[int, str], text: str, *, silent: bool = False
) -> None:
    """Send *text* to *chat_id* as HTML without link previews."""
    for chunk in split_message(text):
        await bot.send_message(
            chat_id=chat_id,
            text=chunk,
            parse_mode=ParseMode.HTML,
            link_preview_options=NO_PREVIEW,
            disable_notification=silent,
        )


__all__ = ["send_report", "split_message"]
