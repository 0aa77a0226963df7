"""Outbound Telegram messages with rate limiting and delivery results."""

import asyncio
import time
from collections import defaultdict, deque
from io import BytesIO
from typing import Deque, Dict, Optional, Union

from telegram import Bot
from telegram.constants import ParseMode
from telegram.error import TelegramError

from . import config

PER_CHAT_LIMIT = 20
PER_CHAT_WINDOW = 60
GLOBAL_LIMIT = 30
GLOBAL_WINDOW = 1

Photo = Union[str, bytes, BytesIO]


class Notifier:
    """Send texts and photos to chats.

    Both send methods return ``True`` once Telegram accepted the message and
    ``False`` when the request failed. Failures are logged and never raised so
    a background schedule can carry on after an undelivered step.
    """

    def __init__(self, bot: Bot) -> None:
        self.bot = bot
        self.chat_messages: Dict[int, Deque[float]] = defaultdict(deque)
        self.global_messages: Deque[float] = deque()

    async def _throttle(self, chat_id: int) -> None:
        """Wait until sending to ``chat_id`` respects Telegram's limits."""
        now = time.time()
        chat_q = self.chat_messages[chat_id]
        while chat_q and now - chat_q[0] > PER_CHAT_WINDOW:
            chat_q.popleft()
        while self.global_messages and now - self.global_messages[0] > GLOBAL_WINDOW:
            self.global_messages.popleft()
        if len(chat_q) >= PER_CHAT_LIMIT:
            wait = max(0, PER_CHAT_WINDOW - (now - chat_q[0]))
            await asyncio.sleep(wait)
        if len(self.global_messages) >= GLOBAL_LIMIT:
            wait = max(0, GLOBAL_WINDOW - (now - self.global_messages[0]))
            await asyncio.sleep(wait)

    def _record(self, chat_id: int) -> None:
        sent_at = time.time()
        self.chat_messages[chat_id].append(sent_at)
        self.global_messages.append(sent_at)

    async def send_text(
        self,
        chat_id: int,
        text: str,
        *,
        reply_markup=None,
        parse_mode: Optional[str] = ParseMode.MARKDOWN,
    ) -> bool:
        """Send ``text`` to ``chat_id`` and report whether it was delivered."""
        await self._throttle(chat_id)
        try:
            await self.bot.send_message(
                chat_id=chat_id,
                text=text,
                parse_mode=parse_mode,
                reply_markup=reply_markup,
            )
        except TelegramError as exc:
            config.logger.warning("send_message to %s failed: %s", chat_id, exc)
            return False
        self._record(chat_id)
        return True

    async def send_photo(
        self,
        chat_id: int,
        photo: Photo,
        *,
        caption: Optional[str] = None,
        reply_markup=None,
    ) -> bool:
        """Send an image URL or buffer to ``chat_id``."""
        await self._throttle(chat_id)
        try:
            await self.bot.send_photo(
                chat_id=chat_id,
                photo=photo,
                caption=caption,
                reply_markup=reply_markup,
            )
        except TelegramError as exc:
            config.logger.warning("send_photo to %s failed: %s", chat_id, exc)
            return False
        self._record(chat_id)
        return True
