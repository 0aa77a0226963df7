"""Per-chat delivery of the strategy catalog.

Every subscriber owns one APScheduler interval job. A job sends the next
catalog entry on each run and removes itself once the catalog is exhausted,
so subscribers never wait on each other.

Subscriber records live in a store with ``get``/``set``/``all``. The default
:class:`MemoryStore` keeps them for the lifetime of the process only;
:class:`SqliteStore` keeps progress across restarts.
"""

import asyncio
import contextlib
import enum
from dataclasses import dataclass
from typing import Dict, Optional, Sequence

import aiosqlite
from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.asyncio import AsyncIOScheduler

from . import config
from .errors import PartialDeliveryFailure
from .notifier import Notifier

SUBSCRIBED_TEXT = (
    "\U0001f9e0 You have successfully *subscribed* to strategy notifications!\n\n"
    "Expect expert strategies delivered right here! \U0001f680"
)
RESUMED_TEXT = "\U0001f9e0 Strategy notifications *resumed*! \U0001f680"
ALREADY_TEXT = "✅ You are already subscribed!"
UNSUBSCRIBED_TEXT = "\U0001f515 Strategy notifications paused."
NOT_SUBSCRIBED_TEXT = "ℹ️ You are not receiving strategy notifications."


class SubscriberState(str, enum.Enum):
    ACTIVE = "active"
    STOPPED = "stopped"
    EXHAUSTED = "exhausted"


@dataclass
class Subscriber:
    chat_id: int
    next_index: int = 0
    state: SubscriberState = SubscriberState.ACTIVE


class MemoryStore:
    """Keep subscribers in a dict for the lifetime of the process."""

    def __init__(self) -> None:
        self._records: Dict[int, Subscriber] = {}

    async def get(self, chat_id: int) -> Optional[Subscriber]:
        record = self._records.get(chat_id)
        if record is None:
            return None
        return Subscriber(record.chat_id, record.next_index, record.state)

    async def set(self, subscriber: Subscriber) -> None:
        self._records[subscriber.chat_id] = Subscriber(
            subscriber.chat_id, subscriber.next_index, subscriber.state
        )

    async def all(self) -> list[Subscriber]:
        return [
            Subscriber(r.chat_id, r.next_index, r.state)
            for r in self._records.values()
        ]


class SqliteStore:
    """Persist subscriber progress in an SQLite database."""

    def __init__(self, path: str) -> None:
        self.path = path

    async def init(self) -> None:
        """Create the subscribers table if it does not already exist."""
        async with aiosqlite.connect(self.path) as db:
            await db.execute(
                """
                CREATE TABLE IF NOT EXISTS subscribers (
                    chat_id INTEGER PRIMARY KEY,
                    next_index INTEGER NOT NULL DEFAULT 0,
                    state TEXT NOT NULL
                )
                """
            )
            await db.commit()

    async def get(self, chat_id: int) -> Optional[Subscriber]:
        async with aiosqlite.connect(self.path) as db:
            cursor = await db.execute(
                "SELECT chat_id, next_index, state FROM subscribers WHERE chat_id = ?",
                (chat_id,),
            )
            row = await cursor.fetchone()
            await cursor.close()
        if not row:
            return None
        return Subscriber(row[0], row[1], SubscriberState(row[2]))

    async def set(self, subscriber: Subscriber) -> None:
        async with aiosqlite.connect(self.path) as db:
            await db.execute(
                "INSERT INTO subscribers (chat_id, next_index, state) VALUES (?, ?, ?) "
                "ON CONFLICT(chat_id) DO UPDATE SET "
                "next_index = excluded.next_index, state = excluded.state",
                (
                    subscriber.chat_id,
                    subscriber.next_index,
                    subscriber.state.value,
                ),
            )
            await db.commit()

    async def all(self) -> list[Subscriber]:
        async with aiosqlite.connect(self.path) as db:
            async with db.execute(
                "SELECT chat_id, next_index, state FROM subscribers"
            ) as cursor:
                rows = await cursor.fetchall()
        return [Subscriber(r[0], r[1], SubscriberState(r[2])) for r in rows]


class SubscriptionEngine:
    """Deliver ``catalog`` to every subscriber, one entry per ``interval``.

    ``subscribe`` sends a confirmation and the first entry right away, then
    registers an interval job for the rest. Calls for the same chat are
    serialised by a per-chat lock so a chat never gets two jobs.
    """

    def __init__(
        self,
        notifier: Notifier,
        catalog: Optional[Sequence[str]] = None,
        *,
        interval: Optional[int] = None,
        store=None,
        scheduler: Optional[AsyncIOScheduler] = None,
        reply_markup=None,
    ) -> None:
        self.notifier = notifier
        self.catalog = tuple(config.STRATEGIES if catalog is None else catalog)
        self.interval = config.STRATEGY_INTERVAL if interval is None else interval
        self.store = store if store is not None else MemoryStore()
        self.scheduler = scheduler if scheduler is not None else AsyncIOScheduler()
        self.reply_markup = reply_markup
        self._locks: Dict[int, asyncio.Lock] = {}
        self._lock_users: Dict[int, int] = {}
        self._jobs: set[int] = set()

    @staticmethod
    def job_id(chat_id: int) -> str:
        return f"strategy:{chat_id}"

    def is_scheduled(self, chat_id: int) -> bool:
        return chat_id in self._jobs

    async def subscribe(self, chat_id: int) -> bool:
        """Start (or resume) delivery for ``chat_id``.

        Returns ``True`` when a schedule was started and ``False`` when the
        chat is already active or has received the whole catalog.
        """
        async with self._chat_lock(chat_id):
            subscriber = await self.store.get(chat_id)
            enrolled = subscriber is not None and subscriber.state in (
                SubscriberState.ACTIVE,
                SubscriberState.EXHAUSTED,
            )
            if enrolled:
                await self.notifier.send_text(
                    chat_id, ALREADY_TEXT, reply_markup=self.reply_markup
                )
                return False
            resumed = subscriber is not None
            subscriber = subscriber or Subscriber(chat_id)
            subscriber.state = SubscriberState.ACTIVE
            await self.store.set(subscriber)
            config.logger.info(
                "chat %s subscribed at strategy %s", chat_id, subscriber.next_index
            )
            await self.notifier.send_text(
                chat_id,
                RESUMED_TEXT if resumed else SUBSCRIBED_TEXT,
                reply_markup=self.reply_markup,
            )
            if await self._deliver(chat_id):
                self._schedule(chat_id)
            return True

    async def unsubscribe(self, chat_id: int) -> bool:
        """Stop delivery for ``chat_id``; progress is kept for a later resume."""
        async with self._chat_lock(chat_id):
            subscriber = await self.store.get(chat_id)
            if subscriber is None or subscriber.state is not SubscriberState.ACTIVE:
                await self.notifier.send_text(
                    chat_id, NOT_SUBSCRIBED_TEXT, reply_markup=self.reply_markup
                )
                return False
            subscriber.state = SubscriberState.STOPPED
            await self.store.set(subscriber)
            self._cancel(chat_id)
            config.logger.info(
                "chat %s unsubscribed at strategy %s", chat_id, subscriber.next_index
            )
            await self.notifier.send_text(
                chat_id, UNSUBSCRIBED_TEXT, reply_markup=self.reply_markup
            )
            return True

    async def status(self, chat_id: int) -> Optional[Subscriber]:
        return await self.store.get(chat_id)

    async def resume(self) -> int:
        """Register jobs for every active subscriber found in the store."""
        count = 0
        for subscriber in await self.store.all():
            if subscriber.state is not SubscriberState.ACTIVE:
                continue
            if subscriber.next_index >= len(self.catalog):
                subscriber.state = SubscriberState.EXHAUSTED
                await self.store.set(subscriber)
                continue
            self._schedule(subscriber.chat_id)
            count += 1
        if count:
            config.logger.info("resumed %s strategy schedules", count)
        return count

    def shutdown(self) -> None:
        """Remove every job this engine registered."""
        for chat_id in list(self._jobs):
            self._cancel(chat_id)
            if chat_id not in self._lock_users:
                self._locks.pop(chat_id, None)

    @contextlib.asynccontextmanager
    async def _chat_lock(self, chat_id: int):
        """Hold the chat's lock; drop it when unused and no job is scheduled."""
        lock = self._locks.setdefault(chat_id, asyncio.Lock())
        self._lock_users[chat_id] = self._lock_users.get(chat_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[chat_id] -= 1
            if not self._lock_users[chat_id]:
                del self._lock_users[chat_id]
                if chat_id not in self._jobs:
                    self._locks.pop(chat_id, None)

    async def tick(self, chat_id: int) -> None:
        """Scheduled job body: send the next entry or retire the job."""
        async with self._chat_lock(chat_id):
            if not await self._deliver(chat_id):
                self._cancel(chat_id)

    async def _deliver(self, chat_id: int) -> bool:
        """Send the next catalog entry and report whether more remain."""
        subscriber = await self.store.get(chat_id)
        if subscriber is None or subscriber.state is not SubscriberState.ACTIVE:
            return False
        index = subscriber.next_index
        if index >= len(self.catalog):
            subscriber.state = SubscriberState.EXHAUSTED
            await self.store.set(subscriber)
            return False
        subscriber.next_index = index + 1
        if subscriber.next_index >= len(self.catalog):
            subscriber.state = SubscriberState.EXHAUSTED
        await self.store.set(subscriber)

        try:
            delivered = await self.notifier.send_text(
                chat_id, self.catalog[index], reply_markup=self.reply_markup
            )
        except Exception:
            config.logger.exception(
                "unexpected error sending strategy %s to chat %s", index, chat_id
            )
        else:
            if delivered:
                config.logger.info("sent strategy %s to chat %s", index, chat_id)
            else:
                failure = PartialDeliveryFailure(chat_id, index, "send rejected")
                config.logger.warning("strategy delivery failed: %s", failure)

        if subscriber.state is SubscriberState.EXHAUSTED:
            config.logger.info("all strategies sent to chat %s", chat_id)
            return False
        return True

    def _schedule(self, chat_id: int) -> None:
        self.scheduler.add_job(
            self.tick,
            "interval",
            seconds=self.interval,
            args=(chat_id,),
            id=self.job_id(chat_id),
            replace_existing=True,
            coalesce=True,
            max_instances=1,
        )
        self._jobs.add(chat_id)

    def _cancel(self, chat_id: int) -> None:
        self._jobs.discard(chat_id)
        try:
            self.scheduler.remove_job(self.job_id(chat_id))
        except JobLookupError:
            pass
