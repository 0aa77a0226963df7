import pytest

from axenbot.subscriptions import (
    SqliteStore,
    Subscriber,
    SubscriberState,
    SubscriptionEngine,
)


class DummyNotifier:
    def __init__(self):
        self.sent = []

    async def send_text(self, chat_id, text, **kwargs):
        self.sent.append((chat_id, text))
        return True


class DummyScheduler:
    def __init__(self):
        self.jobs = {}

    def add_job(self, func, trigger, **kwargs):
        self.jobs[kwargs["id"]] = (func, kwargs)

    def remove_job(self, job_id):
        self.jobs.pop(job_id)


@pytest.mark.asyncio
async def test_sqlite_store_round_trip(tmp_path):
    store = SqliteStore(str(tmp_path / "subs.db"))
    await store.init()
    assert await store.get(1) is None
    await store.set(Subscriber(1))
    await store.set(Subscriber(1, 3, SubscriberState.STOPPED))
    await store.set(Subscriber(2, 6, SubscriberState.EXHAUSTED))
    assert await store.get(1) == Subscriber(1, 3, SubscriberState.STOPPED)
    records = sorted(await store.all(), key=lambda s: s.chat_id)
    assert [r.chat_id for r in records] == [1, 2]
    assert records[1].state is SubscriberState.EXHAUSTED


@pytest.mark.asyncio
async def test_progress_survives_restart(tmp_path):
    path = str(tmp_path / "subs.db")
    store = SqliteStore(path)
    await store.init()
    catalog = ["a", "b", "c"]
    engine = SubscriptionEngine(
        DummyNotifier(), catalog, interval=30, store=store, scheduler=DummyScheduler()
    )
    await engine.subscribe(7)

    reopened = SqliteStore(path)
    await reopened.init()
    notifier = DummyNotifier()
    scheduler = DummyScheduler()
    restarted = SubscriptionEngine(
        notifier, catalog, interval=30, store=reopened, scheduler=scheduler
    )
    assert await restarted.resume() == 1
    func, kwargs = scheduler.jobs[restarted.job_id(7)]
    await func(*kwargs["args"])
    assert notifier.sent == [(7, "b")]
