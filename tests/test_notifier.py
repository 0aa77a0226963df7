import pytest
from telegram.error import NetworkError

from axenbot.notifier import Notifier


class DummyBot:
    def __init__(self, fail=False):
        self.fail = fail
        self.messages = []
        self.photos = []

    async def send_message(self, chat_id, text, **kwargs):
        if self.fail:
            raise NetworkError("connection reset")
        self.messages.append((chat_id, text, kwargs))

    async def send_photo(self, chat_id, photo, **kwargs):
        if self.fail:
            raise NetworkError("connection reset")
        self.photos.append((chat_id, photo, kwargs))


@pytest.mark.asyncio
async def test_send_text_success():
    bot = DummyBot()
    notifier = Notifier(bot)
    assert await notifier.send_text(1, "*hello*")
    chat_id, text, kwargs = bot.messages[0]
    assert (chat_id, text) == (1, "*hello*")
    assert kwargs["parse_mode"] == "Markdown"
    assert len(notifier.chat_messages[1]) == 1


@pytest.mark.asyncio
async def test_send_photo_with_caption():
    bot = DummyBot()
    notifier = Notifier(bot)
    assert await notifier.send_photo(2, "https://img.example/c.png", caption="trend")
    assert bot.photos[0][1] == "https://img.example/c.png"
    assert bot.photos[0][2]["caption"] == "trend"


@pytest.mark.asyncio
async def test_send_failures_are_reported_not_raised():
    notifier = Notifier(DummyBot(fail=True))
    assert await notifier.send_text(1, "hi") is False
    assert await notifier.send_photo(1, b"png") is False
    assert not notifier.chat_messages[1]
