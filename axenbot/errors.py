"""Exceptions raised at the bot's service boundaries."""


class AxenError(Exception):
    """Base class for errors the bot turns into user-facing messages."""


class TransportFailure(AxenError):
    """An external service was unreachable or returned a malformed response."""


class ValidationFailure(AxenError):
    """User supplied input (amount, address) was missing or invalid."""


class PartialDeliveryFailure(AxenError):
    """A single scheduled notification could not be delivered."""

    def __init__(self, chat_id: int, index: int, reason: str = "") -> None:
        self.chat_id = chat_id
        self.index = index
        self.reason = reason
        super().__init__(f"strategy {index} to chat {chat_id} failed: {reason}")
