"""Shared fakes for the message source contract."""

from dataclasses import dataclass
from typing import Optional

import pytest

from commandwire.service import CommandService


@dataclass(frozen=True)
class FakeUser:
    id: str


class FakeChannel:
    def __init__(self, id: str = "chan-1"):
        self.id = id
        self.sent = []

    async def send_message(self, text: str) -> None:
        self.sent.append(text)


@dataclass
class FakeMessage:
    text: str
    user: Optional[FakeUser]
    channel: FakeChannel


class FakeSource:
    """In-memory MessageSource."""

    def __init__(self, bot_id: str = "bot-account"):
        self.current_user = FakeUser(bot_id)
        self.handlers = []
        self.private_channels = {}

    def subscribe(self, handler):
        self.handlers.append(handler)

    async def create_private_channel(self, user):
        return self.private_channels.setdefault(user.id, FakeChannel(f"dm-{user.id}"))


class EventRecorder:
    """Collects ran-command and command-error events from a service."""

    def __init__(self, service: CommandService):
        self.errors = []
        self.ran = []
        service.on_command_error(self._on_error)
        service.on_ran_command(self._on_ran)

    async def _on_error(self, error):
        self.errors.append(error)

    async def _on_ran(self, event):
        self.ran.append(event)

    @property
    def error_types(self):
        return [e.error_type for e in self.errors]


@pytest.fixture
def source():
    return FakeSource()


@pytest.fixture
def channel():
    return FakeChannel()


@pytest.fixture
def make_channel():
    return FakeChannel


@pytest.fixture
def make_user():
    return FakeUser


@pytest.fixture
def make_message(channel):
    def _make(text, user_id="+15550001111", channel=channel):
        user = FakeUser(user_id) if user_id is not None else None
        return FakeMessage(text, user, channel)
    return _make


@pytest.fixture
def service():
    return CommandService(command_chars=("/",))


@pytest.fixture
def recorder(service):
    return EventRecorder(service)


@pytest.fixture
def make_recorder():
    return EventRecorder
