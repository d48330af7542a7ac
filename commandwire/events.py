"""Event payloads and collaborator contracts.

The dispatcher depends only on the small protocols defined here; any
chat transport that provides them can feed messages into a
CommandService. SignalClient is the bundled implementation.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import (
    TYPE_CHECKING,
    Awaitable,
    Callable,
    Optional,
    Protocol,
    Tuple,
)

if TYPE_CHECKING:
    from .commands.command import Command


class CommandErrorType(str, Enum):
    """Why a message did not reach a command handler, or why the handler failed."""
    EXCEPTION = "exception"              # handler raised
    UNKNOWN_COMMAND = "unknown_command"  # no registered path matched
    BAD_PERMISSIONS = "bad_permissions"  # a permission check denied
    BAD_ARG_COUNT = "bad_arg_count"      # no candidate accepted the arguments
    INVALID_INPUT = "invalid_input"      # arguments could not be tokenized


# --- Transport-agnostic collaborators ---

class User(Protocol):
    id: str


class Channel(Protocol):
    id: str

    async def send_message(self, text: str) -> None: ...


class Message(Protocol):
    text: str
    user: Optional[User]
    channel: Channel


MessageHandler = Callable[[Message], Awaitable[None]]


class MessageSource(Protocol):
    """Delivers inbound messages and knows who the bot itself is."""

    @property
    def current_user(self) -> Optional[User]: ...

    def subscribe(self, handler: MessageHandler) -> None: ...

    async def create_private_channel(self, user: User) -> Channel: ...


# --- Payloads ---

@dataclass(frozen=True)
class CommandEventArgs:
    """A message together with the command it resolved to, if any.

    Attributes:
        message: The inbound message.
        command: Matched command; None for UNKNOWN_COMMAND and for
            BAD_ARG_COUNT after every candidate was tried.
        args: Parsed arguments; None unless parsing succeeded.
    """

    message: Message
    command: Optional["Command"] = None
    args: Optional[Tuple[str, ...]] = None

    @property
    def user(self) -> Optional[User]:
        return self.message.user

    @property
    def channel(self) -> Channel:
        return self.message.channel

    def get_arg(self, name: str) -> str:
        """Value of the parameter called ``name``.

        For a MULTIPLE parameter this is its first token; use get_args
        for all of them.
        """
        values = self.get_args(name)
        if not values:
            raise IndexError(f"No value for parameter '{name}'")
        return values[0]

    def get_args(self, name: str) -> Tuple[str, ...]:
        """Every value from the parameter called ``name`` onwards."""
        if self.command is None or self.args is None:
            raise ValueError("Event has no parsed arguments")
        index = self.command.parameter_index(name)
        return self.args[index:]


@dataclass(frozen=True)
class CommandErrorEventArgs:
    """Payload of a command error event.

    Attributes:
        error_type: The failure kind.
        event: Message, matched command and arguments where known.
        exception: Cause, if any (handler fault or permission reason).
    """

    error_type: CommandErrorType
    event: CommandEventArgs
    exception: Optional[BaseException] = None

    @property
    def message(self) -> Message:
        return self.event.message

    @property
    def command(self) -> Optional["Command"]:
        return self.event.command
