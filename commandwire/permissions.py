"""Permission checks for commands.

A check answers "may this user run this command in this channel?" and
optionally says why not. Commands hold a tuple of checks; groups pass
theirs down to every command created inside them.

Also provides Signal identity helpers (UUID detection, E.164
normalization, log masking) used by the sender allowlist check.
"""

import re
from typing import TYPE_CHECKING, Callable, Iterable, Optional, Protocol, Tuple

from .logging_config import get_logger

if TYPE_CHECKING:
    from .commands.command import Command
    from .events import Channel, User

logger = get_logger("permissions")

DEFAULT_DENIAL = "You do not have permission to access this command."


class PermissionChecker(Protocol):
    def can_run(
        self,
        command: "Command",
        user: Optional["User"],
        channel: Optional["Channel"],
    ) -> Tuple[bool, Optional[str]]: ...


class GenericPermissionChecker:
    """Adapts a plain predicate into a PermissionChecker.

    Args:
        func: (command, user, channel) -> bool.
        error_message: Reason reported when ``func`` returns False.
    """

    def __init__(
        self,
        func: Callable[["Command", Optional["User"], Optional["Channel"]], bool],
        error_message: Optional[str] = None,
    ):
        self._func = func
        self._error_message = error_message

    def can_run(self, command, user, channel) -> Tuple[bool, Optional[str]]:
        if self._func(command, user, channel):
            return True, None
        return False, self._error_message


_UUID_PATTERN = re.compile(
    r'^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$',
    re.IGNORECASE,
)


def is_uuid(value: str) -> bool:
    """Check if a string is a Signal UUID."""
    return bool(_UUID_PATTERN.match(value))


def normalize_phone_number(phone: str) -> str:
    """Normalize a phone number to E.164 format."""
    if phone.startswith("+"):
        return "+" + re.sub(r"[^\d]", "", phone[1:])
    return "+" + re.sub(r"[^\d]", "", phone)


def mask_identity(identity: Optional[str]) -> str:
    """Last four characters of a user id, for logs."""
    if not identity:
        return "<none>"
    return "..." + identity[-4:]


class AllowlistChecker:
    """Allows only users whose id is on a fixed list.

    Phone numbers are compared after E.164 normalization; UUIDs must
    match exactly.

    Args:
        allowed: Phone numbers and/or Signal UUIDs.
        error_message: Reason reported on denial.
    """

    def __init__(self, allowed: Iterable[str], error_message: str = DEFAULT_DENIAL):
        allowed = list(allowed)
        self._exact = frozenset(allowed)
        self._normalized = frozenset(
            normalize_phone_number(n) for n in allowed if not is_uuid(n)
        )
        self._error_message = error_message

    def is_allowed(self, sender: str) -> bool:
        # Direct match first, handles UUIDs and already-normalized numbers
        if sender in self._exact:
            return True
        if not is_uuid(sender):
            return normalize_phone_number(sender) in self._normalized
        return False

    def can_run(self, command, user, channel) -> Tuple[bool, Optional[str]]:
        if user is not None and self.is_allowed(user.id):
            return True, None
        logger.warning(
            "unauthorized_command_attempt",
            command=command.text,
            sender=mask_identity(user.id if user is not None else None),
        )
        return False, self._error_message


class ChannelChecker:
    """Allows a command only in the given channels."""

    def __init__(
        self,
        channel_ids: Iterable[str],
        error_message: str = "This command cannot be used here.",
    ):
        self._channel_ids = frozenset(channel_ids)
        self._error_message = error_message

    def can_run(self, command, user, channel) -> Tuple[bool, Optional[str]]:
        if channel is not None and channel.id in self._channel_ids:
            return True, None
        return False, self._error_message
