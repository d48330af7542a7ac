"""The Command node: one invocable command and its handler.

Commands are built by CommandBuilder and never change afterwards. The
dispatcher asks a command whether it may run for a given user and
channel, then runs it.
"""

from __future__ import annotations

import inspect
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Optional, Tuple, Union

from ..exceptions import RegistrationError
from .parameters import CommandParameter, build_signature

if TYPE_CHECKING:
    from ..events import Channel, CommandEventArgs, User
    from ..permissions import PermissionChecker

CommandHandler = Callable[["CommandEventArgs"], Union[Awaitable[Any], Any]]


@dataclass(frozen=True, eq=False)
class Command:
    """A registered command.

    Attributes:
        text: Full invocable name, path segments joined by single spaces.
        handler: Sync or async callable receiving a CommandEventArgs.
        aliases: Alternative full names, each routable like ``text``.
        category: Listing category, None for uncategorized.
        description: One-line description for help output.
        parameters: Validated parameter signature.
        checks: Permission checkers, evaluated in order.
        is_hidden: Hidden commands are left out of help listings.
    """

    text: str
    handler: CommandHandler = field(repr=False)
    aliases: Tuple[str, ...] = ()
    category: Optional[str] = None
    description: Optional[str] = None
    parameters: Tuple[CommandParameter, ...] = ()
    checks: Tuple["PermissionChecker", ...] = field(default=(), repr=False)
    is_hidden: bool = False

    def __post_init__(self):
        if not self.text.split():
            raise RegistrationError("Command text may not be empty")
        build_signature(self.parameters, self.text)

    @property
    def path(self) -> Tuple[str, ...]:
        return tuple(self.text.split())

    def parameter_index(self, name: str) -> int:
        """Position of the parameter called ``name`` in the signature."""
        for i, parameter in enumerate(self.parameters):
            if parameter.name == name:
                return i
        raise KeyError(f"Command '{self.text}' has no parameter '{name}'")

    def can_run(
        self, user: Optional["User"], channel: Optional["Channel"]
    ) -> Tuple[bool, Optional[str]]:
        """Run every check in order; the first denial wins.

        Evaluated on every call, results are never cached since the
        same user may be allowed in one channel and denied in another.
        """
        for check in self.checks:
            allowed, reason = check.can_run(self, user, channel)
            if not allowed:
                return False, reason
        return True, None

    async def run(self, event: "CommandEventArgs") -> Any:
        """Invoke the handler, awaiting it if it returns an awaitable.

        Exceptions are left to the caller.
        """
        result = self.handler(event)
        if inspect.isawaitable(result):
            result = await result
        return result
