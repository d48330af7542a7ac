"""Fluent builders for registering commands and command groups.

Usage::

    service.create_command("greet") \\
        .alias("hi") \\
        .description("Say hello.") \\
        .parameter("name", ParameterType.OPTIONAL) \\
        .do(greet)

    def admin(group):
        group.add_check(AllowlistChecker(["+15550001111"]))
        group.create_command("kick").parameter("user").do(kick)

    service.create_group("admin", admin)

Key classes:
    CommandBuilder: Collects one command's settings; do() registers it.
    CommandGroupBuilder: Shares a path prefix, category and checks
        with every command and subgroup created through it.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Callable, List, Optional, Sequence, Union

from ..exceptions import RegistrationError
from ..permissions import GenericPermissionChecker, PermissionChecker
from .command import Command, CommandHandler
from .parameters import CommandParameter, ParameterType, check_next_parameter

if TYPE_CHECKING:
    from ..service import CommandService

CheckFunc = Callable[..., bool]


def append_prefix(prefix: str, text: str) -> str:
    """Join a group prefix and a command text with a single space."""
    return " ".join(part for part in (prefix.strip(), text.strip()) if part)


def _as_checker(
    check: Union[PermissionChecker, CheckFunc], error_message: Optional[str]
) -> PermissionChecker:
    if hasattr(check, "can_run"):
        if error_message is not None:
            raise RegistrationError(
                "error_message only applies to plain check functions"
            )
        return check
    return GenericPermissionChecker(check, error_message)


class CommandBuilder:
    """Builds a single Command.

    Args:
        service: Service that receives the command on do().
        text: Command text relative to ``prefix``.
        prefix: Path of the enclosing group ("" at the root).
        category: Inherited category.
        checks: Inherited checks; copied, later group changes don't apply.
    """

    def __init__(
        self,
        service: "CommandService",
        text: str,
        prefix: str = "",
        category: Optional[str] = None,
        checks: Sequence[PermissionChecker] = (),
    ):
        self._service = service
        self._prefix = prefix
        self._text = append_prefix(prefix, text)
        if not self._text:
            raise RegistrationError("Command text may not be empty")
        self._aliases: List[str] = []
        self._category = category
        self._description: Optional[str] = None
        self._parameters: tuple = ()
        self._checks: List[PermissionChecker] = list(checks)
        self._is_hidden = False
        self._built = False

    @property
    def text(self) -> str:
        return self._text

    def alias(self, *aliases: str) -> "CommandBuilder":
        """Add alternative names; each gets the group prefix."""
        for alias in aliases:
            full = append_prefix(self._prefix, alias)
            if not full:
                raise RegistrationError("Alias may not be empty", command=self._text)
            self._aliases.append(full)
        return self

    def category(self, category: Optional[str]) -> "CommandBuilder":
        self._category = category
        return self

    def description(self, description: str) -> "CommandBuilder":
        self._description = description
        return self

    def parameter(
        self, name: str, type: ParameterType = ParameterType.REQUIRED
    ) -> "CommandBuilder":
        """Append a parameter; raises RegistrationError on a bad signature shape."""
        parameter = CommandParameter(name, ParameterType(type))
        check_next_parameter(self._parameters, parameter, self._text)
        self._parameters += (parameter,)
        return self

    def hide(self) -> "CommandBuilder":
        """Leave this command out of help listings."""
        self._is_hidden = True
        return self

    def add_check(
        self,
        check: Union[PermissionChecker, CheckFunc],
        error_message: Optional[str] = None,
    ) -> "CommandBuilder":
        """Add a PermissionChecker, or a (command, user, channel) -> bool function."""
        self._checks.append(_as_checker(check, error_message))
        return self

    def do(self, handler: CommandHandler) -> Command:
        """Build the command with ``handler`` and register it."""
        if self._built:
            raise RegistrationError("Command already registered", command=self._text)
        command = Command(
            text=self._text,
            handler=handler,
            aliases=tuple(self._aliases),
            category=self._category,
            description=self._description,
            parameters=self._parameters,
            checks=tuple(self._checks),
            is_hidden=self._is_hidden,
        )
        self._service.add_command(command)
        self._built = True
        return command


class CommandGroupBuilder:
    """Creates commands and subgroups under a shared prefix.

    Args:
        service: Service that receives built commands.
        prefix: Path of this group ("" for the root group).
        category: Category given to commands created in this group.
        checks: Checks inherited from the parent group.
    """

    def __init__(
        self,
        service: "CommandService",
        prefix: str = "",
        category: Optional[str] = None,
        checks: Sequence[PermissionChecker] = (),
    ):
        self._service = service
        self._prefix = prefix
        self._category = category
        self._checks: List[PermissionChecker] = list(checks)

    @property
    def prefix(self) -> str:
        return self._prefix

    def category(self, category: Optional[str]) -> "CommandGroupBuilder":
        self._category = category
        return self

    def add_check(
        self,
        check: Union[PermissionChecker, CheckFunc],
        error_message: Optional[str] = None,
    ) -> "CommandGroupBuilder":
        """Add a check applied to commands created after this call."""
        self._checks.append(_as_checker(check, error_message))
        return self

    def create_group(
        self,
        text: str,
        configure: Optional[Callable[["CommandGroupBuilder"], None]] = None,
    ) -> "CommandGroupBuilder":
        """Create a nested group and pass it to ``configure``."""
        prefix = append_prefix(self._prefix, text)
        if not prefix:
            raise RegistrationError("Group name may not be empty")
        group = CommandGroupBuilder(
            self._service, prefix, self._category, self._checks
        )
        if configure is not None:
            configure(group)
        return group

    def create_command(self, text: str = "") -> CommandBuilder:
        """Start a command; an empty ``text`` names the group itself."""
        return CommandBuilder(
            self._service, text, self._prefix, self._category, self._checks
        )
