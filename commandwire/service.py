"""Command service: registration, routing and dispatch.

Owns the command trie and the category index, receives messages from a
MessageSource, and routes each one through parsing, permission checks
and the command handler. Every message that is not ignored produces
exactly one outcome: a ran-command notification followed by the
handler call, or a single command error event.

Key classes:
    CommandService: Registration API plus the per-message dispatch
        pipeline. Registration happens before install(); install()
        locks the command set and subscribes to the message source.
"""

from typing import Awaitable, Callable, Dict, Iterable, List, Optional, Tuple

from .commands.builder import CommandBuilder, CommandGroupBuilder
from .commands.command import Command
from .commands.map import CommandMap
from .commands.parser import parse_args, parse_command
from .events import (
    CommandErrorEventArgs,
    CommandErrorType,
    CommandEventArgs,
    Message,
    MessageSource,
    User,
)
from .exceptions import (
    CommandPermissionError,
    ConfigurationError,
    ServiceLockedError,
)
from .help import HelpMode, install_help_command
from .logging_config import get_logger
from .permissions import mask_identity

logger = get_logger("service")

ErrorCallback = Callable[[CommandErrorEventArgs], Awaitable[None]]
RanCommandCallback = Callable[[CommandEventArgs], Awaitable[None]]


def _check_command_chars(chars: Iterable[str]) -> Tuple[str, ...]:
    chars = tuple(chars)
    for char in chars:
        if not isinstance(char, str) or len(char) != 1:
            raise ConfigurationError(
                f"Command characters must be single characters, got {char!r}",
                setting_name="command_chars",
            )
    return chars


class CommandService:
    """Routes text messages to registered commands.

    Args:
        command_chars: Characters that mark a message as a command. The
            first character of a message must be one of them; it is
            stripped before routing. Empty means every message is a
            candidate.
        help_mode: Whether install() adds the built-in help command and
            where it replies.
    """

    def __init__(
        self,
        command_chars: Iterable[str] = ("/",),
        help_mode: HelpMode = HelpMode.PUBLIC,
    ):
        self._command_chars = _check_command_chars(command_chars)
        self._help_mode = HelpMode(help_mode)

        # Flattened list of every command, in registration order
        self._all_commands: List[Command] = []
        # Routing trie
        self._map = CommandMap()
        # Per-category tries, used for listings only
        self._categories: Dict[str, CommandMap] = {}
        self._root = CommandGroupBuilder(self)

        self._client: Optional[MessageSource] = None
        self._locked = False

        self._on_command_error: List[ErrorCallback] = []
        self._on_ran_command: List[RanCommandCallback] = []

    @classmethod
    def from_config(cls, config) -> "CommandService":
        """Create a service from a Config instance."""
        return cls(command_chars=config.command_chars, help_mode=config.help_mode)

    # --- Properties ---

    @property
    def client(self) -> MessageSource:
        if self._client is None:
            raise RuntimeError("Command service not installed, client not available")
        return self._client

    @property
    def root(self) -> CommandGroupBuilder:
        return self._root

    @property
    def map(self) -> CommandMap:
        return self._map

    @property
    def categories(self) -> Dict[str, CommandMap]:
        return dict(self._categories)

    @property
    def all_commands(self) -> Tuple[Command, ...]:
        return tuple(self._all_commands)

    @property
    def command_chars(self) -> Tuple[str, ...]:
        return self._command_chars

    @property
    def help_mode(self) -> HelpMode:
        return self._help_mode

    @property
    def is_locked(self) -> bool:
        return self._locked

    # --- Registration ---

    def create_command(self, text: str) -> CommandBuilder:
        return self._root.create_command(text)

    def create_group(
        self,
        text: str,
        configure: Optional[Callable[[CommandGroupBuilder], None]] = None,
    ) -> CommandGroupBuilder:
        return self._root.create_group(text, configure)

    def add_command(self, command: Command) -> None:
        """Register a built command under its name and every alias.

        Called by CommandBuilder.do(); raises ServiceLockedError once the
        service is locked.
        """
        if self._locked:
            raise ServiceLockedError(command=command.text)

        category_name = command.category or ""
        category = self._categories.get(category_name)
        if category is None:
            category = CommandMap()
            self._categories[category_name] = category

        category.add_command(command.text, command, False)
        self._map.add_command(command.text, command, False)
        for alias in command.aliases:
            category.add_command(alias, command, True)
            self._map.add_command(alias, command, True)
        self._all_commands.append(command)

        logger.debug(
            "command_registered",
            command=command.text,
            aliases=list(command.aliases),
            category=category_name,
            parameters=[p.name for p in command.parameters],
        )

    def get_item(self, text: str) -> Optional[CommandMap]:
        """Trie node at the full path ``text``, or None."""
        return self._map.get_item(text)

    def lock(self) -> None:
        """Freeze registration. Safe to call more than once."""
        self._locked = True
        self._map.lock()
        for category in self._categories.values():
            category.lock()

    def install(self, client: MessageSource) -> None:
        """Attach to a message source and start accepting messages.

        Registers the help command (unless help is disabled), locks the
        command set, then subscribes handle_message to ``client``.
        """
        if self._client is not None:
            raise ServiceLockedError("Command service is already installed")
        self._client = client
        if self._help_mode is not HelpMode.DISABLED:
            install_help_command(self)
        self.lock()
        client.subscribe(self.handle_message)
        logger.info(
            "command_service_installed",
            commands=len(self._all_commands),
            categories=sorted(self._categories),
            help_mode=self._help_mode.value,
        )

    # --- Events ---

    def on_command_error(self, callback: ErrorCallback) -> None:
        """Register an async callback for command errors."""
        self._on_command_error.append(callback)

    def on_ran_command(self, callback: RanCommandCallback) -> None:
        """Register an async callback fired just before a handler runs."""
        self._on_ran_command.append(callback)

    async def _raise_command_error(
        self,
        error_type: CommandErrorType,
        event: CommandEventArgs,
        exception: Optional[BaseException] = None,
    ) -> None:
        logger.info(
            "command_error",
            error_type=error_type.value,
            command=event.command.text if event.command else None,
            sender=mask_identity(event.user.id if event.user else None),
        )
        error = CommandErrorEventArgs(error_type, event, exception)
        for callback in self._on_command_error:
            await self._safe_callback(callback, error, "command_error")

    async def _raise_ran_command(self, event: CommandEventArgs) -> None:
        logger.info(
            "command_running",
            command=event.command.text,
            sender=mask_identity(event.user.id if event.user else None),
            arg_count=len(event.args or ()),
        )
        for callback in self._on_ran_command:
            await self._safe_callback(callback, event, "ran_command")

    async def _safe_callback(self, callback, payload, name: str) -> None:
        """Run a listener; its failure is logged and never reaches dispatch."""
        try:
            await callback(payload)
        except Exception as e:
            logger.error("event_callback_error", callback=name, error=str(e))

    # --- Dispatch ---

    def _is_self(self, user: User) -> bool:
        current = self.client.current_user
        return current is not None and user.id == current.id

    async def handle_message(self, message: Message) -> None:
        """Route one inbound message to at most one command handler."""
        if self._client is None:
            raise RuntimeError("Command service not installed, cannot dispatch")
        if not self._all_commands:
            return
        if message.user is None or self._is_self(message.user):
            return

        text = message.text or ""
        if not text:
            return

        # Check for a command character if any are configured
        if self._command_chars:
            if text[0] not in self._command_chars:
                return
            text = text[1:]

        commands, arg_pos = parse_command(text, self._map)
        if commands is None:
            await self._raise_command_error(
                CommandErrorType.UNKNOWN_COMMAND, CommandEventArgs(message)
            )
            return

        for command in commands:
            args, error = parse_args(text, arg_pos, command)
            if error is CommandErrorType.BAD_ARG_COUNT:
                logger.debug("candidate_arg_mismatch", command=command.text)
                continue
            if error is not None:
                await self._raise_command_error(
                    error, CommandEventArgs(message, command)
                )
                return

            event = CommandEventArgs(message, command, args)

            try:
                allowed, reason = command.can_run(event.user, event.channel)
            except Exception as e:
                logger.error(
                    "permission_check_failed",
                    command=command.text,
                    error=str(e),
                    exc_type=type(e).__name__,
                )
                await self._raise_command_error(
                    CommandErrorType.BAD_PERMISSIONS, event, e
                )
                return
            if not allowed:
                await self._raise_command_error(
                    CommandErrorType.BAD_PERMISSIONS,
                    event,
                    CommandPermissionError(reason) if reason else None,
                )
                return

            try:
                await self._raise_ran_command(event)
                await command.run(event)
            except Exception as e:
                logger.error(
                    "command_failed",
                    command=command.text,
                    error=str(e),
                    exc_type=type(e).__name__,
                )
                await self._raise_command_error(CommandErrorType.EXCEPTION, event, e)
            return

        await self._raise_command_error(
            CommandErrorType.BAD_ARG_COUNT, CommandEventArgs(message)
        )
