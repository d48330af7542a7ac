"""Help text rendering and the built-in help command.

Listings only show what the asking user may run in the channel they
asked from. Group names that have subcommands are marked with ``*``.

Key functions:
    render_general_help: Categories and their top-level commands.
    render_map_help: Commands registered at one path plus its subgroups.
    render_command_help: Usage, description and aliases of one command.
    install_help_command: Registers ``help [command...]`` on a service.
    error_reply_text / reply_to_errors: User-facing text for command errors.
"""

from enum import Enum
from typing import TYPE_CHECKING, List, Optional, Tuple, Union

from .commands.parameters import ParameterType
from .events import CommandErrorEventArgs, CommandErrorType, CommandEventArgs
from .logging_config import get_logger
from .permissions import DEFAULT_DENIAL

if TYPE_CHECKING:
    from .commands.command import Command
    from .commands.map import CommandMap
    from .events import Channel, User
    from .service import CommandService

logger = get_logger("service")

NO_COMMANDS = "There are no commands you have permission to run."
UNKNOWN_HELP_TOPIC = "Unable to display help: Unknown command."


class HelpMode(str, Enum):
    DISABLED = "disabled"  # no help command
    PUBLIC = "public"      # reply in the channel the request came from
    PRIVATE = "private"    # reply in a private channel with the requester


def _check(
    item: Union["Command", "CommandMap"],
    user: Optional["User"],
    channel: Optional["Channel"],
) -> Tuple[bool, Optional[str]]:
    """item.can_run, with a check that raises counted as a denial."""
    try:
        return item.can_run(user, channel)
    except Exception as e:
        logger.error(
            "help_permission_check_failed",
            item=getattr(item, "text", None) or item.full_name,
            error=str(e),
            exc_type=type(e).__name__,
        )
        return False, None


def _group_label(group: "CommandMap") -> str:
    return f"`{group.name}{'*' if group.has_sub_groups else ''}`"


def render_command_usage(command: "Command") -> str:
    """One command's usage line, description and aliases."""
    usage = " ".join([command.text] + [p.usage for p in command.parameters])
    lines = [f"`{usage}`", command.description or "No description."]
    if command.aliases:
        lines.append("Aliases: `" + "`, `".join(command.aliases) + "`")
    return "\n".join(lines) + "\n"


def render_command_help(
    command: "Command", user: Optional["User"], channel: Optional["Channel"]
) -> str:
    allowed, reason = _check(command, user, channel)
    if not allowed:
        return (reason or DEFAULT_DENIAL) + "\n"
    return render_command_usage(command)


def render_general_help(
    service: "CommandService", user: Optional["User"], channel: Optional["Channel"]
) -> str:
    output: List[str] = []
    is_first_category = True
    for name, category in service.categories.items():
        is_first_item = True
        for group in category.sub_groups:
            if not (group.is_visible and (group.has_sub_groups or group.has_non_aliases)):
                continue
            if not _check(group, user, channel)[0]:
                continue
            if is_first_item:
                is_first_item = False
                # Header only for categories with something to show
                if is_first_category:
                    is_first_category = False
                    output.append("These are the commands you can use:\n")
                else:
                    output.append("\n")
                if name:
                    output.append(f"{name}: ")
            else:
                output.append(", ")
            output.append(_group_label(group))

    if not output:
        return NO_COMMANDS

    output.append("\n\n")
    chars = service.command_chars
    if chars:
        if len(chars) == 1:
            output.append(f"You can use `{chars[0]}` to call a command.\n")
        else:
            output.append(
                f"You can use `{' '.join(chars[:-1])}` or `{chars[-1]}` "
                "to call a command.\n"
            )
        output.append(
            f"`{chars[0]}help <command>` can tell you more about how to use a command.\n"
        )
    else:
        output.append("`help <command>` can tell you more about how to use a command.\n")
    return "".join(output)


def render_map_help(
    node: "CommandMap", user: Optional["User"], channel: Optional["Channel"]
) -> str:
    output: List[str] = []

    is_first_command = True
    if node.commands:
        for command in node.commands:
            if not _check(command, user, channel)[0]:
                continue
            if is_first_command:
                is_first_command = False
            else:
                output.append("\n")
            output.append(render_command_usage(command))
    else:
        output.append(f"`{node.full_name}`\n")

    is_first_sub = True
    for sub in node.sub_groups:
        if not (sub.is_visible and _check(sub, user, channel)[0]):
            continue
        if is_first_sub:
            is_first_sub = False
            output.append("Sub Commands: ")
        else:
            output.append(", ")
        output.append(_group_label(sub))

    if is_first_command and is_first_sub:
        return NO_COMMANDS
    return "".join(output)


def install_help_command(service: "CommandService") -> "Command":
    """Register the hidden ``help [command...]`` command on ``service``."""

    async def handle_help(event: CommandEventArgs) -> None:
        if service.help_mode is HelpMode.PRIVATE:
            reply_channel = await service.client.create_private_channel(event.user)
        else:
            reply_channel = event.channel

        if event.args:
            node = service.map.get_item(" ".join(event.args))
            if node is not None:
                text = render_map_help(node, event.user, event.channel)
            else:
                text = UNKNOWN_HELP_TOPIC
        else:
            text = render_general_help(service, event.user, event.channel)
        await reply_channel.send_message(text)

    return (
        service.create_command("help")
        .parameter("command", ParameterType.MULTIPLE)
        .hide()
        .description("Returns information about commands.")
        .do(handle_help)
    )


def error_reply_text(error: CommandErrorEventArgs) -> Optional[str]:
    """Text to send back for a command error; None for unknown commands."""
    if error.error_type is CommandErrorType.UNKNOWN_COMMAND:
        return None
    if error.error_type is CommandErrorType.BAD_PERMISSIONS:
        return getattr(error.exception, "reason", None) or DEFAULT_DENIAL
    if error.error_type is CommandErrorType.BAD_ARG_COUNT:
        return "Wrong number of arguments. Use help <command> for usage."
    if error.error_type is CommandErrorType.INVALID_INPUT:
        text = "Unable to read the arguments, check for an unclosed quote."
        if error.command is not None:
            text += "\n" + render_command_usage(error.command)
        return text
    return "The command failed to run."


async def reply_to_errors(error: CommandErrorEventArgs) -> None:
    """Command error listener that answers in the originating channel."""
    text = error_reply_text(error)
    if text is None:
        return
    await error.message.channel.send_message(text)
