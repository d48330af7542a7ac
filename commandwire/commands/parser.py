"""Command and argument parsing.

Two pure functions:
    parse_command: longest-prefix walk of the CommandMap over the
        message's leading tokens.
    parse_args: tokenizes the rest of the message against one
        command's parameter signature.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, List, Optional, Sequence, Tuple

from ..events import CommandErrorType
from .parameters import CommandParameter, ParameterType

if TYPE_CHECKING:
    from .command import Command
    from .map import CommandMap

_QUOTES = ('"', "'")


def _skip_whitespace(text: str, pos: int) -> int:
    while pos < len(text) and text[pos].isspace():
        pos += 1
    return pos


def parse_command(
    text: str, command_map: "CommandMap"
) -> Tuple[Optional[Tuple["Command", ...]], int]:
    """Find the longest registered path at the start of ``text``.

    Descends one whitespace-delimited token at a time while the current
    node has a matching child. There is no backtracking: if the deepest
    node reached has no commands the message is unknown, even when a
    shorter prefix had some.

    Returns:
        (commands, arg_pos) where ``commands`` are the candidates in
        registration order and ``arg_pos`` is the offset of the first
        character after the path and its trailing whitespace, or
        (None, 0) for an unknown command.
    """
    node = command_map
    pos = _skip_whitespace(text, 0)
    arg_pos = pos
    while pos < len(text):
        end = pos
        while end < len(text) and not text[end].isspace():
            end += 1
        child = node.get_map(text[pos:end])
        if child is None:
            break
        node = child
        pos = arg_pos = _skip_whitespace(text, end)

    commands = node.commands
    if not commands:
        return None, 0
    return commands, arg_pos


def _read_token(text: str, pos: int) -> Tuple[Optional[str], int]:
    """Read one token starting at ``pos`` (which is not whitespace).

    A token opening with a quote runs to the matching closing quote. A
    backslash before whitespace, a quote or another backslash escapes it.
    Returns (None, pos) for an unclosed quote.
    """
    quote = text[pos] if text[pos] in _QUOTES else None
    if quote is not None:
        pos += 1
    chars: List[str] = []
    while pos < len(text):
        ch = text[pos]
        if ch == "\\" and pos + 1 < len(text):
            nxt = text[pos + 1]
            if nxt.isspace() or nxt in _QUOTES or nxt == "\\":
                chars.append(nxt)
                pos += 2
                continue
        if quote is not None:
            if ch == quote:
                return "".join(chars), pos + 1
        elif ch.isspace():
            break
        chars.append(ch)
        pos += 1
    if quote is not None:
        return None, pos
    return "".join(chars), pos


def _parameter_at(
    parameters: Sequence[CommandParameter], index: int
) -> Optional[CommandParameter]:
    if index < len(parameters):
        return parameters[index]
    if parameters and parameters[-1].type is ParameterType.MULTIPLE:
        return parameters[-1]
    return None


def parse_args(
    text: str, arg_pos: int, command: "Command"
) -> Tuple[Optional[Tuple[str, ...]], Optional[CommandErrorType]]:
    """Split ``text[arg_pos:]`` into arguments for ``command``.

    Returns:
        (args, None) on success, with one string per REQUIRED, OPTIONAL
        and UNPARSED parameter (absent optional ones as "") and one per
        token taken by a MULTIPLE tail; or (None, error) with
        BAD_ARG_COUNT for too few or too many tokens and INVALID_INPUT
        for an unclosed quote.
    """
    parameters = command.parameters
    args: List[str] = []
    pos = arg_pos

    while True:
        pos = _skip_whitespace(text, pos)
        if pos >= len(text):
            break
        parameter = _parameter_at(parameters, len(args))
        if parameter is None:
            return None, CommandErrorType.BAD_ARG_COUNT
        if parameter.type is ParameterType.UNPARSED:
            args.append(text[pos:])
            break
        token, pos = _read_token(text, pos)
        if token is None:
            return None, CommandErrorType.INVALID_INPUT
        args.append(token)

    for parameter in parameters[len(args):]:
        if parameter.type is ParameterType.REQUIRED:
            return None, CommandErrorType.BAD_ARG_COUNT
        if parameter.type is not ParameterType.MULTIPLE:
            args.append("")

    return tuple(args), None
