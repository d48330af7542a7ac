"""Command model, routing trie, parser and registration builders."""

from .builder import CommandBuilder, CommandGroupBuilder
from .command import Command, CommandHandler
from .map import CommandMap
from .parameters import CommandParameter, ParameterType, build_signature
from .parser import parse_args, parse_command

__all__ = [
    "Command",
    "CommandBuilder",
    "CommandGroupBuilder",
    "CommandHandler",
    "CommandMap",
    "CommandParameter",
    "ParameterType",
    "build_signature",
    "parse_args",
    "parse_command",
]
