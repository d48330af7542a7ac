"""commandwire: text command routing for chat bots.

Register commands on a CommandService, install it on a message source
(SignalClient, or anything implementing events.MessageSource), and each
inbound message is routed to at most one command handler.
"""

from .commands import Command, CommandMap, CommandParameter, ParameterType
from .events import CommandErrorEventArgs, CommandErrorType, CommandEventArgs
from .help import HelpMode
from .service import CommandService

__version__ = "0.1.0"

__all__ = [
    "Command",
    "CommandErrorEventArgs",
    "CommandErrorType",
    "CommandEventArgs",
    "CommandMap",
    "CommandParameter",
    "CommandService",
    "HelpMode",
    "ParameterType",
]
