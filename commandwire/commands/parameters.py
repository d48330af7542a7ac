"""Parameter signatures for commands.

A signature is an ordered tuple of CommandParameter values. Its shape is
fixed: required parameters first, then optional ones, then at most one
MULTIPLE or UNPARSED tail.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Tuple

from ..exceptions import RegistrationError


class ParameterType(str, Enum):
    """How a parameter consumes the argument text."""
    REQUIRED = "required"    # exactly one token, must be present
    OPTIONAL = "optional"    # one token if present
    MULTIPLE = "multiple"    # every remaining token, zero or more
    UNPARSED = "unparsed"    # the raw remainder of the message

    @property
    def is_tail(self) -> bool:
        return self in (ParameterType.MULTIPLE, ParameterType.UNPARSED)


@dataclass(frozen=True)
class CommandParameter:
    name: str
    type: ParameterType = ParameterType.REQUIRED

    @property
    def usage(self) -> str:
        """Help-text rendering of this parameter."""
        if self.type is ParameterType.REQUIRED:
            return f"<{self.name}>"
        if self.type is ParameterType.OPTIONAL:
            return f"[{self.name}]"
        if self.type is ParameterType.MULTIPLE:
            return "[...]"
        return "[--]"


def check_next_parameter(
    existing: Tuple[CommandParameter, ...],
    parameter: CommandParameter,
    command: str = "",
) -> None:
    """Raise RegistrationError if ``parameter`` cannot follow ``existing``."""
    if any(p.name == parameter.name for p in existing):
        raise RegistrationError(
            f"Duplicate parameter name '{parameter.name}'",
            command=command,
        )
    if existing and existing[-1].type.is_tail:
        raise RegistrationError(
            "No parameters may be added after a multiple or unparsed parameter",
            command=command,
            parameter=parameter.name,
        )
    if parameter.type is ParameterType.REQUIRED and any(
        p.type is ParameterType.OPTIONAL for p in existing
    ):
        raise RegistrationError(
            "Required parameters may not be added after an optional one",
            command=command,
            parameter=parameter.name,
        )


def build_signature(
    parameters: Iterable[CommandParameter], command: str = ""
) -> Tuple[CommandParameter, ...]:
    """Validate ``parameters`` in order and return them as a signature."""
    signature: Tuple[CommandParameter, ...] = ()
    for parameter in parameters:
        check_next_parameter(signature, parameter, command)
        signature += (parameter,)
    return signature
