"""Custom exception hierarchy for commandwire.

Registration mistakes (bad signatures, registering after the service is
locked) and configuration problems raise. Routing and permission failures
during dispatch never raise; they are reported through command error
events, with an exception from this module attached as the cause where
one is useful.
"""

from typing import Any, Optional


class CommandwireError(Exception):
    """Base exception for all commandwire errors.

    Attributes:
        message: Human-readable error description.
        module: Originating module name (e.g. "commands.builder").
        context: Arbitrary key-value pairs for structured logging.
    """

    def __init__(
        self,
        message: str = "",
        *,
        module: Optional[str] = None,
        **context: Any,
    ) -> None:
        self.message = message
        self.module = module
        self.context = context
        super().__init__(message)

    def __str__(self) -> str:
        parts = [self.message or self.__class__.__name__]
        if self.module:
            parts.append(f"[module={self.module}]")
        if self.context:
            ctx = ", ".join(f"{k}={v}" for k, v in self.context.items())
            parts.append(f"({ctx})")
        return " ".join(parts)

    def __repr__(self) -> str:
        cls = self.__class__.__name__
        return f"{cls}({self.message!r}, module={self.module!r})"


# ---------------------------------------------------------------------------
# Registration exceptions
# ---------------------------------------------------------------------------

class RegistrationError(CommandwireError):
    """A command or group could not be registered.

    Raised while building commands: invalid parameter order, duplicate
    parameter names, empty command text.

    Attributes:
        command: Text of the command being built (if known).
    """

    def __init__(
        self,
        message: str = "",
        *,
        command: Optional[str] = None,
        module: Optional[str] = None,
        **context: Any,
    ) -> None:
        self.command = command
        super().__init__(message, module=module or "commands.builder", **context)


class ServiceLockedError(RegistrationError):
    """Registration was attempted after the command service was locked."""

    def __init__(
        self,
        message: str = "Commands cannot be registered after the service is installed",
        *,
        command: Optional[str] = None,
        module: Optional[str] = None,
        **context: Any,
    ) -> None:
        super().__init__(
            message, command=command, module=module or "service", **context
        )


# ---------------------------------------------------------------------------
# Dispatch exceptions
# ---------------------------------------------------------------------------

class CommandPermissionError(CommandwireError):
    """A permission check denied a command.

    Never raised by the dispatcher; attached as the cause of a
    BAD_PERMISSIONS error event when the check supplied a reason.

    Attributes:
        reason: Text returned by the denying check.
    """

    def __init__(
        self,
        reason: str = "",
        *,
        module: Optional[str] = None,
        **context: Any,
    ) -> None:
        self.reason = reason
        super().__init__(reason, module=module or "permissions", **context)


# ---------------------------------------------------------------------------
# Configuration exceptions
# ---------------------------------------------------------------------------

class ConfigurationError(CommandwireError):
    """Invalid or missing configuration."""

    def __init__(
        self,
        message: str = "",
        *,
        setting_name: Optional[str] = None,
        module: Optional[str] = None,
        **context: Any,
    ) -> None:
        self.setting_name = setting_name
        super().__init__(message, module=module or "config", **context)


# ---------------------------------------------------------------------------
# Transport exceptions
# ---------------------------------------------------------------------------

class SignalClientError(CommandwireError):
    """Error talking to the Signal CLI REST API.

    Attributes:
        status: HTTP status returned by the API (if any).
    """

    def __init__(
        self,
        message: str = "",
        *,
        status: Optional[int] = None,
        module: Optional[str] = None,
        **context: Any,
    ) -> None:
        self.status = status
        super().__init__(message, module=module or "signal_client", **context)
