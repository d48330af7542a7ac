"""Command module loading.

A command module is any importable module exposing
``register(service: CommandService) -> None``. Modules are listed by
dotted name in the ``command_modules`` setting and loaded in order
before the service is installed, so their registration order is also
the tie-break order for commands sharing a path.
"""

import importlib
from typing import Iterable, List

from .exceptions import RegistrationError
from .logging_config import get_logger

logger = get_logger("loader")


def load_command_modules(service, module_names: Iterable[str]) -> List[str]:
    """Import each module and call its register(service).

    A module that fails to import or register is logged and skipped;
    registering into a locked service is a programming error and raises.

    Returns:
        Names of the modules that registered successfully.
    """
    loaded: List[str] = []
    for name in module_names:
        try:
            module = importlib.import_module(name)
        except ImportError as e:
            logger.error("command_module_import_failed", module=name, error=str(e))
            continue

        register = getattr(module, "register", None)
        if not callable(register):
            logger.error("command_module_missing_register", module=name)
            continue

        before = len(service.all_commands)
        try:
            register(service)
        except Exception as e:
            if isinstance(e, RegistrationError) and service.is_locked:
                raise
            logger.error(
                "command_module_register_failed",
                module=name,
                error=str(e),
                error_type=type(e).__name__,
            )
            continue

        loaded.append(name)
        logger.info(
            "command_module_loaded",
            module=name,
            commands=len(service.all_commands) - before,
        )

    logger.info("command_loader_complete", modules_loaded=len(loaded))
    return loaded
