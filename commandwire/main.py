"""Main entry point for commandwire.

Initializes logging in two phases (defaults then config-driven), builds
the CommandService from configured command modules, installs it on a
SignalClient and runs the receive loop with graceful shutdown on
SIGTERM/SIGINT.

Key functions:
    build_service: Create and populate a CommandService from a Config.
    main: Async entry point.
    run: Synchronous wrapper that calls asyncio.run(main()).
"""

import asyncio
import signal
import sys

import structlog

from .logging_config import setup_logging


def build_service(config):
    """Create a CommandService and register every configured command module.

    A non-empty ``allowed_numbers`` setting becomes a root-level check,
    so it applies to every command the modules register.
    """
    from .help import reply_to_errors
    from .loader import load_command_modules
    from .permissions import AllowlistChecker
    from .service import CommandService

    service = CommandService.from_config(config)
    if config.allowed_numbers:
        service.root.add_check(AllowlistChecker(config.allowed_numbers))
    load_command_modules(service, config.command_modules)
    service.on_command_error(reply_to_errors)
    return service


async def main():
    """Main async entry point."""
    # Phase 1: defaults, cache_logger_on_first_use=False
    setup_logging()
    logger = structlog.get_logger("commandwire")

    logger.info("commandwire_starting", version="0.1.0")

    # Import here to ensure logging is configured first
    from .config import get_config
    from .signal_client import SignalClient

    config = get_config()
    config.validate()

    # Phase 2: reconfigure with real config, cache_logger_on_first_use=True
    setup_logging(config)

    service = build_service(config)
    client = SignalClient.from_config(config)
    service.install(client)

    # Setup graceful shutdown
    loop = asyncio.get_running_loop()
    shutdown_event = asyncio.Event()

    def handle_shutdown(sig):
        logger.info("shutdown_signal_received", signal=sig.name)
        shutdown_event.set()

    for sig in (signal.SIGTERM, signal.SIGINT):
        try:
            loop.add_signal_handler(sig, handle_shutdown, sig)
        except NotImplementedError:
            # Windows: add_signal_handler not supported.
            if sig == signal.SIGINT:
                signal.signal(
                    signal.SIGINT,
                    lambda s, f: handle_shutdown(signal.SIGINT),
                )

    try:
        client_task = asyncio.create_task(client.run())
        shutdown_task = asyncio.create_task(shutdown_event.wait())

        done, _ = await asyncio.wait(
            {client_task, shutdown_task}, return_when=asyncio.FIRST_COMPLETED
        )
        if client_task in done:
            shutdown_task.cancel()
            # Surface startup failures such as an unresolved account
            client_task.result()
        else:
            client_task.cancel()
            try:
                await client_task
            except asyncio.CancelledError:
                pass

    except Exception as e:
        logger.error("commandwire_error", error=str(e))
        raise
    finally:
        await client.stop()
        logger.info("commandwire_stopped")


def run():
    """Synchronous entry point for the ``commandwire`` console script."""
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        pass
    except SystemExit as e:
        sys.exit(e.code)


if __name__ == "__main__":
    run()
