"""Main entry point for guidebot.

Initializes logging in two phases (defaults then config-driven),
validates configuration, loads the message catalog and role store,
and runs the polling loop until SIGTERM/SIGINT.

Key functions:
    main: Async entry point.
    run: Synchronous wrapper for the ``guidebot`` console script.
"""

import asyncio
import signal
import sys

import structlog

from . import __version__
from .logging_config import setup_logging


async def main():
    """Main async entry point."""
    setup_logging()
    logger = structlog.get_logger("guidebot")

    logger.info("guidebot_starting", version=__version__)

    from .bot import GuideBot
    from .config import get_config
    from .exceptions import ConfigurationError, MessageCatalogError
    from .messages import MessageCatalog
    from .roles import RoleStore

    config = get_config()
    try:
        config.validate()
        setup_logging(config)
        catalog = MessageCatalog.load(config.messages_file)
    except (ConfigurationError, MessageCatalogError) as e:
        logger.error("startup_failed", error=str(e))
        sys.exit(1)

    roles = RoleStore(config.admin_file)
    bot = GuideBot(config, catalog, roles)

    loop = asyncio.get_running_loop()
    shutdown_event = asyncio.Event()

    def handle_shutdown(sig):
        logger.info("shutdown_signal_received", signal=sig.name)
        shutdown_event.set()

    for sig in (signal.SIGTERM, signal.SIGINT):
        try:
            loop.add_signal_handler(sig, handle_shutdown, sig)
        except NotImplementedError:
            # Windows: no add_signal_handler; SIGINT via signal.signal
            if sig == signal.SIGINT:
                signal.signal(
                    signal.SIGINT,
                    lambda s, f: handle_shutdown(signal.SIGINT),
                )

    try:
        bot_task = asyncio.create_task(bot.run())
        stop_task = asyncio.create_task(shutdown_event.wait())
        await asyncio.wait({bot_task, stop_task}, return_when=asyncio.FIRST_COMPLETED)

        for task in (bot_task, stop_task):
            task.cancel()
        try:
            await bot_task
        except asyncio.CancelledError:
            pass

    except Exception as e:
        logger.error("bot_error", error=str(e))
        raise
    finally:
        await bot.stop()
        logger.info("guidebot_stopped")


def run():
    """Synchronous entry point for the ``guidebot`` console script."""
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    run()
