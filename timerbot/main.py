import asyncio
import logging
import signal

from timerbot.core.bot import TimerBot
from timerbot.core.config import validate_settings
from timerbot.core.health_server import HealthCheckServer
from timerbot.core.logging import setup_logging

LOGGER: logging.Logger = logging.getLogger("Bot")


async def runner() -> None:
    settings = validate_settings()
    bot = TimerBot(settings)
    health = HealthCheckServer(bot, host=settings.host, port=settings.port)

    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGTERM, signal.SIGINT):
        try:
            loop.add_signal_handler(sig, stop_event.set)
        except NotImplementedError:
            # Windows: fall back to KeyboardInterrupt handling in main()
            pass

    await health.start()
    try:
        bot.start()
        await stop_event.wait()
    finally:
        await bot.shutdown()
        await health.stop()


def main() -> None:
    setup_logging()

    try:
        settings = validate_settings()
    except ValueError:
        raise SystemExit(1)
    setup_logging(settings.log_level)

    try:
        asyncio.run(runner())
    except KeyboardInterrupt:
        LOGGER.warning("Shutting down due to KeyboardInterrupt...")


if __name__ == "__main__":
    main()
