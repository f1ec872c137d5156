"""Logging configuration

Everything goes through one root handler: a RichHandler when the console
can be set up, plain stream output otherwise. The handler masks chat OAuth
tokens, so twitchio's debug output of the login lines is safe to keep.
"""

import logging
import re

from rich.console import Console
from rich.logging import RichHandler

_TOKEN_PATTERN = re.compile(r"oauth:\w+", re.IGNORECASE)

# logger -> (level with LOG_LEVEL=DEBUG, level otherwise)
LIBRARY_LEVELS: dict[str, tuple[int, int]] = {
    "TwitchTransport": (logging.DEBUG, logging.INFO),
    "twitchio": (logging.DEBUG, logging.INFO),
    "twitchio.websocket": (logging.DEBUG, logging.WARNING),
    "twitchio.http": (logging.INFO, logging.WARNING),
    "aiohttp": (logging.INFO, logging.WARNING),
    "aiohttp.access": (logging.WARNING, logging.WARNING),
    "asyncio": (logging.ERROR, logging.ERROR),
}


class RedactTokenFilter(logging.Filter):
    """Replaces ``oauth:<token>`` in a record's message with ``oauth:***``."""

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        if _TOKEN_PATTERN.search(message):
            record.msg = _TOKEN_PATTERN.sub("oauth:***", message)
            record.args = None
        return True


def _rich_handler() -> logging.Handler:
    console = Console(force_terminal=True, width=120)
    handler = RichHandler(
        console=console,
        show_time=True,
        show_level=True,
        show_path=False,
        markup=True,
        rich_tracebacks=True,
        tracebacks_show_locals=False,
        tracebacks_width=120,
    )
    handler.setFormatter(logging.Formatter(fmt="%(message)s", datefmt="[%Y-%m-%d %H:%M:%S]"))
    return handler


def setup_logging(log_level: str = "INFO") -> None:
    level = getattr(logging, log_level.upper(), logging.INFO)

    rich_error: Exception | None = None
    try:
        handler = _rich_handler()
    except Exception as e:
        rich_error = e
        handler = logging.StreamHandler()
        handler.setFormatter(
            logging.Formatter(
                fmt="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )
        )

    handler.addFilter(RedactTokenFilter())
    logging.basicConfig(level=level, handlers=[handler], force=True)

    logger = logging.getLogger("Bot")
    if rich_error is not None:
        logger.warning(f"Failed to setup Rich logging: {rich_error}, using standard logging")
    else:
        logger.debug("[bold green]✓[/bold green] Rich logging enabled", extra={"markup": True})

    debug = level == logging.DEBUG
    for name, (debug_level, normal_level) in LIBRARY_LEVELS.items():
        logging.getLogger(name).setLevel(debug_level if debug else normal_level)
