"""Loguru-based structured logging configuration.

All logs are written to server.log as JSON lines for full traceability;
errors are also appended to error.log, which is never truncated.
Stdlib logging (discord.py, httpx) is intercepted and funneled to loguru.
Context vars (conversation_key, channel_id, event_id) from contextualize()
are included at top level for easy grep/filter.
"""

import asyncio
import json
import logging
import os
import sys

from loguru import logger

_configured = False

# Context keys we promote to top-level JSON for traceability
_CONTEXT_KEYS = ("conversation_key", "channel_id", "event_id")

# Chatty third-party loggers and the level they are capped at
_QUIET_LOGGERS = {
    "discord.gateway": logging.WARNING,
    "discord.http": logging.INFO,
    "httpx": logging.WARNING,
}


def _serialize_with_context(record) -> str:
    """Format record as JSON with context vars at top level."""
    extra = record.get("extra", {})
    out = {
        "time": str(record["time"]),
        "level": record["level"].name,
        "message": record["message"],
        "module": record["name"],
        "function": record["function"],
        "line": record["line"],
    }
    for key in _CONTEXT_KEYS:
        if key in extra and extra[key] is not None:
            out[key] = extra[key]
    if record["exception"] is not None:
        out["exception"] = repr(record["exception"].value)
    record["_json"] = json.dumps(out, default=str)
    return "{_json}\n"


class InterceptHandler(logging.Handler):
    """Redirect stdlib logging to loguru."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        frame, depth = logging.currentframe(), 2
        while frame is not None and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(
            level, record.getMessage()
        )


async def truncate_log_periodically(
    log_file: str, interval_seconds: int = 86400
) -> None:
    """Truncate the main log file every interval_seconds."""
    while True:
        await asyncio.sleep(interval_seconds)
        try:
            with open(log_file, "w", encoding="utf-8") as f:
                f.truncate()
        except OSError as e:
            logger.error(f"Failed to truncate log file {log_file}: {e}")


def configure_logging(
    log_file: str,
    *,
    console_level: str | None = "INFO",
    force: bool = False,
) -> None:
    """Configure loguru sinks and intercept stdlib logging.

    Idempotent: skips if already configured. Use force=True to reconfigure
    (e.g. in tests with a different log path). console_level=None disables
    the stderr sink.
    """
    global _configured
    if _configured and not force:
        return
    _configured = True

    logger.remove()

    log_dir = os.path.dirname(log_file)
    if log_dir:
        os.makedirs(log_dir, exist_ok=True)
    # Fresh main log on every start
    open(log_file, "w", encoding="utf-8").close()

    logger.add(
        log_file,
        level="DEBUG",
        format=_serialize_with_context,
        encoding="utf-8",
        mode="a",
    )
    logger.add(
        os.path.join(log_dir, "error.log"),
        level="ERROR",
        format=_serialize_with_context,
        encoding="utf-8",
        mode="a",
    )
    if console_level:
        logger.add(
            sys.stderr,
            level=console_level,
            format="<green>{time:HH:mm:ss}</green> <level>{level: <7}</level> {message}",
        )

    logging.root.handlers = [InterceptHandler()]
    logging.root.setLevel(logging.DEBUG)
    for name, level in _QUIET_LOGGERS.items():
        logging.getLogger(name).setLevel(level)
