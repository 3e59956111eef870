"""Console logging setup for applications embedding quantsim.

The library itself only creates module loggers under ``quantsim`` and attaches
a ``NullHandler``; call :func:`configure_logging` from a script or notebook to
see run summaries and failure warnings.
"""

from __future__ import annotations

import logging
import logging.config
from typing import Any

DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(
    level: int | str = logging.INFO,
    fmt: str = DEFAULT_FORMAT,
    *,
    stream: str = "ext://sys.stderr",
) -> None:
    """Route ``quantsim`` log records to a console handler.

    Parameters
    ----------
    level
        Level for the ``quantsim`` logger (e.g. ``"DEBUG"`` for per-chunk
        records).
    fmt
        ``logging.Formatter`` format string.
    stream
        Stream handed to ``logging.StreamHandler`` in ``dictConfig`` syntax.
    """
    if isinstance(level, str):
        level = level.upper()

    config: dict[str, Any] = {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "simple": {"format": fmt, "datefmt": "%Y-%m-%d %H:%M:%S"},
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "simple",
                "stream": stream,
            },
        },
        "loggers": {
            "quantsim": {
                "level": level,
                "handlers": ["console"],
                "propagate": False,
            },
        },
    }
    logging.config.dictConfig(config)
