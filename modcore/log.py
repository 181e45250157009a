# modcore/log.py
from __future__ import annotations

import logging
from typing import Optional

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(verbose: bool = False, handler: Optional[logging.Handler] = None) -> logging.Logger:
    """
    Attach a handler to the package logger. Meant for entry points (run.py);
    library modules only ever call logging.getLogger(__name__).
    """
    logger = logging.getLogger("modcore")
    logger.setLevel(logging.DEBUG if verbose else logging.INFO)

    if handler is None:
        handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(LOG_FORMAT))

    # Re-running main() in the same process should not duplicate output.
    for existing in list(logger.handlers):
        logger.removeHandler(existing)
    logger.addHandler(handler)
    return logger
