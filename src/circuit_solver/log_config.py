# --- src/circuit_solver/log_config.py ---
import logging
import os
import sys
from typing import Optional, TextIO, Union

#: Environment variable consulted when no explicit level is passed.
LOG_LEVEL_ENV_VAR = "CIRCUIT_SOLVER_LOG_LEVEL"

PACKAGE_LOGGER_NAME = "circuit_solver"


def _resolve_level(level: Optional[Union[int, str]]) -> int:
    if level is None:
        level = os.environ.get(LOG_LEVEL_ENV_VAR, logging.INFO)
    if isinstance(level, str):
        resolved = logging.getLevelName(level.strip().upper())
        # getLevelName returns "Level X" for unknown names
        return resolved if isinstance(resolved, int) else logging.INFO
    return int(level)


def setup_logging(level: Optional[Union[int, str]] = None, stream: Optional[TextIO] = None) -> logging.Logger:
    """
    Configures the package logger to write to stdout (or the given stream).

    Calling it again replaces the handler installed by the previous call, so the
    level can be changed at runtime without duplicating output.
    """
    log_formatter = logging.Formatter(
        "%(asctime)s [%(levelname)-5.5s] [%(name)s] %(message)s"
    )
    package_logger = logging.getLogger(PACKAGE_LOGGER_NAME)

    for handler in package_logger.handlers[:]:
        package_logger.removeHandler(handler)
        handler.close()

    console_handler = logging.StreamHandler(stream if stream is not None else sys.stdout)
    console_handler.setFormatter(log_formatter)
    package_logger.setLevel(_resolve_level(level))
    package_logger.addHandler(console_handler)
    package_logger.propagate = False
    package_logger.debug("Logging configured.")
    return package_logger
