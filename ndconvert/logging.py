"""
Logging configuration for the ndconvert library.

The library follows the standard Python library logging pattern:

1. A NullHandler is attached to the ``ndconvert`` logger at import time, so an
   application that never configures logging sees no output and no warnings
2. The command line tools (or any calling script) decide where messages go
3. Progress lines ("Processed: n/total planes.") are emitted at INFO, plane
   level diagnostics at DEBUG

Example usage in calling scripts:
    >>> import logging
    >>> from ndconvert.logging import configure_logging
    >>>
    >>> configure_logging(level=logging.DEBUG)
    >>>
    >>> # Or attach your own handler
    >>> logging.getLogger("ndconvert").addHandler(logging.StreamHandler())

Example usage inside the library:
    >>> from ndconvert.logging import get_logger
    >>> logger = get_logger(__name__)
    >>> logger.debug("Opening plane %d", 3)
"""

from __future__ import annotations

import logging
import sys
from typing import Optional, Union

# The main library logger
LIBRARY_LOGGER_NAME = "ndconvert"

DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
CLI_FORMAT = "%(levelname)s: %(message)s"


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """
    Get a logger for use within the ndconvert library.

    Args:
        name: The logger name, typically ``__name__`` of the calling module.
              If None, returns the root ndconvert logger.

    Returns:
        A logger that is the library logger or one of its children

    Examples:
        >>> get_logger("ndconvert.pipeline").name
        'ndconvert.pipeline'
        >>> get_logger("scripts").name
        'ndconvert.scripts'
    """
    if name is None:
        return logging.getLogger(LIBRARY_LOGGER_NAME)

    if name.startswith(LIBRARY_LOGGER_NAME):
        return logging.getLogger(name)

    return logging.getLogger(f"{LIBRARY_LOGGER_NAME}.{name}")


def configure_logging(
    level: Union[int, str] = logging.INFO,
    format_string: Optional[str] = None,
    handler: Optional[logging.Handler] = None,
    stream: Optional[object] = None,
) -> None:
    """
    Configure the ndconvert library logger.

    Calling this more than once replaces the previously installed handler
    instead of stacking duplicates.

    Args:
        level: Logging level (e.g. ``logging.DEBUG`` or ``"debug"``)
        format_string: Format for log records. Defaults to
            ``"%(asctime)s - %(name)s - %(levelname)s - %(message)s"``
        handler: Handler to install. If None, a StreamHandler is created.
        stream: Stream for the default StreamHandler (default: sys.stderr).
            Only used if handler is None.

    Examples:
        >>> configure_logging(level="DEBUG", format_string=CLI_FORMAT)
    """
    if format_string is None:
        format_string = DEFAULT_FORMAT

    if isinstance(level, str):
        level = getattr(logging, level.upper())

    logger = logging.getLogger(LIBRARY_LOGGER_NAME)
    logger.setLevel(level)

    if handler is None:
        handler = logging.StreamHandler(stream or sys.stderr)

    if handler.formatter is None:
        handler.setFormatter(logging.Formatter(format_string))

    handler.setLevel(level)

    logger.handlers.clear()
    logger.addHandler(handler)


def _setup_library_logging() -> None:
    """Attach a NullHandler to the library logger if it has no handlers."""
    logger = logging.getLogger(LIBRARY_LOGGER_NAME)
    if not logger.handlers:
        logger.addHandler(logging.NullHandler())


_setup_library_logging()
