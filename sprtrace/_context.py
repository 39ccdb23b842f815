"""
_context.py
===========
Context managers for sprtrace.

Provides clean, Pythonic context managers for temporarily changing logging
state.  All of them restore the previous state on exit, even if exceptions
occur.
"""

import logging
from contextlib import contextmanager

# Every module logger lives under this name.
PACKAGE_LOGGER = "sprtrace"


@contextmanager
def suppress_logger(logger_name: str, level: int = logging.CRITICAL):
    """
    Temporarily change a logger's level.

    Parameters
    ----------
    logger_name : str
        Name of the logger to suppress (e.g., 'sprtrace._replay').
    level : int, default logging.CRITICAL
        Temporary logging level.

    Yields
    ------
    None
        Control is yielded back to the with-block.

    Examples
    --------
    >>> with suppress_logger('sprtrace._trace'):
    ...     reader.dump_position()   # nothing emitted

    Notes
    -----
    - Exception-safe: Logger level restored even if exception raised
    - Nesting-safe: Can nest multiple suppress_logger contexts
    """
    logger = logging.getLogger(logger_name)
    original_level = logger.level

    try:
        logger.setLevel(level)
        yield
    finally:
        logger.setLevel(original_level)


@contextmanager
def quiet(level: int = logging.CRITICAL):
    """
    Temporarily suppress all sprtrace logging.

    Parameters
    ----------
    level : int, default logging.CRITICAL
        Temporary level for the package logger.

    Examples
    --------
    >>> with quiet():
    ...     stats = replay_file('search.trace')

    >>> # Keep warnings, drop per-tree INFO lines
    >>> with quiet(logging.WARNING):
    ...     stats = replay_file('search.trace')
    """
    with suppress_logger(PACKAGE_LOGGER, level):
        yield
