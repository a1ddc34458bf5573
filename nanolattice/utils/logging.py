"""
Logging helpers.

Library modules log through ``logging.getLogger(__name__)`` and never
configure handlers themselves. Scripts call :func:`configure_logging` once.
"""

import logging
from typing import Union

_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"


def configure_logging(level: Union[int, str] = logging.INFO) -> logging.Logger:
    """
    Attach a stream handler to the package logger.

    Parameters
    ----------
    level : int or str
        Logging level, e.g. ``logging.DEBUG`` or ``"INFO"``.

    Returns
    -------
    logger : logging.Logger
        The ``nanolattice`` logger.

    Notes
    -----
    Calling this twice does not add a second stream handler.
    """
    logger = logging.getLogger("nanolattice")
    logger.setLevel(level)

    has_stream = any(
        isinstance(handler, logging.StreamHandler)
        and not isinstance(handler, logging.FileHandler)
        for handler in logger.handlers
    )
    if not has_stream:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(_FORMAT))
        logger.addHandler(handler)

    return logger
