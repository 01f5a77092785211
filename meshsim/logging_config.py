"""Console logging for simulation scripts.

The library itself only creates module loggers under "meshsim"; nothing is
printed until an application calls setup_logging().
"""
import logging
import sys
from typing import Optional, TextIO

LOG_FORMAT = "%(relativeCreated)8.0fms %(levelname)-7s %(name)s: %(message)s"


class _MeshsimHandler(logging.StreamHandler):
    """StreamHandler installed by setup_logging (so re-runs can replace it)."""


def setup_logging(level: int = logging.INFO, stream: Optional[TextIO] = None) -> logging.Logger:
    """
    Route "meshsim" log records to a stream.

    Calling it again replaces the handler it installed earlier; handlers
    added by the application are left alone.

    Args:
        level: e.g. logging.DEBUG to see per-step free/forced mesh counts
        stream: Output stream (default: sys.stderr)

    Returns:
        The "meshsim" logger
    """
    logger = logging.getLogger("meshsim")
    logger.setLevel(level)

    for handler in [h for h in logger.handlers if isinstance(h, _MeshsimHandler)]:
        logger.removeHandler(handler)

    handler = _MeshsimHandler(stream if stream is not None else sys.stderr)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logger.addHandler(handler)
    return logger
