from __future__ import annotations

import logging
import sys


def setup_logging(verbose: bool = False) -> None:
    """
    Install one stderr handler on the ``pocket`` logger.

    Quiet runs only surface warnings; ``-v`` shows planning and skip
    decisions at DEBUG. Safe to call more than once.
    """
    logger = logging.getLogger("pocket")
    logger.setLevel(logging.DEBUG if verbose else logging.WARNING)

    # Remove any pre-existing handlers to avoid duplicates.
    for h in list(logger.handlers):
        logger.removeHandler(h)

    fmt = logging.Formatter(fmt="%(levelname)s %(name)s: %(message)s")

    ch = logging.StreamHandler(sys.stderr)
    ch.setFormatter(fmt)
    logger.addHandler(ch)
    logger.propagate = False
