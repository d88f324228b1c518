"""
scribeline.logging - Logger setup for the engine and CLI.

Every module logs under the "scribeline" namespace. Merge and audit paths
log drops and shrinking text at WARNING; per-batch detail is DEBUG only.
"""

from __future__ import annotations

import logging

logger = logging.getLogger("scribeline")

VERBOSE_FORMAT = "%(levelname)s [%(threadName)s] %(name)s: %(message)s"
QUIET_FORMAT = "%(levelname)s: %(message)s"


def configure_logging(verbose: bool = False) -> None:
    """Install a stderr handler for scribeline output.

    Args:
        verbose: Show DEBUG records with thread and module names, so audit
            writer activity can be told apart from the merge path
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format=VERBOSE_FORMAT if verbose else QUIET_FORMAT,
    )
