"""Logging helper for the gable_io package."""

# Module responsibilities:
# - Hand out children of the ``gable`` logger so IO messages share the CLI's handlers.
# - Never install handlers; configuration belongs to gable.core.logger.

from __future__ import annotations

import logging


def get_logger(name: str) -> logging.Logger:
    """Return a logger namespaced under ``gable.io``."""

    return logging.getLogger("gable").getChild(f"io.{name}")
