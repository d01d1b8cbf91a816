from __future__ import annotations

import logging
import os
from typing import Mapping, Optional

LOG_LEVEL_ENV = "IF_LOG_LEVEL"
LOG_FORMAT = "[%(asctime)s] [%(levelname)s] %(name)s: %(message)s"

# Index is the number of -v flags; more flags than entries stay at DEBUG
_VERBOSITY_LEVELS = (logging.WARNING, logging.INFO, logging.DEBUG)


def level_for_verbosity(verbosity: int) -> int:
    index = min(max(verbosity, 0), len(_VERBOSITY_LEVELS) - 1)
    return _VERBOSITY_LEVELS[index]


def resolve_level(verbosity: int = 0, environ: Optional[Mapping[str, str]] = None) -> int:
    """Pick the root level for a CLI run.

    A level name in ``IF_LOG_LEVEL`` (e.g. ``debug``) wins over the -v count;
    an unrecognised name is ignored.
    """
    env = os.environ if environ is None else environ
    name = (env.get(LOG_LEVEL_ENV) or "").strip().upper()
    level = logging.getLevelName(name) if name else None
    if isinstance(level, int):
        return level
    return level_for_verbosity(verbosity)


def configure_logging(verbosity: int = 0) -> int:
    """Configure the root logger for the game process and return the level used."""
    level = resolve_level(verbosity)
    logging.basicConfig(level=level, format=LOG_FORMAT)
    return level
