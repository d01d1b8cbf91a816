from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Optional

from platformdirs import user_data_dir

APP_NAME = "IncrementalFaith"
DATA_DIR_ENV = "IF_DATA_DIR"

_logger = logging.getLogger(__name__)


def default_data_dir(override: Optional[Path] = None) -> Path:
    """Return the directory that holds save records.

    Precedence: explicit ``override``, then the IF_DATA_DIR environment
    variable, then the platform user data dir (e.g. ~/.local/share/IncrementalFaith).
    """
    if override is not None:
        return Path(override)
    env = os.getenv(DATA_DIR_ENV, "").strip()
    if env:
        return Path(env)
    path = Path(user_data_dir(appname=APP_NAME, appauthor=False))
    _logger.debug("Using platform data dir %s", path)
    return path
