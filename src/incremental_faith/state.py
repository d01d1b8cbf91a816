from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

logger = logging.getLogger(__name__)

DEFAULT_FAITH_PER_SECOND = 1.0

# Older saves stored coins under this name
LEGACY_COINS_KEY = "offerings"


@dataclass
class ResourceState:
    """Mutable resource totals owned by the simulation engine.

    ``worshippers`` is a projection of ``faith``; the engine recomputes it on
    every tick rather than tracking it incrementally.
    """

    coins: float = 0.0
    faith: float = 0.0
    worshippers: int = 0
    faith_upgrade_level: int = 0
    faith_per_second: float = DEFAULT_FAITH_PER_SECOND

    def to_dict(self) -> Dict[str, Any]:
        return {
            "coins": self.coins,
            "faith": self.faith,
            "worshippers": self.worshippers,
            "faithUpgradeLevel": self.faith_upgrade_level,
            "faithPerSecond": self.faith_per_second,
        }

    @staticmethod
    def from_dict(data: Mapping[str, Any], default_faith_per_second: float = DEFAULT_FAITH_PER_SECOND) -> "ResourceState":
        """Rebuild a state from a persisted mapping.

        Every field is parsed on its own; a missing or malformed value falls
        back to that field's default without affecting the others.
        """
        coins = _real(data.get("coins"))
        if coins is None:
            coins = _real(data.get(LEGACY_COINS_KEY))
        faith_per_second = _real(data.get("faithPerSecond"))
        if faith_per_second is not None and faith_per_second <= 0:
            faith_per_second = None
        return ResourceState(
            coins=_or_default(coins, 0.0, "coins"),
            faith=_or_default(_real(data.get("faith")), 0.0, "faith"),
            worshippers=_or_default(_count(data.get("worshippers")), 0, "worshippers"),
            faith_upgrade_level=_or_default(_count(data.get("faithUpgradeLevel")), 0, "faithUpgradeLevel"),
            faith_per_second=_or_default(faith_per_second, default_faith_per_second, "faithPerSecond"),
        )


def _real(value: Any) -> Optional[float]:
    """Return ``value`` as a finite non-negative float, or None if it is not one."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    try:
        real = float(value)
    except OverflowError:
        # JSON integers have no size limit
        return None
    if not math.isfinite(real) or real < 0:
        return None
    return value


def _count(value: Any) -> Optional[int]:
    real = _real(value)
    if real is None:
        return None
    return int(math.floor(real))


def _or_default(value: Any, default: Any, name: str) -> Any:
    if value is None:
        logger.debug("Saved field %s missing or malformed; using default %r", name, default)
        return default
    return value
