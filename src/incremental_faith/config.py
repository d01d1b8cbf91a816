from __future__ import annotations

import logging
from dataclasses import dataclass, fields
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml

from .exceptions import ConfigError

logger = logging.getLogger(__name__)


SAVE_KEY = "incrementalFaithSave"


class Variant(str, Enum):
    """Gameplay variants sharing one engine and one save schema."""

    UPGRADE = "upgrade"  # auto-generated faith, purchasable rate upgrades
    CLICK = "click"  # manual faith, offline coin catch-up

    @classmethod
    def parse(cls, value: Union[str, "Variant"]) -> "Variant":
        if isinstance(value, Variant):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError as e:
            choices = ", ".join(v.value for v in cls)
            raise ConfigError(f"Unknown variant {value!r}; expected one of: {choices}") from e


_VARIANT_FLAGS: Dict[Variant, Dict[str, bool]] = {
    Variant.UPGRADE: {
        "auto_generation": True,
        "manual_action_enabled": False,
        "upgrades_enabled": True,
        "offline_coins": False,
        "offline_faith": False,
    },
    Variant.CLICK: {
        "auto_generation": False,
        "manual_action_enabled": True,
        "upgrades_enabled": False,
        "offline_coins": True,
        "offline_faith": False,
    },
}


@dataclass(frozen=True)
class GameConfig:
    """Immutable tuning constants for one game process.

    Use ``GameConfig.for_variant`` to get a preset; the feature flags at the
    bottom are what actually distinguish the variants, so any combination can
    be assembled by overriding them.
    """

    variant: Variant = Variant.UPGRADE
    worshippers_per_faith: float = 0.1  # 10 faith = 1 worshipper
    coins_per_worshipper: float = 0.5  # per second
    game_tick_interval_ms: int = 100
    auto_save_interval_ms: int = 5000
    faith_upgrade_base_cost: float = 10
    faith_upgrade_cost_multiplier: float = 1.5
    faith_upgrade_increment: float = 0.5
    base_faith_per_second: float = 1.0
    faith_per_click: float = 1.0
    save_key: str = SAVE_KEY

    auto_generation: bool = True
    manual_action_enabled: bool = False
    upgrades_enabled: bool = True
    offline_coins: bool = False
    offline_faith: bool = False

    def __post_init__(self) -> None:
        object.__setattr__(self, "variant", Variant.parse(self.variant))
        if self.game_tick_interval_ms <= 0:
            raise ConfigError("game_tick_interval_ms must be positive")
        if self.auto_save_interval_ms <= 0:
            raise ConfigError("auto_save_interval_ms must be positive")
        for name in (
            "worshippers_per_faith",
            "coins_per_worshipper",
            "faith_upgrade_base_cost",
            "faith_upgrade_increment",
            "faith_per_click",
        ):
            if getattr(self, name) < 0:
                raise ConfigError(f"{name} cannot be negative")
        if self.faith_upgrade_cost_multiplier < 1:
            raise ConfigError("faith_upgrade_cost_multiplier must be at least 1")
        if self.base_faith_per_second <= 0:
            raise ConfigError("base_faith_per_second must be positive")
        if not self.save_key:
            raise ConfigError("save_key must be a non-empty string")

    @property
    def tick_seconds(self) -> float:
        return self.game_tick_interval_ms / 1000.0

    @property
    def auto_save_seconds(self) -> float:
        return self.auto_save_interval_ms / 1000.0

    @classmethod
    def for_variant(cls, variant: Union[str, Variant], **overrides: Any) -> "GameConfig":
        """Build the preset for ``variant`` with ``overrides`` applied on top."""
        v = Variant.parse(variant)
        params: Dict[str, Any] = dict(_VARIANT_FLAGS[v])
        params.update(overrides)
        params["variant"] = v
        return cls(**params)


def load_game_config(path: Optional[Path] = None, variant: Union[str, Variant, None] = None) -> GameConfig:
    """Load a GameConfig from an optional YAML override file.

    The file maps GameConfig field names to values. A ``variant`` key selects
    the preset the overrides apply to; an explicit ``variant`` argument wins
    over the file. A missing file yields the plain preset.
    """
    raw: Dict[str, Any] = {}
    if path is not None:
        path = Path(path)
        if not path.exists():
            logger.warning("Game config not found at %s; using defaults", path)
        else:
            try:
                with path.open("r", encoding="utf-8") as f:
                    loaded = yaml.safe_load(f) or {}
            except (OSError, yaml.YAMLError) as e:
                raise ConfigError(f"Failed to read game config {path}: {e}") from e
            if not isinstance(loaded, dict):
                raise ConfigError(f"Game config {path} must be a mapping, got {type(loaded).__name__}")
            raw = dict(loaded)
            logger.info("Loaded game config from %s", path)

    chosen = variant if variant is not None else raw.pop("variant", Variant.UPGRADE)
    raw.pop("variant", None)

    known = {f.name for f in fields(GameConfig)}
    overrides: Dict[str, Any] = {}
    for key, value in raw.items():
        if key not in known:
            logger.warning("Ignoring unknown game config key %r", key)
            continue
        overrides[key] = value
    try:
        return GameConfig.for_variant(chosen, **overrides)
    except TypeError as e:
        raise ConfigError(f"Invalid game config value: {e}") from e
