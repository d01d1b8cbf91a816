from __future__ import annotations

import json
import logging
import math
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Tuple

from ..config import GameConfig
from ..exceptions import StorageError
from ..state import ResourceState
from .storage import KeyValueStore

logger = logging.getLogger(__name__)

# Increment when making breaking schema changes
SCHEMA_VERSION = 1


@dataclass(frozen=True)
class LoadReport:
    """What ``PersistenceAdapter.load_with_report`` found and applied."""

    state: ResourceState
    found: bool = False
    timestamp_ms: Optional[int] = None
    schema_version: Optional[int] = None
    variant: Optional[str] = None
    offline_seconds: float = 0.0
    offline_coins: float = 0.0
    offline_faith: float = 0.0


class PersistenceAdapter:
    """Saves and restores engine state as one JSON record in a key-value store.

    Neither ``save`` nor ``load`` raises on storage problems: failures are
    logged, a failed save leaves the previous record in place and a failed
    load starts a fresh game.
    """

    def __init__(
        self,
        store: KeyValueStore,
        config: Optional[GameConfig] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.store = store
        self.config = config or GameConfig()
        self._clock = clock

    @property
    def key(self) -> str:
        return self.config.save_key

    def now_ms(self) -> int:
        return int(round(self._clock() * 1000))

    def encode(self, state: ResourceState) -> Dict[str, Any]:
        data = state.to_dict()
        data["timestamp"] = self.now_ms()
        data["schemaVersion"] = SCHEMA_VERSION
        data["variant"] = self.config.variant.value
        return data

    def save(self, state: ResourceState) -> bool:
        """Persist ``state``; returns False (after logging) if the store failed."""
        try:
            payload = self.encode(state)
            self.store.set(self.key, json.dumps(payload, sort_keys=True))
        except (StorageError, TypeError, ValueError) as exc:
            logger.error("Failed to save game: %s", exc)
            return False
        logger.debug("Game saved: %s", payload)
        return True

    def load(self) -> ResourceState:
        return self.load_with_report().state

    def load_with_report(self) -> LoadReport:
        """Read the saved record, apply offline catch-up and report what happened."""
        default = ResourceState(faith_per_second=self.config.base_faith_per_second)
        try:
            raw = self.store.get(self.key)
        except StorageError as exc:
            logger.error("Failed to load game, starting fresh: %s", exc)
            return LoadReport(state=default)
        if raw is None:
            logger.info("No save data found, starting new game")
            return LoadReport(state=default)

        try:
            data = json.loads(raw)
        except json.JSONDecodeError as exc:
            logger.error("Saved game is not valid JSON, starting fresh: %s", exc)
            return LoadReport(state=default)
        if not isinstance(data, dict):
            logger.error("Saved game is not a JSON object (%s), starting fresh", type(data).__name__)
            return LoadReport(state=default)

        schema_version = _int_or_none(data.get("schemaVersion"))
        if schema_version is not None and schema_version > SCHEMA_VERSION:
            logger.warning(
                "Save schema version %s is newer than supported %s; loading known fields only",
                schema_version,
                SCHEMA_VERSION,
            )
        variant = data.get("variant") if isinstance(data.get("variant"), str) else None
        if variant is not None and variant != self.config.variant.value:
            logger.info("Loading %s save into %s variant; missing fields use defaults", variant, self.config.variant.value)

        state = ResourceState.from_dict(data, default_faith_per_second=self.config.base_faith_per_second)
        timestamp_ms = _int_or_none(data.get("timestamp"))

        offline_seconds, offline_coins, offline_faith = self._apply_offline_progress(state, timestamp_ms)
        report = LoadReport(
            state=state,
            found=True,
            timestamp_ms=timestamp_ms,
            schema_version=schema_version,
            variant=variant,
            offline_seconds=offline_seconds,
            offline_coins=offline_coins,
            offline_faith=offline_faith,
        )
        logger.info("Game loaded: %s", state)
        return report

    def reset(self) -> bool:
        """Delete the saved record so the next load starts a new game."""
        try:
            deleted = self.store.delete(self.key)
        except StorageError as exc:
            logger.error("Failed to delete save: %s", exc)
            return False
        if deleted:
            logger.info("Save %s deleted", self.key)
        return deleted

    def _apply_offline_progress(self, state: ResourceState, timestamp_ms: Optional[int]) -> Tuple[float, float, float]:
        """Grant offline gains to ``state`` in place; returns (seconds, coins, faith)."""
        cfg = self.config
        if timestamp_ms is None or not (cfg.offline_coins or cfg.offline_faith):
            return 0.0, 0.0, 0.0
        if timestamp_ms < 0:
            logger.warning("Ignoring negative save timestamp %s; no offline progress", timestamp_ms)
            return 0.0, 0.0, 0.0

        elapsed = max(0.0, (self.now_ms() - timestamp_ms) / 1000.0)
        coins_gained = 0.0
        faith_gained = 0.0
        # The saved worshipper count is used as-is; the next tick recomputes it.
        if cfg.offline_coins and state.worshippers > 0:
            coins_gained = _finite_gain(state.coins, state.worshippers * cfg.coins_per_worshipper * elapsed, "coins")
            state.coins += coins_gained
        if cfg.offline_faith:
            faith_gained = _finite_gain(state.faith, state.faith_per_second * elapsed, "faith")
            state.faith += faith_gained
        if coins_gained or faith_gained:
            logger.info(
                "Offline progress for %.1fs: +%.2f coins, +%.2f faith",
                elapsed,
                coins_gained,
                faith_gained,
            )
        return elapsed, coins_gained, faith_gained


def _int_or_none(value: Any) -> Optional[int]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    try:
        real = float(value)
    except OverflowError:
        return None
    if not math.isfinite(real):
        return None
    return int(value)


def _finite_gain(current: float, gain: float, name: str) -> float:
    if math.isfinite(gain) and math.isfinite(current + gain):
        return gain
    logger.warning("Offline %s gain %r is out of range; skipping it", name, gain)
    return 0.0
