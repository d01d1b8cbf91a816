from __future__ import annotations

import logging
import math
import sys
import threading
from dataclasses import dataclass
from typing import Optional

from .config import GameConfig
from .events import EventBus, ManualActionEvent, UpgradePurchasedEvent, UpgradeRefusedEvent
from .exceptions import FeatureDisabledError
from .state import ResourceState

logger = logging.getLogger(__name__)

# Above any finite faith amount; used once the cost curve leaves float range
UNAFFORDABLE_COST = int(sys.float_info.max) + 1


@dataclass(frozen=True)
class PurchaseResult:
    """Outcome of an upgrade purchase attempt.

    A refusal is a normal outcome (not enough faith), so callers check
    ``success`` instead of catching an exception.
    """

    success: bool
    cost: int
    level: int
    faith_per_second: float
    remaining_faith: float


@dataclass(frozen=True)
class EngineSnapshot:
    """Read-only view of the engine for a presentation layer."""

    coins: float
    faith: float
    worshippers: int
    faith_upgrade_level: int
    faith_per_second: float
    coin_rate: float
    faith_rate: float
    upgrade_cost: Optional[int]
    can_afford_upgrade: bool


class SimulationEngine:
    """Owns the resource state and advances it one tick at a time.

    Each tick runs three sub-steps in order: faith auto-generation (if the
    variant has it), a full recompute of worshippers from faith, then coin
    generation from worshippers. All mutations happen under a single lock so
    a threaded host cannot interleave them.
    """

    def __init__(
        self,
        config: Optional[GameConfig] = None,
        state: Optional[ResourceState] = None,
        event_bus: Optional[EventBus] = None,
    ) -> None:
        self.config = config or GameConfig()
        self.state = state or ResourceState(faith_per_second=self.config.base_faith_per_second)
        self.event_bus = event_bus
        self._lock = threading.RLock()
        self._ticks = 0

    @property
    def ticks(self) -> int:
        return self._ticks

    # Actions

    def tick(self, delta_seconds: Optional[float] = None) -> None:
        """Advance the simulation by ``delta_seconds`` (one fixed tick if None).

        Negative or non-finite deltas are treated as 0.
        """
        dt = self.config.tick_seconds if delta_seconds is None else self._sanitize_delta(delta_seconds)
        with self._lock:
            s = self.state
            if self.config.auto_generation:
                s.faith += s.faith_per_second * dt
            self._recompute_worshippers()
            if s.worshippers > 0:
                s.coins += s.worshippers * self.config.coins_per_worshipper * dt
            self._ticks += 1

    def manual_action(self) -> float:
        """Grant ``faith_per_click`` faith and return the amount gained."""
        if not self.config.manual_action_enabled:
            raise FeatureDisabledError(f"Manual action is not available in the {self.config.variant.value} variant")
        with self._lock:
            gained = self.config.faith_per_click
            self.state.faith += gained
            self._recompute_worshippers()
            faith = self.state.faith
        logger.debug("Manual action: +%s faith (total=%s)", gained, faith)
        self._emit(ManualActionEvent(faith_gained=gained, faith=faith))
        return gained

    def get_upgrade_cost(self) -> int:
        return self.upgrade_cost_at(self.state.faith_upgrade_level)

    def upgrade_cost_at(self, level: int) -> int:
        cfg = self.config
        try:
            return int(math.floor(cfg.faith_upgrade_base_cost * cfg.faith_upgrade_cost_multiplier ** level))
        except OverflowError:
            return UNAFFORDABLE_COST

    def purchase_upgrade(self) -> PurchaseResult:
        """Buy one faith-rate upgrade if the current faith covers its cost."""
        if not self.config.upgrades_enabled:
            raise FeatureDisabledError(f"Upgrades are not available in the {self.config.variant.value} variant")
        with self._lock:
            s = self.state
            cost = self.get_upgrade_cost()
            if s.faith < cost:
                result = PurchaseResult(
                    success=False,
                    cost=cost,
                    level=s.faith_upgrade_level,
                    faith_per_second=s.faith_per_second,
                    remaining_faith=s.faith,
                )
            else:
                s.faith -= cost
                s.faith_upgrade_level += 1
                s.faith_per_second += self.config.faith_upgrade_increment
                result = PurchaseResult(
                    success=True,
                    cost=cost,
                    level=s.faith_upgrade_level,
                    faith_per_second=s.faith_per_second,
                    remaining_faith=s.faith,
                )

        if result.success:
            logger.info(
                "Upgrade purchased: level=%d cost=%d faith_per_second=%.2f",
                result.level,
                cost,
                result.faith_per_second,
            )
            self._emit(
                UpgradePurchasedEvent(
                    cost=cost,
                    new_level=result.level,
                    faith_per_second=result.faith_per_second,
                    remaining_faith=result.remaining_faith,
                )
            )
        else:
            logger.debug("Upgrade refused: cost=%d faith=%.2f", cost, result.remaining_faith)
            self._emit(UpgradeRefusedEvent(cost=cost, current_faith=result.remaining_faith))
        return result

    # Query surface

    @property
    def coins(self) -> float:
        return self.state.coins

    @property
    def faith(self) -> float:
        return self.state.faith

    @property
    def worshippers(self) -> int:
        return self.state.worshippers

    @property
    def faith_upgrade_level(self) -> int:
        return self.state.faith_upgrade_level

    @property
    def faith_per_second(self) -> float:
        return self.state.faith_per_second

    @property
    def coin_rate(self) -> float:
        return self.state.worshippers * self.config.coins_per_worshipper

    @property
    def faith_rate(self) -> float:
        return self.state.faith_per_second if self.config.auto_generation else 0.0

    @property
    def upgrade_cost(self) -> Optional[int]:
        if not self.config.upgrades_enabled:
            return None
        return self.get_upgrade_cost()

    @property
    def can_afford_upgrade(self) -> bool:
        if not self.config.upgrades_enabled:
            return False
        return self.state.faith >= self.get_upgrade_cost()

    def snapshot(self) -> EngineSnapshot:
        with self._lock:
            return EngineSnapshot(
                coins=self.coins,
                faith=self.faith,
                worshippers=self.worshippers,
                faith_upgrade_level=self.faith_upgrade_level,
                faith_per_second=self.faith_per_second,
                coin_rate=self.coin_rate,
                faith_rate=self.faith_rate,
                upgrade_cost=self.upgrade_cost,
                can_afford_upgrade=self.can_afford_upgrade,
            )

    def export_state(self) -> ResourceState:
        """Return a copy of the current state, safe to hand to a saver."""
        with self._lock:
            return ResourceState(**vars(self.state))

    # Internals

    def _recompute_worshippers(self) -> None:
        self.state.worshippers = int(math.floor(self.state.faith * self.config.worshippers_per_faith))

    @staticmethod
    def _sanitize_delta(delta_seconds: float) -> float:
        try:
            dt = float(delta_seconds)
        except (TypeError, ValueError):
            dt = math.nan
        if not math.isfinite(dt) or dt < 0:
            logger.warning("Ignoring invalid tick delta %r; treating as 0", delta_seconds)
            return 0.0
        return dt

    def _emit(self, event: object) -> None:
        if self.event_bus is not None:
            self.event_bus.emit(event)
