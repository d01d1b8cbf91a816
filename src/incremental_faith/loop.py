from __future__ import annotations

import logging
import time
from typing import Callable, Optional

from .engine import SimulationEngine
from .persistence import PersistenceAdapter

logger = logging.getLogger(__name__)


class GameLoop:
    """Single-threaded scheduler for the tick and autosave timers.

    Ticks always advance the engine by one fixed interval; if the host falls
    behind, ``pump`` replays missed ticks one at a time (bounded by
    ``max_catch_up_ticks``) so a tick is never split or run concurrently.
    Autosave runs on its own longer interval, only between ticks.
    """

    def __init__(
        self,
        engine: SimulationEngine,
        persistence: Optional[PersistenceAdapter] = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
        on_tick: Optional[Callable[[SimulationEngine], None]] = None,
        max_catch_up_ticks: int = 50,
    ) -> None:
        self.engine = engine
        self.persistence = persistence
        self.on_tick = on_tick
        self.max_catch_up_ticks = max(1, int(max_catch_up_ticks))
        self._clock = clock
        self._sleep = sleep
        self._running: bool = False
        self._step: int = 0
        self._saves: int = 0
        self._next_tick: float = 0.0
        self._next_save: float = 0.0

    @property
    def running(self) -> bool:
        return self._running

    @property
    def step(self) -> int:
        return self._step

    @property
    def saves(self) -> int:
        return self._saves

    @property
    def tick_seconds(self) -> float:
        return self.engine.config.tick_seconds

    @property
    def save_seconds(self) -> float:
        return self.engine.config.auto_save_seconds

    def start(self) -> None:
        """Arm both timers.

        Safe to call multiple times; subsequent calls are no-ops.
        """
        if self._running:
            logger.debug("GameLoop.start() called while already running")
            return
        now = self._clock()
        self._running = True
        self._next_tick = now + self.tick_seconds
        self._next_save = now + self.save_seconds
        logger.info(
            "GameLoop started (tick=%.3fs, autosave=%.1fs, variant=%s)",
            self.tick_seconds,
            self.save_seconds,
            self.engine.config.variant.value,
        )

    def stop(self) -> None:
        """Disarm the timers and write the final save."""
        if not self._running:
            return
        self._running = False
        self.save_now()
        logger.info("GameLoop stopped at step=%s", self._step)

    def save_now(self) -> bool:
        if self.persistence is None:
            return False
        ok = self.persistence.save(self.engine.export_state())
        if ok:
            self._saves += 1
        return ok

    def pump(self, now: Optional[float] = None) -> int:
        """Fire every timer that is due at ``now``; returns the number of ticks run."""
        if not self._running:
            logger.debug("pump() called while not running; ignored")
            return 0
        if now is None:
            now = self._clock()

        fired = 0
        while now >= self._next_tick and fired < self.max_catch_up_ticks:
            self.engine.tick()
            self._step += 1
            fired += 1
            self._next_tick += self.tick_seconds
            if self.on_tick is not None:
                self.on_tick(self.engine)
        if now >= self._next_tick:
            skipped = int((now - self._next_tick) // self.tick_seconds) + 1
            logger.warning("GameLoop fell behind; dropping %d tick(s)", skipped)
            self._next_tick = now + self.tick_seconds

        if now >= self._next_save:
            self.save_now()
            self._next_save = now + self.save_seconds
        return fired

    def run(self, max_ticks: Optional[int] = None) -> None:
        """Run a blocking loop until stopped or ``max_ticks`` ticks have fired.

        The final save always happens, including on KeyboardInterrupt.
        """
        self.start()
        try:
            while self._running:
                self.pump()
                if max_ticks is not None and self._step >= max_ticks:
                    break
                remaining = min(self._next_tick, self._next_save) - self._clock()
                if remaining > 0:
                    self._sleep(remaining)
        finally:
            self.stop()
        logger.info("Loop complete (steps=%d)", self._step)
