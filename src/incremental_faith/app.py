from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, List, Optional, TextIO

from .config import GameConfig
from .engine import SimulationEngine
from .events import EventBus
from .formatting import format_number
from .loop import GameLoop
from .persistence import JsonFileStore, KeyValueStore, LoadReport, PersistenceAdapter, default_data_dir

logger = logging.getLogger(__name__)


@dataclass
class GameSession:
    """Everything a host needs: engine, persistence and the timer loop."""

    engine: SimulationEngine
    persistence: PersistenceAdapter
    loop: GameLoop
    load_report: LoadReport
    event_bus: EventBus = field(default_factory=EventBus)

    def start(self) -> None:
        self.loop.start()

    def stop(self) -> None:
        self.loop.stop()


def create_session(
    config: Optional[GameConfig] = None,
    store: Optional[KeyValueStore] = None,
    data_dir: Optional[Path] = None,
    wall_clock: Callable[[], float] = time.time,
    monotonic: Callable[[], float] = time.monotonic,
    sleep: Callable[[float], None] = time.sleep,
    on_tick: Optional[Callable[[SimulationEngine], None]] = None,
) -> GameSession:
    """Load the saved game (or a fresh one) and wire up engine and loop.

    The loop is returned unstarted; call ``GameSession.start`` or
    ``session.loop.run`` to begin ticking.
    """
    config = config or GameConfig()
    if store is None:
        store = JsonFileStore(default_data_dir(data_dir))
    persistence = PersistenceAdapter(store, config=config, clock=wall_clock)
    report = persistence.load_with_report()
    bus = EventBus()
    engine = SimulationEngine(config=config, state=report.state, event_bus=bus)
    loop = GameLoop(engine, persistence=persistence, clock=monotonic, sleep=sleep, on_tick=on_tick)
    return GameSession(engine=engine, persistence=persistence, loop=loop, load_report=report, event_bus=bus)


def status_line(engine: SimulationEngine) -> str:
    snap = engine.snapshot()
    parts: List[str] = [
        f"coins={format_number(snap.coins)} (+{format_number(snap.coin_rate, 1)}/sec)",
        f"faith={format_number(snap.faith)} (+{format_number(snap.faith_rate, 1)}/sec)",
        f"worshippers={format_number(snap.worshippers)}",
    ]
    if snap.upgrade_cost is not None:
        marker = "" if snap.can_afford_upgrade else " (locked)"
        parts.append(f"upgrade={format_number(snap.upgrade_cost)}{marker} lvl={snap.faith_upgrade_level}")
    return " | ".join(parts)


class AutoPlayer:
    """Headless stand-in for a player: clicks at a fixed rate and buys upgrades when affordable."""

    def __init__(self, auto_buy: bool = False, clicks_per_second: float = 0.0) -> None:
        self.auto_buy = auto_buy
        self.clicks_per_second = max(0.0, clicks_per_second)
        self._click_budget = 0.0
        self.clicks = 0
        self.purchases = 0

    def __call__(self, engine: SimulationEngine) -> None:
        cfg = engine.config
        if self.clicks_per_second and cfg.manual_action_enabled:
            self._click_budget += self.clicks_per_second * cfg.tick_seconds
            while self._click_budget >= 1.0:
                engine.manual_action()
                self._click_budget -= 1.0
                self.clicks += 1
        if self.auto_buy and cfg.upgrades_enabled:
            while engine.can_afford_upgrade:
                if not engine.purchase_upgrade().success:
                    break
                self.purchases += 1


def run_headless(
    config: GameConfig,
    data_dir: Optional[Path] = None,
    max_ticks: Optional[int] = None,
    auto_buy: bool = False,
    clicks_per_second: float = 0.0,
    status_every: Optional[int] = None,
    out: Optional[TextIO] = None,
    store: Optional[KeyValueStore] = None,
    sleep: Callable[[float], None] = time.sleep,
    monotonic: Callable[[], float] = time.monotonic,
) -> int:
    """Run the game in a console loop until interrupted or ``max_ticks`` is reached.

    Returns a process exit code.
    """
    player = AutoPlayer(auto_buy=auto_buy, clicks_per_second=clicks_per_second)
    every = status_every or max(1, int(round(1.0 / config.tick_seconds)))

    def on_tick(engine: SimulationEngine) -> None:
        player(engine)
        if out is not None and engine.ticks % every == 0:
            print(status_line(engine), file=out)

    session = create_session(
        config=config,
        store=store,
        data_dir=data_dir,
        sleep=sleep,
        monotonic=monotonic,
        on_tick=on_tick,
    )
    report = session.load_report
    if out is not None:
        if report.offline_seconds and (report.offline_coins or report.offline_faith):
            earned = []
            if report.offline_coins:
                earned.append(f"{format_number(report.offline_coins, 1)} coins")
            if report.offline_faith:
                earned.append(f"{format_number(report.offline_faith, 1)} faith")
            print(
                f"Welcome back! {format_number(report.offline_seconds)}s offline earned {' and '.join(earned)}",
                file=out,
            )
        print(status_line(session.engine), file=out)

    try:
        session.loop.run(max_ticks=max_ticks)
    except KeyboardInterrupt:
        if out is not None:
            print("Interrupted by user", file=out)
        return 130
    if out is not None:
        print(status_line(session.engine), file=out)
    logger.info("Headless run finished: clicks=%d purchases=%d", player.clicks, player.purchases)
    return 0
