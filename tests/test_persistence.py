import json
from pathlib import Path

import pytest

from incremental_faith.config import GameConfig
from incremental_faith.exceptions import StorageError
from incremental_faith.persistence import (
    SCHEMA_VERSION,
    InMemoryStore,
    JsonFileStore,
    KeyValueStore,
    PersistenceAdapter,
)
from incremental_faith.state import ResourceState

KEY = "incrementalFaithSave"
NOW = 1_700_000_000.0  # seconds since epoch
NOW_MS = 1_700_000_000_000


def fixed_clock(seconds: float = NOW):
    return lambda: seconds


class BrokenStore(KeyValueStore):
    def __init__(self) -> None:
        self.writes = 0

    def get(self, key):
        raise StorageError("storage unavailable")

    def set(self, key, value):
        self.writes += 1
        raise StorageError("quota exceeded")

    def delete(self, key):
        raise StorageError("storage unavailable")


def test_round_trip_reproduces_state(tmp_path: Path):
    adapter = PersistenceAdapter(JsonFileStore(tmp_path), GameConfig(), clock=fixed_clock())
    state = ResourceState(coins=12.75, faith=33.3, worshippers=3, faith_upgrade_level=4, faith_per_second=3.0)

    assert adapter.save(state) is True
    assert adapter.load() == state


def test_round_trip_click_variant_without_elapsed_time():
    adapter = PersistenceAdapter(InMemoryStore(), GameConfig.for_variant("click"), clock=fixed_clock())
    state = ResourceState(coins=1.5, faith=80.0, worshippers=8)
    adapter.save(state)
    assert adapter.load() == state


def test_saved_record_layout():
    store = InMemoryStore()
    adapter = PersistenceAdapter(store, GameConfig(), clock=fixed_clock())
    adapter.save(ResourceState(coins=5.0, faith=2.0))

    record = json.loads(store.get(KEY))
    assert record == {
        "coins": 5.0,
        "faith": 2.0,
        "worshippers": 0,
        "faithUpgradeLevel": 0,
        "faithPerSecond": 1.0,
        "timestamp": NOW_MS,
        "schemaVersion": SCHEMA_VERSION,
        "variant": "upgrade",
    }


def test_missing_record_starts_new_game():
    report = PersistenceAdapter(InMemoryStore(), GameConfig()).load_with_report()
    assert report.found is False
    assert report.state == ResourceState()


def test_legacy_offerings_field():
    store = InMemoryStore({KEY: {"offerings": 42.5, "faith": 7}})
    state = PersistenceAdapter(store, GameConfig()).load()
    assert state.coins == 42.5
    assert state.faith == 7


def test_coins_preferred_over_legacy_field():
    store = InMemoryStore({KEY: {"coins": 3.0, "offerings": 99.0}})
    assert PersistenceAdapter(store, GameConfig()).load().coins == 3.0


def test_malformed_fields_default_individually():
    store = InMemoryStore(
        {
            KEY: {
                "coins": "lots",
                "faith": 12.5,
                "worshippers": -3,
                "faithUpgradeLevel": True,
                "faithPerSecond": 0,
            }
        }
    )
    state = PersistenceAdapter(store, GameConfig()).load()
    assert state == ResourceState(coins=0.0, faith=12.5, worshippers=0, faith_upgrade_level=0, faith_per_second=1.0)


def test_non_finite_values_default():
    text = '{"coins": NaN, "faith": Infinity, "faithUpgradeLevel": 2.9}'
    state = PersistenceAdapter(InMemoryStore({KEY: text}), GameConfig()).load()
    assert state.coins == 0.0
    assert state.faith == 0.0
    assert state.faith_upgrade_level == 2


HUGE_INT = "1" + "0" * 400


def test_oversized_integer_field_defaults():
    text = '{"coins": ' + HUGE_INT + ', "faith": 5, "worshippers": ' + HUGE_INT + "}"
    report = PersistenceAdapter(InMemoryStore({KEY: text}), GameConfig()).load_with_report()
    assert report.found is True
    assert report.state.coins == 0.0
    assert report.state.faith == 5
    assert report.state.worshippers == 0


def test_oversized_timestamp_skips_catch_up():
    text = '{"coins": 2.0, "worshippers": 3, "timestamp": ' + HUGE_INT + "}"
    adapter = PersistenceAdapter(InMemoryStore({KEY: text}), GameConfig.for_variant("click"), clock=fixed_clock())
    report = adapter.load_with_report()
    assert report.timestamp_ms is None
    assert report.offline_seconds == 0.0
    assert report.state.coins == 2.0


def test_negative_timestamp_skips_catch_up(caplog):
    text = '{"coins": 2.0, "worshippers": 3, "timestamp": -' + HUGE_INT[:300] + "}"
    adapter = PersistenceAdapter(InMemoryStore({KEY: text}), GameConfig.for_variant("click"), clock=fixed_clock())
    report = adapter.load_with_report()
    assert report.offline_coins == 0.0
    assert report.state.coins == 2.0
    assert "negative save timestamp" in caplog.text


def test_out_of_range_offline_gain_is_skipped():
    store = InMemoryStore({KEY: {"coins": 1e308, "worshippers": 10**306, "timestamp": NOW_MS - 1_000_000}})
    report = PersistenceAdapter(store, GameConfig.for_variant("click"), clock=fixed_clock()).load_with_report()
    assert report.offline_coins == 0.0
    assert report.state.coins == 1e308


@pytest.mark.parametrize("raw", ["{ not json", "[1, 2, 3]", "null"])
def test_unreadable_record_falls_back_to_defaults(raw):
    report = PersistenceAdapter(InMemoryStore({KEY: raw}), GameConfig()).load_with_report()
    assert report.found is False
    assert report.state == ResourceState()


def test_storage_failures_are_contained(caplog):
    store = BrokenStore()
    adapter = PersistenceAdapter(store, GameConfig())

    assert adapter.save(ResourceState(coins=1.0)) is False
    assert store.writes == 1
    assert adapter.load() == ResourceState()
    assert adapter.reset() is False
    assert "Failed to save game" in caplog.text


def test_failed_save_keeps_previous_record(tmp_path: Path, monkeypatch):
    store = JsonFileStore(tmp_path)
    adapter = PersistenceAdapter(store, GameConfig(), clock=fixed_clock())
    adapter.save(ResourceState(coins=10.0))

    def fail_replace(src, dst):
        raise OSError("disk full")

    monkeypatch.setattr("incremental_faith.persistence.storage.os.replace", fail_replace)
    assert adapter.save(ResourceState(coins=20.0)) is False
    monkeypatch.undo()

    assert adapter.load().coins == 10.0
    assert not list(tmp_path.glob("*.tmp"))


def test_offline_catch_up_grants_coins():
    saved_at_ms = NOW_MS - 100_000
    store = InMemoryStore({KEY: {"coins": 10.0, "faith": 45.0, "worshippers": 4, "timestamp": saved_at_ms}})
    adapter = PersistenceAdapter(
        store, GameConfig.for_variant("click", coins_per_worshipper=0.5), clock=fixed_clock()
    )

    report = adapter.load_with_report()

    assert report.offline_seconds == 100.0
    assert report.offline_coins == 200.0
    assert report.state.coins == 210.0
    # Saved worshippers are used as-is, faith untouched
    assert report.state.worshippers == 4
    assert report.state.faith == 45.0


def test_offline_catch_up_uses_saved_worshippers_not_faith():
    saved_at_ms = NOW_MS - 10_000
    store = InMemoryStore({KEY: {"faith": 1000.0, "worshippers": 1, "timestamp": saved_at_ms}})
    state = PersistenceAdapter(store, GameConfig.for_variant("click"), clock=fixed_clock()).load()
    assert state.coins == 1 * 0.5 * 10
    assert state.worshippers == 1


def test_upgrade_variant_ignores_offline_time():
    saved_at_ms = NOW_MS - 3_600_000
    store = InMemoryStore({KEY: {"coins": 1.0, "faith": 50.0, "worshippers": 5, "timestamp": saved_at_ms}})
    report = PersistenceAdapter(store, GameConfig.for_variant("upgrade"), clock=fixed_clock()).load_with_report()
    assert report.state.coins == 1.0
    assert report.state.faith == 50.0
    assert report.offline_seconds == 0.0


def test_offline_faith_is_configurable():
    saved_at_ms = NOW_MS - 20_000
    store = InMemoryStore(
        {KEY: {"faith": 5.0, "worshippers": 0, "faithPerSecond": 1.5, "timestamp": saved_at_ms}}
    )
    cfg = GameConfig.for_variant("upgrade", offline_faith=True)
    report = PersistenceAdapter(store, cfg, clock=fixed_clock()).load_with_report()
    assert report.offline_faith == 30.0
    assert report.state.faith == 35.0
    assert report.state.worshippers == 0


def test_clock_behind_save_gives_no_catch_up():
    store = InMemoryStore({KEY: {"coins": 0.0, "worshippers": 3, "timestamp": NOW_MS + 60_000}})
    report = PersistenceAdapter(store, GameConfig.for_variant("click"), clock=fixed_clock()).load_with_report()
    assert report.offline_seconds == 0.0
    assert report.state.coins == 0.0


def test_missing_timestamp_skips_catch_up():
    store = InMemoryStore({KEY: {"coins": 2.0, "worshippers": 3}})
    report = PersistenceAdapter(store, GameConfig.for_variant("click"), clock=fixed_clock()).load_with_report()
    assert report.timestamp_ms is None
    assert report.state.coins == 2.0


def test_cross_variant_save_loads_superset_fields():
    upgrade = PersistenceAdapter(InMemoryStore(), GameConfig.for_variant("upgrade"), clock=fixed_clock())
    upgrade.save(ResourceState(coins=4.0, faith=20.0, worshippers=2, faith_upgrade_level=3, faith_per_second=2.5))

    click = PersistenceAdapter(upgrade.store, GameConfig.for_variant("click"), clock=fixed_clock())
    report = click.load_with_report()
    assert report.variant == "upgrade"
    assert report.state.faith_upgrade_level == 3
    assert report.state.coins == 4.0


def test_newer_schema_loads_known_fields(caplog):
    store = InMemoryStore({KEY: {"schemaVersion": SCHEMA_VERSION + 1, "coins": 8.0, "relics": ["x"]}})
    report = PersistenceAdapter(store, GameConfig()).load_with_report()
    assert report.state.coins == 8.0
    assert "newer than supported" in caplog.text


def test_reset_deletes_record():
    store = InMemoryStore()
    adapter = PersistenceAdapter(store, GameConfig())
    adapter.save(ResourceState(coins=1.0))
    assert adapter.reset() is True
    assert store.get(KEY) is None
    assert adapter.reset() is False
