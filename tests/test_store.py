"""
Tests for the event store and file loader.

COVERAGE:
- InMemoryEventStore reads (filtering, newest first, limits) and snapshots
- EventStore protocol conformance
- load_events from CSV and JSON, invalid row skipping
"""

import json
import threading

import pytest

from execdesk.errors import DataFileError
from execdesk.events import Strategy
from execdesk.monitoring import detect_all
from execdesk.store import EventStore, InMemoryEventStore, load_events

FILLS_CSV = """timestamp,strategy_id,symbol,side,quantity,price,venue,latency_ms,order_id
2024-03-04T10:00:00Z,S1,AAPL,buy,100,185.5,NYSE,12.5,o1
2024-03-04T10:05:00Z,S1,AAPL,sell,100,186.0,NYSE,9,o2
2024-03-04T10:06:00Z,S1,AAPL,hold,100,186.0,NYSE,9,o3
2024-03-04T10:07:00Z,S2,MSFT,buy,abc,410.0,ARCA,5,o4
"""


# ============================================================================
# IN-MEMORY STORE
# ============================================================================

class TestInMemoryEventStore:
    """Test the reference store."""

    def test_protocol(self):
        assert isinstance(InMemoryEventStore(), EventStore)

    def test_newest_first_with_limit(self, make_fill):
        store = InMemoryEventStore()
        fills = [make_fill(minutes=m) for m in (5, 1, 9, 3)]
        for f in fills:
            store.add_fill(f)
        assert [f.timestamp.minute for f in store.get_fills()] == [9, 5, 3, 1]
        assert [f.timestamp.minute for f in store.get_fills(limit=2)] == [9, 5]

    def test_filter_by_strategy(self, make_cancel, make_reject):
        store = InMemoryEventStore()
        store.add_cancel(make_cancel(strategy_id="A"))
        store.add_cancel(make_cancel(strategy_id="B"))
        store.add_reject(make_reject(strategy_id="B"))
        assert len(store.get_cancels("A")) == 1
        assert len(store.get_rejects("A")) == 0
        assert len(store.get_rejects("B")) == 1

    def test_negative_limit(self):
        with pytest.raises(ValueError):
            InMemoryEventStore().get_fills(limit=-1)

    def test_getters_return_copies(self, make_fill):
        store = InMemoryEventStore()
        store.add_fill(make_fill())
        store.get_fills().clear()
        assert len(store.get_fills()) == 1

    def test_strategies(self):
        store = InMemoryEventStore(strategies=[Strategy(id="S1", name="Momentum")])
        assert store.get_strategy("S1").name == "Momentum"
        assert store.get_strategy("missing") is None
        store.add_strategy(Strategy(id="S1", name="Renamed"))
        assert [s.name for s in store.get_strategies()] == ["Renamed"]

    def test_snapshot_and_anomalies(self, hour_of_s1):
        store = InMemoryEventStore(hour_of_s1)
        batch = store.snapshot("S1")
        assert len(batch) == len(hour_of_s1)

        for anomaly in detect_all(batch.fills, batch.cancels, batch.rejects, batch.latency_samples):
            store.add_anomaly(anomaly)
        assert len(store.get_anomalies("S1")) == 1

    def test_concurrent_writes(self, make_fill):
        store = InMemoryEventStore()
        fills = [make_fill(minutes=i) for i in range(400)]

        def writer(chunk):
            for f in chunk:
                store.add_fill(f)

        threads = [threading.Thread(target=writer, args=(fills[i::4],)) for i in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(store.get_fills()) == 400


# ============================================================================
# FILE LOADER
# ============================================================================

class TestLoadEvents:
    """Test directory loading."""

    def test_csv_with_invalid_rows(self, tmp_path, caplog):
        (tmp_path / "fills.csv").write_text(FILLS_CSV)
        loaded = load_events(tmp_path)

        assert len(loaded.batch.fills) == 2
        assert loaded.skipped["fill"] == 2
        assert loaded.batch.fills[0].quantity == 100.0
        assert loaded.batch.fills[0].order_id == "o1"
        assert "Skipping invalid fill row 3" in caplog.text

    def test_json_files(self, tmp_path):
        (tmp_path / "cancels.json").write_text(json.dumps([
            {"timestamp": "2024-03-04T10:00:00Z", "strategy_id": "S1", "symbol": "AAPL",
             "order_id": "o9", "reason": "User", "latency_ms": 4},
        ]))
        (tmp_path / "latency.json").write_text(json.dumps([
            {"timestamp": "2024-03-04T10:00:00Z", "strategy_id": "S1",
             "metric_type": "order_to_fill", "latency_ms": 11, "percentile_99": 40},
            {"timestamp": "2024-03-04T10:01:00Z", "strategy_id": "S1",
             "metric_type": "order_to_fill", "latency_ms": -1},
        ]))
        (tmp_path / "strategies.json").write_text(json.dumps([{"id": "S1", "name": "Momentum"}]))

        loaded = load_events(tmp_path)
        assert len(loaded.batch.cancels) == 1
        assert len(loaded.batch.latency_samples) == 1
        assert loaded.batch.latency_samples[0].percentile_99 == 40.0
        assert loaded.skipped["latency_sample"] == 1
        assert [s.id for s in loaded.strategies] == ["S1"]

    def test_rejects_csv_keeps_error_code_text(self, tmp_path):
        (tmp_path / "rejects.csv").write_text(
            "timestamp,strategy_id,symbol,order_id,reason,error_code\n"
            "2024-03-04T10:00:00Z,S1,AAPL,o1,Risk,0042\n"
        )
        loaded = load_events(tmp_path)
        assert loaded.batch.rejects[0].error_code == "0042"

    def test_bad_timestamp_skipped(self, tmp_path):
        (tmp_path / "rejects.csv").write_text(
            "timestamp,strategy_id,symbol,order_id,reason,error_code\n"
            "yesterday,S1,AAPL,o1,Risk,E1\n"
        )
        loaded = load_events(tmp_path)
        assert loaded.batch.rejects == []
        assert loaded.skipped["reject"] == 1

    def test_missing_timestamps_skipped(self, tmp_path, caplog):
        """Blank, null and absent timestamps are skipped and logged, never raised."""
        (tmp_path / "rejects.csv").write_text(
            "timestamp,strategy_id,symbol,order_id,reason,error_code\n"
            ",S1,AAPL,o1,Risk,E1\n"
            "2024-03-04T10:00:00Z,S1,AAPL,o2,Risk,E1\n"
        )
        good = {"strategy_id": "S1", "symbol": "AAPL", "side": "buy", "quantity": 5,
                "price": 10.0, "venue": "NYSE", "latency_ms": 2, "order_id": "o3"}
        (tmp_path / "fills.json").write_text(json.dumps([
            dict(good, timestamp=None),
            good,
            dict(good, timestamp="2024-03-04T10:01:00Z"),
        ]))

        loaded = load_events(tmp_path)
        assert [r.order_id for r in loaded.batch.rejects] == ["o2"]
        assert loaded.skipped["reject"] == 1
        assert len(loaded.batch.fills) == 1
        assert loaded.skipped["fill"] == 2
        assert "Skipping invalid reject row 1" in caplog.text
        assert "Skipping malformed fill row 2" in caplog.text

    def test_empty_directory(self, tmp_path):
        loaded = load_events(tmp_path)
        assert len(loaded.batch) == 0
        assert loaded.strategies == []

    def test_missing_directory(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_events(tmp_path / "nope")

    def test_malformed_json_raises(self, tmp_path):
        (tmp_path / "fills.json").write_text("{not json")
        with pytest.raises(DataFileError):
            load_events(tmp_path)

    def test_json_must_be_list(self, tmp_path):
        (tmp_path / "fills.json").write_text(json.dumps({"timestamp": "x"}))
        with pytest.raises(DataFileError):
            load_events(tmp_path)
