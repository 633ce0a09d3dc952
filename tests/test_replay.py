"""Tests for the replay feed and the CLI."""

import json

import pytest
from quote_graph.cli import main
from quote_graph.config import Config
from quote_graph.services.replay import ReplayFeed
from quote_graph.services.stream_adapter import StreamAdapter

from conftest import T1, T2


def server_quote(stock, ask, bid, ts):
    return {
        "stock": stock,
        "top_ask": {"price": ask, "size": 10},
        "top_bid": {"price": bid, "size": 10},
        "timestamp": ts,
    }


@pytest.fixture
def replay_file(tmp_path):
    """Two overlapping batches, a blank line and a corrupt line."""
    t1 = "2019-02-11 22:06:30.572453"
    t2 = "2019-02-11 22:06:31.572453"
    lines = [
        json.dumps([server_quote("ABC", 100.0, 98.0, t1), server_quote("DEF", 50.0, 49.0, t1)]),
        "",
        "{not json",
        json.dumps([
            server_quote("ABC", 100.0, 98.0, t1),
            server_quote("DEF", 50.0, 49.0, t1),
            server_quote("ABC", 104.0, 102.0, t2),
        ]),
        json.dumps(server_quote("DEF", 52.0, 51.0, t2)),
        json.dumps("just a string"),
    ]
    path = tmp_path / "batches.jsonl"
    path.write_text("\n".join(lines) + "\n")
    return path


@pytest.fixture
def adapter():
    a = StreamAdapter(Config())
    a.on_mount()
    yield a
    a.close()


class TestReplayFeed:
    """Tests for ReplayFeed."""

    def test_iter_batches(self, adapter, replay_file):
        feed = ReplayFeed(adapter)
        batches = list(feed.iter_batches(replay_file))
        assert [len(b) for b in batches] == [2, 3, 1]
        assert feed.stats.lines_read == 5
        assert feed.stats.errors == 2

    def test_replay(self, adapter, replay_file):
        stats = ReplayFeed(adapter).replay(replay_file)
        assert stats.batches_fed == 3
        assert stats.rows_submitted == 6
        assert adapter.store.row_count() == 4
        assert adapter.store.series() == {
            "ABC": [(T1, 100.0), (T2, 104.0)],
            "DEF": [(T1, 50.0), (T2, 52.0)],
        }

    def test_feed_batch(self, adapter):
        feed = ReplayFeed(adapter)
        assert feed.feed_batch([server_quote("ABC", 1.0, 0.5, "2019-02-11 22:06:30.572453")]) == 1
        assert feed.stats.batches_fed == 1

    def test_unparseable_records_in_batch(self, adapter, tmp_path):
        t1 = "2019-02-11 22:06:30.572453"
        path = tmp_path / "mixed.jsonl"
        path.write_text("\n".join([
            json.dumps([1, server_quote("ABC", 100.0, 98.0, t1)]),
            json.dumps([
                {"stock": "DEF", "top_ask": 5, "timestamp": t1},
                {"stock": "DEF", "timestamp": 1e20},
                server_quote("DEF", 50.0, 49.0, t1),
            ]),
        ]) + "\n")

        stats = ReplayFeed(adapter).replay(path)
        assert stats.batches_fed == 2
        assert stats.rows_submitted == 2
        assert adapter.stats.records_dropped == 3
        assert adapter.store.series() == {"ABC": [(T1, 100.0)], "DEF": [(T1, 50.0)]}

    def test_missing_file(self, adapter, tmp_path):
        with pytest.raises(FileNotFoundError):
            ReplayFeed(adapter).replay(tmp_path / "missing.jsonl")


class TestCli:
    """Tests for the command-line interface."""

    def test_no_command(self, capsys):
        assert main([]) == 1

    def test_version(self, capsys):
        assert main(["version"]) == 0
        assert "quote-graph version" in capsys.readouterr().out

    def test_status(self, capsys):
        assert main(["status"]) == 0
        out = capsys.readouterr().out
        assert "Merge policy: distinct" in out
        assert "row-pivots: ['timestamp']" in out

    def test_replay(self, replay_file, capsys):
        assert main(["replay", str(replay_file)]) == 0
        out = capsys.readouterr().out
        assert "ABC (2 points)" in out
        assert "DEF (2 points)" in out
        assert "Rows stored: 4" in out

    def test_replay_append_policy(self, replay_file, capsys):
        assert main(["replay", str(replay_file), "--policy", "append"]) == 0
        out = capsys.readouterr().out
        assert "Rows stored: 6" in out
        assert "104.0000" in out

    def test_replay_missing_file(self, tmp_path, capsys):
        assert main(["replay", str(tmp_path / "missing.jsonl")]) == 1
        assert "not found" in capsys.readouterr().out

    def test_replay_other_column(self, replay_file, capsys):
        assert main(["replay", str(replay_file), "--column", "top_bid_price"]) == 0
        out = capsys.readouterr().out
        assert "Aggregated top_bid_price" in out
        assert "102.0000" in out

    def test_replay_unknown_column(self, replay_file, capsys):
        assert main(["replay", str(replay_file), "--column", "foo"]) == 1
        out = capsys.readouterr().out
        assert "unknown column 'foo'" in out
        assert "top_ask_price" in out

    def test_replay_with_config(self, replay_file, tmp_path, capsys):
        config_file = tmp_path / "config.yaml"
        config_file.write_text("view:\n  columns: [top_bid_price]\n")
        assert main(["--config", str(config_file), "replay", str(replay_file)]) == 0
        out = capsys.readouterr().out
        assert "Aggregated top_bid_price" in out
        assert "102.0000" in out
