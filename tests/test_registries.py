"""Tests for the bounded FIFO registries."""

import pytest

from vicoa_bridge.shared.registries import EchoSuppressor, SentMessageTracker


class TestEchoSuppressor:
    def test_consume_is_one_shot(self):
        echoes = EchoSuppressor()
        echoes.record("fix it")
        assert echoes.consume_if_present("fix it") is True
        assert echoes.consume_if_present("fix it") is False

    def test_match_uses_normalized_text(self):
        echoes = EchoSuppressor()
        echoes.record("line one\r\nline two  ")
        assert "line one\nline two" in echoes
        assert echoes.consume_if_present("  line one\nline two")

    def test_duplicates_consumed_individually(self):
        echoes = EchoSuppressor()
        echoes.record("again")
        echoes.record("again")
        assert echoes.consume_if_present("again")
        assert echoes.consume_if_present("again")
        assert not echoes.consume_if_present("again")

    def test_no_partial_match(self):
        echoes = EchoSuppressor()
        echoes.record("hello world")
        assert not echoes.consume_if_present("hello")
        assert len(echoes) == 1

    def test_overflow_evicts_batch(self):
        echoes = EchoSuppressor()
        for i in range(51):
            echoes.record(f"m{i}")
        assert len(echoes) == 11
        assert "m39" not in echoes
        assert "m40" in echoes
        assert "m50" in echoes

    def test_custom_limits(self):
        echoes = EchoSuppressor(max_size=3, evict_batch=2)
        for text in ("a", "b", "c", "d"):
            echoes.record(text)
        assert len(echoes) == 2
        assert "c" in echoes and "d" in echoes

    def test_invalid_size(self):
        with pytest.raises(ValueError):
            EchoSuppressor(max_size=0)


class TestSentMessageTracker:
    def test_has_never_mutates(self):
        tracker = SentMessageTracker()
        tracker.track("msg_1")
        assert tracker.has("msg_1")
        assert tracker.has("msg_1")
        assert len(tracker) == 1

    def test_track_is_idempotent(self):
        tracker = SentMessageTracker()
        tracker.track("msg_1")
        tracker.track("msg_1")
        assert len(tracker) == 1

    def test_evicts_oldest_on_overflow(self):
        tracker = SentMessageTracker(max_size=200)
        for i in range(201):
            tracker.track(f"msg_{i}")
        assert len(tracker) == 200
        assert not tracker.has("msg_0")
        assert tracker.has("msg_1")
        assert tracker.has("msg_200")
