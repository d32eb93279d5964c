"""Tests for OrderBook: ordering, removal, snapshots and history."""

import threading

import pytest

from lobsim.book import NO_QUOTE, Level, OrderBook, Side


def _book(clock=None, bids=(), asks=()):
    book = OrderBook(clock=clock) if clock else OrderBook()
    for p, v in bids:
        book.update_bid(p, v)
    for p, v in asks:
        book.update_ask(p, v)
    return book


class TestQuotes:
    def test_basic_mid_and_spread(self):
        book = _book(bids=[(100.0, 5.0)], asks=[(101.0, 5.0)])
        assert book.best_bid() == Level(100.0, 5.0)
        assert book.best_ask() == Level(101.0, 5.0)
        assert book.mid_price() == 100.5
        assert book.spread() == 1.0

    def test_empty_book_reports_no_quote(self):
        book = OrderBook()
        assert book.best_bid() == NO_QUOTE
        assert book.best_ask() == NO_QUOTE
        assert book.mid_price() == 0.0
        assert book.spread() == 0.0

    def test_one_sided_book_has_zero_mid(self):
        book = _book(bids=[(100.0, 5.0)])
        assert book.mid_price() == 0.0
        assert book.spread() == 0.0
        assert book.best_ask() == NO_QUOTE

    def test_best_bid_is_highest(self):
        book = _book(bids=[(98.0, 1.0), (100.0, 2.0), (99.0, 3.0)])
        best = book.best_bid()
        assert best.price == 100.0
        assert all(best.price >= lvl.price for lvl in book.bid_levels(None))

    def test_best_ask_is_lowest(self):
        book = _book(asks=[(103.0, 1.0), (101.0, 2.0), (102.0, 3.0)])
        best = book.best_ask()
        assert best.price == 101.0
        assert all(best.price <= lvl.price for lvl in book.ask_levels(None))


class TestLevels:
    def test_bids_descending_asks_ascending(self):
        book = _book(
            bids=[(100.0 - i, 1.0 + i) for i in range(7)],
            asks=[(101.0 + i, 1.0 + i) for i in range(7)],
        )
        assert [l.price for l in book.bid_levels()] == [100.0, 99.0, 98.0, 97.0, 96.0]
        assert [l.price for l in book.ask_levels()] == [101.0, 102.0, 103.0, 104.0, 105.0]

    def test_top_levels_returns_fewer_when_side_is_thin(self):
        book = _book(bids=[(100.0, 1.0), (99.0, 1.0)])
        assert len(book.top_levels(Side.BID, 5)) == 2
        assert book.top_levels(Side.ASK, 5) == []

    def test_upsert_overwrites_volume(self):
        book = _book(bids=[(100.0, 1.0)])
        book.update_bid(100.0, 7.5)
        assert book.volume_at(Side.BID, 100.0) == 7.5
        assert book.level_count(Side.BID) == 1

    def test_non_positive_volume_removes_level(self):
        book = _book(bids=[(100.0, 1.0), (99.0, 1.0)])
        book.update_bid(100.0, 0.0)
        assert book.volume_at(Side.BID, 100.0) is None
        assert book.best_bid().price == 99.0

        book.update_bid(100.0, -3.0)     # repeated removal is a no-op
        assert book.volume_at(Side.BID, 100.0) is None
        assert book.level_count(Side.BID) == 1

    def test_clear_level(self):
        book = _book(bids=[(100.0, 1.0)], asks=[(101.0, 1.0)])
        book.clear_level(False, 101.0)
        assert book.volume_at(Side.ASK, 101.0) is None
        book.clear_level(False, 101.0)
        assert book.level_count(Side.ASK) == 0

    def test_replace_level_retires_old_prices_in_one_mutation(self):
        book = _book(bids=[(100.0, 1.0), (99.0, 1.0)])
        before = len(book.history())
        book.replace_level(Side.BID, 100.5, 4.0, retire=[100.0, 99.0])
        assert book.bid_levels() == [Level(100.5, 4.0)]
        assert len(book.history()) == before + 1


class TestSnapshots:
    def test_every_mutation_appends_one_snapshot(self):
        book = OrderBook()
        book.update_bid(100.0, 1.0)
        book.update_ask(101.0, 1.0)
        book.update_bid(100.0, 0.0)       # removal
        book.update_bid(50.0, 0.0)        # removal of an absent level
        book.clear_level(True, 42.0)
        book.replace_level(Side.ASK, 101.5, 1.0, retire=[101.0])
        assert len(book.history()) == 6
        assert len(book) == 6

    def test_snapshot_reflects_state_after_mutation(self):
        book = _book(bids=[(100.0, 5.0)], asks=[(101.0, 5.0)])
        last = book.history()[-1]
        assert last.mid_price == 100.5
        assert last.spread == 1.0
        assert last.bid_levels == (Level(100.0, 5.0),)
        assert last.ask_levels == (Level(101.0, 5.0),)

        first = book.history()[0]
        assert first.mid_price == 0.0          # only the bid existed
        assert first.best_ask == NO_QUOTE

    def test_snapshot_depth_is_capped(self):
        book = _book(bids=[(100.0 - i, 1.0) for i in range(8)])
        assert len(book.snapshot().bid_levels) == 5

    def test_timestamps_never_decrease(self, clock):
        book = OrderBook(clock=clock)
        book.update_bid(100.0, 1.0)
        clock.advance(-5.0)                    # clock steps backwards
        book.update_bid(99.0, 1.0)
        clock.advance(10.0)
        book.update_bid(98.0, 1.0)
        ts = [s.timestamp for s in book.history()]
        assert ts == sorted(ts)
        assert ts[0] == ts[1]

    def test_snapshot_is_immutable(self):
        snap = _book(bids=[(100.0, 1.0)]).snapshot()
        with pytest.raises(AttributeError):
            snap.mid_price = 1.0

    def test_history_is_a_copy(self):
        book = _book(bids=[(100.0, 1.0)])
        hist = book.history()
        book.update_bid(99.0, 1.0)
        assert len(hist) == 1


class TestConcurrency:
    def test_parallel_writers_keep_history_consistent(self):
        book = OrderBook()
        n = 500

        def writer(side, base):
            for i in range(n):
                book.update(side, base + (i % 20) * 0.01, 1.0 + i)

        threads = [threading.Thread(target=writer, args=(Side.BID, 99.0)),
                   threading.Thread(target=writer, args=(Side.ASK, 101.0))]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(book.history()) == 2 * n
        assert book.level_count(Side.BID) == 20
        assert book.level_count(Side.ASK) == 20
