"""Shared fixtures for the lobsim test suite."""

import pytest

from lobsim.book import BookSnapshot, Level


class FakeClock:
    """Manually advanced time source."""

    def __init__(self, start: float = 1_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


def make_snapshot(mid=100.5, spread=1.0, bid=(100.0, 5.0), ask=(101.0, 5.0),
                  bid_levels=None, ask_levels=None, timestamp=0.0):
    bid_lv = tuple(Level(*l) for l in (bid_levels if bid_levels is not None else [bid]))
    ask_lv = tuple(Level(*l) for l in (ask_levels if ask_levels is not None else [ask]))
    return BookSnapshot(
        timestamp=timestamp,
        mid_price=mid,
        spread=spread,
        best_bid=Level(*bid),
        best_ask=Level(*ask),
        bid_levels=bid_lv,
        ask_levels=ask_lv,
    )


def snapshot_at_mid(mid: float, spread: float = 0.02):
    """Single-level snapshot centred on ``mid``."""
    return make_snapshot(
        mid=mid, spread=spread,
        bid=(mid - spread / 2, 5.0), ask=(mid + spread / 2, 5.0),
    )
