"""
Price-level order book with an append-only snapshot history.

Each side is a ``SortedDict`` of price → volume.  Bids are keyed by the
negated price so both sides iterate best-first; upserts and removals are
O(log n) in the number of distinct levels on that side.

Every mutating call appends exactly one ``BookSnapshot`` to the history,
so ``len(book.history())`` always equals the number of mutations applied.
"""

import operator, threading, time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Iterable, NamedTuple, Optional

from sortedcontainers import SortedDict

SNAPSHOT_DEPTH = 5          # levels per side captured in each snapshot


class Side(str, Enum):
    BID = "bid"
    ASK = "ask"


class Level(NamedTuple):
    price: float
    volume: float


NO_QUOTE = Level(0.0, 0.0)


@dataclass(frozen=True)
class BookSnapshot:
    """
    Point-in-time view of the book.

    ``mid_price`` and ``spread`` are 0 when either side is empty, and an
    empty side reports ``NO_QUOTE`` as its best level.  ``bid_levels`` are
    descending by price, ``ask_levels`` ascending; either may hold fewer
    than ``SNAPSHOT_DEPTH`` entries.
    """
    timestamp: float
    mid_price: float
    spread: float
    best_bid: Level
    best_ask: Level
    bid_levels: tuple[Level, ...]
    ask_levels: tuple[Level, ...]


# ═══════════════════════════════════════════════════════════════════
#  Order Book
# ═══════════════════════════════════════════════════════════════════
class OrderBook:
    """
    Two-sided price → volume book.

    A level with volume ≤ 0 is never stored: updating with a non-positive
    volume removes the level (a no-op if it is already absent).

    All public methods serialise on one re-entrant lock, so a mutation and
    the snapshot it produces are applied atomically even when a second
    thread touches the book.
    """

    def __init__(self, depth: int = SNAPSHOT_DEPTH, clock: Callable[[], float] = time.time):
        self.depth = depth
        self._clock = clock
        self._bids = SortedDict(operator.neg)
        self._asks = SortedDict()
        self._history: list[BookSnapshot] = []
        self._last_ts = 0.0
        self._lock = threading.RLock()

    def _side(self, side: Side) -> SortedDict:
        return self._bids if Side(side) is Side.BID else self._asks

    # ── Mutations ─────────────────────────────────────────────────
    def update_bid(self, price: float, volume: float) -> None:
        self.update(Side.BID, price, volume)

    def update_ask(self, price: float, volume: float) -> None:
        self.update(Side.ASK, price, volume)

    def update(self, side: Side, price: float, volume: float) -> None:
        with self._lock:
            levels = self._side(side)
            if volume > 0:
                levels[price] = volume
            else:
                levels.pop(price, None)
            self._record()

    def clear_level(self, is_bid: bool, price: float) -> None:
        with self._lock:
            self._side(Side.BID if is_bid else Side.ASK).pop(price, None)
            self._record()

    def replace_level(self, side: Side, price: float, volume: float,
                      retire: Iterable[float] = ()) -> None:
        """
        Remove every price in ``retire`` and upsert ``price`` in one step.

        Counts as a single mutation (one snapshot), which lets a caller move
        a level to a new price without an intermediate one-sided view.
        """
        with self._lock:
            levels = self._side(side)
            for old in retire:
                levels.pop(old, None)
            if volume > 0:
                levels[price] = volume
            else:
                levels.pop(price, None)
            self._record()

    def _record(self) -> None:
        self._history.append(self.snapshot())

    # ── Queries ───────────────────────────────────────────────────
    def best_bid(self) -> Level:
        with self._lock:
            return Level(*self._bids.peekitem(0)) if self._bids else NO_QUOTE

    def best_ask(self) -> Level:
        with self._lock:
            return Level(*self._asks.peekitem(0)) if self._asks else NO_QUOTE

    def mid_price(self) -> float:
        with self._lock:
            if not self._bids or not self._asks:
                return 0.0
            return (self._bids.peekitem(0)[0] + self._asks.peekitem(0)[0]) / 2.0

    def spread(self) -> float:
        with self._lock:
            if not self._bids or not self._asks:
                return 0.0
            return self._asks.peekitem(0)[0] - self._bids.peekitem(0)[0]

    def top_levels(self, side: Side, depth: Optional[int] = None) -> list[Level]:
        """Up to ``depth`` levels best-first (all levels when ``depth`` is None)."""
        with self._lock:
            levels = self._side(side)
            n = len(levels) if depth is None else min(depth, len(levels))
            return [Level(p, levels[p]) for p in levels.islice(0, n)]

    def bid_levels(self, depth: Optional[int] = SNAPSHOT_DEPTH) -> list[Level]:
        return self.top_levels(Side.BID, depth)

    def ask_levels(self, depth: Optional[int] = SNAPSHOT_DEPTH) -> list[Level]:
        return self.top_levels(Side.ASK, depth)

    def volume_at(self, side: Side, price: float) -> Optional[float]:
        """Resting volume at ``price``, or None if the level is absent."""
        with self._lock:
            return self._side(side).get(price)

    def level_count(self, side: Side) -> int:
        with self._lock:
            return len(self._side(side))

    def snapshot(self) -> BookSnapshot:
        with self._lock:
            # millisecond resolution, never running backwards within a session
            ts = max(round(self._clock(), 3), self._last_ts)
            self._last_ts = ts
            return BookSnapshot(
                timestamp=ts,
                mid_price=self.mid_price(),
                spread=self.spread(),
                best_bid=self.best_bid(),
                best_ask=self.best_ask(),
                bid_levels=tuple(self.top_levels(Side.BID, self.depth)),
                ask_levels=tuple(self.top_levels(Side.ASK, self.depth)),
            )

    # ── History ───────────────────────────────────────────────────
    def history(self) -> tuple[BookSnapshot, ...]:
        with self._lock:
            return tuple(self._history)

    def __len__(self) -> int:
        with self._lock:
            return len(self._history)
