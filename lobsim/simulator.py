"""
Stochastic order-book simulator.

A reference price follows ``drift + N(0, σ)·√Δt`` with Δt measured on the
wall clock; after every step both sides are re-seeded around the new
price.  On top of that, discrete microstructure events (large orders,
cancels, shifts, spoofs, sweeps) perturb the book.

Spoof reversions run on a ``threading.Timer`` whose only job is to post a
``PendingReversion`` into the simulator's inbox.  The simulator thread
drains the inbox at the start of each step, so the book is only ever
mutated from the owner thread.
"""

import logging, queue, threading, time
from collections import Counter
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

import numpy as np

from lobsim.book import Level, OrderBook, Side

log = logging.getLogger(__name__)

# ─── Price process ────────────────────────────────────────────────
DRIFT_UP = 0.001
DRIFT_DOWN = -0.005
DRIFT_UP_PROB = 0.5

# ─── Liquidity profile: 10·(1 + 0.5·U) / (1 + 0.2·i) ──────────────
BASE_SIZE = 10.0
SIZE_JITTER = 0.5
SIZE_DECAY = 0.2

# ─── Events ───────────────────────────────────────────────────────
EVENT_PROBABILITY = 0.2
NEAR_LEVELS = 4                   # large orders / spoofs pick among the top 4
LARGE_ORDER_MULT = (2.0, 5.0)
CANCEL_KEEP_FRACTION = 0.1
SHIFT_TICKS = 3
SPOOF_MULT = 10.0
SPOOF_REVERT_DELAY = 0.05         # seconds
SWEEP_DEPTH = (3, 7)              # inclusive
SWEEP_TICKS_PER_LEVEL = 2

PROGRESS_EVERY = 100


class EventType(str, Enum):
    LARGE_BID = "large_bid"
    LARGE_ASK = "large_ask"
    CANCEL_BID = "cancel_bid"
    CANCEL_ASK = "cancel_ask"
    SHIFT_UP = "shift_up"
    SHIFT_DOWN = "shift_down"
    SPOOF = "spoof"
    SWEEP_UP = "sweep_up"
    SWEEP_DOWN = "sweep_down"
    NONE = "none"


EVENT_TYPES = list(EventType)


@dataclass(frozen=True)
class PendingReversion:
    price: float
    volume: float
    due: float


# ═══════════════════════════════════════════════════════════════════
#  Market Simulator
# ═══════════════════════════════════════════════════════════════════
class MarketSimulator:
    """
    Drive an ``OrderBook`` with a random-walk price and random events.

    Parameters
    ----------
    initial_price : starting reference price
    tick_size     : level spacing, also the price floor
    levels        : levels seeded per side
    volatility    : σ of the per-step normal noise
    seed          : seed for the owned ``numpy.random.Generator``
                    (None → OS entropy)
    spoof_delay   : seconds before a spoofed level is restored
    clock, sleep  : time source and sleep function, injectable for tests
    book          : book to drive (a fresh ``OrderBook`` by default)
    """

    def __init__(
        self,
        initial_price: float = 100.0,
        tick_size: float = 0.01,
        levels: int = 10,
        volatility: float = 0.001,
        seed: Optional[int] = None,
        spoof_delay: float = SPOOF_REVERT_DELAY,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
        book: Optional[OrderBook] = None,
    ):
        if tick_size <= 0:
            raise ValueError(f"tick_size must be positive, got {tick_size}")
        if levels < 1:
            raise ValueError(f"levels must be >= 1, got {levels}")

        self.current_price = float(initial_price)
        self.tick_size = tick_size
        self.num_levels = levels
        self.volatility = volatility
        self.spoof_delay = spoof_delay
        self.event_counts: Counter = Counter()

        self._rng = np.random.default_rng(seed)
        self._clock = clock
        self._sleep = sleep
        self._book = book if book is not None else OrderBook()

        self._inbox: "queue.Queue[PendingReversion]" = queue.Queue()
        self._timers: list[threading.Timer] = []

        self._handlers = {
            EventType.LARGE_BID: lambda: self._large_order(Side.BID),
            EventType.LARGE_ASK: lambda: self._large_order(Side.ASK),
            EventType.CANCEL_BID: lambda: self._cancel(Side.BID),
            EventType.CANCEL_ASK: lambda: self._cancel(Side.ASK),
            EventType.SHIFT_UP: lambda: self._shift(+SHIFT_TICKS),
            EventType.SHIFT_DOWN: lambda: self._shift(-SHIFT_TICKS),
            EventType.SPOOF: self._spoof,
            EventType.SWEEP_UP: lambda: self._sweep(Side.ASK),
            EventType.SWEEP_DOWN: lambda: self._sweep(Side.BID),
            EventType.NONE: lambda: None,
        }

        self._last_update = self._clock()
        for i in range(1, self.num_levels + 1):
            self._book.update_bid(self.current_price - i * self.tick_size, self._base_size(i))
            self._book.update_ask(self.current_price + i * self.tick_size, self._base_size(i))

    @property
    def orderbook(self) -> OrderBook:
        return self._book

    @property
    def rng(self) -> np.random.Generator:
        return self._rng

    def _base_size(self, i: int) -> float:
        return BASE_SIZE * (1.0 + SIZE_JITTER * self._rng.random()) / (1.0 + SIZE_DECAY * i)

    def _floor(self, price: float) -> float:
        return max(price, self.tick_size)

    # ── Price process ─────────────────────────────────────────────
    def generate_update(self) -> None:
        """
        Advance the reference price and re-seed both sides around it.

        Produces exactly ``2 · levels`` book mutations.  Level ``i`` on each
        side replaces the ``i``-th existing level of that side, and the last
        one also retires any surplus, so the book ends up holding only the
        freshly seeded levels.
        """
        self.apply_pending_reversions()

        now = self._clock()
        dt = max(now - self._last_update, 0.0)
        self._last_update = now

        drift = DRIFT_UP if self._rng.random() < DRIFT_UP_PROB else DRIFT_DOWN
        noise = self._rng.normal(0.0, self.volatility) * np.sqrt(dt)
        self.current_price = self._floor(self.current_price + drift + noise)

        n = self.num_levels
        fresh = {
            Side.BID: [self.current_price - i * self.tick_size for i in range(1, n + 1)],
            Side.ASK: [self.current_price + i * self.tick_size for i in range(1, n + 1)],
        }
        stale = {}
        for side in (Side.BID, Side.ASK):
            keep = set(fresh[side])
            stale[side] = [lvl.price for lvl in self._book.top_levels(side) if lvl.price not in keep]

        for i in range(1, n + 1):
            for side in (Side.BID, Side.ASK):
                old = stale[side]
                retire = old[i - 1:i] if i < n else old[n - 1:]
                self._book.replace_level(side, fresh[side][i - 1], self._base_size(i), retire=retire)

    # ── Events ────────────────────────────────────────────────────
    def simulate_random_event(self) -> EventType:
        """Draw one event kind uniformly and apply it."""
        event = EVENT_TYPES[int(self._rng.integers(len(EVENT_TYPES)))]
        self.apply_event(event)
        return event

    def apply_event(self, event: EventType) -> None:
        self.apply_pending_reversions()
        self._handlers[EventType(event)]()
        self.event_counts[EventType(event).value] += 1

    def _pick_near(self, levels: list[Level]) -> Level:
        return levels[int(self._rng.integers(min(NEAR_LEVELS, len(levels))))]

    def _large_order(self, side: Side) -> None:
        levels = self._book.top_levels(side, self.num_levels)
        if not levels:
            return
        lvl = self._pick_near(levels)
        mult = self._rng.uniform(*LARGE_ORDER_MULT)
        self._book.update(side, lvl.price, lvl.volume * mult)

    def _cancel(self, side: Side) -> None:
        # a cancel thins the level out, it never removes it
        levels = self._book.top_levels(side, self.num_levels)
        if not levels:
            return
        lvl = levels[int(self._rng.integers(len(levels)))]
        self._book.update(side, lvl.price, lvl.volume * CANCEL_KEEP_FRACTION)

    def _shift(self, ticks: int) -> None:
        self.current_price = self._floor(self.current_price + ticks * self.tick_size)

    def _spoof(self) -> None:
        levels = self._book.top_levels(Side.ASK, self.num_levels)
        if not levels:
            return
        lvl = self._pick_near(levels)
        self._book.update_ask(lvl.price, lvl.volume * SPOOF_MULT)
        self._schedule_reversion(lvl.price, lvl.volume)

    def _sweep(self, side: Side) -> None:
        depth = int(self._rng.integers(SWEEP_DEPTH[0], SWEEP_DEPTH[1] + 1))
        for lvl in self._book.top_levels(side, depth):
            self._book.clear_level(side is Side.BID, lvl.price)
        direction = +1 if side is Side.ASK else -1
        self._shift(direction * SWEEP_TICKS_PER_LEVEL * depth)

    # ── Spoof reversion ───────────────────────────────────────────
    def _schedule_reversion(self, price: float, volume: float) -> None:
        self._timers = [t for t in self._timers if t.is_alive()]
        item = PendingReversion(price, volume, self._clock() + self.spoof_delay)
        timer = threading.Timer(self.spoof_delay, self._inbox.put, args=(item,))
        timer.daemon = True
        self._timers.append(timer)
        timer.start()

    def apply_pending_reversions(self) -> int:
        """Restore every spoofed level whose timer has fired; returns the count."""
        applied = 0
        while True:
            try:
                item = self._inbox.get_nowait()
            except queue.Empty:
                return applied
            if self._book.volume_at(Side.ASK, item.price) is None:
                log.warning("Spoofed ask %.6f no longer in book, reinserting %.4f",
                            item.price, item.volume)
            else:
                log.debug("Reverting spoofed ask %.6f to %.4f", item.price, item.volume)
            self._book.update_ask(item.price, item.volume)
            applied += 1

    @property
    def pending_reversions(self) -> int:
        """Timers still running plus reversions waiting in the inbox."""
        return sum(t.is_alive() for t in self._timers) + self._inbox.qsize()

    def close(self) -> None:
        """Cancel outstanding reversion timers and drop anything queued."""
        for t in self._timers:
            t.cancel()
        self._timers.clear()
        while True:
            try:
                self._inbox.get_nowait()
            except queue.Empty:
                break

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()

    # ── Real-time loop ────────────────────────────────────────────
    def run_simulation(self, duration_seconds: float, updates_per_second: float,
                       event_probability: float = EVENT_PROBABILITY) -> int:
        """
        Call ``generate_update`` on a fixed cadence for ``duration_seconds``
        of wall-clock time, adding a random event with ``event_probability``
        on each tick.  Returns the number of updates generated.
        """
        if updates_per_second <= 0:
            raise ValueError(f"updates_per_second must be positive, got {updates_per_second}")
        log.info("Starting orderbook simulation for %s seconds...", duration_seconds)

        start = self._clock()
        interval = 1.0 / updates_per_second
        next_update = start
        count = 0

        while self._clock() - start < duration_seconds:
            now = self._clock()
            if now >= next_update:
                self.generate_update()
                if self._rng.random() < event_probability:
                    self.simulate_random_event()

                count += 1
                if count % PROGRESS_EVERY == 0:
                    log.info("Processed %d updates, time elapsed: %.0fs", count, now - start)

                next_update += interval
                if next_update < now:
                    next_update = now + interval

            self._sleep(0.001)

        self.apply_pending_reversions()
        log.info("Simulation complete. Generated %d orderbook updates.", count)
        return count
