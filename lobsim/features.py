"""
Feature extraction and labelling for order-book sequence classifiers.

Per snapshot, ``FeatureExtractor`` produces a fixed-width record of
instantaneous ratios (spread, imbalance, VWMP, per-level distances and
sizes) plus rolling statistics over the last ``window`` snapshots.
``prepare_labeled_data`` then slices consecutive records into training
windows, each labelled by the mid-price move ``horizon`` snapshots after
the window ends.
"""

import logging
from collections import deque
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Sequence, Union

import numpy as np

from lobsim.book import BookSnapshot
from lobsim.dataset import LABEL_NAMES, UNLABELED, Label, LabeledDataset
from lobsim.errors import InsufficientDataError
from lobsim import storage

log = logging.getLogger(__name__)

N_LEVELS = 5                # per-side levels encoded in each record
MOMENTUM_MIN_PRICES = 11    # 10-step momentum needs the price 10 snapshots back
DEFAULT_HORIZON = 5

FEATURE_NAMES = (
    ["price_change", "spread", "spread_pct", "size_imbalance", "vwmp", "vwmp_diff"]
    + [f"bid_distance_{i}" for i in range(N_LEVELS)]
    + [f"ask_distance_{i}" for i in range(N_LEVELS)]
    + [f"bid_size_norm_{i}" for i in range(N_LEVELS)]
    + [f"ask_size_norm_{i}" for i in range(N_LEVELS)]
    + ["volatility", "price_mom_1", "price_mom_5", "price_mom_10", "price_trend", "spread_trend"]
)
FEATURE_WIDTH = len(FEATURE_NAMES)


@dataclass(frozen=True)
class OrderbookFeature:
    price_change: float
    spread: float
    spread_pct: float
    size_imbalance: float
    vwmp: float
    vwmp_diff: float
    bid_distances: tuple[float, ...]
    ask_distances: tuple[float, ...]
    bid_sizes_norm: tuple[float, ...]
    ask_sizes_norm: tuple[float, ...]
    volatility: float = 0.0
    price_mom_1: float = 0.0
    price_mom_5: float = 0.0
    price_mom_10: float = 0.0
    price_trend: float = 0.0
    spread_trend: float = 0.0

    def to_vector(self) -> np.ndarray:
        """Flatten in ``FEATURE_NAMES`` order."""
        return np.array(
            [self.price_change, self.spread, self.spread_pct,
             self.size_imbalance, self.vwmp, self.vwmp_diff,
             *self.bid_distances, *self.ask_distances,
             *self.bid_sizes_norm, *self.ask_sizes_norm,
             self.volatility, self.price_mom_1, self.price_mom_5,
             self.price_mom_10, self.price_trend, self.spread_trend],
            dtype=np.float64,
        )


def _ratio(num: float, den: float) -> float:
    return num / den if den != 0 else 0.0


def label_returns(mid_prices: Sequence[float], threshold: float,
                  horizon: int = DEFAULT_HORIZON) -> np.ndarray:
    """
    Classify every index with a defined horizon target.

    Returns an int32 array the length of ``mid_prices``; the last
    ``horizon`` entries stay ``UNLABELED``.  A zero current mid yields a
    zero return (NO_CHANGE).
    """
    mid = np.asarray(mid_prices, dtype=np.float64)
    n = len(mid)
    labels = np.full(n, UNLABELED, dtype=np.int32)
    if n <= horizon:
        return labels

    cur, fut = mid[:n - horizon], mid[horizon:]
    safe = np.where(cur != 0, cur, 1.0)
    ret = np.where(cur != 0, (fut - cur) / safe, 0.0)

    for i in range(0, len(ret), 1000):
        log.debug("futureReturn[%d] = %g", i, ret[i])

    labels[:n - horizon] = np.where(
        ret > threshold, Label.UP,
        np.where(ret < -threshold, Label.DOWN, Label.NO_CHANGE),
    )
    return labels


# ═══════════════════════════════════════════════════════════════════
#  Feature Extractor
# ═══════════════════════════════════════════════════════════════════
class FeatureExtractor:
    """
    Stateful per-snapshot feature extractor.

    Parameters
    ----------
    window       : length W of the rolling price / price-change / spread
                   buffers; rolling statistics stay 0 until W prices are held
    volume_norm  : divisor applied to per-level sizes
    """

    def __init__(self, window: int = 10, volume_norm: float = 100.0):
        if window < 1:
            raise ValueError(f"window must be >= 1, got {window}")
        self.window = window
        self.volume_norm = volume_norm
        self._prices: deque[float] = deque(maxlen=window)
        self._changes: deque[float] = deque(maxlen=window)
        self._spreads: deque[float] = deque(maxlen=window)
        self.dataset = LabeledDataset()

    def reset(self) -> None:
        self._prices.clear()
        self._changes.clear()
        self._spreads.clear()

    # ── Feature records ───────────────────────────────────────────
    def extract_features(self, snapshots: Iterable[BookSnapshot]) -> list[OrderbookFeature]:
        """Batch extraction from a fresh rolling state."""
        self.reset()
        return [self.extract_feature(s) for s in snapshots]

    def extract_feature(self, snap: BookSnapshot) -> OrderbookFeature:
        mid = snap.mid_price
        self._prices.append(mid)
        self._spreads.append(snap.spread)

        if len(self._prices) < 2:
            price_change = 0.0
        else:
            price_change = _ratio(mid - self._prices[-2], self._prices[-2])
        self._changes.append(price_change)

        bid_sz, ask_sz = snap.best_bid.volume, snap.best_ask.volume
        total = bid_sz + ask_sz
        if total > 0:
            imbalance = (bid_sz - ask_sz) / total
            vwmp = (snap.best_bid.price * ask_sz + snap.best_ask.price * bid_sz) / total
        else:
            imbalance, vwmp = 0.0, mid

        bid_dist, ask_dist = [0.0] * N_LEVELS, [0.0] * N_LEVELS
        bid_norm, ask_norm = [0.0] * N_LEVELS, [0.0] * N_LEVELS
        for i, lvl in enumerate(snap.bid_levels[:N_LEVELS]):
            bid_dist[i] = _ratio(mid - lvl.price, mid)
            bid_norm[i] = lvl.volume / self.volume_norm
        for i, lvl in enumerate(snap.ask_levels[:N_LEVELS]):
            ask_dist[i] = _ratio(lvl.price - mid, mid)
            ask_norm[i] = lvl.volume / self.volume_norm

        return OrderbookFeature(
            price_change=price_change,
            spread=snap.spread,
            spread_pct=_ratio(snap.spread, mid),
            size_imbalance=imbalance,
            vwmp=vwmp,
            vwmp_diff=_ratio(vwmp - mid, mid),
            bid_distances=tuple(bid_dist),
            ask_distances=tuple(ask_dist),
            bid_sizes_norm=tuple(bid_norm),
            ask_sizes_norm=tuple(ask_norm),
            **self._rolling_stats(),
        )

    def _rolling_stats(self) -> dict:
        if len(self._prices) < self.window:
            return {}

        changes = np.fromiter(self._changes, dtype=np.float64)
        stats = {
            "volatility": float(np.std(changes)),      # population std
            "price_trend": float(np.mean(changes)),
        }

        if len(self._prices) >= MOMENTUM_MIN_PRICES:
            last = self._prices[-1]
            for k in (1, 5, 10):
                ref = self._prices[-1 - k]
                stats[f"price_mom_{k}"] = _ratio(last - ref, ref)

        if len(self._spreads) >= 2:
            stats["spread_trend"] = float(np.mean(np.diff(np.fromiter(self._spreads, dtype=np.float64))))
        return stats

    # ── Labelled sequences ────────────────────────────────────────
    def prepare_labeled_data(
        self,
        features: Sequence[OrderbookFeature],
        mid_prices: Sequence[float],
        sequence_length: int = 10,
        threshold: float = 0.0005,
        horizon: int = DEFAULT_HORIZON,
    ) -> LabeledDataset:
        """
        Build training windows of ``sequence_length`` consecutive records.

        Window ``i`` covers records ``i .. i+L-1`` and takes the label of
        record ``i+L``.  Only starts with ``i + L + H < n`` are used, one
        short of what the labelling pass alone would allow.

        Raises
        ------
        InsufficientDataError  if ``len(features) <= sequence_length + horizon``;
                               the held dataset is cleared and nothing is built.
        """
        n = len(features)
        if len(mid_prices) != n:
            raise ValueError(f"{n} feature records but {len(mid_prices)} mid-prices")

        self.dataset = LabeledDataset()
        if n <= sequence_length + horizon:
            log.warning("Not enough data for sequence creation (%d records, need > %d)",
                        n, sequence_length + horizon)
            raise InsufficientDataError(n, sequence_length, horizon)

        matrix = np.vstack([f.to_vector() for f in features])
        labels = label_returns(mid_prices, threshold, horizon)

        seqs, ys = [], []
        for i in range(n - sequence_length - horizon):
            target = labels[i + sequence_length]
            if target == UNLABELED:
                continue
            seqs.append(matrix[i:i + sequence_length].ravel())
            ys.append(target)

        if seqs:
            self.dataset = LabeledDataset(np.vstack(seqs), np.array(ys, dtype=np.int32))
        log.info("Created %d sequences with labels", len(self.dataset))

        counts = self.dataset.class_counts()
        log.info("Class distribution: Up=%d, Down=%d, No Change=%d",
                 counts[Label.UP], counts[Label.DOWN], counts[Label.NO_CHANGE])
        return self.dataset

    # ── Persistence & reporting ───────────────────────────────────
    def save_to_files(self, features_path: Union[str, Path], labels_path: Union[str, Path]) -> None:
        storage.save_dataset(self.dataset, features_path, labels_path)

    def load_from_files(self, features_path: Union[str, Path],
                        labels_path: Union[str, Path]) -> LabeledDataset:
        self.dataset = storage.load_dataset(features_path, labels_path)
        return self.dataset

    def label_stats(self) -> dict[str, tuple[int, float]]:
        """Class name → (count, percent of all labels)."""
        total = len(self.dataset)
        return {
            LABEL_NAMES[lab]: (cnt, 100.0 * cnt / total if total else 0.0)
            for lab, cnt in self.dataset.class_counts().items()
        }

    def print_label_stats(self) -> None:
        print("Class distribution:")
        for name, (cnt, pct) in self.label_stats().items():
            print(f"  {name:<10s}= {cnt} ({pct:.2f}%)")
