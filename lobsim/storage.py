"""
Flat binary dumps of labelled datasets, plus CSV export of snapshot history.

Binary layout (native byte order, no padding, no checksum)
---------------------------------------------------------
features file : u64 n_examples | u64 width | n_examples × width f64
labels file   : u64 n_labels   | n_labels × i32

Loading validates both headers against the actual file length and rejects
any mismatch with ``DatasetFormatError``.
"""

import logging
from pathlib import Path
from typing import Iterable, Union

import numpy as np, pandas as pd

from lobsim.book import SNAPSHOT_DEPTH, BookSnapshot
from lobsim.dataset import LabeledDataset
from lobsim.errors import DatasetFormatError

log = logging.getLogger(__name__)

PathLike = Union[str, Path]

COUNT_DTYPE = np.dtype("=u8")
FEATURE_DTYPE = np.dtype("=f8")
LABEL_DTYPE = np.dtype("=i4")

CSV_BASE_COLUMNS = [
    "timestamp", "mid_price", "spread",
    "best_bid_price", "best_bid_size", "best_ask_price", "best_ask_size",
]


# ═══════════════════════════════════════════════════════════════════
#  Binary dataset codec
# ═══════════════════════════════════════════════════════════════════
def encode_features(dataset: LabeledDataset) -> bytes:
    header = np.array([len(dataset), dataset.width], dtype=COUNT_DTYPE)
    body = np.ascontiguousarray(dataset.features, dtype=FEATURE_DTYPE)
    return header.tobytes() + body.tobytes()


def encode_labels(dataset: LabeledDataset) -> bytes:
    header = np.array([len(dataset)], dtype=COUNT_DTYPE)
    body = np.ascontiguousarray(dataset.labels, dtype=LABEL_DTYPE)
    return header.tobytes() + body.tobytes()


def decode_features(raw: bytes, source: str = "<bytes>") -> np.ndarray:
    hdr = 2 * COUNT_DTYPE.itemsize
    if len(raw) < hdr:
        raise DatasetFormatError(
            f"{source}: {len(raw)} bytes is shorter than the {hdr}-byte features header"
        )
    n, width = (int(v) for v in np.frombuffer(raw, dtype=COUNT_DTYPE, count=2))
    expected = hdr + n * width * FEATURE_DTYPE.itemsize
    if len(raw) != expected:
        raise DatasetFormatError(
            f"{source}: size mismatch, header declares {n} × {width} doubles "
            f"({expected} bytes) but file holds {len(raw)} bytes"
        )
    if n * width == 0:
        return np.zeros((n, width), dtype=np.float64)
    values = np.frombuffer(raw, dtype=FEATURE_DTYPE, offset=hdr, count=n * width)
    return values.reshape(n, width).astype(np.float64)


def decode_labels(raw: bytes, source: str = "<bytes>") -> np.ndarray:
    hdr = COUNT_DTYPE.itemsize
    if len(raw) < hdr:
        raise DatasetFormatError(
            f"{source}: {len(raw)} bytes is shorter than the {hdr}-byte labels header"
        )
    n = int(np.frombuffer(raw, dtype=COUNT_DTYPE, count=1)[0])
    expected = hdr + n * LABEL_DTYPE.itemsize
    if len(raw) != expected:
        raise DatasetFormatError(
            f"{source}: size mismatch, header declares {n} labels "
            f"({expected} bytes) but file holds {len(raw)} bytes"
        )
    if n == 0:
        return np.zeros(0, dtype=np.int32)
    return np.frombuffer(raw, dtype=LABEL_DTYPE, offset=hdr, count=n).astype(np.int32)


def save_dataset(dataset: LabeledDataset, features_path: PathLike, labels_path: PathLike) -> None:
    """
    Write ``dataset`` as a features file and a labels file.

    An ``OSError`` on either file is logged and re-raised; nothing is retried.
    """
    for path, payload in ((features_path, encode_features(dataset)),
                          (labels_path, encode_labels(dataset))):
        try:
            Path(path).write_bytes(payload)
        except OSError as exc:
            log.error("Failed to open %s for writing: %s", path, exc)
            raise

    log.info("Saved %d sequences to %s", len(dataset), features_path)
    log.info("Saved %d labels to %s", len(dataset), labels_path)


def load_dataset(features_path: PathLike, labels_path: PathLike) -> LabeledDataset:
    features = decode_features(Path(features_path).read_bytes(), str(features_path))
    labels = decode_labels(Path(labels_path).read_bytes(), str(labels_path))
    if len(features) != len(labels):
        raise DatasetFormatError(
            f"size mismatch: {len(features)} sequences in {features_path} "
            f"but {len(labels)} labels in {labels_path}"
        )

    log.info("Loaded %d sequences from %s", len(features), features_path)
    log.info("Loaded %d labels from %s", len(labels), labels_path)
    if not len(features):
        return LabeledDataset()
    return LabeledDataset(features, labels)


# ═══════════════════════════════════════════════════════════════════
#  Snapshot history export
# ═══════════════════════════════════════════════════════════════════
def history_columns(depth: int = SNAPSHOT_DEPTH) -> list[str]:
    cols = list(CSV_BASE_COLUMNS)
    for i in range(depth):
        cols += [f"bid_price_{i}", f"bid_size_{i}"]
    for i in range(depth):
        cols += [f"ask_price_{i}", f"ask_size_{i}"]
    return cols


def _padded(levels, depth: int) -> list[float]:
    out = []
    for i in range(depth):
        if i < len(levels):
            out += [levels[i].price, levels[i].volume]
        else:
            out += [0.0, 0.0]
    return out


def history_to_frame(history: Iterable[BookSnapshot], depth: int = SNAPSHOT_DEPTH) -> pd.DataFrame:
    """One row per snapshot; missing levels are zero-filled."""
    rows = []
    for s in history:
        rows.append(
            [s.timestamp, s.mid_price, s.spread,
             s.best_bid.price, s.best_bid.volume, s.best_ask.price, s.best_ask.volume]
            + _padded(s.bid_levels, depth)
            + _padded(s.ask_levels, depth)
        )
    return pd.DataFrame(rows, columns=history_columns(depth), dtype=np.float64)


def save_history_csv(history: Iterable[BookSnapshot], path: PathLike,
                     depth: int = SNAPSHOT_DEPTH) -> int:
    """Write snapshot history to ``path``; returns the number of data rows."""
    df = history_to_frame(history, depth)
    try:
        df.to_csv(path, index=False)
    except OSError as exc:
        log.error("Error opening file %s: %s", path, exc)
        raise
    log.info("Saved %d snapshots to %s", len(df), path)
    return len(df)
