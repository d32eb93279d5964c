"""Labelled training windows produced by the feature pipeline."""

from dataclasses import dataclass, field
from enum import IntEnum

import numpy as np


class Label(IntEnum):
    """Direction of the mid-price over the label horizon (stored as int32)."""
    UP = 0
    DOWN = 1
    NO_CHANGE = 2


UNLABELED = -1

LABEL_NAMES = {Label.UP: "Up", Label.DOWN: "Down", Label.NO_CHANGE: "No Change"}


def _empty_features() -> np.ndarray:
    return np.zeros((0, 0), dtype=np.float64)


def _empty_labels() -> np.ndarray:
    return np.zeros(0, dtype=np.int32)


@dataclass
class LabeledDataset:
    """
    Flattened feature sequences and their labels.

    features : float64 array, shape (n_examples, width)
    labels   : int32 array,   shape (n_examples,)
    """
    features: np.ndarray = field(default_factory=_empty_features)
    labels: np.ndarray = field(default_factory=_empty_labels)

    def __post_init__(self):
        self.features = np.asarray(self.features, dtype=np.float64)
        self.labels = np.asarray(self.labels, dtype=np.int32)
        if self.features.ndim != 2:
            raise ValueError(f"features must be 2-D, got shape {self.features.shape}")
        if self.labels.ndim != 1 or len(self.labels) != len(self.features):
            raise ValueError(
                f"{len(self.features)} feature rows but labels have shape {self.labels.shape}"
            )

    def __len__(self) -> int:
        return len(self.labels)

    @property
    def width(self) -> int:
        return int(self.features.shape[1]) if len(self.features) else 0

    def class_counts(self) -> dict[Label, int]:
        return {lab: int(np.sum(self.labels == lab)) for lab in Label}
