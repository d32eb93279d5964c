"""
Synthetic limit-order-book simulator and feature/label pipeline.

    OrderBook          two-sided price-level book with snapshot history
    MarketSimulator    random-walk price process + microstructure events
    FeatureExtractor   per-snapshot features, labels and training windows
"""

from lobsim.book import BookSnapshot, Level, OrderBook, Side
from lobsim.dataset import Label, LabeledDataset
from lobsim.errors import (
    ConfigError,
    DatasetFormatError,
    InsufficientDataError,
    LobSimError,
)
from lobsim.features import FEATURE_NAMES, FeatureExtractor, OrderbookFeature
from lobsim.simulator import EventType, MarketSimulator

__version__ = "0.1.0"

__all__ = [
    "BookSnapshot",
    "ConfigError",
    "DatasetFormatError",
    "EventType",
    "FEATURE_NAMES",
    "FeatureExtractor",
    "InsufficientDataError",
    "Label",
    "LabeledDataset",
    "Level",
    "LobSimError",
    "MarketSimulator",
    "OrderBook",
    "OrderbookFeature",
    "Side",
]
