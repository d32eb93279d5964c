"""Exception types raised by the simulator and the feature/label pipeline."""


class LobSimError(Exception):
    """Base class for every error raised by ``lobsim``."""


class InsufficientDataError(LobSimError):
    """Not enough snapshots to build a single labelled training window."""

    def __init__(self, n_features: int, sequence_length: int, horizon: int):
        self.n_features = n_features
        self.sequence_length = sequence_length
        self.horizon = horizon
        super().__init__(
            f"Not enough data for sequence creation: {n_features} feature records, "
            f"need more than {sequence_length + horizon} "
            f"(sequence_length={sequence_length}, horizon={horizon})"
        )


class DatasetFormatError(LobSimError, ValueError):
    """A feature or label file does not match the size its header declares."""


class ConfigError(LobSimError, ValueError):
    """The run configuration could not be interpreted."""
