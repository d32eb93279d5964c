"""
Run configuration.

``configs/default.yaml`` overrides ``DEFAULT_CONFIG`` section by section;
keys the file does not mention keep their defaults.
"""

import copy, logging
from pathlib import Path
from typing import Optional, Union

import yaml

from lobsim.errors import ConfigError

log = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path("configs/default.yaml")

DEFAULT_CONFIG = {
    "simulator": {
        "initial_price": 100.0,
        "tick_size": 0.05,
        "levels": 10,
        "volatility": 0.2,
        "seed": None,
    },
    "run": {
        "csv_duration_s": 10,
        "features_duration_s": 30,
        "updates_per_s": 100,
        "event_probability": 0.2,
    },
    "features": {
        "window": 10,
        "volume_norm": 100.0,
        "sequence_length": 10,
        "threshold": 0.000001,
        "horizon": 5,
    },
    "output": {
        "csv": "orderbook_simulation.csv",
        "features_bin": "features.bin",
        "labels_bin": "labels.bin",
    },
}


def merge_config(base: dict, override: dict) -> dict:
    """Overlay ``override`` on a copy of ``base``, merging nested mappings."""
    out = copy.deepcopy(base)
    for key, val in override.items():
        if isinstance(val, dict) and isinstance(out.get(key), dict):
            out[key] = merge_config(out[key], val)
        else:
            out[key] = val
    return out


def load_config(path: Optional[Union[str, Path]] = None) -> dict:
    path = Path(path) if path is not None else DEFAULT_CONFIG_PATH
    if not path.exists():
        log.warning("Config %s not found, using defaults", path)
        return copy.deepcopy(DEFAULT_CONFIG)

    try:
        data = yaml.safe_load(path.read_text())
    except yaml.YAMLError as exc:
        raise ConfigError(f"{path}: invalid YAML: {exc}") from exc

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigError(f"{path}: expected a mapping at top level, got {type(data).__name__}")
    return merge_config(DEFAULT_CONFIG, data)
