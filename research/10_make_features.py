"""
Simulate an order book, extract features, label future mid-price moves and
write the labelled sequences as flat binary files.

Usage
-----
    python research/10_make_features.py
    python research/10_make_features.py --config configs/default.yaml --duration 60 --seed 1

Outputs
-------
    outputs/features.bin   u64 count | u64 width | count × width f64
    outputs/labels.bin     u64 count | count × i32   (0 = Up, 1 = Down, 2 = No Change)
"""

import argparse, logging, sys
from pathlib import Path

from lobsim.config import load_config
from lobsim.errors import InsufficientDataError
from lobsim.features import FeatureExtractor
from lobsim.simulator import MarketSimulator


def main():
    ap = argparse.ArgumentParser(description="Build labelled LOB feature sequences")
    ap.add_argument("--config", default="configs/default.yaml")
    ap.add_argument("--duration", type=float, default=None, help="Override run length in seconds")
    ap.add_argument("--seed", type=int, default=None)
    ap.add_argument("-v", "--verbose", action="store_true")
    args = ap.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="[%(asctime)s] %(levelname)s %(name)s: %(message)s",
    )

    cfg = load_config(args.config)
    sim_cfg, run_cfg, feat_cfg, out_cfg = cfg["simulator"], cfg["run"], cfg["features"], cfg["output"]
    seed = args.seed if args.seed is not None else sim_cfg["seed"]
    duration = args.duration if args.duration is not None else run_cfg["features_duration_s"]

    # ── 1.  Simulate ──────────────────────────────────────────────
    print(f"[1/4] Simulating {duration}s at {run_cfg['updates_per_s']} updates/s")
    sim = MarketSimulator(
        initial_price=sim_cfg["initial_price"],
        tick_size=sim_cfg["tick_size"],
        levels=sim_cfg["levels"],
        volatility=sim_cfg["volatility"],
        seed=seed,
    )
    sim.run_simulation(duration, run_cfg["updates_per_s"], run_cfg["event_probability"])
    states = sim.orderbook.history()
    print(f"       {len(states):,} snapshots")

    # ── 2.  Features ──────────────────────────────────────────────
    print(f"[2/4] Extracting features (window={feat_cfg['window']})")
    extractor = FeatureExtractor(feat_cfg["window"], feat_cfg["volume_norm"])
    features = extractor.extract_features(states)
    mid_prices = [s.mid_price for s in states]

    # ── 3.  Labels ────────────────────────────────────────────────
    print(f"[3/4] Labelling  (L={feat_cfg['sequence_length']}, "
          f"θ={feat_cfg['threshold']}, H={feat_cfg['horizon']})")
    try:
        dataset = extractor.prepare_labeled_data(
            features, mid_prices,
            sequence_length=feat_cfg["sequence_length"],
            threshold=feat_cfg["threshold"],
            horizon=feat_cfg["horizon"],
        )
    except InsufficientDataError as exc:
        print(f"   ✗ {exc}")
        sys.exit(1)
    print(f"       {len(dataset):,} sequences × {dataset.width} values")
    extractor.print_label_stats()

    # ── 4.  Save ──────────────────────────────────────────────────
    feat_path, label_path = Path(out_cfg["features_bin"]), Path(out_cfg["labels_bin"])
    print(f"[4/4] Writing {feat_path} and {label_path}")
    feat_path.parent.mkdir(parents=True, exist_ok=True)
    label_path.parent.mkdir(parents=True, exist_ok=True)
    try:
        extractor.save_to_files(feat_path, label_path)
    except OSError as exc:
        print(f"   ✗ Save skipped: {exc}")
        sys.exit(1)
    print("Done.")


if __name__ == "__main__":
    main()
