"""
Run a short real-time order-book simulation and dump the snapshot history.

Usage
-----
    python research/00_simulate_book.py
    python research/00_simulate_book.py --config configs/default.yaml --duration 5 --seed 7

Output  →  outputs/orderbook_simulation.csv   (one row per book mutation)
"""

import argparse, logging, sys
from pathlib import Path

from lobsim.config import load_config
from lobsim.simulator import MarketSimulator
from lobsim.storage import save_history_csv


def main():
    ap = argparse.ArgumentParser(description="Simulate an order book and export its history to CSV")
    ap.add_argument("--config", default="configs/default.yaml")
    ap.add_argument("--duration", type=float, default=None, help="Override run length in seconds")
    ap.add_argument("--seed", type=int, default=None)
    ap.add_argument("--out", default=None, help="Override CSV path")
    ap.add_argument("-v", "--verbose", action="store_true")
    args = ap.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="[%(asctime)s] %(levelname)s %(name)s: %(message)s",
    )

    cfg = load_config(args.config)
    sim_cfg, run_cfg = cfg["simulator"], cfg["run"]
    seed = args.seed if args.seed is not None else sim_cfg["seed"]
    duration = args.duration if args.duration is not None else run_cfg["csv_duration_s"]
    out = Path(args.out or cfg["output"]["csv"])

    # ── 1.  Simulate ──────────────────────────────────────────────
    print(f"[1/2] Simulating {duration}s at {run_cfg['updates_per_s']} updates/s")
    sim = MarketSimulator(
        initial_price=sim_cfg["initial_price"],
        tick_size=sim_cfg["tick_size"],
        levels=sim_cfg["levels"],
        volatility=sim_cfg["volatility"],
        seed=seed,
    )
    n_updates = sim.run_simulation(duration, run_cfg["updates_per_s"], run_cfg["event_probability"])
    history = sim.orderbook.history()
    print(f"       {n_updates:,} updates → {len(history):,} snapshots")
    for name, cnt in sorted(sim.event_counts.items()):
        print(f"       {name:12s} : {cnt}")

    # ── 2.  Save ──────────────────────────────────────────────────
    print(f"[2/2] Writing {out}")
    out.parent.mkdir(parents=True, exist_ok=True)
    try:
        save_history_csv(history, out)
    except OSError as exc:
        print(f"   ✗ Could not write {out}: {exc}")
        sys.exit(1)
    print("Done.")


if __name__ == "__main__":
    main()
