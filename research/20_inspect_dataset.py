"""
Load a features/labels pair written by 10_make_features.py and summarise it.

Usage
-----
    python research/20_inspect_dataset.py --features outputs/features.bin --labels outputs/labels.bin
"""

import argparse, logging, sys

import numpy as np

from lobsim.errors import DatasetFormatError
from lobsim.features import FEATURE_WIDTH, FeatureExtractor


def main():
    ap = argparse.ArgumentParser(description="Inspect a binary LOB dataset")
    ap.add_argument("--features", required=True)
    ap.add_argument("--labels", required=True)
    args = ap.parse_args()

    logging.basicConfig(level=logging.INFO, format="[%(asctime)s] %(levelname)s %(name)s: %(message)s")

    extractor = FeatureExtractor()
    try:
        ds = extractor.load_from_files(args.features, args.labels)
    except (OSError, DatasetFormatError) as exc:
        print(f"✗ Could not load dataset: {exc}")
        sys.exit(1)

    print(f"Sequences : {len(ds):,}")
    print(f"Width     : {ds.width}  ({ds.width // FEATURE_WIDTH if ds.width else 0} steps × {FEATURE_WIDTH} features)")
    if len(ds):
        print(f"Range     : [{np.min(ds.features):.6g}, {np.max(ds.features):.6g}]")
    extractor.print_label_stats()


if __name__ == "__main__":
    main()
