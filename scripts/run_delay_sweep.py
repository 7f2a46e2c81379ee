#!/usr/bin/env python3
"""
Replication-rate sweep of the peak-load / symptom-onset delay.

Runs simulation + metric extraction for every r value and threshold in the
configuration, prints a delay summary per threshold, and writes
sweep_table.npz + metadata.json (one subdirectory per model variant).

Usage:
    python3 scripts/run_delay_sweep.py --config configs/default.yaml
    python3 scripts/run_delay_sweep.py --config configs/default.yaml \
        --override configs/scenarios/immune_symptoms.yaml --model all --workers 4
"""

import argparse
import os
import sys
import time

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from withinhost.config import VALID_MODELS, load_config
from withinhost.io import save_sweep
from withinhost.simulate import SimulationError
from withinhost.sweep import run_delay_sweep


def _fmt(value):
    return "    n/a" if value is None else f"{value:+7.3f}"


def print_summary(table):
    print(f"\n{'='*60}")
    print(f" {table.model} — symptoms from {table.compartment.name.lower()}")
    print(f"{'='*60}")
    for th in table.thresholds:
        print(f"\nthreshold = {th:g}")
        print(f"{'r':>8} {'peak (d)':>9} {'onset (d)':>10} {'delay (d)':>10}  class")
        for rec in table.for_threshold(th):
            if rec.failed:
                print(f"{rec.r:>8g}  FAILED: {rec.error}")
                continue
            m = rec.metrics
            print(f"{rec.r:>8g} {_fmt(m.peak_pathogen_time):>9} "
                  f"{_fmt(m.symptom_onset):>10} {_fmt(m.delay):>10}  "
                  f"{m.transmission_class.value}")


def main():
    parser = argparse.ArgumentParser(description="Peak-onset delay sweep")
    parser.add_argument("--config", type=str, default="configs/default.yaml",
                        help="Base YAML configuration")
    parser.add_argument("--override", type=str, default=None,
                        help="Optional YAML merged over the base configuration")
    parser.add_argument("--model", type=str, default=None,
                        choices=list(VALID_MODELS) + ["all"],
                        help="Model variant (default: sweep.model from config)")
    parser.add_argument("--workers", type=int, default=None,
                        help="Parallel workers (default: sweep.workers)")
    parser.add_argument("--keep-going", action="store_true",
                        help="Record failed runs instead of aborting")
    parser.add_argument("--outdir", type=str, default=None,
                        help="Output directory (default: output.directory)")
    parser.add_argument("--quiet", action="store_true",
                        help="Skip the per-threshold summary tables")
    args = parser.parse_args()

    overrides = {}
    if args.workers is not None:
        overrides.setdefault('sweep', {})['workers'] = args.workers
    if args.keep_going:
        overrides.setdefault('sweep', {})['fail_fast'] = False
    config = load_config(args.config, args.override, overrides)

    if args.model == "all":
        models = list(VALID_MODELS)
    else:
        models = [args.model or config.sweep.model]
    outdir = args.outdir or config.output.directory

    sw = config.sweep
    print(f"Delay sweep: models={models}, {len(sw.r_values)} r values, "
          f"{len(sw.thresholds)} thresholds on {sw.compartment}")

    for model in models:
        t0 = time.time()
        try:
            table = run_delay_sweep(config, model=model)
        except SimulationError as e:
            print(f"ERROR: {e}")
            sys.exit(1)
        elapsed = time.time() - t0
        print(f"[{model}] {len(sw.r_values)} runs in {elapsed:.1f}s")
        if table.errors:
            print(f"WARNING: {len(table.errors)} records failed")

        if not args.quiet:
            print_summary(table)

        path = save_sweep(table, os.path.join(outdir, model), config)
        print(f"Saved {path}")


if __name__ == "__main__":
    main()
