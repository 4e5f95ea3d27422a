"""
Power sweep job.

Runs one job of a driving-parameter sweep on a cavity described by a
config file and writes a single tab-separated result line:

    python power_sweep.py <steps> <index> <output_file>

Site 1 receives a resonant drive of 0.5 * P and the reservoir of site 2
is pumped with 0.5 * P, where P = linspace(start, stop, steps)[index].
Jobs are independent; run them on a cluster and concatenate the outputs
in index order (or use --all to run every job here).
"""

import argparse
import numpy as np
import sys
from pathlib import Path
sys.path.insert(0, '..')

from polaritons.config import load_config
from polaritons.drive import DriveTarget, apply_drive
from polaritons.sweep import SweepConfig, run_job, run_sweep, format_result, dump_trajectory

DEFAULT_CONFIG = Path(__file__).resolve().parent / 'two_site_non_resonant.ini'


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Run one job of a power sweep.")
    parser.add_argument('steps', type=int, help="number of driving values")
    parser.add_argument('index', type=int, help="job index (0..steps-1)")
    parser.add_argument('output', help="result file")
    parser.add_argument('--config', default=str(DEFAULT_CONFIG), help="cavity description")
    parser.add_argument('--seed', type=int, default=None, help="random seed")
    parser.add_argument('--start', type=float, default=0.0)
    parser.add_argument('--stop', type=float, default=15.0)
    parser.add_argument('--transient', type=int, default=10_000_000)
    parser.add_argument('--stationary', type=int, default=500_000)
    parser.add_argument('--trajectory', default=None,
                        help="also dump the raw trajectory of the stationary phase here")
    parser.add_argument('--all', action='store_true',
                        help="run every job sequentially into OUTPUT (index is ignored)")
    return parser.parse_args(argv)


def main(argv=None):
    args = parse_args(argv)
    # Without --seed the description's random_seed (or fresh entropy) is used per build
    rng = np.random.default_rng(args.seed) if args.seed is not None else None

    def build():
        return load_config(args.config, rng=rng, verbose=True).cavity

    # Resolve names once to set up targets
    probe = load_config(args.config, rng=np.random.default_rng(0))
    targets = [
        DriveTarget(probe.polariton_id('site_1'), kind='resonant', scale=0.5),
        DriveTarget(probe.polariton_id('site_2'), kind='pump', scale=0.5),
    ]

    config = SweepConfig(
        start=args.start,
        stop=args.stop,
        steps=args.steps,
        transient=args.transient,
        stationary=args.stationary,
    )

    if args.all:
        run_sweep(build, config, targets, args.output)
        return 0

    result = run_job(build, config, args.index, targets, verbose=True)
    with open(args.output, 'w', encoding='utf-8') as f:
        f.write(format_result(result))
    print(f"Saved: {args.output}")

    if args.trajectory:
        cavity = build()
        apply_drive(cavity, targets, result.value)
        cavity.run(config.transient)
        with open(args.trajectory, 'w', encoding='utf-8') as f:
            n = dump_trajectory(cavity, config.stationary, f)
        print(f"Saved: {args.trajectory} ({n} lines)")

    return 0


if __name__ == "__main__":
    sys.exit(main())
