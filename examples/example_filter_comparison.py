"""
Example: Comparison of the positioning filters

Simulates a tag moving on a circle inside a room with four ranging anchors
and an accelerometer, then runs every filter configuration through a
PositioningSession on the same measurement stream.

Run from repository root:
    python examples/example_filter_comparison.py
    python examples/example_filter_comparison.py --preset regularized_pf --plot

Compares:
    - Least squares (no filtering)
    - Extended Kalman Filter (constant velocity, acceleration as input)
    - Kalman Filter (constant acceleration, acceleration measured)
    - Bootstrap and regularized Particle Filter

Units: cm, cm/s², seconds.
"""

import argparse
import logging
import time

import numpy as np
from tqdm import tqdm

from indoorloc import (
    Anchor,
    FilterConfiguration,
    InsufficientAnchorsError,
    PositioningSession,
)

logger = logging.getLogger(__name__)


# ============================================================================
# PRESET CONFIGURATIONS
# ============================================================================

PRESETS = {
    'least_squares': {
        'description': 'Unfiltered linearized least squares (3+ anchors)',
        'filter_kind': 'none',
    },
    'ekf': {
        'description': 'Extended Kalman Filter, constant velocity',
        'filter_kind': 'kalman',
        'kalman_kind': 'extended',
    },
    'linear_kf': {
        'description': 'Kalman Filter, constant acceleration with accelerometer rows',
        'filter_kind': 'kalman',
        'kalman_kind': 'linear',
    },
    'bootstrap_pf': {
        'description': 'Bootstrap particle filter',
        'filter_kind': 'particle',
        'particle_kind': 'bootstrap',
        'particle_count': 1000,
    },
    'regularized_pf': {
        'description': 'Regularized particle filter (kernel jitter after resampling)',
        'filter_kind': 'particle',
        'particle_kind': 'regularized',
        'particle_count': 1000,
    },
}


def setup_scenario(n_steps, dt, range_std, accel_std, dropout_rate, seed):
    """
    Set up a circular trajectory with range and accelerometer measurements.

    Returns:
        Tuple of (anchors, true_positions, ranges, accelerations).
            - ranges: list of {anchor_id: range} per step (0 = dropout)
            - accelerations: (n_steps, 2) accelerometer readings
    """
    rng = np.random.default_rng(seed)

    anchors = [
        Anchor(0x6E30, (0.0, 0.0)),
        Anchor(0x6E31, (600.0, 0.0)),
        Anchor(0x6E32, (600.0, 400.0)),
        Anchor(0x6E33, (0.0, 400.0)),
    ]
    anchor_xy = np.array([a.position for a in anchors])

    center = np.array([300.0, 200.0])
    radius = 120.0
    omega = 0.4  # rad/s

    t = np.arange(n_steps) * dt
    direction = np.column_stack([np.cos(omega * t), np.sin(omega * t)])
    true_positions = center + radius * direction
    true_accelerations = -radius * omega**2 * direction

    ranges = []
    for position in true_positions:
        true_ranges = np.linalg.norm(anchor_xy - position, axis=1)
        noisy = true_ranges + rng.normal(0.0, range_std, size=len(anchors))
        noisy[rng.uniform(size=len(anchors)) < dropout_rate] = 0.0
        ranges.append({a.id: float(r) for a, r in zip(anchors, noisy)})

    accelerations = true_accelerations + rng.normal(0.0, accel_std, size=(n_steps, 2))

    return anchors, true_positions, ranges, accelerations


def run_preset(name, anchors, ranges, accelerations, dt, seed):
    """Run one preset through a positioning session."""
    preset = {k: v for k, v in PRESETS[name].items() if k != 'description'}
    config = FilterConfiguration(update_interval=dt, **preset)
    session = PositioningSession(anchors, config, rng=seed)

    estimates = []
    skipped = 0
    start_time = time.time()

    for frame_ranges, acceleration in tqdm(
        zip(ranges, accelerations), total=len(ranges), desc=name, unit="frame"
    ):
        try:
            snapshot = session.process_ranges(frame_ranges, acceleration)
        except InsufficientAnchorsError as e:
            logger.warning(f"{name}: frame dropped ({e})")
            snapshot = session.latest_snapshot()
            skipped += 1
        estimates.append(
            snapshot.position if snapshot is not None else (np.nan, np.nan)
        )

    elapsed_time = time.time() - start_time
    return np.array(estimates), elapsed_time, skipped + session.skipped_cycles


def plot_results(true_positions, results, anchors):
    """Plot the estimated trajectories against the ground truth."""
    import matplotlib.pyplot as plt

    fig, ax = plt.subplots(figsize=(10, 7))
    anchor_xy = np.array([a.position for a in anchors])
    ax.plot(anchor_xy[:, 0], anchor_xy[:, 1], 'k^', markersize=12, label='Anchors')
    ax.plot(true_positions[:, 0], true_positions[:, 1], 'k-', linewidth=2, label='Truth')

    for name, (estimates, _, _) in results.items():
        ax.plot(estimates[:, 0], estimates[:, 1], '.-', alpha=0.7, label=name)

    ax.set_xlabel('x [cm]')
    ax.set_ylabel('y [cm]')
    ax.set_title('Tag positioning: filter comparison')
    ax.axis('equal')
    ax.grid(True, alpha=0.3)
    ax.legend()
    plt.tight_layout()
    plt.show()


def main():
    """Main entry point with CLI argument parsing."""
    parser = argparse.ArgumentParser(
        description="Compare the positioning filters on a simulated trajectory",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="Available presets: " + ", ".join(PRESETS.keys()),
    )
    parser.add_argument(
        '--preset',
        type=str,
        choices=PRESETS.keys(),
        action='append',
        help='Preset to run (repeatable; default: all presets)'
    )
    parser.add_argument('--steps', type=int, default=300, help='Number of frames (default: 300)')
    parser.add_argument('--dt', type=float, default=0.145, help='Frame interval in s (default: 0.145)')
    parser.add_argument('--range-std', type=float, default=10.0, help='Range noise std in cm (default: 10)')
    parser.add_argument('--accel-std', type=float, default=5.0, help='Accelerometer noise std (default: 5)')
    parser.add_argument('--dropout-rate', type=float, default=0.05, help='Per-anchor dropout probability (default: 0.05)')
    parser.add_argument('--seed', type=int, default=42, help='Random seed (default: 42)')
    parser.add_argument('--plot', action='store_true', help='Show trajectories with matplotlib')
    parser.add_argument(
        '--log-level',
        type=str,
        default='WARNING',
        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
        help='Logging level (default: WARNING)'
    )
    args = parser.parse_args()

    if args.steps <= 0:
        parser.error("Number of steps must be positive")
    if args.dt <= 0:
        parser.error("Frame interval must be positive")
    if not 0 <= args.dropout_rate <= 1:
        parser.error("Dropout rate must be in [0, 1]")

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    )

    presets = args.preset or list(PRESETS.keys())

    print("=" * 70)
    print("POSITIONING FILTER COMPARISON")
    print("=" * 70)

    anchors, true_positions, ranges, accelerations = setup_scenario(
        args.steps, args.dt, args.range_std, args.accel_std, args.dropout_rate, args.seed
    )

    results = {}
    for name in presets:
        results[name] = run_preset(name, anchors, ranges, accelerations, args.dt, args.seed)

    print()
    print(f"{'Filter':<18} {'RMSE [cm]':>10} {'Max [cm]':>10} {'Time [s]':>10} {'Skipped':>8}")
    print("-" * 70)
    for name, (estimates, elapsed, skipped) in results.items():
        errors = np.linalg.norm(estimates - true_positions, axis=1)
        errors = errors[np.isfinite(errors)]
        rmse = np.sqrt(np.mean(errors**2))
        print(f"{name:<18} {rmse:>10.2f} {np.max(errors):>10.2f} {elapsed:>10.3f} {skipped:>8d}")
    print("=" * 70)

    if args.plot:
        plot_results(true_positions, results, anchors)


if __name__ == "__main__":
    main()
