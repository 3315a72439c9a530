"""
Example: RSSI Fingerprint Positioning (WKNN and Taylor-model refinement)

Builds a synthetic radio map of a 20 m x 20 m floor covered by four WiFi
access points, then locates noisy query fingerprints with:
    - WKNN: x̂ = Σ w_i x_i / Σ w_i,  w_i = 1 / (d_i² + ε)
    - the Taylor-model nonlinear estimator, started from the WKNN estimate

It also selects K on held-out queries and shows the distance uncertainty
obtained by propagating RSSI noise through the path-loss model.

Usage:
    python examples/example_wknn_positioning.py
    python examples/example_wknn_positioning.py --preset cross_device --offset 6
    python examples/example_wknn_positioning.py --config positioning.json
"""

import argparse
import json

import numpy as np

from indoor.config import PRESETS, get_preset, load_config
from indoor.errors import FingerprintEstimationError
from indoor.eval import compute_error_stats, compute_position_errors, sweep_k
from indoor.fingerprinting import (
    Fingerprint,
    LocatedFingerprint,
    NonLinearFingerprintPositionEstimator,
    RssiReading,
    locate,
    no_mean_sqr_distance,
    sqr_distance,
)
from indoor.rf import RadioSource, received_power_dbm
from indoor.uncertainty import distance_distribution
from indoor.utils import squared_distance

TX_POWER_DBM = -20.0
RSSI_NOISE_STD = 2.0


def make_sources(config):
    """Four access points at the corners of the floor."""
    corners = [(0.0, 0.0), (20.0, 0.0), (0.0, 20.0), (20.0, 20.0)]
    return [
        RadioSource.wifi(
            f"00:00:00:00:00:0{i}",
            frequency=config.frequency,
            ssid=f"ap-{i}",
            transmitted_power=TX_POWER_DBM,
            transmitted_power_std=1.0,
            path_loss_exponent=config.path_loss_exponent,
            path_loss_exponent_std=0.1,
        ).located_at(corner, covariance=0.01 * np.eye(2))
        for i, corner in enumerate(corners)
    ]


def simulate_readings(sources, position, rng, noise_std=RSSI_NOISE_STD, offset=0.0):
    readings = []
    for source in sources:
        d = max(np.sqrt(squared_distance(position, source.position)), 0.5)
        rssi = received_power_dbm(
            source.transmitted_power, d, source.path_loss_exponent, source.frequency
        )
        rssi += offset + noise_std * rng.standard_normal()
        readings.append(RssiReading(source, rssi, rssi_std=noise_std))
    return readings


def build_radio_map(sources, spacing, rng):
    """Survey fingerprints on a regular grid, avoiding the AP corners."""
    coords = np.arange(spacing / 2, 20.0, spacing)
    return [
        LocatedFingerprint(
            simulate_readings(sources, np.array([x, y]), rng),
            position=[x, y],
            position_covariance=0.05 * np.eye(2),
        )
        for x in coords
        for y in coords
    ]


def generate_queries(sources, n, rng, offset=0.0):
    truths = rng.uniform(1.0, 19.0, size=(n, 2))
    queries = [Fingerprint(simulate_readings(sources, t, rng, offset=offset)) for t in truths]
    return queries, truths


def print_stats(name, truths, estimated):
    stats = compute_error_stats(compute_position_errors(truths, estimated))
    print(
        f"  {name:<12} RMSE {stats['rmse']:.2f} m | median {stats['median']:.2f} m"
        f" | p90 {stats['p90']:.2f} m"
    )
    return stats


def main():
    """Run the fingerprint positioning example."""
    parser = argparse.ArgumentParser(
        description="RSSI fingerprint positioning with WKNN and Taylor-model refinement",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--preset", choices=sorted(PRESETS), default="baseline",
        help="Named configuration preset",
    )
    parser.add_argument(
        "--config", type=str, default=None,
        help="JSON configuration file (overrides --preset)",
    )
    parser.add_argument("--spacing", type=float, default=2.0, help="Survey grid spacing (m)")
    parser.add_argument("--queries", type=int, default=50, help="Number of test queries")
    parser.add_argument(
        "--offset", type=float, default=0.0,
        help="RSSI offset of the query device relative to the survey device (dB)",
    )
    parser.add_argument("--seed", type=int, default=42)
    args = parser.parse_args()

    config = load_config(args.config) if args.config else get_preset(args.preset)
    rng = np.random.default_rng(args.seed)

    print("=" * 70)
    print("RSSI FINGERPRINT POSITIONING")
    print("=" * 70)
    print(f"Configuration: {config.to_dict()}")

    sources = make_sources(config)
    radio_map = build_radio_map(sources, args.spacing, rng)
    queries, truths = generate_queries(sources, args.queries, rng, offset=args.offset)
    metric = no_mean_sqr_distance if config.use_no_mean_distance else sqr_distance
    print(f"\nRadio map: {len(radio_map)} fingerprints, {len(sources)} access points")

    # Held-out K selection
    validation, validation_truths = generate_queries(sources, 30, rng, offset=args.offset)
    sweep = sweep_k(
        radio_map, validation, validation_truths, k_values=range(1, 9),
        epsilon=config.epsilon, metric=metric,
    )
    print("\nK sweep on held-out queries:")
    for k, rmse in zip(sweep.k_values, sweep.rmse):
        print(f"  K={k}: RMSE {rmse:.2f} m")
    print(f"  best K={sweep.best_k} (configured K={config.k})")

    # WKNN
    wknn = np.array(
        [locate(radio_map, q, config.k, epsilon=config.epsilon, metric=metric) for q in queries]
    )

    # Taylor-model refinement
    refined = []
    for q, x0 in zip(queries, wknn):
        estimator = NonLinearFingerprintPositionEstimator.from_config(
            config, radio_map, q, sources, max_nearest_fingerprints=config.k + 4
        )
        try:
            refined.append(estimator.estimate())
        except FingerprintEstimationError:
            refined.append(x0)
    refined = np.array(refined)

    print("\nPosition errors:")
    wknn_stats = print_stats("WKNN", truths, wknn)
    taylor_stats = print_stats(f"Taylor O{config.taylor_order}", truths, refined)

    # Distance uncertainty from RSSI noise
    source = sources[0]
    rssi = received_power_dbm(
        source.transmitted_power, 8.0, source.path_loss_exponent, source.frequency
    )
    dist = distance_distribution(
        source.transmitted_power,
        rssi,
        source.path_loss_exponent,
        source.frequency,
        tx_power_variance=source.transmitted_power_variance,
        rx_power_variance=RSSI_NOISE_STD**2,
        path_loss_exponent_variance=source.path_loss_exponent_variance,
    )
    print(
        f"\nDistance to {source.name} at {rssi:.1f} dBm: "
        f"{dist.mean[0]:.2f} m ± {dist.standard_deviation:.2f} m (1σ)"
    )

    summary = {
        "n_fingerprints": len(radio_map),
        "best_k": int(sweep.best_k),
        "rmse": {"wknn": wknn_stats["rmse"], "taylor": taylor_stats["rmse"]},
    }
    print(f"\n[FINGERPRINT_SUMMARY] {json.dumps(summary)}")

    print("\n" + "=" * 70)
    print("EXAMPLE COMPLETED")
    print("=" * 70)


if __name__ == "__main__":
    main()
