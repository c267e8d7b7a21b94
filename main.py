"""
Dive computer command line.

Runs the dive planner, or feeds a synthetic depth stream through the dive
computer as if it came from the tracking sensors.

Usage:
    python main.py plan                              # Planning sweep for config.yaml
    python main.py simulate --depth 18 --time 50     # Square profile
    python main.py simulate --profile multilevel --plot
    python main.py --gf 30 85 plan                   # Override gradient factors
"""

import argparse
import logging
import math

import matplotlib.pyplot as plt

from divecomputer.computer import DiveComputer, DivePlan
from divecomputer.config import load_config
from divecomputer.events import DiveEvent, EventType
from divecomputer.profile import DiveProfile, ProfileGenerator
from divecomputer.surface_interval import FileStore, SurfaceInterval

logger = logging.getLogger("divecomputer.cli")


# --- USER CONFIGURATION ---
# Profile defaults for `simulate`, overridable via CLI arguments.

SIM_CONFIG = {
    "profile_type": "square",       # "square", "multilevel", "sawtooth" or "random"
    "depth_m": 18,                  # Depth for square/sawtooth/random profiles (meters)
    "bottom_time_min": 40,          # Bottom time (minutes)

    # Multilevel profile: list of (depth_m, duration_min), deepest first
    "multilevel_levels": [
        (30, 10),
        (20, 10),
        (10, 10),
    ],

    # Sawtooth profile settings
    "sawtooth_min_depth_m": 10,     # Minimum depth during oscillations
    "sawtooth_oscillations": 3,     # Number of depth oscillations

    "sampling_interval_s": 10.0,
}


def setup_logging(verbose: bool = False):
    """Set up logging configuration."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def build_profile(config: dict) -> DiveProfile:
    """Build a DiveProfile from the simulation settings."""
    gen = ProfileGenerator(sampling_interval=config["sampling_interval_s"])

    profile_type = config["profile_type"]

    if profile_type == "square":
        return gen.generate_square(
            depth=config["depth_m"],
            bottom_time=config["bottom_time_min"],
        )
    elif profile_type == "multilevel":
        return gen.generate_multilevel(levels=config["multilevel_levels"])
    elif profile_type == "sawtooth":
        return gen.generate_sawtooth(
            max_depth=config["depth_m"],
            min_depth=config["sawtooth_min_depth_m"],
            total_time=config["bottom_time_min"],
            oscillations=config["sawtooth_oscillations"],
        )
    elif profile_type == "random":
        return gen.generate_random_walk(
            max_depth=config["depth_m"],
            total_time=config["bottom_time_min"],
        )
    else:
        raise ValueError(
            f"Unknown profile type: {profile_type}. "
            "Use 'square', 'multilevel', 'sawtooth' or 'random'."
        )


def _minutes(value: float) -> str:
    return "-" if math.isinf(value) else f"{value:.0f}'"


def print_plan(plan: DivePlan) -> None:
    """Print the planning sweep."""
    print("--- DIVE PLAN ---")
    print(f"Water: {plan.water}, SP: {plan.surface_pressure:.2f} bar, RMV: {plan.rmv} l/min")
    print(
        f"Gas: {plan.mix}(+{plan.tank_count - 1}), MOD: {plan.mod}m, "
        f"MND: {plan.mnd}m, pO2: {plan.po2}"
    )
    print(f"{plan.gf}, Satur: {plan.saturation}%, CNS: {plan.cns}%, OTU: {plan.otu}%\n")
    if not plan.dives:
        print("**** No dives allowed at this time ****\n")
    for i, p in enumerate(plan.dives, 1):
        print(
            f"{i:2d}- {p.depth:.0f}m @ {_minutes(p.duration)} ({p.limiting_factor}), "
            f"ASC: {p.ascent_time}', best mix: {p.recommended_mix}"
        )
    print(f"\nStopped: {plan.break_reason}")


def log_event(event: DiveEvent) -> None:
    if event.type is EventType.SAMPLE:
        return
    data = {k: getattr(v, "value", v) for k, v in event.data.items() if k != "stop"}
    stop = event.data.get("stop")
    if stop is not None:
        data["stop"] = f"{stop.depth:.0f}m/{stop.seconds / 60:.0f}'"
    logger.info(f"[{event.time / 60:6.1f}'] {event.type.value} {data}")


def simulate(computer: DiveComputer, profile: DiveProfile) -> dict:
    """Feed the profile through the dive computer, recording plot series."""
    history = {"times": [], "depths": [], "ceilings": [], "time_left": []}
    elapsed = 0.0
    for sample in profile:
        computer.update(sample.depth, sample.dt)
        elapsed += sample.dt
        dive = computer.dive
        if dive is None:
            continue
        body = dive.body_state
        history["times"].append(elapsed / 60)
        history["depths"].append(sample.depth)
        history["ceilings"].append(body.deco_model.ceiling_depth())
        nearest = body.nearest_effect().time
        history["time_left"].append(nearest if math.isfinite(nearest) else float("nan"))
    return history


def print_results(computer: DiveComputer) -> None:
    dive = computer.dive
    print("\n--- SIMULATION RESULTS ---")
    if dive is None:
        print("No dive detected")
        return
    body = dive.body_state
    print(f"State: {dive.state.value}")
    print(f"Duration: {dive.duration / 60:.1f} min, max {dive.max_depth:.1f}m, avg {dive.avg_depth:.1f}m")
    for tank in dive.used_tanks:
        print(f"Tank {tank.name}: {tank.start:.0f} -> {tank.end:.0f} bar")
    print(f"CNS: {body.cns.value * 100:.1f}%, OTU: {body.otu.value:.1f}")
    print(f"Saturation: {body.deco_model.saturation() * 100:.0f}%")
    stops = dive.deco_stops
    if stops.has_missed():
        print("WARNING: mandatory deco stop MISSED")
    elif stops.has_required():
        print("Mandatory deco stops were required")
    elif not stops.no_deco:
        print("Safety stop recommended")
    desat = computer.desat_state()
    print(
        f"No-fly: {_minutes(desat.no_fly)}, no-dive: {_minutes(desat.no_dive)}, "
        f"desaturation: {_minutes(desat.desat)}"
    )


def plot_results(profile: DiveProfile, history: dict) -> None:
    """Depth with ceiling, and time left to the nearest limit."""
    _fig, (ax_depth, ax_tl) = plt.subplots(2, 1, figsize=(12, 8), sharex=True)

    ax_depth.plot(history["times"], history["depths"], "b-", linewidth=2, label="Depth")
    ax_depth.plot(history["times"], history["ceilings"], "r--", linewidth=1.5, label="Ceiling")
    ax_depth.set_ylabel("Depth (m)")
    ax_depth.set_title(f"Dive Profile: {profile.name}")
    ax_depth.invert_yaxis()
    ax_depth.grid(True, alpha=0.3)
    ax_depth.fill_between(history["times"], history["depths"], alpha=0.15, color="blue")
    ax_depth.legend(loc="lower right")

    ax_tl.plot(history["times"], history["time_left"], "g-", linewidth=2)
    ax_tl.set_ylabel("Time left (min)")
    ax_tl.set_xlabel("Time (min)")
    ax_tl.grid(True, alpha=0.3)

    plt.tight_layout()
    plt.show()


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Dive computer planner and simulator")
    parser.add_argument(
        "--config", type=str, default=None,
        help="Path to settings YAML (default: config.yaml)",
    )
    parser.add_argument(
        "--gf", nargs=2, type=float, metavar=("LOW", "HIGH"),
        help="Override gradient factors, in percent (e.g. --gf 30 85)",
    )
    parser.add_argument(
        "--state-dir", type=str, default="data",
        help="Directory holding the last dive snapshot (default: data)",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")

    subparsers = parser.add_subparsers(dest="command", help="Command to run")
    subparsers.add_parser("plan", help="Print the planning sweep")

    sim_parser = subparsers.add_parser("simulate", help="Simulate a dive profile")
    sim_parser.add_argument("--depth", type=float, help="Dive depth in meters")
    sim_parser.add_argument("--time", type=float, help="Bottom time in minutes")
    sim_parser.add_argument(
        "--profile", choices=["square", "multilevel", "sawtooth", "random"],
        help="Profile type",
    )
    sim_parser.add_argument("--plot", action="store_true", help="Plot depth and ceiling")
    return parser.parse_args()


def main() -> None:
    args = parse_args()
    setup_logging(args.verbose)

    config = load_config(args.config, gf_override=tuple(args.gf) if args.gf else None)
    si = SurfaceInterval(FileStore(args.state_dir))
    computer = DiveComputer(config, si, listener=log_event)

    if args.command == "simulate":
        sim_config = SIM_CONFIG.copy()
        if args.depth is not None:
            sim_config["depth_m"] = args.depth
        if args.time is not None:
            sim_config["bottom_time_min"] = args.time
        if args.profile is not None:
            sim_config["profile_type"] = args.profile

        profile = build_profile(sim_config)
        logger.info(f"Simulating {profile.name} ({profile.total_time:.0f} min, {config.gf_description})")
        history = simulate(computer, profile)
        print_results(computer)
        if args.plot:
            plot_results(profile, history)
    else:
        print_plan(computer.plan())


if __name__ == "__main__":
    main()
