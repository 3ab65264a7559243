"""
Run a mesh broadcast scenario from a YAML data pack and report efficiency.

Usage:
    python scripts/run_broadcast.py data/meshes/default.yaml
    python scripts/run_broadcast.py data/meshes/default.yaml --strategy linear --interval 5
    python scripts/run_broadcast.py --all
"""

import argparse
import sys
from dataclasses import replace
from pathlib import Path

from ripple.broadcast import BroadcastNotConvergedError
from ripple.constants import DEFAULT_MAX_STEPS, STEP_SUMMARY_INTERVAL
from ripple.data_types import MatrixType
from ripple.loader import ConfigLoadError, load_mesh_config, load_mesh_registry
from ripple.simulation import BroadcastSimulation

PROJECT_ROOT = Path(__file__).parent.parent
DEFAULT_MESH_DIR = PROJECT_ROOT / "data" / "meshes"
DEFAULT_SCHEMA_DIR = PROJECT_ROOT / "schemas"


def run_config(config, max_steps: int, interval: int) -> dict:
    """Run one scenario to completion and print its final summary."""
    print("=" * 60)
    print(f"{config.name} ({config.mesh_id}) | strategy={config.strategy.value} "
          f"grid_size={config.grid_size}")
    print("=" * 60)

    sim = BroadcastSimulation.from_config(config)
    print(f"[OK] Mesh ready: {len(sim.mesh)} nodes, {sim.mesh.link_count} links")

    sim.run(max_steps=max_steps, summary_interval=interval)
    sim.print_step_summary()

    stats = sim.get_stats()
    if not stats['done']:
        print(f"[WARN] Stopped after {max_steps} steps before completion")
    if not stats['reached_end']:
        print("[WARN] End node never received the message")
    return stats


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Run a ripple broadcast scenario")
    parser.add_argument("scenario", nargs="?", type=Path, help="Scenario YAML file")
    parser.add_argument("--all", action="store_true", help="Run every scenario in data/meshes")
    parser.add_argument("--strategy", choices=[m.value for m in MatrixType],
                        help="Override the scenario's strategy")
    parser.add_argument("--max-steps", type=int, default=DEFAULT_MAX_STEPS)
    parser.add_argument("--interval", type=int, default=STEP_SUMMARY_INTERVAL,
                        help="Print a summary every N steps (0 = final only)")
    parser.add_argument("--schema-dir", type=Path, default=DEFAULT_SCHEMA_DIR)
    args = parser.parse_args(argv)

    if not args.all and args.scenario is None:
        parser.error("give a scenario file or --all")

    try:
        if args.all:
            configs = list(load_mesh_registry(DEFAULT_MESH_DIR, args.schema_dir).values())
        else:
            configs = [load_mesh_config(args.scenario, args.schema_dir)]
    except ConfigLoadError as e:
        print(f"[ERROR] {e}")
        return 2

    for config in configs:
        if args.strategy:
            config = replace(config, strategy=MatrixType(args.strategy))
        try:
            run_config(config, args.max_steps, args.interval)
        except BroadcastNotConvergedError as e:
            print(f"[ERROR] {e}")
            return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
