"""Command-line entry point: run one WGD-Load simulation from YAML.

Usage:
    wgd-load configs/default.yaml
    wgd-load configs/default.yaml --scenario configs/dominant.yaml --seed 7
    wgd-load configs/neutral.yaml --generations 500 --output results/neutral.txt
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from wgd_load.config import load_config
from wgd_load.errors import WgdLoadError
from wgd_load.model import run_simulation


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="wgd-load",
        description="Mutation load across a diploid → autotetraploid transition",
    )
    parser.add_argument("config", type=Path, help="Base configuration YAML")
    parser.add_argument("--scenario", type=Path, default=None,
                        help="Scenario override YAML merged over the base")
    parser.add_argument("--seed", type=int, default=None, help="Override simulation.seed")
    parser.add_argument("--generations", type=int, default=None,
                        help="Override simulation.n_generations")
    parser.add_argument("--switch", type=int, default=None,
                        help="Override simulation.switch_generation")
    parser.add_argument("--output", type=Path, default=None,
                        help="Statistics file (default: output.directory/output.filename)")
    parser.add_argument("--log-level", default="INFO",
                        choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    return parser


def _overrides(args: argparse.Namespace) -> dict:
    sim = {}
    if args.seed is not None:
        sim['seed'] = args.seed
    if args.generations is not None:
        sim['n_generations'] = args.generations
    if args.switch is not None:
        sim['switch_generation'] = args.switch
    return {'simulation': sim} if sim else {}


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    config = load_config(args.config, args.scenario, _overrides(args))
    print("=" * 72)
    print(f"WGD-Load: K={config.population.carrying_capacity}, "
          f"{config.simulation.n_generations} generations, "
          f"switch at {config.simulation.switch_generation}, "
          f"dominance={config.dominance.model}")
    print("=" * 72)

    try:
        result = run_simulation(config, output_path=args.output)
    except WgdLoadError as exc:
        print(f"FATAL: {exc}", file=sys.stderr)
        return 2

    print(f"Done: {result.n_generations_run} generations, final N={result.final_n}, "
          f"{result.n_segregating} segregating, {result.n_substitutions} substitutions")
    if result.extinct_tick is not None:
        print(f"Population went extinct at tick {result.extinct_tick}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
