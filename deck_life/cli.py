"""
Command-line entry point for the deck service-life simulation.

Usage:
    deck-life --iterations 2000 --seed 42 --output result.json
    deck-life --params my_params.json --baseline > before.json
    deck-life --headlines

Parameters are read from a JSON file with the SimulationParameters shape
(missing groups take their defaults). Results go to stdout or --output as JSON;
logging goes to stderr.
"""

import argparse
import json
import logging
import sys
from pathlib import Path

from pydantic import ValidationError

from deck_life.config import get_default_random_seed
from deck_life.outputs import format_headlines
from deck_life.parameters import DEFAULT_PARAMETERS, SimulationParameters
from deck_life.simulation import baseline_snapshot, run_simulation

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="deck-life",
        description="Monte Carlo service-life simulation of a concrete deck under repair scenarios.",
    )
    parser.add_argument("--params", type=Path, help="JSON file with simulation parameters")
    parser.add_argument("--iterations", type=int, help="Override monte_carlo_iterations")
    parser.add_argument("--seed", type=int, default=None, help="Random seed for a reproducible run")
    parser.add_argument("--no-bayesian", action="store_true", help="Disable Bayesian conditioning")
    parser.add_argument("--output", type=Path, help="Write JSON here instead of stdout")
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument("--baseline", action="store_true", help="Write only the checkpoint baseline")
    mode.add_argument("--headlines", action="store_true", help="Write only the per-scenario headlines")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    return parser


def load_parameters(args) -> SimulationParameters:
    if args.params is not None:
        parameters = SimulationParameters.model_validate_json(args.params.read_text(encoding="utf-8"))
    else:
        parameters = DEFAULT_PARAMETERS

    overrides = {}
    if args.iterations is not None:
        overrides["monte_carlo_iterations"] = args.iterations
    if args.no_bayesian:
        overrides["bayesian_conditioning"] = {"enabled": False}
    if overrides:
        parameters = parameters.with_overrides(overrides)
    return parameters


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        stream=sys.stderr,
    )

    try:
        parameters = load_parameters(args)
    except ValidationError as e:
        logger.error("Invalid parameters: %s", e)
        return 2
    except OSError as e:
        logger.error("Cannot read parameters file %s: %s", args.params, e)
        return 2

    seed = args.seed if args.seed is not None else get_default_random_seed()
    result = run_simulation(parameters, random_seed=seed)

    if args.baseline:
        payload = baseline_snapshot(result)
    elif args.headlines:
        headlines = format_headlines(result.summary, parameters.monte_carlo_iterations, parameters.end_year)
        payload = {scenario_id: h.to_dict() for scenario_id, h in headlines.items()}
    else:
        payload = result.to_dict()

    text = json.dumps(payload, indent=2, allow_nan=False)
    if args.output is not None:
        args.output.write_text(text + "\n", encoding="utf-8")
        logger.info("Wrote %s", args.output)
    else:
        sys.stdout.write(text + "\n")
    return 0


if __name__ == "__main__":
    sys.exit(main())
