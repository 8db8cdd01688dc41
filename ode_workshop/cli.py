import argparse
import logging
import os
import sys
from typing import List, Optional

import pandas as pd

from ode_workshop import models
from ode_workshop.benchmarks import work_precision
from ode_workshop.config import load_config
from ode_workshop.deck import DEFAULT_DECK_PATH, build_deck
from ode_workshop.lessons import LESSONS, get_lesson, run_lesson
from ode_workshop.plotting import plot_work_precision, save_figure
from ode_workshop.utils import get_logger

PANDAS_MAX_DISPLAY_ROW = 1000

BENCHMARK_MODELS = {
    'lotka_volterra': models.lotka_volterra,
    'exponential_decay': models.exponential_decay,
    'van_der_pol': models.van_der_pol,
    'robertson': models.robertson,
    'lorenz': models.lorenz,
}


def get_benchmark_problem(name: str):
    factory = BENCHMARK_MODELS.get(name, None)
    if factory is None:
        raise ValueError(f"Unknown benchmark model {name}, available : {sorted(BENCHMARK_MODELS)}")
    return factory()


def _cmd_list(args, config: dict, logger: logging.Logger) -> int:
    for i, name in enumerate(LESSONS, start=1):
        print(f"{i:2d}. {name:<22} {get_lesson(name).TITLE}")
    return 0


def _cmd_run(args, config: dict, logger: logging.Logger) -> int:
    names = LESSONS if args.all else args.lessons
    if len(names) == 0:
        logger.error("no lesson given, pass lesson names or --all")
        return 2
    for name in names:
        results = run_lesson(name, config, output_dir=args.output)
        for key, value in results.items():
            logger.info(f"[{name}] {key} :\n{value}")
    return 0


def _cmd_build_deck(args, config: dict, logger: logging.Logger) -> int:
    deck_path = args.deck or DEFAULT_DECK_PATH
    output_path = args.output or config['deck']['output']
    build_deck(deck_path=deck_path, output_path=output_path, figures_dir=args.figures)
    return 0


def _cmd_benchmark(args, config: dict, logger: logging.Logger) -> int:
    problem = get_benchmark_problem(args.model)
    settings = config['benchmark']
    frame = work_precision(problem, algs=args.algs or settings['algs'], tolerances=settings['tolerances'],
                           reps=settings['reps'])
    logger.info(f"\n{frame}\n")
    output_dir = args.output or config['output']['figures']
    ax = plot_work_precision(frame)
    save_figure(ax.figure, os.path.join(output_dir, f"work_precision_{args.model}.png"))
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="ode_workshop", description="Differential equations workshop")
    parser.add_argument("--config", default=None, help="YAML file overriding the packaged config.yaml")
    parser.add_argument("--log-level", default=None, choices=["debug", "info", "warning", "error"])
    parser.add_argument("--log-to-file", action="store_true", help="also write a per-run log file")
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("list", help="list the lessons in presentation order")

    run_parser = subparsers.add_parser("run", help="run lessons and write their figures")
    run_parser.add_argument("lessons", nargs="*", default=[], metavar="lesson", help=f"one of {LESSONS}")
    run_parser.add_argument("--all", action="store_true")
    run_parser.add_argument("--output", default=None, help="figure directory")

    deck_parser = subparsers.add_parser("build-deck", help="assemble the slides into one markdown deck")
    deck_parser.add_argument("--deck", default=None)
    deck_parser.add_argument("--output", default=None)
    deck_parser.add_argument("--figures", default="figures", help="figure path as seen from the deck")

    bench_parser = subparsers.add_parser("benchmark", help="work-precision comparison on a model")
    bench_parser.add_argument("model", choices=sorted(BENCHMARK_MODELS))
    bench_parser.add_argument("--algs", nargs="+", default=None)
    bench_parser.add_argument("--output", default=None)
    return parser


COMMANDS = {
    'list': _cmd_list,
    'run': _cmd_run,
    'build-deck': _cmd_build_deck,
    'benchmark': _cmd_benchmark,
}


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    config = load_config(args.config)
    level = args.log_level or config['log']['level']
    if args.log_to_file:
        logger, run_number = get_logger(level=level, run_counter_file_path=config['log']['run-counter'],
                                        log_dir=config['log']['dir'])
        logger.info(f"run # {run_number}")
    else:
        logger, _ = get_logger(level=level)
    pd.set_option('display.max_rows', PANDAS_MAX_DISPLAY_ROW)
    return COMMANDS[args.command](args, config, logger)


if __name__ == '__main__':
    sys.exit(main())
