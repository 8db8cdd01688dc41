"""
Workshop lessons, in presentation order. Every lesson module exposes

    TITLE : str
    run(config: dict, output_dir: str) -> dict

and can be executed on its own with python -m ode_workshop.lessons.<name>
"""
import importlib
import logging
import os

from matplotlib import pyplot as plt

from ode_workshop.config import load_config
from ode_workshop.utils import get_logger

logger = logging.getLogger(__name__)

LESSONS = [
    "intro",
    "choosing_solvers",
    "tolerances",
    "callbacks",
    "integrator_interface",
    "stiff_dae",
    "pde_sparse",
    "imex",
    "symplectic",
    "matrix_exponential",
    "ensembles",
    "parameter_estimation",
]


def get_lesson(name: str):
    if name not in LESSONS:
        raise ValueError(f"Unknown lesson {name}, available lessons : {LESSONS}")
    return importlib.import_module(f"ode_workshop.lessons.{name}")


def run_lesson(name: str, config: dict, output_dir: str = None) -> dict:
    lesson = get_lesson(name)
    if output_dir is None:
        output_dir = config['output']['figures']
    os.makedirs(output_dir, exist_ok=True)
    logger.info(f"running lesson {name} : {lesson.TITLE}")
    results = lesson.run(config, output_dir)
    if config['output'].get('show', False):
        plt.show()
    plt.close("all")
    return results


def main(name: str, config_path: str = None):
    config = load_config(config_path)
    root_logger, _ = get_logger(level=config['log']['level'])
    results = run_lesson(name, config)
    for key, value in results.items():
        root_logger.info(f"{key} :\n{value}")
    return results
