"""
Monte Carlo style ensembles: the same problem solved many times, each run remade by prob_func.
"""
import logging
from typing import Callable, Iterable, List

import numpy as np
import pandas as pd
from tqdm import tqdm

from ode_workshop.problems import ODEProblem
from ode_workshop.solution import ODESolution
from ode_workshop.solvers import solve

logger = logging.getLogger(__name__)


def _identity_prob_func(problem, i, repeat, rng):
    return problem


class EnsembleProblem:
    def __init__(self, problem: ODEProblem, prob_func: Callable = _identity_prob_func, output_func: Callable = None):
        """
        prob_func(problem, i, repeat, rng) -> problem for trajectory i
        output_func(sol, i) -> (output, rerun), rerun=True solves trajectory i again
        """
        self.problem = problem
        self.prob_func = prob_func
        self.output_func = output_func


class EnsembleSolution:
    def __init__(self, solutions: List, tspan):
        self.solutions = solutions
        self.tspan = tspan

    def __len__(self):
        return len(self.solutions)

    def __getitem__(self, index):
        return self.solutions[index]

    def __iter__(self):
        return iter(self.solutions)

    @property
    def successful(self) -> bool:
        return all(isinstance(sol, ODESolution) and sol.successful for sol in self.solutions)

    def values_at(self, ts: Iterable[float], component: int) -> np.ndarray:
        ts = np.asarray(ts, dtype=np.float64)
        return np.array([sol(ts)[:, component] for sol in self.solutions])

    def summary(self, ts: Iterable[float], component: int = 0, quantiles=(0.05, 0.95)) -> pd.DataFrame:
        ts = np.asarray(ts, dtype=np.float64)
        values = self.values_at(ts, component)
        frame = pd.DataFrame({'t': ts, 'mean': values.mean(axis=0), 'std': values.std(axis=0)})
        for q in quantiles:
            frame[f"q{q}"] = np.quantile(values, q, axis=0)
        return frame


def solve_ensemble(ensemble: EnsembleProblem, alg=None, trajectories: int = 10, seed: int = None,
                   max_reruns: int = 3, progress: bool = False, **solve_kwargs) -> EnsembleSolution:
    assert trajectories > 0, f"trajectories must be > 0, got {trajectories}"
    rng = np.random.default_rng(seed)
    outputs = []
    for i in tqdm(range(trajectories), desc="trajectories", disable=not progress):
        repeat = 0
        while True:
            problem = ensemble.prob_func(ensemble.problem, i, repeat, rng)
            sol = solve(problem, alg=alg, **solve_kwargs)
            if ensemble.output_func is None:
                output, rerun = sol, False
            else:
                output, rerun = ensemble.output_func(sol, i)
            if not rerun or repeat >= max_reruns:
                break
            repeat += 1
            logger.debug(f"rerunning trajectory {i}, repeat {repeat}")
        outputs.append(output)
    return EnsembleSolution(outputs, tspan=ensemble.problem.tspan)


def perturb_u0(scale: float) -> Callable:
    """prob_func adding N(0, scale^2) noise to u0."""

    def prob_func(problem, i, repeat, rng):
        return problem.remake(u0=problem.u0 + scale * rng.standard_normal(len(problem.u0)))

    return prob_func
