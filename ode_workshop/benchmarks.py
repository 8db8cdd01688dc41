import logging
import time
from typing import Iterable

import numpy as np
import pandas as pd
from tqdm import tqdm

from ode_workshop.problems import ODEProblem
from ode_workshop.solvers import solve, get_algorithm, Algorithm

logger = logging.getLogger(__name__)

REFERENCE_ALG = Algorithm.DOP853
REFERENCE_RTOL = 1e-13
REFERENCE_ATOL = 1e-13


def reference_solution(problem: ODEProblem, alg=REFERENCE_ALG) -> np.ndarray:
    sol = solve(problem, alg=alg, rtol=REFERENCE_RTOL, atol=REFERENCE_ATOL, save_everystep=False, dense=False)
    assert sol.successful, f"reference solve failed : {sol.message}"
    return sol.final


def work_precision(problem: ODEProblem, algs: Iterable, tolerances: Iterable[float], reference: np.ndarray = None,
                   reps: int = 1, atol_ratio: float = 1e-3, progress: bool = True, **solve_kwargs) -> pd.DataFrame:
    """
    Final-time error and wall time for every (alg, rtol) pair, atol = atol_ratio * rtol.
    The timing is the best of reps runs.
    """
    assert reps >= 1, f"reps must be >= 1, got {reps}"
    algs = [get_algorithm(alg) for alg in algs]
    tolerances = list(tolerances)
    if reference is None:
        reference = reference_solution(problem)
    rows = []
    runs = [(alg, rtol) for alg in algs for rtol in tolerances]
    for alg, rtol in tqdm(runs, desc=f"work-precision {problem.name}", disable=not progress):
        atol = atol_ratio * rtol
        best_time = np.inf
        sol = None
        for _ in range(reps):
            start_time = time.perf_counter()
            sol = solve(problem, alg=alg, rtol=rtol, atol=atol, save_everystep=False, dense=False,
                        **solve_kwargs)
            best_time = min(best_time, time.perf_counter() - start_time)
        error = float(np.max(np.abs(sol.final - reference))) if sol.successful else np.nan
        rows.append({'alg': alg.value, 'rtol': rtol, 'atol': atol, 'error': error, 'time': best_time,
                     'nf': sol.stats.nf, 'retcode': sol.retcode.value})
        logger.debug(f"{alg.value} rtol = {rtol} : error = {error}, time = {best_time}")
    return pd.DataFrame(rows)


def compare_stats(problem: ODEProblem, algs: Iterable, **solve_kwargs) -> pd.DataFrame:
    rows = []
    for alg in algs:
        alg = get_algorithm(alg)
        start_time = time.perf_counter()
        sol = solve(problem, alg=alg, **solve_kwargs)
        elapsed = time.perf_counter() - start_time
        row = {'alg': alg.value, 'retcode': sol.retcode.value, 'time': elapsed}
        row.update(sol.stats.as_dict())
        rows.append(row)
    return pd.DataFrame(rows)
