import logging
import os
from typing import List, Sequence, Union

import numpy as np
import pandas as pd
from matplotlib import pyplot as plt

from ode_workshop.solution import ODESolution

logger = logging.getLogger(__name__)

TIME = "t"


def _component(sol: ODESolution, var: Union[int, str], t: np.ndarray, u: np.ndarray):
    if var == TIME:
        return t
    assert isinstance(var, (int, np.integer)), f"vars entries must be state indices or '{TIME}', got {var}"
    return u[:, var]


def _label(var, names):
    if var == TIME:
        return TIME
    return names[var] if names is not None else f"u{var + 1}"


def plot_solution(sol: ODESolution, vars: Sequence = None, ax=None, names: List[str] = None,
                  dense_points: int = None, **plot_kwargs):
    """
    vars=None plots every component against time, vars=(i, j) plots component j against i
    ("t" selects time). dense_points samples the interpolant instead of the saved points.
    """
    if ax is None:
        _, ax = plt.subplots()
    if dense_points is not None:
        t = np.linspace(sol.t[0], sol.t[-1], dense_points)
        u = sol(t)
    else:
        t, u = sol.t, sol.u
    if vars is None:
        for i in range(u.shape[1]):
            ax.plot(t, u[:, i], label=_label(i, names), **plot_kwargs)
        ax.set_xlabel(TIME)
        ax.legend()
    else:
        assert len(vars) == 2, f"vars must be a pair, got {vars}"
        x = _component(sol, vars[0], t, u)
        y = _component(sol, vars[1], t, u)
        ax.plot(x, y, **plot_kwargs)
        ax.set_xlabel(_label(vars[0], names))
        ax.set_ylabel(_label(vars[1], names))
    ax.set_title(f"{sol.problem.name if sol.problem is not None else 'solution'} ({sol.alg})")
    return ax


def plot_work_precision(frame: pd.DataFrame, ax=None):
    if ax is None:
        _, ax = plt.subplots()
    for alg, group in frame.groupby("alg"):
        group = group.sort_values("error")
        ax.loglog(group["error"], group["time"], marker="o", label=alg)
    ax.set_xlabel("error")
    ax.set_ylabel("time (s)")
    ax.set_title("work-precision")
    ax.legend()
    return ax


def plot_ensemble(ensemble_solution, component: int = 0, ax=None, quantiles=(0.05, 0.95),
                  n_points: int = 200, alpha: float = 0.2):
    if ax is None:
        _, ax = plt.subplots()
    t0, tf = ensemble_solution.tspan
    ts = np.linspace(t0, tf, n_points)
    for sol in ensemble_solution:
        ax.plot(ts, sol(ts)[:, component], color="grey", alpha=alpha, linewidth=0.8)
    summary = ensemble_solution.summary(ts, component=component, quantiles=quantiles)
    ax.plot(summary["t"], summary["mean"], color="black", label="mean")
    ax.fill_between(summary["t"], summary[f"q{quantiles[0]}"], summary[f"q{quantiles[1]}"],
                    color="tab:blue", alpha=0.3, label=f"{quantiles[0]}-{quantiles[1]} quantiles")
    ax.set_xlabel(TIME)
    ax.legend()
    return ax


def save_figure(fig, path: str):
    directory = os.path.dirname(path)
    if directory:
        os.makedirs(directory, exist_ok=True)
    fig.savefig(path)
    plt.close(fig)
    logger.info(f"figure saved to {path}")
    return path
