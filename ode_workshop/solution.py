from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Tuple

import numpy as np
import pandas as pd
from scipy.integrate import OdeSolution


class ReturnCode(Enum):
    SUCCESS = "Success"
    TERMINATED = "Terminated"
    MAX_ITERS = "MaxIters"
    FAILURE = "Failure"


@dataclass
class SolverStats:
    nf: int = 0
    njev: int = 0
    nlu: int = 0
    naccept: int = 0
    nreinit: int = 0

    def add_solver(self, solver):
        self.nf += solver.nfev
        self.njev += solver.njev
        self.nlu += solver.nlu

    def as_dict(self) -> dict:
        return {'nf': self.nf, 'njev': self.njev, 'nlu': self.nlu, 'naccept': self.naccept,
                'nreinit': self.nreinit}


class ODESolution:
    def __init__(self, t, u, alg, retcode: ReturnCode, message: str = "", stats: SolverStats = None,
                 events: List[Tuple[float, int]] = None, interpolation: OdeSolution = None,
                 transform: Callable = None, problem=None):
        self.t = np.asarray(t, dtype=np.float64)
        self.u = np.asarray(u, dtype=np.float64)
        if self.u.ndim == 1:
            self.u = self.u.reshape(len(self.t), -1)
        assert self.u.shape[0] == len(self.t), \
            f"saved states and times must have the same length : {self.u.shape[0]} != {len(self.t)}"
        self.alg = alg
        self.retcode = retcode
        self.message = message
        self.stats = stats or SolverStats()
        self.events = events or []
        self.interpolation = interpolation
        self.transform = transform
        self.problem = problem

    def __len__(self):
        return len(self.t)

    def __getitem__(self, index):
        return self.u[index]

    def __repr__(self):
        return f"ODESolution(retcode={self.retcode.value}, alg={self.alg}, n_points={len(self)})"

    @property
    def successful(self) -> bool:
        return self.retcode in (ReturnCode.SUCCESS, ReturnCode.TERMINATED)

    @property
    def final(self) -> np.ndarray:
        return self.u[-1]

    @property
    def dense(self) -> bool:
        return self.interpolation is not None

    def __call__(self, t):
        """
        Interpolate the solution at t (scalar or array), using the dense output of the step
        covering t. Returns shape (n,) for a scalar and (len(t), n) for an array.
        """
        if self.interpolation is None:
            raise ValueError("dense output was disabled for this solve, interpolation is not available")
        t_array = np.asarray(t, dtype=np.float64)
        t_lo, t_hi = min(self.interpolation.t_min, self.interpolation.t_max), \
            max(self.interpolation.t_min, self.interpolation.t_max)
        eps = 1e-12 * max(1.0, abs(t_lo), abs(t_hi))
        if np.any(t_array < t_lo - eps) or np.any(t_array > t_hi + eps):
            raise ValueError(f"t outside of the solved interval [{t_lo}, {t_hi}]")
        y = self.interpolation(t_array)
        if t_array.ndim == 0:
            return self._transform(float(t_array), y)
        y = y.T
        if self.transform is None:
            return y
        return np.array([self._transform(ti, yi) for ti, yi in zip(t_array, y)])

    def _transform(self, t, y):
        if self.transform is None:
            return y
        return self.transform(t, y)

    def to_frame(self, names: List[str] = None) -> pd.DataFrame:
        n_vars = self.u.shape[1]
        if names is None:
            names = [f"u{i + 1}" for i in range(n_vars)]
        assert len(names) == n_vars, f"expected {n_vars} names, got {len(names)}"
        frame = pd.DataFrame(self.u, columns=names)
        frame.insert(0, "t", self.t)
        return frame
