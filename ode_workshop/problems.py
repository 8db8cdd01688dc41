"""
Problem containers handed to the scipy integrators.

The right-hand side convention used throughout the workshop is f(t, u, p) -> du/dt.
scipy.integrate wants fun(t, y), so every problem knows how to bind its parameters
and hand out such a closure.

https://docs.scipy.org/doc/scipy/reference/generated/scipy.integrate.solve_ivp.html
"""
import copy
import logging
from typing import Callable, Tuple

import numpy as np
import scipy.sparse
from scipy.optimize import fsolve

logger = logging.getLogger(__name__)


class ProblemError(ValueError):
    pass


class ODEProblem:
    def __init__(self, f: Callable, u0, tspan: Tuple[float, float], p=None, jac: Callable = None,
                 jac_sparsity=None, mass_matrix=None, name: str = None):
        self.f = f
        self.u0 = u0
        self.tspan = tspan
        self.p = p
        self.jac = jac
        self.jac_sparsity = jac_sparsity
        self.mass_matrix = mass_matrix
        self.name = name or getattr(f, "__name__", "ode")
        self._validate()

    def _validate(self):
        u0 = np.atleast_1d(np.asarray(self.u0, dtype=np.float64))
        if u0.ndim != 1:
            raise ProblemError(f"u0 must be a vector, got shape {u0.shape}")
        if not np.all(np.isfinite(u0)):
            raise ProblemError(f"u0 must be finite, got {u0}")
        self.u0 = u0
        if len(self.tspan) != 2:
            raise ProblemError(f"tspan must be (t0, tf), got {self.tspan}")
        t0, tf = float(self.tspan[0]), float(self.tspan[1])
        if t0 == tf or not (np.isfinite(t0) and np.isfinite(tf)):
            raise ProblemError(f"tspan must be finite with t0 != tf, got {self.tspan}")
        self.tspan = (t0, tf)
        if self.jac_sparsity is not None:
            shape = self.jac_sparsity.shape
            if shape != (len(u0), len(u0)):
                raise ProblemError(f"jac_sparsity shape {shape} does not match state size {len(u0)}")
        if self.mass_matrix is not None:
            shape = np.shape(self.mass_matrix)
            if shape != (len(u0), len(u0)):
                raise ProblemError(f"mass_matrix shape {shape} does not match state size {len(u0)}")

    def __len__(self):
        return len(self.u0)

    def __repr__(self):
        return f"{type(self).__name__}(name={self.name}, n={len(self)}, tspan={self.tspan})"

    @property
    def direction(self) -> float:
        return np.sign(self.tspan[1] - self.tspan[0])

    @property
    def is_dae(self) -> bool:
        return self.mass_matrix is not None and not MassMatrixReduction.is_identity(self.mass_matrix)

    def rhs(self) -> Callable:
        f, p = self.f, self.p

        def fun(t, y):
            return np.asarray(f(t, y, p), dtype=np.float64)

        return fun

    def jacobian(self):
        if self.jac is None:
            return None
        jac, p = self.jac, self.p

        def jac_fun(t, y):
            return jac(t, y, p)

        return jac_fun

    def remake(self, **changes):
        new_problem = copy.copy(self)
        for key, value in changes.items():
            if not hasattr(new_problem, key):
                raise ProblemError(f"{type(self).__name__} has no field {key}")
            setattr(new_problem, key, value)
        new_problem._validate()
        return new_problem


class SplitODEProblem(ODEProblem):
    """
    du/dt = f1(t, u, p) + f2(t, u, p), f1 being the stiff part.
    scipy has no IMEX integrators, the two parts are summed and the
    combined right-hand side goes to an implicit method.
    """

    def __init__(self, f1: Callable, f2: Callable, u0, tspan, p=None, jac: Callable = None,
                 jac_sparsity=None, name: str = None):
        self.f1 = f1
        self.f2 = f2

        def f(t, u, p_):
            return np.asarray(f1(t, u, p_), dtype=np.float64) + np.asarray(f2(t, u, p_), dtype=np.float64)

        super().__init__(f=f, u0=u0, tspan=tspan, p=p, jac=jac, jac_sparsity=jac_sparsity,
                         name=name or "split_ode")


class DynamicalODEProblem(ODEProblem):
    """
    Partitioned second order form
        dv/dt = f_v(v, x, p, t)
        dx/dt = f_x(v, x, p, t)
    flattened into a first order state u = [v, x].
    """

    def __init__(self, f_v: Callable, f_x: Callable, v0, x0, tspan, p=None, name: str = None):
        v0 = np.atleast_1d(np.asarray(v0, dtype=np.float64))
        x0 = np.atleast_1d(np.asarray(x0, dtype=np.float64))
        if v0.shape != x0.shape:
            raise ProblemError(f"v0 and x0 must have the same shape : {v0.shape} != {x0.shape}")
        self.f_v = f_v
        self.f_x = f_x
        self.n = len(v0)
        n = self.n

        def f(t, u, p_):
            v, x = u[:n], u[n:]
            return np.concatenate([np.asarray(f_v(v, x, p_, t), dtype=np.float64),
                                   np.asarray(f_x(v, x, p_, t), dtype=np.float64)])

        super().__init__(f=f, u0=np.concatenate([v0, x0]), tspan=tspan, p=p, name=name or "dynamical_ode")

    def split_state(self, u: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        u = np.asarray(u)
        return u[..., :self.n], u[..., self.n:]


class MassMatrixReduction:
    """
    Semi-explicit index-1 DAE in mass matrix form M du/dt = f(t, u, p) with diagonal M.
    Rows with zero mass are algebraic constraints 0 = f_a(t, u, p). The differential
    variables are integrated, the algebraic ones are recovered with fsolve on each evaluation.
    """

    def __init__(self, problem: ODEProblem):
        M = problem.mass_matrix
        if scipy.sparse.issparse(M):
            M = M.toarray()
        M = np.asarray(M, dtype=np.float64)
        if not np.array_equal(M, np.diag(np.diag(M))):
            raise ProblemError("only diagonal mass matrices are supported")
        mass = np.diag(M)
        self.problem = problem
        self.n = len(problem.u0)
        self.diff_idx = np.flatnonzero(mass != 0.0)
        self.alg_idx = np.flatnonzero(mass == 0.0)
        if len(self.diff_idx) == 0:
            raise ProblemError("mass matrix has no differential variables")
        self.mass = mass[self.diff_idx]
        self._guess = problem.u0[self.alg_idx].copy()

    @staticmethod
    def is_identity(M) -> bool:
        if scipy.sparse.issparse(M):
            M = M.toarray()
        M = np.asarray(M)
        return np.array_equal(M, np.eye(M.shape[0]))

    def assemble(self, y_d: np.ndarray, y_a: np.ndarray) -> np.ndarray:
        u = np.empty(self.n, dtype=np.float64)
        u[self.diff_idx] = y_d
        u[self.alg_idx] = y_a
        return u

    def algebraic(self, t: float, y_d: np.ndarray) -> np.ndarray:
        if len(self.alg_idx) == 0:
            return self._guess
        f, p, alg_idx = self.problem.f, self.problem.p, self.alg_idx

        def residual(y_a):
            return np.asarray(f(t, self.assemble(y_d, y_a), p), dtype=np.float64)[alg_idx]

        y_a, _, ier, msg = fsolve(residual, self._guess, full_output=True)
        if ier != 1:
            logger.debug(f"algebraic solve at t = {t} did not converge : {msg}")
        self._guess = y_a
        return y_a

    def expand(self, t: float, y_d: np.ndarray) -> np.ndarray:
        return self.assemble(y_d, self.algebraic(t, y_d))

    def reduced_problem(self) -> ODEProblem:
        full_f, mass = self.problem.f, self.mass

        def f(t, y_d, p):
            du = np.asarray(full_f(t, self.expand(t, y_d), p), dtype=np.float64)
            return du[self.diff_idx] / mass

        return ODEProblem(f=f, u0=self.problem.u0[self.diff_idx], tspan=self.problem.tspan,
                          p=self.problem.p, name=f"{self.problem.name}_reduced")
