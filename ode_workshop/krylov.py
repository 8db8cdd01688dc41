"""
Preconditioned Newton-Krylov for large implicit steps of method-of-lines problems.

scipy's Radau / BDF factorize the Jacobian directly. For big PDE discretizations the
implicit equations are instead solved matrix free with GMRES, and an incomplete LU of
the iteration matrix I - dt J keeps the number of inner iterations low.

https://docs.scipy.org/doc/scipy/tutorial/optimize.html#still-too-slow-preconditioning
https://docs.scipy.org/doc/scipy/reference/generated/scipy.sparse.linalg.spilu.html
"""
import logging
from typing import Tuple

import numpy as np
import scipy.sparse
import scipy.sparse.linalg
from scipy.optimize import newton_krylov

from ode_workshop.problems import ODEProblem

logger = logging.getLogger(__name__)


def ilu_preconditioner(matrix, drop_tol: float = 1e-5, fill_factor: float = 10.0) \
        -> scipy.sparse.linalg.LinearOperator:
    ilu = scipy.sparse.linalg.spilu(scipy.sparse.csc_matrix(matrix), drop_tol=drop_tol, fill_factor=fill_factor)
    return scipy.sparse.linalg.LinearOperator(matrix.shape, matvec=ilu.solve)


class _IterationCounter:
    def __init__(self):
        self.iterations = 0

    def __call__(self, x, f):
        self.iterations += 1


def implicit_euler_step_krylov(problem: ODEProblem, u: np.ndarray, t: float, dt: float, precondition: bool = True,
                               f_tol: float = 1e-8, drop_tol: float = 1e-5, inner_maxiter: int = 50) \
        -> Tuple[np.ndarray, int]:
    """
    One backward Euler step u_new = u + dt f(t + dt, u_new), solved with newton_krylov (lgmres).
    Returns the new state and the number of outer Newton iterations.
    """
    assert problem.jac is not None or not precondition, "preconditioning needs problem.jac"
    fun = problem.rhs()
    u = np.asarray(u, dtype=np.float64)
    t_new = t + dt

    def residual(u_new):
        return u_new - u - dt * fun(t_new, u_new)

    kwargs = {}
    if precondition:
        J = scipy.sparse.csc_matrix(problem.jacobian()(t_new, u))
        W = scipy.sparse.identity(len(u), format="csc") - dt * J
        kwargs['inner_M'] = ilu_preconditioner(W, drop_tol=drop_tol)
    counter = _IterationCounter()
    u_new = newton_krylov(residual, u.copy(), method="lgmres", f_tol=f_tol, inner_maxiter=inner_maxiter,
                          callback=counter, **kwargs)
    logger.debug(f"backward euler step t = {t} -> {t_new} : {counter.iterations} newton iterations, "
                 f"preconditioned = {precondition}")
    return u_new, counter.iterations


def count_inner_iterations(problem: ODEProblem, u: np.ndarray, t: float, dt: float, precondition: bool,
                           drop_tol: float = 1e-5) -> int:
    """Number of GMRES iterations for a single linear solve with the iteration matrix I - dt J."""
    J = scipy.sparse.csc_matrix(problem.jacobian()(t + dt, u))
    W = scipy.sparse.identity(len(u), format="csc") - dt * J
    rhs = np.asarray(problem.rhs()(t, u), dtype=np.float64)
    iterations = []
    M = ilu_preconditioner(W, drop_tol=drop_tol) if precondition else None
    _, info = scipy.sparse.linalg.gmres(W, rhs, M=M, restart=200, maxiter=10,
                                        callback=lambda pr_norm: iterations.append(pr_norm),
                                        callback_type="pr_norm")
    if info != 0:
        logger.warning(f"gmres did not converge, info = {info}")
    return len(iterations)
