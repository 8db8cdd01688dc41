"""
The example systems used across the workshop slides.

Refs
https://en.wikipedia.org/wiki/Lotka%E2%80%93Volterra_equations
https://en.wikipedia.org/wiki/Van_der_Pol_oscillator
https://www.radford.edu/~thompson/vodef90web/problems/demosnodislin/Single/DemoRobertson/demorobertson.pdf
https://en.wikipedia.org/wiki/H%C3%A9non%E2%80%93Heiles_system
https://docs.sciml.ai/SciMLBenchmarksOutput/stable/MOLPDE/brusselator/
"""
from typing import Tuple

import numpy as np
import scipy.linalg
import scipy.sparse

from ode_workshop.problems import ODEProblem, SplitODEProblem, DynamicalODEProblem

LOTKA_VOLTERRA_PARAMS = np.array([1.5, 1.0, 3.0, 1.0])
GRAVITY = 9.8


def lotka_volterra_rhs(t, u, p):
    alpha, beta, delta, gamma = p
    x, y = u
    return [alpha * x - beta * x * y,
            -delta * y + gamma * x * y]


def lotka_volterra(u0=(1.0, 1.0), tspan=(0.0, 10.0), p=LOTKA_VOLTERRA_PARAMS) -> ODEProblem:
    return ODEProblem(f=lotka_volterra_rhs, u0=u0, tspan=tspan, p=np.asarray(p, dtype=np.float64),
                      name="lotka_volterra")


def exponential_decay(u0=1.0, tspan=(0.0, 1.0), rate=1.01) -> ODEProblem:
    def f(t, u, p):
        return -p * u

    def jac(t, u, p):
        return np.reshape(-np.asarray(p, dtype=np.float64), (1, 1))

    return ODEProblem(f=f, u0=u0, tspan=tspan, p=rate, jac=jac, name="exponential_decay")


def exponential_decay_exact(t, u0=1.0, rate=1.01):
    return u0 * np.exp(-rate * np.asarray(t))


def linear_system(A: np.ndarray, u0, tspan=(0.0, 1.0)) -> ODEProblem:
    A = np.asarray(A, dtype=np.float64)
    assert A.ndim == 2 and A.shape[0] == A.shape[1], f"A must be square, got shape {A.shape}"

    def f(t, u, p):
        return np.matmul(p, u)

    return ODEProblem(f=f, u0=u0, tspan=tspan, p=A, jac=lambda t, u, p: p, name="linear_system")


def linear_system_exact(A: np.ndarray, u0, t: float) -> np.ndarray:
    # u(t) = expm(A t) u0
    E = scipy.linalg.expm(np.asarray(A, dtype=np.float64) * t)
    return np.matmul(E, np.asarray(u0, dtype=np.float64))


def van_der_pol(mu: float = 1.0, u0=(2.0, 0.0), tspan=(0.0, 6.3)) -> ODEProblem:
    def f(t, u, p):
        x1, x2 = u
        return [x2, p * (1 - x1 ** 2) * x2 - x1]

    def jac(t, u, p):
        x1, x2 = u
        return np.array([[0.0, 1.0], [-2 * p * x1 * x2 - 1.0, p * (1 - x1 ** 2)]])

    return ODEProblem(f=f, u0=u0, tspan=tspan, p=mu, jac=jac, name="van_der_pol")


def robertson_rhs(t, u, p):
    k1, k2, k3 = p
    y1, y2, y3 = u
    return [-k1 * y1 + k3 * y2 * y3,
            k1 * y1 - k2 * y2 ** 2 - k3 * y2 * y3,
            k2 * y2 ** 2]


def robertson_jac(t, u, p):
    k1, k2, k3 = p
    y1, y2, y3 = u
    return np.array([[-k1, k3 * y3, k3 * y2],
                     [k1, -2 * k2 * y2 - k3 * y3, -k3 * y2],
                     [0.0, 2 * k2 * y2, 0.0]])


ROBERTSON_PARAMS = (0.04, 3e7, 1e4)


def robertson(tspan=(0.0, 1e5), p=ROBERTSON_PARAMS) -> ODEProblem:
    return ODEProblem(f=robertson_rhs, u0=[1.0, 0.0, 0.0], tspan=tspan, p=p, jac=robertson_jac,
                      name="robertson")


def robertson_dae(tspan=(0.0, 1e5), p=ROBERTSON_PARAMS) -> ODEProblem:
    """Third equation replaced by the conservation law 0 = y1 + y2 + y3 - 1."""

    def f(t, u, p_):
        k1, k2, k3 = p_
        y1, y2, y3 = u
        return [-k1 * y1 + k3 * y2 * y3,
                k1 * y1 - k2 * y2 ** 2 - k3 * y2 * y3,
                y1 + y2 + y3 - 1.0]

    M = np.diag([1.0, 1.0, 0.0])
    return ODEProblem(f=f, u0=[1.0, 0.0, 0.0], tspan=tspan, p=p, mass_matrix=M, name="robertson_dae")


def bouncing_ball(u0=(50.0, 0.0), tspan=(0.0, 15.0), g: float = GRAVITY) -> ODEProblem:
    # u = [height, velocity]
    def f(t, u, p):
        return [u[1], -p]

    return ODEProblem(f=f, u0=u0, tspan=tspan, p=g, name="bouncing_ball")


def henon_heiles(v0=(0.1, 0.0), x0=(0.0, 0.1), tspan=(0.0, 100.0)) -> DynamicalODEProblem:
    def f_v(v, x, p, t):
        q1, q2 = x
        return [-q1 - 2 * q1 * q2, -q2 - (q1 ** 2 - q2 ** 2)]

    def f_x(v, x, p, t):
        return v

    return DynamicalODEProblem(f_v=f_v, f_x=f_x, v0=v0, x0=x0, tspan=tspan, name="henon_heiles")


def henon_heiles_hamiltonian(v, x) -> np.ndarray:
    v = np.asarray(v)
    x = np.asarray(x)
    p1, p2 = v[..., 0], v[..., 1]
    q1, q2 = x[..., 0], x[..., 1]
    return 0.5 * (p1 ** 2 + p2 ** 2) + 0.5 * (q1 ** 2 + q2 ** 2) + q1 ** 2 * q2 - q2 ** 3 / 3


def lorenz(u0=(1.0, 0.0, 0.0), tspan=(0.0, 30.0), p=(10.0, 28.0, 8.0 / 3.0)) -> ODEProblem:
    def f(t, u, p_):
        sigma, rho, beta = p_
        x, y, z = u
        return [sigma * (y - x), x * (rho - z) - y, x * y - beta * z]

    return ODEProblem(f=f, u0=u0, tspan=tspan, p=p, name="lorenz")


# method of lines problems

def periodic_laplacian_1d(N: int, dx: float) -> scipy.sparse.csr_matrix:
    main = -2.0 * np.ones(N)
    off = np.ones(N - 1)
    L = scipy.sparse.diags([off, main, off], offsets=[-1, 0, 1], format="lil")
    L[0, N - 1] = 1.0
    L[N - 1, 0] = 1.0
    return (L / dx ** 2).tocsr()


def brusselator_2d(N: int = 32, tspan=(0.0, 11.5), A: float = 3.4, B: float = 1.0,
                   alpha: float = 10.0) -> ODEProblem:
    """
    2-D Brusselator on an N x N periodic grid over [0, 1]^2, state = [u.ravel(), v.ravel()].
    The forcing switches on at t >= 1.1 in a disc around (0.3, 0.6).
    """
    assert N >= 3, f"N must be >= 3, got {N}"
    xyd = np.linspace(0.0, 1.0, N)
    dx = xyd[1] - xyd[0]
    L1 = periodic_laplacian_1d(N, dx)
    I = scipy.sparse.identity(N, format="csr")
    # x index is the fast one in ravel order
    L2 = (scipy.sparse.kron(I, L1) + scipy.sparse.kron(L1, I)).tocsr()
    X, Y = np.meshgrid(xyd, xyd)
    forcing_disc = (((X - 0.3) ** 2 + (Y - 0.6) ** 2) <= 0.1 ** 2).ravel().astype(np.float64)
    n = N * N

    def f(t, state, p):
        a, b, alpha_ = p
        u = state[:n]
        v = state[n:]
        forcing = 5.0 * forcing_disc if t >= 1.1 else 0.0
        u2v = u ** 2 * v
        du = alpha_ * L2.dot(u) + b + u2v - (a + 1.0) * u + forcing
        dv = alpha_ * L2.dot(v) + a * u - u2v
        return np.concatenate([du, dv])

    def jac(t, state, p):
        a, b, alpha_ = p
        u = state[:n]
        v = state[n:]
        d_uu = scipy.sparse.diags(2.0 * u * v - (a + 1.0))
        d_uv = scipy.sparse.diags(u ** 2)
        d_vu = scipy.sparse.diags(a - 2.0 * u * v)
        d_vv = scipy.sparse.diags(-u ** 2)
        return scipy.sparse.bmat([[alpha_ * L2 + d_uu, d_uv], [d_vu, alpha_ * L2 + d_vv]], format="csc")

    x = X.ravel()
    y = Y.ravel()
    u0 = 22.0 * (y * (1.0 - y)) ** 1.5
    v0 = 27.0 * (x * (1.0 - x)) ** 1.5
    sparsity = jac(0.0, np.ones(2 * n), (A, B, alpha)) != 0
    return ODEProblem(f=f, u0=np.concatenate([u0, v0]), tspan=tspan, p=(A, B, alpha), jac=jac,
                      jac_sparsity=sparsity.astype(np.float64), name="brusselator_2d")


def heat_equation_split(N: int = 64, tspan=(0.0, 0.5), diffusivity: float = 0.1,
                        reaction: float = 1.0) -> SplitODEProblem:
    """
    u_t = D u_xx + r u (1 - u) on a periodic grid. The diffusion part is the stiff f1 and
    is linear, f2 is the logistic reaction.
    """
    xs = np.linspace(0.0, 1.0, N, endpoint=False)
    dx = xs[1] - xs[0]
    L = periodic_laplacian_1d(N, dx)

    def f1(t, u, p):
        D, _ = p
        return D * L.dot(u)

    def f2(t, u, p):
        _, r = p
        return r * u * (1.0 - u)

    def jac(t, u, p):
        D, r = p
        return (D * L + scipy.sparse.diags(r * (1.0 - 2.0 * u))).tocsc()

    u0 = 0.5 + 0.4 * np.sin(2 * np.pi * xs)
    sparsity = (abs(L) + scipy.sparse.identity(N)) != 0
    return SplitODEProblem(f1=f1, f2=f2, u0=u0, tspan=tspan, p=(diffusivity, reaction), jac=jac,
                           jac_sparsity=sparsity.astype(np.float64), name="heat_equation_split")


def grid_shape(problem: ODEProblem) -> Tuple[int, int]:
    n = len(problem.u0) // 2
    N = int(round(np.sqrt(n)))
    assert N * N == n, f"state size {len(problem.u0)} is not two N x N grids"
    return N, N
