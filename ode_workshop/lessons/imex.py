import numpy as np
import scipy.sparse.linalg

from ode_workshop import solve
from ode_workshop.benchmarks import compare_stats
from ode_workshop.config import lesson_config
from ode_workshop.models import heat_equation_split

TITLE = "Split problems: stiff diffusion plus non-stiff reaction"


def run(config: dict, output_dir: str) -> dict:
    settings = lesson_config(config, "imex")
    prob = heat_equation_split(N=settings.get('N', 64))

    # how stiff is the diffusion part? largest eigenvalue of its Jacobian
    D, r = prob.p
    J = prob.jac(prob.tspan[0], prob.u0, (D, 0.0))
    largest = abs(scipy.sparse.linalg.eigs(J, k=1, which="LM", return_eigenvectors=False)[0])

    # f1 + f2 recombined; the implicit method takes large steps, the explicit one is stability bound
    stats = compare_stats(prob, ["KenCarp4", "Tsit5"], rtol=1e-6, atol=1e-8, save_everystep=False)
    sol = solve(prob, "KenCarp4", rtol=1e-6, atol=1e-8)
    return {'stiffness': float(largest), 'stats': stats, 'u_final_mean': float(np.mean(sol.final))}


if __name__ == '__main__':
    from ode_workshop.lessons import main

    main("imex")
