"""
Refs
https://www.simiode.org/resources/6425/download/5-010-Text-S-MatrixExponential-StudentVersion.pdf
https://docs.scipy.org/doc/scipy/reference/generated/scipy.linalg.expm.html
"""
import numpy as np
import pandas as pd

from ode_workshop import solve
from ode_workshop.models import linear_system, linear_system_exact

TITLE = "Linear systems: the matrix exponential as ground truth"


def run(config: dict, output_dir: str) -> dict:
    A = np.array([[1.0, 2.0], [3.0, 4.0]])
    z0 = np.array([0.1, 0.2])
    T = 1.0
    zT_expm = linear_system_exact(A, z0, T)

    rows = []
    for alg in ["Tsit5", "Vern9", "Rodas5", "LSODA"]:
        sol = solve(linear_system(A, z0, tspan=(0.0, T)), alg, rtol=1e-8, atol=1e-10)
        rows.append({'alg': sol.alg, 'error': float(np.linalg.norm(sol.final - zT_expm)), 'nf': sol.stats.nf})
    return {'zT_expm': zT_expm, 'errors': pd.DataFrame(rows)}


if __name__ == '__main__':
    from ode_workshop.lessons import main

    main("matrix_exponential")
