import numpy as np
import pandas as pd

from ode_workshop import solve
from ode_workshop.config import lesson_config
from ode_workshop.models import exponential_decay, exponential_decay_exact

TITLE = "Tolerances, saveat and dense output"


def run(config: dict, output_dir: str) -> dict:
    settings = lesson_config(config, "tolerances")
    prob = exponential_decay()

    rows = []
    for tol in settings.get('tolerances', [1e-3, 1e-6, 1e-9]):
        sol = solve(prob, "Tsit5", rtol=tol, atol=tol)
        error = abs(sol.final[0] - exponential_decay_exact(prob.tspan[1]))
        rows.append({'rtol': tol, 'steps': sol.stats.naccept, 'nf': sol.stats.nf, 'error': error})

    # only keep every 0.1, the interpolant still answers in between
    sol = solve(prob, "Tsit5", saveat=0.1)
    dense_value = sol(0.55)[0]
    return {'accuracy': pd.DataFrame(rows), 'saveat_t': sol.t, 'dense_value': dense_value,
            'dense_error': abs(dense_value - exponential_decay_exact(0.55)),
            'saveat_grid_ok': bool(np.allclose(sol.t, np.linspace(0.0, 1.0, 11)))}


if __name__ == '__main__':
    from ode_workshop.lessons import main

    main("tolerances")
