import os

import numpy as np
from matplotlib import pyplot as plt

from ode_workshop import solve
from ode_workshop.config import lesson_config
from ode_workshop.models import robertson, robertson_dae
from ode_workshop.plotting import save_figure

TITLE = "Stiff problems and DAEs with a mass matrix"


def run(config: dict, output_dir: str) -> dict:
    settings = lesson_config(config, "stiff_dae")
    tspan = tuple(settings.get('tspan', (0.0, 1e5)))

    ode_sol = solve(robertson(tspan=tspan), "Rodas5", rtol=1e-6, atol=1e-10)
    # M = diag(1, 1, 0): the last equation is the algebraic constraint y1 + y2 + y3 = 1
    dae_sol = solve(robertson_dae(tspan=tspan), "Rodas5", rtol=1e-6, atol=1e-10)

    fig, ax = plt.subplots()
    for i, name in enumerate(["y1", "y2 x 1e4", "y3"]):
        scale = 1e4 if i == 1 else 1.0
        ax.semilogx(dae_sol.t[1:], scale * dae_sol.u[1:, i], label=name)
    ax.set_xlabel("t")
    ax.legend()
    figure = save_figure(fig, os.path.join(output_dir, "robertson_dae.png"))
    return {'ode_final': ode_sol.final, 'dae_final': dae_sol.final,
            'max_constraint_violation': float(np.max(np.abs(dae_sol.u.sum(axis=1) - 1.0))),
            'dae_stats': dae_sol.stats.as_dict(), 'figure': figure}


if __name__ == '__main__':
    from ode_workshop.lessons import main

    main("stiff_dae")
