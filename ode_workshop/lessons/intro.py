import os

from matplotlib import pyplot as plt

from ode_workshop import solve
from ode_workshop.config import lesson_config
from ode_workshop.models import lotka_volterra
from ode_workshop.plotting import plot_solution, save_figure

TITLE = "Solving your first ODE"


def run(config: dict, output_dir: str) -> dict:
    settings = lesson_config(config, "intro")
    prob = lotka_volterra(tspan=tuple(settings.get('tspan', (0.0, 10.0))))
    sol = solve(prob)  # no algorithm given, one is picked for us

    fig, axes = plt.subplots(1, 2, figsize=(10, 4))
    plot_solution(sol, ax=axes[0], names=["prey", "predator"])
    plot_solution(sol, vars=(0, 1), ax=axes[1], names=["prey", "predator"], dense_points=1000)
    figure = save_figure(fig, os.path.join(output_dir, "intro_lotka_volterra.png"))
    return {'solution': sol, 'alg': sol.alg, 'u_final': sol.final, 'figure': figure}


if __name__ == '__main__':
    from ode_workshop.lessons import main

    main("intro")
