import os

from ode_workshop.config import lesson_config
from ode_workshop.ensemble import EnsembleProblem, solve_ensemble, perturb_u0
from ode_workshop.models import lorenz
from ode_workshop.plotting import plot_ensemble, save_figure

TITLE = "Ensembles: many trajectories at once"


def run(config: dict, output_dir: str) -> dict:
    settings = lesson_config(config, "ensembles")
    prob = lorenz(tspan=tuple(settings.get('tspan', (0.0, 30.0))))

    # every trajectory starts from a slightly perturbed initial condition
    ensemble = EnsembleProblem(prob, prob_func=perturb_u0(settings.get('perturbation', 1e-3)))
    esol = solve_ensemble(ensemble, "Tsit5", trajectories=settings.get('trajectories', 20),
                          seed=config['ensemble']['seed'], rtol=1e-6, atol=1e-9)

    ax = plot_ensemble(esol, component=0)
    figure = save_figure(ax.figure, os.path.join(output_dir, "lorenz_ensemble.png"))
    summary = esol.summary([prob.tspan[0], prob.tspan[1]], component=0)
    return {'trajectories': len(esol), 'successful': esol.successful, 'summary': summary, 'figure': figure}


if __name__ == '__main__':
    from ode_workshop.lessons import main

    main("ensembles")
