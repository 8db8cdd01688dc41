import os

import numpy as np
from matplotlib import pyplot as plt

from ode_workshop import solve
from ode_workshop.config import lesson_config
from ode_workshop.estimation import fit_parameters, train_neural_ode, predict_neural_ode
from ode_workshop.models import lotka_volterra, LOTKA_VOLTERRA_PARAMS
from ode_workshop.plotting import save_figure
from ode_workshop.utils import set_seed

TITLE = "Fitting models to data: parameters and neural ODEs"


def run(config: dict, output_dir: str) -> dict:
    settings = lesson_config(config, "parameter_estimation")
    set_seed(config['neural']['seed'])
    rng = np.random.default_rng(config['ensemble']['seed'])

    # synthetic noisy observations of the predator-prey system
    prob = lotka_volterra()
    data_t = np.linspace(0.0, 10.0, 51)
    clean = solve(prob, "Vern9", saveat=data_t, rtol=1e-10, atol=1e-10).u
    data_u = clean + settings.get('noise', 0.02) * rng.standard_normal(clean.shape)

    fit = fit_parameters(prob, data_t, data_u, p0=[1.2, 0.8, 2.8, 0.8], alg="Vern7", bounds=(0.0, 10.0))

    # same data, but the right-hand side is a neural network
    window = data_t <= settings.get('neural-tmax', 4.0)
    func, losses = train_neural_ode(data_t[window], data_u[window], config['neural'])
    prediction = predict_neural_ode(func, data_u[0], data_t[window])

    fig, ax = plt.subplots()
    ax.plot(data_t, data_u, "o", markersize=3)
    ax.plot(data_t[window], prediction, "-")
    ax.set_xlabel("t")
    figure = save_figure(fig, os.path.join(output_dir, "parameter_estimation.png"))
    return {'p_true': LOTKA_VOLTERRA_PARAMS, 'p_fit': fit.p, 'fit_success': fit.success,
            'neural_losses': losses, 'figure': figure}


if __name__ == '__main__':
    from ode_workshop.lessons import main

    main("parameter_estimation")
