import os

import numpy as np
from matplotlib import pyplot as plt

from ode_workshop import solve, DiscreteCallback
from ode_workshop.config import lesson_config
from ode_workshop.models import henon_heiles, henon_heiles_hamiltonian
from ode_workshop.plotting import save_figure

TITLE = "Second order problems and energy conservation"


def energy_projection(prob, H0: float) -> DiscreteCallback:
    """Rescale the momenta after every step so the Hamiltonian stays at H0."""

    def affect(integrator):
        v, x = prob.split_state(integrator.u)
        kinetic = 0.5 * np.dot(v, v)
        target = H0 - (henon_heiles_hamiltonian(v, x) - kinetic)
        if kinetic > 0.0 and target > 0.0:
            integrator.u[:prob.n] = v * np.sqrt(target / kinetic)

    return DiscreteCallback(lambda u, t, integrator: True, affect, save_positions=(False, False))


def energy_drift(prob, sol) -> np.ndarray:
    v, x = prob.split_state(sol.u)
    return henon_heiles_hamiltonian(v, x) - henon_heiles_hamiltonian(*prob.split_state(prob.u0))


def run(config: dict, output_dir: str) -> dict:
    settings = lesson_config(config, "symplectic")
    prob = henon_heiles(tspan=tuple(settings.get('tspan', (0.0, 100.0))))
    H0 = henon_heiles_hamiltonian(*prob.split_state(prob.u0))

    loose = solve(prob, "Tsit5")
    tight = solve(prob, "Vern9", rtol=1e-10, atol=1e-12)
    projected = solve(prob, "Tsit5", callback=energy_projection(prob, H0))

    fig, ax = plt.subplots()
    for name, sol in [("Tsit5", loose), ("Vern9 1e-10", tight), ("Tsit5 + projection", projected)]:
        ax.plot(sol.t, energy_drift(prob, sol), label=name)
    ax.set_xlabel("t")
    ax.set_ylabel("H - H0")
    ax.legend()
    figure = save_figure(fig, os.path.join(output_dir, "henon_heiles_energy.png"))
    return {'drift_loose': float(np.max(np.abs(energy_drift(prob, loose)))),
            'drift_tight': float(np.max(np.abs(energy_drift(prob, tight)))),
            'drift_projected': float(np.max(np.abs(energy_drift(prob, projected)))), 'figure': figure}


if __name__ == '__main__':
    from ode_workshop.lessons import main

    main("symplectic")
