import pandas as pd

from ode_workshop import init
from ode_workshop.models import lotka_volterra

TITLE = "The integrator interface: stepping by hand"


def run(config: dict, output_dir: str) -> dict:
    integrator = init(lotka_volterra(), "Tsit5", rtol=1e-6, atol=1e-9)

    for _ in range(5):
        integrator.step()
    first_steps = integrator.iter

    # iterate step by step and stop ourselves once the prey population peaks above 4
    steps = []
    for integ in integrator:
        steps.append({'t': integ.t, 'dt': integ.dt, 'prey': integ.u[0], 'predator': integ.u[1]})
        if integ.u[0] > 4.0:
            integ.terminate()
    sol = integrator.solution()
    return {'first_steps': first_steps, 'steps': pd.DataFrame(steps), 'retcode': sol.retcode.value,
            't_final': sol.t[-1]}


if __name__ == '__main__':
    from ode_workshop.lessons import main

    main("integrator_interface")
