import pandas as pd

from ode_workshop.benchmarks import compare_stats
from ode_workshop.config import lesson_config
from ode_workshop.models import lotka_volterra, robertson

TITLE = "Choosing a solver: non-stiff vs stiff"


def run(config: dict, output_dir: str) -> dict:
    settings = lesson_config(config, "choosing_solvers")
    explicit_maxiters = settings.get('explicit-maxiters', 2000)

    # non-stiff: explicit Runge-Kutta methods do the job with few evaluations
    non_stiff = compare_stats(lotka_volterra(), ["Tsit5", "Vern7", "LSODA"], rtol=1e-6, atol=1e-9)

    # stiff: the explicit method runs out of iterations, implicit ones sail through
    explicit = compare_stats(robertson(), ["RK45"], rtol=1e-6, atol=1e-10, maxiters=explicit_maxiters)
    implicit = compare_stats(robertson(), ["Rodas5", "FBDF", "LSODA"], rtol=1e-6, atol=1e-10)
    stiff = pd.concat([explicit, implicit], ignore_index=True)
    return {'non_stiff': non_stiff, 'stiff': stiff}


if __name__ == '__main__':
    from ode_workshop.lessons import main

    main("choosing_solvers")
