import os

from matplotlib import pyplot as plt

from ode_workshop import solve
from ode_workshop.config import lesson_config
from ode_workshop.krylov import count_inner_iterations, implicit_euler_step_krylov
from ode_workshop.models import brusselator_2d, grid_shape
from ode_workshop.plotting import save_figure

TITLE = "PDEs: sparse Jacobians and preconditioned Krylov"


def run(config: dict, output_dir: str) -> dict:
    settings = lesson_config(config, "pde_sparse")
    prob = brusselator_2d(N=settings.get('N', 16), tspan=tuple(settings.get('tspan', (0.0, 11.5))))

    # finite difference Jacobian, but only the nonzeros of the sparsity pattern are probed
    colored = prob.remake(jac=None)
    # the forcing switches on at t = 1.1, stop there so no step straddles the jump
    sol = solve(colored, "FBDF", rtol=1e-4, atol=1e-6, tstops=[1.1], save_everystep=False)

    # one big implicit step, Newton-Krylov with and without an ILU preconditioner
    u0, t0, dt = prob.u0, prob.tspan[0], settings.get('dt', 0.1)
    gmres_plain = count_inner_iterations(prob, u0, t0, dt, precondition=False)
    gmres_ilu = count_inner_iterations(prob, u0, t0, dt, precondition=True)
    _, newton_iterations = implicit_euler_step_krylov(prob, u0, t0, dt, precondition=True)

    N, _ = grid_shape(prob)
    fig, ax = plt.subplots()
    image = ax.imshow(sol.final[:N * N].reshape(N, N), origin="lower", extent=(0, 1, 0, 1))
    fig.colorbar(image, ax=ax)
    ax.set_title(f"u at t = {sol.t[-1]}")
    figure = save_figure(fig, os.path.join(output_dir, "brusselator.png"))
    return {'retcode': sol.retcode.value, 'stats': sol.stats.as_dict(), 'gmres_plain': gmres_plain,
            'gmres_ilu': gmres_ilu, 'newton_iterations': newton_iterations, 'figure': figure}


if __name__ == '__main__':
    from ode_workshop.lessons import main

    main("pde_sparse")
