import os

from matplotlib import pyplot as plt

from ode_workshop import solve, ContinuousCallback, PresetTimeCallback, terminate_on, CallbackSet
from ode_workshop.config import lesson_config
from ode_workshop.models import bouncing_ball, exponential_decay
from ode_workshop.plotting import plot_solution, save_figure

TITLE = "Callbacks and event handling"


def run(config: dict, output_dir: str) -> dict:
    settings = lesson_config(config, "callbacks")
    restitution = settings.get('restitution', 0.9)

    # continuous callback: the ball hits the floor when the height crosses zero
    def condition(u, t, integrator):
        return u[0]

    def affect(integrator):
        integrator.u[1] = -restitution * integrator.u[1]

    bounce = ContinuousCallback(condition, affect)
    ball = solve(bouncing_ball(), "Tsit5", callback=bounce)

    # discrete callback at preset times: a dose is added at t = 4 and t = 8
    def dose(integrator):
        integrator.u[0] += 10.0

    dosing = solve(exponential_decay(tspan=(0.0, 10.0)), "Tsit5", callback=PresetTimeCallback([4.0, 8.0], dose))

    # callbacks compose, here the solve stops the first time the ball passes 25m
    stop_at_25 = terminate_on(lambda u, t, integrator: u[0] - 25.0)
    stopped = solve(bouncing_ball(), "Tsit5", callback=CallbackSet(bounce, stop_at_25))

    fig, axes = plt.subplots(1, 2, figsize=(10, 4))
    plot_solution(ball, ax=axes[0], names=["height", "velocity"])
    plot_solution(dosing, ax=axes[1], names=["concentration"])
    figure = save_figure(fig, os.path.join(output_dir, "callbacks.png"))
    return {'bounces': [t for t, _ in ball.events], 'min_height': ball.u[:, 0].min(),
            'dose_times': [t for t, _ in dosing.events], 'stopped_at': stopped.t[-1],
            'stopped_retcode': stopped.retcode.value, 'figure': figure}


if __name__ == '__main__':
    from ode_workshop.lessons import main

    main("callbacks")
