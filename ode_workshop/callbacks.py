"""
Callbacks are (condition, affect) pairs consulted by the Integrator after every accepted step.

DiscreteCallback   : condition(u, t, integrator) -> bool, checked at the end of each step
ContinuousCallback : condition(u, t, integrator) -> float, a zero crossing inside a step is
                     located on the solver's dense output and the integrator is rewound there

Root location is scipy's brentq, run on the step interpolant the scipy solver already provides.
https://docs.scipy.org/doc/scipy/reference/generated/scipy.optimize.brentq.html
"""
import logging
from typing import Callable, Iterable, List, Tuple

import numpy as np
from scipy.optimize import brentq

logger = logging.getLogger(__name__)


def _same_affect():
    pass


class DiscreteCallback:
    def __init__(self, condition: Callable, affect: Callable, save_positions: Tuple[bool, bool] = (True, True),
                 tstops: Iterable[float] = ()):
        self.condition = condition
        self.affect = affect
        self.save_positions = tuple(save_positions)
        assert len(self.save_positions) == 2, f"save_positions must be (before, after), got {save_positions}"
        self.tstops = sorted(float(t) for t in tstops)

    def __repr__(self):
        return f"DiscreteCallback(condition={getattr(self.condition, '__name__', self.condition)})"


class ContinuousCallback:
    def __init__(self, condition: Callable, affect: Callable, affect_neg=_same_affect, rootfind: bool = True,
                 interp_points: int = 10, save_positions: Tuple[bool, bool] = (True, True), abstol: float = 1e-12):
        """
        affect      : applied on an upcrossing (condition goes - to +), None ignores upcrossings
        affect_neg  : applied on a downcrossing, defaults to affect, None ignores downcrossings
        rootfind    : when False the event is placed at the end of the step that bracketed it
        """
        assert interp_points >= 1, f"interp_points must be >= 1, got {interp_points}"
        self.condition = condition
        self.affect = affect
        self.affect_neg = affect if affect_neg is _same_affect else affect_neg
        self.rootfind = rootfind
        self.interp_points = interp_points
        self.save_positions = tuple(save_positions)
        assert len(self.save_positions) == 2, f"save_positions must be (before, after), got {save_positions}"
        self.abstol = abstol

    def __repr__(self):
        return f"ContinuousCallback(condition={getattr(self.condition, '__name__', self.condition)})"

    def affect_for(self, upcrossing: bool):
        return self.affect if upcrossing else self.affect_neg

    def find_crossing(self, interpolant: Callable, t_left: float, t_right: float, integrator,
                      skip_left: bool = False):
        """
        Scan [t_left, t_right] for the first sign change of condition that has an affect attached.
        Returns (t_event, upcrossing) or None.
        skip_left drops the left end point from the scan, used right after this callback fired
        so the event it just handled is not found again.
        """

        def g(t):
            return float(self.condition(interpolant(t), t, integrator))

        samples = np.linspace(t_left, t_right, self.interp_points + 1)
        if skip_left:
            samples = samples[1:]
        values = [g(t) for t in samples]
        for i in range(1, len(samples)):
            g_a, g_b = values[i - 1], values[i]
            if g_a == 0.0:
                # a root exactly on a sample point is reported by the interval ending there
                continue
            if g_b == 0.0 or g_a * g_b < 0.0:
                upcrossing = g_a < 0.0
                if self.affect_for(upcrossing) is None:
                    continue
                if g_b == 0.0 or not self.rootfind:
                    return samples[i], upcrossing
                t_event = brentq(g, samples[i - 1], samples[i], xtol=self.abstol)
                return t_event, upcrossing
        return None


class CallbackSet:
    def __init__(self, *callbacks):
        self.callbacks = []
        for callback in callbacks:
            if callback is None:
                continue
            if isinstance(callback, CallbackSet):
                self.callbacks.extend(callback.callbacks)
            elif isinstance(callback, (list, tuple)):
                self.callbacks.extend(CallbackSet(*callback).callbacks)
            elif isinstance(callback, (DiscreteCallback, ContinuousCallback)):
                self.callbacks.append(callback)
            else:
                raise ValueError(f"Unsupported callback type {type(callback)}")

    def __len__(self):
        return len(self.callbacks)

    def __iter__(self):
        return iter(self.callbacks)

    @property
    def discrete(self) -> List[DiscreteCallback]:
        return [cb for cb in self.callbacks if isinstance(cb, DiscreteCallback)]

    @property
    def continuous(self) -> List[ContinuousCallback]:
        return [cb for cb in self.callbacks if isinstance(cb, ContinuousCallback)]

    @property
    def tstops(self) -> List[float]:
        stops = []
        for cb in self.discrete:
            stops.extend(cb.tstops)
        return sorted(set(stops))

    def index(self, callback) -> int:
        for i, cb in enumerate(self.callbacks):
            if cb is callback:
                return i
        raise ValueError(f"{callback} is not part of this callback set")


# library callbacks

def PresetTimeCallback(times: Iterable[float], affect: Callable, save_positions=(True, True)) -> DiscreteCallback:
    """Apply affect exactly at the given times, the integrator is forced to stop on them."""
    times = sorted(float(t) for t in times)

    def condition(u, t, integrator):
        return any(np.isclose(t, tc, rtol=0.0, atol=1e-12 * max(1.0, abs(tc))) for tc in times)

    return DiscreteCallback(condition=condition, affect=affect, save_positions=save_positions, tstops=times)


def TerminateSteadyState(abstol: float = 1e-8, reltol: float = 1e-6) -> DiscreteCallback:
    """Terminate once |du/dt| is below abstol + reltol * |u| in every component."""

    def condition(u, t, integrator):
        du = integrator.derivative(t, u)
        return bool(np.all(np.abs(du) <= abstol + reltol * np.abs(u)))

    def affect(integrator):
        logger.info(f"steady state reached at t = {integrator.t}")
        integrator.terminate()

    return DiscreteCallback(condition=condition, affect=affect, save_positions=(False, False))


def terminate_on(condition: Callable, save_positions=(True, False)) -> ContinuousCallback:
    """Stop the integration at the first zero of condition, in either direction."""

    def affect(integrator):
        integrator.terminate()

    return ContinuousCallback(condition=condition, affect=affect, save_positions=save_positions)


def clip_negative(indices: Iterable[int] = None) -> DiscreteCallback:
    """Keep selected state components non-negative, e.g. concentrations or populations."""

    def condition(u, t, integrator):
        selected = u if indices is None else u[list(indices)]
        return bool(np.any(selected < 0.0))

    def affect(integrator):
        if indices is None:
            integrator.u[integrator.u < 0.0] = 0.0
        else:
            for i in indices:
                integrator.u[i] = max(integrator.u[i], 0.0)

    return DiscreteCallback(condition=condition, affect=affect, save_positions=(False, False))
