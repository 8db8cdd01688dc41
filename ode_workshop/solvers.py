"""
Algorithm registry and the stepping loop over scipy's OdeSolver classes.

The integration itself is always done by scipy.integrate (RK23, RK45, DOP853, Radau, BDF, LSODA).
The Integrator only drives solver.step(), consults callbacks, honours tstops / saveat and
re-initialises the scipy solver whenever a callback changed the state.

https://docs.scipy.org/doc/scipy/reference/integrate.html#solving-initial-value-problems-for-ode-systems
https://docs.sciml.ai/DiffEqDocs/stable/basics/integrator/
"""
import logging
from enum import Enum
from typing import Iterable, Union

import numpy as np
import scipy.integrate
from scipy.integrate import OdeSolution
from tqdm import tqdm

from ode_workshop.callbacks import CallbackSet
from ode_workshop.problems import ODEProblem, MassMatrixReduction
from ode_workshop.solution import ODESolution, ReturnCode, SolverStats

logger = logging.getLogger(__name__)


class Algorithm(Enum):
    RK23 = "RK23"
    RK45 = "RK45"
    DOP853 = "DOP853"
    RADAU = "Radau"
    BDF = "BDF"
    LSODA = "LSODA"

    @property
    def solver_class(self):
        return getattr(scipy.integrate, self.value)

    @property
    def is_implicit(self) -> bool:
        return self in (Algorithm.RADAU, Algorithm.BDF)

    @property
    def handles_stiffness(self) -> bool:
        return self in (Algorithm.RADAU, Algorithm.BDF, Algorithm.LSODA)


# names attendees know from the Julia ecosystem, mapped to the closest scipy method
ALGORITHM_ALIASES = {
    'bs3': Algorithm.RK23,
    'tsit5': Algorithm.RK45,
    'dp5': Algorithm.RK45,
    'vern7': Algorithm.DOP853,
    'vern9': Algorithm.DOP853,
    'dp8': Algorithm.DOP853,
    'rodas5': Algorithm.RADAU,
    'radauiia5': Algorithm.RADAU,
    'kencarp4': Algorithm.RADAU,
    'qndf': Algorithm.BDF,
    'fbdf': Algorithm.BDF,
    'cvode_bdf': Algorithm.BDF,
    'autotsit5': Algorithm.LSODA,
    'autovern7': Algorithm.LSODA,
}


def get_algorithm(name: Union[str, Algorithm]) -> Algorithm:
    if isinstance(name, Algorithm):
        return name
    key = str(name).strip().lower()
    for alg in Algorithm:
        if alg.value.lower() == key or alg.name.lower() == key:
            return alg
    alg = ALGORITHM_ALIASES.get(key, None)
    if alg is None:
        raise ValueError(f"Unknown algorithm {name}")
    return alg


def choose_algorithm(problem: ODEProblem, rtol: float = 1e-3, stiff: bool = None) -> Algorithm:
    """
    Default algorithm choice
        - DAEs and problems declared stiff go to implicit methods, BDF when a sparsity pattern is known
        - tight tolerances favour the high order DOP853
        - unknown stiffness goes to LSODA, which switches between Adams and BDF on its own
    """
    if problem.is_dae or stiff:
        return Algorithm.BDF if problem.jac_sparsity is not None else Algorithm.RADAU
    if rtol <= 1e-8:
        return Algorithm.DOP853
    if stiff is None:
        return Algorithm.LSODA
    return Algorithm.RK45


def _saveat_times(saveat, tspan) -> np.ndarray:
    t0, tf = tspan
    direction = np.sign(tf - t0)
    if saveat is None:
        return np.array([])
    if np.isscalar(saveat):
        assert saveat > 0, f"saveat spacing must be > 0, got {saveat}"
        times = np.arange(t0, tf, direction * saveat)
        if not np.isclose(times[-1], tf):
            times = np.append(times, tf)
        else:
            times[-1] = tf
        return times
    times = np.asarray(sorted(saveat, key=lambda t: direction * t), dtype=np.float64)
    lo, hi = min(t0, tf), max(t0, tf)
    if np.any(times < lo) or np.any(times > hi):
        raise ValueError(f"saveat times must lie inside tspan {tspan}")
    return times


class Integrator:
    """
    Step-by-step handle on a solve. Callbacks receive it and may read t, u, p, tprev, uprev,
    change u (in place or via set_u), call terminate() or set_proposed_dt().
    """

    def __init__(self, problem: ODEProblem, alg: Union[str, Algorithm] = None, rtol: float = 1e-3,
                 atol: float = 1e-6, saveat=None, save_everystep: bool = None, dense: bool = True,
                 callback=None, tstops: Iterable[float] = (), dt: float = None, dtmax: float = np.inf,
                 maxiters: int = 100000, stiff: bool = None):
        self.original_problem = problem
        self.reduction = None
        if problem.is_dae:
            self.reduction = MassMatrixReduction(problem)
            problem = self.reduction.reduced_problem()
        self.problem = problem
        if alg is None or (isinstance(alg, str) and alg.lower() == "auto"):
            alg = choose_algorithm(self.original_problem, rtol=rtol, stiff=stiff)
        self.alg = get_algorithm(alg)
        self.rtol = rtol
        self.atol = atol
        self.dtmax = dtmax
        self.maxiters = maxiters
        self.callbacks = CallbackSet(callback)
        self.p = problem.p
        self.fun = problem.rhs()
        self.t0, self.tf = problem.tspan
        self.direction = np.sign(self.tf - self.t0)
        self.t = self.t0
        self.u = problem.u0.copy()
        self.tprev = self.t0
        self.uprev = self.u.copy()
        self.dt = dt
        self._proposed_dt = dt
        self.iter = 0
        self.u_modified = False
        self.done = False
        self.retcode = None
        self.message = ""
        self.stats = SolverStats()
        self.events = []
        self._terminated = False
        self._in_step = False
        self._last_fired = None
        # saving
        self.saveat = _saveat_times(saveat, problem.tspan)
        self._saveat_index = 0
        self.save_everystep = (len(self.saveat) == 0) if save_everystep is None else save_everystep
        self.dense = dense
        self.ts = []
        self.us = []
        self._seg_ts = [self.t0]
        self._interpolants = []
        # tstops
        stops = list(tstops) + self.callbacks.tstops
        self.tstops = sorted({float(t) for t in stops if self._strictly_inside(float(t))},
                             key=lambda t: self.direction * t)
        if self.save_everystep or len(self.saveat) == 0:
            self._save(self.t, self.u)
        self._save_saveat_point_at_start()
        self._solver = None
        self._apply_initial_callbacks()
        if not self.done:
            self._reinit()

    def __repr__(self):
        return f"Integrator(alg={self.alg.value}, t={self.t}, iter={self.iter}, done={self.done})"

    def __iter__(self):
        while not self.done:
            self.step()
            yield self

    # user facing controls

    def terminate(self):
        self._terminated = True
        if not self._in_step and not self.done:
            self._finish(ReturnCode.TERMINATED, "terminated by user")

    def set_u(self, u):
        self.u = np.asarray(u, dtype=np.float64).copy()
        self.u_modified = True

    def set_proposed_dt(self, dt: float):
        assert dt > 0, f"dt must be > 0, got {dt}"
        self._proposed_dt = dt
        self.u_modified = True

    def add_tstop(self, t: float):
        if self._strictly_inside(t) and self.direction * (t - self.t) > 0:
            self.tstops = sorted(set(self.tstops) | {float(t)}, key=lambda s: self.direction * s)
            self._reinit()

    def derivative(self, t: float, u: np.ndarray) -> np.ndarray:
        return self.fun(t, u)

    # stepping

    def _strictly_inside(self, t: float) -> bool:
        return self.direction * (t - self.t0) > 0 and self.direction * (self.tf - t) > 0

    def _next_bound(self) -> float:
        for stop in self.tstops:
            if self.direction * (stop - self.t) > 0:
                return stop
        return self.tf

    def _reinit(self):
        if self._solver is not None:
            self.stats.add_solver(self._solver)
            self.stats.nreinit += 1
        t_bound = self._next_bound()
        kwargs = {'rtol': self.rtol, 'atol': self.atol, 'max_step': self.dtmax}
        if self._proposed_dt is not None:
            kwargs['first_step'] = min(self._proposed_dt, abs(t_bound - self.t))
        if self.alg.is_implicit:
            kwargs['jac'] = self.problem.jacobian()
            kwargs['jac_sparsity'] = self.problem.jac_sparsity
        elif self.alg == Algorithm.LSODA and self.problem.jac is not None:
            kwargs['jac'] = self.problem.jacobian()
        self._solver = self.alg.solver_class(self.fun, self.t, self.u.copy(), t_bound, **kwargs)
        self._proposed_dt = None
        self.u_modified = False

    def _save(self, t: float, u: np.ndarray):
        self.ts.append(float(t))
        self.us.append(np.array(u, dtype=np.float64))

    def _save_saveat_point_at_start(self):
        while self._saveat_index < len(self.saveat) and self.saveat[self._saveat_index] == self.t0:
            if not self.save_everystep_duplicate(self.t0, self.u):
                self._save(self.t0, self.u)
            self._saveat_index += 1

    def _record_segment(self, t_left: float, t_right: float, interpolant):
        if self.dense and t_right != t_left:
            self._seg_ts.append(t_right)
            self._interpolants.append(interpolant)
        while self._saveat_index < len(self.saveat):
            ts = self.saveat[self._saveat_index]
            if self.direction * (ts - t_right) > 0:
                break
            self._save(ts, interpolant(ts) if ts != t_right else self._solver_state_at(t_right, interpolant))
            self._saveat_index += 1

    def _solver_state_at(self, t, interpolant):
        if t == self._solver.t:
            return self._solver.y
        return interpolant(t)

    def _find_event(self, interpolant, t_left, t_right):
        earliest = None
        for callback in self.callbacks.continuous:
            skip_left = (self._last_fired is not None and self._last_fired[0] is callback
                         and self._last_fired[1] == t_left) or t_left == self.t0
            found = callback.find_crossing(interpolant, t_left, t_right, self, skip_left=skip_left)
            if found is None:
                continue
            t_event, upcrossing = found
            if earliest is None or self.direction * (t_event - earliest[0]) < 0:
                earliest = (t_event, callback, upcrossing)
        return earliest

    def _apply(self, callback, affect, t):
        u_before = self.u.copy()
        if callback.save_positions[0] and not self.save_everystep_duplicate(t, u_before):
            self._save(t, u_before)
        affect(self)
        self.events.append((float(t), self.callbacks.index(callback)))
        if not np.array_equal(u_before, self.u):
            self.u_modified = True
        if callback.save_positions[1]:
            self._save(t, self.u)

    def _apply_initial_callbacks(self):
        # discrete callbacks with a stop at t0 fire before the first step, e.g. a dose at t = 0
        for callback in self.callbacks.discrete:
            if self._terminated:
                break
            at_start = any(np.isclose(stop, self.t0, rtol=0.0, atol=1e-12 * max(1.0, abs(stop)))
                           for stop in callback.tstops)
            if at_start and callback.condition(self.u, self.t, self):
                self._apply(callback, callback.affect, self.t)

    def save_everystep_duplicate(self, t, u) -> bool:
        return len(self.ts) > 0 and self.ts[-1] == t and np.array_equal(self.us[-1], u)

    def step(self):
        assert not self.done, "integration already finished"
        self._in_step = True
        try:
            self._step()
        finally:
            self._in_step = False

    def _step(self):
        if self.iter >= self.maxiters:
            self._finish(ReturnCode.MAX_ITERS, f"maximum number of iterations {self.maxiters} reached")
            return
        message = self._solver.step()
        if self._solver.status == 'failed':
            self._finish(ReturnCode.FAILURE, message or "step failed")
            return
        self.iter += 1
        self.stats.naccept += 1
        self.tprev, self.uprev = self.t, self.u.copy()
        t_new = self._solver.t
        self.dt = abs(t_new - self.tprev)
        interpolant = self._solver.dense_output()
        event = self._find_event(interpolant, self.tprev, t_new) if len(self.callbacks.continuous) > 0 else None
        rewound = False
        save_step = False
        if event is not None:
            t_event, callback, upcrossing = event
            self._record_segment(self.tprev, t_event, interpolant)
            self.t = t_event
            self.u = np.array(self._solver_state_at(t_event, interpolant), dtype=np.float64)
            logger.debug(f"{callback} fired at t = {t_event}")
            self._apply(callback, callback.affect_for(upcrossing), t_event)
            self._last_fired = (callback, t_event)
            rewound = t_event != t_new
        else:
            self._record_segment(self.tprev, t_new, interpolant)
            self.t = t_new
            self.u = self._solver.y.copy()
            save_step = self.save_everystep
        for callback in self.callbacks.discrete:
            if self._terminated:
                break
            if callback.condition(self.u, self.t, self):
                self._apply(callback, callback.affect, self.t)
        if save_step and not self.save_everystep_duplicate(self.t, self.u):
            self._save(self.t, self.u)
        if self._terminated:
            self._finish(ReturnCode.TERMINATED, "terminated by callback")
            return
        if not rewound and self._solver.status == 'finished' and self.t == self.tf:
            self._finish(ReturnCode.SUCCESS, "reached end of tspan")
            return
        if rewound or self.u_modified or self._solver.status == 'finished':
            self._reinit()

    def _finish(self, retcode: ReturnCode, message: str):
        self.done = True
        self.retcode = retcode
        self.message = message
        if self._solver is not None:
            self.stats.add_solver(self._solver)
            self._solver = None
        if len(self.saveat) == 0 and (len(self.ts) == 0 or self.ts[-1] != self.t):
            self._save(self.t, self.u)
        log = logger.warning if retcode in (ReturnCode.FAILURE, ReturnCode.MAX_ITERS) else logger.debug
        log(f"{self.alg.value} finished with {retcode.value} at t = {self.t} : {message}")

    def solve(self, progress: bool = False) -> ODESolution:
        if progress:
            with tqdm(total=abs(self.tf - self.t0), desc=f"{self.problem.name} ({self.alg.value})") as bar:
                while not self.done:
                    t_before = self.t
                    self.step()
                    bar.update(abs(self.t - t_before))
        else:
            while not self.done:
                self.step()
        return self.solution()

    def solution(self) -> ODESolution:
        assert self.done, "solution is only available once the integration finished"
        interpolation = None
        if self.dense and len(self._interpolants) > 0:
            interpolation = OdeSolution(self._seg_ts, self._interpolants)
        us = self.us
        transform = None
        if self.reduction is not None:
            transform = self.reduction.expand
            us = [transform(t, u) for t, u in zip(self.ts, us)]
        u = np.array(us) if len(us) > 0 else np.empty((0, len(self.original_problem.u0)))
        return ODESolution(t=self.ts, u=u, alg=self.alg.value, retcode=self.retcode, message=self.message,
                           stats=self.stats, events=self.events, interpolation=interpolation,
                           transform=transform, problem=self.original_problem)


def init(problem: ODEProblem, alg: Union[str, Algorithm] = None, **kwargs) -> Integrator:
    return Integrator(problem, alg=alg, **kwargs)


def solve(problem: ODEProblem, alg: Union[str, Algorithm] = None, progress: bool = False, **kwargs) -> ODESolution:
    """
    Solve problem with the scipy method named by alg (None / "auto" picks one).
    kwargs : rtol, atol, saveat, save_everystep, dense, callback, tstops, dt, dtmax, maxiters, stiff
    """
    integrator = init(problem, alg=alg, **kwargs)
    logger.debug(f"solving {problem} with {integrator.alg.value}")
    return integrator.solve(progress=progress)
