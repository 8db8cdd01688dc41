from ode_workshop.callbacks import (CallbackSet, ContinuousCallback, DiscreteCallback, PresetTimeCallback,
                                   TerminateSteadyState, clip_negative, terminate_on)
from ode_workshop.problems import ODEProblem, SplitODEProblem, DynamicalODEProblem, ProblemError
from ode_workshop.solution import ODESolution, ReturnCode, SolverStats
from ode_workshop.solvers import Algorithm, Integrator, choose_algorithm, get_algorithm, init, solve

__version__ = "0.1.0"
