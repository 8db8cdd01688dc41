import numpy as np
import pytest

from ode_workshop.benchmarks import work_precision, compare_stats, reference_solution
from ode_workshop.models import exponential_decay, exponential_decay_exact, robertson


def test_reference_solution_is_accurate():
    final = reference_solution(exponential_decay())
    assert final[0] == pytest.approx(exponential_decay_exact(1.0), rel=1e-11)


def test_work_precision_frame():
    tolerances = [1e-3, 1e-6, 1e-9]
    frame = work_precision(exponential_decay(), ["RK45", "DOP853"], tolerances, progress=False)
    assert list(frame.columns) == ["alg", "rtol", "atol", "error", "time", "nf", "retcode"]
    assert len(frame) == 6
    assert set(frame["alg"]) == {"RK45", "DOP853"}
    np.testing.assert_allclose(frame["atol"], frame["rtol"] * 1e-3)
    assert (frame["retcode"] == "Success").all()
    assert (frame["time"] > 0).all()
    for _, group in frame.groupby("alg"):
        group = group.sort_values("rtol", ascending=False)
        assert group["error"].iloc[-1] < group["error"].iloc[0]
        assert group["nf"].iloc[-1] > group["nf"].iloc[0]


def test_work_precision_with_reference():
    reference = np.array([exponential_decay_exact(1.0)])
    frame = work_precision(exponential_decay(), ["Tsit5"], [1e-8], reference=reference, reps=2, progress=False)
    assert frame["error"].iloc[0] < 1e-6


def test_compare_stats():
    frame = compare_stats(robertson(tspan=(0.0, 10.0)), ["Radau", "BDF", "LSODA"], rtol=1e-6, atol=1e-10)
    assert list(frame["alg"]) == ["Radau", "BDF", "LSODA"]
    assert {"retcode", "time", "nf", "njev", "nlu", "naccept", "nreinit"} <= set(frame.columns)
    assert (frame["retcode"] == "Success").all()
    assert (frame.loc[frame["alg"] != "LSODA", "nlu"] > 0).all()
