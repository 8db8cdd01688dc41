import numpy as np
import pytest

from ode_workshop import solve, init, Algorithm, ReturnCode, PresetTimeCallback, get_algorithm, choose_algorithm
from ode_workshop.models import (exponential_decay, exponential_decay_exact, linear_system, linear_system_exact,
                                 robertson, robertson_dae, lotka_volterra, brusselator_2d, van_der_pol)


class TestAlgorithmRegistry:
    @pytest.mark.parametrize("name, expected", [
        ("RK45", Algorithm.RK45),
        ("rk45", Algorithm.RK45),
        ("radau", Algorithm.RADAU),
        ("Tsit5", Algorithm.RK45),
        ("Vern9", Algorithm.DOP853),
        ("Rodas5", Algorithm.RADAU),
        ("FBDF", Algorithm.BDF),
        ("AutoTsit5", Algorithm.LSODA),
        (Algorithm.BDF, Algorithm.BDF),
    ])
    def test_get_algorithm(self, name, expected):
        assert get_algorithm(name) is expected

    def test_unknown_algorithm(self):
        with pytest.raises(ValueError):
            get_algorithm("Euler9000")

    def test_solver_class(self):
        import scipy.integrate
        assert Algorithm.DOP853.solver_class is scipy.integrate.DOP853
        assert Algorithm.BDF.is_implicit
        assert not Algorithm.LSODA.is_implicit
        assert Algorithm.LSODA.handles_stiffness

    def test_choose_algorithm(self):
        assert choose_algorithm(lotka_volterra()) is Algorithm.LSODA
        assert choose_algorithm(lotka_volterra(), stiff=False) is Algorithm.RK45
        assert choose_algorithm(lotka_volterra(), rtol=1e-10) is Algorithm.DOP853
        assert choose_algorithm(robertson(), stiff=True) is Algorithm.RADAU
        assert choose_algorithm(brusselator_2d(N=4), stiff=True) is Algorithm.BDF
        assert choose_algorithm(robertson_dae()) is Algorithm.RADAU


class TestSolve:
    @pytest.mark.parametrize("alg", ["RK23", "RK45", "DOP853", "Radau", "BDF", "LSODA"])
    def test_accuracy(self, alg):
        sol = solve(exponential_decay(), alg, rtol=1e-8, atol=1e-10)
        assert sol.retcode is ReturnCode.SUCCESS
        assert sol.successful
        assert sol.t[0] == 0.0
        assert sol.t[-1] == 1.0
        assert abs(sol.final[0] - exponential_decay_exact(1.0)) < 1e-5

    def test_default_algorithm(self):
        sol = solve(lotka_volterra())
        assert sol.alg == "LSODA"
        assert sol.successful

    def test_stats(self):
        sol = solve(lotka_volterra(), "Tsit5")
        assert sol.stats.nf > 0
        assert sol.stats.naccept == len(sol.t) - 1
        assert sol.stats.njev == 0

    def test_implicit_stats(self):
        sol = solve(van_der_pol(mu=100.0), "Radau")
        assert sol.successful
        assert sol.stats.njev > 0
        assert sol.stats.nlu > 0

    def test_saveat_spacing(self):
        sol = solve(exponential_decay(), "Tsit5", saveat=0.1)
        np.testing.assert_allclose(sol.t, np.linspace(0.0, 1.0, 11))
        np.testing.assert_allclose(sol.u[:, 0], exponential_decay_exact(sol.t), atol=1e-3)

    def test_saveat_list(self):
        sol = solve(exponential_decay(), "Tsit5", saveat=[0.75, 0.25, 0.5])
        np.testing.assert_allclose(sol.t, [0.25, 0.5, 0.75])
        assert sol.u.shape == (3, 1)

    def test_saveat_outside_tspan(self):
        with pytest.raises(ValueError):
            solve(exponential_decay(), "Tsit5", saveat=[0.5, 2.0])

    def test_save_everystep_false(self):
        sol = solve(exponential_decay(), "Tsit5", save_everystep=False)
        np.testing.assert_allclose(sol.t, [0.0, 1.0])

    def test_dense_interpolation(self):
        sol = solve(exponential_decay(), "DOP853", rtol=1e-10, atol=1e-12)
        ts = np.linspace(0.0, 1.0, 7)
        np.testing.assert_allclose(sol(ts)[:, 0], exponential_decay_exact(ts), atol=1e-8)
        assert sol(0.3).shape == (1,)

    def test_interpolation_outside_span(self):
        sol = solve(exponential_decay(), "Tsit5")
        with pytest.raises(ValueError):
            sol(1.5)

    def test_no_dense_output(self):
        sol = solve(exponential_decay(), "Tsit5", dense=False)
        assert not sol.dense
        with pytest.raises(ValueError):
            sol(0.5)

    def test_backwards_in_time(self):
        rate = 1.01
        prob = exponential_decay(u0=exponential_decay_exact(1.0, rate=rate), tspan=(1.0, 0.0), rate=rate)
        sol = solve(prob, "DOP853", rtol=1e-10, atol=1e-12)
        assert sol.t[-1] == 0.0
        assert sol.final[0] == pytest.approx(1.0, rel=1e-7)

    def test_tstops(self):
        sol = solve(exponential_decay(), "Tsit5", tstops=[0.123, 0.5])
        assert 0.123 in sol.t
        assert 0.5 in sol.t
        assert sol.stats.nreinit >= 2

    def test_max_iters(self):
        sol = solve(robertson(), "RK45", rtol=1e-6, atol=1e-10, maxiters=50)
        assert sol.retcode is ReturnCode.MAX_ITERS
        assert not sol.successful
        assert sol.t[-1] < 1e5

    def test_dtmax(self):
        sol = solve(exponential_decay(), "Tsit5", dtmax=0.01)
        assert np.max(np.diff(sol.t)) <= 0.01 + 1e-12

    def test_initial_dt(self):
        integrator = init(exponential_decay(), "Tsit5", dt=1e-4)
        integrator.step()
        assert integrator.t == pytest.approx(1e-4)

    def test_progress_bar(self):
        sol = solve(exponential_decay(), "Tsit5", progress=True)
        assert sol.successful

    def test_matrix_exponential(self):
        A = np.array([[1.0, 2.0], [3.0, 4.0]])
        z0 = np.array([0.1, 0.2])
        sol = solve(linear_system(A, z0), "Vern9", rtol=1e-10, atol=1e-12)
        np.testing.assert_allclose(sol.final, linear_system_exact(A, z0, 1.0), rtol=1e-7)

    def test_to_frame(self):
        sol = solve(lotka_volterra(), "Tsit5")
        frame = sol.to_frame(names=["prey", "predator"])
        assert list(frame.columns) == ["t", "prey", "predator"]
        assert len(frame) == len(sol)
        np.testing.assert_allclose(frame["prey"].values, sol.u[:, 0])
        assert list(sol.to_frame().columns) == ["t", "u1", "u2"]

    def test_sparse_jacobian_pattern(self):
        prob = brusselator_2d(N=6, tspan=(0.0, 0.5)).remake(jac=None)
        sol = solve(prob, "BDF", rtol=1e-4, atol=1e-6, save_everystep=False)
        assert sol.successful
        assert sol.final.shape == (72,)
        assert np.all(np.isfinite(sol.final))


class TestDAE:
    def test_robertson_dae_matches_ode(self):
        tspan = (0.0, 40.0)
        dae_sol = solve(robertson_dae(tspan=tspan), "Radau", rtol=1e-8, atol=1e-10)
        ode_sol = solve(robertson(tspan=tspan), "Radau", rtol=1e-8, atol=1e-10)
        assert dae_sol.successful
        assert dae_sol.u.shape[1] == 3
        np.testing.assert_allclose(dae_sol.u.sum(axis=1), 1.0, atol=1e-8)
        np.testing.assert_allclose(dae_sol.final, ode_sol.final, rtol=1e-4, atol=1e-8)

    def test_dae_interpolation_is_expanded(self):
        sol = solve(robertson_dae(tspan=(0.0, 1.0)), "Radau", rtol=1e-6, atol=1e-10)
        u = sol(0.5)
        assert u.shape == (3,)
        assert u.sum() == pytest.approx(1.0, abs=1e-8)


class TestIntegrator:
    def test_manual_stepping(self):
        integrator = init(lotka_volterra(), "Tsit5")
        t_before = integrator.t
        u_before = integrator.u.copy()
        integrator.step()
        assert integrator.t > t_before
        assert integrator.tprev == t_before
        np.testing.assert_array_equal(integrator.uprev, u_before)
        assert not np.array_equal(integrator.u, u_before)
        assert integrator.iter == 1
        assert not integrator.done

    def test_iteration_to_the_end(self):
        integrator = init(exponential_decay(), "Tsit5")
        n_steps = sum(1 for _ in integrator)
        assert integrator.done
        assert integrator.retcode is ReturnCode.SUCCESS
        assert n_steps == integrator.iter

    def test_terminate_between_steps(self):
        integrator = init(lotka_volterra(), "Tsit5")
        integrator.step()
        integrator.step()
        integrator.terminate()
        assert integrator.done
        sol = integrator.solution()
        assert sol.retcode is ReturnCode.TERMINATED
        assert sol.t[-1] == integrator.t
        assert len(sol) == 3

    def test_step_after_done(self):
        integrator = init(exponential_decay(), "Tsit5")
        integrator.solve()
        with pytest.raises(AssertionError):
            integrator.step()

    def test_solution_before_done(self):
        integrator = init(exponential_decay(), "Tsit5")
        with pytest.raises(AssertionError):
            integrator.solution()

    def test_add_tstop(self):
        integrator = init(exponential_decay(), "Tsit5")
        integrator.add_tstop(0.77)
        sol = integrator.solve()
        assert 0.77 in sol.t

    def test_set_proposed_dt(self):
        callback = PresetTimeCallback([0.5], lambda integrator: integrator.set_proposed_dt(1e-3))
        sol = solve(exponential_decay(), "Tsit5", callback=callback)
        assert sol.t[sol.t > 0.5][0] == pytest.approx(0.501)

    def test_set_proposed_dt_must_be_positive(self):
        integrator = init(exponential_decay(), "Tsit5")
        with pytest.raises(AssertionError):
            integrator.set_proposed_dt(0.0)

    def test_derivative(self):
        integrator = init(exponential_decay(rate=2.0), "Tsit5")
        np.testing.assert_allclose(integrator.derivative(0.0, np.array([3.0])), [-6.0])
