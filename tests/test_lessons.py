import os

import numpy as np
import pandas as pd
import pytest

from ode_workshop.lessons import LESSONS, get_lesson, run_lesson


def test_every_lesson_has_title_and_run():
    for name in LESSONS:
        lesson = get_lesson(name)
        assert isinstance(lesson.TITLE, str) and len(lesson.TITLE) > 0
        assert callable(lesson.run)


def test_unknown_lesson():
    with pytest.raises(ValueError):
        get_lesson("quantum_chromodynamics")


def test_intro(config, output_dir):
    results = run_lesson("intro", config, output_dir)
    assert results['alg'] == "LSODA"
    assert results['solution'].successful
    assert os.path.exists(results['figure'])


def test_choosing_solvers(config, output_dir):
    results = run_lesson("choosing_solvers", config, output_dir)
    assert (results['non_stiff']['retcode'] == "Success").all()
    stiff = results['stiff'].set_index("alg")
    assert stiff.loc["RK45", "retcode"] == "MaxIters"
    assert (stiff.drop("RK45")["retcode"] == "Success").all()


def test_tolerances(config, output_dir):
    results = run_lesson("tolerances", config, output_dir)
    accuracy = results['accuracy']
    assert accuracy['error'].iloc[-1] < accuracy['error'].iloc[0]
    assert results['saveat_grid_ok']
    assert results['dense_error'] < 1e-3


def test_callbacks(config, output_dir):
    results = run_lesson("callbacks", config, output_dir)
    assert len(results['bounces']) == 3
    assert results['bounces'][0] == pytest.approx(np.sqrt(100.0 / 9.8), rel=1e-6)
    assert results['min_height'] > -1e-6
    assert results['dose_times'] == [4.0, 8.0]
    assert results['stopped_at'] == pytest.approx(np.sqrt(50.0 / 9.8), rel=1e-6)
    assert results['stopped_retcode'] == "Terminated"


def test_integrator_interface(config, output_dir):
    results = run_lesson("integrator_interface", config, output_dir)
    assert results['first_steps'] == 5
    steps = results['steps']
    assert isinstance(steps, pd.DataFrame)
    assert results['retcode'] == "Terminated"
    assert steps['prey'].iloc[-1] > 4.0
    assert (steps['prey'].iloc[:-1] <= 4.0).all()


def test_stiff_dae(config, output_dir):
    results = run_lesson("stiff_dae", config, output_dir)
    assert results['max_constraint_violation'] < 1e-8
    np.testing.assert_allclose(results['dae_final'], results['ode_final'], rtol=1e-3, atol=1e-7)


def test_pde_sparse(config, output_dir):
    results = run_lesson("pde_sparse", config, output_dir)
    assert results['retcode'] == "Success"
    assert results['stats']['nreinit'] >= 1
    assert results['gmres_ilu'] <= results['gmres_plain']
    assert results['newton_iterations'] >= 1


def test_imex(config, output_dir):
    results = run_lesson("imex", config, output_dir)
    stats = results['stats']
    assert results['stiffness'] > 100.0
    assert list(stats["alg"]) == ["Radau", "RK45"]
    assert (stats["retcode"] == "Success").all()
    assert 0.0 < results['u_final_mean'] < 1.0


def test_symplectic(config, output_dir):
    results = run_lesson("symplectic", config, output_dir)
    assert results['drift_tight'] < results['drift_loose']
    assert results['drift_projected'] < 1e-10


def test_matrix_exponential(config, output_dir):
    results = run_lesson("matrix_exponential", config, output_dir)
    errors = results['errors']
    assert len(errors) == 4
    assert (errors["error"] < 1e-5 * np.linalg.norm(results['zT_expm'])).all()


def test_ensembles(config, output_dir):
    results = run_lesson("ensembles", config, output_dir)
    assert results['trajectories'] == 3
    assert results['successful']
    assert list(results['summary']['t']) == [0.0, 5.0]


def test_parameter_estimation(config, output_dir):
    results = run_lesson("parameter_estimation", config, output_dir)
    assert results['fit_success']
    np.testing.assert_allclose(results['p_fit'], results['p_true'], rtol=0.1)
    assert len(results['neural_losses']) == 3
    assert os.path.exists(results['figure'])
