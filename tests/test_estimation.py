import numpy as np
import pytest
import torch

from ode_workshop import solve
from ode_workshop.estimation import (fit_parameters, get_tensor_dtype, NeuralODEFunc, train_neural_ode,
                                     predict_neural_ode)
from ode_workshop.models import lotka_volterra, exponential_decay, LOTKA_VOLTERRA_PARAMS
from ode_workshop.utils import set_seed


def test_fit_lotka_volterra_from_clean_data():
    prob = lotka_volterra()
    data_t = np.linspace(0.0, 10.0, 41)
    data_u = solve(prob, "DOP853", saveat=data_t, rtol=1e-10, atol=1e-10).u
    result = fit_parameters(prob, data_t, data_u, p0=[1.3, 0.9, 2.8, 0.9], alg="DOP853", bounds=(0.0, 10.0),
                            rtol=1e-8, atol=1e-10)
    assert result.success
    np.testing.assert_allclose(result.p, LOTKA_VOLTERRA_PARAMS, rtol=1e-2)
    assert result.cost < 1e-4


def test_fit_decay_rate():
    prob = exponential_decay(tspan=(0.0, 2.0), rate=0.5)
    data_t = np.linspace(0.0, 2.0, 11)
    data_u = np.exp(-0.5 * data_t)[:, None]
    result = fit_parameters(prob, data_t, data_u, p0=[2.0])
    assert result.p[0] == pytest.approx(0.5, rel=1e-3)
    assert result.nfev > 0


def test_fit_checks_data_shape():
    prob = lotka_volterra()
    with pytest.raises(AssertionError):
        fit_parameters(prob, [0.0, 1.0], np.zeros((2, 3)), p0=LOTKA_VOLTERRA_PARAMS)


@pytest.mark.parametrize("name, dtype", [("torch.float32", torch.float32), ("torch.float64", torch.float64)])
def test_get_tensor_dtype(name, dtype):
    assert get_tensor_dtype(name) is dtype


def test_get_tensor_dtype_unknown():
    with pytest.raises(ValueError):
        get_tensor_dtype("torch.int8")


def test_neural_ode_func_shapes():
    func = NeuralODEFunc(state_dim=2, hidden_dim=8)
    out = func(torch.tensor(0.5), torch.zeros(5, 2))
    assert out.shape == (5, 2)
    assert func.nfe == 1
    assert func.num_learnable_scalars() == (3 * 8 + 8) + (8 * 2 + 2)


def test_train_and_predict():
    set_seed(0)
    t = np.linspace(0.0, 1.0, 11)
    data = np.stack([np.exp(-t), np.exp(-2 * t)], axis=1)
    config = {'hidden-dim': 8, 'epochs': 5, 'lr': 0.01, 'dtype': 'torch.float64'}
    func, losses = train_neural_ode(t, data, config)
    assert list(losses.columns) == ["epoch", "loss"]
    assert losses["epoch"].iloc[-1] == 4
    assert np.all(np.isfinite(losses["loss"]))
    assert func.nfe > 0
    prediction = predict_neural_ode(func, data[0], t)
    assert prediction.shape == (11, 2)
    np.testing.assert_allclose(prediction[0], data[0])
