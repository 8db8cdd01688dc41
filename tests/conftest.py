import matplotlib

matplotlib.use("Agg")

import pytest

from ode_workshop.config import load_config


@pytest.fixture
def config():
    """Packaged config shrunk so every lesson runs in a few seconds."""
    config = load_config()
    config['lessons'].update({
        'stiff_dae': {'tspan': [0.0, 40.0]},
        'pde_sparse': {'N': 8, 'tspan': [0.0, 2.0]},
        'ensembles': {'trajectories': 3, 'tspan': [0.0, 5.0]},
        'imex': {'N': 32},
        'symplectic': {'tspan': [0.0, 20.0]},
    })
    config['neural'].update({'epochs': 3, 'hidden-dim': 8})
    return config


@pytest.fixture
def output_dir(tmp_path):
    return str(tmp_path / "figures")
