"""
Fitting models to data.

fit_parameters : classic parameter estimation, scipy.optimize.least_squares around solve()
NeuralODEFunc  : MLP right-hand side trained through torchdiffeq.odeint

https://docs.scipy.org/doc/scipy/reference/generated/scipy.optimize.least_squares.html
https://github.com/rtqichen/torchdiffeq/blob/master/examples/ode_demo.py
"""
import logging
from dataclasses import dataclass
from typing import Tuple

import numpy as np
import pandas as pd
import torch
from scipy.optimize import least_squares
from torch.nn import MSELoss
from torchdiffeq import odeint
from tqdm import tqdm

from ode_workshop.problems import ODEProblem
from ode_workshop.solvers import solve

logger = logging.getLogger(__name__)


@dataclass
class FitResult:
    p: np.ndarray
    cost: float
    nfev: int
    success: bool
    message: str = ""


def fit_parameters(problem: ODEProblem, data_t: np.ndarray, data_u: np.ndarray, p0, alg=None, bounds=None,
                   failure_residual: float = 1e3, **solve_kwargs) -> FitResult:
    """
    Least squares fit of the problem parameters to observations data_u (len(data_t) x n).
    A failed solve gives a large constant residual so the optimizer backs off.
    """
    data_t = np.asarray(data_t, dtype=np.float64)
    data_u = np.asarray(data_u, dtype=np.float64)
    assert data_u.shape == (len(data_t), len(problem.u0)), \
        f"data_u must have shape {(len(data_t), len(problem.u0))}, got {data_u.shape}"
    solve_kwargs.setdefault('rtol', 1e-6)
    solve_kwargs.setdefault('atol', 1e-8)

    def residuals(p):
        sol = solve(problem.remake(p=p), alg=alg, saveat=data_t, dense=False, **solve_kwargs)
        if not sol.successful or len(sol) != len(data_t):
            return np.full(data_u.size, failure_residual)
        return (sol.u - data_u).ravel()

    kwargs = {} if bounds is None else {'bounds': bounds}
    result = least_squares(residuals, np.asarray(p0, dtype=np.float64), **kwargs)
    logger.info(f"fit finished : p = {result.x}, cost = {result.cost}, nfev = {result.nfev}")
    return FitResult(p=result.x, cost=float(result.cost), nfev=int(result.nfev), success=bool(result.success),
                     message=str(result.message))


def get_tensor_dtype(dtype_name: str) -> torch.dtype:
    if dtype_name == "torch.float32":
        return torch.float32
    elif dtype_name == "torch.float64":
        return torch.float64
    else:
        raise ValueError(f"Unsupported tensor type = {dtype_name}")


class NeuralODEFunc(torch.nn.Module):
    # https://github.com/rtqichen/torchdiffeq/blob/master/examples/ode_demo.py#L111
    def __init__(self, state_dim: int, hidden_dim: int, dtype: torch.dtype = torch.float32):
        super().__init__()
        self.net = torch.nn.Sequential(
            torch.nn.Linear(state_dim + 1, hidden_dim, dtype=dtype),  # +1 for time
            torch.nn.Tanh(),
            torch.nn.Linear(hidden_dim, state_dim, dtype=dtype),
        )
        for m in self.net.modules():
            if isinstance(m, torch.nn.Linear):
                torch.nn.init.normal_(m.weight, mean=0, std=0.1)
                torch.nn.init.constant_(m.bias, val=0)
        self.nfe = 0

    def forward(self, t, z):
        self.nfe += 1
        t_col = t.reshape(1).expand(*z.shape[:-1], 1).to(z.dtype)
        z_aug = torch.cat([z, t_col], dim=-1)
        return self.net(z_aug)

    def num_learnable_scalars(self):
        return sum(param.numel() for param in self.parameters() if param.requires_grad)


def train_neural_ode(t: np.ndarray, data: np.ndarray, config: dict, method: str = "dopri5") \
        -> Tuple[NeuralODEFunc, pd.DataFrame]:
    """
    Fit a NeuralODEFunc to a single trajectory data (len(t) x n) starting at data[0].
    config keys : hidden-dim, epochs, lr, dtype, epochs-block (optional)
    """
    dtype = get_tensor_dtype(config.get('dtype', 'torch.float32'))
    t_tensor = torch.tensor(np.asarray(t), dtype=dtype)
    y_true = torch.tensor(np.asarray(data), dtype=dtype)
    assert y_true.dim() == 2 and y_true.shape[0] == t_tensor.shape[0], \
        f"data must be (len(t), n), got {tuple(y_true.shape)}"
    func = NeuralODEFunc(state_dim=y_true.shape[1], hidden_dim=config['hidden-dim'], dtype=dtype)
    optimizer = torch.optim.Adam(params=func.parameters(), lr=config['lr'])
    loss_fn = MSELoss()
    epochs_block = config.get('epochs-block', max(1, config['epochs'] // 10))
    epoch_no_list = []
    epoch_loss = []
    for epoch in tqdm(range(config['epochs']), desc="epochs"):
        optimizer.zero_grad()
        y_pred = odeint(func, y_true[0], t_tensor, method=method)
        loss = loss_fn(y_pred, y_true)
        loss.backward()
        optimizer.step()
        if epoch % epochs_block == 0 or epoch == config['epochs'] - 1:
            epoch_no_list.append(epoch)
            epoch_loss.append(loss.item())
            logger.info(f"\t epoch # {epoch} : loss = {loss.item()}")
    losses_df = pd.DataFrame({'epoch': epoch_no_list, 'loss': epoch_loss})
    logger.debug(f'\n{losses_df}\n')
    return func, losses_df


def predict_neural_ode(func: NeuralODEFunc, y0: np.ndarray, t: np.ndarray, method: str = "dopri5") -> np.ndarray:
    dtype = next(func.parameters()).dtype
    with torch.no_grad():
        y = odeint(func, torch.tensor(np.asarray(y0), dtype=dtype), torch.tensor(np.asarray(t), dtype=dtype),
                   method=method)
    return y.numpy()
