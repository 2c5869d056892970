from typing import Optional, Tuple
from jaxtyping import Float

import numpy as np
from numpy.typing import NDArray

from autograd import Scalar


def load_moons(path: str) -> Tuple[Float[NDArray, "n 2"], Float[NDArray, "n"]]:
    """
    Reads a `x,y,label` CSV (one header row) as written by save_moons.
    """
    table = np.loadtxt(path, delimiter=",", skiprows=1, ndmin=2, dtype=np.float64)
    return table[:, :2], table[:, 2]


def save_moons(path: str, data: Float[NDArray, "n 2"], labels: Float[NDArray, "n"]):
    table = np.column_stack([data, labels])
    np.savetxt(path, table, delimiter=",", header="x,y,label", comments="")


def make_moons(n_samples: int=100, noise: float=0.1, rng: Optional[np.random.Generator]=None) -> Tuple[Float[NDArray, "n 2"], Float[NDArray, "n"]]:
    """
    Two interleaving half circles labelled -1 (upper) and 1 (lower).
    """
    rng = np.random.default_rng() if rng is None else rng
    n_upper = n_samples // 2
    n_lower = n_samples - n_upper

    upper_angles = np.linspace(0, np.pi, n_upper)
    lower_angles = np.linspace(0, np.pi, n_lower)
    upper = np.column_stack([np.cos(upper_angles), np.sin(upper_angles)])
    lower = np.column_stack([1 - np.cos(lower_angles), 0.5 - np.sin(lower_angles)])

    data = np.concatenate([upper, lower])
    if noise > 0:
        data = data + rng.normal(scale=noise, size=data.shape)
    labels = np.concatenate([-np.ones(n_upper), np.ones(n_lower)])

    order = rng.permutation(n_samples)
    return data[order], labels[order]


def sample_batch(
    data: Float[NDArray, "n d"],
    labels: Float[NDArray, "n"],
    batch_size: Optional[int],
    rng: Optional[np.random.Generator]=None,
) -> Tuple[Float[NDArray, "batch_size d"], Float[NDArray, "batch_size"]]:
    if batch_size is None or batch_size >= data.shape[0]:
        return data, labels
    rng = np.random.default_rng() if rng is None else rng
    rows = rng.choice(data.shape[0], batch_size, replace=False)
    return data[rows], labels[rows]


def to_scalars(rows: Float[NDArray, "n d"]) -> "list[list[Scalar]]":
    return [[Scalar(x) for x in row] for row in rows]
