from typing import Sequence
from jaxtyping import Float

import numpy as np
from numpy.typing import NDArray

from autograd import Scalar, sum_scalars, zero_grad
from dataloader import to_scalars
from modules import Module


def hinge_loss(
    model: Module,
    data: Float[NDArray, "n d_in"],
    labels: Float[NDArray, "n"],
    alpha: float,
) -> "tuple[Scalar, float]":
    """
    Max-margin loss with L2 regularisation over the model parameters.
    Labels are expected in {-1, 1}. Returns the loss node and the accuracy.
    """
    assert len(data) == len(labels) > 0, "need as many labels as rows, and at least one row"
    scores = [model(row)[0] for row in to_scalars(data)]

    losses = [(1 - float(y) * score).relu() for y, score in zip(labels, scores)]
    data_loss = sum_scalars(losses) / len(losses)
    reg_loss = alpha * sum_scalars(p * p for p in model.parameters())
    total_loss = data_loss + reg_loss

    accuracy = np.mean([(y > 0) == (score.data > 0) for y, score in zip(labels, scores)])
    return total_loss, float(accuracy)


class SGD:
    def __init__(self, params: Sequence[Scalar], lr: float=1e-3):
        assert lr >= 0, "SGD optimizer: learning rate must be at least 0"
        self.params = list(params)
        self.lr = lr
        self.t = 0  # step

    def zero_grad(self):
        zero_grad(self.params)

    def step(self):
        assert self.lr >= 0, "SGD optimizer: learning rate must be at least 0"
        for p in self.params:
            p.data -= self.lr * p.grad
        self.t += 1


def linear_decay_scheduler(t: int, lr_max: float, lr_min: float, T: int):
    if t >= T:
        return lr_min
    return lr_max - (lr_max - lr_min) * t / T


def cosine_anneal_scheduler(t: int, lr_max: float, lr_min: float, T_warmup: int, T_anneal: int):
    if t < T_warmup:
        return lr_max * t / T_warmup
    if t > T_anneal:
        return lr_min

    ratio = (t - T_warmup) / (T_anneal - T_warmup)
    return lr_min + (lr_max - lr_min) * 0.5 * (1 + np.cos(np.pi * ratio))
