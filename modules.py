from typing import Optional, Sequence

import numpy as np

from autograd import Scalar, sum_scalars, zero_grad


class Module:
    def parameters(self) -> "list[Scalar]":
        return []

    def zero_grad(self):
        zero_grad(self.parameters())

    def forward(self, x: "Sequence[Scalar]"):
        raise NotImplementedError

    def __call__(self, x: "Sequence[Scalar]"):
        return self.forward(x)


class Neuron(Module):
    """
    Weighted sum of the inputs plus a bias, optionally followed by a ReLU.
    """
    def __init__(self, n_inputs: int, nonlin: bool=True, rng: Optional[np.random.Generator]=None):
        rng = np.random.default_rng() if rng is None else rng
        self.weights = [Scalar(w) for w in rng.uniform(-1, 1, size=n_inputs)]
        self.bias = Scalar(0.)
        self.nonlin = nonlin

    @classmethod
    def from_values(cls, weights: "Sequence[float]", bias: float, nonlin: bool=True) -> "Neuron":
        neuron = cls.__new__(cls)
        neuron.weights = [Scalar(w) for w in weights]
        neuron.bias = Scalar(bias)
        neuron.nonlin = nonlin
        return neuron

    def forward(self, x: "Sequence[Scalar]") -> Scalar:
        act = sum_scalars(w * x_ for w, x_ in zip(self.weights, x)) + self.bias
        return act.relu() if self.nonlin else act

    def parameters(self):
        return [self.bias] + self.weights

    def __repr__(self):
        return f"{'ReLU' if self.nonlin else 'Linear'}Neuron({len(self.weights)})"


class Layer(Module):
    def __init__(self, n_inputs: int, n_outputs: int, nonlin: bool=True, rng: Optional[np.random.Generator]=None):
        self.n_inputs = n_inputs
        self.neurons = [Neuron(n_inputs, nonlin, rng) for _ in range(n_outputs)]

    def forward(self, x: "Sequence[Scalar]") -> "list[Scalar]":
        assert len(x) == self.n_inputs, f"Layer expects {self.n_inputs} inputs, got {len(x)}"
        return [n(x) for n in self.neurons]

    def parameters(self):
        return [p for n in self.neurons for p in n.parameters()]

    def __repr__(self):
        return f"Layer([{', '.join(str(n) for n in self.neurons)}])"


class MLP(Module):
    """
    Stack of fully connected layers; every layer except the last applies a ReLU.
    """
    def __init__(self, sizes: "Sequence[int]", rng: Optional[np.random.Generator]=None):
        assert len(sizes) >= 2, "MLP needs an input size and at least one layer size"
        rng = np.random.default_rng() if rng is None else rng
        self.layers = [
            Layer(sizes[i], sizes[i+1], nonlin=(i != len(sizes) - 2), rng=rng)
            for i in range(len(sizes) - 1)
        ]

    def forward(self, x: "Sequence[Scalar]") -> "list[Scalar]":
        for layer in self.layers:
            x = layer(x)
        return x

    def parameters(self):
        return [p for layer in self.layers for p in layer.parameters()]

    def __repr__(self):
        return f"MLP of [{', '.join(str(layer) for layer in self.layers)}]"
