import itertools
from enum import Enum
from numbers import Real
from typing import Callable, Iterable, Sequence

import numpy as np


class Operation(Enum):
    LEAF = ""
    ADD = "+"
    SUB = "-"
    MUL = "*"
    DIV = "/"
    POW = "**"
    RELU = "ReLU"


_uids = itertools.count()


def _power(base: float, exponent: float) -> float:
    # float64 semantics: nan / inf instead of ValueError, ZeroDivisionError or complex results
    with np.errstate(divide="ignore", invalid="ignore", over="ignore"):
        return float(np.power(np.float64(base), np.float64(exponent)))


class Scalar:
    """
    A single float in the computation graph.
    `inputs` and `op` record how the node was produced; `grad` accumulates
    d(root)/d(self) during backward passes.
    """
    def __init__(self, data: float, inputs: "tuple[Scalar, ...]"=(), op: Operation=Operation.LEAF):
        self.data: float = float(data)
        self.grad: float = 0.
        self.uid: int = next(_uids)
        self.inputs: "tuple[Scalar, ...]" = tuple(inputs)
        self.op: Operation = op

    def __repr__(self):
        return f"Scalar(data={self.data}, grad={self.grad})"

    def __hash__(self):
        return hash(self.uid)

    def __eq__(self, other):
        return isinstance(other, Scalar) and self.uid == other.uid

    @staticmethod
    def _wrap(other: "int|float|Scalar") -> "Scalar":
        return other if isinstance(other, Scalar) else Scalar(other)

    def __add__(self, other: "int|float|Scalar"):
        other = Scalar._wrap(other)
        return Scalar(self.data + other.data, (self, other), Operation.ADD)

    def __radd__(self, other):
        return Scalar._wrap(other) + self

    def __mul__(self, other: "int|float|Scalar"):
        other = Scalar._wrap(other)
        return Scalar(self.data * other.data, (self, other), Operation.MUL)

    def __rmul__(self, other):
        return Scalar._wrap(other) * self

    def __pow__(self, exponent: "int|float"):
        assert isinstance(exponent, Real), "only constant real exponents are supported"
        exponent = float(exponent)
        return Scalar(_power(self.data, exponent), (self, Scalar(exponent)), Operation.POW)

    def relu(self):
        return Scalar(self.data if self.data > 0 else 0., (self,), Operation.RELU)

    # composed operations, no backward rules of their own

    def __neg__(self):
        return self * -1.

    def __sub__(self, other: "int|float|Scalar"):
        return self + (-Scalar._wrap(other))

    def __rsub__(self, other):
        return Scalar._wrap(other) + (-self)

    def __truediv__(self, other: "int|float|Scalar"):
        return self * Scalar._wrap(other) ** -1.

    def __rtruediv__(self, other):
        return Scalar._wrap(other) * self ** -1.

    def backward(self):
        backward(self)


def _add_backward(out: Scalar):
    a, b = out.inputs
    a.grad += out.grad
    b.grad += out.grad


def _mul_backward(out: Scalar):
    a, b = out.inputs
    a.grad += b.data * out.grad
    b.grad += a.data * out.grad


def _pow_backward(out: Scalar):
    base, exponent = out.inputs
    p = exponent.data
    base.grad += p * _power(base.data, p - 1) * out.grad


def _relu_backward(out: Scalar):
    (a,) = out.inputs
    a.grad += out.grad if a.data > 0 else 0.


BACKWARD_RULES: "dict[Operation, Callable[[Scalar], None]]" = {
    Operation.ADD: _add_backward,
    Operation.MUL: _mul_backward,
    Operation.POW: _pow_backward,
    Operation.RELU: _relu_backward,
}


def topological_order(root: Scalar) -> "list[Scalar]":
    """
    Returns every node reachable from root, each exactly once,
    such that a node comes after all of its inputs.
    """
    order: "list[Scalar]" = []
    visited: "set[int]" = set()
    stack: "list[tuple[Scalar, bool]]" = [(root, False)]

    while stack:
        node, expanded = stack.pop()
        if expanded:
            order.append(node)
            continue
        if node.uid in visited:
            continue
        visited.add(node.uid)
        stack.append((node, True))
        # reversed so that inputs are visited in their recorded order
        for child in reversed(node.inputs):
            if child.uid not in visited:
                stack.append((child, False))

    return order


def backward(root: Scalar):
    """
    Seeds root.grad with 1 and accumulates gradients into every node reachable from root.
    Gradients are never reset here: call zero_grad between passes when accumulation is not wanted.
    """
    root.grad = 1.
    for node in reversed(topological_order(root)):
        if node.op is Operation.LEAF:
            continue
        BACKWARD_RULES[node.op](node)


def sum_scalars(nodes: Iterable[Scalar]) -> Scalar:
    nodes = iter(nodes)
    first = next(nodes, None)
    assert first is not None, "sum_scalars needs at least one node"
    total = first
    for node in nodes:
        total = total + node
    return total


def zero_grad(params: Sequence[Scalar]):
    for p in params:
        p.grad = 0.
