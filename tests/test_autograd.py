"""
Tests for the scalar autograd engine: forward values, local gradient rules,
graph ordering, accumulation semantics and numeric edge cases.
"""

import math

import numpy as np
import pytest

from autograd import (
    BACKWARD_RULES,
    Operation,
    Scalar,
    backward,
    sum_scalars,
    topological_order,
    zero_grad,
)


# ============================================================================
# FORWARD
# ============================================================================

@pytest.mark.parametrize("x, y", [(-4.0, 2.0), (3.5, 0.25), (0.0, -7.0), (1e6, 1e-6)])
def test_binary_forward_matches_arithmetic(x, y):
    a, b = Scalar(x), Scalar(y)
    assert (a + b).data == x + y
    assert (a * b).data == x * y
    assert (a - b).data == pytest.approx(x - y)
    if y != 0:
        assert (a / b).data == pytest.approx(x / y)


def test_sanity_values():
    assert (Scalar(-4.0) + Scalar(2.0)).data == -2.0
    assert (Scalar(8.0) - Scalar(3.0)).data == 5.0
    assert (Scalar(-4.0) * Scalar(2.0)).data == -8.0
    assert (Scalar(6.0) / Scalar(2.0)).data == 3.0
    assert (-Scalar(1.0)).data == -1.0
    assert (Scalar(2.0) ** 3.0).data == 8.0


def test_numbers_mix_with_nodes():
    a = Scalar(3.0)
    assert (a + 1).data == 4.0
    assert (1 + a).data == 4.0
    assert (2 * a).data == 6.0
    assert (1 - a).data == -2.0
    assert (a - 1).data == 2.0
    assert (6 / a).data == pytest.approx(2.0)
    assert (a / 2).data == pytest.approx(1.5)


@pytest.mark.parametrize("expr", [lambda a: 2 + a, lambda a: 2 * a])
def test_reflected_operations_keep_operand_order(expr):
    a = Scalar(3.0)
    out = expr(a)
    left, right = out.inputs
    assert left.op is Operation.LEAF and left.data == 2.0
    assert right is a
    assert topological_order(out) == [left, a, out]


def test_relu_forward():
    a = Scalar(1.0)
    b = Scalar(-0.3)
    assert a.relu().data == 1.0
    assert b.relu().data == 0.0
    assert (b - a).relu().data == 0.0


def test_operations_do_not_mutate_operands():
    a, b = Scalar(2.0), Scalar(5.0)
    _ = (a + b) * (a - b) / b ** 2
    assert a.data == 2.0 and b.data == 5.0
    assert a.grad == 0.0 and b.grad == 0.0


# ============================================================================
# GRAPH STRUCTURE
# ============================================================================

def test_node_records_provenance():
    a, b = Scalar(1.0), Scalar(2.0)
    c = a * b
    assert a.op is Operation.LEAF and a.inputs == ()
    assert c.op is Operation.MUL
    assert c.inputs[0] is a and c.inputs[1] is b


def test_composed_operations_use_primitive_tags():
    a, b = Scalar(4.0), Scalar(2.0)
    assert (a - b).op is Operation.ADD
    assert (a - b).inputs[1].op is Operation.MUL
    assert (a / b).op is Operation.MUL
    assert (a / b).inputs[1].op is Operation.POW
    assert (-a).op is Operation.MUL


def test_pow_records_constant_exponent_as_leaf():
    a = Scalar(2.0)
    c = a ** 3
    base, exponent = c.inputs
    assert base is a
    assert exponent.op is Operation.LEAF
    assert exponent.data == 3.0


def test_pow_rejects_node_exponent():
    with pytest.raises(AssertionError):
        Scalar(2.0) ** Scalar(3.0)


@pytest.mark.parametrize("exponent", [np.int64(2), np.float32(2.0), np.float64(2.0), 2])
def test_pow_accepts_numpy_exponents(exponent):
    a = Scalar(3.0)
    c = a ** exponent
    assert c.data == 9.0
    assert type(c.inputs[1].data) is float
    c.backward()
    assert a.grad == 6.0


def test_identity_is_independent_of_value():
    a, b = Scalar(1.0), Scalar(1.0)
    assert a != b
    assert a == a
    assert len({a, b}) == 2
    assert b.uid > a.uid


def test_result_identity_is_newer_than_inputs():
    a, b = Scalar(1.0), Scalar(2.0)
    c = a + b
    assert all(c.uid > x.uid for x in c.inputs)


def test_backward_rules_cover_every_produced_operation():
    assert set(BACKWARD_RULES) == {Operation.ADD, Operation.MUL, Operation.POW, Operation.RELU}


# ============================================================================
# TOPOLOGICAL ORDER
# ============================================================================

def _expression():
    a, b, c = Scalar(2.0), Scalar(-3.0), Scalar(10.0)
    e = a * b
    d = e + c
    out = (d * e).relu() + d ** 2 - a / c
    return out, [a, b, c, d, e]


def test_topological_order_puts_inputs_first():
    out, _ = _expression()
    order = topological_order(out)
    position = {node.uid: i for i, node in enumerate(order)}
    for node in order:
        for child in node.inputs:
            assert position[child.uid] < position[node.uid]
    assert order[-1] is out


def test_topological_order_lists_each_node_once():
    out, named = _expression()
    order = topological_order(out)
    assert len(order) == len({node.uid for node in order})
    for node in named:
        assert node in order


def test_topological_order_is_deterministic():
    out, _ = _expression()
    first = [node.uid for node in topological_order(out)]
    second = [node.uid for node in topological_order(out)]
    assert first == second


def test_topological_order_follows_recorded_input_order():
    a, b = Scalar(1.0), Scalar(2.0)
    c = a + b
    assert topological_order(c) == [a, b, c]
    d = b + a
    assert topological_order(d) == [b, a, d]


def test_topological_order_of_leaf():
    a = Scalar(1.0)
    assert topological_order(a) == [a]


# ============================================================================
# BACKWARD
# ============================================================================

def test_add_gradient():
    a, b = Scalar(1.0), Scalar(2.0)
    c = a + b
    c.backward()
    assert (a.grad, b.grad, c.grad) == (1.0, 1.0, 1.0)


def test_mul_gradient():
    a, b = Scalar(3.0), Scalar(-4.0)
    c = a * b
    c.backward()
    assert a.grad == -4.0
    assert b.grad == 3.0


def test_sub_gradient():
    a, b = Scalar(8.0), Scalar(3.0)
    c = a - b
    c.backward()
    assert a.grad == 1.0
    assert b.grad == -1.0


def test_neg_gradient():
    a = Scalar(5.0)
    b = -a
    b.backward()
    assert a.grad == -1.0


def test_div_gradient():
    a, b = Scalar(6.0), Scalar(2.0)
    c = a / b
    c.backward()
    assert a.grad == pytest.approx(0.5)
    assert b.grad == pytest.approx(-1.5)


def test_power_rule():
    a = Scalar(2.0)
    c = a ** 3.0
    assert c.data == 8.0
    backward(c)
    assert a.grad == 12.0
    assert c.inputs[1].grad == 0.0


@pytest.mark.parametrize("upstream", [1.0, -2.5, 10.0])
def test_relu_blocks_gradient_for_negative_input(upstream):
    a = Scalar(-0.3)
    out = a.relu() * upstream
    out.backward()
    assert out.inputs[0].data == 0.0
    assert a.grad == 0.0


@pytest.mark.parametrize("upstream", [1.0, -2.5, 10.0])
def test_relu_passes_gradient_for_positive_input(upstream):
    a = Scalar(1.0)
    r = a.relu()
    out = r * upstream
    out.backward()
    assert r.data == 1.0
    assert a.grad == upstream


def test_relu_at_zero_routes_no_gradient():
    a = Scalar(0.0)
    a.relu().backward()
    assert a.grad == 0.0


def test_end_to_end_scenario():
    a = Scalar(2.0)
    b = Scalar(-3.0)
    c = Scalar(10.0)
    f = Scalar(-2.0)
    e = a * b
    d = e + c
    L = d * f
    assert L.data == -8.0

    backward(L)
    assert L.grad == 1.0
    assert f.grad == 4.0
    assert d.grad == -2.0
    assert c.grad == -2.0
    assert e.grad == -2.0
    assert b.grad == -4.0
    assert a.grad == 6.0


def test_chained_products():
    a, b, c = Scalar(1.0), Scalar(2.0), Scalar(3.0)
    d = a * b
    e = c * d
    for x in (a, b, c, d, e):
        assert x.grad == 0.0
    e.backward()
    assert (a.grad, b.grad, c.grad, d.grad, e.grad) == (6.0, 3.0, 2.0, 3.0, 1.0)


def test_chained_sums():
    a, b, c = Scalar(1.0), Scalar(2.0), Scalar(3.0)
    d = a + b
    e = c + d
    e.backward()
    for x in (a, b, c, d, e):
        assert x.grad == 1.0


def test_fan_out_accumulates():
    a = Scalar(3.0)
    y = a + a
    y.backward()
    assert a.grad == 2.0


def test_fan_out_through_mul():
    a = Scalar(3.0)
    y = a * a
    y.backward()
    assert a.grad == 6.0


def test_shared_intermediate_node():
    a = Scalar(-2.0)
    b = Scalar(3.0)
    d = a * b
    e = a + b
    f = d * e
    f.backward()
    # f = (ab)(a + b): df/da = b(a + b) + ab, df/db = a(a + b) + ab
    assert a.grad == 3.0 * 1.0 + (-6.0)
    assert b.grad == -2.0 * 1.0 + (-6.0)


def test_deep_chain_does_not_recurse():
    x = Scalar(1.0)
    y = x
    for _ in range(5000):
        y = y + x
    y.backward()
    assert y.data == 5001.0
    assert x.grad == 5001.0


def test_repeated_backward_accumulates():
    a, b = Scalar(2.0), Scalar(-3.0)
    c = a * b
    c.backward()
    c.backward()
    assert a.grad == -6.0
    assert b.grad == 4.0
    assert c.grad == 1.0


def test_reset_between_passes_gives_identical_gradients():
    out, _ = _expression()
    nodes = topological_order(out)

    zero_grad(nodes)
    out.backward()
    first = [node.grad for node in nodes]

    zero_grad(nodes)
    out.backward()
    second = [node.grad for node in nodes]

    assert first == second


def test_zero_grad_only_touches_given_nodes():
    a, b = Scalar(1.0), Scalar(2.0)
    c = a * b
    c.backward()
    zero_grad([a])
    assert a.grad == 0.0
    assert b.grad == 1.0


def test_sum_scalars():
    nodes = [Scalar(float(i)) for i in range(1, 5)]
    total = sum_scalars(nodes)
    assert total.data == 10.0
    total.backward()
    assert all(n.grad == 1.0 for n in nodes)


def test_sum_scalars_single_node_is_returned_as_is():
    a = Scalar(1.0)
    assert sum_scalars([a]) is a


def test_sum_scalars_rejects_empty():
    with pytest.raises(AssertionError):
        sum_scalars([])


def test_matches_torch_autograd():
    torch = pytest.importorskip("torch")

    def build(x, y, z, relu):
        u = x * y + z ** 2
        v = relu(u - x / z)
        return v * y + (x - 3.0) ** 3 / z

    values = (1.5, 2.0, 0.75)
    scalars = [Scalar(v) for v in values]
    out = build(*scalars, relu=lambda s: s.relu())
    out.backward()

    tensors = [torch.tensor(v, dtype=torch.float64, requires_grad=True) for v in values]
    expected = build(*tensors, relu=torch.relu)
    expected.backward()

    assert out.data == pytest.approx(expected.item())
    for s, t in zip(scalars, tensors):
        assert s.grad == pytest.approx(t.grad.item())


# ============================================================================
# NUMERIC EDGE CASES
# ============================================================================

def test_negative_base_fractional_power_is_nan():
    a = Scalar(-8.0)
    c = a ** 0.5
    assert math.isnan(c.data)
    c.backward()
    assert math.isnan(a.grad)


def test_division_by_zero_is_infinite():
    a, b = Scalar(1.0), Scalar(0.0)
    c = a / b
    assert math.isinf(c.data) and c.data > 0
    c.backward()
    assert math.isinf(a.grad)
    assert math.isinf(b.grad) and b.grad < 0


def test_overflowing_power_is_infinite():
    c = Scalar(10.0) ** 1000
    assert math.isinf(c.data)
