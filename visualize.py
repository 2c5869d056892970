from typing import Sequence, Union

from graphviz import Digraph

from autograd import Operation, Scalar, topological_order


def trace(root: Scalar) -> "tuple[list[Scalar], list[tuple[Scalar, Scalar]]]":
    """
    All nodes reachable from root (inputs first) and all (input, consumer) edges, each once.
    """
    nodes = topological_order(root)
    edges: "list[tuple[Scalar, Scalar]]" = []
    seen: "set[tuple[int, int]]" = set()
    for node in nodes:
        for child in node.inputs:
            if (child.uid, node.uid) not in seen:
                seen.add((child.uid, node.uid))
                edges.append((child, node))
    return nodes, edges


def _add_to_graph(dot: Digraph, root: Scalar, drawn: "set[int]"):
    nodes, edges = trace(root)
    for node in nodes:
        if node.uid in drawn:
            continue
        drawn.add(node.uid)
        name = str(node.uid)
        dot.node(name=name, label=f"{{ data {node.data:.4f} | grad {node.grad:.4f} }}", shape="record")
        if node.op is not Operation.LEAF:
            dot.node(name=name + node.op.name, label=node.op.value)
            dot.edge(name + node.op.name, name)

    for child, node in edges:
        dot.edge(str(child.uid), str(node.uid) + node.op.name)


def draw_dot(roots: Union[Scalar, Sequence[Scalar]], rankdir: str="LR", fmt: str="svg") -> Digraph:
    """
    Builds (without rendering) the graph behind one or more output nodes.
    Edges shared between outputs are drawn once.
    """
    assert rankdir in ("LR", "TB"), "rankdir must be LR or TB"
    roots = [roots] if isinstance(roots, Scalar) else list(roots)
    dot = Digraph(format=fmt, graph_attr={"rankdir": rankdir}, strict=True)
    drawn: "set[int]" = set()
    for root in roots:
        _add_to_graph(dot, root, drawn)
    return dot


def render_graph(roots: Union[Scalar, Sequence[Scalar]], path: str, fmt: str="png") -> str:
    """
    Writes the graph to `path` (extension added by graphviz). Needs the Graphviz binaries.
    """
    dot = draw_dot(roots, fmt=fmt)
    out = dot.render(filename=path, cleanup=True)
    print(f"Rendered computation graph to {out}")
    return out
