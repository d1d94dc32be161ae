"""Deterministic left-to-right tree layout.

x depends only on depth. Leaves take consecutive y slots in sibling order and
every internal node sits at the midpoint of its direct children. The result
only depends on ids and child order, never on node text.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping, Optional

from node_models import DocumentTree


@dataclass(frozen=True)
class LayoutMetrics:
    node_width: float = 180
    node_height: float = 34
    h_gap: float = 80
    v_gap: float = 16
    padding_x: float = 32
    padding_y: float = 32


DEFAULT_METRICS = LayoutMetrics()


@dataclass(frozen=True)
class NodePosition:
    x: float
    y: float
    depth: int


@dataclass(frozen=True)
class LayoutResult:
    positions: Mapping[str, NodePosition]
    content_width: float
    content_height: float


@dataclass(frozen=True)
class EdgeCurve:
    start: tuple[float, float]
    control1: tuple[float, float]
    control2: tuple[float, float]
    end: tuple[float, float]


def compute_layout(tree: DocumentTree, metrics: LayoutMetrics = DEFAULT_METRICS) -> LayoutResult:
    positions: dict[str, NodePosition] = {}
    next_y = metrics.padding_y
    max_depth = 0
    max_y = 0

    def x_for(depth: int) -> float:
        return metrics.padding_x + depth * (metrics.node_width + metrics.h_gap)

    visited: set[str] = set()
    child_ys: dict[str, list[float]] = {}
    # Frames are (node_id, depth, pushed_by, expanded). An explicit stack keeps
    # deep chains clear of the recursion limit.
    stack: list[tuple[str, int, Optional[str], bool]] = []
    if tree.root_id in tree.nodes:
        stack.append((tree.root_id, 0, None, False))
        visited.add(tree.root_id)

    while stack:
        node_id, depth, pushed_by, expanded = stack.pop()
        if not expanded:
            max_depth = max(max_depth, depth)
            # Missing ids and repeats end the descent there.
            children: list[str] = []
            for child_id in tree.nodes[node_id].children_ids:
                if child_id in tree.nodes and child_id not in visited:
                    visited.add(child_id)
                    children.append(child_id)
            if children:
                child_ys[node_id] = []
                stack.append((node_id, depth, pushed_by, True))
                for child_id in reversed(children):
                    stack.append((child_id, depth + 1, node_id, False))
                continue
            y = next_y
            next_y += metrics.node_height + metrics.v_gap
        else:
            ys = child_ys.pop(node_id)
            y = (min(ys) + max(ys)) / 2

        positions[node_id] = NodePosition(x=x_for(depth), y=y, depth=depth)
        max_y = max(max_y, y)
        if pushed_by is not None:
            child_ys[pushed_by].append(y)

    content_width = (
        metrics.padding_x
        + (max_depth + 1) * metrics.node_width
        + max_depth * metrics.h_gap
        + metrics.padding_x
    )
    content_height = max_y + metrics.node_height + metrics.padding_y
    return LayoutResult(positions=positions, content_width=content_width, content_height=content_height)


def edge_curve(
    parent: NodePosition, child: NodePosition, metrics: LayoutMetrics = DEFAULT_METRICS
) -> EdgeCurve:
    start = (parent.x + metrics.node_width, parent.y + metrics.node_height / 2)
    end = (child.x, child.y + metrics.node_height / 2)
    mid_x = (start[0] + end[0]) / 2
    return EdgeCurve(start=start, control1=(mid_x, start[1]), control2=(mid_x, end[1]), end=end)


def svg_path_for_edge(start: tuple[float, float], end: tuple[float, float]) -> str:
    mid_x = (start[0] + end[0]) / 2
    return f"M {start[0]:g} {start[1]:g} C {mid_x:g} {start[1]:g}, {mid_x:g} {end[1]:g}, {end[0]:g} {end[1]:g}"


def layout_edges(
    tree: DocumentTree, layout: LayoutResult, metrics: LayoutMetrics = DEFAULT_METRICS
) -> list[tuple[str, str, EdgeCurve]]:
    edges: list[tuple[str, str, EdgeCurve]] = []
    for node_id, position in layout.positions.items():
        node = tree.nodes[node_id]
        for child_id in node.children_ids:
            child_position = layout.positions.get(child_id)
            if child_position is None or child_position.depth != position.depth + 1:
                continue
            edges.append((node_id, child_id, edge_curve(position, child_position, metrics)))
    return edges
