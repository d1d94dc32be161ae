"""
Unit tests for the layout engine.
"""
from dataclasses import replace

import pytest

from layout import (
    DEFAULT_METRICS,
    LayoutMetrics,
    NodePosition,
    compute_layout,
    edge_curve,
    layout_edges,
    svg_path_for_edge,
)
from node_models import DocumentTree, Node


class TestComputeLayout:
    """Tests for node positions and content bounds."""

    def test_single_root(self, make_tree):
        result = compute_layout(make_tree({}))

        assert result.positions == {"R": NodePosition(x=32, y=32, depth=0)}
        assert result.content_width == 244
        assert result.content_height == 98

    def test_sample_tree_positions(self, sample_doc):
        result = compute_layout(sample_doc.tree)
        positions = result.positions

        assert positions["B"] == NodePosition(x=552, y=32, depth=2)
        assert positions["C"] == NodePosition(x=552, y=82, depth=2)
        assert positions["D"] == NodePosition(x=292, y=132, depth=1)
        assert positions["A"] == NodePosition(x=292, y=57, depth=1)
        assert positions["R"] == NodePosition(x=32, y=94.5, depth=0)
        assert result.content_width == 764
        assert result.content_height == 198

    def test_parent_uses_direct_children_only(self, make_tree):
        tree = make_tree({"R": ["A", "B"], "A": ["A1", "A2", "A3"]})
        positions = compute_layout(tree).positions

        assert positions["A"].y == (positions["A1"].y + positions["A3"].y) / 2
        assert positions["R"].y == (positions["A"].y + positions["B"].y) / 2

    def test_x_depends_only_on_depth(self, make_tree):
        tree = make_tree({"R": ["A", "B"], "A": ["C"], "B": ["D"]})
        positions = compute_layout(tree).positions
        assert positions["C"].x == positions["D"].x
        assert positions["A"].x == positions["B"].x

    def test_text_does_not_matter(self, make_tree):
        tree = make_tree({"R": ["A", "B"], "A": ["C"]})
        renamed = replace(tree, nodes={key: replace(node, text="x" * 50) for key, node in tree.nodes.items()})

        assert compute_layout(tree) == compute_layout(renamed)

    def test_deterministic(self, sample_doc):
        assert compute_layout(sample_doc.tree) == compute_layout(sample_doc.tree)

    def test_leaf_order_follows_children_order(self, make_tree):
        tree = make_tree({"R": ["A", "B", "C"], "A": ["A1", "A2"], "C": ["C1"]})
        positions = compute_layout(tree).positions
        leaves = ["A1", "A2", "B", "C1"]

        ys = [positions[leaf].y for leaf in leaves]
        assert ys == sorted(ys)
        assert len(set(ys)) == len(ys)

    def test_custom_metrics(self, make_tree):
        metrics = LayoutMetrics(node_width=10, node_height=1, h_gap=2, v_gap=0, padding_x=1, padding_y=0)
        positions = compute_layout(make_tree({"R": ["A", "B"]}), metrics).positions

        assert positions["A"] == NodePosition(x=13, y=0, depth=1)
        assert positions["B"] == NodePosition(x=13, y=1, depth=1)
        assert positions["R"].y == 0.5


class TestInconsistentTrees:
    """Layout must never fail on damaged trees."""

    def test_missing_child_is_skipped(self, make_tree):
        tree = make_tree({"R": ["A"]})
        root = tree.nodes["R"]
        nodes = dict(tree.nodes)
        nodes["R"] = replace(root, children_ids=("A", "ghost"))
        positions = compute_layout(replace(tree, nodes=nodes)).positions

        assert set(positions) == {"R", "A"}
        assert positions["R"].y == positions["A"].y

    def test_all_children_missing_places_leaf(self):
        tree = DocumentTree(root_id="R", cursor_id="R", nodes={"R": Node(id="R", children_ids=("ghost",))})
        result = compute_layout(tree)
        assert result.positions["R"] == NodePosition(x=32, y=32, depth=0)
        assert result.content_width == 244

    def test_missing_root_gives_empty_layout(self):
        tree = DocumentTree(root_id="R", cursor_id="R", nodes={})
        result = compute_layout(tree)
        assert result.positions == {}

    def test_cycle_terminates(self):
        tree = DocumentTree(
            root_id="R",
            cursor_id="R",
            nodes={
                "R": Node(id="R", children_ids=("A",)),
                "A": Node(id="A", parent_id="R", children_ids=("R",)),
            },
        )
        assert set(compute_layout(tree).positions) == {"R", "A"}

    def test_deep_chain(self):
        depth = 3000
        nodes = {}
        for index in range(depth):
            parent = str(index - 1) if index else None
            children = (str(index + 1),) if index + 1 < depth else ()
            nodes[str(index)] = Node(id=str(index), parent_id=parent, children_ids=children)
        result = compute_layout(DocumentTree(root_id="0", cursor_id="0", nodes=nodes))

        assert len(result.positions) == depth
        assert result.positions[str(depth - 1)].depth == depth - 1

    def test_duplicate_child_placed_once(self):
        tree = DocumentTree(
            root_id="R",
            cursor_id="R",
            nodes={
                "R": Node(id="R", children_ids=("A", "A", "B")),
                "A": Node(id="A", parent_id="R"),
                "B": Node(id="B", parent_id="R"),
            },
        )
        positions = compute_layout(tree).positions

        assert positions["A"].y == 32
        assert positions["B"].y == 82
        assert positions["R"].y == 57


class TestEdges:
    """Tests for edge geometry."""

    def test_edge_curve_uses_midpoint(self):
        curve = edge_curve(NodePosition(32, 94.5, 0), NodePosition(292, 57, 1))

        assert curve.start == (212, 111.5)
        assert curve.end == (292, 74)
        assert curve.control1 == (252, 111.5)
        assert curve.control2 == (252, 74)

    def test_svg_path(self):
        assert svg_path_for_edge((212, 111.5), (292, 74)) == "M 212 111.5 C 252 111.5, 252 74, 292 74"

    def test_layout_edges_cover_every_pair(self, sample_doc):
        layout = compute_layout(sample_doc.tree)
        pairs = {(parent, child) for parent, child, _ in layout_edges(sample_doc.tree, layout)}
        assert pairs == {("R", "A"), ("R", "D"), ("A", "B"), ("A", "C")}

    @pytest.mark.parametrize("child_y", [0, 94.5, 400])
    def test_control_points_are_horizontal(self, child_y):
        curve = edge_curve(NodePosition(32, 94.5, 0), NodePosition(292, child_y, 1), DEFAULT_METRICS)
        assert curve.control1[1] == curve.start[1]
        assert curve.control2[1] == curve.end[1]
        assert curve.control1[0] == curve.control2[0]