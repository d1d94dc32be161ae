"""
Pytest configuration and shared tree fixtures.
"""
import sys
from pathlib import Path

import pytest

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from node_models import Document, DocumentTree, Node


def build_tree(shape, root="R", cursor=None):
    """Build a tree whose node ids are the keys/values of ``shape``.

    ``shape`` maps a parent id to its ordered child ids. Node text is the
    lower-cased id so text and identity are easy to tell apart.
    """
    parents = {root: None}
    for parent, children in shape.items():
        for child in children:
            parents[child] = parent
    nodes = {
        node_id: Node(
            id=node_id,
            text=node_id.lower(),
            parent_id=parent,
            children_ids=tuple(shape.get(node_id, ())),
        )
        for node_id, parent in parents.items()
    }
    return DocumentTree(root_id=root, cursor_id=cursor or root, nodes=nodes)


@pytest.fixture
def make_tree():
    """Factory for bare document trees."""
    return build_tree


@pytest.fixture
def make_doc():
    """Factory for documents built from a parent -> children mapping."""

    def factory(shape, cursor=None, root="R", doc_id="doc"):
        return Document(id=doc_id, tree=build_tree(shape, root=root, cursor=cursor))

    return factory


@pytest.fixture
def sample_doc(make_doc):
    """R -> [A, D], A -> [B, C]; cursor on the root."""
    return make_doc({"R": ["A", "D"], "A": ["B", "C"]})
