"""
Tests for workspace snapshots (ws_io) and Markdown import/export (md_io).
"""
import json

import pytest

import doc_engine
from md_io import from_markdown, to_markdown
from node_models import Document, DocumentTree, Node, Tab, Workspace
from workspace import sanitize_workspace
from ws_io import (
    get_workspace_path,
    load_workspace,
    save_workspace,
    workspace_from_dict,
    workspace_to_dict,
)


@pytest.fixture
def workspace(make_doc):
    first = make_doc({"R": ["A", "D"], "A": ["B", "C"]}, cursor="C", doc_id="one")
    second = make_doc({"S": ["X"]}, root="S", doc_id="two")
    first = doc_engine.delete_cursor_node(first)
    return Workspace(
        tabs=(Tab("one"), Tab("two")),
        active_doc_id="two",
        documents={"one": first, "two": second},
    )


def preorder_texts(tree):
    texts = []
    stack = [(tree.root_id, 0)]
    while stack:
        node_id, depth = stack.pop()
        node = tree.nodes[node_id]
        texts.append((depth, node.text))
        stack.extend((child, depth + 1) for child in reversed(node.children_ids))
    return texts


class TestWorkspaceSnapshot:
    """Tests for the JSON snapshot format."""

    def test_round_trip_preserves_trees_and_tabs(self, workspace):
        restored = workspace_from_dict(json.loads(json.dumps(workspace_to_dict(workspace))))

        assert [tab.doc_id for tab in restored.tabs] == ["one", "two"]
        assert restored.active_doc_id == "two"
        for doc_id, doc in workspace.documents.items():
            assert doc_engine.trees_equal(restored.documents[doc_id].tree, doc.tree)

    def test_history_is_not_persisted(self, workspace):
        assert len(workspace.documents["one"].undo_stack) == 1
        restored = workspace_from_dict(workspace_to_dict(workspace))
        assert restored.documents["one"].undo_stack == ()

    def test_uses_original_field_names(self, workspace):
        data = workspace_to_dict(workspace)
        node = data["documents"]["two"]["nodes"]["X"]

        assert data["activeDocId"] == "two"
        assert data["tabs"] == [{"docId": "one"}, {"docId": "two"}]
        assert node == {"id": "X", "text": "x", "parentId": "S", "childrenIds": []}

    def test_malformed_document_dropped_then_sanitized(self):
        data = {
            "tabs": [{"docId": "bad"}, {"docId": "good"}, "junk"],
            "activeDocId": "bad",
            "documents": {
                "bad": {"rootId": "missing", "nodes": {}},
                "good": {"rootId": "r", "cursorId": "nowhere", "nodes": {
                    "r": {"id": "r", "text": 5, "parentId": None, "childrenIds": []},
                }},
            },
        }
        loaded = workspace_from_dict(data)
        assert set(loaded.documents) == {"good"}
        assert loaded.documents["good"].cursor_id == "r"
        assert loaded.documents["good"].nodes["r"].text == ""

        repaired = sanitize_workspace(loaded)
        assert [tab.doc_id for tab in repaired.tabs] == ["good"]
        assert repaired.active_doc_id == "good"

    def test_non_object_rejected(self):
        with pytest.raises(ValueError):
            workspace_from_dict(["not", "a", "workspace"])


class TestWorkspaceFiles:
    """Tests for load_workspace/save_workspace."""

    def test_save_then_load(self, workspace, tmp_path):
        path = save_workspace(workspace, tmp_path / "nested" / "ws.json")
        loaded = load_workspace(path)

        assert path.exists()
        assert not path.with_name("ws.json.tmp").exists()
        assert doc_engine.trees_equal(loaded.documents["one"].tree, workspace.documents["one"].tree)

    def test_failed_save_removes_temp_file(self, workspace, tmp_path, monkeypatch):
        def refuse(src, dst):
            raise OSError("disk full")

        monkeypatch.setattr("ws_io.os.replace", refuse)
        path = tmp_path / "ws.json"

        with pytest.raises(OSError):
            save_workspace(workspace, path)
        assert not path.exists()
        assert not path.with_name("ws.json.tmp").exists()

    def test_missing_file_starts_empty(self, tmp_path):
        assert load_workspace(tmp_path / "absent.json") is None

    def test_corrupt_file_starts_empty(self, tmp_path):
        path = tmp_path / "ws.json"
        path.write_text("{not json", encoding="utf-8")
        assert load_workspace(path) is None

    def test_workspace_path_from_env(self, monkeypatch, tmp_path):
        monkeypatch.setenv("TREEDIT_WORKSPACE", str(tmp_path / "custom.json"))
        assert get_workspace_path() == tmp_path / "custom.json"

    def test_default_workspace_path(self, monkeypatch):
        monkeypatch.delenv("TREEDIT_WORKSPACE", raising=False)
        assert get_workspace_path().name == "workspace.json"


class TestMarkdown:
    """Tests for Markdown export and import."""

    def test_export_leaf_levels_as_bullets(self, sample_doc):
        assert to_markdown(sample_doc.tree) == "# r\n\n## a\n\n  * b\n  * c\n\n## d\n"

    def test_export_flat_tree(self, make_tree):
        assert to_markdown(make_tree({"R": ["A", "B"]})) == "# r\n\n  * a\n  * b\n"

    def test_export_empty_text(self):
        tree = doc_engine.create_tree()
        assert to_markdown(tree) == "#\n"

    def test_round_trip_structure(self, make_tree):
        tree = make_tree({"R": ["A", "E", "F"], "A": ["B", "C"], "B": ["D"], "F": ["G"]})
        parsed = from_markdown(to_markdown(tree))

        assert preorder_texts(parsed) == preorder_texts(tree)
        assert doc_engine.tree_problems(parsed) == []

    def test_round_trip_past_heading_depth(self, make_tree):
        shape = {str(level): [str(level + 1)] for level in range(8)}
        tree = make_tree(shape, root="0")
        parsed = from_markdown(to_markdown(tree))
        assert preorder_texts(parsed) == preorder_texts(tree)

    def test_export_very_deep_chain(self, make_tree):
        depth = 1200
        shape = {f"N{level}": [f"N{level + 1}"] for level in range(depth - 1)}
        tree = make_tree(shape, root="N0")
        md = to_markdown(tree)

        assert md.startswith("# n0\n")
        assert md.count("*") == depth - 6
        parsed = from_markdown(md)
        assert len(parsed.nodes) == depth
        assert preorder_texts(parsed)[-1] == (depth - 1, f"n{depth - 1}")

    def test_export_cyclic_tree(self):
        tree = DocumentTree(
            root_id="R",
            cursor_id="R",
            nodes={
                "R": Node(id="R", text="r", children_ids=("A",)),
                "A": Node(id="A", text="a", parent_id="R", children_ids=("B",)),
                "B": Node(id="B", text="b", parent_id="A", children_ids=("A", "ghost")),
            },
        )
        assert to_markdown(tree) == "# r\n\n## a\n\n### b\n"

    def test_import_nested_bullets(self):
        md = "# Plan\n\nintro text\n\n- one\n    - one.a\n- two\n1. three\n"
        tree = from_markdown(md)
        root = tree.nodes[tree.root_id]

        assert root.text == "Plan"
        assert [tree.nodes[child].text for child in root.children_ids] == ["one", "two", "three"]
        first = tree.nodes[root.children_ids[0]]
        assert [tree.nodes[child].text for child in first.children_ids] == ["one.a"]
        assert tree.cursor_id == tree.root_id

    def test_import_without_heading_fails(self):
        with pytest.raises(ValueError):
            from_markdown("just text\n- item\n")

    def test_second_top_heading_attaches_to_root(self):
        tree = from_markdown("# One\n# Two\n")
        root = tree.nodes[tree.root_id]
        assert [tree.nodes[child].text for child in root.children_ids] == ["Two"]

    def test_import_builds_valid_document(self):
        tree = from_markdown("# A\n## B\n### C\n## D\n")
        assert doc_engine.tree_problems(tree) == []
        doc = Document(id="d", tree=tree)
        assert doc_engine.add_child(doc)[0].cursor.parent_id == tree.root_id
