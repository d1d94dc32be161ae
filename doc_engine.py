"""Tree mutations for a single document.

Every function here takes a ``Document`` and returns a ``Document``. When a
precondition fails (missing node, boundary, protected root) the input object
itself is returned, so callers can test ``updated is doc`` to see whether
anything happened.
"""

from __future__ import annotations

from dataclasses import replace
import logging
from typing import Literal, Optional

from node_models import Document, DocumentTree, Node, new_id

logger = logging.getLogger(__name__)

CursorDirection = Literal["parent", "child", "next_sibling", "prev_sibling"]
SwapDirection = Literal["up", "down"]


def create_tree(text: str = "", root_id: Optional[str] = None) -> DocumentTree:
    root_id = root_id or new_id()
    root = Node(id=root_id, text=text)
    return DocumentTree(root_id=root_id, cursor_id=root_id, nodes={root_id: root})


def create_document(doc_id: Optional[str] = None, text: str = "") -> Document:
    return Document(id=doc_id or new_id(), tree=create_tree(text))


def clone_tree(tree: DocumentTree) -> DocumentTree:
    nodes = {
        node_id: Node(
            id=node.id,
            text=node.text,
            parent_id=node.parent_id,
            children_ids=tuple(node.children_ids),
        )
        for node_id, node in tree.nodes.items()
    }
    return DocumentTree(root_id=tree.root_id, cursor_id=tree.cursor_id, nodes=nodes)


def trees_equal(a: DocumentTree, b: DocumentTree) -> bool:
    if a.root_id != b.root_id or a.cursor_id != b.cursor_id:
        return False
    if len(a.nodes) != len(b.nodes):
        return False
    for node_id, left in a.nodes.items():
        right = b.nodes.get(node_id)
        if right is None:
            return False
        if (
            left.id != right.id
            or left.text != right.text
            or left.parent_id != right.parent_id
            or tuple(left.children_ids) != tuple(right.children_ids)
        ):
            return False
    return True


def tree_problems(tree: DocumentTree) -> list[str]:
    """Describe every way ``tree`` breaks the single-connected-tree rules.

    An empty list means the tree is well formed.
    """
    problems: list[str] = []
    nodes = tree.nodes
    if tree.root_id not in nodes:
        problems.append(f"root {tree.root_id!r} missing")
    if tree.cursor_id not in nodes:
        problems.append(f"cursor {tree.cursor_id!r} missing")

    roots = [node.id for node in nodes.values() if node.parent_id is None]
    if roots != [tree.root_id]:
        problems.append(f"expected single root {tree.root_id!r}, found {roots!r}")

    for node_id, node in nodes.items():
        if node.id != node_id:
            problems.append(f"node stored under {node_id!r} has id {node.id!r}")
        for child_id in node.children_ids:
            child = nodes.get(child_id)
            if child is None:
                problems.append(f"{node_id!r} lists missing child {child_id!r}")
            elif child.parent_id != node_id:
                problems.append(f"{child_id!r} listed under {node_id!r} but parent is {child.parent_id!r}")
        if len(set(node.children_ids)) != len(node.children_ids):
            problems.append(f"{node_id!r} lists a child more than once")
        if node.parent_id is not None:
            parent = nodes.get(node.parent_id)
            if parent is None:
                problems.append(f"{node_id!r} has dangling parent {node.parent_id!r}")
            elif node_id not in parent.children_ids:
                problems.append(f"{node_id!r} missing from children of {node.parent_id!r}")

        seen = {node_id}
        ancestor = node.parent_id
        while ancestor is not None and ancestor in nodes:
            if ancestor in seen:
                problems.append(f"cycle through {node_id!r}")
                break
            seen.add(ancestor)
            ancestor = nodes[ancestor].parent_id

    reachable: set[str] = set()
    stack = [tree.root_id] if tree.root_id in nodes else []
    while stack:
        current = stack.pop()
        if current in reachable or current not in nodes:
            continue
        reachable.add(current)
        stack.extend(nodes[current].children_ids)
    unreachable = set(nodes) - reachable
    if unreachable:
        problems.append(f"unreachable nodes {sorted(unreachable)!r}")
    return problems


def _with_tree(doc: Document, **changes) -> Document:
    return replace(doc, tree=replace(doc.tree, **changes))


def _sibling_context(doc: Document) -> Optional[tuple[Node, int]]:
    cursor = doc.cursor
    if cursor is None or cursor.parent_id is None:
        return None
    parent = doc.nodes.get(cursor.parent_id)
    if parent is None or cursor.id not in parent.children_ids:
        return None
    return parent, parent.children_ids.index(cursor.id)


def move_cursor(doc: Document, direction: CursorDirection) -> Document:
    cursor = doc.cursor
    if cursor is None:
        return doc

    if direction == "parent":
        if cursor.parent_id is None:
            return doc
        return _with_tree(doc, cursor_id=cursor.parent_id)

    if direction == "child":
        if not cursor.children_ids:
            return doc
        return _with_tree(doc, cursor_id=cursor.children_ids[0])

    context = _sibling_context(doc)
    if context is None:
        return doc
    parent, index = context
    target = index + 1 if direction == "next_sibling" else index - 1
    if target < 0 or target >= len(parent.children_ids):
        return doc
    return _with_tree(doc, cursor_id=parent.children_ids[target])


def select_node(doc: Document, node_id: str) -> Document:
    if node_id not in doc.nodes or node_id == doc.cursor_id:
        return doc
    return _with_tree(doc, cursor_id=node_id)


def swap_sibling(doc: Document, direction: SwapDirection) -> Document:
    # Sibling order changes are not snapshotted; see DESIGN.md.
    context = _sibling_context(doc)
    if context is None:
        return doc
    parent, index = context
    other = index - 1 if direction == "up" else index + 1
    if other < 0 or other >= len(parent.children_ids):
        return doc

    children = list(parent.children_ids)
    children[index], children[other] = children[other], children[index]
    nodes = dict(doc.nodes)
    nodes[parent.id] = replace(parent, children_ids=tuple(children))
    return _with_tree(doc, nodes=nodes)


def add_child(doc: Document, node_id: Optional[str] = None) -> tuple[Document, str]:
    cursor = doc.cursor
    if cursor is None:
        return doc, doc.cursor_id

    node_id = node_id or new_id()
    nodes = dict(doc.nodes)
    nodes[node_id] = Node(id=node_id, parent_id=cursor.id)
    nodes[cursor.id] = replace(cursor, children_ids=(*cursor.children_ids, node_id))
    return _with_tree(doc, cursor_id=node_id, nodes=nodes), node_id


def add_sibling(doc: Document, node_id: Optional[str] = None) -> tuple[Document, str]:
    cursor = doc.cursor
    if cursor is None:
        return doc, doc.cursor_id
    if cursor.parent_id is None:
        return add_child(doc, node_id)

    context = _sibling_context(doc)
    if context is None:
        return doc, doc.cursor_id
    parent, index = context

    node_id = node_id or new_id()
    children = list(parent.children_ids)
    children.insert(index + 1, node_id)
    nodes = dict(doc.nodes)
    nodes[node_id] = Node(id=node_id, parent_id=parent.id)
    nodes[parent.id] = replace(parent, children_ids=tuple(children))
    return _with_tree(doc, cursor_id=node_id, nodes=nodes), node_id


def delete_cursor_node(doc: Document) -> Document:
    """Remove the cursor node, promoting its children into its slot.

    The pre-delete tree is pushed onto the undo stack. The cursor lands on the
    first promoted child, else the node now at the deleted index, else the
    previous sibling, else the parent.
    """
    if doc.cursor_id == doc.root_id:
        logger.debug("Refusing to delete the root of %s", doc.id)
        return doc
    context = _sibling_context(doc)
    if context is None:
        return doc
    parent, index = context
    deleting = doc.nodes[doc.cursor_id]

    promoted = tuple(deleting.children_ids)
    siblings = parent.children_ids[:index] + promoted + parent.children_ids[index + 1 :]

    nodes = dict(doc.nodes)
    del nodes[deleting.id]
    nodes[parent.id] = replace(parent, children_ids=siblings)
    for child_id in promoted:
        child = nodes.get(child_id)
        if child is not None:
            nodes[child_id] = replace(child, parent_id=parent.id)

    if promoted:
        cursor_id = promoted[0]
    elif index < len(siblings):
        cursor_id = siblings[index]
    elif index > 0:
        cursor_id = siblings[index - 1]
    else:
        cursor_id = parent.id

    snapshot = clone_tree(doc.tree)
    return replace(
        doc,
        tree=replace(doc.tree, cursor_id=cursor_id, nodes=nodes),
        undo_stack=(*doc.undo_stack, snapshot),
        redo_stack=(),
    )


def set_cursor_text(doc: Document, text: str) -> Document:
    cursor = doc.cursor
    if cursor is None:
        return doc
    nodes = dict(doc.nodes)
    nodes[cursor.id] = replace(cursor, text=text)
    return _with_tree(doc, nodes=nodes)


def record_history(doc: Document, snapshot: DocumentTree) -> Document:
    return replace(doc, undo_stack=(*doc.undo_stack, snapshot), redo_stack=())


def undo(doc: Document) -> Document:
    if not doc.undo_stack:
        return doc
    previous = doc.undo_stack[-1]
    return replace(
        doc,
        tree=clone_tree(previous),
        undo_stack=doc.undo_stack[:-1],
        redo_stack=(*doc.redo_stack, clone_tree(doc.tree)),
    )


def redo(doc: Document) -> Document:
    if not doc.redo_stack:
        return doc
    following = doc.redo_stack[-1]
    return replace(
        doc,
        tree=clone_tree(following),
        redo_stack=doc.redo_stack[:-1],
        undo_stack=(*doc.undo_stack, clone_tree(doc.tree)),
    )
