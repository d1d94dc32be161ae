from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal, Mapping, Optional
from uuid import uuid4


Mode = Literal["normal", "insert"]


def new_id() -> str:
    return uuid4().hex


@dataclass(frozen=True)
class Node:
    id: str
    text: str = ""
    # None only for the root.
    parent_id: Optional[str] = None
    # Order is sibling order and drives rendering top-to-bottom.
    children_ids: tuple[str, ...] = ()


@dataclass(frozen=True)
class DocumentTree:
    """Structural state of one document; the unit captured by undo/redo."""

    root_id: str
    cursor_id: str
    nodes: Mapping[str, Node] = field(default_factory=dict)


@dataclass(frozen=True)
class Document:
    id: str
    tree: DocumentTree
    undo_stack: tuple[DocumentTree, ...] = ()
    redo_stack: tuple[DocumentTree, ...] = ()

    @property
    def root_id(self) -> str:
        return self.tree.root_id

    @property
    def cursor_id(self) -> str:
        return self.tree.cursor_id

    @property
    def nodes(self) -> Mapping[str, Node]:
        return self.tree.nodes

    @property
    def cursor(self) -> Optional[Node]:
        return self.tree.nodes.get(self.tree.cursor_id)


@dataclass(frozen=True)
class Tab:
    doc_id: str


@dataclass(frozen=True)
class Workspace:
    tabs: tuple[Tab, ...]
    active_doc_id: str
    documents: Mapping[str, Document] = field(default_factory=dict)

    @property
    def active_document(self) -> Optional[Document]:
        return self.documents.get(self.active_doc_id)

    def tab_index(self, doc_id: str) -> int:
        for index, tab in enumerate(self.tabs):
            if tab.doc_id == doc_id:
                return index
        return -1


@dataclass(frozen=True)
class InsertOrigin:
    doc_id: str
    snapshot: DocumentTree


@dataclass(frozen=True)
class EditorState:
    """Everything the action surface reads and writes, passed explicitly."""

    workspace: Workspace
    mode: Mode = "normal"
    insert_origin: Optional[InsertOrigin] = None
    hydrated: bool = False
    # Bumped whenever the persisted part of the workspace changes.
    save_revision: int = 0
    close_confirm_doc_id: Optional[str] = None
