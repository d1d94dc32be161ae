"""Action surface of the editor.

``reduce`` is the single entry point: it takes the whole ``EditorState`` plus
one action and returns the next state. Mode and the insert origin live on the
state value, never in module globals.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
import logging
from typing import Callable, Optional, Union

import doc_engine
from doc_engine import CursorDirection, SwapDirection
import workspace as ws_ops
from node_models import Document, DocumentTree, EditorState, InsertOrigin, Workspace, new_id

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FinishHydration:
    workspace: Optional[Workspace]


@dataclass(frozen=True)
class SetActiveDoc:
    doc_id: str


@dataclass(frozen=True)
class SwitchDocNext:
    pass


@dataclass(frozen=True)
class SwitchDocPrev:
    pass


@dataclass(frozen=True)
class CreateDoc:
    pass


@dataclass(frozen=True)
class ImportDocument:
    tree: DocumentTree


@dataclass(frozen=True)
class RequestCloseActiveDoc:
    pass


@dataclass(frozen=True)
class CancelCloseConfirm:
    pass


@dataclass(frozen=True)
class ConfirmCloseDoc:
    pass


@dataclass(frozen=True)
class DeleteNode:
    pass


@dataclass(frozen=True)
class SelectNode:
    node_id: str


@dataclass(frozen=True)
class MoveCursor:
    direction: CursorDirection


@dataclass(frozen=True)
class SwapSibling:
    direction: SwapDirection


@dataclass(frozen=True)
class EnterInsert:
    pass


@dataclass(frozen=True)
class AddChildAndInsert:
    pass


@dataclass(frozen=True)
class AddSiblingAndInsert:
    pass


@dataclass(frozen=True)
class SetCursorText:
    text: str


@dataclass(frozen=True)
class CommitInsert:
    pass


@dataclass(frozen=True)
class Undo:
    pass


@dataclass(frozen=True)
class Redo:
    pass


Action = Union[
    FinishHydration,
    SetActiveDoc,
    SwitchDocNext,
    SwitchDocPrev,
    CreateDoc,
    ImportDocument,
    RequestCloseActiveDoc,
    CancelCloseConfirm,
    ConfirmCloseDoc,
    DeleteNode,
    SelectNode,
    MoveCursor,
    SwapSibling,
    EnterInsert,
    AddChildAndInsert,
    AddSiblingAndInsert,
    SetCursorText,
    CommitInsert,
    Undo,
    Redo,
]


def create_initial_state() -> EditorState:
    return EditorState(workspace=ws_ops.create_workspace())


def _bump(state: EditorState) -> EditorState:
    return replace(state, save_revision=state.save_revision + 1)


def _update_active_doc(state: EditorState, updater: Callable[[Document], Document]) -> EditorState:
    current = state.workspace.active_document
    if current is None:
        return state
    updated = updater(current)
    if updated is current:
        return state
    return replace(state, workspace=ws_ops.replace_document(state.workspace, updated))


def _with_workspace(state: EditorState, workspace: Workspace) -> EditorState:
    if workspace is state.workspace:
        return state
    return _bump(replace(state, workspace=workspace))


def _persisting(state: EditorState, next_state: EditorState) -> EditorState:
    return state if next_state is state else _bump(next_state)


def _add_and_insert(state: EditorState, add: Callable[[Document], tuple[Document, str]]) -> EditorState:
    doc = state.workspace.active_document
    if doc is None:
        return state
    origin = InsertOrigin(doc_id=doc.id, snapshot=doc_engine.clone_tree(doc.tree))
    added = _update_active_doc(state, lambda current: add(current)[0])
    return _bump(replace(added, mode="insert", insert_origin=origin))


def _commit_insert(state: EditorState) -> EditorState:
    origin = state.insert_origin
    normal = replace(state, mode="normal", insert_origin=None)
    doc = state.workspace.active_document
    if origin is None or doc is None or origin.doc_id != doc.id:
        return normal
    if doc_engine.trees_equal(origin.snapshot, doc.tree):
        return normal
    committed = _update_active_doc(normal, lambda current: doc_engine.record_history(current, origin.snapshot))
    return _bump(committed)


def _hydrate(state: EditorState, loaded: Optional[Workspace]) -> EditorState:
    if state.hydrated:
        return state
    if loaded is None:
        return replace(state, hydrated=True)
    return replace(
        state,
        hydrated=True,
        mode="normal",
        insert_origin=None,
        close_confirm_doc_id=None,
        workspace=ws_ops.sanitize_workspace(loaded),
    )


_ALLOWED_IN_INSERT = (SetCursorText, CommitInsert, CancelCloseConfirm, FinishHydration)


def reduce(state: EditorState, action: Action) -> EditorState:
    if state.mode == "insert" and not isinstance(action, _ALLOWED_IN_INSERT):
        logger.debug("Ignoring %s while in insert mode", type(action).__name__)
        return state

    match action:
        case FinishHydration(workspace=loaded):
            return _hydrate(state, loaded)
        case SetActiveDoc(doc_id=doc_id):
            return _with_workspace(state, ws_ops.set_active_document(state.workspace, doc_id))
        case SwitchDocNext():
            return _with_workspace(state, ws_ops.switch_next(state.workspace))
        case SwitchDocPrev():
            return _with_workspace(state, ws_ops.switch_previous(state.workspace))
        case CreateDoc():
            return _with_workspace(state, ws_ops.create_document(state.workspace))
        case ImportDocument(tree=tree):
            imported = Document(id=new_id(), tree=doc_engine.clone_tree(tree))
            return _with_workspace(state, ws_ops.create_document(state.workspace, imported))
        case RequestCloseActiveDoc():
            return ws_ops.request_close_active(state)
        case CancelCloseConfirm():
            return ws_ops.cancel_close(state)
        case ConfirmCloseDoc():
            return ws_ops.confirm_close(state)
        case DeleteNode():
            return _persisting(state, _update_active_doc(state, doc_engine.delete_cursor_node))
        case SelectNode(node_id=node_id):
            return _persisting(state, _update_active_doc(state, lambda doc: doc_engine.select_node(doc, node_id)))
        case MoveCursor(direction=direction):
            return _persisting(state, _update_active_doc(state, lambda doc: doc_engine.move_cursor(doc, direction)))
        case SwapSibling(direction=direction):
            return _persisting(state, _update_active_doc(state, lambda doc: doc_engine.swap_sibling(doc, direction)))
        case EnterInsert():
            doc = state.workspace.active_document
            if doc is None:
                return state
            origin = InsertOrigin(doc_id=doc.id, snapshot=doc_engine.clone_tree(doc.tree))
            return replace(state, mode="insert", insert_origin=origin)
        case AddChildAndInsert():
            return _add_and_insert(state, doc_engine.add_child)
        case AddSiblingAndInsert():
            return _add_and_insert(state, doc_engine.add_sibling)
        case SetCursorText(text=text):
            if state.mode != "insert":
                return state
            return _update_active_doc(state, lambda doc: doc_engine.set_cursor_text(doc, text))
        case CommitInsert():
            if state.mode != "insert":
                return state
            return _commit_insert(state)
        case Undo():
            return _persisting(state, _update_active_doc(state, doc_engine.undo))
        case Redo():
            return _persisting(state, _update_active_doc(state, doc_engine.redo))
        case _:
            logger.warning("Unhandled action %r", action)
            return state
