"""Tabs, the active document pointer and the two-step close protocol."""

from __future__ import annotations

from dataclasses import replace
import logging
from typing import Optional

from doc_engine import create_document as create_empty_document
from node_models import Document, EditorState, Tab, Workspace

logger = logging.getLogger(__name__)


def create_workspace(document: Optional[Document] = None) -> Workspace:
    document = document or create_empty_document()
    return Workspace(
        tabs=(Tab(document.id),),
        active_doc_id=document.id,
        documents={document.id: document},
    )


def create_document(ws: Workspace, document: Optional[Document] = None) -> Workspace:
    document = document or create_empty_document()
    documents = dict(ws.documents)
    documents[document.id] = document
    return Workspace(
        tabs=(*ws.tabs, Tab(document.id)),
        active_doc_id=document.id,
        documents=documents,
    )


def replace_document(ws: Workspace, document: Document) -> Workspace:
    documents = dict(ws.documents)
    documents[document.id] = document
    return replace(ws, documents=documents)


def set_active_document(ws: Workspace, doc_id: str) -> Workspace:
    if doc_id == ws.active_doc_id or ws.tab_index(doc_id) == -1:
        return ws
    if doc_id not in ws.documents:
        return ws
    return replace(ws, active_doc_id=doc_id)


def _cycle(ws: Workspace, step: int) -> Workspace:
    index = ws.tab_index(ws.active_doc_id)
    if index == -1:
        return ws
    target = ws.tabs[(index + step) % len(ws.tabs)]
    if target.doc_id == ws.active_doc_id:
        return ws
    return replace(ws, active_doc_id=target.doc_id)


def switch_next(ws: Workspace) -> Workspace:
    return _cycle(ws, 1)


def switch_previous(ws: Workspace) -> Workspace:
    return _cycle(ws, -1)


def close_document(ws: Workspace, doc_id: str) -> Workspace:
    """Drop ``doc_id`` with its history; the tab now at its index becomes active."""
    if len(ws.tabs) <= 1:
        return ws
    index = ws.tab_index(doc_id)
    if index == -1:
        return ws
    tabs = tuple(tab for tab in ws.tabs if tab.doc_id != doc_id)
    documents = {key: doc for key, doc in ws.documents.items() if key != doc_id}
    if doc_id == ws.active_doc_id:
        active = tabs[min(index, len(tabs) - 1)].doc_id
    else:
        active = ws.active_doc_id
    return Workspace(tabs=tabs, active_doc_id=active, documents=documents)


def request_close_active(state: EditorState) -> EditorState:
    if state.mode == "insert":
        return state
    if len(state.workspace.tabs) <= 1 or state.close_confirm_doc_id is not None:
        return state
    return replace(state, close_confirm_doc_id=state.workspace.active_doc_id)


def cancel_close(state: EditorState) -> EditorState:
    if state.close_confirm_doc_id is None:
        return state
    return replace(state, close_confirm_doc_id=None)


def confirm_close(state: EditorState) -> EditorState:
    doc_id = state.close_confirm_doc_id
    if doc_id is None or state.mode == "insert":
        return state
    workspace = close_document(state.workspace, doc_id)
    if workspace is state.workspace:
        return replace(state, close_confirm_doc_id=None)
    logger.info("Closed document %s", doc_id)
    return replace(
        state,
        workspace=workspace,
        close_confirm_doc_id=None,
        save_revision=state.save_revision + 1,
    )


def sanitize_workspace(ws: Workspace) -> Workspace:
    """Repair a loaded workspace so every tab and the active pointer resolve."""
    tabs: list[Tab] = []
    seen: set[str] = set()
    for tab in ws.tabs:
        if not tab.doc_id or tab.doc_id not in ws.documents:
            logger.warning("Dropping tab for unknown document %r", tab.doc_id)
            continue
        if tab.doc_id in seen:
            logger.warning("Dropping duplicate tab for %r", tab.doc_id)
            continue
        seen.add(tab.doc_id)
        tabs.append(tab)

    if not tabs:
        logger.warning("No usable tabs in loaded workspace; starting empty")
        return create_workspace()

    active = ws.active_doc_id if ws.active_doc_id in seen else tabs[0].doc_id
    if active != ws.active_doc_id:
        logger.info("Active document %r not found; using %r", ws.active_doc_id, active)
    orphans = set(ws.documents) - seen
    if orphans:
        logger.info("Dropping %d document(s) without a tab", len(orphans))
    documents = {tab.doc_id: ws.documents[tab.doc_id] for tab in tabs}
    return Workspace(tabs=tuple(tabs), active_doc_id=active, documents=documents)
