"""Workspace snapshots on disk.

Only the live trees, tab order and the active pointer are stored; undo/redo
history is dropped on save. Whatever comes back from ``load_workspace`` still
has to go through ``workspace.sanitize_workspace`` before the editor uses it.
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any, Optional

from node_models import Document, DocumentTree, Node, Tab, Workspace

logger = logging.getLogger(__name__)

DEFAULT_WORKSPACE_PATH = Path("workspace.json")
DEFAULT_LOG_PATH = Path("treedit.log")
FORMAT_VERSION = 1


def get_workspace_path() -> Path:
    value = os.getenv("TREEDIT_WORKSPACE")
    return Path(value).expanduser() if value else DEFAULT_WORKSPACE_PATH


def get_log_path() -> Path:
    value = os.getenv("TREEDIT_LOG")
    return Path(value).expanduser() if value else DEFAULT_LOG_PATH


def get_log_level() -> str:
    return os.getenv("TREEDIT_LOG_LEVEL", "INFO").upper()


def _tree_to_dict(tree: DocumentTree) -> dict[str, Any]:
    return {
        "rootId": tree.root_id,
        "cursorId": tree.cursor_id,
        "nodes": {
            node_id: {
                "id": node.id,
                "text": node.text,
                "parentId": node.parent_id,
                "childrenIds": list(node.children_ids),
            }
            for node_id, node in tree.nodes.items()
        },
    }


def workspace_to_dict(ws: Workspace) -> dict[str, Any]:
    documents = {}
    for doc_id, doc in ws.documents.items():
        entry = _tree_to_dict(doc.tree)
        entry["id"] = doc.id
        documents[doc_id] = entry
    return {
        "version": FORMAT_VERSION,
        "tabs": [{"docId": tab.doc_id} for tab in ws.tabs],
        "activeDocId": ws.active_doc_id,
        "documents": documents,
    }


def _node_from_dict(node_id: str, raw: Any) -> Optional[Node]:
    if not isinstance(raw, dict):
        return None
    parent_id = raw.get("parentId")
    if parent_id is not None and not isinstance(parent_id, str):
        return None
    children = raw.get("childrenIds") or []
    if not isinstance(children, list):
        return None
    text = raw.get("text")
    return Node(
        id=node_id,
        text=text if isinstance(text, str) else "",
        parent_id=parent_id,
        children_ids=tuple(child for child in children if isinstance(child, str)),
    )


def _document_from_dict(doc_id: str, raw: Any) -> Optional[Document]:
    if not isinstance(raw, dict):
        return None
    root_id = raw.get("rootId")
    raw_nodes = raw.get("nodes")
    if not isinstance(root_id, str) or not isinstance(raw_nodes, dict):
        return None
    nodes: dict[str, Node] = {}
    for node_id, raw_node in raw_nodes.items():
        node = _node_from_dict(node_id, raw_node)
        if node is None:
            logger.warning("Skipping malformed node %r in document %r", node_id, doc_id)
            continue
        nodes[node_id] = node
    if root_id not in nodes:
        logger.warning("Document %r has no root node; dropping it", doc_id)
        return None
    cursor_id = raw.get("cursorId")
    if cursor_id not in nodes:
        cursor_id = root_id
    return Document(id=doc_id, tree=DocumentTree(root_id=root_id, cursor_id=cursor_id, nodes=nodes))


def workspace_from_dict(data: Any) -> Workspace:
    """Build a workspace from decoded JSON, skipping anything malformed."""
    if not isinstance(data, dict):
        raise ValueError("workspace snapshot must be a JSON object")
    documents: dict[str, Document] = {}
    raw_documents = data.get("documents")
    if isinstance(raw_documents, dict):
        for doc_id, raw in raw_documents.items():
            document = _document_from_dict(doc_id, raw)
            if document is not None:
                documents[doc_id] = document
    tabs = []
    raw_tabs = data.get("tabs")
    if isinstance(raw_tabs, list):
        for raw_tab in raw_tabs:
            if isinstance(raw_tab, dict) and isinstance(raw_tab.get("docId"), str):
                tabs.append(Tab(raw_tab["docId"]))
    active = data.get("activeDocId")
    return Workspace(
        tabs=tuple(tabs),
        active_doc_id=active if isinstance(active, str) else "",
        documents=documents,
    )


def load_workspace(path: Path) -> Optional[Workspace]:
    target = path.expanduser()
    if not target.exists():
        logger.info("No workspace at %s; starting empty", target)
        return None
    try:
        data = json.loads(target.read_text(encoding="utf-8"))
        workspace = workspace_from_dict(data)
    except (OSError, ValueError) as exc:
        logger.warning("Failed to load workspace %s: %s", target, exc)
        return None
    logger.info("Loaded %d document(s) from %s", len(workspace.documents), target)
    return workspace


def save_workspace(ws: Workspace, path: Path) -> Path:
    target = path.expanduser()
    target.parent.mkdir(parents=True, exist_ok=True)
    payload = json.dumps(workspace_to_dict(ws), ensure_ascii=False, indent=2)
    temp = target.with_name(target.name + ".tmp")
    try:
        temp.write_text(payload + "\n", encoding="utf-8")
        os.replace(temp, target)
    except OSError:
        temp.unlink(missing_ok=True)
        raise
    logger.debug("Saved workspace to %s", target)
    return target
