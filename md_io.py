import re
from typing import Dict, List, Optional, Tuple

from node_models import DocumentTree, Node, new_id


_HEADING_PATTERN = re.compile(r"^(#{1,6})(?:\s+(.*))?$")
_BULLET_PATTERN = re.compile(r"^(\s*)([-+*])(?:\s+(.*))?$")
_ORDERED_PATTERN = re.compile(r"^(\s*)(\d+)([.\)])(?:\s+(.*))?$")
_MAX_HEADING_LEVEL = 6


def _single_line(text: str) -> str:
    return " ".join(text.split())


def to_markdown(tree: DocumentTree) -> str:
    """Serialize one document tree to Markdown.

    - The root is always an H1 heading.
    - A level whose children are all leaves is written as ``*`` bullets.
    - Otherwise every child on that level becomes a heading one level deeper.
    - Past H6 the remaining subtree is written as indented bullets.
    """
    if tree.root_id not in tree.nodes:
        raise ValueError("tree has no root node")

    lines: List[str] = []
    root = tree.nodes[tree.root_id]
    visited = {root.id}

    def children_of(node: Node) -> List[Node]:
        # Missing ids and repeats are skipped so damaged trees still export.
        children = []
        for child_id in node.children_ids:
            if child_id in tree.nodes and child_id not in visited:
                visited.add(child_id)
                children.append(tree.nodes[child_id])
        return children

    def write_heading(node: Node, level: int) -> None:
        # Exactly one blank line before every heading except the first.
        while lines and lines[-1] == "":
            lines.pop()
        if lines:
            lines.append("")
        lines.append(f"{'#' * level} {_single_line(node.text)}".rstrip())

    # Frames are (is_bullet, node, depth): heading level for headings,
    # nesting for bullets.
    stack: List[Tuple[bool, Node, int]] = [(False, root, 1)]
    while stack:
        is_bullet, node, depth = stack.pop()
        if is_bullet:
            lines.append(f"{'  ' * (depth + 1)}* {_single_line(node.text)}".rstrip())
            stack.extend((True, child, depth + 1) for child in reversed(children_of(node)))
            continue

        write_heading(node, depth)
        children = children_of(node)
        if not children:
            continue
        level = depth + 1
        has_internal = any(child.children_ids for child in children)
        if not has_internal or level > _MAX_HEADING_LEVEL:
            if lines[-1] != "":
                lines.append("")
            stack.extend((True, child, 0) for child in reversed(children))
        else:
            stack.extend((False, child, level) for child in reversed(children))

    while lines and lines[-1] == "":
        lines.pop()
    return "\n".join(lines) + "\n"


def _match_list_item(line: str) -> Optional[Tuple[int, str]]:
    """Return (indent, text) for a bullet or ordered list item, or None."""
    bullet_match = _BULLET_PATTERN.match(line)
    if bullet_match:
        indent = len(bullet_match.group(1).replace("\t", "    "))
        return indent, (bullet_match.group(3) or "").rstrip()

    ordered_match = _ORDERED_PATTERN.match(line)
    if ordered_match:
        indent = len(ordered_match.group(1).replace("\t", "    "))
        return indent, (ordered_match.group(4) or "").rstrip()

    return None


def from_markdown(md: str) -> DocumentTree:
    """Parse Markdown headings and list items into a fresh document tree.

    The first heading becomes the root. Later headings nest by level, list
    items nest by indentation under the heading above them. Anything else is
    ignored.
    """
    texts: Dict[str, str] = {}
    parents: Dict[str, Optional[str]] = {}
    children: Dict[str, List[str]] = {}
    root_id: Optional[str] = None

    def make_node(text: str, parent_id: Optional[str]) -> str:
        node_id = new_id()
        texts[node_id] = text
        parents[node_id] = parent_id
        children[node_id] = []
        if parent_id is not None:
            children[parent_id].append(node_id)
        return node_id

    heading_stack: List[Tuple[int, str]] = []
    list_stack: List[Tuple[int, str]] = []

    for line in md.splitlines():
        heading_match = _HEADING_PATTERN.match(line)
        if heading_match:
            level = len(heading_match.group(1))
            title = (heading_match.group(2) or "").strip()
            list_stack = []
            if root_id is None:
                root_id = make_node(title, None)
                heading_stack = [(level, root_id)]
                continue
            while len(heading_stack) > 1 and heading_stack[-1][0] >= level:
                heading_stack.pop()
            node_id = make_node(title, heading_stack[-1][1])
            heading_stack.append((level, node_id))
            continue

        item = _match_list_item(line)
        if item is None or root_id is None:
            continue
        indent, text = item
        while list_stack and indent <= list_stack[-1][0]:
            list_stack.pop()
        parent_id = list_stack[-1][1] if list_stack else heading_stack[-1][1]
        list_stack.append((indent, make_node(text, parent_id)))

    if root_id is None:
        raise ValueError("No root heading found in Markdown")

    nodes = {
        node_id: Node(
            id=node_id,
            text=texts[node_id],
            parent_id=parents[node_id],
            children_ids=tuple(children[node_id]),
        )
        for node_id in texts
    }
    return DocumentTree(root_id=root_id, cursor_id=root_id, nodes=nodes)
