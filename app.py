from __future__ import annotations

import logging
from pathlib import Path
import re
import sys
from typing import Optional

from textual import events
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import ScrollableContainer, Vertical
from textual.message import Message
from textual.screen import ModalScreen
from textual.widgets import Footer, Header, Static
from rich.text import Text

from editor_state import (
    Action,
    CancelCloseConfirm,
    CommitInsert,
    ConfirmCloseDoc,
    FinishHydration,
    ImportDocument,
    SelectNode,
    SetActiveDoc,
    SetCursorText,
    create_initial_state,
    reduce,
)
from keymap import KeyDecoder, key_name_and_modifiers
from layout import LayoutMetrics, compute_layout, layout_edges
from md_io import from_markdown, to_markdown
from node_models import Document, Mode
from ws_io import get_log_level, get_log_path, get_workspace_path, load_workspace, save_workspace

logger = logging.getLogger(__name__)

CELL_METRICS = LayoutMetrics(node_width=20, node_height=1, h_gap=6, v_gap=0, padding_x=1, padding_y=0)
NODE_STYLE = "on grey23"
CURSOR_STYLE = "bold black on #0ea5e9"
INSERT_STYLE = "bold black on #facc15"
EDGE_STYLE = "grey50"
EMPTY_LABEL = "·"
CARET = "▌"
TAB_SEPARATOR = " │ "

_BOX_CHARS = {
    frozenset("ew"): "─",
    frozenset("e"): "─",
    frozenset("w"): "─",
    frozenset("ns"): "│",
    frozenset("n"): "│",
    frozenset("s"): "│",
    frozenset("se"): "╭",
    frozenset("ne"): "╰",
    frozenset("sw"): "╮",
    frozenset("nw"): "╯",
    frozenset("nse"): "├",
    frozenset("nsw"): "┤",
    frozenset("ews"): "┬",
    frozenset("ewn"): "┴",
    frozenset("nsew"): "┼",
}


def _edge_cells(start: tuple[int, int], mid_col: int, end: tuple[int, int]) -> list[tuple[int, int]]:
    start_row, start_col = start
    end_row, end_col = end
    cells = [(start_row, col) for col in range(start_col, mid_col + 1)]
    if end_row != start_row:
        step = 1 if end_row > start_row else -1
        cells.extend((row, mid_col) for row in range(start_row + step, end_row + step, step))
    cells.extend((end_row, col) for col in range(mid_col + 1, end_col + 1))
    return cells


def _node_label(text: str, width: int, caret: Optional[int] = None) -> str:
    inner = width - 2
    if caret is None:
        label = " ".join(text.split()) or EMPTY_LABEL
        if len(label) > inner:
            label = label[: inner - 1] + "…"
        return f" {label.ljust(inner)} "
    caret = max(0, min(caret, len(text)))
    edited = text[:caret] + CARET + text[caret:]
    # Keep the caret in view for long text.
    start = max(0, caret + 1 - inner)
    return f" {edited[start : start + inner].ljust(inner)} "


def render_canvas(
    doc: Document,
    mode: Mode = "normal",
    caret: Optional[int] = None,
    metrics: LayoutMetrics = CELL_METRICS,
) -> Text:
    """Draw every node box and elbow edge of ``doc`` into a Rich ``Text``."""
    layout = compute_layout(doc.tree, metrics)
    width = int(layout.content_width)
    height = max(1, int(layout.content_height))
    chars = [[" "] * width for _ in range(height)]
    styles: list[list[Optional[str]]] = [[None] * width for _ in range(height)]

    links: dict[tuple[int, int], set[str]] = {}
    for _, _, curve in layout_edges(doc.tree, layout, metrics):
        start = (int(curve.start[1] - metrics.node_height / 2), int(curve.start[0]))
        end = (int(curve.end[1] - metrics.node_height / 2), int(curve.end[0]) - 1)
        cells = _edge_cells(start, int(curve.control1[0]), end)
        links.setdefault(cells[0], set()).add("w")
        links.setdefault(cells[-1], set()).add("e")
        for (row_a, col_a), (row_b, col_b) in zip(cells, cells[1:]):
            if row_b > row_a:
                forward, backward = "s", "n"
            elif row_b < row_a:
                forward, backward = "n", "s"
            else:
                forward, backward = "e", "w"
            links.setdefault((row_a, col_a), set()).add(forward)
            links.setdefault((row_b, col_b), set()).add(backward)
    for (row, col), directions in links.items():
        if 0 <= row < height and 0 <= col < width:
            chars[row][col] = _BOX_CHARS.get(frozenset(directions), "┼")
            styles[row][col] = EDGE_STYLE

    node_width = int(metrics.node_width)
    for node_id, position in layout.positions.items():
        row, col = int(position.y), int(position.x)
        is_cursor = node_id == doc.cursor_id
        editing = is_cursor and mode == "insert"
        label = _node_label(doc.nodes[node_id].text, node_width, caret if editing else None)
        if editing:
            style = INSERT_STYLE
        elif is_cursor:
            style = CURSOR_STYLE
        else:
            style = NODE_STYLE
        for offset, character in enumerate(label):
            if 0 <= row < height and 0 <= col + offset < width:
                chars[row][col + offset] = character
                styles[row][col + offset] = style

    canvas = Text(no_wrap=True)
    for row in range(height):
        if row:
            canvas.append("\n")
        run_style = styles[row][0]
        run: list[str] = []
        for col in range(width):
            if styles[row][col] != run_style:
                canvas.append("".join(run), style=run_style or "")
                run, run_style = [], styles[row][col]
            run.append(chars[row][col])
        canvas.append("".join(run).rstrip() if run_style is None else "".join(run), style=run_style or "")
    return canvas


def node_at(doc: Document, column: int, row: int, metrics: LayoutMetrics = CELL_METRICS) -> Optional[str]:
    """Return the id of the node box drawn at ``(column, row)``, if any."""
    layout = compute_layout(doc.tree, metrics)
    for node_id, position in layout.positions.items():
        left = int(position.x)
        if int(position.y) == row and left <= column < left + int(metrics.node_width):
            return node_id
    return None


def _slug(text: str) -> str:
    slug = re.sub(r"[^A-Za-z0-9]+", "-", text).strip("-").lower()
    return slug or "outline"


class ConfirmCloseScreen(ModalScreen[bool]):
    """Asks before a tab and its history are thrown away."""

    DEFAULT_CSS = """
    ConfirmCloseScreen {
        align: center middle;
    }

    #confirm-close-panel {
        width: 44;
        height: auto;
        background: $panel;
        border: round $warning;
        padding: 1 2;
    }

    #confirm-close-title {
        content-align: center middle;
        text-style: bold;
        padding-bottom: 1;
    }
    """

    def __init__(self, title: str) -> None:
        super().__init__()
        self._title = title

    def compose(self) -> ComposeResult:
        with Vertical(id="confirm-close-panel"):
            yield Static(f"Close '{self._title}'?", id="confirm-close-title")
            yield Static("Undo history is lost. y = close, n / Esc = keep")

    def on_key(self, event: events.Key) -> None:
        event.stop()
        if event.character in ("y", "Y"):
            self.dismiss(True)
        elif event.character in ("n", "N") or event.key == "escape":
            self.dismiss(False)


class OutlineCanvas(Static):
    """Static canvas that reports which cell was clicked."""

    class Clicked(Message):
        def __init__(self, column: int, row: int) -> None:
            super().__init__()
            self.column = column
            self.row = row

    def on_click(self, event: events.Click) -> None:
        event.stop()
        self.post_message(self.Clicked(event.x, event.y))


class TabBar(Static):
    class Clicked(Message):
        def __init__(self, column: int) -> None:
            super().__init__()
            self.column = column

    def on_click(self, event: events.Click) -> None:
        event.stop()
        self.post_message(self.Clicked(event.x))


class TreeditApp(App[None]):
    """Modal outline editor with tabs and per-document undo."""

    TITLE = "treedit"

    CSS = """
    #tab-bar {
        height: 1;
        background: $boost;
    }
    #canvas-scroll {
        height: 1fr;
        overflow: auto auto;
    }
    #outline-canvas {
        width: auto;
        height: auto;
    }
    """

    BINDINGS = [
        Binding("ctrl+q", "quit", "Quit"),
        Binding("ctrl+s", "save", "Save"),
        Binding("ctrl+e", "export_markdown", "Export MD"),
        Binding("h,j,k,l", "noop", "Move", key_display="hjkl"),
        Binding("tab", "noop", "Child"),
        Binding("enter", "noop", "Sibling"),
        Binding("i", "noop", "Edit"),
        Binding("d", "noop", "dd Delete"),
        Binding("u", "noop", "Undo"),
        Binding("ctrl+t", "noop", "New tab"),
    ]

    def __init__(
        self,
        workspace_path: str | Path | None = None,
        import_path: str | Path | None = None,
    ) -> None:
        super().__init__()
        self.title = "treedit"
        self.state = create_initial_state()
        self._decoder = KeyDecoder()
        self._caret = 0
        self._saved_revision = 0
        self._workspace_path = Path(workspace_path).expanduser() if workspace_path else get_workspace_path()
        self._import_path: Optional[Path] = Path(import_path).expanduser() if import_path else None
        self._view_ready = False

    def compose(self) -> ComposeResult:
        yield Header(show_clock=True)
        yield TabBar(id="tab-bar")
        with ScrollableContainer(id="canvas-scroll"):
            yield OutlineCanvas(id="outline-canvas")
        yield Footer()

    def on_mount(self) -> None:
        self._view_ready = True
        self.dispatch_action(FinishHydration(load_workspace(self._workspace_path)))
        if self._import_path is not None:
            self._import_markdown(self._import_path)
        self.refresh_view()

    @property
    def active_document(self) -> Document:
        document = self.state.workspace.active_document
        if document is None:
            raise RuntimeError("Workspace has no active document")
        return document

    def dispatch_action(self, action: Action, *, status: str | None = None) -> bool:
        previous = self.state
        self.state = reduce(previous, action)
        changed = self.state is not previous
        logger.debug("%s -> %s", type(action).__name__, "applied" if changed else "ignored")

        if self.state.mode == "insert" and previous.mode == "normal":
            cursor = self.active_document.cursor
            self._caret = len(cursor.text) if cursor else 0
        if self.state.close_confirm_doc_id is not None and previous.close_confirm_doc_id is None:
            self.push_screen(ConfirmCloseScreen(self._document_title(self.active_document)), self._on_close_answer)
        if self.state.save_revision != self._saved_revision:
            self._autosave()
        self.refresh_view(status)
        return changed

    def _on_close_answer(self, confirmed: bool | None) -> None:
        if confirmed:
            self.dispatch_action(ConfirmCloseDoc(), status="Tab closed.")
        else:
            self.dispatch_action(CancelCloseConfirm(), status="Close cancelled.")

    async def on_event(self, event: events.Event) -> None:
        if isinstance(event, events.Key) and self.state.hydrated and self.state.close_confirm_doc_id is None:
            handled, action = self._decoder.feed(event.key, event.character, self.state.mode)
            if action is not None:
                changed = self.dispatch_action(action)
                if not changed and self.state.mode == "normal" and not isinstance(action, CommitInsert):
                    self.bell()
                event.stop()
                return
            _, modifiers = key_name_and_modifiers(event.key or "")
            if self.state.mode == "insert" and "ctrl" not in modifiers:
                self._handle_edit_key(event)
                event.stop()
                return
            if handled:
                self.refresh_view("d…")
                event.stop()
                return
        await super().on_event(event)

    def _handle_edit_key(self, event: events.Key) -> None:
        cursor = self.active_document.cursor
        if cursor is None:
            return
        text_value = cursor.text
        caret = max(0, min(self._caret, len(text_value)))
        key_name, _ = key_name_and_modifiers(event.key or "")

        if key_name == "backspace":
            if caret == 0:
                return
            self._caret = caret - 1
            self.dispatch_action(SetCursorText(text_value[: caret - 1] + text_value[caret:]))
            return
        if key_name == "delete":
            if caret >= len(text_value):
                return
            self.dispatch_action(SetCursorText(text_value[:caret] + text_value[caret + 1 :]))
            return
        if key_name in {"left", "right", "home", "end"}:
            if key_name == "home":
                self._caret = 0
            elif key_name == "end":
                self._caret = len(text_value)
            else:
                self._caret = max(0, min(len(text_value), caret + (-1 if key_name == "left" else 1)))
            self.refresh_view()
            return
        character = event.character
        if event.is_printable and character and len(character) == 1:
            self._caret = caret + 1
            self.dispatch_action(SetCursorText(text_value[:caret] + character + text_value[caret:]))

    def _document_title(self, document: Document) -> str:
        root = document.nodes.get(document.root_id)
        return (root.text.strip() if root else "") or "untitled"

    def _tab_labels(self) -> list[tuple[str, str]]:
        workspace = self.state.workspace
        labels = []
        for tab in workspace.tabs:
            document = workspace.documents.get(tab.doc_id)
            if document is None:
                continue
            labels.append((tab.doc_id, f" {len(labels) + 1}:{self._document_title(document)[:20]} "))
        return labels

    def _tab_at(self, column: int) -> Optional[str]:
        start = 0
        for doc_id, label in self._tab_labels():
            if start <= column < start + len(label):
                return doc_id
            start += len(label) + len(TAB_SEPARATOR)
        return None

    def _render_tab_bar(self) -> Text:
        active_doc_id = self.state.workspace.active_doc_id
        bar = Text(no_wrap=True)
        for index, (doc_id, label) in enumerate(self._tab_labels()):
            if index:
                bar.append(TAB_SEPARATOR, style="dim")
            bar.append(label, style="bold reverse" if doc_id == active_doc_id else "")
        return bar

    def on_outline_canvas_clicked(self, message: OutlineCanvas.Clicked) -> None:
        if self.state.mode != "normal":
            return
        node_id = node_at(self.active_document, message.column, message.row)
        if node_id is not None:
            self._decoder.reset()
            self.dispatch_action(SelectNode(node_id))

    def on_tab_bar_clicked(self, message: TabBar.Clicked) -> None:
        if self.state.mode != "normal":
            return
        doc_id = self._tab_at(message.column)
        if doc_id is not None:
            self.dispatch_action(SetActiveDoc(doc_id))

    def refresh_view(self, message: str | None = None) -> None:
        if not self._view_ready:
            return
        document = self.active_document
        self.query_one("#tab-bar", TabBar).update(self._render_tab_bar())
        self.query_one("#outline-canvas", OutlineCanvas).update(
            render_canvas(document, self.state.mode, self._caret)
        )
        self._scroll_to_cursor(document)
        self.show_status(message)

    def _scroll_to_cursor(self, document: Document) -> None:
        layout = compute_layout(document.tree, CELL_METRICS)
        position = layout.positions.get(document.cursor_id)
        if position is None:
            return
        scroll = self.query_one("#canvas-scroll", ScrollableContainer)
        target_x = max(0, int(position.x) - scroll.size.width // 3)
        target_y = max(0, int(position.y) - scroll.size.height // 2)
        scroll.scroll_to(x=target_x, y=target_y, animate=False)

    def show_status(self, message: str | None = None) -> None:
        document = self.active_document
        mode_label = self.state.mode.upper()
        history = f"undo {len(document.undo_stack)} · redo {len(document.redo_stack)}"
        composed = f"{mode_label} · {history}"
        if message:
            composed = f"{composed} · {message}"
        self.sub_title = composed

    def _autosave(self) -> None:
        try:
            save_workspace(self.state.workspace, self._workspace_path)
        except OSError as exc:
            logger.exception("Autosave to %s failed", self._workspace_path)
            self.bell()
            self.show_status(f"Failed to save {self._workspace_path}: {exc}")
            return
        self._saved_revision = self.state.save_revision

    def _import_markdown(self, path: Path) -> bool:
        target = path.expanduser()
        try:
            tree = from_markdown(target.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            logger.warning("Import of %s failed: %s", target, exc)
            self.bell()
            self.show_status(f"Failed to import {target}: {exc}")
            return False
        self.dispatch_action(ImportDocument(tree), status=f"Imported {target}")
        return True

    def action_noop(self) -> None:
        """Placeholder so the footer can list the modal keys."""

    def action_save(self) -> None:
        if self.state.mode == "insert":
            self.dispatch_action(CommitInsert())
        try:
            path = save_workspace(self.state.workspace, self._workspace_path)
        except OSError as exc:
            self.bell()
            self.show_status(f"Failed to save {self._workspace_path}: {exc}")
            return
        self._saved_revision = self.state.save_revision
        self.show_status(f"Saved to {path}")

    def action_export_markdown(self) -> None:
        document = self.active_document
        path = self._workspace_path.with_name(f"{_slug(self._document_title(document))}.md")
        try:
            path.write_text(to_markdown(document.tree), encoding="utf-8")
        except (OSError, ValueError) as exc:
            self.bell()
            self.show_status(f"Failed to export {path}: {exc}")
            return
        self.show_status(f"Exported to {path}")


def main(argv: list[str] | None = None) -> None:
    args = sys.argv[1:] if argv is None else argv
    logging.basicConfig(
        filename=get_log_path(),
        level=get_log_level(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    workspace_path: Optional[str] = None
    import_path: Optional[str] = None
    if args:
        if args[0].lower().endswith((".md", ".markdown")):
            import_path = args[0]
        else:
            workspace_path = args[0]
    TreeditApp(workspace_path, import_path).run()


if __name__ == "__main__":
    main()
