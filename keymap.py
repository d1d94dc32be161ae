"""Turn raw key presses into editor actions.

Keeps the only piece of input state the action surface cannot see: whether a
first ``d`` of the ``dd`` delete chord is waiting for its partner.
"""

from __future__ import annotations

import time
from typing import Callable, Optional

from editor_state import (
    Action,
    AddChildAndInsert,
    AddSiblingAndInsert,
    CommitInsert,
    CreateDoc,
    DeleteNode,
    EnterInsert,
    MoveCursor,
    Redo,
    RequestCloseActiveDoc,
    SwapSibling,
    SwitchDocNext,
    SwitchDocPrev,
    Undo,
)
from node_models import Mode

DELETE_CHORD_TIMEOUT = 0.6

_SPECIAL_KEYS: dict[str, Action] = {
    "left": MoveCursor("parent"),
    "right": MoveCursor("child"),
    "down": MoveCursor("next_sibling"),
    "up": MoveCursor("prev_sibling"),
    "tab": AddChildAndInsert(),
    "enter": AddSiblingAndInsert(),
    "escape": CommitInsert(),
    "ctrl+r": Redo(),
    "ctrl+t": CreateDoc(),
    "ctrl+w": RequestCloseActiveDoc(),
    "ctrl+pagedown": SwitchDocNext(),
    "ctrl+pageup": SwitchDocPrev(),
}

_CHARACTER_KEYS: dict[str, Action] = {
    "h": MoveCursor("parent"),
    "l": MoveCursor("child"),
    "j": MoveCursor("next_sibling"),
    "k": MoveCursor("prev_sibling"),
    "J": SwapSibling("down"),
    "K": SwapSibling("up"),
    "i": EnterInsert(),
    "u": Undo(),
    "]": SwitchDocNext(),
    "[": SwitchDocPrev(),
}


def key_name_and_modifiers(key_value: str) -> tuple[str, set[str]]:
    parts = key_value.split("+")
    key_name = parts[-1].lower()
    modifiers = {part.lower() for part in parts[:-1] if part}
    return key_name, modifiers


class KeyDecoder:
    """Stateful decoder for normal/insert mode shortcuts."""

    def __init__(
        self,
        chord_timeout: float = DELETE_CHORD_TIMEOUT,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._chord_timeout = chord_timeout
        self._clock = clock
        self._pending_delete_at: Optional[float] = None

    @property
    def delete_pending(self) -> bool:
        if self._pending_delete_at is None:
            return False
        return self._clock() - self._pending_delete_at <= self._chord_timeout

    def reset(self) -> None:
        self._pending_delete_at = None

    def feed(self, key: str, character: Optional[str], mode: Mode) -> tuple[bool, Optional[Action]]:
        """Return ``(handled, action)`` for one key press.

        ``handled`` is true when the key belongs to the editor even if no
        action results yet (the first ``d`` of ``dd``).
        """
        if mode == "insert":
            self.reset()
            if key in ("escape", "enter"):
                return True, CommitInsert()
            return False, None

        if key == "d":
            if self.delete_pending:
                self.reset()
                return True, DeleteNode()
            self._pending_delete_at = self._clock()
            return True, None
        self.reset()

        action = _SPECIAL_KEYS.get(key)
        if action is None and character:
            action = _CHARACTER_KEYS.get(character)
        if action is None:
            return False, None
        return True, action
