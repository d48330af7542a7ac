"""CommandMap: the routing trie for command paths.

Each node is keyed by one whitespace-delimited path segment and holds the
commands registered at exactly that path (a primary name and any aliases
that collide with it) plus child nodes for longer paths. Segment lookup
is case-insensitive; names keep the casing they were first registered
with.

Key classes:
    CommandMap: One node of the trie. The root has an empty name.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Dict, List, Optional, Sequence, Tuple

from ..exceptions import RegistrationError, ServiceLockedError

if TYPE_CHECKING:
    from ..events import Channel, User
    from .command import Command


class CommandMap:
    """A node in the command routing trie.

    Args:
        parent: Parent node, None for a root.
        name: Path segment this node is reached by.
        full_name: Space-joined segments from the root to this node.
    """

    def __init__(
        self,
        parent: Optional["CommandMap"] = None,
        name: str = "",
        full_name: str = "",
    ):
        self._parent = parent
        self._name = name
        self._full_name = full_name
        self._commands: List["Command"] = []
        self._items: Dict[str, CommandMap] = {}
        self._is_visible = False
        self._has_non_aliases = False
        self._locked = False

    @property
    def parent(self) -> Optional["CommandMap"]:
        return self._parent

    @property
    def name(self) -> str:
        return self._name

    @property
    def full_name(self) -> str:
        return self._full_name

    @property
    def commands(self) -> Tuple["Command", ...]:
        """Commands registered at this exact path, in registration order."""
        return tuple(self._commands)

    @property
    def sub_groups(self) -> Tuple["CommandMap", ...]:
        """Direct children, in insertion order."""
        return tuple(self._items.values())

    @property
    def is_visible(self) -> bool:
        return self._is_visible

    @property
    def has_non_aliases(self) -> bool:
        return self._has_non_aliases

    @property
    def has_sub_groups(self) -> bool:
        return bool(self._items)

    @property
    def is_locked(self) -> bool:
        return self._locked

    def lock(self) -> None:
        """Freeze this node and all descendants against further registration."""
        self._locked = True
        for item in self._items.values():
            item.lock()

    def get_map(self, segment: str) -> Optional["CommandMap"]:
        """Direct child reached by ``segment``, or None."""
        return self._items.get(segment.lower())

    def get_item(self, text: str) -> Optional["CommandMap"]:
        """Node at the full whitespace-separated path ``text``, or None."""
        node: Optional[CommandMap] = self
        for segment in text.split():
            node = node.get_map(segment)
            if node is None:
                return None
        return node

    def get_commands(self, text: str) -> Tuple["Command", ...]:
        """Commands registered at ``text``; empty if the path is unknown."""
        node = self.get_item(text)
        return node.commands if node is not None else ()

    def add_command(self, text: str, command: "Command", is_alias: bool) -> None:
        """Register ``command`` at the path ``text``.

        Creates missing nodes along the way. A command already present at
        the terminal node is not added twice.
        """
        parts = text.split()
        if not parts:
            raise RegistrationError("Command text may not be empty", command=text)
        self._add(0, parts, command, is_alias)

    def _add(
        self, index: int, parts: Sequence[str], command: "Command", is_alias: bool
    ) -> None:
        if self._locked:
            raise ServiceLockedError(command=command.text)
        if not command.is_hidden:
            self._is_visible = True

        if index == len(parts):
            if not any(existing is command for existing in self._commands):
                self._commands.append(command)
            if not is_alias:
                self._has_non_aliases = True
            return

        segment = parts[index]
        key = segment.lower()
        item = self._items.get(key)
        if item is None:
            item = CommandMap(self, segment, " ".join(parts[: index + 1]))
            self._items[key] = item
        item._add(index + 1, parts, command, is_alias)

    def can_run(
        self, user: Optional["User"], channel: Optional["Channel"]
    ) -> Tuple[bool, Optional[str]]:
        """Whether any command at or below this node can run.

        Returns the reason from the last denial when nothing can run.
        """
        reason: Optional[str] = None
        for command in self._commands:
            allowed, reason = command.can_run(user, channel)
            if allowed:
                return True, None
        for item in self._items.values():
            allowed, reason = item.can_run(user, channel)
            if allowed:
                return True, None
        return False, reason

    def __repr__(self) -> str:
        return (
            f"CommandMap(full_name={self._full_name!r}, "
            f"commands={len(self._commands)}, sub_groups={len(self._items)})"
        )
