"""Depth-first enter/leave walk with in-place replacement and subtree skip."""

from __future__ import annotations

from typing import Any, Callable, List, Optional

from lark.visitors import Discard

from .tree import ChildKeys, Node, get_field, is_node, node_type, set_field

Visit = Callable[[Node, Optional[Node]], Any]


class Controller:
    """
    Drives one walk. ``enter`` runs before a node's children and ``leave``
    after them; a returned node replaces the node in its parent, ``Discard``
    removes it, and any other non-None value raises ``TypeError``.
    """

    def __init__(self, keys: Optional[ChildKeys] = None):
        self.keys = keys or ChildKeys()
        self._enter: Optional[Visit] = None
        self._leave: Optional[Visit] = None
        self._skip = False

    def traverse(self, root: Node, enter: Optional[Visit] = None, leave: Optional[Visit] = None) -> Node:
        self._enter = enter
        self._leave = leave
        self._skip = False

        result = self.visit(root, None)
        if result is Discard:
            raise ValueError("the root node cannot be discarded")

        return result

    def skip(self) -> None:
        """Do not descend into the node whose enter callback is running."""
        self._skip = True

    def visit(self, node: Node, parent: Optional[Node]) -> Any:
        """Walk ``node`` and its subtree; returns its replacement or ``Discard``.

        Safe to call from inside an enter/leave callback to force a walk of
        some other part of the tree before the current step continues.
        """
        outer_skip = self._skip
        self._skip = False

        if self._enter is not None:
            result = self._enter(node, parent)
            if result is Discard:
                self._skip = outer_skip
                return Discard
            if result is not None:
                node = checked_replacement(node, result, "enter")

        skipped = self._skip
        self._skip = outer_skip

        if not skipped:
            self._visit_children(node)

        if self._leave is not None:
            result = self._leave(node, parent)
            if result is Discard:
                return Discard
            if result is not None:
                node = checked_replacement(node, result, "leave")

        return node

    def _visit_children(self, node: Node) -> None:
        for field in self.keys.fields(node):
            value = get_field(node, field)

            if isinstance(value, list):
                items: List[Any] = []
                changed = False
                for item in value:
                    if not is_node(item):
                        items.append(item)
                        continue
                    result = self.visit(item, node)
                    if result is not item:
                        changed = True
                    if result is not Discard:
                        items.append(result)
                if changed:
                    value[:] = items

            elif is_node(value):
                result = self.visit(value, node)
                if result is Discard:
                    set_field(node, field, None)
                elif result is not value:
                    set_field(node, field, result)


def checked_replacement(node: Node, result: Any, step: str) -> Node:
    """Return ``result`` if it is a node, else raise ``TypeError`` naming ``node``'s type."""
    if is_node(result):
        return result
    raise TypeError(f"{step} callback for {node_type(node)!r} returned {result!r}, which is not a node")
