"""
Lexical scope tracking for passes.

Each frame pairs the node that opened a scope with a context dict of
pass-defined state. Pushing a frame deep-copies the parent's context, so the
child starts with everything the parent held at push time while later writes
on either side stay private (copy-on-push, not copy-on-write).

Tree nodes stored in a context are not copied: the child frame holds the
same node objects as its parent, so identity checks and in-place edits made
through the context still reach the tree being walked. Only the containers
around them are cloned.
"""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Set

from .tree import Node, is_node, node_type

logger = logging.getLogger(__name__)

Context = Dict[str, Any]
ScopeCallback = Callable[[Optional[Node], Optional[Context], Optional[Node], Optional[Context]], None]


class ScopeError(RuntimeError):
    pass


@dataclass
class ScopeFrame:
    node: Node
    context: Context = field(default_factory=dict)


class ScopeStack:
    def __init__(self, on_enter: Optional[ScopeCallback] = None, on_exit: Optional[ScopeCallback] = None):
        self._frames: List[ScopeFrame] = []
        self.on_enter = on_enter
        self.on_exit = on_exit

    def __len__(self) -> int:
        return len(self._frames)

    @property
    def depth(self) -> int:
        return len(self._frames)

    @property
    def current(self) -> Optional[ScopeFrame]:
        return self._frames[-1] if self._frames else None

    @property
    def scope(self) -> Optional[Node]:
        frame = self.current
        return frame.node if frame is not None else None

    @property
    def context(self) -> Optional[Context]:
        frame = self.current
        return frame.context if frame is not None else None

    def push(self, node: Node) -> ScopeFrame:
        old_scope, old_context = self.scope, self.context
        new_context: Context = _copy_context(old_context) if old_context is not None else {}
        frame = ScopeFrame(node, new_context)
        self._frames.append(frame)
        logger.debug("push scope %s (depth %d)", node_type(node), len(self._frames))

        if self.on_enter is not None:
            self.on_enter(frame.node, frame.context, old_scope, old_context)

        return frame

    def pop(self) -> ScopeFrame:
        if not self._frames:
            raise ScopeError("pop_scope() without a matching push_scope()")

        frame = self._frames.pop()
        logger.debug("pop scope %s (depth %d)", node_type(frame.node), len(self._frames))

        if self.on_exit is not None:
            self.on_exit(frame.node, frame.context, self.scope, self.context)

        return frame

    def clear(self) -> None:
        self._frames.clear()

    def lookup(self, key: str, default: Any = None) -> Any:
        """Value of ``key`` in the innermost context, or ``default``."""
        context = self.context
        if context is None:
            return default
        return context.get(key, default)


def _copy_context(context: Context) -> Context:
    memo: Dict[int, Any] = {}
    seen: Set[int] = {id(context)}
    for value in context.values():
        _pin_nodes(value, memo, seen)
    return copy.deepcopy(context, memo)

def _pin_nodes(value: Any, memo: Dict[int, Any], seen: Set[int]) -> None:
    """Seed ``memo`` so deepcopy hands back every tree node reachable from ``value`` as-is."""
    if id(value) in seen:
        return
    seen.add(id(value))
    if is_node(value):
        memo[id(value)] = value
        return

    if isinstance(value, dict):
        items: Any = value.values()
    elif isinstance(value, (list, tuple, set, frozenset)):
        items = value
    else:
        return

    for item in items:
        _pin_nodes(item, memo, seen)
