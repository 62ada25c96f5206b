"""
Traversal engine: runs one composed handler set over a tree.

On entry to each node the engine bumps ``depth``, records ``current_node``
and calls, in order, the ``BEFORE_ENTER`` hook, the type's entry handler and
the ``AFTER_ENTER`` hook. Exit mirrors it with ``BEFORE_EXIT``, the exit
handler and ``AFTER_EXIT`` before ``depth`` drops again. A handler's non-None
return replaces the node before its children are visited.

A ``PassSyntaxError`` raised by any handler ends the run; nothing from the
partial walk is handed back.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, List, MutableMapping, NoReturn, Optional

from lark.visitors import Discard

from .config import PassOptions
from .diagnostics import Diagnostics, WarningRecord
from .handlers import HandlerSet, Hook, Phase, compose
from .scope import Context, ScopeFrame, ScopeStack
from .tree import Node, node_type
from .walk import Controller, checked_replacement

logger = logging.getLogger(__name__)


class Traversal:
    """
    One composed handler set bound to its options, diagnostics and scopes.

    Exit handlers are looked up by the type of the node as it stands after
    entry, so an entry handler that swaps a node for one of another type gets
    that type's exit handler. Returning a
    ``FunctionExpression`` in place of another type therefore runs the
    baseline scope pop with no matching push, and the run fails with
    ``ScopeError``.
    """

    def __init__(self, handlers: HandlerSet, options: Optional[Any] = None):
        self.handlers = handlers
        self.options = PassOptions.coerce(options)
        self.controller = Controller(self.options.make_child_keys())
        self.diagnostics = Diagnostics(self.options.source, self.options.filename)
        self.scopes = ScopeStack(on_enter=self._scope_entered, on_exit=self._scope_exited)
        self.depth = 0
        self.current_node: Optional[Node] = None
        self._running = False

    @classmethod
    def from_sources(cls, *sources: Any, options: Optional[Any] = None) -> Traversal:
        return cls(compose(*sources), options)

    # ---------- state exposed to handlers ----------

    @property
    def scope(self) -> Optional[Node]:
        return self.scopes.scope

    @property
    def context(self) -> Optional[Context]:
        return self.scopes.context

    @property
    def warnings(self) -> List[WarningRecord]:
        return self.diagnostics.warnings

    def push_scope(self, node: Node) -> ScopeFrame:
        return self.scopes.push(node)

    def pop_scope(self) -> ScopeFrame:
        return self.scopes.pop()

    def skip(self) -> None:
        """Skip the children of the node being entered."""
        self.controller.skip()

    def visit(self, node: Node, parent: Optional[Node] = None) -> Any:
        """Walk ``node`` now, with the same handlers, from inside a handler.

        Returns the node's replacement (or ``Discard``); placing it in the
        tree is up to the caller.
        """
        if not self._running:
            raise RuntimeError("visit() is only available while a run is in progress")
        return self.controller.visit(node, parent)

    def warn(self, node: Optional[Node], description: str) -> None:
        # Always None, so `return traversal.warn(...)` never replaces the node.
        self.diagnostics.warn(node, description)

    def raise_syntax_error(self, node: Optional[Node], description: str) -> NoReturn:
        self.diagnostics.raise_syntax_error(node, description)

    # ---------- driver ----------

    def run(self, tree: Node) -> Node:
        if self._running:
            raise RuntimeError("Traversal.run() is not re-entrant; use visit() from inside a handler")

        self._running = True
        self.depth = 0
        self.current_node = None
        self.diagnostics.warnings = []
        # Frames left behind by an aborted run are dropped here, not on abort.
        self.scopes.clear()
        logger.debug("run %s over %s", self.options.filename, node_type(tree))

        try:
            result = self.controller.traverse(tree, self._enter, self._exit)
        finally:
            self._running = False

        if self.warnings:
            logger.info("%s: %d warning(s)", self.options.filename, len(self.warnings))
        return result

    def _call_hook(self, h: Hook, *args: Any) -> None:
        fn = self.handlers.hook(h)
        if fn is not None:
            fn(self, *args)

    def _enter(self, node: Node, parent: Optional[Node]) -> Any:
        self.depth += 1
        self.current_node = node
        self._call_hook(Hook.BEFORE_ENTER, node, parent)

        handler = self.handlers.handler(node_type(node), Phase.ENTER)
        if handler is not None:
            result = handler(self, node, parent)
            if result is Discard:
                # No exit step follows a node dropped on entry.
                self.depth -= 1
                self.current_node = parent
                return Discard
            if result is not None:
                node = checked_replacement(node, result, "enter")
                self.current_node = node

        self._call_hook(Hook.AFTER_ENTER, node, parent)
        return node

    def _exit(self, node: Node, parent: Optional[Node]) -> Any:
        self.current_node = node
        self._call_hook(Hook.BEFORE_EXIT, node, parent)

        result: Any = None
        handler = self.handlers.handler(node_type(node), Phase.EXIT)
        if handler is not None:
            result = handler(self, node, parent)
            if result is not None and result is not Discard:
                result = checked_replacement(node, result, "exit")

        after = node if result is None or result is Discard else result
        self._call_hook(Hook.AFTER_EXIT, after, parent)

        self.depth -= 1
        self.current_node = parent
        return result

    def _scope_entered(self, new_scope: Optional[Node], new_context: Optional[Context], old_scope: Optional[Node], old_context: Optional[Context]) -> None:
        self._call_hook(Hook.SCOPE_ENTER, new_scope, new_context, old_scope, old_context)

    def _scope_exited(self, old_scope: Optional[Node], old_context: Optional[Context], new_scope: Optional[Node], new_context: Optional[Context]) -> None:
        self._call_hook(Hook.SCOPE_EXIT, old_scope, old_context, new_scope, new_context)


def run_passes(tree: Node, options: Optional[Any], sources: Iterable[Any], result: Optional[MutableMapping[str, Any]] = None) -> Node:
    """Compose ``sources`` and run them over ``tree`` in a single walk.

    Warnings are appended to ``result["warnings"]`` (created when missing)
    once the walk completes, so several pass groups can share one list.
    """
    traversal = Traversal(compose(*sources), options)
    tree = traversal.run(tree)

    if result is not None:
        if result.get("warnings") is None:
            result["warnings"] = []
        result["warnings"].extend(traversal.warnings)

    return tree
