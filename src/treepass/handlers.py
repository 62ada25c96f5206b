"""
Handler sets and their composition.

A handler set maps dispatch keys to callables:
- ``HandlerKey(type, Phase.ENTER)`` / ``HandlerKey(type, Phase.EXIT)`` for
  node handlers, called as ``handler(traversal, node, parent)``;
- a ``Hook`` member for lifecycle hooks.

Sources are composed in order and the later one wins on a shared key. The
baseline layer (scope push/pop for programs and function expressions) goes
first, so any source can replace it.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import TYPE_CHECKING, Any, Callable, Dict, Iterator, Mapping, NamedTuple, Optional, Tuple, Union

from .tree import Node, get_field, is_node

if TYPE_CHECKING:
    from .engine import Traversal

logger = logging.getLogger(__name__)

Handler = Callable[["Traversal", Node, Optional[Node]], Optional[Node]]


class Phase(Enum):
    ENTER = "enter"
    EXIT = "exit"


class Hook(Enum):
    BEFORE_ENTER = "before_enter"
    AFTER_ENTER = "after_enter"
    BEFORE_EXIT = "before_exit"
    AFTER_EXIT = "after_exit"
    SCOPE_ENTER = "scope_enter"
    SCOPE_EXIT = "scope_exit"


class HandlerKey(NamedTuple):
    type: str
    phase: Phase = Phase.ENTER

    def __str__(self) -> str:
        return self.type if self.phase is Phase.ENTER else f"{self.type} (exit)"


Key = Union[HandlerKey, Hook]


def _normalize_key(key: object) -> Key:
    if isinstance(key, (HandlerKey, Hook)):
        return key
    if isinstance(key, str):
        return HandlerKey(key, Phase.ENTER)
    if isinstance(key, tuple) and len(key) == 2 and isinstance(key[0], str):
        phase = key[1]
        if isinstance(phase, str):
            phase = Phase(phase)
        if isinstance(phase, Phase):
            return HandlerKey(key[0], phase)
    raise TypeError(f"invalid handler key {key!r}")


# ---------- Decorators for class-based sources ----------

def _mark(func: Callable, key: Key) -> Callable:
    keys: Tuple[Key, ...] = getattr(func, "_treepass_keys", ())
    func._treepass_keys = keys + (key,)  # type: ignore[attr-defined]
    return func

def enter(*types: str) -> Callable[[Callable], Callable]:
    """Mark a method as the entry handler for ``types``."""
    def decorator(func: Callable) -> Callable:
        for type_ in types:
            _mark(func, HandlerKey(type_, Phase.ENTER))
        return func
    return decorator

def exit(*types: str) -> Callable[[Callable], Callable]:
    """Mark a method as the exit handler for ``types``."""
    def decorator(func: Callable) -> Callable:
        for type_ in types:
            _mark(func, HandlerKey(type_, Phase.EXIT))
        return func
    return decorator

def hook(*hooks: Hook) -> Callable[[Callable], Callable]:
    def decorator(func: Callable) -> Callable:
        for h in hooks:
            _mark(func, h)
        return func
    return decorator


class HandlerSet(Mapping[Key, Callable]):
    """An ordered, mutable dispatch table. Also usable as a source."""

    def __init__(self, handlers: Optional[Mapping[Any, Callable]] = None):
        self._table: Dict[Key, Callable] = {}
        if handlers:
            self.update(handlers)

    def __getitem__(self, key: Key) -> Callable:
        return self._table[key]

    def __iter__(self) -> Iterator[Key]:
        return iter(self._table)

    def __len__(self) -> int:
        return len(self._table)

    def __repr__(self) -> str:
        return f"HandlerSet({', '.join(str(k) for k in self._table)})"

    def set(self, key: Any, handler: Callable) -> None:
        if not callable(handler):
            raise TypeError(f"handler for {key!r} is not callable: {handler!r}")
        self._table[_normalize_key(key)] = handler

    def update(self, handlers: Mapping[Any, Callable]) -> None:
        for key, handler in handlers.items():
            self.set(key, handler)

    def on_enter(self, *types: str) -> Callable[[Callable], Callable]:
        def decorator(func: Callable) -> Callable:
            for type_ in types:
                self.set(HandlerKey(type_, Phase.ENTER), func)
            return func
        return decorator

    def on_exit(self, *types: str) -> Callable[[Callable], Callable]:
        def decorator(func: Callable) -> Callable:
            for type_ in types:
                self.set(HandlerKey(type_, Phase.EXIT), func)
            return func
        return decorator

    def on(self, h: Hook) -> Callable[[Callable], Callable]:
        def decorator(func: Callable) -> Callable:
            self.set(h, func)
            return func
        return decorator

    def handler(self, type_: str, phase: Phase) -> Optional[Callable]:
        return self._table.get(HandlerKey(type_, phase))

    def hook(self, h: Hook) -> Optional[Callable]:
        return self._table.get(h)


def handlers_of(source: Any) -> Mapping[Key, Callable]:
    """Dispatch table exposed by ``source``.

    Mappings are taken as-is. Any other object contributes its bound
    methods marked with ``@enter``, ``@exit`` or ``@hook``.
    """
    if isinstance(source, HandlerSet):
        return source
    if isinstance(source, Mapping):
        return HandlerSet(source)

    table = HandlerSet()
    found = False
    for name in dir(source):
        if name.startswith("__"):
            continue
        member = getattr(source, name, None)
        keys = getattr(member, "_treepass_keys", None)
        if not keys or not callable(member):
            continue
        found = True
        for key in keys:
            table.set(key, member)

    if not found:
        raise TypeError(f"{type(source).__name__} does not expose any handlers")

    return table


# ---------- Baseline layer ----------

def scope_node_of(node: Node) -> Node:
    """The sub-node a function opens its scope on: its body when it has one."""
    body = get_field(node, "body")
    return body if is_node(body) else node

def _enter_program(traversal: Traversal, node: Node, parent: Optional[Node]) -> None:
    traversal.push_scope(node)

def _exit_program(traversal: Traversal, node: Node, parent: Optional[Node]) -> None:
    traversal.pop_scope()

def _enter_function(traversal: Traversal, node: Node, parent: Optional[Node]) -> None:
    traversal.push_scope(scope_node_of(node))

def _exit_function(traversal: Traversal, node: Node, parent: Optional[Node]) -> None:
    traversal.pop_scope()

PROGRAM_TYPE = "Program"
FUNCTION_TYPE = "FunctionExpression"

BASELINE = HandlerSet({
    HandlerKey(PROGRAM_TYPE, Phase.ENTER): _enter_program,
    HandlerKey(PROGRAM_TYPE, Phase.EXIT): _exit_program,
    HandlerKey(FUNCTION_TYPE, Phase.ENTER): _enter_function,
    HandlerKey(FUNCTION_TYPE, Phase.EXIT): _exit_function,
})


def compose(*sources: Any, baseline: bool = True) -> HandlerSet:
    """Merge ``sources`` into one table; later sources replace earlier keys."""
    merged = HandlerSet(BASELINE) if baseline else HandlerSet()

    for source in sources:
        table = handlers_of(source)
        for key, handler in table.items():
            if key in merged:
                logger.debug("handler %s overridden by %s", key, type(source).__name__)
            merged.set(key, handler)

    return merged
