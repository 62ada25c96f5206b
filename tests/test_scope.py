from __future__ import annotations

from typing import Any, List

import pytest

from tests.support.harness import (
    OPTIONS,
    HandlerSet,
    Hook,
    Phase,
    fn,
    ident,
    program,
    run_with,
    stmt,
)
from treepass.engine import Traversal
from treepass.handlers import HandlerKey
from treepass.scope import ScopeError, ScopeStack


def test_push_copies_parent_context() -> None:
    stack = ScopeStack()
    outer = stack.push({"type": "Program", "body": []})
    outer.context["names"] = ["a"]

    inner = stack.push({"type": "Block", "body": []})
    assert inner.context == {"names": ["a"]}

    inner.context["names"].append("b")
    inner.context["only_inner"] = True
    assert outer.context == {"names": ["a"]}

    stack.pop()
    assert stack.context is outer.context
    assert "only_inner" not in stack.context


def test_scope_callbacks_get_new_and_old_frames() -> None:
    calls: List[Any] = []
    stack = ScopeStack(
        on_enter=lambda *args: calls.append(("enter",) + args),
        on_exit=lambda *args: calls.append(("exit",) + args),
    )
    root = {"type": "Program", "body": []}
    body = {"type": "Block", "body": []}

    stack.push(root)
    stack.push(body)
    stack.pop()
    stack.pop()

    assert [c[0] for c in calls] == ["enter", "enter", "exit", "exit"]
    assert calls[0][1] is root and calls[0][3] is None and calls[0][4] is None
    assert calls[1][1] is body and calls[1][3] is root
    assert calls[2][1] is body and calls[2][3] is root
    assert calls[3][1] is root and calls[3][3] is None


def test_pop_on_empty_stack_raises() -> None:
    with pytest.raises(ScopeError):
        ScopeStack().pop()


def test_empty_stack_has_no_context() -> None:
    stack = ScopeStack()
    assert stack.scope is None
    assert stack.context is None
    assert stack.lookup("x", 7) == 7


def _function_depth_checker(mismatches: List[str]) -> HandlerSet:
    handlers = HandlerSet()

    @handlers.on_enter("Identifier")
    def check(traversal, node, parent):
        # Program plus one frame per enclosing function.
        expected = 1 + node["fn_depth"]
        if traversal.scopes.depth != expected:
            mismatches.append(f"{node['name']}: {traversal.scopes.depth} != {expected}")

    return handlers


def test_scope_depth_tracks_open_function_ancestors() -> None:
    def at(name: str, depth: int) -> dict:
        node = ident(name)
        node["fn_depth"] = depth
        return node

    tree = program(
        stmt(at("top", 0)),
        stmt(fn(stmt(at("one", 1)), stmt(fn(stmt(at("two", 2)))), stmt(at("back", 1)))),
        stmt(at("end", 0)),
    )
    mismatches: List[str] = []

    run_with(tree, _function_depth_checker(mismatches))

    assert mismatches == []


def test_push_and_pop_are_balanced_after_run() -> None:
    counts = {"push": 0, "pop": 0}
    handlers = HandlerSet()
    handlers.set(Hook.SCOPE_ENTER, lambda t, *args: counts.__setitem__("push", counts["push"] + 1))
    handlers.set(Hook.SCOPE_EXIT, lambda t, *args: counts.__setitem__("pop", counts["pop"] + 1))

    tree = program(stmt(fn(stmt(fn()))), stmt(fn()))

    traversal = Traversal.from_sources(handlers, options=OPTIONS)
    traversal.run(tree)

    assert counts == {"push": 4, "pop": 4}
    assert len(traversal.scopes) == 0
    assert traversal.context is None


def test_sibling_scopes_do_not_share_writes() -> None:
    seen = {}
    handlers = HandlerSet()

    @handlers.on_enter("Identifier")
    def record(traversal, node, parent):
        if node["name"] == "writer":
            traversal.context["secret"] = "from-writer"
        seen[node["name"]] = traversal.context.get("secret")

    tree = program(
        stmt(fn(stmt(ident("writer")))),
        stmt(fn(stmt(ident("sibling")))),
        stmt(ident("outer")),
    )

    run_with(tree, handlers)

    assert seen == {"writer": "from-writer", "sibling": None, "outer": None}


def test_values_set_before_push_are_visible_to_descendants() -> None:
    seen = {}
    handlers = HandlerSet()

    @handlers.on_enter("Program")
    def open_program(traversal, node, parent):
        traversal.push_scope(node)
        traversal.context["strict"] = True

    @handlers.on_enter("Identifier")
    def record(traversal, node, parent):
        seen[node["name"]] = traversal.context.get("strict")
        traversal.context["strict"] = False

    tree = program(stmt(fn(stmt(ident("inner")))), stmt(ident("after")))

    run_with(tree, handlers)

    # "inner" flipped the flag only inside the function's copy.
    assert seen == {"inner": True, "after": True}


def test_function_scope_opens_on_body() -> None:
    scopes = []
    handlers = HandlerSet()
    handlers.set(Hook.SCOPE_ENTER, lambda t, new_scope, new_ctx, old_scope, old_ctx: scopes.append(new_scope["type"]))

    run_with(program(stmt(fn())), handlers)

    assert scopes == ["Program", "Block"]


def test_overriding_function_entry_drops_its_scope() -> None:
    depths = []
    handlers = HandlerSet()
    handlers.set(HandlerKey("FunctionExpression", Phase.ENTER), lambda t, node, parent: None)
    handlers.set(HandlerKey("FunctionExpression", Phase.EXIT), lambda t, node, parent: None)

    @handlers.on_enter("Identifier")
    def record(traversal, node, parent):
        depths.append(traversal.scopes.depth)

    run_with(program(stmt(fn(stmt(ident("x"))))), handlers)

    assert depths == [1]


def test_override_that_pushes_keeps_nesting() -> None:
    depths = []
    handlers = HandlerSet()

    @handlers.on_enter("FunctionExpression")
    def enter_fn(traversal, node, parent):
        traversal.push_scope(node)
        traversal.context["fn"] = True

    @handlers.on_exit("FunctionExpression")
    def exit_fn(traversal, node, parent):
        traversal.pop_scope()

    @handlers.on_enter("Identifier")
    def record(traversal, node, parent):
        depths.append((traversal.scopes.depth, traversal.context.get("fn"), traversal.scope["type"]))

    run_with(program(stmt(fn(stmt(ident("x"))))), handlers)

    assert depths == [(2, True, "FunctionExpression")]


def test_nodes_in_context_keep_their_identity() -> None:
    marker = ident("marker")
    seen: List[Any] = []
    handlers = HandlerSet()

    @handlers.on_enter("Program")
    def enter_program(traversal, node, parent):
        traversal.push_scope(node)
        traversal.context["marker"] = marker
        traversal.context["markers"] = [marker, {"list": [marker]}]

    @handlers.on_enter("Identifier")
    def record(traversal, node, parent):
        markers = traversal.context["markers"]
        seen.append((traversal.context["marker"] is marker, markers[0] is marker, markers[1]["list"][0] is marker))
        markers.append("inner")

    outer: List[Any] = []

    @handlers.on_exit("Program")
    def exit_program(traversal, node, parent):
        outer.append(list(traversal.context["markers"]))
        traversal.pop_scope()

    run_with(program(stmt(fn(stmt(ident("x"))))), handlers)

    assert seen == [(True, True, True)]
    assert outer[0][0] is marker
    assert "inner" not in outer[0]


def test_context_shaped_like_a_node_is_still_copied() -> None:
    stack = ScopeStack()
    outer = stack.push({"type": "Program", "body": []})
    outer.context["type"] = "Program"
    outer.context["seen"] = []

    inner = stack.push({"type": "Block", "body": []})
    inner.context["seen"].append("x")

    assert inner.context is not outer.context
    assert outer.context["seen"] == []


def test_cyclic_context_is_copied() -> None:
    stack = ScopeStack()
    outer = stack.push({"type": "Program", "body": []})
    loop: List[Any] = []
    loop.append(loop)
    outer.context["loop"] = loop

    inner = stack.push({"type": "Block", "body": []})

    assert inner.context["loop"] is not loop
    assert inner.context["loop"][0] is inner.context["loop"]
