"""Shared helpers for working with the node shapes a pass can walk.

Two shapes are understood: ESTree-style mappings (a dict with a string
``type`` and an optional ``loc``) and Lark parse trees (``lark.Tree`` with
``lark.Token`` leaves). Everything else is treated as plain data.
"""
from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Iterator, Mapping, Optional, Sequence, Tuple, Union
from typing_extensions import TypeAlias, TypeGuard

from lark import Token, Tree

MappingNode: TypeAlias = Dict[str, Any]
Node: TypeAlias = Union[MappingNode, Tree, Token]


@dataclass(frozen=True)
class SourcePosition:
    line: int    # 1-based
    column: int  # 0-based

    def __str__(self) -> str:
        return f"{self.line}:{self.column}"


@dataclass(frozen=True)
class SourceLocation:
    start: SourcePosition
    end: SourcePosition

    @classmethod
    def from_mapping(cls, loc: Mapping[str, Any]) -> Optional[SourceLocation]:
        """Read an ESTree ``loc`` object; None if ``start`` is missing."""
        start = loc.get("start")
        if not isinstance(start, Mapping):
            return None

        end = loc.get("end")
        if not isinstance(end, Mapping):
            end = start

        return cls(
            SourcePosition(int(start.get("line", 1)), int(start.get("column", 0))),
            SourcePosition(int(end.get("line", start.get("line", 1))), int(end.get("column", 0))),
        )

# Fields that carry metadata rather than children on mapping nodes.
META_FIELDS = frozenset(("type", "loc", "range", "start", "end", "comments", "leadingComments", "trailingComments"))

# ESTree core (ES5 + ES2015) child fields, in source order.
ESTREE_CHILD_KEYS: Dict[str, Tuple[str, ...]] = {
    "Program": ("body",),
    "Identifier": (),
    "Literal": (),
    "ThisExpression": (),
    "Super": (),
    "EmptyStatement": (),
    "DebuggerStatement": (),
    "TemplateElement": (),
    "ExpressionStatement": ("expression",),
    "BlockStatement": ("body",),
    "ReturnStatement": ("argument",),
    "LabeledStatement": ("label", "body"),
    "BreakStatement": ("label",),
    "ContinueStatement": ("label",),
    "IfStatement": ("test", "consequent", "alternate"),
    "SwitchStatement": ("discriminant", "cases"),
    "SwitchCase": ("test", "consequent"),
    "ThrowStatement": ("argument",),
    "TryStatement": ("block", "handler", "finalizer"),
    "CatchClause": ("param", "body"),
    "WhileStatement": ("test", "body"),
    "DoWhileStatement": ("body", "test"),
    "ForStatement": ("init", "test", "update", "body"),
    "ForInStatement": ("left", "right", "body"),
    "ForOfStatement": ("left", "right", "body"),
    "FunctionDeclaration": ("id", "params", "body"),
    "FunctionExpression": ("id", "params", "body"),
    "ArrowFunctionExpression": ("params", "body"),
    "VariableDeclaration": ("declarations",),
    "VariableDeclarator": ("id", "init"),
    "ArrayExpression": ("elements",),
    "ObjectExpression": ("properties",),
    "Property": ("key", "value"),
    "UnaryExpression": ("argument",),
    "UpdateExpression": ("argument",),
    "BinaryExpression": ("left", "right"),
    "AssignmentExpression": ("left", "right"),
    "LogicalExpression": ("left", "right"),
    "MemberExpression": ("object", "property"),
    "ConditionalExpression": ("test", "consequent", "alternate"),
    "CallExpression": ("callee", "arguments"),
    "NewExpression": ("callee", "arguments"),
    "SequenceExpression": ("expressions",),
    "YieldExpression": ("argument",),
    "SpreadElement": ("argument",),
    "TemplateLiteral": ("quasis", "expressions"),
    "TaggedTemplateExpression": ("tag", "quasi"),
    "ObjectPattern": ("properties",),
    "ArrayPattern": ("elements",),
    "RestElement": ("argument",),
    "AssignmentPattern": ("left", "right"),
    "ClassDeclaration": ("id", "superClass", "body"),
    "ClassExpression": ("id", "superClass", "body"),
    "ClassBody": ("body",),
    "MethodDefinition": ("key", "value"),
    "MetaProperty": ("meta", "property"),
    "ImportDeclaration": ("specifiers", "source"),
    "ImportSpecifier": ("imported", "local"),
    "ImportDefaultSpecifier": ("local",),
    "ImportNamespaceSpecifier": ("local",),
    "ExportNamedDeclaration": ("declaration", "specifiers", "source"),
    "ExportDefaultDeclaration": ("declaration",),
    "ExportAllDeclaration": ("source",),
    "ExportSpecifier": ("local", "exported"),
}


class UnknownNodeTypeError(KeyError):
    """Raised when a mapping node's type has no registered child fields."""

    def __init__(self, type_: str):
        super().__init__(type_)
        self.type = type_

    def __str__(self) -> str:
        return f"Unknown node type {self.type!r}; register it with ChildKeys.register()"


def is_mapping_node(value: object) -> TypeGuard[MappingNode]:
    return isinstance(value, dict) and isinstance(value.get("type"), str)

def is_lark_node(value: object) -> TypeGuard[Union[Tree, Token]]:
    return isinstance(value, (Tree, Token))

def is_node(value: object) -> TypeGuard[Node]:
    return is_mapping_node(value) or is_lark_node(value)

def node_type(node: Node) -> str:
    if isinstance(node, Token):
        return str(node.type)
    if isinstance(node, Tree):
        return str(node.data)
    return node["type"]

def node_loc(node: Optional[Node]) -> Optional[SourceLocation]:
    """Source span of ``node``, or None when it carries no position info."""
    if node is None:
        return None

    if isinstance(node, Token):
        if node.line is None:
            return None
        return SourceLocation(
            SourcePosition(node.line, (node.column or 1) - 1),
            SourcePosition(node.end_line or node.line, (node.end_column or node.column or 1) - 1),
        )

    if isinstance(node, Tree):
        meta = node.meta
        if meta.empty:
            return None
        # Lark columns are 1-based; ESTree columns (and ours) are 0-based.
        return SourceLocation(
            SourcePosition(meta.line, meta.column - 1),
            SourcePosition(meta.end_line, meta.end_column - 1),
        )

    loc = node.get("loc") if isinstance(node, dict) else None
    if not isinstance(loc, Mapping):
        return None

    return SourceLocation.from_mapping(loc)


class ChildKeys:
    """Maps node types to the names of the fields holding their children.

    Mapping nodes look their fields up here; Lark trees always expose a
    single ``children`` list and tokens are leaves.
    """

    def __init__(self, extra: Optional[Mapping[str, Sequence[str]]] = None, fallback: bool = False):
        self._keys: Dict[str, Tuple[str, ...]] = dict(ESTREE_CHILD_KEYS)
        self.fallback = fallback

        if extra:
            for type_, fields in extra.items():
                self.register(type_, fields)

    def register(self, type_: str, fields: Iterable[str] = ()) -> None:
        """Add or replace the child fields of ``type_``. No fields means a leaf."""
        self._keys[type_] = tuple(fields)

    def __contains__(self, type_: object) -> bool:
        return type_ in self._keys

    def fields(self, node: Node) -> Tuple[str, ...]:
        if isinstance(node, Token):
            return ()
        if isinstance(node, Tree):
            return ("children",)

        type_ = node["type"]
        if type_ in self._keys:
            return self._keys[type_]

        if not self.fallback:
            raise UnknownNodeTypeError(type_)

        return tuple(
            key for key, value in node.items()
            if key not in META_FIELDS and (is_node(value) or _is_node_list(value))
        )

    def children(self, node: Node) -> Iterator[Tuple[str, Node]]:
        """Yield ``(field, child)`` pairs in traversal order."""
        for field in self.fields(node):
            value = get_field(node, field)
            if isinstance(value, list):
                for item in value:
                    if is_node(item):
                        yield field, item
            elif is_node(value):
                yield field, value


def _is_node_list(value: object) -> bool:
    return isinstance(value, list) and any(is_node(item) for item in value)

def get_field(node: Node, field: str) -> Any:
    if isinstance(node, Tree):
        return node.children if field == "children" else None
    if isinstance(node, dict):
        return node.get(field)
    return None

def set_field(node: Node, field: str, value: Any) -> None:
    if isinstance(node, Tree):
        node.children = value
        return
    node[field] = value
