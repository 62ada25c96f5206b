"""Scope-aware handler-based passes over ESTree and Lark trees."""

from .config import PassOptions
from .diagnostics import Diagnostics, PassSyntaxError, WarningRecord, format_error
from .engine import Traversal, run_passes
from .handlers import BASELINE, HandlerKey, HandlerSet, Hook, Phase, compose, enter, exit, hook
from .scope import ScopeError, ScopeFrame, ScopeStack
from .tree import ChildKeys, SourceLocation, SourcePosition, UnknownNodeTypeError, node_loc, node_type
from .walk import Controller

__version__ = "0.1.0"

__all__ = [
    "BASELINE",
    "ChildKeys",
    "Controller",
    "Diagnostics",
    "HandlerKey",
    "HandlerSet",
    "Hook",
    "PassOptions",
    "PassSyntaxError",
    "Phase",
    "ScopeError",
    "ScopeFrame",
    "ScopeStack",
    "SourceLocation",
    "SourcePosition",
    "Traversal",
    "UnknownNodeTypeError",
    "WarningRecord",
    "compose",
    "enter",
    "exit",
    "format_error",
    "hook",
    "node_loc",
    "node_type",
    "run_passes",
]
