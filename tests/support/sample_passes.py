"""Handler-set sources loaded by name in the CLI tests."""
from __future__ import annotations

from treepass.handlers import HandlerSet, enter


class UnusedVarWarner:
    @enter("VariableDeclarator")
    def declarator(self, traversal, node, parent):
        if node.get("init") is None:
            traversal.warn(node, f"{node['id']['name']} is never initialized")


class NoDebugger:
    @enter("DebuggerStatement")
    def debugger(self, traversal, node, parent):
        traversal.raise_syntax_error(node, "debugger statements are not allowed")


strip_empty = HandlerSet({"EmptyStatement": lambda traversal, node, parent: {"type": "BlockStatement", "body": []}})
