from __future__ import annotations

import importlib
import json
import logging
import re
import sys
from pathlib import Path
from typing import Any, List, Optional, Sequence

from .config import PassOptions
from .diagnostics import PassSyntaxError
from .engine import run_passes
from .tree import UnknownNodeTypeError

USAGE = "usage: treepass [-v] [--pass MODULE:ATTR]... [--source FILE] [--filename NAME] [--fallback] [TREE.json|-]"


def _configure_logging(verbosity: int) -> None:
    """0 -> WARNING, 1 -> INFO, 2+ -> DEBUG, on stderr."""
    level = logging.WARNING
    if verbosity == 1:
        level = logging.INFO
    elif verbosity >= 2:
        level = logging.DEBUG

    root = logging.getLogger("treepass")
    root.setLevel(level)
    if root.handlers:
        return

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(fmt="[%(levelname)-5.5s] %(name)s: %(message)s"))
    root.addHandler(handler)


def load_source(spec: str) -> Any:
    """Import a handler-set source given as ``module:attr``.

    Classes are instantiated with no arguments; anything else is used as-is.
    """
    module_name, sep, attr = spec.partition(":")
    if not sep or not module_name or not attr:
        raise SystemExit(f"--pass expects MODULE:ATTR, got {spec!r}")

    module = importlib.import_module(module_name)
    try:
        obj = getattr(module, attr)
    except AttributeError:
        raise SystemExit(f"{module_name} has no attribute {attr!r}") from None

    return obj() if isinstance(obj, type) else obj


def _read_text(arg: Optional[str]) -> str:
    """None or "-" reads stdin; otherwise ``arg`` is a path."""
    if arg is None or arg == "-":
        data = sys.stdin.read()
        if not data:
            raise SystemExit("No input provided on stdin")
        return data

    candidate = Path(arg)
    if not candidate.exists():
        raise SystemExit(f"No such file: {arg}")
    return candidate.read_text(encoding="utf-8")


def main(argv: Optional[Sequence[str]] = None) -> int:
    passes: List[str] = []
    source_path = None
    filename = None
    fallback = False
    verbosity = 0
    arg = None
    it = iter(sys.argv[1:] if argv is None else argv)

    for token in it:
        if token in ("-h", "--help"):
            print(USAGE)
            return 0

        if re.fullmatch(r"-v+", token):
            verbosity += len(token) - 1
            continue

        if token == "--fallback":
            fallback = True
            continue

        if token.startswith("--") and "=" in token:
            token, value = token.split("=", 1)
        elif token in ("--pass", "--source", "--filename"):
            try:
                value = next(it)
            except StopIteration:
                raise SystemExit(f"{token} flag requires a value") from None
        elif token.startswith("--"):
            raise SystemExit(f"Unknown option: {token}")
        else:
            if arg is not None:
                raise SystemExit(f"Unexpected argument: {token}")
            arg = token
            continue

        if token == "--pass":
            passes.append(value)
        elif token == "--source":
            source_path = value
        elif token == "--filename":
            filename = value
        else:
            raise SystemExit(f"Unknown option: {token}")

    _configure_logging(verbosity)

    text = _read_text(arg)
    try:
        tree = json.loads(text)
    except json.JSONDecodeError as exc:
        raise SystemExit(f"Invalid JSON in {arg or '<stdin>'}: {exc}") from None

    source = ""
    if source_path:
        if not Path(source_path).exists():
            raise SystemExit(f"No such source file: {source_path}")
        source = Path(source_path).read_text(encoding="utf-8")
    if filename is None:
        filename = source_path or (arg if arg not in (None, "-") else "<stdin>")

    options = PassOptions(source=source, filename=filename, fallback=fallback)
    sources = [load_source(spec) for spec in passes]
    result: dict = {}

    try:
        tree = run_passes(tree, options, sources, result)
    except PassSyntaxError as exc:
        print(str(exc), file=sys.stderr)
        return 1
    except UnknownNodeTypeError as exc:
        raise SystemExit(f"{exc} (or pass --fallback)") from None

    for warning in result["warnings"]:
        print(str(warning), file=sys.stderr)

    print(json.dumps(tree, indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
