"""Traversal helpers for evaluators and tooling.

``NodeVisitor`` dispatches on the node class, calling ``visit_<ClassName>``
(e.g. ``visit_IfCommand``) and falling back to ``generic_visit``, which visits
every child node.
"""

import json
from collections.abc import Iterator

from . import ast

# Text-bearing nodes whose string field is shown quoted by dump().
QUOTED = (ast.DataCommand, ast.CommentCommand, ast.StringExpression, ast.ContentTypeCommand)


def iter_fields(node: ast.Node) -> Iterator[tuple[str, object]]:
    """Yield (name, value) for each field except the ``type`` tag and position."""
    for name in type(node).model_fields:
        if name not in ("type", "position"):
            yield name, getattr(node, name)


def iter_child_nodes(node: ast.Node) -> Iterator[ast.Node]:
    for _, value in iter_fields(node):
        if isinstance(value, ast.Node):
            yield value
        elif isinstance(value, tuple):
            for item in value:
                if isinstance(item, ast.Node):
                    yield item


def walk(node: ast.Node) -> Iterator[ast.Node]:
    """Yield ``node`` and all its descendants, depth first in field order."""
    stack = [node]
    while stack:
        current = stack.pop()
        yield current
        stack.extend(reversed(list(iter_child_nodes(current))))


class NodeVisitor:
    def visit(self, node: ast.Node):
        method = getattr(self, f"visit_{type(node).__name__}", self.generic_visit)
        return method(node)

    def generic_visit(self, node: ast.Node):
        for child in iter_child_nodes(node):
            self.visit(child)


class _Dumper(NodeVisitor):
    def generic_visit(self, node: ast.Node) -> str:
        args = []
        for _, value in iter_fields(node):
            if value is None:
                continue
            args.append(self._format(node, value))
        if not args:
            return node.type
        return f"{node.type}({', '.join(args)})"

    def _format(self, node: ast.Node, value) -> str:
        if isinstance(value, ast.Node):
            return self.visit(value)
        if isinstance(value, tuple):
            if not value:
                return "[]"
            if all(isinstance(item, str) for item in value):
                return ".".join(value)  # macro name
            return "[" + ", ".join(self.visit(item) for item in value) + "]"
        if isinstance(node, QUOTED):
            return json.dumps(value)
        return str(value)

    def visit_MultipleCommand(self, node: ast.MultipleCommand) -> str:
        return f"multiple({', '.join(self.visit(c) for c in node.commands)})"

    def visit_SequenceExpression(self, node: ast.SequenceExpression) -> str:
        return f"sequence({', '.join(self.visit(e) for e in node.items)})"


def dump(node: ast.Node) -> str:
    """Render a tree compactly without positions.

    >>> from csparse import parse
    >>> dump(parse("<?cs if:a ?>X<?cs /if ?>"))
    'if(variable(name(a)), data("X"), noop)'
    """
    return _Dumper().visit(node)
