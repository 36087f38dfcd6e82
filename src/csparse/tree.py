"""Tree-building rules applied while the parser constructs commands."""

from collections.abc import Sequence

from . import ast


def flatten(commands: Sequence[ast.Command]) -> ast.Command:
    """Collapse sibling commands: none -> noop, one -> itself, more -> multiple."""
    if not commands:
        return ast.NoopCommand()
    if len(commands) == 1:
        return commands[0]
    return ast.MultipleCommand(commands=tuple(commands))


def fold_if_chain(
    branches: Sequence[tuple[ast.Position, ast.Expression, ast.Command]],
    otherwise: ast.Command | None = None,
) -> ast.IfCommand:
    """Right-fold ``if``/``elif`` branches into nested IfCommands.

    ``branches`` holds (position, condition, block) for the ``if`` tag followed
    by each ``elif`` tag in source order. ``otherwise`` is the ``else`` body, or
    None when the chain has no ``else``.
    """
    if not branches:
        raise ValueError("an if chain needs at least one branch")
    result = otherwise if otherwise is not None else ast.NoopCommand()
    for position, condition, block in reversed(branches):
        result = ast.IfCommand(
            position=position, condition=condition, block=block, otherwise=result
        )
    return result


def body_commands(command: ast.Command) -> tuple[ast.Command, ...]:
    """View any body shape (noop, multiple, single command) as a sequence."""
    if isinstance(command, ast.NoopCommand):
        return ()
    if isinstance(command, ast.MultipleCommand):
        return command.commands
    return (command,)
