"""csparse — parse ClearSilver templates into an AST.

Pipeline: scan source into tokens -> parse tags and expressions -> command tree.

Example:
    from csparse import parse, dump

    root = parse('<?cs if:user.name ?>Hi <?cs var:user.name ?><?cs /if ?>')
    print(dump(root))
"""

__version__ = "0.1.0"

from .ast import (
    Command,
    DataCommand,
    Expression,
    IfCommand,
    MultipleCommand,
    Node,
    NoopCommand,
    NoopExpression,
    Position,
    Variable,
    load_json,
)
from .errors import LexError, ParseError, TemplateSyntaxError, UnclosedBlockError
from .lexer import LexState, Scanner, Token, TokenType, tokenize
from .parser import Parser, parse, parse_expression, parse_file
from .tree import body_commands, flatten, fold_if_chain
from .visitor import NodeVisitor, dump, iter_child_nodes, walk

__all__ = [
    # Parse
    "parse",
    "parse_file",
    "parse_expression",
    "Parser",
    # Scan
    "tokenize",
    "Scanner",
    "Token",
    "TokenType",
    "LexState",
    # Errors
    "ParseError",
    "LexError",
    "TemplateSyntaxError",
    "UnclosedBlockError",
    # AST
    "Node",
    "Position",
    "Command",
    "Expression",
    "Variable",
    "MultipleCommand",
    "DataCommand",
    "IfCommand",
    "NoopCommand",
    "NoopExpression",
    "load_json",
    # Tree building
    "flatten",
    "fold_if_chain",
    "body_commands",
    # Traversal
    "NodeVisitor",
    "dump",
    "walk",
    "iter_child_nodes",
]
