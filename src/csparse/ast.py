"""AST nodes for ClearSilver templates.

Three node families, each a discriminated union keyed on ``type``:

    Command     template statements and literal text
    Expression  value-producing computations
    Variable    paths into the evaluator's data model

Nodes are frozen once built; ordered children are tuples.
"""

from typing import Annotated
from typing import Literal as TypingLiteral

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter


class Node(BaseModel):
    model_config = ConfigDict(frozen=True)


class Position(Node):
    """Location of the ``<`` of the tag a command came from.

    ``offset`` counts characters of the decoded source, not bytes, so
    ``"\u00e9<?cs var:x ?>"`` puts the tag at offset 1.
    """

    offset: int
    line: int
    column: int


# Variables
class NameVariable(Node):
    type: TypingLiteral["name"] = "name"
    word: str


class DecNumberVariable(Node):
    """Numerically named variable (e.g. ``$1`` or the ``2`` in ``a.2``)."""

    type: TypingLiteral["dec_number"] = "dec_number"
    value: str


class HexNumberVariable(Node):
    type: TypingLiteral["hex_number"] = "hex_number"
    value: str


class DescendVariable(Node):
    """``parent.child``"""

    type: TypingLiteral["descend"] = "descend"
    parent: "Variable"
    child: "Variable"


class ExpandVariable(Node):
    """``parent[index]``"""

    type: TypingLiteral["expand"] = "expand"
    parent: "Variable"
    index: "Expression"


Variable = Annotated[
    NameVariable | DecNumberVariable | HexNumberVariable | DescendVariable | ExpandVariable,
    Field(discriminator="type"),
]


# Expressions
class StringExpression(Node):
    type: TypingLiteral["string"] = "string"
    value: str  # without the quotes


class DecimalExpression(Node):
    type: TypingLiteral["decimal"] = "decimal"
    value: str


class HexExpression(Node):
    type: TypingLiteral["hex"] = "hex"
    value: str  # including the 0x prefix


class NumericExpression(Node):
    """``#value``: coerce the operand to a number."""

    type: TypingLiteral["numeric"] = "numeric"
    operand: "Expression"


class VariableExpression(Node):
    type: TypingLiteral["variable"] = "variable"
    variable: Variable


class FunctionExpression(Node):
    type: TypingLiteral["function"] = "function"
    callee: Variable
    arguments: tuple["Expression", ...] = ()


class SequenceExpression(Node):
    """Parenthesized, comma-separated list of two or more expressions."""

    type: TypingLiteral["sequence"] = "sequence"
    items: tuple["Expression", ...]


class NegativeExpression(Node):
    type: TypingLiteral["negative"] = "negative"
    operand: "Expression"


class NotExpression(Node):
    type: TypingLiteral["not"] = "not"
    operand: "Expression"


class ExistsExpression(Node):
    type: TypingLiteral["exists"] = "exists"
    operand: "Expression"


class BinaryExpression(Node):
    left: "Expression"
    right: "Expression"


class EqExpression(BinaryExpression):
    type: TypingLiteral["eq"] = "eq"


class NumericEqExpression(BinaryExpression):
    type: TypingLiteral["numeric_eq"] = "numeric_eq"


class NeExpression(BinaryExpression):
    type: TypingLiteral["ne"] = "ne"


class NumericNeExpression(BinaryExpression):
    type: TypingLiteral["numeric_ne"] = "numeric_ne"


class LtExpression(BinaryExpression):
    type: TypingLiteral["lt"] = "lt"


class GtExpression(BinaryExpression):
    type: TypingLiteral["gt"] = "gt"


class LteExpression(BinaryExpression):
    type: TypingLiteral["lte"] = "lte"


class GteExpression(BinaryExpression):
    type: TypingLiteral["gte"] = "gte"


class AndExpression(BinaryExpression):
    type: TypingLiteral["and"] = "and"


class OrExpression(BinaryExpression):
    type: TypingLiteral["or"] = "or"


class AddExpression(BinaryExpression):
    type: TypingLiteral["add"] = "add"


class NumericAddExpression(BinaryExpression):
    type: TypingLiteral["numeric_add"] = "numeric_add"


class SubtractExpression(BinaryExpression):
    type: TypingLiteral["subtract"] = "subtract"


class MultiplyExpression(BinaryExpression):
    type: TypingLiteral["multiply"] = "multiply"


class DivideExpression(BinaryExpression):
    type: TypingLiteral["divide"] = "divide"


class ModuloExpression(BinaryExpression):
    type: TypingLiteral["modulo"] = "modulo"


class CommaExpression(BinaryExpression):
    type: TypingLiteral["comma"] = "comma"


class NoopExpression(Node):
    type: TypingLiteral["noop"] = "noop"


Expression = Annotated[
    StringExpression
    | DecimalExpression
    | HexExpression
    | NumericExpression
    | VariableExpression
    | FunctionExpression
    | SequenceExpression
    | NegativeExpression
    | NotExpression
    | ExistsExpression
    | EqExpression
    | NumericEqExpression
    | NeExpression
    | NumericNeExpression
    | LtExpression
    | GtExpression
    | LteExpression
    | GteExpression
    | AndExpression
    | OrExpression
    | AddExpression
    | NumericAddExpression
    | SubtractExpression
    | MultiplyExpression
    | DivideExpression
    | ModuloExpression
    | CommaExpression
    | NoopExpression,
    Field(discriminator="type"),
]


# Commands
class MultipleCommand(Node):
    """Two or more sibling commands, in source order."""

    type: TypingLiteral["multiple"] = "multiple"
    commands: tuple["Command", ...]


class DataCommand(Node):
    type: TypingLiteral["data"] = "data"
    text: str


class CommentCommand(Node):
    type: TypingLiteral["comment"] = "comment"
    position: Position
    text: str | None = None


class VarCommand(Node):
    type: TypingLiteral["var"] = "var"
    position: Position
    expression: Expression


class LvarCommand(Node):
    type: TypingLiteral["lvar"] = "lvar"
    position: Position
    expression: Expression


class EvarCommand(Node):
    type: TypingLiteral["evar"] = "evar"
    position: Position
    expression: Expression


class UvarCommand(Node):
    type: TypingLiteral["uvar"] = "uvar"
    position: Position
    expression: Expression


class SetCommand(Node):
    type: TypingLiteral["set"] = "set"
    position: Position
    variable: Variable
    expression: Expression


class NameCommand(Node):
    type: TypingLiteral["name"] = "name"
    position: Position
    variable: Variable


class EscapeCommand(Node):
    type: TypingLiteral["escape"] = "escape"
    position: Position
    expression: Expression
    body: "Command"


class AutoescapeCommand(Node):
    type: TypingLiteral["autoescape"] = "autoescape"
    position: Position
    expression: Expression
    body: "Command"


class WithCommand(Node):
    type: TypingLiteral["with"] = "with"
    position: Position
    variable: Variable
    expression: Expression
    body: "Command"


class LoopToCommand(Node):
    """``loop:i = end``"""

    type: TypingLiteral["loop_to"] = "loop_to"
    position: Position
    variable: Variable
    end: Expression
    body: "Command"


class LoopCommand(Node):
    """``loop:i = start, end``"""

    type: TypingLiteral["loop"] = "loop"
    position: Position
    variable: Variable
    start: Expression
    end: Expression
    body: "Command"


class LoopIncCommand(Node):
    """``loop:i = start, end, increment``"""

    type: TypingLiteral["loop_inc"] = "loop_inc"
    position: Position
    variable: Variable
    start: Expression
    end: Expression
    increment: Expression
    body: "Command"


class EachCommand(Node):
    type: TypingLiteral["each"] = "each"
    position: Position
    variable: Variable
    expression: Expression
    body: "Command"


class DefCommand(Node):
    """Macro definition: dotted macro name, parameter variables and body."""

    type: TypingLiteral["def"] = "def"
    position: Position
    name: tuple[str, ...] = Field(min_length=1)
    arguments: tuple[Variable, ...] = ()
    body: "Command"


class CallCommand(Node):
    type: TypingLiteral["call"] = "call"
    position: Position
    name: tuple[str, ...] = Field(min_length=1)
    arguments: tuple[Expression, ...] = ()


class IfCommand(Node):
    """``otherwise`` is the next elif as another IfCommand, the else body, or noop."""

    type: TypingLiteral["if"] = "if"
    position: Position
    condition: Expression
    block: "Command"
    otherwise: "Command"


class AltCommand(Node):
    type: TypingLiteral["alt"] = "alt"
    position: Position
    expression: Expression
    body: "Command"


class IncludeCommand(Node):
    type: TypingLiteral["include"] = "include"
    position: Position
    target: Expression


class HardIncludeCommand(Node):
    type: TypingLiteral["hard_include"] = "hard_include"
    position: Position
    target: Expression


class LincludeCommand(Node):
    type: TypingLiteral["linclude"] = "linclude"
    position: Position
    target: Expression


class HardLincludeCommand(Node):
    type: TypingLiteral["hard_linclude"] = "hard_linclude"
    position: Position
    target: Expression


class ContentTypeCommand(Node):
    type: TypingLiteral["content_type"] = "content_type"
    position: Position
    value: str  # without the quotes


class InlineCommand(Node):
    type: TypingLiteral["inline"] = "inline"
    position: Position
    body: "Command"


class NoopCommand(Node):
    type: TypingLiteral["noop"] = "noop"


Command = Annotated[
    MultipleCommand
    | DataCommand
    | CommentCommand
    | VarCommand
    | LvarCommand
    | EvarCommand
    | UvarCommand
    | SetCommand
    | NameCommand
    | EscapeCommand
    | AutoescapeCommand
    | WithCommand
    | LoopToCommand
    | LoopCommand
    | LoopIncCommand
    | EachCommand
    | DefCommand
    | CallCommand
    | IfCommand
    | AltCommand
    | IncludeCommand
    | HardIncludeCommand
    | LincludeCommand
    | HardLincludeCommand
    | ContentTypeCommand
    | InlineCommand
    | NoopCommand,
    Field(discriminator="type"),
]


# Rebuild models for forward references
for _model in list(Node.__subclasses__()) + list(BinaryExpression.__subclasses__()):
    _model.model_rebuild()
del _model

_command_adapter = TypeAdapter(Command)


def load_json(data: str | bytes) -> Command:
    """Rebuild a command tree from ``model_dump_json`` output."""
    return _command_adapter.validate_json(data)
