"""Errors raised while scanning and parsing templates.

Every error carries the character offset it refers to along with the
1-based line and column, and the source name passed to the parser.
"""


class ParseError(Exception):
    kind = "ParseError"

    def __init__(self, msg: str, offset: int, line: int, column: int, name: str = ""):
        location = f"line {line}, col {column}"
        if name:
            location = f"{name}: {location}"
        super().__init__(f"{location}: {msg}")
        self.msg = msg
        self.offset = offset
        self.line = line
        self.column = column
        self.name = name


class LexError(ParseError):
    """No token rule of the active scanner state matches at ``offset``."""

    kind = "LexError"

    def __init__(self, state, char: str, offset: int, line: int, column: int, name: str = ""):
        super().__init__(
            f"unexpected character {char!r} in {state.value} state", offset, line, column, name
        )
        self.state = state
        self.char = char


class TemplateSyntaxError(ParseError):
    """The token stream does not match the template grammar."""

    kind = "SyntaxError"

    def __init__(
        self, expected: str, found: str, offset: int, line: int, column: int, name: str = ""
    ):
        super().__init__(f"expected {expected}, found {found}", offset, line, column, name)
        self.expected = expected
        self.found = found


class UnclosedBlockError(ParseError):
    """End of input reached while a block still waits for its close tag."""

    kind = "UnclosedBlockError"

    def __init__(self, keyword: str, offset: int, line: int, column: int, name: str = ""):
        super().__init__(
            f"'{keyword}' block opened here is never closed with '/{keyword}'",
            offset,
            line,
            column,
            name,
        )
        self.keyword = keyword
