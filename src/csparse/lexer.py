"""Scanner for ClearSilver templates.

The scanner is pull-based: the parser asks for one token at a time and the
scanner switches state after emitting any token listed in ``TRANSITIONS``.

States:
    content   literal text up to the next ``<?cs`` followed by whitespace
    command   the command keyword, close marker ``/`` and tag delimiters
    args      expression operators, literals and words
    comment   raw comment text up to ``?>``
"""

from bisect import bisect_right
from dataclasses import dataclass
from enum import Enum

from .errors import LexError

TAG_OPEN = "<?cs"
TAG_CLOSE = "?>"
BLANKS = " \t\r\n"
HEX_DIGITS = "0123456789abcdefABCDEF"


class LexState(Enum):
    CONTENT = "content"
    COMMAND = "command"
    ARGS = "args"
    COMMENT = "comment"


class TokenType(Enum):
    # Text
    DATA = "DATA"
    COMMENT = "COMMENT"

    # Command keywords
    VAR = "var"
    LVAR = "lvar"
    EVAR = "evar"
    UVAR = "uvar"
    SET = "set"
    IF = "if"
    ELSE_IF = "elif"
    ELSE = "else"
    WITH = "with"
    ESCAPE = "escape"
    AUTOESCAPE = "autoescape"
    LOOP = "loop"
    EACH = "each"
    ALT = "alt"
    NAME = "name"
    DEF = "def"
    CALL = "call"
    INCLUDE = "include"
    LINCLUDE = "linclude"
    CONTENT_TYPE = "content-type"
    INLINE = "inline"

    # Operators and punctuation
    COMMA = ","
    BANG = "!"
    ASSIGNMENT = "="
    EQ = "=="
    NE = "!="
    LT = "<"
    GT = ">"
    LTE = "<="
    GTE = ">="
    AND = "&&"
    OR = "||"
    HASH = "#"
    PLUS = "+"
    MINUS = "-"
    STAR = "*"
    SLASH = "/"
    PERCENT = "%"
    LBRACKET = "["
    RBRACKET = "]"
    LPAREN = "("
    RPAREN = ")"
    DOT = "."
    DOLLAR = "$"
    QUESTION = "?"

    # Literals
    STRING = "STRING"
    DEC_NUMBER = "DEC_NUMBER"
    HEX_NUMBER = "HEX_NUMBER"
    WORD = "WORD"

    # Structure
    CS_OPEN = "<?cs"
    CS_CLOSE = "?>"
    COMMENT_START = "COMMENT_START"
    COMMAND_DELIMITER = "COMMAND_DELIMITER"
    HARD_DELIMITER = "HARD_DELIMITER"
    EOF = "EOF"


@dataclass(frozen=True)
class Token:
    type: TokenType
    value: str  # exact source text
    offset: int


COMMAND_KEYWORDS = {
    "var": TokenType.VAR,
    "lvar": TokenType.LVAR,
    "evar": TokenType.EVAR,
    "uvar": TokenType.UVAR,
    "set": TokenType.SET,
    "if": TokenType.IF,
    "elif": TokenType.ELSE_IF,
    "elseif": TokenType.ELSE_IF,
    "else": TokenType.ELSE,
    "with": TokenType.WITH,
    "escape": TokenType.ESCAPE,
    "autoescape": TokenType.AUTOESCAPE,
    "loop": TokenType.LOOP,
    "each": TokenType.EACH,
    "alt": TokenType.ALT,
    "name": TokenType.NAME,
    "def": TokenType.DEF,
    "call": TokenType.CALL,
    "include": TokenType.INCLUDE,
    "linclude": TokenType.LINCLUDE,
    "content-type": TokenType.CONTENT_TYPE,
    "inline": TokenType.INLINE,
}

# Longest operators first so "==" wins over "=".
ARGS_OPERATORS = [
    ("==", TokenType.EQ),
    ("!=", TokenType.NE),
    ("<=", TokenType.LTE),
    (">=", TokenType.GTE),
    ("&&", TokenType.AND),
    ("||", TokenType.OR),
    (",", TokenType.COMMA),
    ("!", TokenType.BANG),
    ("=", TokenType.ASSIGNMENT),
    ("<", TokenType.LT),
    (">", TokenType.GT),
    ("#", TokenType.HASH),
    ("+", TokenType.PLUS),
    ("-", TokenType.MINUS),
    ("*", TokenType.STAR),
    ("/", TokenType.SLASH),
    ("%", TokenType.PERCENT),
    ("[", TokenType.LBRACKET),
    ("]", TokenType.RBRACKET),
    ("(", TokenType.LPAREN),
    (")", TokenType.RPAREN),
    (".", TokenType.DOT),
    ("$", TokenType.DOLLAR),
    ("?", TokenType.QUESTION),
]

TRANSITIONS: dict[tuple[LexState, TokenType], LexState] = {
    (LexState.CONTENT, TokenType.CS_OPEN): LexState.COMMAND,
    (LexState.COMMAND, TokenType.COMMENT_START): LexState.COMMENT,
    (LexState.COMMAND, TokenType.COMMAND_DELIMITER): LexState.ARGS,
    (LexState.COMMAND, TokenType.HARD_DELIMITER): LexState.ARGS,
    (LexState.COMMAND, TokenType.CS_CLOSE): LexState.CONTENT,
    (LexState.ARGS, TokenType.CS_CLOSE): LexState.CONTENT,
    (LexState.COMMENT, TokenType.CS_CLOSE): LexState.CONTENT,
}


def _is_word_char(ch: str) -> bool:
    return ch.isascii() and (ch.isalnum() or ch == "_")


class Scanner:
    """Turns template source into tokens on demand."""

    def __init__(self, source: str, name: str = ""):
        self.source = source
        self.name = name
        self.pos = 0
        self.state = LexState.CONTENT
        self._line_starts = [0]
        for i, ch in enumerate(source):
            if ch == "\n":
                self._line_starts.append(i + 1)

    def location(self, offset: int) -> tuple[int, int]:
        """Return the 1-based (line, column) of a character offset."""
        line = bisect_right(self._line_starts, offset)
        return line, offset - self._line_starts[line - 1] + 1

    def next_token(self) -> Token:
        if self.state is LexState.CONTENT:
            token = self._scan_content()
        elif self.state is LexState.COMMAND:
            token = self._scan_command()
        elif self.state is LexState.ARGS:
            token = self._scan_args()
        else:
            token = self._scan_comment()
        self.state = TRANSITIONS.get((self.state, token.type), self.state)
        return token

    def __iter__(self):
        while True:
            token = self.next_token()
            yield token
            if token.type is TokenType.EOF:
                return

    def _emit(self, ttype: TokenType, start: int, end: int) -> Token:
        self.pos = end
        return Token(ttype, self.source[start:end], start)

    def _eof(self) -> Token:
        self.pos = len(self.source)
        return Token(TokenType.EOF, "", self.pos)

    def _error(self, offset: int) -> LexError:
        line, column = self.location(offset)
        return LexError(self.state, self.source[offset], offset, line, column, self.name)

    def _skip_blanks(self, pos: int) -> int:
        while pos < len(self.source) and self.source[pos] in BLANKS:
            pos += 1
        return pos

    def _at_tag_open(self, pos: int) -> bool:
        # "<?cs" only opens a tag when followed by whitespace.
        end = pos + len(TAG_OPEN)
        return (
            self.source.startswith(TAG_OPEN, pos)
            and end < len(self.source)
            and self.source[end] in BLANKS
        )

    def _scan_content(self) -> Token:
        start = self.pos
        if start >= len(self.source):
            return self._eof()
        if self._at_tag_open(start):
            return self._emit(
                TokenType.CS_OPEN, start, self._skip_blanks(start + len(TAG_OPEN))
            )

        end = start
        while True:
            end = self.source.find(TAG_OPEN, end + 1)
            if end == -1:
                end = len(self.source)
                break
            if self._at_tag_open(end):
                break
        return self._emit(TokenType.DATA, start, end)

    def _scan_command(self) -> Token:
        src = self.source
        start = self.pos
        pos = self._skip_blanks(start)

        if src.startswith(TAG_CLOSE, pos):
            return self._emit(TokenType.CS_CLOSE, start, pos + len(TAG_CLOSE))
        if pos < len(src) and src[pos] == ":":
            return self._emit(TokenType.COMMAND_DELIMITER, start, self._skip_blanks(pos + 1))
        if pos < len(src) and src[pos] == "!":
            return self._emit(TokenType.HARD_DELIMITER, start, self._skip_blanks(pos + 1))
        if pos > start:
            return self._emit(TokenType.COMMAND_DELIMITER, start, pos)
        if pos >= len(src):
            return self._eof()

        ch = src[pos]
        if ch == "#":
            return self._emit(TokenType.COMMENT_START, pos, pos + 1)
        if ch == "/":
            return self._emit(TokenType.SLASH, pos, pos + 1)
        if ch.isascii() and ch.isalpha():
            end = pos
            while end < len(src) and (_is_word_char(src[end]) or src[end] == "-"):
                end += 1
            ttype = COMMAND_KEYWORDS.get(src[pos:end], TokenType.WORD)
            return self._emit(ttype, pos, end)
        raise self._error(pos)

    def _scan_args(self) -> Token:
        src = self.source
        pos = self._skip_blanks(self.pos)
        if pos >= len(src):
            return self._eof()

        if src.startswith(TAG_CLOSE, pos):
            return self._emit(TokenType.CS_CLOSE, pos, pos + len(TAG_CLOSE))

        ch = src[pos]
        if ch == '"' or ch == "'":
            end = src.find(ch, pos + 1)
            if end == -1:
                raise self._error(pos)
            return self._emit(TokenType.STRING, pos, end + 1)

        if _is_word_char(ch):
            end = pos
            while end < len(src) and _is_word_char(src[end]):
                end += 1
            return self._emit(self._classify_word(src[pos:end]), pos, end)

        for lexeme, ttype in ARGS_OPERATORS:
            if src.startswith(lexeme, pos):
                return self._emit(ttype, pos, pos + len(lexeme))

        raise self._error(pos)

    @staticmethod
    def _classify_word(text: str) -> TokenType:
        if text.isascii() and text.isdigit():
            return TokenType.DEC_NUMBER
        if (
            len(text) > 2
            and text[0] == "0"
            and text[1] in "xX"
            and all(c in HEX_DIGITS for c in text[2:])
        ):
            return TokenType.HEX_NUMBER
        return TokenType.WORD

    def _scan_comment(self) -> Token:
        start = self.pos
        if start >= len(self.source):
            return self._eof()
        end = self.source.find(TAG_CLOSE, start)
        if end == start:
            return self._emit(TokenType.CS_CLOSE, start, start + len(TAG_CLOSE))
        if end == -1:
            end = len(self.source)
        return self._emit(TokenType.COMMENT, start, end)


def tokenize(source: str, name: str = "") -> list[Token]:
    """Scan a whole template, following state transitions, up to EOF."""
    return list(Scanner(source, name))
