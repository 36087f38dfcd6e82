"""Parser for ClearSilver templates.

Grammar (simplified):
    template    = commands
    commands    = (DATA | command)*
    command     = "<?cs" keyword delimiter payload "?>" [commands close]
    close       = "<?cs" "/" keyword "?>"
    if          = "<?cs if:" expr "?>" commands
                  ("<?cs elif:" expr "?>" commands)*
                  ["<?cs else ?>" commands] "<?cs /if ?>"
    expr        = and_expr ("||" and_expr)*
    and_expr    = eq_expr ("&&" eq_expr)*
    eq_expr     = cmp_expr (("==" | "!=") cmp_expr)*
    cmp_expr    = add_expr (("<" | ">" | "<=" | ">=") add_expr)*
    add_expr    = mul_expr (("+" | "-") mul_expr)*
    mul_expr    = value (("*" | "/" | "%") value)*
    value       = variable ["(" [expr_list] ")"] | STRING | number
                | "#" value | "!" value | "?" value | "(" expr_list ")"
    number      = ["+" | "-"] (DEC_NUMBER | HEX_NUMBER)
    variable    = ("$"? WORD | "$" DEC_NUMBER | "$" HEX_NUMBER)
                  ("." (WORD | DEC_NUMBER | HEX_NUMBER) | "[" expr "]")*
    expr_list   = expr ("," expr)*
"""

import logging
from collections import deque
from pathlib import Path

from . import ast
from .errors import TemplateSyntaxError, UnclosedBlockError
from .lexer import LexState, Scanner, Token, TokenType
from .tree import flatten, fold_if_chain

logger = logging.getLogger(__name__)

# Tags that end the command sequence of an enclosing block.
BODY_TERMINATORS = {TokenType.SLASH, TokenType.ELSE, TokenType.ELSE_IF}

VAR_COMMANDS = {
    TokenType.VAR: ast.VarCommand,
    TokenType.LVAR: ast.LvarCommand,
    TokenType.EVAR: ast.EvarCommand,
    TokenType.UVAR: ast.UvarCommand,
}

INCLUDE_COMMANDS = {
    # (keyword, hard delimiter used)
    (TokenType.INCLUDE, False): ast.IncludeCommand,
    (TokenType.INCLUDE, True): ast.HardIncludeCommand,
    (TokenType.LINCLUDE, False): ast.LincludeCommand,
    (TokenType.LINCLUDE, True): ast.HardLincludeCommand,
}


def _describe(tok: Token) -> str:
    if tok.type is TokenType.EOF:
        return "end of input"
    if tok.type is TokenType.DATA:
        text = tok.value if len(tok.value) <= 20 else tok.value[:20] + "..."
        return f"text {text!r}"
    if tok.type in (TokenType.COMMAND_DELIMITER, TokenType.HARD_DELIMITER):
        return f"delimiter {tok.value.strip() or 'whitespace'!r}"
    return repr(tok.value.strip())


class Parser:
    """Recursive descent parser pulling tokens from a Scanner."""

    def __init__(self, scanner: Scanner):
        self.scanner = scanner
        self._lookahead: deque[Token] = deque()
        self._commands = {
            TokenType.COMMENT_START: self._parse_comment,
            TokenType.VAR: self._parse_var,
            TokenType.LVAR: self._parse_var,
            TokenType.EVAR: self._parse_var,
            TokenType.UVAR: self._parse_var,
            TokenType.SET: self._parse_set,
            TokenType.NAME: self._parse_name,
            TokenType.ESCAPE: self._parse_escape,
            TokenType.AUTOESCAPE: self._parse_escape,
            TokenType.WITH: self._parse_with,
            TokenType.LOOP: self._parse_loop,
            TokenType.EACH: self._parse_each,
            TokenType.DEF: self._parse_def,
            TokenType.CALL: self._parse_call,
            TokenType.IF: self._parse_if,
            TokenType.ALT: self._parse_alt,
            TokenType.INCLUDE: self._parse_include,
            TokenType.LINCLUDE: self._parse_include,
            TokenType.CONTENT_TYPE: self._parse_content_type,
            TokenType.INLINE: self._parse_inline,
        }

    # Token access

    def peek(self, offset: int = 0) -> Token:
        while len(self._lookahead) <= offset:
            self._lookahead.append(self.scanner.next_token())
        return self._lookahead[offset]

    def at(self, *types: TokenType) -> bool:
        return self.peek().type in types

    def advance(self) -> Token:
        tok = self.peek()
        self._lookahead.popleft()
        return tok

    def match(self, *types: TokenType) -> Token | None:
        if self.at(*types):
            return self.advance()
        return None

    def consume(self, ttype: TokenType, expected: str) -> Token:
        tok = self.peek()
        if tok.type is not ttype:
            raise self.error(expected, tok)
        return self.advance()

    def error(self, expected: str, tok: Token) -> TemplateSyntaxError:
        line, column = self.scanner.location(tok.offset)
        return TemplateSyntaxError(
            expected, _describe(tok), tok.offset, line, column, self.scanner.name
        )

    def position(self, tok: Token) -> ast.Position:
        line, column = self.scanner.location(tok.offset)
        return ast.Position(offset=tok.offset, line=line, column=column)

    # Statements

    def parse_template(self) -> ast.Command:
        """Parse the whole source into one root command."""
        commands = self.parse_commands()
        if not self.at(TokenType.EOF):
            # A close, else or elif tag with no block to attach to.
            raise self.error("a command or end of input", self.peek(1))
        root = flatten(commands)
        logger.debug(
            "parsed %s: %d top-level commands", self.scanner.name or "<string>", len(commands)
        )
        return root

    def parse_commands(self) -> list[ast.Command]:
        """Parse sibling commands up to end of input or a close/else/elif tag."""
        commands: list[ast.Command] = []
        while True:
            if tok := self.match(TokenType.DATA):
                commands.append(ast.DataCommand(text=tok.value))
            elif self.at(TokenType.CS_OPEN) and self.peek(1).type not in BODY_TERMINATORS:
                commands.append(self.parse_command())
            else:
                return commands

    def parse_command(self) -> ast.Command:
        open_tag = self.consume(TokenType.CS_OPEN, "'<?cs'")
        keyword = self.advance()
        handler = self._commands.get(keyword.type)
        if handler is None:
            raise self.error("command keyword", keyword)
        logger.debug("tag %r at offset %d", keyword.value, open_tag.offset)
        return handler(open_tag, keyword)

    def _delimiter(self, keyword: Token, allow_hard: bool = False) -> bool:
        """Consume the delimiter after ``keyword``; return True if it was ``!``."""
        if self.match(TokenType.COMMAND_DELIMITER):
            return False
        if allow_hard and self.match(TokenType.HARD_DELIMITER):
            return True
        raise self.error(f"':' after '{keyword.value}'", self.peek())

    def _close_tag(self) -> None:
        self.consume(TokenType.CS_CLOSE, "'?>'")

    def _body(self, open_tag: Token, keyword: Token) -> ast.Command:
        """Parse a block body followed by its matching close tag."""
        body = flatten(self.parse_commands())
        self._close_block(open_tag, keyword)
        return body

    def _close_block(self, open_tag: Token, keyword: Token) -> None:
        if self.at(TokenType.EOF):
            line, column = self.scanner.location(open_tag.offset)
            raise UnclosedBlockError(
                keyword.value, open_tag.offset, line, column, self.scanner.name
            )
        self.consume(TokenType.CS_OPEN, "'<?cs'")
        expected = f"'/{keyword.value}'"
        self.consume(TokenType.SLASH, expected)
        if not self.at(keyword.type):
            raise self.error(expected, self.peek())
        self.advance()
        self._close_tag()

    def _parse_comment(self, open_tag: Token, keyword: Token) -> ast.CommentCommand:
        text = None
        if tok := self.match(TokenType.COMMENT):
            text = tok.value
        self._close_tag()
        return ast.CommentCommand(position=self.position(open_tag), text=text)

    def _parse_var(self, open_tag: Token, keyword: Token) -> ast.Command:
        self._delimiter(keyword)
        expression = self.parse_expression()
        self._close_tag()
        return VAR_COMMANDS[keyword.type](
            position=self.position(open_tag), expression=expression
        )

    def _parse_set(self, open_tag: Token, keyword: Token) -> ast.SetCommand:
        self._delimiter(keyword)
        variable = self.parse_variable()
        self.consume(TokenType.ASSIGNMENT, "'='")
        expression = self.parse_expression()
        self._close_tag()
        return ast.SetCommand(
            position=self.position(open_tag), variable=variable, expression=expression
        )

    def _parse_name(self, open_tag: Token, keyword: Token) -> ast.NameCommand:
        self._delimiter(keyword)
        variable = self.parse_variable()
        self._close_tag()
        return ast.NameCommand(position=self.position(open_tag), variable=variable)

    def _parse_escape(self, open_tag: Token, keyword: Token) -> ast.Command:
        self._delimiter(keyword)
        expression = self.parse_expression()
        self._close_tag()
        body = self._body(open_tag, keyword)
        model = ast.EscapeCommand if keyword.type is TokenType.ESCAPE else ast.AutoescapeCommand
        return model(position=self.position(open_tag), expression=expression, body=body)

    def _parse_with(self, open_tag: Token, keyword: Token) -> ast.WithCommand:
        self._delimiter(keyword)
        variable = self.parse_variable()
        self.consume(TokenType.ASSIGNMENT, "'='")
        expression = self.parse_expression()
        self._close_tag()
        body = self._body(open_tag, keyword)
        return ast.WithCommand(
            position=self.position(open_tag),
            variable=variable,
            expression=expression,
            body=body,
        )

    def _parse_loop(self, open_tag: Token, keyword: Token) -> ast.Command:
        self._delimiter(keyword)
        variable = self.parse_variable()
        self.consume(TokenType.ASSIGNMENT, "'='")
        bounds = [self.parse_expression()]
        while len(bounds) < 3 and self.match(TokenType.COMMA):
            bounds.append(self.parse_expression())
        self._close_tag()
        body = self._body(open_tag, keyword)
        position = self.position(open_tag)

        if len(bounds) == 1:
            return ast.LoopToCommand(
                position=position, variable=variable, end=bounds[0], body=body
            )
        if len(bounds) == 2:
            return ast.LoopCommand(
                position=position, variable=variable, start=bounds[0], end=bounds[1], body=body
            )
        return ast.LoopIncCommand(
            position=position,
            variable=variable,
            start=bounds[0],
            end=bounds[1],
            increment=bounds[2],
            body=body,
        )

    def _parse_each(self, open_tag: Token, keyword: Token) -> ast.EachCommand:
        self._delimiter(keyword)
        variable = self.parse_variable()
        self.consume(TokenType.ASSIGNMENT, "'='")
        expression = self.parse_expression()
        self._close_tag()
        body = self._body(open_tag, keyword)
        return ast.EachCommand(
            position=self.position(open_tag),
            variable=variable,
            expression=expression,
            body=body,
        )

    def _parse_def(self, open_tag: Token, keyword: Token) -> ast.DefCommand:
        self._delimiter(keyword)
        name = self._parse_multipart_word()
        self.consume(TokenType.LPAREN, "'('")
        arguments = []
        if not self.at(TokenType.RPAREN):
            arguments.append(self.parse_variable())
            while self.match(TokenType.COMMA):
                arguments.append(self.parse_variable())
        self.consume(TokenType.RPAREN, "')'")
        self._close_tag()
        body = self._body(open_tag, keyword)
        return ast.DefCommand(
            position=self.position(open_tag), name=name, arguments=arguments, body=body
        )

    def _parse_call(self, open_tag: Token, keyword: Token) -> ast.CallCommand:
        self._delimiter(keyword)
        name = self._parse_multipart_word()
        self.consume(TokenType.LPAREN, "'('")
        arguments = []
        if not self.at(TokenType.RPAREN):
            arguments = self.parse_expression_list()
        self.consume(TokenType.RPAREN, "')'")
        self._close_tag()
        return ast.CallCommand(position=self.position(open_tag), name=name, arguments=arguments)

    def _parse_multipart_word(self) -> tuple[str, ...]:
        """Parse a dotted macro name (``a.b.c``)."""
        words = [self.consume(TokenType.WORD, "macro name").value]
        while self.match(TokenType.DOT):
            words.append(self.consume(TokenType.WORD, "macro name").value)
        return tuple(words)

    def _parse_if(self, open_tag: Token, keyword: Token) -> ast.IfCommand:
        branches = []
        tag, tag_keyword = open_tag, keyword
        while True:
            self._delimiter(tag_keyword)
            condition = self.parse_expression()
            self._close_tag()
            block = flatten(self.parse_commands())
            branches.append((self.position(tag), condition, block))
            if self.at(TokenType.CS_OPEN) and self.peek(1).type is TokenType.ELSE_IF:
                tag = self.advance()
                tag_keyword = self.advance()
                continue
            break

        otherwise = None
        if self.at(TokenType.CS_OPEN) and self.peek(1).type is TokenType.ELSE:
            self.advance()
            self.advance()
            self._close_tag()
            otherwise = flatten(self.parse_commands())

        self._close_block(open_tag, keyword)
        return fold_if_chain(branches, otherwise)

    def _parse_alt(self, open_tag: Token, keyword: Token) -> ast.AltCommand:
        self._delimiter(keyword)
        expression = self.parse_expression()
        self._close_tag()
        body = self._body(open_tag, keyword)
        return ast.AltCommand(position=self.position(open_tag), expression=expression, body=body)

    def _parse_include(self, open_tag: Token, keyword: Token) -> ast.Command:
        hard = self._delimiter(keyword, allow_hard=True)
        target = self.parse_expression()
        self._close_tag()
        return INCLUDE_COMMANDS[keyword.type, hard](
            position=self.position(open_tag), target=target
        )

    def _parse_content_type(self, open_tag: Token, keyword: Token) -> ast.ContentTypeCommand:
        self._delimiter(keyword)
        value = self.consume(TokenType.STRING, "string").value[1:-1]
        self._close_tag()
        return ast.ContentTypeCommand(position=self.position(open_tag), value=value)

    def _parse_inline(self, open_tag: Token, keyword: Token) -> ast.InlineCommand:
        self._close_tag()
        body = self._body(open_tag, keyword)
        return ast.InlineCommand(position=self.position(open_tag), body=body)

    # Expressions

    def parse_expression(self) -> ast.Expression:
        return self.parse_or()

    def parse_expression_list(self) -> list[ast.Expression]:
        items = [self.parse_expression()]
        while self.match(TokenType.COMMA):
            items.append(self.parse_expression())
        return items

    def parse_or(self) -> ast.Expression:
        left = self.parse_and()
        while self.match(TokenType.OR):
            right = self.parse_and()
            left = ast.OrExpression(left=left, right=right)
        return left

    def parse_and(self) -> ast.Expression:
        left = self.parse_equality()
        while self.match(TokenType.AND):
            right = self.parse_equality()
            left = ast.AndExpression(left=left, right=right)
        return left

    def parse_equality(self) -> ast.Expression:
        left = self.parse_comparison()
        op_map = {TokenType.EQ: ast.EqExpression, TokenType.NE: ast.NeExpression}
        while tok := self.match(*op_map):
            right = self.parse_comparison()
            left = op_map[tok.type](left=left, right=right)
        return left

    def parse_comparison(self) -> ast.Expression:
        left = self.parse_add()
        op_map = {
            TokenType.LT: ast.LtExpression,
            TokenType.GT: ast.GtExpression,
            TokenType.LTE: ast.LteExpression,
            TokenType.GTE: ast.GteExpression,
        }
        while tok := self.match(*op_map):
            right = self.parse_add()
            left = op_map[tok.type](left=left, right=right)
        return left

    def parse_add(self) -> ast.Expression:
        left = self.parse_mul()
        op_map = {TokenType.PLUS: ast.AddExpression, TokenType.MINUS: ast.SubtractExpression}
        while tok := self.match(*op_map):
            right = self.parse_mul()
            left = op_map[tok.type](left=left, right=right)
        return left

    def parse_mul(self) -> ast.Expression:
        left = self.parse_value()
        op_map = {
            TokenType.STAR: ast.MultiplyExpression,
            TokenType.SLASH: ast.DivideExpression,
            TokenType.PERCENT: ast.ModuloExpression,
        }
        while tok := self.match(*op_map):
            right = self.parse_value()
            left = op_map[tok.type](left=left, right=right)
        return left

    def parse_value(self) -> ast.Expression:
        """Parse a primary value, including the prefix operators ``# ! ?``."""
        if self.at(TokenType.WORD, TokenType.DOLLAR):
            variable = self.parse_variable()
            if self.match(TokenType.LPAREN):
                arguments = []
                if not self.at(TokenType.RPAREN):
                    arguments = self.parse_expression_list()
                self.consume(TokenType.RPAREN, "')'")
                return ast.FunctionExpression(callee=variable, arguments=arguments)
            return ast.VariableExpression(variable=variable)
        if tok := self.match(TokenType.STRING):
            return ast.StringExpression(value=tok.value[1:-1])
        if self.at(TokenType.DEC_NUMBER, TokenType.HEX_NUMBER, TokenType.PLUS, TokenType.MINUS):
            return self.parse_number()
        if self.match(TokenType.HASH):
            return ast.NumericExpression(operand=self.parse_value())
        if self.match(TokenType.BANG):
            return ast.NotExpression(operand=self.parse_value())
        if self.match(TokenType.QUESTION):
            return ast.ExistsExpression(operand=self.parse_value())
        if self.match(TokenType.LPAREN):
            items = self.parse_expression_list()
            self.consume(TokenType.RPAREN, "')'")
            if len(items) == 1:
                return items[0]
            return ast.SequenceExpression(items=items)

        raise self.error("expression", self.peek())

    def parse_number(self) -> ast.Expression:
        sign = self.match(TokenType.PLUS, TokenType.MINUS)
        if tok := self.match(TokenType.DEC_NUMBER):
            number = ast.DecimalExpression(value=tok.value)
        elif tok := self.match(TokenType.HEX_NUMBER):
            number = ast.HexExpression(value=tok.value)
        else:
            raise self.error("number", self.peek())
        if sign is not None and sign.type is TokenType.MINUS:
            return ast.NegativeExpression(operand=number)
        return number

    def parse_variable(self) -> ast.Variable:
        """Parse a variable path, folding ``.`` and ``[...]`` left to right."""
        if self.match(TokenType.DOLLAR):
            if tok := self.match(TokenType.DEC_NUMBER):
                variable = ast.DecNumberVariable(value=tok.value)
            elif tok := self.match(TokenType.HEX_NUMBER):
                variable = ast.HexNumberVariable(value=tok.value)
            else:
                word = self.consume(TokenType.WORD, "variable name")
                variable = ast.NameVariable(word=word.value)
        else:
            word = self.consume(TokenType.WORD, "variable name")
            variable = ast.NameVariable(word=word.value)

        while True:
            if self.match(TokenType.DOT):
                if tok := self.match(TokenType.DEC_NUMBER):
                    child = ast.DecNumberVariable(value=tok.value)
                elif tok := self.match(TokenType.HEX_NUMBER):
                    child = ast.HexNumberVariable(value=tok.value)
                else:
                    word = self.consume(TokenType.WORD, "name after '.'")
                    child = ast.NameVariable(word=word.value)
                variable = ast.DescendVariable(parent=variable, child=child)
            elif self.match(TokenType.LBRACKET):
                index = self.parse_expression()
                self.consume(TokenType.RBRACKET, "']'")
                variable = ast.ExpandVariable(parent=variable, index=index)
            else:
                return variable


def parse(source: str, name: str = "") -> ast.Command:
    """Parse template source into its root command."""
    parser = Parser(Scanner(source, name))
    return parser.parse_template()


def parse_file(filepath: str | Path, encoding: str = "utf-8") -> ast.Command:
    """Parse a template file."""
    filepath = Path(filepath)
    source = filepath.read_text(encoding=encoding)
    return parse(source, str(filepath))


def parse_expression(source: str, name: str = "") -> ast.Expression:
    """Parse a bare expression such as ``a.b[1] + 2``, without any tag around it."""
    scanner = Scanner(source, name)
    scanner.state = LexState.ARGS
    parser = Parser(scanner)
    expression = parser.parse_expression()
    parser.consume(TokenType.EOF, "end of expression")
    return expression
