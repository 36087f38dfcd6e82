"""Tests for the template scanner."""

import pytest

from csparse import LexError, LexState, Scanner, TokenType, tokenize

T = TokenType


def types(source: str) -> list[TokenType]:
    return [tok.type for tok in tokenize(source)]


class TestContent:
    def test_empty_input(self):
        """Empty input produces only EOF."""
        tokens = tokenize("")
        assert len(tokens) == 1
        assert tokens[0].type == T.EOF
        assert tokens[0].offset == 0

    def test_plain_text(self):
        """Text without tags is one data token."""
        tokens = tokenize("hello <b>world</b>")
        assert tokens[0].type == T.DATA
        assert tokens[0].value == "hello <b>world</b>"
        assert tokens[1].type == T.EOF

    def test_tag_open_needs_whitespace(self):
        """'<?cs' not followed by whitespace stays literal."""
        tokens = tokenize("a<?csb")
        assert [t.type for t in tokens] == [T.DATA, T.EOF]
        assert tokens[0].value == "a<?csb"

    def test_partial_tag_open_is_data(self):
        """Near misses of the tag opener are absorbed into data."""
        tokens = tokenize("x <?cx y <?c <?cs")
        assert [t.type for t in tokens] == [T.DATA, T.EOF]
        assert tokens[0].value == "x <?cx y <?c <?cs"

    def test_tag_open_after_text(self):
        """Data ends right before a real tag."""
        tokens = tokenize("a<?cs b")
        assert tokens[0].type == T.DATA
        assert tokens[0].value == "a"
        assert tokens[1].type == T.CS_OPEN
        assert tokens[1].offset == 1

    def test_tag_open_consumes_whitespace(self):
        """The opener swallows the whole run of whitespace after it."""
        tokens = tokenize("<?cs \t\n var:x ?>")
        assert tokens[0].type == T.CS_OPEN
        assert tokens[0].value == "<?cs \t\n "
        assert tokens[1].type == T.VAR

    def test_literal_after_false_start(self):
        """A near miss followed by a real tag splits at the real tag."""
        tokens = tokenize("<?csx<?cs var:a ?>")
        assert tokens[0].type == T.DATA
        assert tokens[0].value == "<?csx"
        assert tokens[1].type == T.CS_OPEN
        assert tokens[1].offset == 5


class TestCommandState:
    def test_var_tag(self):
        """A simple var tag walks through command, args and back to content."""
        assert types("a<?cs var:b ?>c") == [
            T.DATA,
            T.CS_OPEN,
            T.VAR,
            T.COMMAND_DELIMITER,
            T.WORD,
            T.CS_CLOSE,
            T.DATA,
            T.EOF,
        ]

    def test_all_keywords(self):
        """Every command keyword is recognized."""
        keywords = {
            "var": T.VAR,
            "lvar": T.LVAR,
            "evar": T.EVAR,
            "uvar": T.UVAR,
            "set": T.SET,
            "if": T.IF,
            "elif": T.ELSE_IF,
            "elseif": T.ELSE_IF,
            "else": T.ELSE,
            "with": T.WITH,
            "escape": T.ESCAPE,
            "autoescape": T.AUTOESCAPE,
            "loop": T.LOOP,
            "each": T.EACH,
            "alt": T.ALT,
            "name": T.NAME,
            "def": T.DEF,
            "call": T.CALL,
            "include": T.INCLUDE,
            "linclude": T.LINCLUDE,
            "content-type": T.CONTENT_TYPE,
            "inline": T.INLINE,
        }
        for word, ttype in keywords.items():
            tokens = tokenize(f"<?cs {word} ?>")
            assert tokens[1].type == ttype, f"Failed for keyword: {word}"
            assert tokens[1].value == word

    def test_unknown_keyword_is_word(self):
        """Unknown keywords are left for the parser to reject."""
        tokens = tokenize("<?cs bogus ?>")
        assert tokens[1].type == T.WORD
        assert tokens[1].value == "bogus"

    def test_close_tag(self):
        """The close marker '/' is scanned in command state."""
        assert types("<?cs /if ?>") == [T.CS_OPEN, T.SLASH, T.IF, T.CS_CLOSE, T.EOF]

    def test_close_without_space(self):
        """'?>' may directly follow the keyword."""
        assert types("<?cs /if?>") == [T.CS_OPEN, T.SLASH, T.IF, T.CS_CLOSE, T.EOF]

    def test_blank_before_close_wins_over_delimiter(self):
        """'else ?>' closes the tag instead of opening arguments."""
        assert types("<?cs else ?>") == [T.CS_OPEN, T.ELSE, T.CS_CLOSE, T.EOF]

    def test_whitespace_delimiter(self):
        """Whitespace alone delimits the keyword from its arguments."""
        tokens = tokenize("<?cs var x ?>")
        assert tokens[2].type == T.COMMAND_DELIMITER
        assert tokens[2].value == " "
        assert tokens[3].type == T.WORD

    def test_colon_delimiter_with_blanks(self):
        """Blanks around ':' belong to the delimiter."""
        tokens = tokenize("<?cs var : x ?>")
        assert tokens[2].type == T.COMMAND_DELIMITER
        assert tokens[2].value == " : "

    def test_hard_delimiter(self):
        """'!' after the keyword is the hard delimiter."""
        assert types("<?cs include!'a.cs' ?>") == [
            T.CS_OPEN,
            T.INCLUDE,
            T.HARD_DELIMITER,
            T.STRING,
            T.CS_CLOSE,
            T.EOF,
        ]

    def test_unexpected_character(self):
        """Characters with no rule in command state are lexical errors."""
        with pytest.raises(LexError) as exc:
            tokenize("<?cs %x ?>")
        assert exc.value.state == LexState.COMMAND
        assert exc.value.char == "%"
        assert exc.value.offset == 5

    def test_non_ascii_keyword_letter(self):
        """Keywords are ASCII letters only."""
        with pytest.raises(LexError) as exc:
            tokenize("<?cs \u00e9var:x ?>")
        assert exc.value.state == LexState.COMMAND
        assert exc.value.char == "\u00e9"
        assert exc.value.offset == 5


class TestArgsState:
    def test_operators(self):
        """Two-character operators win over their one-character prefixes."""
        tokens = tokenize("<?cs var:a==b!=c<=d>=e&&f||g<h>i=j!k ?>")
        ops = [t.type for t in tokens if t.type not in (T.WORD,)][3:-2]
        assert ops == [T.EQ, T.NE, T.LTE, T.GTE, T.AND, T.OR, T.LT, T.GT, T.ASSIGNMENT, T.BANG]

    def test_punctuation(self):
        """Arithmetic and structural punctuation."""
        assert types("<?cs var:$a.b[1](2),#+-*/%? ?>")[3:-2] == [
            T.DOLLAR,
            T.WORD,
            T.DOT,
            T.WORD,
            T.LBRACKET,
            T.DEC_NUMBER,
            T.RBRACKET,
            T.LPAREN,
            T.DEC_NUMBER,
            T.RPAREN,
            T.COMMA,
            T.HASH,
            T.PLUS,
            T.MINUS,
            T.STAR,
            T.SLASH,
            T.PERCENT,
            T.QUESTION,
        ]

    def test_numbers_and_words(self):
        """Digit runs are numbers only when wholly numeric."""
        tokens = tokenize("<?cs var:12 0x1F 0xZZ 2nd name_1 ?>")
        scanned = [(t.type, t.value) for t in tokens[3:-2]]
        assert scanned == [
            (T.DEC_NUMBER, "12"),
            (T.HEX_NUMBER, "0x1F"),
            (T.WORD, "0xZZ"),
            (T.WORD, "2nd"),
            (T.WORD, "name_1"),
        ]

    def test_strings_keep_quotes(self):
        """String tokens carry the exact source text, quotes included."""
        tokens = tokenize("<?cs var:\"a 'b'\" + 'c \"d\"' ?>")
        strings = [t.value for t in tokens if t.type == T.STRING]
        assert strings == ["\"a 'b'\"", "'c \"d\"'"]

    def test_strings_have_no_escapes(self):
        """A backslash does not escape the closing quote."""
        tokens = tokenize('<?cs var:"a\\" ?>')
        assert tokens[3].type == T.STRING
        assert tokens[3].value == '"a\\"'

    def test_unterminated_string(self):
        """An unterminated string is reported at its opening quote."""
        with pytest.raises(LexError) as exc:
            tokenize('<?cs var:"abc ?>')
        assert exc.value.offset == 9
        assert exc.value.char == '"'
        assert exc.value.state == LexState.ARGS

    def test_single_ampersand(self):
        """'&' on its own is not an operator."""
        with pytest.raises(LexError) as exc:
            tokenize("<?cs var:a & b ?>")
        assert exc.value.char == "&"
        assert exc.value.line == 1
        assert exc.value.column == 12

    def test_non_ascii_digits(self):
        """Unicode digits are neither numbers nor word characters."""
        for digit in ("\u00b2", "\u0663"):
            with pytest.raises(LexError) as exc:
                tokenize(f"<?cs var:a.{digit} ?>")
            assert exc.value.state == LexState.ARGS
            assert exc.value.char == digit
            assert exc.value.offset == 11

    def test_non_ascii_letters(self):
        """Word runs stop at non-ASCII letters."""
        with pytest.raises(LexError) as exc:
            tokenize("<?cs var:ab\u00e7 ?>")
        assert exc.value.char == "\u00e7"
        assert exc.value.offset == 11

    def test_question_before_close(self):
        """'?' followed by '>' closes the tag, otherwise it is the exists operator."""
        tokens = tokenize("<?cs if:?a?>")
        assert [t.type for t in tokens] == [
            T.CS_OPEN,
            T.IF,
            T.COMMAND_DELIMITER,
            T.QUESTION,
            T.WORD,
            T.CS_CLOSE,
            T.EOF,
        ]


class TestCommentState:
    def test_comment_text(self):
        """Comment text runs up to '?>'."""
        tokens = tokenize("<?cs # a < b ?>after")
        assert [t.type for t in tokens] == [
            T.CS_OPEN,
            T.COMMENT_START,
            T.COMMENT,
            T.CS_CLOSE,
            T.DATA,
            T.EOF,
        ]
        assert tokens[2].value == " a < b "
        assert tokens[4].value == "after"

    def test_empty_comment(self):
        """An empty comment yields no comment token."""
        assert types("<?cs #?>") == [T.CS_OPEN, T.COMMENT_START, T.CS_CLOSE, T.EOF]

    def test_unterminated_comment(self):
        """A comment without '?>' runs to end of input."""
        tokens = tokenize("<?cs #never closed")
        assert tokens[2].type == T.COMMENT
        assert tokens[2].value == "never closed"
        assert tokens[3].type == T.EOF


class TestScanner:
    def test_state_transitions(self):
        """The scanner state follows the tokens it emits."""
        scanner = Scanner("<?cs var:a ?>x<?cs #c ?>")
        states = []
        for _ in range(8):
            tok = scanner.next_token()
            states.append((tok.type, scanner.state))
        assert states == [
            (T.CS_OPEN, LexState.COMMAND),
            (T.VAR, LexState.COMMAND),
            (T.COMMAND_DELIMITER, LexState.ARGS),
            (T.WORD, LexState.ARGS),
            (T.CS_CLOSE, LexState.CONTENT),
            (T.DATA, LexState.CONTENT),
            (T.CS_OPEN, LexState.COMMAND),
            (T.COMMENT_START, LexState.COMMENT),
        ]

    def test_location(self):
        """Offsets map to 1-based line and column."""
        scanner = Scanner("ab\ncd\n\nef")
        assert scanner.location(0) == (1, 1)
        assert scanner.location(2) == (1, 3)
        assert scanner.location(3) == (2, 1)
        assert scanner.location(7) == (4, 1)
        assert scanner.location(8) == (4, 2)

    def test_token_offsets(self):
        """Every token records where its text starts."""
        source = "xy<?cs var:abc ?>"
        for tok in tokenize(source):
            if tok.type != T.EOF:
                assert source[tok.offset :].startswith(tok.value.strip() or tok.value)

    def test_tokens_are_immutable(self):
        """Tokens are frozen dataclasses."""
        tok = tokenize("a")[0]
        with pytest.raises(AttributeError):
            tok.value = "b"
