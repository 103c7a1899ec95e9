"""Lexer tests for rvstep."""

import pytest

from rvstep.lexer import Lexer, LexerError, TokenType, tokenize_line


def _types(text: str) -> list:
    return [tok.type for tok in tokenize_line(text)]


def _values(text: str) -> list:
    return [tok.value for tok in tokenize_line(text) if tok.type is not TokenType.EOF]


class TestTokens:
    def test_r_type_line(self):
        assert _types("add x1, x2, x3") == [
            TokenType.IDENT, TokenType.REGISTER, TokenType.COMMA,
            TokenType.REGISTER, TokenType.COMMA, TokenType.REGISTER, TokenType.EOF,
        ]
        assert _values("add x1, x2, x3") == ["add", 1, ",", 2, ",", 3]

    def test_register_prefix_case_insensitive(self):
        tok = tokenize_line("X7")[0]
        assert tok.type is TokenType.REGISTER
        assert tok.value == 7

    def test_negative_immediate(self):
        assert _values("addi x1, x0, -5") == ["addi", 1, ",", 0, ",", -5]

    def test_label(self):
        assert _types("loop:") == [TokenType.IDENT, TokenType.COLON, TokenType.EOF]

    def test_register_lookalikes_are_identifiers(self):
        assert tokenize_line("x1a")[0].type is TokenType.IDENT
        assert tokenize_line("x")[0].type is TokenType.IDENT
        assert tokenize_line("xloop")[0].value == "xloop"

    def test_no_spaces_needed(self):
        assert _values("sw x2,4,x1") == ["sw", 2, ",", 4, ",", 1]


class TestComments:
    def test_comment_only(self):
        assert _types("   # just a comment") == [TokenType.EOF]

    def test_blank(self):
        assert _types("") == [TokenType.EOF]
        assert _types(" \t ") == [TokenType.EOF]

    def test_trailing_comment(self):
        assert _values("jal x0, loop # back") == ["jal", 0, ",", "loop"]


class TestPositions:
    def test_columns_are_one_based(self):
        tokens = tokenize_line("add x1, x2, x3")
        assert tokens[0].col == 1
        assert tokens[1].col == 5
        assert tokens[3].col == 9

    def test_line_number_carried(self):
        tokens = Lexer("add x1, x2, x3", line=12).tokenize()
        assert all(tok.line == 12 for tok in tokens)


class TestErrors:
    def test_unexpected_character(self):
        with pytest.raises(LexerError) as exc:
            tokenize_line("add x1, x2, @")
        assert exc.value.col == 13

    def test_malformed_number(self):
        with pytest.raises(LexerError, match="Malformed number"):
            tokenize_line("addi x1, x0, 12abc")

    def test_lone_minus(self):
        with pytest.raises(LexerError):
            tokenize_line("addi x1, x0, - 5")


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
