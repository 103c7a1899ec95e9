"""
Line tokenizer for the rvstep assembler.

Turns one line of assembly into a short list of typed tokens. The
assembler then classifies the token sequence into a line shape
(see assembler.py), so the lexer itself knows nothing about mnemonics.

Recognised lexemes:
    x0 .. x31     REGISTER  (prefix is case-insensitive, value is the index)
    -12, 7        INT       (decimal, optional leading minus)
    loop, addi    IDENT     (mnemonics and label names)
    ,  :          COMMA, COLON
    # ...         comment, dropped up to end of line
"""

from __future__ import annotations
import enum
from dataclasses import dataclass
from typing import List, Union


class TokenType(enum.Enum):
    IDENT = "IDENT"
    REGISTER = "REGISTER"
    INT = "INT"
    COMMA = ","
    COLON = ":"
    EOF = "EOF"


@dataclass
class Token:
    type: TokenType
    value: Union[str, int]
    line: int
    col: int

    def __repr__(self):
        return f"Token({self.type.name}, {self.value!r}, L{self.line}:{self.col})"


class LexerError(Exception):
    def __init__(self, message: str, line: int, col: int):
        self.line = line
        self.col = col
        super().__init__(f"Lexer error at L{line}:{col}: {message}")


COMMENT_CHAR = "#"
DIGITS = "0123456789"

PUNCTUATION = {
    ",": TokenType.COMMA,
    ":": TokenType.COLON,
}


def _is_ident_start(ch: str) -> bool:
    return ch.isascii() and (ch.isalpha() or ch == "_")


def _is_ident_char(ch: str) -> bool:
    return ch.isascii() and (ch.isalnum() or ch == "_")


class Lexer:
    """Tokenizes a single source line.

    The trailing EOF token is always present so the assembler can match
    token shapes without bounds checks.
    """

    def __init__(self, text: str, line: int = 1):
        self.text = text
        self.line = line
        self.pos = 0
        self.tokens: List[Token] = []

    def _peek(self, offset: int = 0) -> str:
        i = self.pos + offset
        return self.text[i] if i < len(self.text) else "\0"

    def _col(self) -> int:
        return self.pos + 1

    def tokenize(self) -> List[Token]:
        self.tokens = []
        while self.pos < len(self.text):
            ch = self.text[self.pos]

            if ch in " \t\r\n":
                self.pos += 1
                continue

            if ch == COMMENT_CHAR:
                break

            if ch in PUNCTUATION:
                self.tokens.append(Token(PUNCTUATION[ch], ch, self.line, self._col()))
                self.pos += 1
                continue

            if ch in DIGITS or (ch == "-" and self._peek(1) in DIGITS):
                self.tokens.append(self._read_int())
                continue

            if _is_ident_start(ch):
                self.tokens.append(self._read_word())
                continue

            raise LexerError(f"Unexpected character {ch!r}", self.line, self._col())

        self.tokens.append(Token(TokenType.EOF, "", self.line, self._col()))
        return self.tokens

    def _read_int(self) -> Token:
        start = self.pos
        if self.text[self.pos] == "-":
            self.pos += 1
        while self.pos < len(self.text) and self.text[self.pos] in DIGITS:
            self.pos += 1
        if _is_ident_char(self._peek()):
            raise LexerError(f"Malformed number {self.text[start:self.pos + 1]!r}",
                             self.line, start + 1)
        return Token(TokenType.INT, int(self.text[start:self.pos]), self.line, start + 1)

    def _read_word(self) -> Token:
        start = self.pos
        while self.pos < len(self.text) and _is_ident_char(self.text[self.pos]):
            self.pos += 1
        word = self.text[start:self.pos]

        # x<digits> is a register; anything else (x, xy, x1a) is an identifier
        if word[0] in "xX" and len(word) > 1 and word[1:].isdigit():
            return Token(TokenType.REGISTER, int(word[1:]), self.line, start + 1)
        return Token(TokenType.IDENT, word, self.line, start + 1)


def tokenize_line(text: str, line: int = 1) -> List[Token]:
    """Convenience wrapper: tokenize one line."""
    return Lexer(text, line).tokenize()
