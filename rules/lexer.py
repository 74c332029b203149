from typing import List

from models.tokens import KEYWORDS, PUNCTUATION, Token, TokenKind
from rules.errors import LexError


def _is_word_char(char: str) -> bool:
    # ASCII only; str.isalnum() would also accept accented letters
    return char == "_" or ("a" <= char <= "z") or ("A" <= char <= "Z") or ("0" <= char <= "9")


class Lexer:
    """Turns rule text into a flat list of tokens with 1-based line/column positions."""

    def __init__(self, text: str):
        self.text = text
        self.pos = 0
        self.line = 1
        self.column = 1
        self.tokens: List[Token] = []

    def tokenize(self) -> List[Token]:
        while self.pos < len(self.text):
            char = self.text[self.pos]

            if char.isspace():
                self._advance()
                continue

            if char == '"':
                self._read_string()
                continue

            kind = PUNCTUATION.get(char)
            if kind is not None:
                self.tokens.append(Token(kind, char, self.line, self.column))
                self._advance()
                continue

            if _is_word_char(char):
                self._read_word()
                continue

            raise LexError(self.line, self.column, char)

        self.tokens.append(Token(TokenKind.EOF, None, self.line, self.column))
        return self.tokens

    def _advance(self):
        if self.text[self.pos] == "\n":
            self.line += 1
            self.column = 1
        else:
            self.column += 1
        self.pos += 1

    def _read_string(self):
        start_line, start_column = self.line, self.column
        self._advance()  # opening quote
        start = self.pos
        while self.pos < len(self.text) and self.text[self.pos] != '"':
            self._advance()

        if self.pos >= len(self.text):
            raise LexError(start_line, start_column, '"', "Unterminated string")

        value = self.text[start:self.pos]
        self._advance()  # closing quote
        self.tokens.append(Token(TokenKind.STRING, value, start_line, start_column))

    def _read_word(self):
        start_column = self.column
        start = self.pos
        while self.pos < len(self.text) and _is_word_char(self.text[self.pos]):
            self._advance()

        word = self.text[start:self.pos]
        kind = KEYWORDS.get(word.lower(), TokenKind.IDENTIFIER)
        self.tokens.append(Token(kind, word, self.line, start_column))


def tokenize(text: str) -> List[Token]:
    """Tokenize rule text; raises LexError on an unknown character or unterminated string."""
    return Lexer(text).tokenize()
