from dataclasses import dataclass
from enum import Enum
from typing import Optional


class TokenKind(Enum):
    # Structural
    FOLDER = "FOLDER"
    PRIORITY = "PRIORITY"
    WHEN = "WHEN"
    THEN = "THEN"

    # Logic
    AND = "AND"
    OR = "OR"
    NOT = "NOT"
    IN = "IN"
    CONTAINS = "CONTAINS"

    # Field shorthands
    SENDER = "SENDER"
    SUBJECT = "SUBJECT"
    BODY = "BODY"

    # Action starters
    MOVE = "MOVE"
    REMOVE = "REMOVE"
    NOTIFY = "NOTIFY"
    CALL = "CALL"
    REMIND = "REMIND"
    MARK = "MARK"
    AUTO = "AUTO"

    # Connectives
    TO = "TO"
    FROM = "FROM"
    AS = "AS"
    READ = "READ"
    UNREAD = "UNREAD"

    # Literals
    STRING = "STRING"
    IDENTIFIER = "IDENTIFIER"

    # Punctuation
    LPAREN = "LPAREN"
    RPAREN = "RPAREN"
    LBRACKET = "LBRACKET"
    RBRACKET = "RBRACKET"
    COMMA = "COMMA"

    EOF = "EOF"


# Lower-cased word -> keyword kind; anything else is an IDENTIFIER
KEYWORDS = {
    "folder": TokenKind.FOLDER,
    "priority": TokenKind.PRIORITY,
    "when": TokenKind.WHEN,
    "then": TokenKind.THEN,
    "and": TokenKind.AND,
    "or": TokenKind.OR,
    "not": TokenKind.NOT,
    "in": TokenKind.IN,
    "contains": TokenKind.CONTAINS,
    "sender": TokenKind.SENDER,
    "subject": TokenKind.SUBJECT,
    "body": TokenKind.BODY,
    "move": TokenKind.MOVE,
    "remove": TokenKind.REMOVE,
    "notify": TokenKind.NOTIFY,
    "call": TokenKind.CALL,
    "remind": TokenKind.REMIND,
    "mark": TokenKind.MARK,
    "auto": TokenKind.AUTO,
    "to": TokenKind.TO,
    "from": TokenKind.FROM,
    "as": TokenKind.AS,
    "read": TokenKind.READ,
    "unread": TokenKind.UNREAD,
}

PUNCTUATION = {
    "(": TokenKind.LPAREN,
    ")": TokenKind.RPAREN,
    "[": TokenKind.LBRACKET,
    "]": TokenKind.RBRACKET,
    ",": TokenKind.COMMA,
}


@dataclass(frozen=True)
class Token:
    kind: TokenKind
    text: Optional[str]  # original-case payload; None for EOF
    line: int
    column: int

    def describe(self) -> str:
        """Short form used in error messages."""
        if self.kind is TokenKind.EOF:
            return "end of input"
        if self.kind is TokenKind.STRING:
            return f'"{self.text}"'
        return f"'{self.text}'"
