import re
from typing import List, Tuple, Union

from models.rules import (
    Action, Auto, Binary, Call, Condition, Folder, InPredicate, LogicOp, MarkRead,
    MarkUnread, Move, Not, Notify, Predicate, Program, Remind, Remove, Rule,
)
from models.tokens import Token, TokenKind
from rules.errors import ParseError
from rules.lexer import tokenize

# Words allowed in field position besides identifiers; keyword fields are lower-cased
FIELD_KINDS = {
    TokenKind.SENDER, TokenKind.SUBJECT, TokenKind.BODY,
    TokenKind.PRIORITY, TokenKind.TO, TokenKind.FROM,
    TokenKind.AS, TokenKind.READ, TokenKind.UNREAD,
}

# Actions that take no argument
SIMPLE_ACTIONS = {
    TokenKind.NOTIFY: Notify,
    TokenKind.CALL: Call,
    TokenKind.REMIND: Remind,
    TokenKind.AUTO: Auto,
}

INTEGER_RE = re.compile(r"^[0-9]+$")


class Parser:
    """
    Recursive-descent parser for .cxr rule text.

    Precedence, lowest first: OR, AND, NOT. Parentheses reset it.
    Every grammar violation raises ParseError at the offending token.
    """

    def __init__(self, tokens: List[Token]):
        self.tokens = tokens
        self.pos = 0

    def parse(self) -> Program:
        folders = []
        while not self._check(TokenKind.EOF):
            if not self._check(TokenKind.FOLDER):
                raise self._error("'Folder' declaration")
            folders.append(self._parse_folder())
        return Program(folders=tuple(folders))

    def _parse_folder(self) -> Folder:
        self._consume(TokenKind.FOLDER, "'Folder'")
        name = self._parse_target("folder name (identifier or string)")

        priority = 0
        if self._match(TokenKind.PRIORITY):
            token = self._consume(TokenKind.IDENTIFIER, "priority value")
            if not INTEGER_RE.match(token.text):
                raise ParseError(token.line, token.column, "integer priority value", token.describe())
            priority = int(token.text)

        rules = []
        while self._check(TokenKind.WHEN):
            rules.append(self._parse_rule())

        if not rules:
            raise self._error(f"at least one WHEN rule in folder '{name}'")

        return Folder(name=name, rules=tuple(rules), priority=priority)

    def _parse_rule(self) -> Rule:
        self._consume(TokenKind.WHEN, "'WHEN'")
        condition = self._parse_or()
        self._consume(TokenKind.THEN, "'THEN'")
        actions = [self._parse_action()]
        while self._match(TokenKind.AND):
            actions.append(self._parse_action())
        return Rule(condition=condition, actions=tuple(actions))

    # --- conditions ---

    def _parse_or(self) -> Condition:
        left = self._parse_and()
        while self._match(TokenKind.OR):
            left = Binary(LogicOp.OR, left, self._parse_and())
        return left

    def _parse_and(self) -> Condition:
        left = self._parse_not()
        while self._match(TokenKind.AND):
            left = Binary(LogicOp.AND, left, self._parse_not())
        return left

    def _parse_not(self) -> Condition:
        if self._match(TokenKind.NOT):
            return Not(self._parse_not())
        return self._parse_factor()

    def _parse_factor(self) -> Condition:
        if self._match(TokenKind.LPAREN):
            condition = self._parse_or()
            self._consume(TokenKind.RPAREN, "')'")
            return condition

        field = self._parse_field()

        if self._match(TokenKind.CONTAINS):
            return Predicate(field=field, value=self._parse_values("string or list after 'contains'", as_list=False))
        if self._match(TokenKind.IN):
            return InPredicate(field=field, values=self._parse_values("string or list after 'IN'", as_list=True))

        raise self._error("'contains' or 'IN'")

    def _parse_field(self) -> str:
        token = self._peek()
        if token.kind is TokenKind.IDENTIFIER:
            return self._advance().text
        if token.kind in FIELD_KINDS:
            return self._advance().text.lower()
        raise self._error("field (sender, subject, body, or custom field)")

    def _parse_values(self, expected: str, as_list: bool) -> Union[str, Tuple[str, ...]]:
        if self._check(TokenKind.STRING):
            value = self._advance().text
            return (value,) if as_list else value

        if not self._match(TokenKind.LBRACKET):
            raise self._error(expected)

        values = [self._consume(TokenKind.STRING, "string in list").text]
        while self._match(TokenKind.COMMA):
            values.append(self._consume(TokenKind.STRING, "string in list").text)
        self._consume(TokenKind.RBRACKET, "']'")
        return tuple(values)

    # --- actions ---

    def _parse_action(self) -> Action:
        if self._match(TokenKind.MOVE):
            self._consume(TokenKind.TO, "'to' after 'move'")
            return Move(self._parse_target("target folder (identifier or string)"))

        if self._match(TokenKind.REMOVE):
            self._consume(TokenKind.FROM, "'from' after 'remove'")
            return Remove(self._parse_target("target folder (identifier or string)"))

        action_cls = SIMPLE_ACTIONS.get(self._peek().kind)
        if action_cls is not None:
            self._advance()
            return action_cls()

        if self._match(TokenKind.MARK):
            self._consume(TokenKind.AS, "'as' after 'mark'")
            if self._match(TokenKind.READ):
                return MarkRead()
            if self._match(TokenKind.UNREAD):
                return MarkUnread()
            raise self._error("'read' or 'unread' after 'mark as'")

        raise self._error("action (move, remove, notify, call, remind, mark, auto)")

    def _parse_target(self, expected: str) -> str:
        if self._check(TokenKind.IDENTIFIER) or self._check(TokenKind.STRING):
            return self._advance().text
        raise self._error(expected)

    # --- token helpers ---

    def _peek(self) -> Token:
        return self.tokens[self.pos]

    def _advance(self) -> Token:
        token = self.tokens[self.pos]
        # EOF is never consumed
        if self.pos < len(self.tokens) - 1:
            self.pos += 1
        return token

    def _check(self, kind: TokenKind) -> bool:
        return self._peek().kind is kind

    def _match(self, kind: TokenKind) -> bool:
        if self._check(kind):
            self._advance()
            return True
        return False

    def _consume(self, kind: TokenKind, expected: str) -> Token:
        if self._check(kind):
            return self._advance()
        raise self._error(expected)

    def _error(self, expected: str) -> ParseError:
        token = self._peek()
        return ParseError(token.line, token.column, expected, token.describe())


def parse(tokens: List[Token]) -> Program:
    if not tokens or tokens[-1].kind is not TokenKind.EOF:
        raise ValueError("Token list must end with an EOF token")
    return Parser(tokens).parse()


def parse_rules(text: str) -> Program:
    """Tokenize and parse rule text in one step."""
    return parse(tokenize(text))
