"""Exceptions raised while loading, tokenizing and parsing rule text."""


class CxrError(Exception):
    """Base class for every error the rule engine raises."""


class LexError(CxrError):
    def __init__(self, line: int, column: int, char: str, message: str = None):
        self.line = line
        self.column = column
        self.char = char
        if message is None:
            message = f"Unexpected character '{char}'"
        super().__init__(f"Lexer Error at line {line}, column {column}: {message}")


class ParseError(CxrError):
    def __init__(self, line: int, column: int, expected: str, found: str):
        self.line = line
        self.column = column
        self.expected = expected
        self.found = found
        super().__init__(f"Parser Error at line {line}, column {column}: expected {expected}, found {found}")


class RuleFileNotFoundError(CxrError):
    def __init__(self, path: str):
        self.path = path
        super().__init__(f"Rule file not found: {path}")


class ConfigurationError(CxrError):
    """Invalid arguments handed to run()."""
