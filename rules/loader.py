import os
from typing import List, Union

from rules.errors import ConfigurationError, RuleFileNotFoundError

RULE_FILE_SUFFIX = ".cxr"


def _read_rule_source(source: str) -> str:
    """Return the rule text for one source; entries ending in .cxr are file paths."""
    path = source.strip()
    if not path.endswith(RULE_FILE_SUFFIX):
        return source
    if not os.path.isfile(path):
        raise RuleFileNotFoundError(path)
    with open(path, 'r', encoding='utf-8') as f:
        return f.read()


def resolve_rules(rules: Union[str, List[str]]) -> str:
    """Combine inline rule text and .cxr files into one string, newline separated."""
    sources = list(rules) if isinstance(rules, (list, tuple)) else [rules]
    if not sources:
        raise ConfigurationError("Invalid configuration: 'rules' is required (string or list).")

    texts = []
    for source in sources:
        if not isinstance(source, str):
            raise ConfigurationError("Invalid rule format: expected string content or file path.")
        texts.append(_read_rule_source(source))
    return "\n".join(texts)
