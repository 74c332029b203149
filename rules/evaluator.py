from collections.abc import Mapping
from typing import Any, Callable, Dict, Optional

from models.rules import Binary, Condition, InPredicate, LogicOp, Not, Predicate

# Rule-language field name -> record property name
DEFAULT_SCHEMA = {
    "sender": "from",
    "subject": "subject",
    "body": "body",
}

FieldAccessor = Callable[[str], str]


def build_schema(overrides: Optional[Dict[str, str]] = None) -> Dict[str, str]:
    """Merge caller overrides over the default schema, entry by entry."""
    schema = dict(DEFAULT_SCHEMA)
    if overrides:
        schema.update(overrides)
    return schema


def _read_property(record: Any, name: str) -> Any:
    if isinstance(record, Mapping):
        return record.get(name)
    return getattr(record, name, None)


def field_accessor(record: Any, schema: Dict[str, str]) -> FieldAccessor:
    """
    Build a lookup for one record. Fields missing from the schema read the
    record property of the same name; missing or non-string values read as "".
    """
    def lookup(field: str) -> str:
        value = _read_property(record, schema.get(field, field))
        return value if isinstance(value, str) else ""
    return lookup


def evaluate(condition: Condition, record: Any, schema: Optional[Dict[str, str]] = None) -> bool:
    """Evaluate a condition tree against one record; schema entries override the defaults."""
    return evaluate_with(condition, field_accessor(record, build_schema(schema)))


def evaluate_with(condition: Condition, lookup: FieldAccessor) -> bool:
    if isinstance(condition, Binary):
        if condition.op is LogicOp.AND:
            return evaluate_with(condition.left, lookup) and evaluate_with(condition.right, lookup)
        if condition.op is LogicOp.OR:
            return evaluate_with(condition.left, lookup) or evaluate_with(condition.right, lookup)
        raise TypeError(f"Unknown binary operator: {condition.op!r}")

    if isinstance(condition, Not):
        return not evaluate_with(condition.arg, lookup)

    if isinstance(condition, Predicate):
        targets = (condition.value,) if isinstance(condition.value, str) else condition.value
        return _contains_any(lookup(condition.field), targets)

    if isinstance(condition, InPredicate):
        # IN is substring containment against any entry, same as a contains list
        return _contains_any(lookup(condition.field), condition.values)

    raise TypeError(f"Unknown condition node: {condition!r}")


def _contains_any(value: str, targets) -> bool:
    haystack = value.lower()
    return any(target.lower() in haystack for target in targets)
