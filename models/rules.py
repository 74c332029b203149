from dataclasses import dataclass
from enum import Enum
from typing import Tuple, Union


class LogicOp(Enum):
    AND = "AND"
    OR = "OR"


# Conditions: one frozen dataclass per variant, combined into the Condition union below
@dataclass(frozen=True)
class Binary:
    op: LogicOp
    left: "Condition"
    right: "Condition"


@dataclass(frozen=True)
class Not:
    arg: "Condition"


@dataclass(frozen=True)
class Predicate:
    field: str
    value: Union[str, Tuple[str, ...]]  # a single string or a bracketed list
    op: str = "contains"


@dataclass(frozen=True)
class InPredicate:
    field: str
    values: Tuple[str, ...]


Condition = Union[Binary, Not, Predicate, InPredicate]


# Actions are advisory labels; only Move changes where the record lands
@dataclass(frozen=True)
class Move:
    target: str

    def describe(self) -> str:
        return f"move to {self.target}"


@dataclass(frozen=True)
class Remove:
    target: str

    def describe(self) -> str:
        return f"remove from {self.target}"


@dataclass(frozen=True)
class Notify:
    def describe(self) -> str:
        return "notify"


@dataclass(frozen=True)
class Call:
    def describe(self) -> str:
        return "call"


@dataclass(frozen=True)
class Remind:
    def describe(self) -> str:
        return "remind"


@dataclass(frozen=True)
class MarkRead:
    def describe(self) -> str:
        return "mark as read"


@dataclass(frozen=True)
class MarkUnread:
    def describe(self) -> str:
        return "mark as unread"


@dataclass(frozen=True)
class Auto:
    def describe(self) -> str:
        return "auto"


Action = Union[Move, Remove, Notify, Call, Remind, MarkRead, MarkUnread, Auto]


# Represents a single WHEN ... THEN ... clause
@dataclass(frozen=True)
class Rule:
    condition: Condition
    actions: Tuple[Action, ...]


# Represents a folder declaration and its rules, in declaration order
@dataclass(frozen=True)
class Folder:
    name: str
    rules: Tuple[Rule, ...]
    priority: int = 0


@dataclass(frozen=True)
class Program:
    folders: Tuple[Folder, ...]

    @property
    def rule_count(self) -> int:
        return sum(len(folder.rules) for folder in self.folders)
