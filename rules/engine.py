"""
Runs a parsed Program over a batch of records.

execute() is a pure function: it takes the ids already processed by earlier
runs and returns the result together with the updated id set, leaving the
input state untouched.
"""

import time
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Dict, FrozenSet, Iterable, List, Optional, Tuple

from models.rules import Move, Program
from rules.evaluator import build_schema, evaluate_with, field_accessor

ENGINE_NAME = "cxr"
ENGINE_VERSION = "1.0.0"
INBOX = "Inbox"


@dataclass(frozen=True)
class ActionLogEntry:
    record_id: Any
    folder: str  # folder whose rule matched, not necessarily the destination bucket
    actions: Tuple[str, ...]


@dataclass(frozen=True)
class RunMeta:
    engine: str
    version: str
    processed_at: int  # epoch milliseconds
    rule_count: int
    record_count: int


@dataclass
class RunResult:
    folders: Dict[str, List[Any]]
    actions_log: List[ActionLogEntry]
    meta: RunMeta

    def folder_ids(self, name: str) -> List[Any]:
        return [record_id(record) for record in self.folders.get(name, [])]

    def to_dict(self) -> Dict[str, Any]:
        """JSON-ready view: buckets hold record ids."""
        return {
            "folders": {name: self.folder_ids(name) for name in self.folders},
            "actions_log": [
                {"record_id": entry.record_id, "folder": entry.folder, "actions": list(entry.actions)}
                for entry in self.actions_log
            ],
            "meta": {
                "engine": self.meta.engine,
                "version": self.meta.version,
                "processed_at": self.meta.processed_at,
                "rule_count": self.meta.rule_count,
                "record_count": self.meta.record_count,
            },
        }


def record_id(record: Any) -> Any:
    if isinstance(record, Mapping):
        return record.get("id")
    return getattr(record, "id", None)


def sort_folders(program: Program):
    # sorted() is stable, so equal priorities keep declaration order
    return sorted(program.folders, key=lambda folder: folder.priority, reverse=True)


def execute(
    program: Program,
    records: Iterable[Any],
    schema: Optional[Dict[str, str]] = None,
    processed: FrozenSet[Any] = frozenset(),
) -> Tuple[RunResult, FrozenSet[Any]]:
    records = list(records)
    merged_schema = build_schema(schema)
    folders = sort_folders(program)

    buckets: Dict[str, List[Any]] = {INBOX: []}
    for folder in folders:
        buckets.setdefault(folder.name, [])

    actions_log: List[ActionLogEntry] = []
    newly_processed = set()

    for record in records:
        rid = record_id(record)
        if rid in processed or rid in newly_processed:
            continue

        lookup = field_accessor(record, merged_schema)
        matched = None
        for folder in folders:
            rule = next((r for r in folder.rules if evaluate_with(r.condition, lookup)), None)
            if rule is not None:
                matched = (folder, rule)
                break

        if matched is None:
            buckets[INBOX].append(record)
            continue

        folder, rule = matched
        destination = INBOX
        rendered = []
        for action in rule.actions:
            if isinstance(action, Move):
                destination = action.target
            rendered.append(action.describe())

        buckets.setdefault(destination, []).append(record)
        actions_log.append(ActionLogEntry(record_id=rid, folder=folder.name, actions=tuple(rendered)))
        newly_processed.add(rid)

    meta = RunMeta(
        engine=ENGINE_NAME,
        version=ENGINE_VERSION,
        processed_at=int(time.time() * 1000),
        rule_count=program.rule_count,
        record_count=len(records),
    )
    return RunResult(folders=buckets, actions_log=actions_log, meta=meta), frozenset(processed) | newly_processed
