import threading
from typing import Any, Dict, FrozenSet, Iterable, List, Optional, Union

from models.rules import Program
from rules.engine import INBOX, RunResult, execute, record_id
from rules.errors import ConfigurationError
from rules.loader import resolve_rules
from rules.parser import parse_rules


class DedupSession:
    """
    Ids of records already routed by a matching rule.

    Owned by the caller and shared across runs; a record whose id is here is
    skipped entirely. The lock serialises check-then-commit between runs.
    """

    def __init__(self, processed_ids: Iterable[Any] = ()):
        self._processed: FrozenSet[Any] = frozenset(processed_ids)
        self.lock = threading.Lock()

    @property
    def processed_ids(self) -> FrozenSet[Any]:
        return self._processed

    def __contains__(self, rid) -> bool:
        return rid in self._processed

    def __len__(self) -> int:
        return len(self._processed)

    def commit(self, processed_ids: FrozenSet[Any]):
        self._processed = frozenset(processed_ids)

    def reset(self):
        with self.lock:
            self._processed = frozenset()


class RuleProcessor:
    def __init__(self, rules: Union[str, List[str], None] = None, schema: Optional[Dict[str, str]] = None,
                 session: Optional[DedupSession] = None, db_manager=None, dry_run: bool = False,
                 verbose: bool = False):
        # Parse up front so a lex/parse error aborts before any record is touched;
        # rules=None leaves an empty program for tests that inject one directly
        if rules is None:
            self.program: Program = Program(folders=())
        elif not rules:
            raise ConfigurationError("Invalid configuration: 'rules' is required (string or list).")
        else:
            self.program = parse_rules(resolve_rules(rules))
        self.schema = schema
        self.session = session if session is not None else DedupSession()
        self.db = db_manager  # persists processed ids between processes
        self.dry_run = dry_run
        self.verbose = verbose

    def process_emails(self, records: List[Any]) -> RunResult:
        """Classify records against the loaded program and update the dedup session."""
        if self.verbose:
            print(f"\n--- Starting Rule Processing on {len(records)} records "
                  f"({self.program.rule_count} rules in {len(self.program.folders)} folders) ---")

        with self.session.lock:
            before = self.session.processed_ids
            result, after = execute(self.program, records, self.schema, before)
            self.session.commit(after)
        newly_processed = after - before

        if self.verbose:
            self._print_run(records, result, before)

        if self.db and not self.dry_run and newly_processed:
            self.db.mark_processed_many(sorted(newly_processed, key=str))
        return result

    def _print_run(self, records: List[Any], result: RunResult, skipped_ids: FrozenSet[Any]):
        log_by_id = {entry.record_id: entry for entry in result.actions_log}
        printed = set()
        for record in records:
            rid = record_id(record)
            entry = log_by_id.get(rid)
            if entry is not None and rid not in printed:
                printed.add(rid)
                print(f"Rule MATCHED in folder '{entry.folder}' for record {rid}: {', '.join(entry.actions)}")
            elif rid in skipped_ids or rid in printed:
                print(f"Skipped record {rid}: already processed")
            else:
                print(f"No rule matched record {rid}; left in {INBOX}")

        for name, bucket in result.folders.items():
            print(f"  {name}: {len(bucket)}")


_default_session = DedupSession()


def run(rules: Union[str, List[str]], records: List[Any], schema: Optional[Dict[str, str]] = None,
        session: Optional[DedupSession] = None) -> RunResult:
    """
    Parse rules (inline text, .cxr paths, or a list of both) and classify records.

    Without an explicit session the module-wide default is used, so the same
    record is only routed once until reset() is called.
    """
    if not rules:
        raise ConfigurationError("Invalid configuration: 'rules' is required (string or list).")
    if not isinstance(records, (list, tuple)):
        raise ConfigurationError("Invalid configuration: 'records' list is required.")

    processor = RuleProcessor(rules, schema=schema, session=session if session is not None else _default_session)
    return processor.process_emails(list(records))


def reset():
    """Forget every processed id held by the default session."""
    _default_session.reset()
