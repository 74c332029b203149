import sys
import pathlib
import threading
import pytest
from unittest.mock import Mock

# Ensure the project root is on sys.path so tests can import local packages
ROOT = pathlib.Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

from rules import rules_processor
from rules.errors import ConfigurationError, LexError, ParseError, RuleFileNotFoundError
from rules.loader import resolve_rules
from rules.rules_processor import DedupSession, RuleProcessor, reset, run

FIXTURE = str(ROOT / "tests" / "fixtures" / "external_rules.cxr")


@pytest.fixture(autouse=True)
def clean_default_session():
    reset()
    yield
    reset()


def make_record(rid, from_addr="me", subject="", body="", **extra):
    record = {"id": rid, "from": from_addr, "subject": subject, "body": body}
    record.update(extra)
    return record


def test_list_syntax_support():
    rules = '''
    Folder Lists
    WHEN subject contains ["urgent", "important"]
    THEN move to Lists
    '''
    records = [
        make_record("l1", subject="this is URGENT"),
        make_record("l2", subject="this is important"),
        make_record("l3", subject="normal msg"),
    ]

    result = run(rules, records)

    assert sorted(result.folder_ids("Lists")) == ["l1", "l2"]
    assert result.folder_ids("Inbox") == ["l3"]


def test_in_operator_with_list():
    rules = 'Folder Domains WHEN sender IN ["github.com", "google.com"] THEN move to Domains'
    records = [
        make_record("d1", from_addr="notifications@github.com"),
        make_record("d2", from_addr="me@yahoo.com"),
    ]

    result = run(rules, records)

    assert result.folder_ids("Domains") == ["d1"]


def test_deduplication_across_runs_and_reset():
    rules = 'Folder Dedupe WHEN subject contains "chk" THEN move to Dedupe'
    email = make_record("dup1", subject="chk")

    first = run(rules, [email])
    assert first.folder_ids("Dedupe") == ["dup1"]
    assert len(first.actions_log) == 1

    second = run(rules, [email])
    assert second.folder_ids("Dedupe") == []
    assert second.folder_ids("Inbox") == []
    assert second.actions_log == []

    reset()
    third = run(rules, [email])
    assert third.folder_ids("Dedupe") == ["dup1"]


def test_unmatched_records_are_reconsidered_later():
    email = make_record("u1", subject="later")

    first = run('Folder A WHEN subject contains "nothing" THEN move to A', [email])
    assert first.folder_ids("Inbox") == ["u1"]

    second = run('Folder B WHEN subject contains "later" THEN move to B', [email])
    assert second.folder_ids("B") == ["u1"]


def test_custom_schema_mapping():
    rules = '''
    Folder "High Priority"
    WHEN priority contains "high"
    THEN move to Important

    Folder "From Boss"
    WHEN sender contains "boss"
    THEN move to Boss
    '''
    records = [
        {"id": "1", "from_address": "user@example.com", "X-Priority": "High", "subject": "Test", "body": ""},
        {"id": "2", "from_address": "boss@company.com", "X-Priority": "Normal", "subject": "Work", "body": ""},
    ]

    result = run(rules, records, schema={"priority": "X-Priority", "sender": "from_address"})

    assert result.folder_ids("Important") == ["1"]
    assert result.folder_ids("Boss") == ["2"]


def test_explicit_sessions_are_independent():
    rules = 'Folder F WHEN subject contains "a" THEN move to F'
    email = make_record("s1", subject="a")
    session_a, session_b = DedupSession(), DedupSession()

    assert run(rules, [email], session=session_a).folder_ids("F") == ["s1"]
    assert run(rules, [email], session=session_b).folder_ids("F") == ["s1"]
    assert run(rules, [email], session=session_a).folder_ids("F") == []
    # the default session was never touched
    assert len(rules_processor._default_session) == 0


def test_session_seeded_with_prior_ids():
    session = DedupSession(["old"])
    assert "old" in session

    result = run('Folder F WHEN subject contains "a" THEN move to F', [make_record("old", subject="a")], session=session)

    assert result.actions_log == []
    session.reset()
    assert len(session) == 0


def test_lex_and_parse_errors_abort_before_any_record():
    session = DedupSession()
    records = [make_record("1", subject="x")]

    with pytest.raises(ParseError):
        run('Folder Errors WHEN', records, session=session)
    with pytest.raises(LexError):
        run('Folder A WHEN subject contains "x THEN move to A', records, session=session)

    assert len(session) == 0


def test_invalid_configuration():
    with pytest.raises(ConfigurationError):
        run("", [])
    with pytest.raises(ConfigurationError):
        run([], [])
    with pytest.raises(ConfigurationError):
        run('Folder A WHEN body contains "x" THEN call', None)
    with pytest.raises(ConfigurationError):
        run([42], [])


def test_rules_from_file_path():
    result = run(FIXTURE, [make_record("1", from_addr="external@partner.com", subject="Hello")])
    assert result.folder_ids("External") == ["1"]


def test_rules_from_files_and_inline_text():
    inline = '''
    Folder Inline
    WHEN subject contains "inline"
    THEN move to Inline
    '''
    records = [
        make_record("1", from_addr="external@partner.com", subject="A"),
        make_record("2", from_addr="other@com.com", subject="inline test"),
    ]

    result = run([FIXTURE, inline], records)

    assert result.folder_ids("External") == ["1"]
    assert result.folder_ids("Inline") == ["2"]


def test_missing_rule_file():
    with pytest.raises(RuleFileNotFoundError, match="Rule file not found"):
        run("missing_file.cxr", [])


def test_resolve_rules_joins_with_newline(tmp_path):
    rule_file = tmp_path / "a.cxr"
    rule_file.write_text("Folder A", encoding="utf-8")

    assert resolve_rules([str(rule_file), 'WHEN body contains "x" THEN call']) == \
        'Folder A\nWHEN body contains "x" THEN call'
    assert resolve_rules("inline text") == "inline text"


def test_processor_persists_newly_processed_ids():
    db = Mock()
    session = DedupSession(["seen"])
    processor = RuleProcessor('Folder F WHEN subject contains "a" THEN move to F', session=session, db_manager=db)

    processor.process_emails([make_record("seen", subject="a"), make_record("b", subject="a"),
                              make_record("c", subject="zzz"), make_record("a", subject="a")])

    db.mark_processed_many.assert_called_once_with(["a", "b"])
    assert session.processed_ids == {"seen", "a", "b"}


def test_processor_dry_run_does_not_touch_db():
    db = Mock()
    processor = RuleProcessor('Folder F WHEN subject contains "a" THEN move to F', db_manager=db, dry_run=True)

    processor.process_emails([make_record("1", subject="a")])

    db.mark_processed_many.assert_not_called()


def test_processor_without_rules_routes_everything_to_inbox():
    processor = RuleProcessor(rules=None)
    result = processor.process_emails([make_record("1")])
    assert result.folder_ids("Inbox") == ["1"]


def test_verbose_output(capsys):
    session = DedupSession(["old"])
    processor = RuleProcessor('Folder F WHEN subject contains "a" THEN move to F AND notify',
                              session=session, verbose=True)

    processor.process_emails([make_record("1", subject="a"), make_record("2"), make_record("old", subject="a")])

    out = capsys.readouterr().out
    assert "Rule MATCHED in folder 'F' for record 1: move to F, notify" in out
    assert "No rule matched record 2" in out
    assert "Skipped record old" in out


def test_concurrent_runs_route_each_record_once():
    session = DedupSession()
    processor = RuleProcessor('Folder F WHEN subject contains "a" THEN move to F', session=session)
    records = [make_record(str(i), subject="a") for i in range(50)]
    results = []

    def worker():
        results.append(processor.process_emails(records))

    threads = [threading.Thread(target=worker) for _ in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert sum(len(r.actions_log) for r in results) == 50
    assert len(session) == 50


def test_verbose_output_for_repeated_id_in_one_batch(capsys):
    processor = RuleProcessor('Folder F WHEN subject contains "a" THEN move to F', verbose=True)

    processor.process_emails([make_record("1", subject="a"), make_record("1", subject="a")])

    out = capsys.readouterr().out
    assert out.count("Rule MATCHED in folder 'F' for record 1") == 1
    assert "Skipped record 1: already processed" in out


def test_processor_rejects_empty_rules():
    with pytest.raises(ConfigurationError):
        RuleProcessor("")
    with pytest.raises(ConfigurationError):
        RuleProcessor([])
