import argparse
import json
import sys
from typing import Dict, List

from clients.gmail_client import GmailClient
from data.data_manager import DEFAULT_DB_NAME, DBManager
from rules.engine import RunResult
from rules.errors import CxrError
from rules.rules_processor import DedupSession, RuleProcessor


def parse_schema_overrides(pairs: List[str]) -> Dict[str, str]:
    """Turn FIELD=PROPERTY arguments into a schema override mapping."""
    schema = {}
    for pair in pairs or []:
        field, sep, prop = pair.partition('=')
        if not sep or not field.strip() or not prop.strip():
            raise argparse.ArgumentTypeError(f"Invalid schema mapping '{pair}', expected FIELD=PROPERTY")
        schema[field.strip()] = prop.strip()
    return schema


def ingest_latest_emails(db_manager: DBManager, max_results: int) -> int:
    """Fetch new INBOX messages from Gmail into the local database."""
    gmail_client = GmailClient()  # Authenticates here
    existing_ids = set(db_manager.get_all_ids())
    emails = gmail_client.fetch_emails(max_results=max_results, existing_ids=existing_ids)
    for email in emails:
        db_manager.save_email(email)
    return len(emails)


def print_result(result: RunResult):
    for name, bucket in result.folders.items():
        print(f"[{name}] {len(bucket)} email(s)")
        for record in bucket:
            print(f"    {record.get('id')}: {record.get('subject', '')}")
    print("Actions:")
    for entry in result.actions_log:
        print(f"  {entry.record_id} ({entry.folder}): {', '.join(entry.actions)}")
    print(f"{result.meta.rule_count} rule(s) applied to {result.meta.record_count} email(s)")


def run_mail_processor(rules: List[str], schema: Dict[str, str] = None, dry_run: bool = False,
                       verbose: bool = False, max_results: int = 50, db_name: str = DEFAULT_DB_NAME,
                       as_json: bool = False) -> int:
    """
    Main function to run the email filtering logic.
    1. Open the local database and restore processed ids.
    2. Parse the rules (errors stop here, before any email is touched).
    3. Fetch latest emails from Gmail unless in dry-run mode.
    4. Classify every stored email and persist newly processed ids.
    """
    if not as_json:
        print("--- Rule Mail Processor Started ---")

    db_manager = DBManager(db_name, verbose=verbose)
    try:
        session = DedupSession(db_manager.get_processed_ids())
        try:
            processor = RuleProcessor(rules, schema=schema, session=session, db_manager=db_manager,
                                      dry_run=dry_run, verbose=verbose)
        except CxrError as e:
            print(f"Rule error: {e}", file=sys.stderr)
            return 1

        if not dry_run:
            try:
                ingested = ingest_latest_emails(db_manager, max_results)
            except Exception as e:
                print(f"Critical error during Gmail ingestion: {e}", file=sys.stderr)
                return 1
            if not as_json:
                print(f"Ingested {ingested} emails.")
        elif not as_json:
            print("Dry-run mode enabled: skipping Gmail ingestion and processed-flag updates.")

        records = [email.to_record() for email in db_manager.get_all_emails()]
        result = processor.process_emails(records)

        if as_json:
            print(json.dumps(result.to_dict(), indent=2, default=str))
        else:
            print_result(result)
            print("--- Rule Mail Processor Finished ---")
        return 0
    finally:
        db_manager.close()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description='Classify stored emails with .cxr rules')
    parser.add_argument('--rules', nargs='+', required=True,
                        help='Rule sources: .cxr file paths and/or inline rule text')
    parser.add_argument('--schema', nargs='*', default=[], metavar='FIELD=PROPERTY',
                        help='Map a rule field to a record property, e.g. sender=from')
    parser.add_argument('--dry-run', action='store_true',
                        help='Do not call Gmail or update processed flags; classify stored emails only')
    parser.add_argument('--verbose', action='store_true', help='Show per-email rule matches')
    parser.add_argument('--max-results', type=int, default=50, help='Maximum messages to fetch from Gmail')
    parser.add_argument('--db', default=DEFAULT_DB_NAME, help='SQLite database file')
    parser.add_argument('--json', action='store_true', help='Print the result as JSON')
    return parser


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        schema = parse_schema_overrides(args.schema)
    except argparse.ArgumentTypeError as e:
        parser.error(str(e))
    return run_mail_processor(args.rules, schema=schema, dry_run=args.dry_run, verbose=args.verbose,
                              max_results=args.max_results, db_name=args.db, as_json=args.json)


if __name__ == '__main__':
    sys.exit(main())
