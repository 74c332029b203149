#!/usr/bin/env python3
import argparse

from data.data_manager import DEFAULT_DB_NAME, DBManager


def cmd_reset(db: DBManager, args):
    if args.all:
        if not args.yes:
            confirm = input("Reset 'processed' for ALL emails? Every email will be re-evaluated. (y/N): ")
            if confirm.lower() != 'y':
                print('Canceled')
                return
        db.reset_all_processed()
        print('All emails marked unprocessed.')
    elif args.id:
        db.reset_processed(args.id)
        print(f"Email {args.id} marked unprocessed.")
    elif args.older_than is not None:
        db.reset_processed_older_than(args.older_than)
        print(f"Emails older than {args.older_than} days marked unprocessed.")
    else:
        print('No action specified. Use --all, --id, or --older-than')


def cmd_show(db: DBManager, args):
    processed = sorted(db.get_processed_ids())
    print(f"{len(processed)} processed email(s)")
    for email_id in processed:
        print(f"  {email_id}")


def main(argv=None):
    p = argparse.ArgumentParser(description='Manage the rule engine dedup state')
    p.add_argument('--db', default=DEFAULT_DB_NAME, help='SQLite database file')
    sub = p.add_subparsers(dest='cmd')

    reset = sub.add_parser('reset-processed', help="Reset processed flags")
    reset.add_argument('--all', action='store_true', help='Reset processed for all emails')
    reset.add_argument('--yes', action='store_true', help='Skip the confirmation prompt for --all')
    reset.add_argument('--id', type=str, help='Reset processed for a specific email id')
    reset.add_argument('--older-than', type=int, help='Reset processed for emails older than DAYS')

    sub.add_parser('show-processed', help='List ids the rules have already routed')

    args = p.parse_args(argv)
    commands = {'reset-processed': cmd_reset, 'show-processed': cmd_show}
    if args.cmd not in commands:
        p.print_help()
        return

    db = DBManager(args.db)
    try:
        commands[args.cmd](db, args)
    finally:
        db.close()


if __name__ == '__main__':
    main()
