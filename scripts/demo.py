import os
import sys
from datetime import datetime, timezone

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from models.email import Email
from rules.errors import CxrError
from rules.rules_processor import RuleProcessor

RULES_FILE = os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), 'rules', 'rules.cxr')


def make_demo_emails():
    now = datetime.now(timezone.utc)
    return [
        Email(id='demo-1', thread_id='t1', from_address='jobalerts-noreply@linkedin.com',
              subject='python developer role - demo', body_text='A demo job alert.',
              received_at=now, is_read=False),
        Email(id='demo-2', thread_id='t2', from_address='notifications@github.com',
              subject='New login to your account', body_text='...', received_at=now, is_read=False),
        Email(id='demo-3', thread_id='t3', from_address='friend@example.com',
              subject='Lunch?', body_text='Are you free today?', received_at=now, is_read=True),
    ]


def run_demo():
    records = [email.to_record() for email in make_demo_emails()]
    processor = RuleProcessor(rules=RULES_FILE, dry_run=True, verbose=True)
    result = processor.process_emails(records)
    for entry in result.actions_log:
        print(f"{entry.record_id} -> {entry.folder}: {', '.join(entry.actions)}")


if __name__ == '__main__':
    try:
        run_demo()
    except CxrError as e:
        print('Demo failed:', e)
        sys.exit(1)
