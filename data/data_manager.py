import sqlite3
from datetime import datetime, timezone
from typing import Iterable, List, Set

from models.email import Email

DEFAULT_DB_NAME = 'email_data.db'

EMAIL_COLUMNS = "id, thread_id, from_address, subject, received_at, body_text, is_read"


class DBManager:
    """SQLite store for fetched emails and the ids the rule engine has already routed."""

    def __init__(self, db_name=DEFAULT_DB_NAME, verbose: bool = False):
        self.db_name = db_name
        self.verbose = verbose
        self.conn = None
        self.connect()
        self.initialize_db()

    def connect(self):
        """Establishes the connection to the SQLite database."""
        try:
            self.conn = sqlite3.connect(self.db_name)
        except sqlite3.Error as e:
            print(f"Error connecting to database: {e}")
            raise

    def initialize_db(self):
        """Creates the 'emails' table if it doesn't already exist."""
        # received_at is a UNIX timestamp so age-based resets are a plain comparison
        CREATE_TABLE_SQL = """
        CREATE TABLE IF NOT EXISTS emails (
            id TEXT PRIMARY KEY,
            thread_id TEXT,
            from_address TEXT,
            subject TEXT,
            received_at REAL,
            body_text TEXT,
            is_read INTEGER,
            processed INTEGER DEFAULT 0
        );
        """
        cursor = self.conn.cursor()
        cursor.execute(CREATE_TABLE_SQL)
        self.conn.commit()

        # Databases created before the processed flag existed
        cursor.execute("PRAGMA table_info(emails)")
        cols = [row[1] for row in cursor.fetchall()]
        if 'processed' not in cols:
            cursor.execute("ALTER TABLE emails ADD COLUMN processed INTEGER DEFAULT 0")
            self.conn.commit()
            print("Added 'processed' column to emails table.")
        if self.verbose:
            print("Database schema ensured.")

    def save_email(self, email: Email):
        """Inserts a new email or ignores if it already exists."""
        INSERT_SQL = f"""
        INSERT OR IGNORE INTO emails ({EMAIL_COLUMNS}, processed)
        VALUES (?, ?, ?, ?, ?, ?, ?, 0)
        """
        data = (
            email.id, email.thread_id, email.from_address,
            email.subject, email.received_at.timestamp(), email.body_text,
            1 if email.is_read else 0,
        )
        try:
            self.conn.execute(INSERT_SQL, data)
            self.conn.commit()
        except sqlite3.Error as e:
            print(f"Error saving email {email.id}: {e}")

    def get_all_emails(self) -> List[Email]:
        """Retrieves all emails in arrival order, oldest first."""
        cursor = self.conn.execute(f"SELECT {EMAIL_COLUMNS} FROM emails ORDER BY received_at, id")
        return [self._row_to_email(row) for row in cursor.fetchall()]

    def _row_to_email(self, row) -> Email:
        return Email(
            id=row[0],
            thread_id=row[1],
            from_address=row[2],
            subject=row[3],
            received_at=datetime.fromtimestamp(row[4], tz=timezone.utc),
            body_text=row[5],
            is_read=bool(row[6]),
        )

    def get_all_ids(self) -> List[str]:
        """Return a list of all stored message IDs."""
        return [r[0] for r in self.conn.execute("SELECT id FROM emails").fetchall()]

    def get_processed_ids(self) -> Set[str]:
        """Ids already routed by a rule; seeds the dedup session of the next run."""
        rows = self.conn.execute("SELECT id FROM emails WHERE processed = 1").fetchall()
        return {r[0] for r in rows}

    def mark_processed(self, email_id: str):
        self.mark_processed_many([email_id])

    def mark_processed_many(self, email_ids: Iterable[str]):
        """Mark emails as processed so later runs skip them."""
        try:
            self.conn.executemany("UPDATE emails SET processed = 1 WHERE id = ?", [(i,) for i in email_ids])
            self.conn.commit()
        except sqlite3.Error as e:
            print(f"Error marking emails as processed: {e}")

    def reset_processed(self, email_id: str):
        """Mark a specific email as unprocessed (processed = 0)."""
        try:
            self.conn.execute("UPDATE emails SET processed = 0 WHERE id = ?", (email_id,))
            self.conn.commit()
        except sqlite3.Error as e:
            print(f"Error resetting processed for {email_id}: {e}")

    def reset_all_processed(self):
        try:
            self.conn.execute("UPDATE emails SET processed = 0")
            self.conn.commit()
        except sqlite3.Error as e:
            print(f"Error resetting processed for all emails: {e}")

    def reset_processed_older_than(self, days: int):
        """Reset processed flag for emails received more than `days` days ago."""
        threshold = datetime.now(timezone.utc).timestamp() - (days * 24 * 3600)
        try:
            self.conn.execute("UPDATE emails SET processed = 0 WHERE received_at < ?", (threshold,))
            self.conn.commit()
        except sqlite3.Error as e:
            print(f"Error resetting processed for emails older than {days} days: {e}")

    def close(self):
        """Closes the database connection."""
        if self.conn:
            self.conn.close()
