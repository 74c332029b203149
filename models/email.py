from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict

# Email data class shared by the Gmail client and the DB; the engine reads the mapping from to_record()
@dataclass(frozen=True)
class Email:
    id: str
    thread_id: str
    from_address: str
    subject: str
    body_text: str
    received_at: datetime
    is_read: bool

    def to_record(self) -> Dict[str, Any]:
        """Return the record mapping rules are evaluated against (default schema keys)."""
        return {
            "id": self.id,
            "thread_id": self.thread_id,
            "from": self.from_address or "",
            "subject": self.subject or "",
            "body": self.body_text or "",
            "unread": not self.is_read,
            "received_at": self.received_at.timestamp(),
        }
