import os
import pickle
import base64
from datetime import datetime, timezone
from email.header import decode_header
from typing import List, Optional

from dateutil.parser import parse as parse_date
from google.auth.transport.requests import Request
from google_auth_oauthlib.flow import InstalledAppFlow
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from models.email import Email

# Rule actions are advisory, so read access is all the client needs
SCOPES = ['https://www.googleapis.com/auth/gmail.readonly']
CREDENTIALS_FILE = 'client_secret.json'
TOKEN_PICKLE = 'token.pickle'


class GmailClient:
    def __init__(self, service=None):
        # A prebuilt service skips OAuth (used by tests)
        self.service = service if service is not None else self.authenticate()
        self.user_id = 'me'

    def authenticate(self):
        """Handles the OAuth flow, storing and refreshing tokens."""
        creds = None
        if os.path.exists(TOKEN_PICKLE):
            with open(TOKEN_PICKLE, 'rb') as token:
                creds = pickle.load(token)

        if not creds or not creds.valid:
            if creds and creds.expired and creds.refresh_token:
                creds.refresh(Request())
            else:
                flow = InstalledAppFlow.from_client_secrets_file(CREDENTIALS_FILE, SCOPES)
                creds = flow.run_local_server(port=0)

            with open(TOKEN_PICKLE, 'wb') as token:
                pickle.dump(creds, token)

        return build('gmail', 'v1', credentials=creds)

    def fetch_emails(self, max_results=100, existing_ids: set = None) -> List[Email]:
        """Fetches the latest INBOX messages.

        Message IDs present in `existing_ids` are skipped so already-stored
        messages are not downloaded again.
        """
        emails_list = []
        try:
            response = self.service.users().messages().list(
                userId=self.user_id,
                labelIds=['INBOX'],
                maxResults=max_results
            ).execute()

            for message in response.get('messages', []):
                mid = message['id']
                if existing_ids and mid in existing_ids:
                    continue

                msg = self.service.users().messages().get(
                    userId=self.user_id,
                    id=mid,
                    format='full'
                ).execute()

                email = self._parse_message(msg)
                if email:
                    emails_list.append(email)

        except HttpError as e:
            print(f"An error occurred while fetching emails: {e}")

        return emails_list

    def _get_header_value(self, headers, name):
        """Return a decoded header value, or None when the header is absent."""
        for header in headers:
            if header['name'].lower() == name.lower():
                decoded = decode_header(header['value'])
                value = ''.join([
                    part.decode(charset or 'utf-8', errors='ignore')
                    if isinstance(part, bytes) else part
                    for part, charset in decoded
                ])
                return value.strip()
        return None

    def _get_message_body(self, payload):
        """Extract the plain text body, searching nested multipart parts first."""
        for part in payload.get('parts', []):
            if part.get('mimeType') == 'text/plain' and part.get('body', {}).get('data'):
                return base64.urlsafe_b64decode(part['body']['data']).decode('utf-8', errors='ignore')
            if part.get('parts'):
                nested = self._get_message_body(part)
                if nested:
                    return nested

        data = payload.get('body', {}).get('data')
        if data:
            return base64.urlsafe_b64decode(data).decode('utf-8', errors='ignore')
        return ""

    def _received_at(self, msg: dict, date_str: Optional[str]) -> datetime:
        if date_str:
            received_at = parse_date(date_str)
            if received_at.tzinfo is None:
                received_at = received_at.replace(tzinfo=timezone.utc)
            return received_at
        # internalDate is epoch milliseconds
        return datetime.fromtimestamp(int(msg.get('internalDate', 0)) / 1000, tz=timezone.utc)

    def _parse_message(self, msg: dict) -> Optional[Email]:
        """Converts raw Gmail API dict into the standardized Email dataclass."""
        try:
            headers = msg['payload']['headers']
            return Email(
                id=msg['id'],
                thread_id=msg.get('threadId', ''),
                from_address=self._get_header_value(headers, 'From') or '',
                subject=self._get_header_value(headers, 'Subject') or '',
                body_text=self._get_message_body(msg['payload']),
                received_at=self._received_at(msg, self._get_header_value(headers, 'Date')),
                is_read='UNREAD' not in msg.get('labelIds', [])
            )
        except (KeyError, ValueError, OverflowError) as e:
            print(f"Error parsing message {msg.get('id', 'Unknown')}: {e}")
            return None
