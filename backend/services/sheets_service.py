# backend/services/sheets_service.py
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple
from fastapi.concurrency import run_in_threadpool
from google.oauth2.credentials import Credentials
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError
from config import ClientCredentials

logger = logging.getLogger(__name__)

TOKEN_URI = 'https://oauth2.googleapis.com/token'
MANDATORY_FIELDS = ('name', 'email', 'phone')
ADDITIONAL_FIELD_PREFIX = 'additional_col'
# Row 1 holds the headers, appends land below them
APPEND_RANGE = 'Sheet1!A2'


class MissingFieldError(ValueError):
    def __init__(self, field: str):
        super().__init__(f"{field} is a mandatory field.")
        self.field = field


def build_row(data: Dict[str, Any], additional_fields_order: Any = None) -> List[Any]:
    """Builds the row for one append: name, email, phone, then the
    additional_col* fields in the order the caller listed them.

    Raises MissingFieldError for the first mandatory field that is absent.
    Additional fields that don't carry the prefix or aren't in `data` are skipped,
    as is an order that isn't a list.
    """
    row = []
    for field in MANDATORY_FIELDS:
        if data.get(field) is None:
            raise MissingFieldError(field)
        row.append(data[field])
    if not isinstance(additional_fields_order, list):
        return row
    for field in additional_fields_order:
        if isinstance(field, str) and field.startswith(ADDITIONAL_FIELD_PREFIX) and field in data:
            row.append(data[field])
    return row


def build_credentials(token: Dict[str, Any], client: ClientCredentials) -> Credentials:
    """Request-scoped credentials for one stored token set."""
    expiry = None
    if token.get('expires_at'):
        # google-auth compares against naive UTC
        expiry = datetime.fromtimestamp(token['expires_at'], timezone.utc).replace(tzinfo=None)
    scope = token.get('scope')
    return Credentials(
        token=token.get('access_token'), refresh_token=token.get('refresh_token'),
        token_uri=TOKEN_URI, client_id=client.client_id, client_secret=client.client_secret,
        scopes=scope.split() if isinstance(scope, str) else scope, expiry=expiry
    )


def refreshed_access_token(token: Dict[str, Any], creds: Credentials) -> Optional[Tuple[str, Optional[int]]]:
    """Returns (access_token, expires_at) if google-auth refreshed the token during the request."""
    if not creds.token or creds.token == token.get('access_token'):
        return None
    expires_at = None
    if creds.expiry:
        expires_at = int(creds.expiry.replace(tzinfo=timezone.utc).timestamp())
    return creds.token, expires_at


def get_sheets_service(creds: Credentials):
    """Builds and returns an authenticated Google Sheets API service object."""
    try:
        return build('sheets', 'v4', credentials=creds, static_discovery=False)
    except HttpError as error:
        logger.error("An error occurred building the Sheets service: %s", error)
        raise


async def append_row(service, spreadsheet_id: str, row: List[Any]) -> Dict[str, Any]:
    """Appends a single row under the header row, values stored as given."""
    request = service.spreadsheets().values().append(
        spreadsheetId=spreadsheet_id, range=APPEND_RANGE,
        valueInputOption='RAW', body={'values': [row]}
    )
    result = await run_in_threadpool(request.execute)
    logger.info("Data appended to the sheet: %s", (result.get('updates') or {}).get('updatedRange'))
    return result
