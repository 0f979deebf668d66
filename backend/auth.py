# backend/auth.py
import logging
from typing import Any, Dict, Optional
from fastapi import Request
from authlib.integrations.starlette_client import OAuth
from config import GOOGLE_CLIENT_SECRETS_FILE, load_client_credentials
from credential_store import CredentialStore, TokenSet

logger = logging.getLogger(__name__)

RESOURCE_SCOPES = [
    'https://www.googleapis.com/auth/spreadsheets',
    'https://www.googleapis.com/auth/drive',
]
# openid + email let the userinfo endpoint tell us who granted consent
IDENTITY_SCOPES = ['openid', 'email']

CLIENT = load_client_credentials(GOOGLE_CLIENT_SECRETS_FILE)

oauth = OAuth()
oauth.register(
    name='google', client_id=CLIENT.client_id, client_secret=CLIENT.client_secret,
    server_metadata_url='https://accounts.google.com/.well-known/openid-configuration',
    client_kwargs={'scope': ' '.join(IDENTITY_SCOPES + RESOURCE_SCOPES), 'prompt': 'consent'}
)


class AuthorizationError(Exception):
    pass


async def begin_authorization(request: Request):
    """Redirects the browser to Google's consent screen."""
    assert oauth.google is not None
    return await oauth.google.authorize_redirect(request, CLIENT.redirect_uri, access_type='offline')


async def resolve_email(token: Dict[str, Any]) -> Optional[str]:
    # authlib parses the id_token into token['userinfo'] when one was issued
    user_info = token.get('userinfo') or await oauth.google.userinfo(token=token)
    return (user_info or {}).get('email')


def token_set_from(token: Dict[str, Any]) -> TokenSet:
    return {k: v for k, v in token.items() if k != 'userinfo'}


async def complete_authorization(request: Request, store: CredentialStore) -> str:
    """Exchanges the callback's code for tokens and stores them under the user's email.

    Nothing is stored unless the exchange and the identity lookup both succeed.
    """
    assert oauth.google is not None
    token = await oauth.google.authorize_access_token(request)
    email = await resolve_email(token)
    if not email:
        raise AuthorizationError("Google returned no email for the authorized account.")
    await store.put(email, token_set_from(token))
    return email
