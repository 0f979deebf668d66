# backend/config.py
import os, json
from typing import List
from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict

load_dotenv()

GOOGLE_CLIENT_SECRETS_FILE = os.getenv("GOOGLE_CLIENT_SECRETS_FILE", "credentials.json")
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite+aiosqlite:///./tokens.db")
SESSION_SECRET_KEY = os.getenv("SESSION_SECRET_KEY")
PORT = int(os.getenv("PORT", "3000"))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

if not SESSION_SECRET_KEY:
    raise ValueError("SESSION_SECRET_KEY must be set in .env file!")


class ClientCredentials(BaseModel):
    """OAuth client issued by Google for this web app. Immutable once loaded."""
    model_config = ConfigDict(frozen=True)

    client_id: str
    client_secret: str
    redirect_uri: str


def load_client_credentials(path: str) -> ClientCredentials:
    with open(path, encoding="utf-8") as f:
        web = json.load(f).get("web")
    if not web:
        raise ValueError(f"{path} has no 'web' client section.")
    redirect_uris: List[str] = web.get("redirect_uris") or []
    if not web.get("client_id") or not web.get("client_secret") or not redirect_uris:
        raise ValueError(f"{path} must define client_id, client_secret and redirect_uris.")
    return ClientCredentials(
        client_id=web["client_id"], client_secret=web["client_secret"], redirect_uri=redirect_uris[0]
    )
