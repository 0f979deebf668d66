import os
from pathlib import Path
import pytest

FIXTURES = Path(__file__).parent / "fixtures"

# must be in place before config/auth are imported
os.environ["GOOGLE_CLIENT_SECRETS_FILE"] = str(FIXTURES / "credentials.json")
os.environ.setdefault("SESSION_SECRET_KEY", "test-session-secret")

from sqlalchemy.ext.asyncio import async_sessionmaker
from fastapi.testclient import TestClient

from database import make_engine, create_db_and_tables
from credential_store import CredentialStore


@pytest.fixture
async def session_factory(tmp_path):
    engine = make_engine(f"sqlite+aiosqlite:///{tmp_path / 'tokens.db'}")
    await create_db_and_tables(engine)
    yield async_sessionmaker(engine, expire_on_commit=False)
    await engine.dispose()


@pytest.fixture
async def store(session_factory):
    store = CredentialStore(session_factory)
    await store.load()
    return store


class FakeStore(CredentialStore):
    """CredentialStore with the database swapped for a list of recorded writes."""

    def __init__(self, tokens=None):
        super().__init__(session_factory=None)
        self._tokens = {email: dict(token) for email, token in (tokens or {}).items()}
        self.puts = []

    @property
    def tokens(self):
        return self._tokens

    async def _persist(self, email, token):
        self.puts.append((email, dict(token)))


class FakeSheets:
    """Replaces the Google Sheets calls and records what would have been sent."""

    def __init__(self):
        self.built_with = []
        self.appends = []
        self.error = None
        self.refresh_to = None
        self.on_build = None

    def get_sheets_service(self, creds):
        self.built_with.append(creds)
        if self.on_build:
            self.on_build()
        if self.refresh_to:
            creds.token = self.refresh_to
        return object()

    async def append_row(self, service, spreadsheet_id, row):
        if self.error:
            raise self.error
        self.appends.append((spreadsheet_id, row))
        return {"updates": {"updatedRange": "Sheet1!A2:D2"}}


@pytest.fixture
def fake_store():
    return FakeStore({
        "a@x.com": {"access_token": "token-a", "refresh_token": "refresh-a", "token_type": "Bearer"},
        "b@x.com": {"access_token": "token-b", "refresh_token": "refresh-b", "token_type": "Bearer"},
    })


@pytest.fixture
def fake_sheets(monkeypatch):
    from services import sheets_service
    fake = FakeSheets()
    monkeypatch.setattr(sheets_service, "get_sheets_service", fake.get_sheets_service)
    monkeypatch.setattr(sheets_service, "append_row", fake.append_row)
    return fake


@pytest.fixture
def client(fake_store):
    import main
    main.app.dependency_overrides[main.get_credential_store] = lambda: fake_store
    yield TestClient(main.app)
    main.app.dependency_overrides.clear()
