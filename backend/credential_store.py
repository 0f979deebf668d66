# backend/credential_store.py
import asyncio, logging
from typing import Any, Dict, Optional
from sqlmodel import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from models import StoredToken, utcnow

logger = logging.getLogger(__name__)

TokenSet = Dict[str, Any]


class CredentialStore:
    """Maps a user's email to the OAuth token set Google issued for them.

    Reads are served from memory. A write goes to the database first and only
    reaches the in-memory mapping once the commit succeeded, so readers never
    see a token that is not durable. Writes are serialized by a lock.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._sessions = session_factory
        self._tokens: Dict[str, TokenSet] = {}
        self._lock = asyncio.Lock()

    async def load(self) -> None:
        async with self._sessions() as session:
            result = await session.execute(select(StoredToken))
            rows = result.scalars().all()
        self._tokens = {row.email: dict(row.token) for row in rows}
        if self._tokens:
            logger.info("Loaded stored tokens for %d user(s).", len(self._tokens))
        else:
            logger.info("No stored tokens found. Users must authenticate first.")

    def get(self, email: Optional[str]) -> Optional[TokenSet]:
        if not email:
            return None
        token = self._tokens.get(email)
        return dict(token) if token is not None else None

    async def put(self, email: str, token: TokenSet) -> None:
        token = dict(token)
        async with self._lock:
            await self._persist(email, token)
            self._tokens[email] = token
        logger.info("Tokens saved successfully for user: %s", email)

    async def update_access_token(self, email: str, expected_access_token: Optional[str],
                                  access_token: str, expires_at: Optional[int] = None) -> bool:
        """Stores a refreshed access token, keeping the rest of the stored token set.

        Skipped (returns False) when the stored access token is no longer the one
        the caller refreshed, e.g. the user re-authorized in the meantime.
        """
        async with self._lock:
            current = self._tokens.get(email)
            if current is None or current.get('access_token') != expected_access_token:
                logger.info("Stored tokens for %s changed during the request, refresh not saved.", email)
                return False
            token = dict(current, access_token=access_token)
            if expires_at is not None:
                token['expires_at'] = expires_at
                token.pop('expires_in', None)
            await self._persist(email, token)
            self._tokens[email] = token
        logger.info("Refreshed access token saved for user: %s", email)
        return True

    async def _persist(self, email: str, token: TokenSet) -> None:
        async with self._sessions() as session:
            db_token = await session.get(StoredToken, email)
            if db_token:
                db_token.token = token
                db_token.updated_at = utcnow()
            else:
                db_token = StoredToken(email=email, token=token)
            session.add(db_token)
            await session.commit()

    def __contains__(self, email: object) -> bool:
        return email in self._tokens

    def __len__(self) -> int:
        return len(self._tokens)
