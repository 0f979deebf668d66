# backend/main.py
import logging
from contextlib import asynccontextmanager
from typing import Any, Dict, Optional
from fastapi import FastAPI, Depends, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse, PlainTextResponse
from starlette.middleware.sessions import SessionMiddleware
from starlette.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from config import LOG_LEVEL, PORT, SESSION_SECRET_KEY
from database import AsyncSessionLocal, create_db_and_tables
from credential_store import CredentialStore
from auth import CLIENT, begin_authorization, complete_authorization
from services import sheets_service

logging.basicConfig(level=LOG_LEVEL, format="%(levelname)s:     %(name)s - %(message)s")
logger = logging.getLogger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting up and loading stored tokens...")
    await create_db_and_tables()
    store = CredentialStore(AsyncSessionLocal)
    await store.load()
    app.state.credential_store = store
    logger.info("Startup complete.")
    yield

app = FastAPI(lifespan=lifespan)

app.add_middleware(
    CORSMiddleware, allow_origins=["*"], allow_methods=["*"], allow_headers=["*"],
)
# authlib keeps the OAuth state between /auth and the callback in the session
app.add_middleware(SessionMiddleware, secret_key=SESSION_SECRET_KEY)

def get_credential_store(request: Request) -> CredentialStore:
    return request.app.state.credential_store

# --- Pydantic Models ---
class AppendRequest(BaseModel):
    spreadsheetId: Optional[str] = None
    data: Dict[str, Any] = Field(default_factory=dict)
    # anything but a list of names is ignored when the row is built
    additionalFieldsOrder: Any = None
    userEmail: Optional[str] = None

# --- API Routes ---
@app.get("/auth")
async def login(request: Request):
    return await begin_authorization(request)

@app.get("/oauth2callback", name="auth_callback")
async def auth_callback(request: Request, store: CredentialStore = Depends(get_credential_store)):
    try:
        await complete_authorization(request, store)
    except Exception:
        logger.exception("Error retrieving access token")
        return PlainTextResponse("Authentication failed.", status_code=500)
    return PlainTextResponse("Authentication successful! You can now append data to your Google Sheets.")

@app.post("/append-data-to-existing-sheet")
async def append_data(request: AppendRequest, store: CredentialStore = Depends(get_credential_store)):
    token = store.get(request.userEmail)
    if token is None:
        return JSONResponse(
            status_code=400,
            content={"message": f"No tokens found for user {request.userEmail}. Please authenticate first."},
        )
    try:
        row = sheets_service.build_row(request.data, request.additionalFieldsOrder)
    except sheets_service.MissingFieldError as e:
        return JSONResponse(status_code=400, content={"message": str(e)})

    creds = sheets_service.build_credentials(token, CLIENT)
    try:
        service = await run_in_threadpool(sheets_service.get_sheets_service, creds)
        await sheets_service.append_row(service, request.spreadsheetId, row)
    except Exception:
        logger.exception("Error appending data for user %s", request.userEmail)
        return JSONResponse(status_code=500, content={"message": "Failed to append data to the Google Sheet."})

    refreshed = sheets_service.refreshed_access_token(token, creds)
    if refreshed is not None:
        access_token, expires_at = refreshed
        try:
            await store.update_access_token(
                request.userEmail, token.get("access_token"), access_token, expires_at
            )
        except Exception:
            logger.exception("Could not save refreshed tokens for user %s", request.userEmail)
    return {"message": "Data appended successfully to the Google Sheet!"}

@app.get("/")
async def read_root():
    return {"message": "Sheets append backend is running!"}

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=PORT)
