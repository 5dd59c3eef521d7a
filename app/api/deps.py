from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from httpx import AsyncClient
from functools import lru_cache
from typing import AsyncGenerator, Optional

from app.core.config import get_settings, Settings
from app.services.database_service import DynamoDBService
from app.services.identity_service import Auth0IdentityService
from app.services.session_service import Session, SessionManager, create_session_store
from app.services.user_service import UserService

bearer_scheme = HTTPBearer(auto_error=False)

# Service Dependencies
def get_db_service(settings: Settings = Depends(get_settings)) -> DynamoDBService:
    return DynamoDBService(settings)

def get_user_service(db_service: DynamoDBService = Depends(get_db_service)) -> UserService:
    return UserService(db_service)

# HTTP Client Dependency
async def get_http_client() -> AsyncGenerator[AsyncClient, None]:
    async with AsyncClient() as client:
        yield client

def get_identity_service(
    settings: Settings = Depends(get_settings),
    client: AsyncClient = Depends(get_http_client),
) -> Auth0IdentityService:
    return Auth0IdentityService(settings, client)

# Session Dependencies
@lru_cache()
def get_session_store():
    # Shared across requests so the in-memory store keeps its contents.
    return create_session_store(get_settings())

def get_session_manager(settings: Settings = Depends(get_settings)) -> SessionManager:
    return SessionManager(
        store=get_session_store(),
        secret=settings.SESSION_SECRET.get_secret_value(),
        cookie_name=settings.SESSION_COOKIE_NAME,
        ttl_seconds=settings.SESSION_TTL_SECONDS,
        cookie_secure=settings.SESSION_COOKIE_SECURE,
    )

def get_legacy_session_manager(settings: Settings = Depends(get_settings)) -> SessionManager:
    return SessionManager(
        store=get_session_store(),
        secret=settings.SESSION_SECRET.get_secret_value(),
        cookie_name=settings.LEGACY_SESSION_COOKIE_NAME,
        ttl_seconds=settings.SESSION_TTL_SECONDS,
        cookie_secure=settings.SESSION_COOKIE_SECURE,
    )

async def get_session(
    request: Request, manager: SessionManager = Depends(get_session_manager)
) -> Session:
    return await manager.load(request)

async def get_legacy_session(
    request: Request, manager: SessionManager = Depends(get_legacy_session_manager)
) -> Session:
    return await manager.load(request)

# Request precondition
def authenticate(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> str:
    """
    Requires a bearer token on the request. The token itself is checked by
    Auth0 when the handler exchanges it for the user's email.
    """
    if credentials is None or not credentials.credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return credentials.credentials
