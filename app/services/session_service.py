from __future__ import annotations

import json
import logging
import secrets
import time
from typing import Any, Dict, Optional

from aiobotocore.session import get_session
from botocore.exceptions import ClientError
from fastapi import Request, Response
from itsdangerous import BadSignature, BadTimeSignature, URLSafeTimedSerializer

from app.core.config import Settings
from app.services.database_service import dynamodb_client_kwargs

logger = logging.getLogger(__name__)

SESSION_SALT = "auth-callback-session-v1"


class InMemorySessionStore:
    """Process-local session storage for development and tests."""

    def __init__(self) -> None:
        self._sessions: Dict[str, tuple[Dict[str, Any], float]] = {}

    async def get(self, session_id: str) -> Optional[Dict[str, Any]]:
        entry = self._sessions.get(session_id)
        if entry is None:
            return None
        data, expires_at = entry
        if expires_at <= time.time():
            self._sessions.pop(session_id, None)
            return None
        return json.loads(json.dumps(data))

    def _sweep(self, now: float) -> None:
        expired = [sid for sid, (_, expires_at) in self._sessions.items() if expires_at <= now]
        for sid in expired:
            del self._sessions[sid]

    async def set(self, session_id: str, data: Dict[str, Any], ttl_seconds: int) -> None:
        now = time.time()
        # Abandoned sessions are never read again, so expire them on write.
        self._sweep(now)
        self._sessions[session_id] = (json.loads(json.dumps(data)), now + ttl_seconds)

    async def delete(self, session_id: str) -> None:
        self._sessions.pop(session_id, None)


class DynamoDBSessionStore:
    """Sessions table keyed by ``session_id``.

    Data is stored as a JSON string; ``expires_at`` (epoch seconds) is meant
    to be configured as the table's TTL attribute. Because TTL deletion is
    lazy, expiry is also checked on read.
    """

    def __init__(self, settings: Settings):
        self.settings = settings
        self.table_name = settings.DYNAMODB_SESSIONS_TABLE_NAME
        self.session = get_session()

    async def _get_client(self):
        return self.session.create_client("dynamodb", **dynamodb_client_kwargs(self.settings))

    async def get(self, session_id: str) -> Optional[Dict[str, Any]]:
        try:
            client = await self._get_client()
            async with client as dynamodb:
                response = await dynamodb.get_item(
                    TableName=self.table_name,
                    Key={"session_id": {"S": session_id}},
                    ConsistentRead=True,
                )
        except ClientError:
            logger.exception("Failed to load session")
            raise

        item = response.get("Item")
        if not item:
            return None
        if int(item["expires_at"]["N"]) <= int(time.time()):
            return None
        return json.loads(item["data"]["S"])

    async def set(self, session_id: str, data: Dict[str, Any], ttl_seconds: int) -> None:
        try:
            client = await self._get_client()
            async with client as dynamodb:
                await dynamodb.put_item(
                    TableName=self.table_name,
                    Item={
                        "session_id": {"S": session_id},
                        "data": {"S": json.dumps(data, separators=(",", ":"))},
                        "expires_at": {"N": str(int(time.time()) + ttl_seconds)},
                    },
                )
        except ClientError:
            logger.exception("Failed to save session")
            raise

    async def delete(self, session_id: str) -> None:
        try:
            client = await self._get_client()
            async with client as dynamodb:
                await dynamodb.delete_item(
                    TableName=self.table_name,
                    Key={"session_id": {"S": session_id}},
                )
        except ClientError:
            logger.exception("Failed to delete session")
            raise


class Session:
    """Server-side session for one request.

    Mutations stay local until ``save()``; ``apply_cookie`` then tells the
    client which session to present next time.
    """

    def __init__(self, manager: "SessionManager", session_id: str, data: Optional[Dict[str, Any]] = None):
        self.manager = manager
        self.id = session_id
        self.data: Dict[str, Any] = data or {}
        # True until the session has been read from or written to the store
        self.is_new = data is None
        self.saved = False
        self.destroyed = False

    @property
    def user(self) -> Optional[Dict[str, Any]]:
        return self.data.get("user")

    @user.setter
    def user(self, value: Dict[str, Any]) -> None:
        self.data["user"] = value

    async def save(self) -> None:
        await self.manager.store.set(self.id, self.data, self.manager.ttl_seconds)
        self.saved = True
        self.is_new = False
        logger.debug("Saved session under cookie %s", self.manager.cookie_name)

    async def regenerate(self) -> None:
        """Move the session to a fresh id, dropping the old one from the store.

        Called on login so an id planted before authentication is never the
        one that ends up authenticated.
        """
        if not self.is_new:
            await self.manager.store.delete(self.id)
        self.id = self.manager.new_id()
        self.is_new = True

    async def destroy(self) -> None:
        await self.manager.store.delete(self.id)
        self.data = {}
        self.destroyed = True
        logger.debug("Destroyed session under cookie %s", self.manager.cookie_name)

    def apply_cookie(self, response: Response) -> None:
        if self.destroyed:
            response.delete_cookie(
                key=self.manager.cookie_name,
                path="/",
                secure=self.manager.cookie_secure,
                httponly=True,
                samesite="lax",
            )
        elif self.saved:
            response.set_cookie(
                key=self.manager.cookie_name,
                value=self.manager.sign(self.id),
                max_age=self.manager.ttl_seconds,
                path="/",
                secure=self.manager.cookie_secure,
                httponly=True,
                samesite="lax",
            )


class SessionManager:
    """Loads sessions from one named cookie holding a signed session id."""

    def __init__(
        self,
        store,
        secret: str,
        cookie_name: str,
        ttl_seconds: int,
        cookie_secure: bool = False,
    ):
        self.store = store
        self.cookie_name = cookie_name
        self.ttl_seconds = ttl_seconds
        self.cookie_secure = cookie_secure
        self._serializer = URLSafeTimedSerializer(secret_key=secret, salt=SESSION_SALT)

    def sign(self, session_id: str) -> str:
        return self._serializer.dumps(session_id)

    def unsign(self, value: Optional[str]) -> Optional[str]:
        if not value:
            return None
        try:
            session_id = self._serializer.loads(value, max_age=self.ttl_seconds)
        except (BadSignature, BadTimeSignature):
            return None
        return session_id if isinstance(session_id, str) else None

    def new_id(self) -> str:
        return secrets.token_urlsafe(32)

    def new_session(self) -> Session:
        return Session(self, self.new_id())

    async def load(self, request: Request) -> Session:
        """Return the session named by the request cookie, or a fresh one."""
        session_id = self.unsign(request.cookies.get(self.cookie_name))
        if session_id is None:
            return self.new_session()
        data = await self.store.get(session_id)
        if data is None:
            return self.new_session()
        return Session(self, session_id, data)


def create_session_store(settings: Settings):
    if settings.SESSION_STORE == "memory":
        return InMemorySessionStore()
    return DynamoDBSessionStore(settings)
