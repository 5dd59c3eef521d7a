import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List

from app.core.exceptions import DuplicateUserError, UserExistsError
from app.services.database_service import DynamoDBService

logger = logging.getLogger(__name__)


def create_user_input(email: str) -> Dict[str, Any]:
    """Default record for a user created on first login."""
    now = datetime.now(timezone.utc)
    username = f"fcc{uuid.uuid4().hex}"
    return {
        "id": str(uuid.uuid4()),
        "email": email,
        "email_verified": True,
        "username": username,
        "username_display": username,
        "external_id": str(uuid.uuid4()),
        "unsubscribe_id": uuid.uuid4().hex,
        "accepted_privacy_terms": False,
        "send_quincy_email": False,
        "is_donating": False,
        "progress_timestamps": [int(now.timestamp() * 1000)],
        "created_at": now.isoformat(),
    }


class UserService:
    def __init__(self, db_service: DynamoDBService):
        self.db_service = db_service

    def _pick(self, email: str, ids: List[str]) -> str:
        if len(ids) > 1:
            logger.error("Found %d users sharing one email", len(ids))
            raise DuplicateUserError(email)
        return ids[0]

    async def find_or_create_user(self, email: str) -> str:
        """
        Returns the id of the single user with this email, creating the user
        when none exists.

        Raises DuplicateUserError when the store holds several users for the
        email. If a concurrent login claims the email between our read and
        our insert, the store rejects the insert and the winner's row is
        returned instead.
        """
        ids = await self.db_service.find_user_ids_by_email(email)
        if ids:
            return self._pick(email, ids)

        try:
            return await self.db_service.create_user(create_user_input(email))
        except UserExistsError:
            logger.info("Lost user creation race; re-reading existing user")
            ids = await self.db_service.find_user_ids_by_email(email)
            if not ids:
                # Claim row exists but the index has not caught up yet.
                raise
            return self._pick(email, ids)
