import logging
from httpx import AsyncClient
from pydantic import ValidationError

from app.core.config import Settings
from app.core.exceptions import IdentityVerificationError
from app.models.user import UserInfo

logger = logging.getLogger(__name__)

class Auth0IdentityService:
    """Resolves an Auth0 access token to the email of the account it belongs to."""

    def __init__(self, settings: Settings, client: AsyncClient):
        self.userinfo_url = f"https://{settings.AUTH0_DOMAIN}/userinfo"
        self.client = client

    async def get_email(self, authorization: str) -> str:
        """
        Forwards the Authorization header to Auth0's /userinfo endpoint and
        returns the email it reports.

        Raises IdentityVerificationError when Auth0 answers with a non-2xx
        status or a body without a usable email.
        """
        resp = await self.client.get(self.userinfo_url, headers={"Authorization": authorization})

        if not resp.is_success:
            logger.error(
                "Auth0 rejected access token: status=%s body=%s",
                resp.status_code,
                resp.text,
            )
            raise IdentityVerificationError("Invalid Auth0 Access Token")

        try:
            info = UserInfo.model_validate(resp.json())
        except (ValueError, ValidationError) as e:
            logger.error("Malformed Auth0 userinfo response: %s", resp.text)
            raise IdentityVerificationError("Malformed Auth0 userinfo response") from e

        return info.email
