import logging

from fastapi import Response, status
from fastapi.responses import JSONResponse, RedirectResponse

from app.core.config import Settings
from app.models.user import SessionUser
from app.services.identity_service import Auth0IdentityService
from app.services.session_service import Session
from app.services.user_service import UserService

logger = logging.getLogger(__name__)


async def establish_session(email: str, session: Session, user_service: UserService) -> None:
    """Resolve the email to a user and persist that user's id in the session."""
    user_id = await user_service.find_or_create_user(email)
    await session.regenerate()
    session.user = SessionUser(id=user_id).model_dump()
    await session.save()
    logger.info("Session established for user %s", user_id)


async def dev_login_controller(
    settings: Settings, session: Session, user_service: UserService
) -> Response:
    await establish_session(settings.DEV_LOGIN_EMAIL, session, user_service)
    response = JSONResponse({"statusCode": 200})
    session.apply_cookie(response)
    return response


async def auth0_callback_controller(
    authorization: str,
    session: Session,
    user_service: UserService,
    identity_service: Auth0IdentityService,
) -> Response:
    email = await identity_service.get_email(authorization)
    await establish_session(email, session, user_service)
    response = Response(status_code=status.HTTP_200_OK)
    session.apply_cookie(response)
    return response


def _learn_redirect(settings: Settings) -> RedirectResponse:
    return RedirectResponse(url=f"{settings.HOME_LOCATION}/learn", status_code=status.HTTP_302_FOUND)


async def legacy_signin_controller(
    settings: Settings, session: Session, user_service: UserService
) -> Response:
    await establish_session(settings.DEV_LOGIN_EMAIL, session, user_service)
    response = _learn_redirect(settings)
    session.apply_cookie(response)
    return response


async def signout_controller(settings: Settings, session: Session) -> Response:
    await session.destroy()
    logger.info("Session destroyed")
    response = _learn_redirect(settings)
    session.apply_cookie(response)
    return response
