from fastapi import APIRouter, Depends, Request

from app.api.deps import (
    authenticate,
    get_identity_service,
    get_legacy_session,
    get_session,
    get_user_service,
)
from app.controllers.auth import (
    auth0_callback_controller,
    dev_login_controller,
    legacy_signin_controller,
    signout_controller,
)
from app.core.config import get_settings, Settings
from app.services.identity_service import Auth0IdentityService
from app.services.session_service import Session
from app.services.user_service import UserService

# Only registered outside production; bypasses Auth0 and logs in as the dev user.
# TODO: switch these logins to POST with login CSRF protection.
dev_router = APIRouter()
# Every /callback request must carry a bearer token before the handler runs.
auth0_router = APIRouter(dependencies=[Depends(authenticate)])
# Mirrors the old api-server the client still depends on. Uses its own cookie,
# so a session created here is not visible to /callback consumers.
legacy_router = APIRouter()


@dev_router.get("/dev-callback", summary="Development Login")
async def dev_callback(
    settings: Settings = Depends(get_settings),
    session: Session = Depends(get_session),
    user_service: UserService = Depends(get_user_service),
):
    """
    Logs in as the configured development user and returns `{"statusCode": 200}`.
    """
    return await dev_login_controller(settings, session, user_service)


@auth0_router.get("/callback", summary="Auth0 Callback")
async def auth0_callback(
    request: Request,
    session: Session = Depends(get_session),
    user_service: UserService = Depends(get_user_service),
    identity_service: Auth0IdentityService = Depends(get_identity_service),
):
    """
    Exchanges the Auth0 access token for the user's email, finds or creates
    the matching user and stores their id in the session.
    """
    return await auth0_callback_controller(
        request.headers.get("authorization", ""), session, user_service, identity_service
    )


@legacy_router.get("/signin", summary="Legacy Development Login", deprecated=True)
async def signin(
    settings: Settings = Depends(get_settings),
    session: Session = Depends(get_legacy_session),
    user_service: UserService = Depends(get_user_service),
):
    return await legacy_signin_controller(settings, session, user_service)


@legacy_router.get("/signout", summary="Sign Out")
async def signout(
    settings: Settings = Depends(get_settings),
    session: Session = Depends(get_legacy_session),
):
    return await signout_controller(settings, session)
