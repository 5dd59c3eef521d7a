import logging
from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError

from app.api.routers import auth
from app.core.config import get_settings
from app.core.exceptions import AuthServiceError
from app.core.logging_config import setup_logging

# --- Application Setup ---
setup_logging()  # Initialize logging first
settings = get_settings()
app = FastAPI(
    title="Auth Callback API",
    description="Exchanges identity-provider logins for local users and server-side sessions.",
    version="1.0.0",
)
logger = logging.getLogger(__name__)

# --- Exception Handlers ---
@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"detail": "Validation error", "errors": exc.errors()},
    )

@app.exception_handler(AuthServiceError)
async def auth_service_exception_handler(request: Request, exc: AuthServiceError):
    # Callers get no hint whether Auth0 or the user store failed.
    logger.error("%s on %s: %s", type(exc).__name__, request.url.path, exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal Server Error"},
    )

# --- Routers ---
if settings.dev_routes_enabled:
    app.include_router(auth.dev_router, tags=["Authentication"])
    app.include_router(auth.legacy_router, tags=["Authentication"])
app.include_router(auth.auth0_router, tags=["Authentication"])

# --- Root Endpoint ---
@app.get("/", tags=["Root"], summary="API Root")
async def read_root():
    """A welcome message to verify the API is running."""
    return {"message": "Welcome to the Auth Callback API!"}

# --- Lifecycle Events ---
@app.on_event("startup")
async def startup_event():
    logger.info("--- Starting FastAPI application ---")
    logger.info("Log level set to: %s", settings.LOG_LEVEL)
    logger.info("Session store: %s", settings.SESSION_STORE)
    if settings.dev_routes_enabled:
        logger.warning("Development login routes enabled (ENVIRONMENT=%s)", settings.ENVIRONMENT)
    if settings.DYNAMODB_ENDPOINT_URL:
        logger.warning("Using DynamoDB endpoint: %s", settings.DYNAMODB_ENDPOINT_URL)
    logger.info("Application startup complete.")

@app.on_event("shutdown")
async def shutdown_event():
    logger.info("--- Shutting down FastAPI application ---")
