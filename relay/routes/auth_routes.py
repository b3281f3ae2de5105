"""Authentication API routes."""

from fastapi import APIRouter, Request, status
from fastapi.concurrency import run_in_threadpool

from relay.auth import AuthStore
from relay.schemas import AuthStatusResponse, LoginResponse, OkResponse, PasswordRequest

router = APIRouter(prefix="/auth", tags=["Authentication"])


def _auth_store(request: Request) -> AuthStore:
    return request.app.state.auth_store


@router.get("/status", response_model=AuthStatusResponse)
async def auth_status(request: Request):
    """
    Report whether the initial password has been set.
    """
    return AuthStatusResponse(password_set=_auth_store(request).password_is_set())


@router.post("/setup", response_model=OkResponse, status_code=status.HTTP_201_CREATED)
async def setup_password(body: PasswordRequest, request: Request):
    """
    Set the initial password. Only allowed while no password exists.

    Parameters:
        - password: New password (stored as a bcrypt hash)

    Raises:
        - 400: Empty password
        - 409: Password already set
    """
    await run_in_threadpool(_auth_store(request).set_initial_password, body.password)
    return OkResponse()


@router.post("/login", response_model=LoginResponse)
async def login(body: PasswordRequest, request: Request):
    """
    Authenticate with the relay password and receive a new API key.

    Parameters:
        - password: Relay password

    Returns:
        - api_key: New API key with 'lft_' prefix

    Raises:
        - 401: Incorrect password
        - 409: No password set yet
    """
    api_key = await run_in_threadpool(_auth_store(request).login, body.password)
    return LoginResponse(api_key=api_key)
