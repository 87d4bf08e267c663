"""
Authentication router.

Registration, login and the current-user endpoint.
"""

from fastapi import APIRouter, Depends, status

from ..dependencies import get_auth_service, get_current_user
from ..domain.exceptions import AuthenticationFailed, ValidationFailed
from ..logging_config import get_logger
from ..models import User
from ..schemas import AuthResponse, LoginRequest, RegisterRequest, UserResponse
from ..services.auth_service import AuthError, AuthResult, AuthService

logger = get_logger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


def _auth_response(result: AuthResult) -> AuthResponse:
    return AuthResponse(
        token=result.token,
        user=UserResponse.from_user(result.user),
        expires_at=result.expires_at,
    )


@router.post(
    "/register",
    response_model=AuthResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register new user",
)
def register(
    request: RegisterRequest,
    auth_service: AuthService = Depends(get_auth_service),
):
    """
    Register a new user and return a token for immediate use.

    Raises:
        ValidationFailed: If the email is invalid or taken, or the password
            is too short
    """
    try:
        result = auth_service.register(
            email=request.email,
            password=request.password,
            first_name=request.first_name,
            last_name=request.last_name,
        )
    except AuthError as e:
        logger.info("Registration rejected", code=e.code)
        raise ValidationFailed(e.message, details={"code": e.code}) from e

    return _auth_response(result)


@router.post("/login", response_model=AuthResponse, summary="Sign in")
def login(
    request: LoginRequest,
    auth_service: AuthService = Depends(get_auth_service),
):
    """
    Sign in with email and password.

    Raises:
        AuthenticationFailed: If the credentials are wrong
    """
    try:
        result = auth_service.login(email=request.email, password=request.password)
    except AuthError as e:
        raise AuthenticationFailed(e.message, details={"code": e.code}) from e

    return _auth_response(result)


@router.get("/me", response_model=UserResponse, summary="Current user")
def me(current_user: User = Depends(get_current_user)):
    """Return the user the bearer token belongs to."""
    return UserResponse.from_user(current_user)
