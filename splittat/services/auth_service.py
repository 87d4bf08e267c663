"""
Authentication service.

Provides business logic for user registration, login and token resolution.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from email_validator import EmailNotValidError, validate_email
from sqlalchemy.exc import IntegrityError

from ..config import settings
from ..logging_config import get_logger
from ..metrics import track_login, track_registration
from ..models import User
from ..repositories.interfaces import IUserRepository
from ..security import create_access_token, decode_access_token, hash_password, verify_password

logger = get_logger(__name__)

INVALID_CREDENTIALS = "Invalid email or password"


class AuthError(Exception):
    """Base exception for authentication errors."""

    def __init__(self, message: str, code: str = "auth_error"):
        self.message = message
        self.code = code
        super().__init__(self.message)


@dataclass
class AuthResult:
    """Issued token together with the authenticated user."""

    token: str
    expires_at: datetime
    user: User


class AuthService:
    """
    Service class for authentication operations.

    Handles user registration and login with bcrypt-hashed passwords and
    JWT bearer tokens.
    """

    def __init__(self, users: IUserRepository):
        self.users = users

    def register(
        self, email: str, password: str, first_name: str, last_name: str
    ) -> AuthResult:
        """
        Register a new user.

        Checks run in a fixed order: email format, then uniqueness, then
        password length.

        Args:
            email: User email address
            password: User password
            first_name: Given name
            last_name: Family name

        Returns:
            AuthResult with a fresh access token

        Raises:
            AuthError: If registration fails
        """
        logger.info("Registration attempt", email=email)

        normalized = _normalize_email(email)
        if normalized is None:
            logger.warning("Registration failed - invalid email", email=email)
            track_registration(False)
            raise AuthError("Invalid email address", "invalid_email")

        if self.users.get_by_email(normalized) is not None:
            logger.warning("Registration failed - email already exists", email=normalized)
            track_registration(False)
            raise AuthError("Email already registered", "email_exists")

        if not password or not password.strip() or len(password) < settings.MIN_PASSWORD_LENGTH:
            track_registration(False)
            raise AuthError(
                f"Password must be at least {settings.MIN_PASSWORD_LENGTH} characters",
                "weak_password",
            )

        user = User(
            email=normalized,
            password_hash=hash_password(password),
            first_name=first_name.strip(),
            last_name=last_name.strip(),
        )
        try:
            self.users.add(user)
            self.users.commit()
        except IntegrityError:
            # Another request registered the same email between check and insert.
            self.users.rollback()
            logger.warning("Registration failed - email already exists", email=normalized)
            track_registration(False)
            raise AuthError("Email already registered", "email_exists")

        logger.info("User registered successfully", user_id=user.id, email=user.email)
        track_registration(True)
        return self._issue(user)

    def login(self, email: str, password: str) -> AuthResult:
        """
        Sign in a user with email and password.

        Args:
            email: User email
            password: User password

        Returns:
            AuthResult with a fresh access token

        Raises:
            AuthError: If the credentials do not match a user
        """
        logger.info("Login attempt", email=email)

        user = self.users.get_by_email(email or "")
        if user is None:
            logger.warning("Login failed - user not found", email=email)
            track_login(False)
            raise AuthError(INVALID_CREDENTIALS, "invalid_credentials")

        if not verify_password(password or "", user.password_hash):
            logger.warning("Login failed - invalid password", email=email)
            track_login(False)
            raise AuthError(INVALID_CREDENTIALS, "invalid_credentials")

        logger.info("User logged in successfully", user_id=user.id)
        track_login(True)
        return self._issue(user)

    def current_user(self, token: Optional[str]) -> User:
        """
        Resolve a bearer token to the stored user.

        Raises:
            AuthError: If the token is missing, invalid or expired, or the
                user no longer exists
        """
        if not token:
            raise AuthError("Not authenticated", "not_authenticated")

        payload = decode_access_token(token)
        if payload is None:
            raise AuthError("Invalid or expired token", "invalid_token")

        user = self.users.get(payload["sub"])
        if user is None:
            logger.warning("Token refers to unknown user", user_id=payload["sub"])
            raise AuthError("User not found", "user_not_found")

        return user

    def _issue(self, user: User) -> AuthResult:
        token, expires_at = create_access_token(user.id, user.email)
        return AuthResult(token=token, expires_at=expires_at, user=user)


def _normalize_email(email: Optional[str]) -> Optional[str]:
    if not email or not email.strip():
        return None
    try:
        # Syntax only; intranet and special-use domains are accepted.
        result = validate_email(
            email.strip(), check_deliverability=False, globally_deliverable=False
        )
    except EmailNotValidError:
        return None
    return result.normalized.lower()
