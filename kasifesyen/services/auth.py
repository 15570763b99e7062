"""Accounts and bearer tokens.

Passwords are bcrypt hashes; tokens are HS256 JWTs whose subject is the
user id. ``AccountService`` wraps one request's ``Session`` and raises
domain errors, so routers only translate its results into responses.
"""

import logging
from datetime import UTC, datetime, timedelta
from typing import Any

from jose import JWTError, jwt
from passlib.context import CryptContext
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from kasifesyen.config import Settings, get_settings
from kasifesyen.errors import EmailAlreadyRegistered, InvalidCredentials
from kasifesyen.models.user import User
from kasifesyen.schemas.auth import AuthResponse, UserResponse

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def create_access_token(user: User, settings: Settings | None = None) -> str:
    """Issue a bearer token for user, valid for jwt_expiration_minutes."""
    settings = settings or get_settings()
    claims = {
        "sub": str(user.id),
        "email": user.email,
        "exp": datetime.now(UTC) + timedelta(minutes=settings.jwt_expiration_minutes),
    }
    return jwt.encode(claims, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str, settings: Settings | None = None) -> dict[str, Any] | None:
    """Return the token claims, or None if the token is invalid or expired."""
    settings = settings or get_settings()
    try:
        return jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except JWTError as e:
        logger.debug(f"Rejected access token: {e}")
        return None


class AccountService:
    """Registration and sign-in against the users table."""

    def __init__(self, db: Session, settings: Settings | None = None):
        self.db = db
        self.settings = settings or get_settings()

    def find(self, email: str) -> User | None:
        # emails are stored lowercased
        return self.db.query(User).filter(User.email == email.lower()).first()

    def register(self, email: str, password: str, name: str | None = None) -> AuthResponse:
        """Create an account and sign it in.

        Raises:
            EmailAlreadyRegistered: an account with this email exists
        """
        if self.find(email) is not None:
            raise EmailAlreadyRegistered(email)

        user = User(email=email.lower(), password_hash=pwd_context.hash(password), name=name)
        self.db.add(user)
        try:
            self.db.commit()
        except IntegrityError:
            # lost a race with a concurrent sign-up for the same email
            self.db.rollback()
            raise EmailAlreadyRegistered(email) from None
        self.db.refresh(user)

        logger.info(f"Registered user {user.id}")
        return self._session_for(user)

    def sign_in(self, email: str, password: str) -> AuthResponse:
        """Exchange credentials for a bearer token.

        Raises:
            InvalidCredentials: unknown email or wrong password
        """
        user = self.find(email)
        if user is None or not pwd_context.verify(password, user.password_hash):
            logger.info("Rejected sign-in attempt")
            raise InvalidCredentials("Incorrect email or password")
        return self._session_for(user)

    def _session_for(self, user: User) -> AuthResponse:
        return AuthResponse(
            access_token=create_access_token(user, self.settings),
            user=UserResponse.model_validate(user),
        )
