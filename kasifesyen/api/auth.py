"""Account endpoints."""

from typing import Annotated

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from kasifesyen.api.dependencies import get_current_user
from kasifesyen.config import Settings, get_settings
from kasifesyen.database import get_db
from kasifesyen.models.user import User
from kasifesyen.schemas.auth import AuthResponse, UserLogin, UserRegister, UserResponse
from kasifesyen.services.auth import AccountService

router = APIRouter(prefix="/api/v1/auth", tags=["auth"])


def get_account_service(
    db: Annotated[Session, Depends(get_db)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> AccountService:
    return AccountService(db, settings)


@router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
def register(
    user_data: UserRegister,
    accounts: Annotated[AccountService, Depends(get_account_service)],
):
    """Create an account and sign it in."""
    return accounts.register(user_data.email, user_data.password, user_data.name)


@router.post("/login", response_model=AuthResponse)
def login(
    credentials: UserLogin,
    accounts: Annotated[AccountService, Depends(get_account_service)],
):
    """Exchange email and password for a bearer token."""
    return accounts.sign_in(credentials.email, credentials.password)


@router.get("/me", response_model=UserResponse)
async def get_me(
    current_user: Annotated[User, Depends(get_current_user)],
):
    """Get the signed-in user."""
    return current_user
