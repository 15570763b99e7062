"""Account and token schemas."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

# bcrypt only hashes the first 72 bytes
PASSWORD_MAX_LENGTH = 72


class Credentials(BaseModel):
    """Email and password, as sent to login."""

    email: EmailStr = Field(..., max_length=255)
    password: str = Field(..., min_length=8, max_length=PASSWORD_MAX_LENGTH)


class UserLogin(Credentials):
    pass


class UserRegister(Credentials):
    """Sign-up request; the display name is optional."""

    name: str | None = Field(None, max_length=255)

    @field_validator("name")
    @classmethod
    def blank_name_is_none(cls, value: str | None) -> str | None:
        if value is None or not value.strip():
            return None
        return value.strip()


class UserResponse(BaseModel):
    """Public view of an account."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    email: str
    name: str | None
    created_at: datetime | None = None


class AuthResponse(BaseModel):
    """Bearer token issued on register or login."""

    access_token: str
    token_type: str = "bearer"  # noqa: S105
    user: UserResponse
