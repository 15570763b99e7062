"""Pydantic schemas for API requests and responses."""

from kasifesyen.schemas.auth import AuthResponse, UserLogin, UserRegister, UserResponse
from kasifesyen.schemas.fashion import FashionResult, Gender, ItemDescription, Outfit
from kasifesyen.schemas.receipt import (
    Discount,
    LineItem,
    ReceiptImage,
    ReceiptMetadata,
    ReceiptRecord,
    Tax,
)

__all__ = [
    "UserRegister",
    "UserLogin",
    "AuthResponse",
    "UserResponse",
    "FashionResult",
    "Gender",
    "ItemDescription",
    "Outfit",
    "LineItem",
    "Tax",
    "Discount",
    "ReceiptMetadata",
    "ReceiptRecord",
    "ReceiptImage",
]
