"""SQLAlchemy models."""

from kasifesyen.models.receipt import Receipt
from kasifesyen.models.user import User

__all__ = [
    "User",
    "Receipt",
]
