"""Account model."""

from sqlalchemy import Column, Integer, String
from sqlalchemy.orm import relationship

from kasifesyen.database import Base
from kasifesyen.models.mixins import TimestampMixin


class User(Base, TimestampMixin):
    """A signed-up account. Receipts are always scoped to their owner."""

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, nullable=False, index=True)
    password_hash = Column(String(255), nullable=False)
    name = Column(String(255), nullable=True)

    receipts = relationship(
        "Receipt",
        back_populates="user",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
