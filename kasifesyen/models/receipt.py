"""Receipt model for scanned purchases."""

from sqlalchemy import Column, Date, Index, Numeric, String, Text
from sqlalchemy.orm import relationship

from kasifesyen.database import Base, JSONType
from kasifesyen.models.mixins import OwnedByUserMixin, TimestampMixin


class Receipt(Base, OwnedByUserMixin, TimestampMixin):
    """A receipt extracted from a photo, with amounts in the settlement currency."""

    __tablename__ = "receipts"
    __table_args__ = (Index("ix_receipts_user_id_created_at", "user_id", "created_at"),)

    id = Column(String(36), primary_key=True)
    store_name = Column(String(255), nullable=False)
    date = Column(Date, nullable=False)

    # [{name, price, quantity?}]
    items = Column(JSONType, nullable=False)
    subtotal = Column(Numeric(12, 2, asdecimal=False), nullable=False, default=0)
    # {rate, amount}
    tax = Column(JSONType, nullable=True)
    # [{description, amount}]
    discounts = Column(JSONType, nullable=True)
    total = Column(Numeric(12, 2, asdecimal=False), nullable=False)

    image_url = Column(Text, nullable=False, default="")
    category = Column(String(100), nullable=False, default="Miscellaneous")
    tax_category = Column(String(100), nullable=True)

    # "metadata" is reserved on declarative classes
    receipt_metadata = Column("metadata", JSONType, nullable=False)

    # Relationships
    user = relationship("User", back_populates="receipts")
