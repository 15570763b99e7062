"""Persistence of processed receipts."""

import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from kasifesyen.errors import PersistenceFailure
from kasifesyen.models.receipt import Receipt
from kasifesyen.schemas.receipt import ReceiptRecord

logger = logging.getLogger(__name__)


class ReceiptRepository:
    """Reads and writes receipt rows, always scoped to one owning user."""

    def __init__(self, db: Session):
        self.db = db

    def add(self, record: ReceiptRecord) -> Receipt:
        """Insert a receipt and commit.

        Raises:
            PersistenceFailure: the write was rejected; the session is rolled back
        """
        receipt = Receipt(
            id=record.id,
            user_id=record.user_id,
            store_name=record.store_name,
            date=record.date,
            items=[item.model_dump(exclude_none=True) for item in record.items],
            subtotal=record.subtotal,
            tax=record.tax.model_dump() if record.tax else None,
            discounts=(
                [discount.model_dump() for discount in record.discounts]
                if record.discounts is not None
                else None
            ),
            total=record.total,
            image_url=record.image_url,
            category=record.category,
            tax_category=record.tax_category,
            receipt_metadata=record.metadata.model_dump(),
        )
        if record.created_at is not None:
            receipt.created_at = record.created_at
        if record.updated_at is not None:
            receipt.updated_at = record.updated_at

        try:
            self.db.add(receipt)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Failed to save receipt {record.id} for user {record.user_id}: {e}")
            raise PersistenceFailure("Failed to save receipt") from e

        self.db.refresh(receipt)
        logger.info(f"Saved receipt {receipt.id} for user {receipt.user_id}")
        return receipt

    def list_for_user(self, user_id: int) -> list[Receipt]:
        """All receipts of a user, newest first."""
        return (
            self.db.query(Receipt)
            .filter(Receipt.user_id == user_id)
            .order_by(Receipt.created_at.desc(), Receipt.date.desc())
            .all()
        )

    def get_for_user(self, user_id: int, receipt_id: str) -> Receipt | None:
        return (
            self.db.query(Receipt)
            .filter(Receipt.id == receipt_id, Receipt.user_id == user_id)
            .first()
        )
