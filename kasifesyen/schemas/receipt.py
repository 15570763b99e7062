"""Receipt schemas."""

import datetime as dt

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class LineItem(BaseModel):
    """A purchased item; price is the line total in the settlement currency."""

    name: str
    price: float
    quantity: int | None = Field(None, gt=0)


class Tax(BaseModel):
    """Tax charged on a receipt."""

    rate: float = 0.0
    amount: float = 0.0


class Discount(BaseModel):
    """A discount line."""

    description: str
    amount: float


class ReceiptMetadata(BaseModel):
    """Extraction metadata stored alongside a receipt."""

    currency_converted: bool = False
    original_currency: str | None = None
    type: str | None = None  # "manual" or "scanned"
    confidence: float | None = None


class ReceiptRecord(BaseModel):
    """A receipt as persisted and returned by the API."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: int
    store_name: str
    date: dt.date
    items: list[LineItem]
    subtotal: float = Field(ge=0)
    tax: Tax | None = None
    discounts: list[Discount] | None = None
    total: float = Field(ge=0)
    image_url: str = ""
    category: str = "Miscellaneous"
    tax_category: str | None = None
    # ORM rows expose the column as receipt_metadata
    metadata: ReceiptMetadata = Field(
        default_factory=ReceiptMetadata,
        validation_alias=AliasChoices("receipt_metadata", "metadata"),
    )
    created_at: dt.datetime | None = None
    updated_at: dt.datetime | None = None


class ReceiptImage(BaseModel):
    """A receipt photo stored under the user's permanent prefix."""

    path: str
    url: str
