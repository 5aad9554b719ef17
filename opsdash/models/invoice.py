"""Invoice data models."""

from datetime import datetime
from decimal import Decimal
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field, field_serializer


class InvoiceStatus(StrEnum):
    """Invoice payment status."""

    UNPAID = "unpaid"
    PAID = "paid"


class InvoiceDraft(BaseModel):
    """Validated invoice contents that have not been persisted yet."""

    model_config = ConfigDict(frozen=True)

    customer_id: str
    title: str = Field(min_length=1)
    order_ids: frozenset[str] = Field(min_length=1)
    total_amount: Decimal = Field(ge=0)
    status: InvoiceStatus = InvoiceStatus.UNPAID
    month_year: str | None = None
    payment_link: str | None = None

    @field_serializer("order_ids")
    def serialize_order_ids(self, order_ids: frozenset[str]) -> list[str]:
        return sorted(order_ids)

    def to_row(self) -> dict[str, object]:
        """Row inserted into the ``invoices`` table."""
        row = self.model_dump(mode="json", exclude={"title"})
        row["invoice_title"] = self.title
        return row


class Invoice(InvoiceDraft):
    """Issued invoice. Its order set never changes after creation."""

    id: str
    created_at: datetime

    @classmethod
    def from_row(cls, row: dict[str, object]) -> "Invoice":
        """Build an invoice from a stored row, accepting the store's column names."""
        data = dict(row)
        if "title" not in data and "invoice_title" in data:
            data["title"] = data.pop("invoice_title")
        return cls.model_validate(data)

    @property
    def is_paid(self) -> bool:
        return self.status == InvoiceStatus.PAID
