"""Invoice aggregation from unpaid orders."""

import logging
from collections.abc import Iterable, Sequence
from datetime import UTC, date, datetime, time
from decimal import ROUND_HALF_UP, Decimal

import dateparser

from opsdash.api.repository import InvoiceRepository, OrderRepository
from opsdash.core.constants import CURRENCY_QUANTUM
from opsdash.exceptions import ValidationError
from opsdash.models.invoice import Invoice, InvoiceDraft, InvoiceStatus
from opsdash.models.order import Order

logger = logging.getLogger(__name__)

DateBound = date | datetime | str | None

_DATEPARSER_SETTINGS = {
    "RETURN_AS_TIMEZONE_AWARE": True,
    "TIMEZONE": "UTC",
    "TO_TIMEZONE": "UTC",
}


def calculate_total(orders: Iterable[Order]) -> Decimal:
    """Exact sum of order totals, rounded to cents."""
    total = sum((order.total_amount for order in orders), Decimal("0"))
    return total.quantize(Decimal(CURRENCY_QUANTUM), rounding=ROUND_HALF_UP)


def parse_bound(value: DateBound, field: str, end_of_day: bool = False) -> datetime | None:
    """Turn a date bound into an aware UTC datetime.

    Args:
        value: Date, datetime, or text such as ``2025-09-01`` or ``30 days ago``
        field: Name reported in validation errors
        end_of_day: Extend bare dates to the last instant of that day

    Returns:
        The bound, or None when no bound was given

    Raises:
        ValidationError: If a text bound cannot be parsed
    """
    if value is None or value == "":
        return None

    if isinstance(value, str):
        try:
            value = date.fromisoformat(value.strip())
        except ValueError:
            parsed = dateparser.parse(value, settings=_DATEPARSER_SETTINGS)
            if parsed is None:
                raise ValidationError(field, value, f"Could not parse date '{value}'") from None
            return parsed

    if isinstance(value, datetime):
        # Naive datetimes are taken as UTC
        return value if value.tzinfo else value.replace(tzinfo=UTC)

    return datetime.combine(value, time.max if end_of_day else time.min, tzinfo=UTC)


class InvoiceAggregator:
    """Builds invoices for a customer's unpaid orders."""

    def __init__(self, orders: OrderRepository, invoices: InvoiceRepository | None = None) -> None:
        """Initialize the aggregator.

        Args:
            orders: Order repository used for fresh eligibility checks
            invoices: Invoice repository used by ``issue_invoice``
        """
        self.orders = orders
        self.invoices = invoices

    async def unpaid_candidates(
        self,
        customer_id: str,
        date_from: DateBound = None,
        date_to: DateBound = None,
    ) -> list[Order]:
        """Unpaid orders of a customer, newest first, within inclusive date bounds."""
        created_from = parse_bound(date_from, "date_from")
        created_to = parse_bound(date_to, "date_to", end_of_day=True)
        if created_from and created_to and created_from > created_to:
            raise ValidationError("date_from", date_from, "date_from must not be after date_to")

        candidates = await self.orders.unpaid_for_customer(customer_id, created_from, created_to)
        logger.debug(f"Found {len(candidates)} unpaid orders for customer {customer_id}")
        return candidates

    async def build_invoice(
        self,
        customer_id: str,
        order_ids: Sequence[str],
        title: str,
        *,
        month_year: str | None = None,
        payment_link: str | None = None,
    ) -> InvoiceDraft:
        """Validate the selection and compute the invoice.

        Every order is re-read from the store; a page shown earlier may be stale.

        Raises:
            ValidationError: If the selection is empty, the title is blank, or an
                order is missing, belongs to another customer or is not unpaid
        """
        ids = list(dict.fromkeys(order_ids))
        if not ids:
            raise ValidationError("order_ids", order_ids, "At least one order must be selected")
        if not title or not title.strip():
            raise ValidationError("title", title, "Invoice title is required")

        current = await self.orders.get_many(ids)

        selected: list[Order] = []
        for order_id in ids:
            order = current.get(order_id)
            if order is None:
                reason = "not found"
            elif order.customer_id != customer_id:
                reason = "belongs to another customer"
            elif not order.is_invoiceable:
                reason = f"payment status is {order.payment_status.value}"
            else:
                selected.append(order)
                continue
            raise ValidationError("order_ids", order_id, f"order not eligible: {order_id} ({reason})")

        draft = InvoiceDraft(
            customer_id=customer_id,
            title=title.strip(),
            order_ids=frozenset(ids),
            total_amount=calculate_total(selected),
            status=InvoiceStatus.UNPAID,
            month_year=month_year,
            payment_link=payment_link,
        )
        logger.debug(f"Built invoice draft for {customer_id}: {len(ids)} orders, total {draft.total_amount}")
        return draft

    async def issue_invoice(self, draft: InvoiceDraft) -> Invoice:
        """Persist a draft as a new unpaid invoice."""
        if self.invoices is None:
            raise RuntimeError("InvoiceAggregator.issue_invoice needs an invoice repository")
        invoice = await self.invoices.create_from_draft(draft)
        logger.info(f"Issued invoice {invoice.id} for customer {invoice.customer_id} ({invoice.total_amount})")
        return invoice
