"""Order data models and lifecycle actions."""

from datetime import datetime
from decimal import Decimal
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator


ASSIGNMENT_COLUMNS = ("assigned_sales_rep_id", "assigned_designer_id", "assigned_role")


class OrderStatus(StrEnum):
    """Order workflow status."""

    NEW = "new"
    IN_PROGRESS = "in_progress"
    UNDER_REVIEW = "under_review"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

    def is_terminal(self) -> bool:
        """Completed and cancelled orders never change status again."""
        return self in (OrderStatus.COMPLETED, OrderStatus.CANCELLED)

    @property
    def label(self) -> str:
        """Human readable label, e.g. ``In Progress``."""
        return self.value.replace("_", " ").title()


class PaymentStatus(StrEnum):
    """Order payment status."""

    PAID = "paid"
    UNPAID = "unpaid"
    PARTIALLY_PAID = "partially_paid"


class AssignedRole(StrEnum):
    """Which kind of employee an order is assigned to."""

    SALES_REP = "sales_rep"
    DESIGNER = "designer"


class Order(BaseModel):
    """Order as stored remotely.

    Status and assignment are only changed through the order lifecycle; the
    model is frozen so callers cannot write those fields directly.

    Rows written by older clients may carry an assignee id without a role, or
    both assignee ids at once. They are read as they are (a missing role is
    derived from a single id); ``assignment_error`` reports what a transition
    would have to fix before the assignment columns are written again.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    order_number: str
    customer_id: str
    status: OrderStatus = OrderStatus.NEW
    assigned_sales_rep_id: str | None = None
    assigned_designer_id: str | None = None
    assigned_role: AssignedRole | None = None
    total_amount: Decimal = Field(default=Decimal("0"), ge=0)
    payment_status: PaymentStatus = PaymentStatus.UNPAID
    created_at: datetime
    updated_at: datetime | None = None

    @model_validator(mode="before")
    @classmethod
    def derive_role(cls, data: Any) -> Any:
        """Fill in a missing ``assigned_role`` when exactly one assignee id is set."""
        if not isinstance(data, dict) or data.get("assigned_role"):
            return data
        sales_rep_id = data.get("assigned_sales_rep_id")
        designer_id = data.get("assigned_designer_id")
        if bool(sales_rep_id) != bool(designer_id):
            role = AssignedRole.SALES_REP if sales_rep_id else AssignedRole.DESIGNER
            data = {**data, "assigned_role": role}
        return data

    def assignment_error(self) -> str | None:
        """Explain why the assignment columns are inconsistent.

        Returns:
            None when at most one assignee is set and the role matches it
        """
        if self.assigned_sales_rep_id and self.assigned_designer_id:
            return "an order cannot be assigned to a sales rep and a designer at the same time"

        if self.assigned_sales_rep_id:
            expected = AssignedRole.SALES_REP
        elif self.assigned_designer_id:
            expected = AssignedRole.DESIGNER
        else:
            expected = None

        if self.assigned_role != expected:
            return f"assigned_role must be {expected!s} for the current assignee, got {self.assigned_role!s}"
        return None

    @property
    def assignee_id(self) -> str | None:
        """ID of the employee currently responsible for the order."""
        if self.assigned_role == AssignedRole.DESIGNER:
            return self.assigned_designer_id
        if self.assigned_role == AssignedRole.SALES_REP:
            return self.assigned_sales_rep_id
        return self.assigned_sales_rep_id or self.assigned_designer_id

    @property
    def is_invoiceable(self) -> bool:
        return self.payment_status == PaymentStatus.UNPAID


class Assign(BaseModel):
    """Assign a new order to exactly one sales rep or designer."""

    model_config = ConfigDict(frozen=True)

    sales_rep_id: str | None = None
    designer_id: str | None = None
    target_status: OrderStatus | None = None

    def describe(self) -> str:
        if self.sales_rep_id:
            return f"assign(sales_rep={self.sales_rep_id})"
        return f"assign(designer={self.designer_id})"


class SetStatus(BaseModel):
    """Move an order to another status."""

    model_config = ConfigDict(frozen=True)

    target: OrderStatus

    def describe(self) -> str:
        return f"set_status({self.target.value})"


OrderAction = Assign | SetStatus


def lifecycle_columns(order: Order, include_assignment: bool = True) -> dict[str, Any]:
    """Columns written back to the store after a lifecycle transition.

    Status changes leave the assignment columns alone, so rows written by
    older clients keep their assignees untouched.
    """
    columns = {"status", *ASSIGNMENT_COLUMNS} if include_assignment else {"status"}
    return order.model_dump(mode="json", include=columns)
