"""Order lifecycle state machine.

    new ──► in_progress ──► under_review ──► completed
     │           │               │
     └───────────┴───────────────┴──────► cancelled

Assignment is only possible while an order is ``new``. Completed and
cancelled orders are final.
"""

import asyncio
import inspect
import logging
from typing import Any

from opsdash.api.repository import OrderRepository
from opsdash.core.constants import EntityType
from opsdash.exceptions import InvalidTransitionError
from opsdash.models.order import Assign, AssignedRole, Order, OrderAction, OrderStatus, SetStatus
from opsdash.services.sinks import ActivityLog, NotificationSink

logger = logging.getLogger(__name__)

ALLOWED_STATUS_TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    OrderStatus.NEW: frozenset({OrderStatus.IN_PROGRESS, OrderStatus.CANCELLED}),
    OrderStatus.IN_PROGRESS: frozenset({OrderStatus.UNDER_REVIEW, OrderStatus.CANCELLED}),
    OrderStatus.UNDER_REVIEW: frozenset({OrderStatus.COMPLETED, OrderStatus.CANCELLED}),
    # Terminal states
    OrderStatus.COMPLETED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
}


def can_transition(from_status: OrderStatus, to_status: OrderStatus) -> tuple[bool, str]:
    """Check a status move against the transition table.

    Returns:
        (allowed, reason) where reason explains a refusal
    """
    if from_status.is_terminal():
        return False, f"{from_status.value} is a terminal status"
    if from_status == to_status:
        return False, f"order is already {to_status.value}"
    if to_status not in ALLOWED_STATUS_TRANSITIONS[from_status]:
        return False, f"{from_status.value} cannot move to {to_status.value}"
    return True, ""


class OrderLifecycle:
    """Applies lifecycle actions to orders.

    ``transition`` is pure. ``apply`` also persists the result and fires the
    notification and audit side effects, which never roll the change back.
    """

    def __init__(
        self,
        repository: OrderRepository | None = None,
        notifications: NotificationSink | None = None,
        activity_log: ActivityLog | None = None,
    ) -> None:
        """Initialize the lifecycle.

        Args:
            repository: Order repository used by ``apply`` to persist transitions
            notifications: Sink told about new assignments and status changes
            activity_log: Audit log receiving one record per transition
        """
        self.repository = repository
        self.notifications = notifications
        self.activity_log = activity_log
        self._side_effects: set[asyncio.Task] = set()

    def transition(self, order: Order, action: OrderAction) -> Order:
        """Compute the order that results from ``action``.

        Raises:
            InvalidTransitionError: If the action is not allowed from the order's status
        """
        if isinstance(action, Assign):
            return self._assign(order, action)
        if isinstance(action, SetStatus):
            allowed, reason = can_transition(order.status, action.target)
            if not allowed:
                raise InvalidTransitionError(order.id, order.status.value, action.describe(), reason)
            return order.model_copy(update={"status": action.target})
        raise TypeError(f"Unknown order action: {action!r}")

    def _assign(self, order: Order, action: Assign) -> Order:
        def fail(reason: str) -> InvalidTransitionError:
            return InvalidTransitionError(order.id, order.status.value, action.describe(), reason)

        if order.status != OrderStatus.NEW:
            raise fail("orders can only be assigned while new")
        if bool(action.sales_rep_id) == bool(action.designer_id):
            raise fail("exactly one of sales rep or designer must be given")

        target = action.target_status or OrderStatus.IN_PROGRESS
        if target != OrderStatus.NEW:
            allowed, reason = can_transition(OrderStatus.NEW, target)
            if not allowed:
                raise fail(reason)

        if action.sales_rep_id:
            update: dict[str, Any] = {
                "assigned_sales_rep_id": action.sales_rep_id,
                "assigned_designer_id": None,
                "assigned_role": AssignedRole.SALES_REP,
            }
        else:
            update = {
                "assigned_sales_rep_id": None,
                "assigned_designer_id": action.designer_id,
                "assigned_role": AssignedRole.DESIGNER,
            }
        update["status"] = target
        result = order.model_copy(update=update)
        problem = result.assignment_error()
        if problem:
            raise fail(problem)
        return result

    async def apply(self, order: Order, action: OrderAction) -> Order:
        """Transition, persist and announce an order change.

        Returns:
            The order as stored after the transition
        """
        if self.repository is None:
            raise RuntimeError("OrderLifecycle.apply needs an order repository")

        updated = self.transition(order, action)
        stored = await self.repository.write_transition(updated, include_assignment=isinstance(action, Assign))
        logger.info(f"Applied {action.describe()} to order {order.order_number}")

        assignee = stored.assignee_id
        if self.notifications is not None and assignee:
            if isinstance(action, Assign):
                message = f"Order {stored.order_number} has been assigned to you."
            else:
                message = f"Order {stored.order_number} is now {stored.status.label}."
            self._fire(
                "notification",
                self.notifications.notify,
                assignee,
                "Order update",
                message,
                stored.id,
            )

        if self.activity_log is not None:
            self._fire(
                "activity log",
                self.activity_log.log_activity,
                action.describe(),
                str(EntityType.ORDERS),
                stored.id,
                {"from_status": order.status.value, "to_status": stored.status.value},
            )
        return stored

    async def pending_side_effects(self) -> None:
        """Wait for outstanding notification and audit writes."""
        if self._side_effects:
            await asyncio.gather(*list(self._side_effects), return_exceptions=True)

    def _fire(self, name: str, sink: Any, *args: Any) -> None:
        try:
            result = sink(*args)
        except Exception as e:
            logger.warning(f"Order {name} failed: {e}")
            return
        if inspect.isawaitable(result):
            task = asyncio.ensure_future(result)
            self._side_effects.add(task)
            task.add_done_callback(lambda t: self._side_effect_done(name, t))

    def _side_effect_done(self, name: str, task: asyncio.Task) -> None:
        self._side_effects.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.warning(f"Order {name} failed: {exc}")
