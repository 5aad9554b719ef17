"""Remote store access."""

from opsdash.api.client import StoreClient
from opsdash.api.repository import EntityRepository, InvoiceRepository, OrderRepository

__all__ = [
    "EntityRepository",
    "InvoiceRepository",
    "OrderRepository",
    "StoreClient",
]
