"""Data models for opsdash."""

from opsdash.models.cache import CacheEntry, CacheStatusInfo
from opsdash.models.directory import Customer, Employee, EmployeeRole, Product, RecordStatus, StockDesign
from opsdash.models.freshness import FreshnessMarker
from opsdash.models.invoice import Invoice, InvoiceDraft, InvoiceStatus
from opsdash.models.order import Assign, AssignedRole, Order, OrderAction, OrderStatus, PaymentStatus, SetStatus
from opsdash.models.page import Page
from opsdash.models.query import FilterValue, QueryParams, RangeFilter

__all__ = [
    "Assign",
    "AssignedRole",
    "CacheEntry",
    "CacheStatusInfo",
    "Customer",
    "Employee",
    "EmployeeRole",
    "FilterValue",
    "FreshnessMarker",
    "Invoice",
    "InvoiceDraft",
    "InvoiceStatus",
    "Order",
    "OrderAction",
    "OrderStatus",
    "Page",
    "PaymentStatus",
    "Product",
    "QueryParams",
    "RangeFilter",
    "RecordStatus",
    "SetStatus",
    "StockDesign",
]
