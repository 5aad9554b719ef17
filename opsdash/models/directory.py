"""Employees, customers and catalog records shown on the dashboard."""

from datetime import datetime
from decimal import Decimal
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field


class EmployeeRole(StrEnum):
    """Staff roles."""

    ADMIN = "admin"
    SALES_REP = "sales_rep"
    DESIGNER = "designer"


class RecordStatus(StrEnum):
    """Active flag shared by directory and catalog records."""

    ACTIVE = "active"
    DISABLED = "disabled"
    INACTIVE = "inactive"


class Employee(BaseModel):
    """Staff member (admin, sales rep or designer)."""

    model_config = ConfigDict(frozen=True)

    id: str
    email: str
    full_name: str
    role: EmployeeRole
    status: RecordStatus = RecordStatus.ACTIVE
    phone: str | None = None
    created_at: datetime


class Customer(BaseModel):
    """Customer account."""

    model_config = ConfigDict(frozen=True)

    id: str
    email: str
    full_name: str
    company_name: str | None = None
    assigned_sales_rep_id: str | None = None
    status: RecordStatus = RecordStatus.ACTIVE
    created_at: datetime


class Product(BaseModel):
    """Catalog product."""

    model_config = ConfigDict(frozen=True)

    id: str
    title: str
    description: str | None = None
    category_id: str | None = None
    price: Decimal = Field(default=Decimal("0"), ge=0)
    status: RecordStatus = RecordStatus.ACTIVE
    created_at: datetime


class StockDesign(BaseModel):
    """Ready-made design customers can order."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    description: str | None = None
    price: Decimal = Field(default=Decimal("0"), ge=0)
    image_url: str | None = None
    created_at: datetime
