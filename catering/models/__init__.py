"""Database models"""

from catering.models.catalog import Component, Variant, Pack, PackComponent, Service, ServicePack, Meal
from catering.models.business import (
    Business,
    BusinessStatus,
    Employee,
    EmployeeStatus,
    BusinessService,
    BusinessServicePack,
)
from catering.models.daily_menu import (
    DailyMenu,
    DailyMenuStatus,
    DailyMenuPack,
    DailyMenuVariant,
    DailyMenuService,
    DailyMenuServiceVariant,
)
from catering.models.order import Order, OrderItem, OrderStatus
from catering.models.ops import DayLock, OrderingLock
from catering.models.invoice import Invoice, InvoiceItem, InvoiceStatus
from catering.models.audit import AuditLog

__all__ = [
    "Component",
    "Variant",
    "Pack",
    "PackComponent",
    "Service",
    "ServicePack",
    "Meal",
    "Business",
    "BusinessStatus",
    "Employee",
    "EmployeeStatus",
    "BusinessService",
    "BusinessServicePack",
    "DailyMenu",
    "DailyMenuStatus",
    "DailyMenuPack",
    "DailyMenuVariant",
    "DailyMenuService",
    "DailyMenuServiceVariant",
    "Order",
    "OrderItem",
    "OrderStatus",
    "DayLock",
    "OrderingLock",
    "Invoice",
    "InvoiceItem",
    "InvoiceStatus",
    "AuditLog",
]
