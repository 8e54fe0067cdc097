"""Route group exports."""

from . import clubbing, customers, health, invoices, notifications, payments, shipments, surcharges, zones

__all__ = [
    "clubbing",
    "customers",
    "health",
    "invoices",
    "notifications",
    "payments",
    "shipments",
    "surcharges",
    "zones",
]
