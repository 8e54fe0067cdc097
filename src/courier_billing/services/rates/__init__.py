"""Rate table lookups."""

from .table import RateTable

__all__ = ["RateTable"]
