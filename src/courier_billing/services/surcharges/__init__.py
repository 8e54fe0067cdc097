"""Effective-dated fuel and tax surcharges."""

from .index import TemporalIndex
from .resolver import SurchargeResolver, Surcharges

__all__ = ["SurchargeResolver", "Surcharges", "TemporalIndex"]
