from .service import BalanceCheck, BalanceLedger

__all__ = ["BalanceCheck", "BalanceLedger"]
