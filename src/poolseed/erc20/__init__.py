from .allowance import (
    AllowanceManager,
    AllowanceOutcome,
    AlreadySufficient,
    Approved,
    TokenAllowance,
)
from .erc20 import Erc20Token

__all__ = (
    "AllowanceManager",
    "AllowanceOutcome",
    "AlreadySufficient",
    "Approved",
    "Erc20Token",
    "TokenAllowance",
)
