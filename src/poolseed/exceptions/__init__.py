from poolseed.exceptions.balancer import (
    BalancerError,
    EventNotFoundError,
    InvalidTokenOrderError,
    PoolTokenMismatch,
)
from poolseed.exceptions.base import PoolseedError, PoolseedValueError
from poolseed.exceptions.deployment import DeploymentError
from poolseed.exceptions.numeric import NumericConversionError
from poolseed.exceptions.transaction import (
    ConfirmationTimeoutError,
    InsufficientAllowanceError,
    InsufficientBalanceError,
    TransactionError,
    TransactionRevertedError,
    UserRejectedSignatureError,
)

from . import balancer, deployment, numeric, transaction

__all__ = (
    "BalancerError",
    "ConfirmationTimeoutError",
    "DeploymentError",
    "EventNotFoundError",
    "InsufficientAllowanceError",
    "InsufficientBalanceError",
    "InvalidTokenOrderError",
    "NumericConversionError",
    "PoolTokenMismatch",
    "PoolseedError",
    "PoolseedValueError",
    "TransactionError",
    "TransactionRevertedError",
    "UserRejectedSignatureError",
    "balancer",
    "deployment",
    "numeric",
    "transaction",
)
