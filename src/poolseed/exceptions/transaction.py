from typing import Any

from eth_typing import ChecksumAddress

from poolseed.exceptions.base import PoolseedError

"""
Exceptions defined here are raised by the transaction sender and the contract clients that use it.
"""


class TransactionError(PoolseedError):
    """
    Exception raised while building, sending, or confirming a transaction.
    """


class TransactionRevertedError(TransactionError):
    """
    The transaction was mined with a failure status, or the node refused it because execution would
    revert.
    """

    def __init__(self, tx_hash: str | None = None, reason: str | None = None) -> None:
        self.tx_hash = tx_hash
        self.reason = reason

        message = "Transaction reverted" if tx_hash is None else f"Transaction {tx_hash} reverted"
        if reason:
            message += f": {reason}"
        super().__init__(message=message)

    def __reduce__(self) -> tuple[Any, ...]:
        return self.__class__, (self.tx_hash, self.reason)


class ConfirmationTimeoutError(TransactionError):
    """
    The transaction was broadcast, but no receipt was observed within the polling window. The outcome
    is unknown: the transaction may still be mined.
    """

    def __init__(self, tx_hash: str, timeout_seconds: float) -> None:
        self.tx_hash = tx_hash
        self.timeout_seconds = timeout_seconds
        super().__init__(
            message=f"No receipt for transaction {tx_hash} after {timeout_seconds} seconds. "
            "The outcome is unknown."
        )

    def __reduce__(self) -> tuple[Any, ...]:
        return self.__class__, (self.tx_hash, self.timeout_seconds)


class UserRejectedSignatureError(TransactionError):
    """
    The signer declined to sign the transaction.
    """

    def __init__(self, message: str = "The signer rejected the transaction request.") -> None:
        self.message = message
        super().__init__(message=message)

    def __reduce__(self) -> tuple[Any, ...]:
        return self.__class__, (self.message,)


class InsufficientAllowanceError(TransactionError):
    """
    The spender's allowance is below the required amount. The allowance manager resolves this by
    approving, so it is only raised when the configured approval amount cannot cover the requirement.
    """

    def __init__(self, token: ChecksumAddress, current: int, required: int) -> None:
        self.token = token
        self.current = current
        self.required = required
        super().__init__(
            message=f"Allowance for token {token} is {current}, {required} required."
        )

    def __reduce__(self) -> tuple[Any, ...]:
        return self.__class__, (self.token, self.current, self.required)


class InsufficientBalanceError(TransactionError):
    """
    The account does not hold enough of a token to fund the join.
    """

    def __init__(self, token: ChecksumAddress, balance: int, required: int) -> None:
        self.token = token
        self.balance = balance
        self.required = required
        super().__init__(
            message=f"Balance of token {token} is {balance}, {required} required."
        )

    def __reduce__(self) -> tuple[Any, ...]:
        return self.__class__, (self.token, self.balance, self.required)
