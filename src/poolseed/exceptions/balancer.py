from collections.abc import Sequence
from typing import Any

from eth_typing import ChecksumAddress

from poolseed.exceptions.base import PoolseedError

"""
Exceptions defined here are raised by the Balancer factory and vault clients.
"""


class BalancerError(PoolseedError):
    """
    Exception raised inside Balancer helpers.
    """


class InvalidTokenOrderError(BalancerError):
    """
    The token list is not sorted by ascending address, or contains duplicates. The Balancer vault
    rejects both.
    """

    def __init__(self, tokens: Sequence[str], reason: str = "tokens must be sorted") -> None:
        self.tokens = tuple(tokens)
        self.reason = reason
        super().__init__(message=f"Invalid token order {list(self.tokens)}: {reason}")

    def __reduce__(self) -> tuple[Any, ...]:
        return self.__class__, (self.tokens, self.reason)


class EventNotFoundError(BalancerError):
    """
    The transaction succeeded but the expected event was not found in its logs. Gas was spent and the
    result cannot be recovered automatically, so this must be resolved by hand instead of retried.
    """

    def __init__(self, tx_hash: str, event_name: str) -> None:
        self.tx_hash = tx_hash
        self.event_name = event_name
        super().__init__(
            message=f"Transaction {tx_hash} succeeded, but no {event_name} event was found."
        )

    def __reduce__(self) -> tuple[Any, ...]:
        return self.__class__, (self.tx_hash, self.event_name)


class PoolTokenMismatch(BalancerError):
    """
    The join assets do not match the tokens registered for the pool at the vault.
    """

    def __init__(
        self,
        expected: Sequence[ChecksumAddress],
        registered: Sequence[ChecksumAddress],
    ) -> None:
        self.expected = tuple(expected)
        self.registered = tuple(registered)
        super().__init__(
            message=f"Join assets {list(self.expected)} do not match the pool tokens "
            f"{list(self.registered)} registered at the vault."
        )

    def __reduce__(self) -> tuple[Any, ...]:
        return self.__class__, (self.expected, self.registered)
