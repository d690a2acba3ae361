from typing import Any

from poolseed.exceptions.base import PoolseedError

"""
Exceptions defined here are raised by functions in the `numeric` module.
"""


class NumericConversionError(PoolseedError):
    """
    Raised when a numeric string cannot be converted to an exact integer, or the result does not fit
    the target bit width.
    """

    def __init__(self, value: str, reason: str) -> None:
        self.value = value
        self.reason = reason
        super().__init__(message=f"Could not convert {value!r}: {reason}")

    def __reduce__(self) -> tuple[Any, ...]:
        return self.__class__, (self.value, self.reason)
