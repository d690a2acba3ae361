"""
Exact conversion of decimal and scientific-notation strings to EVM integers.

Token amounts are never routed through `float`. Fractional digits below one base unit are truncated
toward zero, never rounded.
"""

import dataclasses
import re
from typing import Self

from poolseed.exceptions.numeric import NumericConversionError

MAX_DECIMAL_EXPONENT = 1024

# int() refuses strings longer than sys.get_int_max_str_digits() (4300 by default)
_PARSE_CHUNK_DIGITS = 1000

_SCIENTIFIC_NOTATION = re.compile(
    r"^(?P<sign>[+-]?)(?P<integer>\d+)(?:\.(?P<fraction>\d*))?[eE](?P<exponent>[+-]?\d+)$"
)
_PLAIN_DECIMAL = re.compile(r"^(?P<sign>[+-]?)(?P<integer>\d*)(?:\.(?P<fraction>\d*))?$")


def max_unsigned_int(bit_width: int) -> int:
    """
    Return the largest unsigned integer that fits in `bit_width` bits.

    `max_unsigned_int(256)` is used as the "infinite approval" sentinel, so a token needs to be
    approved only once regardless of future required amounts.
    """

    if bit_width < 1:
        msg = "Bit width must be positive."
        raise ValueError(msg)
    return 2**bit_width - 1


def _split_plain_decimal(value: str) -> tuple[str, str, str] | None:
    match = _PLAIN_DECIMAL.fullmatch(value)
    if match is None:
        return None
    integer = match.group("integer")
    fraction = match.group("fraction") or ""
    if not integer and not fraction:
        return None
    return match.group("sign"), integer, fraction


def _parse_digits(digits: str) -> int:
    """
    Parse a string of decimal digits of any length.
    """

    result = 0
    for start in range(0, len(digits), _PARSE_CHUNK_DIGITS):
        chunk = digits[start : start + _PARSE_CHUNK_DIGITS]
        result = result * 10 ** len(chunk) + int(chunk)
    return result


def _shift_decimal_point(sign: str, integer: str, fraction: str, places: int) -> str:
    """
    Move the decimal point of `<sign><integer>.<fraction>` right by `places` (left if negative) and
    return the result as a plain decimal string.
    """

    digits = integer + fraction
    point = len(integer) + places

    if point >= len(digits):
        whole, decimals = digits + "0" * (point - len(digits)), ""
    elif point <= 0:
        whole, decimals = "", "0" * -point + digits
    else:
        whole, decimals = digits[:point], digits[point:]

    whole = whole.lstrip("0") or "0"
    sign = "-" if sign == "-" else ""
    return f"{sign}{whole}.{decimals}" if decimals else f"{sign}{whole}"


def normalize_scientific(value: str) -> str:
    """
    Rewrite a number in scientific notation (e.g. `-2.5e3`) as a plain decimal string (`-2500`).

    Strings already in plain decimal form are returned unchanged.
    """

    if _split_plain_decimal(value) is not None:
        return value

    match = _SCIENTIFIC_NOTATION.fullmatch(value)
    if match is None:
        raise NumericConversionError(value=value, reason="not a decimal or scientific number")

    exponent_text = match.group("exponent")
    exponent = _parse_digits(exponent_text.lstrip("+-"))
    if exponent_text.startswith("-"):
        exponent = -exponent
    if abs(exponent) > MAX_DECIMAL_EXPONENT:
        raise NumericConversionError(
            value=value, reason=f"exponent magnitude exceeds {MAX_DECIMAL_EXPONENT}"
        )

    return _shift_decimal_point(
        sign=match.group("sign"),
        integer=match.group("integer"),
        fraction=match.group("fraction") or "",
        places=exponent,
    )


def to_exact_integer(value: str) -> int:
    """
    Convert a decimal or scientific-notation string to an exact integer.

    Any fractional component is dropped (truncation toward zero). This is a deliberate lossy policy
    for sub-unit amounts.
    """

    parts = _split_plain_decimal(normalize_scientific(value))
    if parts is None:
        raise NumericConversionError(value=value, reason="integer part could not be parsed")

    sign, integer, _ = parts
    magnitude = _parse_digits(integer)
    return -magnitude if sign == "-" else magnitude


def to_base_units(value: str, decimals: int) -> int:
    """
    Scale a human-readable amount (e.g. `"1.5"` of an 18 decimal token) to an integer count of base
    units, truncating anything below one base unit.
    """

    if decimals < 0:
        msg = "Decimals cannot be negative."
        raise ValueError(msg)

    parts = _split_plain_decimal(normalize_scientific(value))
    if parts is None:
        raise NumericConversionError(value=value, reason="integer part could not be parsed")

    sign, integer, fraction = parts
    return to_exact_integer(
        _shift_decimal_point(sign=sign, integer=integer, fraction=fraction, places=decimals)
    )


@dataclasses.dataclass(slots=True, frozen=True)
class TokenAmount:
    """
    An exact unsigned token amount in base units, with the string it was derived from.
    """

    value: int
    source: str

    @classmethod
    def from_string(cls, value: str, bit_width: int = 256) -> Self:
        return cls._checked(to_exact_integer(value), source=value, bit_width=bit_width)

    @classmethod
    def from_human(cls, value: str, decimals: int, bit_width: int = 256) -> Self:
        return cls._checked(to_base_units(value, decimals), source=value, bit_width=bit_width)

    @classmethod
    def _checked(cls, amount: int, source: str, bit_width: int) -> Self:
        if amount < 0:
            raise NumericConversionError(value=source, reason="amount is negative")
        if amount > max_unsigned_int(bit_width):
            raise NumericConversionError(value=source, reason=f"amount exceeds uint{bit_width}")
        return cls(value=amount, source=source)

    def __int__(self) -> int:
        return self.value

    def __str__(self) -> str:
        return str(self.value)
