import json
import tomllib
from fractions import Fraction
from pathlib import Path
from typing import Annotated, Any

from eth_typing import ChecksumAddress
from eth_utils.crypto import keccak
from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, field_validator, model_validator

from poolseed.balancer.factory import MAX_SWAP_FEE_BPS, MIN_SWAP_FEE_BPS, sort_tokens
from poolseed.checksum_cache import get_checksum_address
from poolseed.constants import ZERO_ADDRESS
from poolseed.exceptions import InvalidTokenOrderError, NumericConversionError
from poolseed.functions import is_sorted_by_address
from poolseed.numeric import TokenAmount


def _parse_fraction(value: Any) -> Fraction:
    match value:
        case Fraction():
            return value
        case bool() | float():
            msg = "Weights must be given as a string (e.g. '0.8' or '4/5') or an integer"
            raise ValueError(msg)
        case int() | str():
            return Fraction(value)
        case _:
            msg = f"Invalid weight {value!r}"
            raise ValueError(msg)


def _parse_amount_string(value: Any) -> str:
    match value:
        case bool() | float():
            msg = "Amounts must be given as a string (e.g. '1e6') or an integer"
            raise ValueError(msg)
        case int():
            return str(value)
        case str():
            return value
        case _:
            msg = f"Invalid amount {value!r}"
            raise ValueError(msg)


Address = Annotated[ChecksumAddress, BeforeValidator(get_checksum_address)]
Weight = Annotated[Fraction, BeforeValidator(_parse_fraction)]
AmountString = Annotated[str, BeforeValidator(_parse_amount_string)]


class TokenParameters(BaseModel):
    """
    A pool token with its target weight and the balance the pool is funded with.

    If `decimals` is set, `initial_balance` is a human-readable amount scaled by `10**decimals`.
    Otherwise it is a count of base units.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    address: Address
    weight: Weight
    initial_balance: AmountString
    decimals: int | None = Field(default=None, ge=0, le=77)

    @property
    def amount(self) -> TokenAmount:
        if self.decimals is None:
            return TokenAmount.from_string(self.initial_balance)
        return TokenAmount.from_human(self.initial_balance, self.decimals)

    @model_validator(mode="after")
    def validate_amount(self) -> "TokenParameters":
        try:
            amount = self.amount
        except NumericConversionError as exc:
            raise ValueError(exc.message) from exc
        if amount.value == 0:
            msg = "Initial balance must be greater than zero"
            raise ValueError(msg)
        return self


class PoolParameters(BaseModel):
    """
    The definition of a weighted pool to create and fund.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    name: str = Field(min_length=1)
    symbol: str = Field(min_length=1)
    swap_fee_bps: int = Field(ge=MIN_SWAP_FEE_BPS, le=MAX_SWAP_FEE_BPS)
    owner: Address = ZERO_ADDRESS
    tokens: list[TokenParameters] = Field(min_length=2, max_length=8)
    allow_reordering: bool = True
    from_internal_balance: bool = False

    @field_validator("tokens", mode="after")
    @classmethod
    def validate_tokens(cls, tokens: list[TokenParameters]) -> list[TokenParameters]:
        addresses = [token.address for token in tokens]
        if len(set(addresses)) != len(addresses):
            raise ValueError(str(InvalidTokenOrderError(addresses, reason="tokens must be unique")))
        if sum(token.weight for token in tokens) != 1:
            msg = "Token weights must sum to exactly 1"
            raise ValueError(msg)
        return tokens

    def ordered_tokens(self) -> list[TokenParameters]:
        """
        Return the tokens sorted by ascending address.

        Raises `InvalidTokenOrderError` if the tokens are not already sorted and reordering is not
        allowed.
        """

        addresses = [token.address for token in self.tokens]
        if is_sorted_by_address(addresses):
            return list(self.tokens)
        if not self.allow_reordering:
            raise InvalidTokenOrderError(tokens=addresses)
        _, tokens = sort_tokens(addresses, self.tokens)
        return tokens  # type: ignore[return-value]

    def fingerprint(self) -> str:
        """
        A stable hash of the parameters that determine the deployed pool and its funding.
        """

        canonical = {
            "name": self.name,
            "symbol": self.symbol,
            "swap_fee_bps": self.swap_fee_bps,
            "owner": self.owner,
            "from_internal_balance": self.from_internal_balance,
            "tokens": [
                {
                    "address": token.address,
                    "weight": str(token.weight),
                    "initial_balance": token.amount.value,
                }
                for token in self.ordered_tokens()
            ],
        }
        return keccak(text=json.dumps(canonical, sort_keys=True)).hex()


def load_pool_parameters(path: Path) -> PoolParameters:
    return PoolParameters.model_validate(
        tomllib.loads(
            path.read_text(),
        ),
    )
