import dataclasses
from collections.abc import Awaitable, Callable

from eth_typing import ChecksumAddress
from web3.types import TxReceipt

from poolseed.checksum_cache import get_checksum_address
from poolseed.constants import MAX_UINT256
from poolseed.erc20.erc20 import Erc20Token
from poolseed.exceptions import InsufficientAllowanceError, PoolseedValueError
from poolseed.functions import DEFAULT_READ_RETRIES
from poolseed.transaction import TransactionSender


@dataclasses.dataclass(slots=True, frozen=True, kw_only=True)
class TokenAllowance:
    token: ChecksumAddress
    owner: ChecksumAddress
    spender: ChecksumAddress
    current: int
    required: int

    @property
    def needs_approval(self) -> bool:
        return self.current < self.required


class AllowanceOutcome:
    """
    The result of `AllowanceManager.ensure_allowance`.
    """

    allowance: TokenAllowance


@dataclasses.dataclass(slots=True, frozen=True, kw_only=True)
class AlreadySufficient(AllowanceOutcome):
    allowance: TokenAllowance


@dataclasses.dataclass(slots=True, frozen=True, kw_only=True)
class Approved(AllowanceOutcome):
    allowance: TokenAllowance
    amount: int
    receipt: TxReceipt


class AllowanceManager:
    """
    Makes sure a spender contract may transfer enough of a token on behalf of the sending account.

    Approvals are issued for `approval_amount` (the maximum uint256 by default) instead of the
    required amount, so a token needs to be approved only once. An allowance that already covers the
    required amount is left alone, which makes `ensure_allowance` safe to repeat.
    """

    def __init__(
        self,
        sender: TransactionSender,
        *,
        approval_amount: int = MAX_UINT256,
        max_read_retries: int = DEFAULT_READ_RETRIES,
    ) -> None:
        if not 0 < approval_amount <= MAX_UINT256:
            raise PoolseedValueError(message=f"Invalid approval amount {approval_amount}")

        self.sender = sender
        self.approval_amount = approval_amount
        self.max_read_retries = max_read_retries

    def _token(self, address: str) -> Erc20Token:
        return Erc20Token(address, self.sender.w3, max_read_retries=self.max_read_retries)

    async def check_allowance(
        self,
        token: str,
        owner: str,
        spender: str,
        required: int,
    ) -> TokenAllowance:
        """
        Read the current allowance. This is read-only, so checks for several tokens can be issued
        concurrently.
        """

        erc20 = self._token(token)
        return TokenAllowance(
            token=erc20.address,
            owner=get_checksum_address(owner),
            spender=get_checksum_address(spender),
            current=await erc20.get_approval(owner=owner, spender=spender),
            required=required,
        )

    async def approve(
        self,
        allowance: TokenAllowance,
        on_broadcast: Callable[[str], Awaitable[None]] | None = None,
    ) -> Approved:
        """
        Send an approval transaction for `allowance` and wait for its confirmation.
        """

        if allowance.owner != self.sender.address:
            raise PoolseedValueError(
                message=f"Cannot approve on behalf of {allowance.owner} from account "
                f"{self.sender.address}."
            )
        if self.approval_amount < allowance.required:
            # The approval would leave the allowance short of the requirement
            raise InsufficientAllowanceError(
                token=allowance.token,
                current=self.approval_amount,
                required=allowance.required,
            )

        receipt = await self.sender.send(
            to=allowance.token,
            data=Erc20Token.approve_calldata(
                spender=allowance.spender,
                amount=self.approval_amount,
            ),
            on_broadcast=on_broadcast,
        )
        return Approved(allowance=allowance, amount=self.approval_amount, receipt=receipt)

    async def ensure_allowance(
        self,
        token: str,
        owner: str,
        spender: str,
        required: int,
        on_broadcast: Callable[[str], Awaitable[None]] | None = None,
    ) -> AllowanceOutcome:
        """
        Approve `spender` for `token` unless the current allowance already covers `required`.

        Sends at most one transaction. Raises `TransactionRevertedError` if the approval reverts and
        `UserRejectedSignatureError` if the signer declines it.
        """

        allowance = await self.check_allowance(
            token=token,
            owner=owner,
            spender=spender,
            required=required,
        )
        if not allowance.needs_approval:
            return AlreadySufficient(allowance=allowance)
        return await self.approve(allowance, on_broadcast=on_broadcast)
