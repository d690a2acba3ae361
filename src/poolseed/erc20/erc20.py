from typing import cast

from eth_typing import ChecksumAddress
from web3 import AsyncBaseProvider, AsyncWeb3

from poolseed.checksum_cache import get_checksum_address
from poolseed.functions import DEFAULT_READ_RETRIES, encode_function_calldata, raw_call_retrying


class Erc20Token:
    """
    Read-only access to an ERC-20 token contract.
    """

    def __init__(
        self,
        address: str,
        w3: AsyncWeb3[AsyncBaseProvider],
        *,
        max_read_retries: int = DEFAULT_READ_RETRIES,
    ) -> None:
        self.address = get_checksum_address(address)
        self.w3 = w3
        self.max_read_retries = max_read_retries

    def __repr__(self) -> str:  # pragma: no cover
        return f"{self.__class__.__name__}(address={self.address})"

    async def get_approval(self, owner: str, spender: str) -> int:
        """
        Retrieve the amount that can be spent by `spender` on behalf of `owner`.
        """

        (approval,) = await raw_call_retrying(
            w3=self.w3,
            address=self.address,
            calldata=encode_function_calldata(
                function_prototype="allowance(address,address)",
                function_arguments=[get_checksum_address(owner), get_checksum_address(spender)],
            ),
            return_types=["uint256"],
            max_retries=self.max_read_retries,
        )
        return cast("int", approval)

    async def get_balance(self, address: str) -> int:
        """
        Retrieve the balance held by `address`.
        """

        (balance,) = await raw_call_retrying(
            w3=self.w3,
            address=self.address,
            calldata=encode_function_calldata(
                function_prototype="balanceOf(address)",
                function_arguments=[get_checksum_address(address)],
            ),
            return_types=["uint256"],
            max_retries=self.max_read_retries,
        )
        return cast("int", balance)

    @staticmethod
    def approve_calldata(spender: ChecksumAddress, amount: int) -> bytes:
        return encode_function_calldata(
            function_prototype="approve(address,uint256)",
            function_arguments=[spender, amount],
        )
