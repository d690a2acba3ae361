from collections.abc import Sequence
from typing import Any

import eth_abi.abi
from eth_typing import ChecksumAddress
from eth_utils.crypto import keccak
from tenacity import (
    AsyncRetrying,
    RetryError,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential_jitter,
)
from web3 import AsyncBaseProvider, AsyncWeb3
from web3._utils.threads import Timeout
from web3.exceptions import ContractLogicError, Web3Exception
from web3.types import BlockIdentifier, TxParams

from poolseed.exceptions import PoolseedError, TransactionRevertedError
from poolseed.logging import logger

DEFAULT_READ_RETRIES = 5


def encode_function_calldata(
    function_prototype: str, function_arguments: Sequence[Any] | None
) -> bytes:
    """
    Encode the calldata to execute a call to the given function prototype, with ordered arguments.
    The resulting bytes array will include the 4-byte function selector, followed by the
    ABI-encoded arguments.
    """

    if function_arguments is None:
        function_arguments = ()

    return function_selector(function_prototype) + eth_abi.abi.encode(
        types=extract_argument_types_from_function_prototype(function_prototype),
        args=function_arguments,
    )


def function_selector(function_prototype: str) -> bytes:
    return keccak(text=function_prototype)[:4]


def extract_argument_types_from_function_prototype(function_prototype: str) -> list[str]:
    """
    Extract the argument types from the function prototype.

    e.g. the argument types for the prototype 'function(address,uint256)' are ['address','uint256'],
    and for 'function(bytes32,(address[],bool))' are ['bytes32','(address[],bool)']
    """

    arguments = function_prototype[
        function_prototype.find("(") + 1 : function_prototype.rfind(")")
    ]

    types: list[str] = []
    depth = 0
    start = 0
    for position, character in enumerate(arguments):
        match character:
            case "(":
                depth += 1
            case ")":
                depth -= 1
            case "," if depth == 0:
                types.append(arguments[start:position])
                start = position + 1
    if arguments:
        types.append(arguments[start:])

    return types


def is_sorted_by_address(addresses: Sequence[str]) -> bool:
    """
    Check that the addresses are strictly ascending by numeric value, which also excludes duplicates.
    """

    values = [int(address, 16) for address in addresses]
    return all(a < b for a, b in zip(values, values[1:], strict=False))


async def raw_call_retrying(
    w3: AsyncWeb3[AsyncBaseProvider],
    address: ChecksumAddress,
    calldata: bytes,
    return_types: Sequence[str],
    block_identifier: BlockIdentifier | None = None,
    max_retries: int = DEFAULT_READ_RETRIES,
) -> tuple[Any, ...]:
    """
    Perform an `eth_call` to the given address and decode the result.

    Read-only calls are safe to repeat, so transient failures are retried with exponential backoff.
    A revert is deterministic and is raised immediately as `TransactionRevertedError`.
    """

    retrier = AsyncRetrying(
        stop=stop_after_attempt(max_retries),
        wait=wait_exponential_jitter(initial=0.25, max=5),
        retry=retry_if_exception_type((Timeout, Web3Exception, OSError)),
    )

    try:
        async for attempt in retrier:
            with attempt:
                try:
                    result = await w3.eth.call(
                        transaction=TxParams(to=address, data=calldata),
                        block_identifier=block_identifier
                        if block_identifier is not None
                        else "latest",
                    )
                except ContractLogicError as exc:
                    raise TransactionRevertedError(reason=exc.message) from exc
                except (Timeout, Web3Exception, OSError):
                    logger.debug(
                        f"Attempt {attempt.retry_state.attempt_number} of call to {address} failed"
                    )
                    raise
    except RetryError as exc:
        raise PoolseedError(
            message=f"Call to {address} failed after {max_retries} tries."
        ) from exc.last_attempt.exception()

    return tuple(eth_abi.abi.decode(types=return_types, data=result))
