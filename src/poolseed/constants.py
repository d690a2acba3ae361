__all__ = (
    "BALANCER_V2_VAULT",
    "BALANCER_V2_WEIGHTED_POOL_FACTORY",
    "FIXED_POINT_ONE",
    "JOIN_KIND_INIT",
    "MAX_UINT256",
    "ZERO_ADDRESS",
)

from eth_typing import ChecksumAddress

from poolseed.checksum_cache import get_checksum_address
from poolseed.numeric import max_unsigned_int

MAX_UINT256 = max_unsigned_int(256)

ZERO_ADDRESS: ChecksumAddress = get_checksum_address("0x0000000000000000000000000000000000000000")

# Balancer V2 represents weights, swap fees, and other percentages as 18 decimal fixed-point values
FIXED_POINT_ONE = 10**18

# WeightedPool JoinKind.INIT
JOIN_KIND_INIT = 0

# The vault is deployed at the same address on every chain
BALANCER_V2_VAULT: ChecksumAddress = get_checksum_address(
    "0xBA12222222228d8Ba445958a75a0704d566BF2C8"
)

# Contract addresses for the Balancer V2 WeightedPoolFactory, keyed by chain ID
BALANCER_V2_WEIGHTED_POOL_FACTORY: dict[int, ChecksumAddress] = {
    1: get_checksum_address("0x8E9aa87E45e92bad84D5F8DD1bff34Fb92637dE9"),  # Mainnet
    4: get_checksum_address("0x8E9aa87E45e92bad84D5F8DD1bff34Fb92637dE9"),  # Rinkeby
}
