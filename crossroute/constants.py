"""Shared constants for crossroute."""

# Addresses used by the backend to describe a chain's native asset.
NATIVE_TOKEN_ADDRESSES = frozenset(
    {
        "0x0000000000000000000000000000000000000000",
        "0xeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeee",
        "11111111111111111111111111111111",
    }
)

MAX_UINT256 = 2**256 - 1

# Upper bound of tokens queried in a single batched balance call.
MAX_MULTICALL_SIZE = 100

# Seconds between polling ticks when neither the caller nor the client sets one.
DEFAULT_POLLING_INTERVAL = 4.0

DEFAULT_SLIPPAGE = 0.005

# Estimated gas limits are inflated by this percentage before submission.
GAS_LIMIT_MARGIN_PERCENT = 125

BALANCE_CHECK_RETRIES = 3
BALANCE_RETRY_DELAY = 0.2

DEFAULT_API_URL = "http://localhost:8080/v1"
DEFAULT_API_TIMEOUT = 30.0
