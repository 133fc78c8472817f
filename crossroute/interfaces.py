"""Collaborator protocols the executor depends on.

Concrete chain access (RPC providers, wallets, bridge SDKs) lives outside
crossroute; callers plug it in by implementing these protocols.
"""

from __future__ import annotations

from typing import Any, Awaitable, Callable, Optional, Protocol, Sequence, runtime_checkable

from pydantic import BaseModel, ConfigDict

from .config import ExecutionConfig
from .constants import DEFAULT_SLIPPAGE, GAS_LIMIT_MARGIN_PERCENT
from .contracts import Route, StatusResponse, Step, Token, TransactionRequest


@runtime_checkable
class TransactionHandle(Protocol):
    """A submitted transaction.

    ``wait()`` resolves once the transaction is included and raises
    ``TransactionReplacedError`` when another hash took over its nonce.
    """

    hash: str

    async def wait(self) -> None:
        ...


@runtime_checkable
class Account(Protocol):
    """Signing identity executing on-chain actions."""

    address: str
    is_multisig: bool

    async def get_chain_id(self) -> int:
        ...

    async def send_transaction(self, request: TransactionRequest) -> TransactionHandle:
        ...

    async def get_transaction(self, tx_hash: str) -> TransactionHandle:
        """Re-attach to a transaction submitted earlier."""

    async def estimate_gas(self, request: TransactionRequest) -> int:
        ...

    async def get_gas_price(self) -> int:
        ...


class StepTransactionProvider(Protocol):
    async def get_step_transaction(self, step: Step) -> Step:
        """Return ``step`` with a fresh estimate and transaction payload."""


class AllowanceProvider(Protocol):
    async def get_approved(self, account: Account, token: Token, spender: str) -> int:
        ...

    async def set_approval(
        self,
        account: Account,
        token: Token,
        spender: str,
        amount: int,
        overrides: Optional[TransactionRequest] = None,
    ) -> TransactionHandle:
        ...


class BalanceProvider(Protocol):
    async def get_balance(self, address: str, token: Token) -> int:
        ...

    async def get_balances(self, address: str, tokens: Sequence[Token]) -> Sequence[int]:
        """Balances of ``tokens`` in the order they were given."""


class ReceiptProvider(Protocol):
    async def await_receipt(
        self,
        tx_hash: str,
        step: Step,
        on_pending: Optional[Callable[[StatusResponse], None]] = None,
    ) -> StatusResponse:
        """Resolve once the transfer started by ``tx_hash`` settles.

        ``on_pending`` receives intermediate reports while it is in flight.
        """


@runtime_checkable
class ChainClient(Protocol):
    """Per-chain read client managed by the client registry."""

    uid: str
    chain_id: int
    polling_interval: Optional[float]

    async def get_block_number(self) -> int:
        ...

    async def close(self) -> None:
        ...


SwitchChainHook = Callable[[int], Awaitable[Optional[Account]]]
AcceptSlippageUpdateHook = Callable[[Step, Step], Awaitable[bool]]
UpdateTransactionRequestHook = Callable[
    [TransactionRequest], Awaitable[TransactionRequest]
]


class ExecutionSettings(BaseModel):
    """Caller hooks and tunables applied while executing a route."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    switch_chain_hook: Optional[SwitchChainHook] = None
    accept_slippage_update_hook: Optional[AcceptSlippageUpdateHook] = None
    update_transaction_request_hook: Optional[UpdateTransactionRequestHook] = None
    update_callback: Optional[Callable[[Route], None]] = None
    infinite_approval: bool = False
    gas_limit_margin_percent: int = GAS_LIMIT_MARGIN_PERCENT
    default_slippage: float = DEFAULT_SLIPPAGE

    @classmethod
    def from_config(cls, config: ExecutionConfig, **hooks: Any) -> "ExecutionSettings":
        """Build settings from the ``execution`` config section plus caller hooks."""
        return cls(**config.model_dump(), **hooks)
