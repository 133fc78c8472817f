"""Route, step and execution ledger contracts for crossroute."""

from __future__ import annotations

import time
from decimal import Decimal
from enum import Enum
from typing import Annotated, Any, Dict, FrozenSet, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from .constants import NATIVE_TOKEN_ADDRESSES


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


def is_native_token(address: str) -> bool:
    return address.lower() in NATIVE_TOKEN_ADDRESSES


class LedgerModel(BaseModel):
    """Base model serialized with camelCase keys, populated by either name."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ExecutionStatus(str, Enum):
    PENDING = "PENDING"
    ACTION_REQUIRED = "ACTION_REQUIRED"
    CHAIN_SWITCH_REQUIRED = "CHAIN_SWITCH_REQUIRED"
    DONE = "DONE"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"


class ProcessStatus(str, Enum):
    STARTED = "STARTED"
    PENDING = "PENDING"
    ACTION_REQUIRED = "ACTION_REQUIRED"
    DONE = "DONE"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"


class ProcessType(str, Enum):
    TOKEN_ALLOWANCE = "TOKEN_ALLOWANCE"
    SWITCH_CHAIN = "SWITCH_CHAIN"
    SWAP = "SWAP"
    CROSS_CHAIN = "CROSS_CHAIN"
    RECEIVING_CHAIN = "RECEIVING_CHAIN"


TERMINAL_EXECUTION_STATUSES = frozenset(
    {ExecutionStatus.DONE, ExecutionStatus.FAILED, ExecutionStatus.CANCELLED}
)

_PROCESS_MESSAGES: Dict[ProcessType, Dict[ProcessStatus, str]] = {
    ProcessType.TOKEN_ALLOWANCE: {
        ProcessStatus.STARTED: "Setting token allowance.",
        ProcessStatus.ACTION_REQUIRED: "Please approve the token allowance.",
        ProcessStatus.PENDING: "Waiting for token allowance.",
        ProcessStatus.DONE: "Token allowance set.",
    },
    ProcessType.SWITCH_CHAIN: {
        ProcessStatus.ACTION_REQUIRED: "Please switch the chain of your wallet.",
        ProcessStatus.DONE: "Chain switched successfully.",
    },
    ProcessType.SWAP: {
        ProcessStatus.STARTED: "Preparing swap transaction.",
        ProcessStatus.ACTION_REQUIRED: "Please sign the transaction.",
        ProcessStatus.PENDING: "Waiting for swap transaction.",
        ProcessStatus.DONE: "Swap completed.",
    },
    ProcessType.CROSS_CHAIN: {
        ProcessStatus.STARTED: "Preparing bridge transaction.",
        ProcessStatus.ACTION_REQUIRED: "Please sign the transaction.",
        ProcessStatus.PENDING: "Waiting for bridge transaction.",
        ProcessStatus.DONE: "Bridge transaction confirmed.",
    },
    ProcessType.RECEIVING_CHAIN: {
        ProcessStatus.PENDING: "Waiting for destination chain.",
        ProcessStatus.DONE: "Bridge completed.",
    },
}


def get_process_message(
    process_type: ProcessType, status: ProcessStatus
) -> Optional[str]:
    return _PROCESS_MESSAGES.get(process_type, {}).get(status)


class Token(LedgerModel):
    address: str
    chain_id: int
    symbol: str
    decimals: int
    name: Optional[str] = None
    coin_key: Optional[str] = None
    price_usd: Optional[str] = None
    logo_uri: Optional[str] = Field(default=None, alias="logoURI")


class TokenAmount(Token):
    amount: int = 0
    block_number: Optional[int] = None


class Chain(LedgerModel):
    """A chain the executor can submit to, with its explorer links."""

    id: int
    name: str
    key: Optional[str] = None
    explorer_urls: List[str] = Field(default_factory=list)
    rpc_urls: List[str] = Field(default_factory=list)
    native_token: Optional[Token] = None

    def tx_link(self, tx_hash: Optional[str]) -> Optional[str]:
        if not tx_hash or not self.explorer_urls:
            return None
        return f"{self.explorer_urls[0].rstrip('/')}/tx/{tx_hash}"


class Action(LedgerModel):
    from_chain_id: int
    to_chain_id: int
    from_token: Token
    to_token: Token
    from_amount: str
    slippage: Optional[float] = None
    from_address: Optional[str] = None
    to_address: Optional[str] = None


class GasCost(LedgerModel):
    type: str
    price: Optional[str] = None
    estimate: Optional[str] = None
    limit: Optional[str] = None
    amount: Optional[str] = None
    amount_usd: Optional[str] = Field(default=None, alias="amountUSD")
    token: Token


class FeeCost(LedgerModel):
    name: str
    percentage: Optional[str] = None
    amount: Optional[str] = None
    amount_usd: Optional[str] = Field(default=None, alias="amountUSD")
    token: Token
    included: bool = True


class Estimate(LedgerModel):
    tool: Optional[str] = None
    from_amount: str
    from_amount_usd: Optional[str] = Field(default=None, alias="fromAmountUSD")
    to_amount: str
    to_amount_min: str
    to_amount_usd: Optional[str] = Field(default=None, alias="toAmountUSD")
    approval_address: str
    execution_duration: float = 0
    fee_costs: List[FeeCost] = Field(default_factory=list)
    gas_costs: List[GasCost] = Field(default_factory=list)


class TransactionRequest(LedgerModel):
    """Unsigned transaction payload produced by the backend."""

    from_address: Optional[str] = Field(default=None, alias="from")
    to: Optional[str] = None
    data: Optional[str] = None
    value: Optional[str] = None
    chain_id: Optional[int] = None
    gas_limit: Optional[int] = None
    gas_price: Optional[int] = None
    max_fee_per_gas: Optional[int] = None
    max_priority_fee_per_gas: Optional[int] = None


class ProcessError(LedgerModel):
    code: Union[int, str]
    message: str
    html_message: Optional[str] = None

    @classmethod
    def from_error(cls, error: Any) -> "ProcessError":
        """Build from a ``CrossrouteError``."""
        return cls(
            code=int(error.code), message=error.message, html_message=error.html_message
        )


class Process(LedgerModel):
    """One named sub-operation of an execution."""

    type: ProcessType
    status: ProcessStatus
    message: Optional[str] = None
    started_at: int = Field(default_factory=now_ms)
    done_at: Optional[int] = None
    failed_at: Optional[int] = None
    tx_hash: Optional[str] = None
    tx_link: Optional[str] = None
    substatus: Optional[str] = None
    substatus_message: Optional[str] = None
    error: Optional[ProcessError] = None


class Execution(LedgerModel):
    """Lifecycle record attached to a step once execution begins."""

    status: ExecutionStatus = ExecutionStatus.PENDING
    process: List[Process] = Field(default_factory=list)
    from_amount: Optional[str] = None
    to_amount: Optional[str] = None
    to_token: Optional[Token] = None
    gas_amount: Optional[str] = None
    gas_amount_usd: Optional[str] = Field(default=None, alias="gasAmountUSD")
    gas_price: Optional[str] = None
    gas_used: Optional[str] = None
    gas_token: Optional[Token] = None

    def find_process(self, process_type: ProcessType) -> Optional[Process]:
        return next((p for p in self.process if p.type == process_type), None)

    def derive_status(self) -> ExecutionStatus:
        """Project the execution status from its processes.

        An empty process list projects to ``PENDING``.
        """
        statuses = [p.status for p in self.process]
        if ProcessStatus.FAILED in statuses:
            return ExecutionStatus.FAILED
        if ProcessStatus.CANCELLED in statuses:
            return ExecutionStatus.CANCELLED
        switch = self.find_process(ProcessType.SWITCH_CHAIN)
        if switch is not None and switch.status == ProcessStatus.ACTION_REQUIRED:
            return ExecutionStatus.CHAIN_SWITCH_REQUIRED
        if ProcessStatus.ACTION_REQUIRED in statuses:
            return ExecutionStatus.ACTION_REQUIRED
        if statuses and all(s == ProcessStatus.DONE for s in statuses):
            return ExecutionStatus.DONE
        return ExecutionStatus.PENDING


class Step(LedgerModel):
    """One atomic swap or bridge action within a route."""

    id: str
    type: str = "lifi"
    tool: str
    action: Action
    estimate: Estimate
    included_steps: List["Step"] = Field(default_factory=list)
    transaction_request: Optional[TransactionRequest] = None
    execution: Optional[Execution] = None

    @property
    def is_cross_chain(self) -> bool:
        return self.action.from_chain_id != self.action.to_chain_id

    def apply_update(self, updated: "Step") -> None:
        """Adopt the quote and payload of ``updated`` while keeping execution."""
        self.action = updated.action
        self.estimate = updated.estimate
        self.included_steps = updated.included_steps
        self.transaction_request = updated.transaction_request


class Route(LedgerModel):
    """A user-requested transfer composed of ordered steps."""

    id: str
    from_chain_id: int
    to_chain_id: int
    from_token: Token
    to_token: Token
    from_amount: str
    to_amount: str
    to_amount_min: Optional[str] = None
    from_address: Optional[str] = None
    to_address: Optional[str] = None
    from_amount_usd: Optional[str] = Field(default=None, alias="fromAmountUSD")
    to_amount_usd: Optional[str] = Field(default=None, alias="toAmountUSD")
    steps: List[Step] = Field(default_factory=list)

    def find_step(self, step_id: str) -> Optional[Step]:
        return next((s for s in self.steps if s.id == step_id), None)

    def derive_status(self) -> str:
        """Aggregate execution state across all steps."""
        executions = [s.execution for s in self.steps if s.execution is not None]
        if not executions:
            return "NOT_STARTED"
        statuses = [e.status for e in executions]
        for status in (
            ExecutionStatus.FAILED,
            ExecutionStatus.CANCELLED,
            ExecutionStatus.CHAIN_SWITCH_REQUIRED,
            ExecutionStatus.ACTION_REQUIRED,
        ):
            if status in statuses:
                return status.value
        if len(executions) == len(self.steps) and all(
            s == ExecutionStatus.DONE for s in statuses
        ):
            return ExecutionStatus.DONE.value
        return ExecutionStatus.PENDING.value

    def to_json(self) -> str:
        """Serialize the route and its execution ledger to JSON."""
        return self.model_dump_json(by_alias=True)

    @classmethod
    def from_json(cls, data: str) -> "Route":
        """Deserialize a route from JSON."""
        return cls.model_validate_json(data)

    def to_record(self) -> Dict[str, Any]:
        """Plain nested record suitable for any JSON store."""
        return self.model_dump(mode="json", by_alias=True)


# ---------------------------------------------------------------------------
# Receipts reported by the bridge completion collaborator


class TransactionInfo(LedgerModel):
    tx_hash: Optional[str] = None
    tx_link: Optional[str] = None
    amount: Optional[str] = None
    token: Optional[Token] = None
    chain_id: Optional[int] = None
    gas_price: Optional[str] = None
    gas_used: Optional[str] = None
    gas_token: Optional[Token] = None
    gas_amount: Optional[str] = None
    gas_amount_usd: Optional[str] = Field(default=None, alias="gasAmountUSD")


class StatusResponse(LedgerModel):
    status: Literal["NOT_FOUND", "INVALID", "PENDING", "DONE", "FAILED", "CANCELLED"]
    substatus: Optional[str] = None
    substatus_message: Optional[str] = None
    tool: Optional[str] = None
    sending: TransactionInfo = Field(default_factory=TransactionInfo)
    receiving: Optional[TransactionInfo] = None


# ---------------------------------------------------------------------------
# Typed ledger updates


class _Update(BaseModel):
    model_config = ConfigDict(extra="forbid")


class TransactionUpdate(_Update):
    """Attach a submitted (or replacement) transaction to a process."""

    kind: Literal["transaction"] = "transaction"
    tx_hash: str
    tx_link: Optional[str] = None


class ReceivingUpdate(_Update):
    """Record the destination-side outcome of a transfer."""

    kind: Literal["receiving"] = "receiving"
    tx_hash: Optional[str] = None
    tx_link: Optional[str] = None
    substatus: Optional[str] = None
    substatus_message: Optional[str] = None


class FailureUpdate(_Update):
    kind: Literal["failure"] = "failure"
    error: ProcessError


ProcessUpdate = Annotated[
    Union[TransactionUpdate, ReceivingUpdate, FailureUpdate],
    Field(discriminator="kind"),
]

ALLOWED_UPDATES: Dict[ProcessType, FrozenSet[str]] = {
    ProcessType.TOKEN_ALLOWANCE: frozenset({"transaction", "failure"}),
    ProcessType.SWITCH_CHAIN: frozenset({"failure"}),
    ProcessType.SWAP: frozenset({"transaction", "receiving", "failure"}),
    ProcessType.CROSS_CHAIN: frozenset({"transaction", "receiving", "failure"}),
    ProcessType.RECEIVING_CHAIN: frozenset({"receiving", "failure"}),
}


class ExecutionUpdate(_Update):
    """Settlement totals reported once a step completes."""

    from_amount: Optional[str] = None
    to_amount: Optional[str] = None
    to_token: Optional[Token] = None
    gas_amount: Optional[str] = None
    gas_amount_usd: Optional[str] = None
    gas_price: Optional[str] = None
    gas_used: Optional[str] = None
    gas_token: Optional[Token] = None

    @classmethod
    def from_receipt(cls, receipt: StatusResponse) -> "ExecutionUpdate":
        sending = receipt.sending
        receiving = receipt.receiving
        values = dict(
            from_amount=sending.amount,
            to_amount=receiving.amount if receiving else None,
            to_token=receiving.token if receiving else None,
            gas_amount=sending.gas_amount,
            gas_amount_usd=sending.gas_amount_usd,
            gas_price=sending.gas_price,
            gas_used=sending.gas_used,
            gas_token=sending.gas_token,
        )
        return cls(**{k: v for k, v in values.items() if v is not None})


def format_units(amount: int, decimals: int) -> str:
    """Render an integer base-unit amount as a decimal string."""
    value = Decimal(amount).scaleb(-decimals)
    return format(value.normalize(), "f")


Step.model_rebuild()
