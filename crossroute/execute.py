"""Step execution engine for crossroute routes."""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from .allowance import check_allowance
from .balances import check_balance
from .cancellation import InteractionToken
from .clients import ClientRegistry
from .comparison import step_comparison
from .contracts import (
    Execution,
    ExecutionStatus,
    ExecutionUpdate,
    FailureUpdate,
    ProcessError,
    ProcessStatus,
    ProcessType,
    ReceivingUpdate,
    StatusResponse,
    Step,
    TransactionRequest,
    TransactionUpdate,
    is_native_token,
)
from .errors import (
    ErrorCode,
    ExecutionError,
    TransactionFailed,
    TransactionReplacedError,
    TransactionUnprepared,
    get_transaction_failed_message,
    parse_error,
)
from .interfaces import (
    Account,
    AllowanceProvider,
    BalanceProvider,
    ExecutionSettings,
    ReceiptProvider,
    StepTransactionProvider,
)
from .receipts import get_substatus_message
from .status import StatusManager
from .switch_chain import ensure_chain

logger = logging.getLogger(__name__)


class StepExecutionManager:
    """Drives one step from allowance through destination confirmation.

    Every transition is written through the ``StatusManager`` so that a later
    call to ``execute`` picks up where the previous one stopped. A process
    that already carries a transaction hash is re-attached to, never
    submitted again.
    """

    def __init__(
        self,
        api: StepTransactionProvider,
        allowance: AllowanceProvider,
        balances: BalanceProvider,
        receipts: ReceiptProvider,
        clients: Optional[ClientRegistry] = None,
        token: Optional[InteractionToken] = None,
    ) -> None:
        self._api = api
        self._allowance = allowance
        self._balances = balances
        self._receipts = receipts
        self._clients = clients
        self.token = token or InteractionToken()

    def allow_interaction(self, value: bool) -> None:
        if value:
            self.token.allow()
        else:
            self.token.disallow()

    async def execute(
        self,
        account: Account,
        step: Step,
        status_manager: StatusManager,
        settings: Optional[ExecutionSettings] = None,
        token: Optional[InteractionToken] = None,
    ) -> Execution:
        """Advance ``step`` as far as possible and return its execution.

        Returns early, without error, when the step waits for the user
        (interaction disallowed, chain switch or slippage confirmation
        pending). Failures are recorded on the ledger and raised as
        ``ExecutionError``.
        """
        token = token or self.token
        settings = settings or ExecutionSettings()

        execution = status_manager.init_execution(step)
        if execution.status in (ExecutionStatus.DONE, ExecutionStatus.CANCELLED):
            return execution
        if execution.status != ExecutionStatus.PENDING:
            status_manager.update_execution(step, ExecutionStatus.PENDING)

        process_type = (
            ProcessType.CROSS_CHAIN if step.is_cross_chain else ProcessType.SWAP
        )
        existing = execution.find_process(process_type)

        if (
            not (existing and existing.tx_hash)
            and not is_native_token(step.action.from_token.address)
            and not getattr(account, "is_multisig", False)
        ):
            checked = await check_allowance(
                account,
                step,
                status_manager,
                settings,
                token,
                self._allowance,
                self._clients,
            )
            if checked is None:
                return step.execution
            account = checked

        process = status_manager.find_or_create_process(step, process_type)
        if process.status != ProcessStatus.DONE:
            proceed = await self._execute_transaction(
                account, step, process_type, status_manager, settings, token
            )
            if not proceed:
                return step.execution

        await self._wait_for_receipt(step, process_type, status_manager)
        return step.execution

    # ------------------------------------------------------------------
    async def _execute_transaction(
        self,
        account: Account,
        step: Step,
        process_type: ProcessType,
        status_manager: StatusManager,
        settings: ExecutionSettings,
        token: InteractionToken,
    ) -> bool:
        """Submit (or re-attach to) the step's transaction and wait for it.

        Returns ``False`` when execution paused before submission.
        """
        process = step.execution.find_process(process_type)
        try:
            if process.tx_hash:
                account = await ensure_chain(
                    account, status_manager, step, settings.switch_chain_hook, token
                )
                if account is None:
                    return False
                logger.info(f"Re-attaching to {process.tx_hash} for step {step.id}")
                handle = await account.get_transaction(process.tx_hash)
            else:
                status_manager.update_process(step, process_type, ProcessStatus.STARTED)
                await check_balance(account, step, self._balances)

                if step.transaction_request is None:
                    updated = await self._api.get_step_transaction(step)
                    compared = await step_comparison(
                        status_manager, process_type, step, updated, settings, token
                    )
                    if compared is None:
                        return False

                request = step.transaction_request
                if request is None:
                    raise TransactionUnprepared("Unable to prepare transaction.")

                account = await ensure_chain(
                    account, status_manager, step, settings.switch_chain_hook, token
                )
                if account is None:
                    return False

                status_manager.update_process(
                    step, process_type, ProcessStatus.ACTION_REQUIRED
                )
                if not token.allow_interaction:
                    logger.info(f"Step {step.id} is waiting for interaction")
                    return False

                await self._apply_gas_overrides(account, request, settings)
                handle = await account.send_transaction(request)
                logger.info(f"Submitted {handle.hash} for step {step.id}")
                status_manager.update_process(
                    step,
                    process_type,
                    ProcessStatus.PENDING,
                    self._transaction_update(step, handle.hash),
                )

            confirmed = (
                ProcessStatus.DONE if step.is_cross_chain else ProcessStatus.PENDING
            )
            try:
                await handle.wait()
                tx_hash = handle.hash
            except TransactionReplacedError as e:
                logger.info(
                    f"Transaction {handle.hash} of step {step.id} was replaced by "
                    f"{e.replacement_hash} ({e.reason})"
                )
                tx_hash = e.replacement_hash
            status_manager.update_process(
                step, process_type, confirmed, self._transaction_update(step, tx_hash)
            )
            return True
        except ExecutionError:
            raise
        except Exception as e:
            error = parse_error(e, step, process)
            status_manager.update_process(
                step,
                process_type,
                ProcessStatus.FAILED,
                FailureUpdate(error=ProcessError.from_error(error.cause)),
            )
            status_manager.update_execution(step, ExecutionStatus.FAILED)
            logger.error(f"Step {step.id} failed: {error}")
            raise error

    async def _apply_gas_overrides(
        self, account: Account, request: TransactionRequest, settings: ExecutionSettings
    ) -> None:
        if settings.update_transaction_request_hook is not None:
            custom = await settings.update_transaction_request_hook(request)
            request.gas_limit = custom.gas_limit
            request.gas_price = custom.gas_price
            request.max_fee_per_gas = custom.max_fee_per_gas
            request.max_priority_fee_per_gas = custom.max_priority_fee_per_gas
            return
        try:
            estimated = await account.estimate_gas(request)
            if estimated:
                request.gas_limit = estimated * settings.gas_limit_margin_percent // 100
            gas_price = await account.get_gas_price()
            if gas_price:
                request.gas_price = gas_price
        except Exception as e:
            logger.warning(f"Gas estimation failed, submitting request as is: {e}")

    async def _wait_for_receipt(
        self, step: Step, process_type: ProcessType, status_manager: StatusManager
    ) -> None:
        tx_hash = step.execution.find_process(process_type).tx_hash
        if step.is_cross_chain:
            process_type = ProcessType.RECEIVING_CHAIN
            status_manager.find_or_create_process(
                step, process_type, ProcessStatus.PENDING
            )

        def on_pending(receipt: StatusResponse) -> None:
            status_manager.update_process(
                step,
                process_type,
                ProcessStatus.PENDING,
                ReceivingUpdate(**self._receiving_fields(step, receipt)),
            )

        try:
            if not tx_hash:
                raise TransactionFailed("Transaction hash is undefined.")
            receipt = await self._receipts.await_receipt(
                tx_hash, step, on_pending=on_pending
            )
        except Exception as e:
            raise self._fail_receiving(step, process_type, status_manager) from e

        fields = self._receiving_fields(step, receipt)
        if receipt.status == "CANCELLED":
            status_manager.update_process(
                step, process_type, ProcessStatus.CANCELLED, ReceivingUpdate(**fields)
            )
            status_manager.update_execution(step, ExecutionStatus.CANCELLED)
            return
        if receipt.status != "DONE":
            raise self._fail_receiving(step, process_type, status_manager)

        status_manager.update_process(
            step, process_type, ProcessStatus.DONE, ReceivingUpdate(**fields)
        )
        status_manager.update_execution(
            step, ExecutionStatus.DONE, ExecutionUpdate.from_receipt(receipt)
        )
        logger.info(f"Step {step.id} completed")

    def _receiving_fields(self, step: Step, receipt: StatusResponse) -> Dict[str, Any]:
        fields: Dict[str, Any] = {
            "substatus": receipt.substatus,
            "substatus_message": receipt.substatus_message
            or get_substatus_message(receipt.status, receipt.substatus),
        }
        receiving = receipt.receiving
        if receiving is not None and receiving.tx_hash:
            fields["tx_hash"] = receiving.tx_hash
            fields["tx_link"] = receiving.tx_link or self._tx_link(
                step.action.to_chain_id, receiving.tx_hash
            )
        return {k: v for k, v in fields.items() if v is not None}

    def _fail_receiving(
        self, step: Step, process_type: ProcessType, status_manager: StatusManager
    ) -> ExecutionError:
        """Record a failed destination wait and return the error to raise."""
        process = step.execution.find_process(process_type)
        cause = TransactionFailed(
            "Failed while waiting for receiving chain.",
            html_message=get_transaction_failed_message(
                step, process.tx_link if process else None
            ),
            code=ErrorCode.TRANSACTION_FAILED,
        )
        process = status_manager.update_process(
            step,
            process_type,
            ProcessStatus.FAILED,
            FailureUpdate(error=ProcessError.from_error(cause)),
        )
        status_manager.update_execution(step, ExecutionStatus.FAILED)
        logger.error(f"Step {step.id} failed while waiting for the receiving chain")
        return ExecutionError(cause, step=step, process=process)

    def _transaction_update(self, step: Step, tx_hash: str) -> TransactionUpdate:
        return TransactionUpdate(
            tx_hash=tx_hash, tx_link=self._tx_link(step.action.from_chain_id, tx_hash)
        )

    def _tx_link(self, chain_id: int, tx_hash: str) -> Optional[str]:
        if self._clients is None:
            return None
        return self._clients.tx_link(chain_id, tx_hash)
