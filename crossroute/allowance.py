"""Token allowance check and approval."""

from __future__ import annotations

import logging
from typing import Optional

from .cancellation import InteractionToken
from .clients import ClientRegistry
from .constants import MAX_UINT256
from .contracts import (
    ExecutionStatus,
    FailureUpdate,
    ProcessError,
    ProcessStatus,
    ProcessType,
    Step,
    TransactionRequest,
    TransactionUpdate,
)
from .errors import (
    AllowanceInsufficientAfterApproval,
    ExecutionError,
    TransactionReplacedError,
    parse_error,
)
from .interfaces import Account, AllowanceProvider, ExecutionSettings
from .status import StatusManager
from .switch_chain import ensure_chain

logger = logging.getLogger(__name__)


async def check_allowance(
    account: Account,
    step: Step,
    status_manager: StatusManager,
    settings: ExecutionSettings,
    token: InteractionToken,
    provider: AllowanceProvider,
    clients: Optional[ClientRegistry] = None,
) -> Optional[Account]:
    """Make sure the step's spender may move ``from_amount`` of the from-token.

    Returns the account to continue with (it may have been switched to
    another chain), or ``None`` when execution has to pause for the user.
    An approval submitted earlier is re-attached to instead of being sent
    again.
    """
    process = status_manager.find_or_create_process(step, ProcessType.TOKEN_ALLOWANCE)
    if process.status == ProcessStatus.DONE:
        return account

    from_token = step.action.from_token
    spender = step.estimate.approval_address
    required = int(step.action.from_amount)

    def link(tx_hash: str) -> Optional[str]:
        return clients.tx_link(step.action.from_chain_id, tx_hash) if clients else None

    try:
        if process.tx_hash:
            logger.info(f"Re-attaching to approval {process.tx_hash} for step {step.id}")
            status_manager.update_process(
                step, ProcessType.TOKEN_ALLOWANCE, ProcessStatus.PENDING
            )
            handle = await account.get_transaction(process.tx_hash)
        else:
            approved = await provider.get_approved(account, from_token, spender)
            if approved >= required:
                status_manager.update_process(
                    step, ProcessType.TOKEN_ALLOWANCE, ProcessStatus.DONE
                )
                return account

            status_manager.update_process(
                step, ProcessType.TOKEN_ALLOWANCE, ProcessStatus.ACTION_REQUIRED
            )
            if not token.allow_interaction:
                return None

            account = await ensure_chain(
                account, status_manager, step, settings.switch_chain_hook, token
            )
            if account is None:
                return None

            overrides = None
            if settings.update_transaction_request_hook is not None:
                overrides = await settings.update_transaction_request_hook(
                    TransactionRequest(from_address=account.address, to=spender)
                )
            amount = MAX_UINT256 if settings.infinite_approval else required
            handle = await provider.set_approval(
                account, from_token, spender, amount, overrides
            )
            status_manager.update_process(
                step,
                ProcessType.TOKEN_ALLOWANCE,
                ProcessStatus.PENDING,
                TransactionUpdate(tx_hash=handle.hash, tx_link=link(handle.hash)),
            )

        try:
            await handle.wait()
        except TransactionReplacedError as e:
            logger.info(f"Approval for step {step.id} replaced by {e.replacement_hash}")
            status_manager.update_process(
                step,
                ProcessType.TOKEN_ALLOWANCE,
                ProcessStatus.PENDING,
                TransactionUpdate(
                    tx_hash=e.replacement_hash, tx_link=link(e.replacement_hash)
                ),
            )

        approved = await provider.get_approved(account, from_token, spender)
        if approved < required:
            raise AllowanceInsufficientAfterApproval(
                f"Approved amount {approved} is lower than the required {required}."
            )
        status_manager.update_process(
            step, ProcessType.TOKEN_ALLOWANCE, ProcessStatus.DONE
        )
        return account
    except ExecutionError:
        raise
    except Exception as e:
        error = parse_error(e, step, process)
        status_manager.update_process(
            step,
            ProcessType.TOKEN_ALLOWANCE,
            ProcessStatus.FAILED,
            FailureUpdate(error=ProcessError.from_error(error.cause)),
        )
        status_manager.update_execution(step, ExecutionStatus.FAILED)
        logger.error(f"Allowance check failed for step {step.id}: {error}")
        raise error
