"""Chain switch coordinator."""

from __future__ import annotations

import logging
from typing import Optional

from .cancellation import InteractionToken
from .contracts import (
    ExecutionStatus,
    FailureUpdate,
    ProcessError,
    ProcessStatus,
    ProcessType,
    Step,
)
from .errors import ChainSwitchFailed
from .interfaces import Account, SwitchChainHook
from .status import StatusManager

logger = logging.getLogger(__name__)


async def ensure_chain(
    account: Account,
    status_manager: StatusManager,
    step: Step,
    switch_chain_hook: Optional[SwitchChainHook],
    token: InteractionToken,
) -> Optional[Account]:
    """Return an account connected to the step's source chain.

    Returns ``None`` when a switch is needed but interaction is currently
    disallowed; the ``SWITCH_CHAIN`` process stays in ``ACTION_REQUIRED``
    until the step is executed again. Raises ``ChainSwitchFailed`` when the
    hook cannot provide an account on the right chain.
    """
    required = step.action.from_chain_id
    if await account.get_chain_id() == required:
        # The wallet may have been switched while the step was paused.
        if step.execution is not None and step.execution.find_process(
            ProcessType.SWITCH_CHAIN
        ):
            status_manager.remove_process(step, ProcessType.SWITCH_CHAIN)
        return account

    status_manager.find_or_create_process(
        step, ProcessType.SWITCH_CHAIN, ProcessStatus.ACTION_REQUIRED
    )
    status_manager.update_execution(step, ExecutionStatus.CHAIN_SWITCH_REQUIRED)

    if not token.allow_interaction:
        logger.info(f"Step {step.id} is waiting for a switch to chain {required}")
        return None

    try:
        switched = await switch_chain_hook(required) if switch_chain_hook else None
        if switched is None or await switched.get_chain_id() != required:
            raise ChainSwitchFailed("Chain switch required.")
    except Exception as e:
        error = (
            e
            if isinstance(e, ChainSwitchFailed)
            else ChainSwitchFailed(str(e) or "Chain switch required.")
        )
        status_manager.update_process(
            step,
            ProcessType.SWITCH_CHAIN,
            ProcessStatus.FAILED,
            FailureUpdate(error=ProcessError.from_error(error)),
        )
        status_manager.update_execution(step, ExecutionStatus.FAILED)
        logger.error(f"Chain switch to {required} failed for step {step.id}: {e}")
        if error is e:
            raise
        raise error from e

    status_manager.remove_process(step, ProcessType.SWITCH_CHAIN)
    status_manager.update_execution(step, ExecutionStatus.PENDING)
    logger.info(f"Switched account to chain {required} for step {step.id}")
    return switched
