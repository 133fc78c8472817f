"""Comparison of a refreshed quote against the one the user accepted."""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Optional

from .cancellation import InteractionToken
from .contracts import ProcessStatus, ProcessType, Step
from .errors import SlippageRejected
from .interfaces import ExecutionSettings
from .status import StatusManager

logger = logging.getLogger(__name__)


def check_step_slippage_threshold(
    old_step: Step, new_step: Step, default_slippage: float
) -> bool:
    """True when the new minimum return lost no more than the allowed slippage."""
    allowed = Decimal(str(old_step.action.slippage or default_slippage))
    old_min = int(old_step.estimate.to_amount_min)
    new_min = int(new_step.estimate.to_amount_min)
    if old_min <= 0:
        return True
    actual = Decimal(old_min - new_min) / Decimal(old_min)
    return actual <= allowed


async def step_comparison(
    status_manager: StatusManager,
    process_type: ProcessType,
    old_step: Step,
    new_step: Step,
    settings: ExecutionSettings,
    token: InteractionToken,
) -> Optional[Step]:
    """Adopt ``new_step`` into ``old_step`` if its terms are acceptable.

    Terms outside the slippage tolerance need the user's confirmation through
    ``accept_slippage_update_hook``. Returns ``None`` when that confirmation
    has to wait for interaction to be allowed, and raises ``SlippageRejected``
    when the user declines.
    """
    if not check_step_slippage_threshold(old_step, new_step, settings.default_slippage):
        status_manager.update_process(
            old_step, process_type, ProcessStatus.ACTION_REQUIRED
        )
        if not token.allow_interaction:
            logger.info(f"Step {old_step.id} is waiting for a slippage confirmation")
            return None

        accepted = False
        if settings.accept_slippage_update_hook is not None:
            accepted = await settings.accept_slippage_update_hook(old_step, new_step)
        if not accepted:
            raise SlippageRejected(
                "Exchange rate has changed!",
                html_message=(
                    "Transaction was not sent, your funds are still in your wallet. "
                    "The exchange rate has changed and the previous estimation can "
                    "not be fulfilled due to value loss."
                ),
            )
        logger.info(f"Slippage update accepted for step {old_step.id}")

    old_step.apply_update(new_step)
    status_manager.update_process(old_step, process_type, ProcessStatus.STARTED)
    return old_step
