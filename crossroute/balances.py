"""Balance lookups and the pre-submission balance check."""

from __future__ import annotations

import asyncio
import logging
from decimal import Decimal
from typing import List, Sequence, TypeVar

from .constants import (
    BALANCE_CHECK_RETRIES,
    BALANCE_RETRY_DELAY,
    DEFAULT_SLIPPAGE,
    MAX_MULTICALL_SIZE,
)
from .contracts import Step, Token, TokenAmount, format_units
from .errors import BalanceTooLow
from .interfaces import Account, BalanceProvider

logger = logging.getLogger(__name__)

T = TypeVar("T")


def split_list_into_chunks(items: Sequence[T], chunk_size: int) -> List[List[T]]:
    if chunk_size < 1:
        raise ValueError("chunk_size must be positive")
    return [list(items[i : i + chunk_size]) for i in range(0, len(items), chunk_size)]


async def get_balances(
    provider: BalanceProvider,
    address: str,
    tokens: Sequence[Token],
    chunk_size: int = MAX_MULTICALL_SIZE,
) -> List[TokenAmount]:
    """Fetch balances of ``tokens`` in batches of at most ``chunk_size``.

    Batches are requested concurrently; the result follows the order of
    ``tokens`` whatever order the batches complete in.
    """
    if not tokens:
        return []
    chain_id = tokens[0].chain_id
    if any(token.chain_id != chain_id for token in tokens):
        logger.warning("Requested tokens have to be on the same chain.")

    chunks = split_list_into_chunks(tokens, chunk_size)
    results = await asyncio.gather(
        *(provider.get_balances(address, chunk) for chunk in chunks)
    )

    balances: List[TokenAmount] = []
    for chunk, amounts in zip(chunks, results):
        if len(amounts) != len(chunk):
            raise ValueError(
                f"Balance provider returned {len(amounts)} amounts for {len(chunk)} tokens"
            )
        for token, amount in zip(chunk, amounts):
            balances.append(TokenAmount(**token.model_dump(), amount=int(amount)))
    return balances


async def check_balance(
    account: Account,
    step: Step,
    provider: BalanceProvider,
    retries: int = BALANCE_CHECK_RETRIES,
    delay: float = BALANCE_RETRY_DELAY,
) -> None:
    """Fail with ``BalanceTooLow`` unless the account can pay ``from_amount``.

    A short balance is re-read a few times since providers may lag behind a
    just-settled previous step. When the remaining shortfall is within the
    step's slippage, ``from_amount`` is lowered to the balance instead.
    """
    token = step.action.from_token
    needed = int(step.action.from_amount)

    balance = await provider.get_balance(account.address, token)
    attempt = 0
    while balance < needed and attempt < retries:
        attempt += 1
        await asyncio.sleep(delay)
        balance = await provider.get_balance(account.address, token)
    if balance >= needed:
        return

    slippage = Decimal(str(step.action.slippage or DEFAULT_SLIPPAGE))
    if Decimal(needed) * (1 - slippage) <= balance:
        logger.info(
            f"Adjusting from amount of step {step.id} to balance {balance} within slippage"
        )
        step.action.from_amount = str(balance)
        return

    needed_units = format_units(needed, token.decimals)
    current_units = format_units(balance, token.decimals)
    detail = (
        f"Your {token.symbol} balance is too low, you try to transfer "
        f"{needed_units} {token.symbol}, but your wallet only holds "
        f"{current_units} {token.symbol}. No funds have been sent."
    )
    if balance:
        detail += (
            " If the problem persists, please delete this transfer and start a new "
            f"one with a maximum of {current_units} {token.symbol}."
        )
    raise BalanceTooLow("The balance is too low.", html_message=detail)
