import pytest

from crossroute.balances import check_balance, get_balances, split_list_into_chunks
from crossroute.contracts import Token
from crossroute.errors import BalanceTooLow

from fixtures.builders import build_step
from fixtures.fakes import FakeAccount, FakeBalances


def _tokens(count, chain_id=1):
    return [
        Token(
            address=f"0x{index:040x}",
            chain_id=chain_id,
            symbol=f"TKN{index}",
            decimals=18,
        )
        for index in range(count)
    ]


def test_split_list_into_chunks():
    assert split_list_into_chunks([1, 2, 3, 4, 5], 2) == [[1, 2], [3, 4], [5]]
    assert split_list_into_chunks([], 3) == []
    with pytest.raises(ValueError):
        split_list_into_chunks([1], 0)


@pytest.mark.asyncio
async def test_balances_keep_input_order_across_chunks():
    tokens = _tokens(250)
    # Later chunks finish first.
    provider = FakeBalances(delays={0: 0.03, 1: 0.02, 2: 0.0})

    balances = await get_balances(provider, "0xuser", tokens)

    assert provider.batches == [100, 100, 50]
    assert [b.address for b in balances] == [t.address for t in tokens]
    assert [b.amount for b in balances] == list(range(250))


@pytest.mark.asyncio
async def test_balances_of_no_tokens():
    provider = FakeBalances()

    assert await get_balances(provider, "0xuser", []) == []
    assert provider.batches == []


@pytest.mark.asyncio
async def test_balance_length_mismatch_is_rejected():
    class ShortProvider(FakeBalances):
        async def get_balances(self, address, tokens):
            return [1]

    with pytest.raises(ValueError):
        await get_balances(ShortProvider(), "0xuser", _tokens(3))


@pytest.mark.asyncio
async def test_sufficient_balance_passes():
    step = build_step(from_amount="1000000")

    await check_balance(FakeAccount(), step, FakeBalances(balance=1_000_000), delay=0)

    assert step.action.from_amount == "1000000"


@pytest.mark.asyncio
async def test_shortfall_within_slippage_adjusts_amount():
    step = build_step(from_amount="1000000", slippage=0.005)

    await check_balance(FakeAccount(), step, FakeBalances(balance=996_000), delay=0)

    assert step.action.from_amount == "996000"


@pytest.mark.asyncio
async def test_balance_too_low_after_retries():
    class CountingBalances(FakeBalances):
        reads = 0

        async def get_balance(self, address, token):
            self.reads += 1
            return await super().get_balance(address, token)

    provider = CountingBalances(balance=500_000)
    step = build_step(from_amount="1000000")

    with pytest.raises(BalanceTooLow) as exc_info:
        await check_balance(FakeAccount(), step, provider, retries=3, delay=0)

    assert provider.reads == 4
    assert exc_info.value.message == "The balance is too low."
    assert "transfer 1 USDC" in exc_info.value.html_message
    assert "only holds 0.5 USDC" in exc_info.value.html_message


@pytest.mark.asyncio
async def test_balance_caught_up_during_retries():
    class LaggingBalances(FakeBalances):
        def __init__(self):
            super().__init__()
            self.values = [0, 0, 1_000_000]

        async def get_balance(self, address, token):
            return self.values.pop(0) if len(self.values) > 1 else self.values[0]

    step = build_step(from_amount="1000000")

    await check_balance(FakeAccount(), step, LaggingBalances(), delay=0)

    assert step.action.from_amount == "1000000"
