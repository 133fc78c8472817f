"""Builders for routes and steps used across the test-suite."""

from __future__ import annotations

from typing import List, Optional

from crossroute.contracts import (
    Action,
    Chain,
    Estimate,
    Execution,
    Route,
    Step,
    Token,
)

ETH = Token(
    address="0x0000000000000000000000000000000000000000",
    chain_id=1,
    symbol="ETH",
    decimals=18,
    name="Ether",
)
USDC_ETH = Token(
    address="0xA0b86991c6218b36c1d19D4a2e9Eb0cE3606eB48",
    chain_id=1,
    symbol="USDC",
    decimals=6,
    name="USD Coin",
)
USDC_POL = Token(
    address="0x2791Bca1f2de4661ED88A30C99A7a9449Aa84174",
    chain_id=137,
    symbol="USDC",
    decimals=6,
    name="USD Coin",
)

CHAINS = [
    Chain(id=1, name="Ethereum", key="eth", explorer_urls=["https://etherscan.io/"]),
    Chain(id=137, name="Polygon", key="pol", explorer_urls=["https://polygonscan.com/"]),
]

ROUTER = "0x1231DEB6f5749EF6cE6943a275A1D3E7486F4EaE"


def build_step(
    step_id: str = "step-1",
    from_token: Token = USDC_ETH,
    to_token: Token = USDC_POL,
    from_amount: str = "1000000",
    to_amount: str = "995000",
    to_amount_min: str = "990000",
    slippage: float = 0.005,
    execution: Optional[Execution] = None,
) -> Step:
    return Step(
        id=step_id,
        type="lifi",
        tool="testbridge",
        action=Action(
            from_chain_id=from_token.chain_id,
            to_chain_id=to_token.chain_id,
            from_token=from_token,
            to_token=to_token,
            from_amount=from_amount,
            slippage=slippage,
            from_address="0xuser",
            to_address="0xuser",
        ),
        estimate=Estimate(
            tool="testbridge",
            from_amount=from_amount,
            to_amount=to_amount,
            to_amount_min=to_amount_min,
            approval_address=ROUTER,
            execution_duration=30,
        ),
        execution=execution,
    )


def build_route(steps: Optional[List[Step]] = None, route_id: str = "route-1") -> Route:
    steps = steps if steps is not None else [build_step()]
    first, last = steps[0], steps[-1]
    return Route(
        id=route_id,
        from_chain_id=first.action.from_chain_id,
        to_chain_id=last.action.to_chain_id,
        from_token=first.action.from_token,
        to_token=last.action.to_token,
        from_amount=first.action.from_amount,
        to_amount=last.estimate.to_amount,
        to_amount_min=last.estimate.to_amount_min,
        from_address="0xuser",
        to_address="0xuser",
        steps=steps,
    )
