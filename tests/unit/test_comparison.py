import pytest

from crossroute.cancellation import InteractionToken
from crossroute.comparison import check_step_slippage_threshold, step_comparison
from crossroute.contracts import ProcessStatus, ProcessType
from crossroute.errors import SlippageRejected
from crossroute.interfaces import ExecutionSettings
from crossroute.status import StatusManager

from fixtures.builders import build_route, build_step


def _setup():
    step = build_step(to_amount_min="990000", slippage=0.005)
    manager = StatusManager(build_route([step]))
    manager.init_execution(step)
    manager.find_or_create_process(step, ProcessType.CROSS_CHAIN)
    return manager, step


def test_slippage_threshold():
    old = build_step(to_amount_min="1000000", slippage=0.01)

    assert check_step_slippage_threshold(old, build_step(to_amount_min="990000"), 0.005)
    assert not check_step_slippage_threshold(old, build_step(to_amount_min="989999"), 0.005)
    assert check_step_slippage_threshold(old, build_step(to_amount_min="1100000"), 0.005)


def test_slippage_threshold_falls_back_to_default():
    old = build_step(to_amount_min="1000000")
    old.action.slippage = None

    assert check_step_slippage_threshold(old, build_step(to_amount_min="995000"), 0.005)
    assert not check_step_slippage_threshold(old, build_step(to_amount_min="994000"), 0.005)


@pytest.mark.asyncio
async def test_update_within_tolerance_is_adopted():
    manager, step = _setup()
    updated = build_step(to_amount_min="989000")

    result = await step_comparison(
        manager, ProcessType.CROSS_CHAIN, step, updated, ExecutionSettings(), InteractionToken()
    )

    assert result is step
    assert step.estimate.to_amount_min == "989000"
    assert step.execution.find_process(ProcessType.CROSS_CHAIN).status == ProcessStatus.STARTED


@pytest.mark.asyncio
async def test_update_beyond_tolerance_needs_confirmation():
    manager, step = _setup()
    updated = build_step(to_amount_min="900000")
    asked = []

    async def accept(old, new):
        asked.append((old.estimate.to_amount_min, new.estimate.to_amount_min))
        return True

    result = await step_comparison(
        manager,
        ProcessType.CROSS_CHAIN,
        step,
        updated,
        ExecutionSettings(accept_slippage_update_hook=accept),
        InteractionToken(),
    )

    assert asked == [("990000", "900000")]
    assert result.estimate.to_amount_min == "900000"


@pytest.mark.asyncio
async def test_declined_update_raises():
    manager, step = _setup()

    async def decline(old, new):
        return False

    with pytest.raises(SlippageRejected) as exc_info:
        await step_comparison(
            manager,
            ProcessType.CROSS_CHAIN,
            step,
            build_step(to_amount_min="900000"),
            ExecutionSettings(accept_slippage_update_hook=decline),
            InteractionToken(),
        )

    assert exc_info.value.message == "Exchange rate has changed!"
    assert step.estimate.to_amount_min == "990000"


@pytest.mark.asyncio
async def test_update_without_hook_is_rejected():
    manager, step = _setup()

    with pytest.raises(SlippageRejected):
        await step_comparison(
            manager,
            ProcessType.CROSS_CHAIN,
            step,
            build_step(to_amount_min="900000"),
            ExecutionSettings(),
            InteractionToken(),
        )


@pytest.mark.asyncio
async def test_confirmation_waits_for_interaction():
    manager, step = _setup()

    result = await step_comparison(
        manager,
        ProcessType.CROSS_CHAIN,
        step,
        build_step(to_amount_min="900000"),
        ExecutionSettings(),
        InteractionToken(False),
    )

    assert result is None
    process = step.execution.find_process(ProcessType.CROSS_CHAIN)
    assert process.status == ProcessStatus.ACTION_REQUIRED
