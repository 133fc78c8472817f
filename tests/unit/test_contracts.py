import json

from crossroute.contracts import (
    Execution,
    ExecutionStatus,
    ExecutionUpdate,
    Process,
    ProcessStatus,
    ProcessType,
    Route,
    StatusResponse,
    TransactionInfo,
    format_units,
    is_native_token,
)

from fixtures.builders import CHAINS, ETH, USDC_ETH, build_route, build_step


def _execution(*statuses):
    return Execution(
        process=[Process(type=t, status=s) for t, s in statuses],
    )


def test_route_serializes_with_camel_case_keys():
    route = build_route()

    data = json.loads(route.to_json())

    assert data["fromChainId"] == 1
    assert data["steps"][0]["estimate"]["toAmountMin"] == "990000"
    assert data["steps"][0]["action"]["fromToken"]["chainId"] == 1


def test_route_with_ledger_survives_json():
    step = build_step(
        execution=_execution(
            (ProcessType.TOKEN_ALLOWANCE, ProcessStatus.DONE),
            (ProcessType.CROSS_CHAIN, ProcessStatus.PENDING),
        )
    )
    step.execution.process[1].tx_hash = "0xabc"
    route = build_route([step])

    restored = Route.from_json(route.to_json())

    assert restored == route
    assert restored.steps[0].execution.process[1].tx_hash == "0xabc"


def test_empty_execution_derives_pending():
    assert Execution().derive_status() == ExecutionStatus.PENDING


def test_derive_status_priorities():
    failed = _execution(
        (ProcessType.TOKEN_ALLOWANCE, ProcessStatus.DONE),
        (ProcessType.SWAP, ProcessStatus.FAILED),
    )
    switching = _execution(
        (ProcessType.SWITCH_CHAIN, ProcessStatus.ACTION_REQUIRED),
        (ProcessType.SWAP, ProcessStatus.ACTION_REQUIRED),
    )
    signing = _execution((ProcessType.SWAP, ProcessStatus.ACTION_REQUIRED))
    done = _execution(
        (ProcessType.CROSS_CHAIN, ProcessStatus.DONE),
        (ProcessType.RECEIVING_CHAIN, ProcessStatus.DONE),
    )
    waiting = _execution(
        (ProcessType.CROSS_CHAIN, ProcessStatus.DONE),
        (ProcessType.RECEIVING_CHAIN, ProcessStatus.PENDING),
    )

    assert failed.derive_status() == ExecutionStatus.FAILED
    assert switching.derive_status() == ExecutionStatus.CHAIN_SWITCH_REQUIRED
    assert signing.derive_status() == ExecutionStatus.ACTION_REQUIRED
    assert done.derive_status() == ExecutionStatus.DONE
    assert waiting.derive_status() == ExecutionStatus.PENDING


def test_route_status_aggregates_steps():
    first = build_step(step_id="a", execution=Execution(status=ExecutionStatus.DONE))
    second = build_step(step_id="b")
    route = build_route([first, second])

    assert build_route([build_step()]).derive_status() == "NOT_STARTED"
    assert route.derive_status() == "PENDING"

    second.execution = Execution(status=ExecutionStatus.ACTION_REQUIRED)
    assert route.derive_status() == "ACTION_REQUIRED"

    second.execution.status = ExecutionStatus.DONE
    assert route.derive_status() == "DONE"


def test_step_apply_update_keeps_execution():
    step = build_step(execution=Execution(status=ExecutionStatus.PENDING))
    updated = build_step(to_amount_min="980000")

    step.apply_update(updated)

    assert step.estimate.to_amount_min == "980000"
    assert step.execution is not None


def test_native_token_detection():
    assert is_native_token(ETH.address)
    assert is_native_token("0xEeeeeEeeeEeEeeEeEeEeeEEEeeeeEeeeeeeeEEeE")
    assert not is_native_token(USDC_ETH.address)


def test_chain_tx_link():
    ethereum = CHAINS[0]

    assert ethereum.tx_link("0xabc") == "https://etherscan.io/tx/0xabc"
    assert ethereum.tx_link(None) is None


def test_execution_update_from_receipt_skips_missing_values():
    receipt = StatusResponse(
        status="DONE",
        sending=TransactionInfo(tx_hash="0x1", amount="1000000", gas_used="21000"),
        receiving=TransactionInfo(tx_hash="0x2", amount="995000"),
    )

    update = ExecutionUpdate.from_receipt(receipt)

    assert update.model_fields_set == {"from_amount", "to_amount", "gas_used"}
    assert update.to_amount == "995000"


def test_format_units():
    assert format_units(1_500_000, 6) == "1.5"
    assert format_units(0, 18) == "0"
