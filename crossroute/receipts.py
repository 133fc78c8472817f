"""Destination-side completion watcher backed by the status endpoint."""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Callable, Optional

from .contracts import StatusResponse, Step
from .observe import Cleanup, Emitter, PollingObserver, poll
from .services.api import ApiService

logger = logging.getLogger(__name__)

# Statuses after which the backend will not report anything new.
FINAL_STATUSES = frozenset({"DONE", "FAILED", "CANCELLED", "INVALID"})

_SUBSTATUS_MESSAGES = {
    "PENDING": {
        "BRIDGE_NOT_AVAILABLE": "The bridge is currently unavailable.",
        "CHAIN_NOT_AVAILABLE": "The RPC of the destination chain is currently unavailable.",
        "REFUND_IN_PROGRESS": "The transfer could not be completed and a refund is underway.",
        "UNKNOWN_ERROR": "The status of the transfer can not be determined right now.",
        "WAIT_SOURCE_CONFIRMATIONS": "The bridge is waiting for confirmations on the source chain.",
        "WAIT_DESTINATION_TRANSACTION": "The bridge is sending the destination transaction.",
    },
    "DONE": {
        "COMPLETED": "The transfer is complete.",
        "PARTIAL": "The transfer was partially successful. Only a part of the tokens arrived as expected.",
        "REFUNDED": "The tokens have been refunded to the sender.",
    },
    "FAILED": {},
}


def get_substatus_message(status: str, substatus: Optional[str]) -> Optional[str]:
    """Human-readable text for a status/substatus pair reported by the backend."""
    if not substatus:
        return None
    return _SUBSTATUS_MESSAGES.get(status, {}).get(substatus)


class ReceiptWatcher:
    """Resolves once the backend reports a final status for a transfer.

    Polls ``api.get_status`` through the shared observer, so concurrent waits
    on the same hash share one loop. There is no built-in timeout; bound the
    wait with ``asyncio.wait_for`` when needed.
    """

    def __init__(
        self,
        api: ApiService,
        observer: PollingObserver,
        interval: Optional[float] = None,
    ) -> None:
        self._api = api
        self._observer = observer
        self.interval = interval or observer.interval

    async def await_receipt(
        self,
        tx_hash: str,
        step: Step,
        on_pending: Optional[Callable[[StatusResponse], None]] = None,
    ) -> StatusResponse:
        loop = asyncio.get_running_loop()
        result: asyncio.Future[StatusResponse] = loop.create_future()

        def on_receipt(receipt: StatusResponse) -> None:
            if not result.done():
                result.set_result(receipt)

        def on_update(receipt: StatusResponse) -> None:
            if on_pending is not None:
                on_pending(receipt)

        def on_error(error: BaseException) -> None:
            logger.debug(f"Status request for {tx_hash} failed, retrying: {error}")

        def start(emit: Emitter) -> Cleanup:
            async def tick() -> None:
                receipt = await self._api.get_status(
                    tx_hash,
                    bridge=step.tool,
                    from_chain=step.action.from_chain_id,
                    to_chain=step.action.to_chain_id,
                )
                if receipt.status in FINAL_STATUSES:
                    emit.on_receipt(receipt)
                elif receipt.status == "PENDING":
                    emit.on_update(receipt)

            return poll(
                tick,
                interval=self.interval,
                emit_on_begin=True,
                on_error=emit.on_error,
            )

        stop = self._observer.observe(
            json.dumps(["await_receipt", tx_hash]),
            {"on_receipt": on_receipt, "on_update": on_update, "on_error": on_error},
            start,
        )
        try:
            return await result
        finally:
            stop()
