"""HTTP client for the quoting backend."""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import httpx

from ..config import ApiConfig
from ..constants import DEFAULT_API_TIMEOUT
from ..contracts import StatusResponse, Step
from ..errors import HTTPError

logger = logging.getLogger(__name__)


class ApiService:
    """Fetches transaction payloads and transfer status from the backend.

    Non-2xx responses raise ``HTTPError``, classified by status code.
    """

    def __init__(
        self,
        base_url: str,
        api_key: Optional[str] = None,
        timeout: float = DEFAULT_API_TIMEOUT,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        headers = {"x-api-key": api_key} if api_key else {}
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self._headers = headers

    @classmethod
    def from_config(cls, config: ApiConfig) -> "ApiService":
        return cls(config.url, api_key=config.api_key, timeout=config.timeout)

    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        url = f"{self.base_url}{path}"
        logger.debug(f"{method} {url}")
        response = await self._client.request(
            method, url, headers=self._headers, **kwargs
        )
        if response.is_error:
            error = HTTPError.from_response(response)
            logger.warning(f"{method} {url} failed: {error.message}")
            raise error
        return response.json()

    async def get_step_transaction(self, step: Step) -> Step:
        """Return ``step`` with a fresh estimate and transaction request."""
        payload = step.model_dump(mode="json", by_alias=True, exclude={"execution"})
        data = await self._request("POST", "/advanced/stepTransaction", json=payload)
        return Step.model_validate(data)

    async def get_status(
        self,
        tx_hash: str,
        bridge: Optional[str] = None,
        from_chain: Optional[int] = None,
        to_chain: Optional[int] = None,
    ) -> StatusResponse:
        params: Dict[str, Any] = {"txHash": tx_hash}
        if bridge:
            params["bridge"] = bridge
        if from_chain is not None:
            params["fromChain"] = from_chain
        if to_chain is not None:
            params["toChain"] = to_chain
        data = await self._request("GET", "/status", params=params)
        return StatusResponse.model_validate(data)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> "ApiService":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()
