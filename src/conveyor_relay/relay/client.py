"""
Relay HTTP Transport

An ``httpx.AsyncClient`` that POSTs JSON-RPC payloads to a relay endpoint and
returns the relay's acknowledgment as a :class:`RelayOutcome`.
"""

import logging

import httpx
from pydantic import ValidationError

from ..engine.exceptions import RelayTransportError
from ..schemas.bases import RelayOutcome
from ..schemas.rpc import ClientRequestHeader, JsonRpcRequest, RelayResponse

logger = logging.getLogger(__name__)


class RelayClient(httpx.AsyncClient):
    """
    Extended httpx.AsyncClient bound to a single relay endpoint.

    Fully compatible with httpx.AsyncClient - supports all methods, properties,
    and can be used as an async context manager.

    Usage:
        ```python
        async with RelayClient("https://conveyor-geode-staging.ata.network") as client:
            outcome = await client.dispatch(payload)
        ```
    """

    def __init__(self, relayer_url: str, **kwargs):
        """
        Initialize client for one relay endpoint.

        Args:
            relayer_url: Relay endpoint receiving every POST
            **kwargs: All standard httpx.AsyncClient arguments (timeout, transport, etc.)
        """
        super().__init__(**kwargs)
        self.relayer_url = relayer_url

    async def dispatch(self, payload: JsonRpcRequest) -> RelayOutcome:
        """
        Send one relay call.

        Args:
            payload: Built relay request.

        Returns:
            The relay's acknowledgment. ``accepted=False`` is a normal return
            value carrying the relay's own error message.

        Raises:
            RelayTransportError: Connection failure, non-2xx status, or a body
                that is not a relay response.
        """
        headers = ClientRequestHeader().model_dump(by_alias=True)
        logger.info("Dispatching %s to %s", payload.method, self.relayer_url)
        try:
            response = await self.post(
                self.relayer_url,
                json=payload.model_dump(mode="json"),
                headers=headers,
            )
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise RelayTransportError(f"Relay request failed: {e}") from e

        try:
            parsed = RelayResponse.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            raise RelayTransportError(f"Unparseable relay response: {e}") from e

        outcome = parsed.to_outcome()
        if outcome.accepted:
            logger.info("Relay accepted %s: %s", payload.method, outcome.tx_hash)
        else:
            logger.warning("Relay rejected %s: %s", payload.method, outcome.error_message)
        return outcome
