"""
JSON-RPC Wire Models for the Conveyor Relay

Pydantic models for the single HTTP exchange with the relay: the client POSTs a
JSON-RPC 2.0 request whose ``method`` is a versioned path such as
``/v3/metaTx/execute`` and receives a response carrying
``{success, errorMessage, txnHash}``.

All models inherit from BaseModel for automatic validation and serialization.
"""

from typing import Optional, Tuple, Any

from pydantic import BaseModel, Field, ConfigDict

from .bases import RelayOutcome


# ============================================================================
# Request
# ============================================================================

class ClientRequestHeader(BaseModel):
    """HTTP request headers sent to the relay.

    Attributes:
        content_type: MIME type of request body (default: application/json).
    """
    model_config = ConfigDict(populate_by_name=True)
    content_type: str = Field(default="application/json", alias="Content-Type")


class JsonRpcRequest(BaseModel):
    """A single relay call.

    Instances are frozen and ``params`` is a tuple: once built, a payload is
    never mutated in place.

    Attributes:
        jsonrpc: Protocol version, always "2.0".
        id: Request id echoed by the relay.
        method: Versioned method path, e.g. ``/v3/metaTx/executeWithPermit``.
        params: Ordered parameters (signed documents and signatures).
    """
    model_config = ConfigDict(frozen=True)

    jsonrpc: str = Field(default="2.0", description="JSON-RPC protocol version")
    id: int = Field(default=1, description="Request id")
    method: str = Field(..., description="Versioned relay method path")
    params: Tuple[Any, ...] = Field(default_factory=tuple, description="Ordered call parameters")


# ============================================================================
# Response
# ============================================================================

class RelayResult(BaseModel):
    """The ``result`` object of a relay response.

    Attributes:
        success: Whether the relay accepted the request.
        error_message: Relay error message (``errorMessage`` on the wire).
        txn_hash: Wrapping transaction hash (``txnHash`` on the wire).
    """
    model_config = ConfigDict(populate_by_name=True)

    success: bool = Field(..., description="Relay acceptance flag")
    error_message: Optional[str] = Field(default=None, alias="errorMessage")
    txn_hash: Optional[str] = Field(default=None, alias="txnHash")


class RelayResponse(BaseModel):
    """Full relay response envelope.

    Attributes:
        id: Echoed request id.
        jsonrpc: Protocol version.
        result: Relay result object.
    """
    id: Optional[int] = Field(default=None, description="Echoed request id")
    jsonrpc: str = Field(default="2.0", description="JSON-RPC protocol version")
    result: RelayResult = Field(..., description="Relay result")

    def to_outcome(self) -> RelayOutcome:
        return RelayOutcome(
            accepted=self.result.success,
            tx_hash=self.result.txn_hash,
            error_message=self.result.error_message,
            request_id=self.id,
        )
