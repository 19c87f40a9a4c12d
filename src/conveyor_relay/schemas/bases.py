"""
Base Schema Models for the Conveyor Meta-Transaction Client

This module defines the base classes and outcome models shared by every other
schema in the package. It provides the foundation for deterministic
serialization and for the uniform outcome value returned to callers.

Core Classes:
    - CanonicalModel: RFC8785-style Pydantic base model with canonical JSON output
    - MetaTxErrorKind: Enumeration of every failure kind the client can report
    - RelayOutcome: The relay's immediate acknowledgment of a dispatched request
    - MetaTxOutcome: The resolved, final outcome of a meta-transaction submission

Dependencies:
    - pydantic: For data validation and serialization
"""

import json
from typing import Optional, Dict, Any
from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class CanonicalModel(BaseModel):
    """
    RFC8785-style Pydantic base model with canonical JSON serialization.

    Guarantees a deterministic JSON representation (sorted keys, no extra
    whitespace) so that documents can be logged, compared and hashed without
    spurious differences.

    Example:
        class MyModel(CanonicalModel):
            name: str
            value: int

        model = MyModel(name="test", value=123)
        model.to_canonical_json()  # '{"name":"test","value":123}'
    """

    model_config = ConfigDict(populate_by_name=True)

    def to_canonical_json(self) -> str:
        """
        Convert model to canonical JSON string.

        ``model_dump(mode="json")`` converts enums and nested models to plain
        Python types, then ``json.dumps`` sorts keys and strips whitespace.

        Returns:
            str: JSON string with sorted keys and compact separators.
        """
        data = self.model_dump(mode="json")
        return json.dumps(
            data,
            separators=(",", ":"),
            sort_keys=True,
            ensure_ascii=False
        )

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert model to dictionary representation.

        Returns:
            Dict[str, Any]: Dictionary with all model fields.
        """
        return self.model_dump()


class MetaTxErrorKind(str, Enum):
    """
    Enumeration of failure kinds carried by a :class:`MetaTxOutcome`.

    Attributes:
        SIGNATURE_VERIFICATION_FAILED: Recovered signer mismatch or zero-address recovery
        UNSUPPORTED_CHAIN: No price source is configured for the chain
        UNSUPPORTED_FEE_TOKEN: The price source has no data for the fee token
        RELAY_REJECTED: The relay answered ``success=false`` at the RPC layer
        FORWARDED_CALL_FAILED: The wrapping transaction landed but the forwarded call failed
        RECEIPT_TIMEOUT: The receipt never materialized within the polling bound
        NONCE_ALREADY_USED: The forwarder nonce was consumed by a concurrent request
        TRANSACTION_REVERTED: A directly submitted transaction reverted on-chain
        TRANSPORT_ERROR: HTTP-level failure talking to the relay or price source
        CONFIGURATION_ERROR: Missing or invalid client configuration
    """
    SIGNATURE_VERIFICATION_FAILED = "signature_verification_failed"
    UNSUPPORTED_CHAIN = "unsupported_chain"
    UNSUPPORTED_FEE_TOKEN = "unsupported_fee_token"
    RELAY_REJECTED = "relay_rejected"
    FORWARDED_CALL_FAILED = "forwarded_call_failed"
    RECEIPT_TIMEOUT = "receipt_timeout"
    NONCE_ALREADY_USED = "nonce_already_used"
    TRANSACTION_REVERTED = "transaction_reverted"
    TRANSPORT_ERROR = "transport_error"
    CONFIGURATION_ERROR = "configuration_error"


class SubmissionPath(str, Enum):
    """How a call reached the chain."""
    RELAY = "relay"
    DIRECT = "direct"


class RelayOutcome(CanonicalModel):
    """
    Immediate acknowledgment returned by the relay for one dispatched request.

    This is NOT the final truth about the forwarded call: a relay may report
    ``accepted=True`` for a transaction whose forwarded call later turns out to
    have failed. Use the ReceiptVerifier to resolve the real result.

    Attributes:
        accepted: Whether the relay accepted and broadcast the request
        tx_hash: Hash of the wrapping transaction, when one was broadcast
        error_message: Relay-provided error message when not accepted
        request_id: JSON-RPC id echoed by the relay
    """

    accepted: bool = Field(..., description="Whether the relay accepted the request")
    tx_hash: Optional[str] = Field(None, description="Wrapping transaction hash")
    error_message: Optional[str] = Field(None, description="Relay error message")
    request_id: Optional[int] = Field(None, description="Echoed JSON-RPC id")


class MetaTxOutcome(CanonicalModel):
    """
    Uniform, resolved outcome of a meta-transaction (or direct) submission.

    Every failure the client knows about is reported through this value with
    an explicit :class:`MetaTxErrorKind`, so callers can branch on the kind
    instead of catching exceptions.

    Attributes:
        success: Final success of the call the user asked for
        tx_hash: Hash of the transaction that carried the call, if any
        error_message: Human-readable failure reason
        error_kind: Failure classification, ``None`` on success
        path: Whether the call went through the relay or was sent directly
        resolved_at: Timestamp when the outcome was produced

    Example:
        outcome = await orchestrator.submit(...)
        if not outcome.is_success():
            if outcome.error_kind == MetaTxErrorKind.FORWARDED_CALL_FAILED:
                print(outcome.error_message)
    """

    success: bool = Field(..., description="Final success of the requested call")
    tx_hash: Optional[str] = Field(None, description="Transaction hash, when one exists")
    error_message: Optional[str] = Field(None, description="Failure reason")
    error_kind: Optional[MetaTxErrorKind] = Field(None, description="Failure classification")
    path: SubmissionPath = Field(default=SubmissionPath.RELAY, description="Submission path")
    resolved_at: datetime = Field(default_factory=datetime.now, description="Resolution timestamp")

    @classmethod
    def succeeded(cls, tx_hash: Optional[str], path: SubmissionPath = SubmissionPath.RELAY) -> "MetaTxOutcome":
        return cls(success=True, tx_hash=tx_hash, error_message="", path=path)

    @classmethod
    def failed(
        cls,
        kind: MetaTxErrorKind,
        message: str,
        tx_hash: Optional[str] = None,
        path: SubmissionPath = SubmissionPath.RELAY,
    ) -> "MetaTxOutcome":
        return cls(success=False, tx_hash=tx_hash, error_message=message, error_kind=kind, path=path)

    def is_success(self) -> bool:
        """
        Check whether the requested call succeeded.

        Returns:
            bool: True only when ``success`` is set and no error kind is recorded.
        """
        return self.success and self.error_kind is None

    def get_error_message(self) -> Optional[str]:
        """
        Get a formatted error message.

        Returns:
            Optional[str]: ``"<kind>: <message>"`` on failure, None on success.
        """
        if self.is_success():
            return None
        kind = self.error_kind.value if self.error_kind else "unknown"
        return f"{kind}: {self.error_message or ''}"

    def to_response(self, request_id: int = 1) -> Dict[str, Any]:
        """
        Render the outcome in the relay's JSON-RPC response envelope.

        Args:
            request_id: JSON-RPC id to place in the envelope.

        Returns:
            Dict[str, Any]: ``{"id", "jsonrpc", "result": {"success", "errorMessage", "txnHash"}}``
        """
        return {
            "id": request_id,
            "jsonrpc": "2.0",
            "result": {
                "success": self.success,
                "errorMessage": self.error_message,
                "txnHash": self.tx_hash,
            },
        }
