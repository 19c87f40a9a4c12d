"""
Exception and Error Definitions Module

Defines the exception hierarchy raised by the signing, quoting, relay and
receipt components. Every exception carries a :class:`MetaTxErrorKind` so the
orchestrator can fold it into a uniform :class:`MetaTxOutcome`.

Exception Hierarchy:
    ConveyorError (root)
    ├── SignatureVerificationFailed
    ├── PriceSourceError
    │   ├── UnsupportedChain
    │   ├── UnsupportedFeeToken
    │   └── PriceSourceUnavailable
    ├── RelayError
    │   ├── RelayRejected
    │   ├── RelayTransportError
    │   └── NonceAlreadyUsed
    ├── ForwardedCallFailed
    ├── ReceiptTimeout
    ├── TransactionReverted
    └── ConfigurationError
"""

from typing import Dict, Optional, Type

from ..schemas.bases import MetaTxErrorKind, MetaTxOutcome


class ConveyorError(Exception):
    """
    Root exception class for all package-specific exceptions.

    Attributes:
        kind: Failure classification reported in the outcome
        tx_hash: Transaction hash involved in the failure, when known
    """
    kind: MetaTxErrorKind = MetaTxErrorKind.CONFIGURATION_ERROR

    def __init__(self, message: str = "", *, tx_hash: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.tx_hash = tx_hash


class SignatureVerificationFailed(ConveyorError):
    """
    Raised when recovering the signer of a signed document fails.

    This includes scenarios such as:
    - Recovered address differs from the expected signer
    - Recovery yields the zero address
    - Signature bytes are malformed

    Never retried.

    Attributes:
        expected: Expected signer address
        recovered: Address actually recovered, when recovery succeeded
    """
    kind = MetaTxErrorKind.SIGNATURE_VERIFICATION_FAILED

    def __init__(self, message: str = "Signature verification failed", *, expected: Optional[str] = None, recovered: Optional[str] = None):
        super().__init__(message)
        self.expected = expected
        self.recovered = recovered


class PriceSourceError(ConveyorError):
    """Base class for fee pricing failures."""
    pass


class UnsupportedChain(PriceSourceError):
    """
    Raised when no price source route is configured for a chain.

    Surfaced before any signing occurs.
    """
    kind = MetaTxErrorKind.UNSUPPORTED_CHAIN


class UnsupportedFeeToken(PriceSourceError):
    """
    Raised when the price source returns no data for a fee token.

    Absence of price data is never interpreted as a zero fee.
    """
    kind = MetaTxErrorKind.UNSUPPORTED_FEE_TOKEN


class PriceSourceUnavailable(PriceSourceError):
    """
    Raised when the price source cannot be reached or answers with a
    non-2xx status or an unparseable body.
    """
    kind = MetaTxErrorKind.TRANSPORT_ERROR


class RelayError(ConveyorError):
    """Base class for relay interaction failures."""
    kind = MetaTxErrorKind.RELAY_REJECTED


class RelayRejected(RelayError):
    """
    Raised when the relay answers ``success=false`` at the RPC layer.

    The relay's own message is preserved as-is.
    """
    kind = MetaTxErrorKind.RELAY_REJECTED


class RelayTransportError(RelayError):
    """
    Raised when the relay endpoint cannot be reached or answers with a
    non-2xx status or an unparseable body.
    """
    kind = MetaTxErrorKind.TRANSPORT_ERROR


class NonceAlreadyUsed(RelayError):
    """
    Raised when the forwarder nonce the request was signed with has already
    been consumed on-chain (two overlapping calls read the same nonce).

    Attributes:
        signed_nonce: Nonce the request was signed with
        current_nonce: Forwarder nonce observed afterwards
    """
    kind = MetaTxErrorKind.NONCE_ALREADY_USED

    def __init__(self, message: str = "", *, signed_nonce: Optional[int] = None, current_nonce: Optional[int] = None):
        super().__init__(message)
        self.signed_nonce = signed_nonce
        self.current_nonce = current_nonce


class ForwardedCallFailed(ConveyorError):
    """
    Raised when the wrapping transaction succeeded but the forwarder's status
    event reports that the forwarded call failed.
    """
    kind = MetaTxErrorKind.FORWARDED_CALL_FAILED


class ReceiptTimeout(ConveyorError):
    """
    Raised when a transaction receipt does not materialize within the
    configured polling bound.
    """
    kind = MetaTxErrorKind.RECEIPT_TIMEOUT


class TransactionReverted(ConveyorError):
    """Raised when a directly submitted transaction reverts on-chain."""
    kind = MetaTxErrorKind.TRANSACTION_REVERTED


class ConfigurationError(ConveyorError):
    """
    Raised when configuration is missing or invalid.

    This includes scenarios such as:
    - Unknown relay environment
    - Missing forwarder address
    - Unsupported relay API version
    """
    kind = MetaTxErrorKind.CONFIGURATION_ERROR


_OUTCOME_ERRORS: Dict[MetaTxErrorKind, Type[ConveyorError]] = {
    MetaTxErrorKind.SIGNATURE_VERIFICATION_FAILED: SignatureVerificationFailed,
    MetaTxErrorKind.UNSUPPORTED_CHAIN: UnsupportedChain,
    MetaTxErrorKind.UNSUPPORTED_FEE_TOKEN: UnsupportedFeeToken,
    MetaTxErrorKind.RELAY_REJECTED: RelayRejected,
    MetaTxErrorKind.FORWARDED_CALL_FAILED: ForwardedCallFailed,
    MetaTxErrorKind.RECEIPT_TIMEOUT: ReceiptTimeout,
    MetaTxErrorKind.NONCE_ALREADY_USED: NonceAlreadyUsed,
    MetaTxErrorKind.TRANSACTION_REVERTED: TransactionReverted,
    MetaTxErrorKind.TRANSPORT_ERROR: RelayTransportError,
    MetaTxErrorKind.CONFIGURATION_ERROR: ConfigurationError,
}


def raise_for_outcome(outcome: MetaTxOutcome) -> None:
    """
    Raise the exception matching a failed outcome; do nothing on success.

    Lets callers that prefer exceptions over outcome values write::

        raise_for_outcome(await orchestrator.submit(...))

    ``TRANSPORT_ERROR`` maps to :class:`RelayTransportError`; outcomes do not
    record whether the relay or the price source was unreachable.

    Raises:
        ConveyorError: The subclass registered for ``outcome.error_kind``,
            carrying the outcome's message and transaction hash.
    """
    if outcome.is_success():
        return
    error_cls = _OUTCOME_ERRORS.get(outcome.error_kind, ConveyorError)
    error = error_cls(outcome.error_message or "")
    error.tx_hash = outcome.tx_hash
    raise error
