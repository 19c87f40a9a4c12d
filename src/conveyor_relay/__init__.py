from .config import ConveyorConfig
from .orchestrator import MetaTransactionOrchestrator
from .engine.exceptions import (
    ConveyorError,
    SignatureVerificationFailed,
    PriceSourceError,
    UnsupportedChain,
    UnsupportedFeeToken,
    PriceSourceUnavailable,
    RelayError,
    RelayRejected,
    RelayTransportError,
    NonceAlreadyUsed,
    ForwardedCallFailed,
    ReceiptTimeout,
    TransactionReverted,
    ConfigurationError,
    raise_for_outcome,
)
from .evm import (
    ChainReader,
    ReceiptPollPolicy,
    ReceiptVerifier,
    FeeTokenKind,
    SignerKind,
    ForwardRequest,
    SignaturePackage,
    Wallet,
    LocalAccountWallet,
    ProviderWallet,
    SignedMessageFactory,
)
from .fees import FeeQuoter, PriceSource, CoinGeckoPriceSource
from .relay import RelayOperation, RelayRequestBuilder, RelayClient, select_operation, parse_relay_payload
from .schemas import MetaTxErrorKind, MetaTxOutcome, RelayOutcome, SubmissionPath

__all__ = [
    "ConveyorConfig",
    "MetaTransactionOrchestrator",
    "ConveyorError",
    "SignatureVerificationFailed",
    "PriceSourceError",
    "UnsupportedChain",
    "UnsupportedFeeToken",
    "PriceSourceUnavailable",
    "RelayError",
    "RelayRejected",
    "RelayTransportError",
    "NonceAlreadyUsed",
    "ForwardedCallFailed",
    "ReceiptTimeout",
    "TransactionReverted",
    "ConfigurationError",
    "raise_for_outcome",
    "ChainReader",
    "ReceiptPollPolicy",
    "ReceiptVerifier",
    "FeeTokenKind",
    "SignerKind",
    "ForwardRequest",
    "SignaturePackage",
    "Wallet",
    "LocalAccountWallet",
    "ProviderWallet",
    "SignedMessageFactory",
    "FeeQuoter",
    "PriceSource",
    "CoinGeckoPriceSource",
    "RelayOperation",
    "RelayRequestBuilder",
    "RelayClient",
    "select_operation",
    "parse_relay_payload",
    "MetaTxErrorKind",
    "MetaTxOutcome",
    "RelayOutcome",
    "SubmissionPath",
]
