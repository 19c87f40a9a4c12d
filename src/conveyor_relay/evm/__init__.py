from .chain import ChainReader
from .receipts import ReceiptPollPolicy, ReceiptVerifier
from .schemas import (
    FeeTokenKind,
    SignerKind,
    ForwardRequest,
    ECDSASignature,
    SignaturePackage,
)
from .signatures import (
    Wallet,
    LocalAccountWallet,
    ProviderWallet,
    SignRequest,
    SignedMessageFactory,
    prepare_transaction,
)
from .verifies import (
    recover_typed_data_signer,
    verify_signature_package,
)

__all__ = [
    "ChainReader",
    "ReceiptPollPolicy",
    "ReceiptVerifier",
    "FeeTokenKind",
    "SignerKind",
    "ForwardRequest",
    "ECDSASignature",
    "SignaturePackage",
    "Wallet",
    "LocalAccountWallet",
    "ProviderWallet",
    "SignRequest",
    "SignedMessageFactory",
    "prepare_transaction",
    "recover_typed_data_signer",
    "verify_signature_package",
]
