"""
EVM Signature Verification Helpers

Off-chain recovery of the signer of an EIP-712 document. The same document
dictionary that was handed to the signer is re-encoded here, so any field,
ordering or domain mismatch between signing and verification shows up as a
different recovered address.

All cryptographic operations are performed in-process using ``eth_account``.

Current coverage
----------------
recover_typed_data_signer
    Recover the address that produced a signature over a typed document.

verify_signature_package
    Recover and compare against the expected signer. Raises
    ``SignatureVerificationFailed`` on mismatch or zero-address recovery and
    skips recovery for contract-account signers, whose signatures are checked
    by the forwarder through ERC-1271.
"""

import logging
from typing import Any, Dict, Optional

from eth_account import Account
from eth_account.messages import SignableMessage, encode_typed_data

from .constants import ZERO_ADDRESS
from .schemas import SignaturePackage, SignerKind
from ..engine.exceptions import SignatureVerificationFailed

logger = logging.getLogger(__name__)


def encode_document(document: Dict[str, Any]) -> SignableMessage:
    """
    Encode a full ``{types, primaryType, domain, message}`` document into the
    EIP-712 signable form.
    """
    return encode_typed_data(full_message=document)


def _signature_bytes(signature: str) -> bytes:
    raw = signature[2:] if signature.lower().startswith("0x") else signature
    return bytes.fromhex(raw)


def recover_typed_data_signer(document: Dict[str, Any], signature: str) -> str:
    """
    Recover the signer address of ``signature`` over ``document``.

    Args:
        document: Full EIP-712 document exactly as it was signed.
        signature: Packed 65-byte ``r || s || v`` signature, 0x-prefixed hex.

    Returns:
        Checksummed address recovered from the signature.

    Raises:
        SignatureVerificationFailed: If the signature bytes are malformed or
            recovery fails.
    """
    try:
        signable = encode_document(document)
        return Account.recover_message(signable, signature=_signature_bytes(signature))
    except Exception as e:
        raise SignatureVerificationFailed(f"Signature recovery failed: {e}") from e


def verify_signature_package(package: SignaturePackage) -> Optional[str]:
    """
    Check that ``package.signature`` was produced by ``package.signer``.

    Contract-account signers are not recoverable with ECDSA; for them no
    recovery is attempted and ``None`` is returned.

    Args:
        package: Document, signature and expected signer.

    Returns:
        The recovered address, or ``None`` when recovery was skipped.

    Raises:
        SignatureVerificationFailed: Recovered address is the zero address or
            differs from ``package.signer``.
    """
    if package.signer_kind == SignerKind.CONTRACT:
        logger.debug("Skipping recovery for contract signer %s", package.signer)
        return None

    recovered = recover_typed_data_signer(package.document, package.signature)

    if recovered.lower() == ZERO_ADDRESS:
        raise SignatureVerificationFailed(
            "Signature recovered to the zero address",
            expected=package.signer,
            recovered=recovered,
        )
    if recovered.lower() != package.signer.lower():
        raise SignatureVerificationFailed(
            f"Recovered signer {recovered} does not match expected {package.signer}",
            expected=package.signer,
            recovered=recovered,
        )
    return recovered
