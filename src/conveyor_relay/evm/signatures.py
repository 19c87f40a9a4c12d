"""
EVM Off-Chain Signing

Builds the EIP-712 documents of the meta-transaction protocol and obtains
signatures for them through an injected wallet capability.

Exported helpers
----------------
Wallet
    Abstract signing/sending capability. ``LocalAccountWallet`` signs
    in-process with ``eth_account``; ``ProviderWallet`` delegates to a
    node- or wallet-managed account over JSON-RPC.

SignedMessageFactory
    ``build_forward_message`` and ``build_permit_message`` return the exact
    document to be signed together with a ``SignRequest``. Awaiting
    ``SignRequest.sign()`` asks the wallet for a signature and verifies it by
    recovery before handing back a ``SignaturePackage``.

prepare_transaction
    Fill sender nonce, chain id, gas limit and EIP-1559 fees for an
    outgoing transaction.
"""

import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Tuple

from eth_account import Account
from eth_utils import to_hex
from web3 import AsyncWeb3

from .constants import PERMIT_DOMAIN_NAME, PERMIT_MAX_VALUE
from .schemas import FeeTokenKind, ForwardRequest, SignaturePackage, SignerKind
from .standards import (
    AllowancePermitMessage,
    ForwarderMessage,
    ForwarderTypedData,
    PermitMessage,
    PermitTypedData,
    get_domain,
)
from .verifies import verify_signature_package

logger = logging.getLogger(__name__)

#: Gas limit used when estimation fails (e.g. the sender has no balance yet).
_FALLBACK_GAS_LIMIT: int = 100000


# ---------------------------------------------------------------------------
# Transaction preparation
# ---------------------------------------------------------------------------

async def prepare_transaction(w3: AsyncWeb3, tx: Dict[str, Any], sender: str) -> Dict[str, Any]:
    """
    Complete a transaction dict with nonce, chain id, gas and fee fields.

    Fields already present in ``tx`` are left as they are.

    Args:
        w3: AsyncWeb3 instance for the target chain.
        tx: Partial transaction (at least ``to`` and usually ``data``).
        sender: Address the transaction is sent from.

    Returns:
        A new transaction dict ready for signing.
    """
    prepared = dict(tx)
    prepared.setdefault("from", sender)
    if "nonce" not in prepared:
        prepared["nonce"] = await w3.eth.get_transaction_count(sender)
    if "chainId" not in prepared:
        prepared["chainId"] = await w3.eth.chain_id

    if "gas" not in prepared:
        # 10% buffer on top of the estimate
        try:
            gas_estimate = await w3.eth.estimate_gas(prepared)
            prepared["gas"] = int(gas_estimate * 1.1)
        except Exception as e:
            logger.debug("Gas estimation failed, using fallback limit: %s", e)
            prepared["gas"] = _FALLBACK_GAS_LIMIT

    if "gasPrice" not in prepared and "maxFeePerGas" not in prepared:
        try:
            fee_history = await w3.eth.fee_history(1, "latest", [25.0])
            base_fee = fee_history["baseFeePerGas"][-1]
            priority_fee = fee_history["reward"][0][0]
            prepared["maxPriorityFeePerGas"] = priority_fee
            prepared["maxFeePerGas"] = (base_fee * 2) + priority_fee
        except Exception as e:
            # Legacy gas price on chains without EIP-1559
            logger.debug("fee_history unavailable, using legacy gas price: %s", e)
            prepared["gasPrice"] = await w3.eth.gas_price

    return prepared


# ---------------------------------------------------------------------------
# Wallet capability
# ---------------------------------------------------------------------------

class Wallet(ABC):
    """
    Signing and sending capability treated as opaque by the protocol.
    """

    @property
    @abstractmethod
    def address(self) -> str:
        ...

    @abstractmethod
    async def sign_typed_data(self, document: Dict[str, Any], signer_address: str) -> str:
        """
        Sign a full EIP-712 document.

        Returns:
            0x-prefixed signature hex.
        """

    @abstractmethod
    async def send_transaction(self, w3: AsyncWeb3, tx: Dict[str, Any]) -> str:
        """
        Broadcast a transaction from this wallet.

        Returns:
            0x-prefixed transaction hash.
        """


class LocalAccountWallet(Wallet):
    """
    Wallet backed by an in-process private key.

    Args:
        private_key: Hex-encoded secp256k1 private key (with or without ``0x``).

    Example::

        wallet = LocalAccountWallet(get_private_key_from_env())
        signature = await wallet.sign_typed_data(document, wallet.address)
    """

    def __init__(self, private_key: str):
        if not private_key:
            raise ValueError("Private key is required for signing.")
        self._account = Account.from_key(private_key)

    @property
    def address(self) -> str:
        return self._account.address

    async def sign_typed_data(self, document: Dict[str, Any], signer_address: str) -> str:
        signed = Account.sign_typed_data(self._account.key, full_message=document)
        return to_hex(signed.signature)

    async def send_transaction(self, w3: AsyncWeb3, tx: Dict[str, Any]) -> str:
        prepared = await prepare_transaction(w3, tx, self.address)
        signed_tx = self._account.sign_transaction(prepared)
        tx_hash = await w3.eth.send_raw_transaction(signed_tx.raw_transaction)
        return to_hex(tx_hash)


class ProviderWallet(Wallet):
    """
    Wallet whose key is held by the connected node or browser wallet.

    Signing goes through ``eth_signTypedData_v4`` and sending through
    ``eth_sendTransaction``; either may prompt the user.
    """

    def __init__(self, w3: AsyncWeb3, address: str):
        self._w3 = w3
        self._address = AsyncWeb3.to_checksum_address(address)

    @property
    def address(self) -> str:
        return self._address

    async def sign_typed_data(self, document: Dict[str, Any], signer_address: str) -> str:
        response = await self._w3.provider.make_request(
            "eth_signTypedData_v4",
            [signer_address, json.dumps(document)],
        )
        if response.get("error"):
            raise RuntimeError(f"Wallet refused to sign: {response['error']}")
        return response["result"]

    async def send_transaction(self, w3: AsyncWeb3, tx: Dict[str, Any]) -> str:
        prepared = dict(tx)
        prepared.setdefault("from", self._address)
        tx_hash = await w3.eth.send_transaction(prepared)
        return to_hex(tx_hash)


# ---------------------------------------------------------------------------
# Signed message factory
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class SignRequest:
    """
    Pending signature for one document.

    Attributes:
        document: The exact document that will be signed.
        signer: Address expected to sign.
        wallet: Wallet asked for the signature.
    """
    document: Dict[str, Any]
    signer: str
    wallet: Wallet

    async def sign(self, signer_kind: SignerKind = SignerKind.EOA) -> SignaturePackage:
        """
        Obtain and verify the signature.

        Args:
            signer_kind: ``CONTRACT`` skips recovery-based verification; the
                forwarder validates contract signatures itself.

        Returns:
            The document paired with its signature.

        Raises:
            SignatureVerificationFailed: Recovery does not yield ``signer``.
        """
        signature = await self.wallet.sign_typed_data(self.document, self.signer)
        package = SignaturePackage(
            document=self.document,
            signature=signature,
            signer=self.signer,
            signer_kind=signer_kind,
        )
        verify_signature_package(package)
        logger.debug("Signed %s document for %s", package.primary_type, self.signer)
        return package


class SignedMessageFactory:
    """
    Builds forward and permit documents and pairs them with a sign request.

    Args:
        wallet: Signing capability used for every document this factory builds.
        permit_domain_name: EIP-712 domain name of permit documents.
    """

    def __init__(self, wallet: Wallet, permit_domain_name: str = PERMIT_DOMAIN_NAME):
        self.wallet = wallet
        self.permit_domain_name = permit_domain_name

    def build_forward_message(
        self,
        chain_id: int,
        verifying_contract: str,
        domain_name: str,
        request: ForwardRequest,
    ) -> Tuple[Dict[str, Any], SignRequest]:
        """
        Build the ``Forwarder`` document for ``request``.

        Args:
            chain_id: EVM network ID.
            verifying_contract: Contract that will recover the signer. Always
                the forwarder deployment of ``chain_id``.
            domain_name: EIP-712 domain name registered by the forwarder.
            request: The call being authorized.

        Returns:
            ``(document, sign_request)``. The signer is ``request.from_``.
        """
        message = ForwarderMessage(
            sender=request.from_,
            to=request.to,
            feeToken=request.fee_token,
            useOraclePriceFeed=request.use_oracle_price_feed,
            maxTokenAmount=request.max_token_amount,
            deadline=request.deadline,
            nonce=request.nonce,
            data=request.data,
            extendCategories=list(request.extend_categories),
        )
        typed_data = ForwarderTypedData(
            domain=get_domain(verifying_contract, chain_id, domain_name),
            message=message,
        )
        document = typed_data.to_dict()
        return document, SignRequest(document=document, signer=request.from_, wallet=self.wallet)

    def build_permit_message(
        self,
        chain_id: int,
        fee_token: str,
        fee_token_kind: FeeTokenKind,
        signer: str,
        spender: str,
        deadline: int,
        nonce: int,
    ) -> Tuple[Dict[str, Any], SignRequest]:
        """
        Build a ``Permit`` document letting ``spender`` move ``signer``'s fee token.

        A standard permit approves ``PERMIT_MAX_VALUE`` rather than the fee so
        one permit covers later calls. An allowance permit sets
        ``allowed=True`` and uses ``deadline`` as its ``expiry``.

        Args:
            chain_id: EVM network ID.
            fee_token: Fee token contract, also the domain's verifying contract.
            fee_token_kind: Permit schema of the fee token.
            signer: Token holder.
            spender: Account receiving the allowance (the forwarder).
            deadline: Absolute UNIX expiry.
            nonce: The token's permit nonce for ``signer``.

        Returns:
            ``(document, sign_request)``.
        """
        if fee_token_kind == FeeTokenKind.ALLOWANCE_PERMIT:
            message = AllowancePermitMessage(
                holder=signer,
                spender=spender,
                nonce=nonce,
                expiry=deadline,
                allowed=True,
            )
        else:
            message = PermitMessage(
                owner=signer,
                spender=spender,
                value=PERMIT_MAX_VALUE,
                nonce=nonce,
                deadline=deadline,
            )
        typed_data = PermitTypedData(
            domain=get_domain(fee_token, chain_id, self.permit_domain_name),
            message=message,
        )
        document = typed_data.to_dict()
        return document, SignRequest(document=document, signer=signer, wallet=self.wallet)
