"""
EVM Meta-Transaction Schema Models

Pydantic models for the values that flow through the signing protocol:

    - FeeTokenKind: Which permit schema a fee token speaks
    - SignerKind: Whether the authorizing party holds a key or is a contract
    - ForwardRequest: One authorized call to be executed by the forwarder
    - ECDSASignature: A (v, r, s) signature with packing helpers
    - SignaturePackage: A signed document paired with its signature

Documents and signatures always travel together inside a SignaturePackage;
nothing downstream reconstructs a document from a signature or vice versa.
"""

from enum import Enum
from typing import Any, Dict, List, Tuple

from pydantic import ConfigDict, Field, field_validator, model_validator

from ..schemas.bases import CanonicalModel


class FeeTokenKind(str, Enum):
    """
    Permit schema spoken by a fee token.

    Attributes:
        STANDARD_PERMIT: EIP-2612 ``(owner, spender, value, nonce, deadline)``
        ALLOWANCE_PERMIT: DAI-style ``(holder, spender, nonce, expiry, allowed)``
    """
    STANDARD_PERMIT = "standard_permit"
    ALLOWANCE_PERMIT = "allowance_permit"


class SignerKind(str, Enum):
    """Authentication kind of the caller, as tagged in ``executeV2`` payloads."""
    EOA = "EOA"
    CONTRACT = "CONTRACT"


class ForwardRequest(CanonicalModel):
    """
    One call authorized for execution by the forwarder.

    ``nonce`` must equal the forwarder's on-chain nonce for ``from`` at signing
    time. ``deadline`` is an absolute UNIX timestamp. ``data`` is the exact
    encoded call the target executes; any change after signing invalidates the
    signature.

    Attributes:
        from_: Authorizing account (``from`` on the wire).
        to: Target contract.
        fee_token: Token the fee is paid in.
        use_oracle_price_feed: Whether the forwarder prices the fee from an oracle.
        max_token_amount: Upper bound of the fee in fee-token units.
        deadline: Absolute UNIX timestamp.
        nonce: Forwarder nonce of ``from_``.
        data: Encoded target call, 0x-prefixed hex.
        extend_categories: Extension category ids.

    Example::

        request = ForwardRequest(
            from_="0xabc...",
            to="0xdef...",
            fee_token="0x6B17...",
            max_token_amount=12,
            deadline=1_700_000_000,
            nonce=3,
            data="0xa9059cbb...",
        )
        document, sign_request = factory.build_forward_message(
            chain_id, forwarder, "Conveyor", request
        )
    """
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    from_: str = Field(..., alias="from", description="Authorizing account")
    to: str = Field(..., description="Target contract address")
    fee_token: str = Field(..., description="Fee token address")
    use_oracle_price_feed: bool = Field(default=True, description="Price the fee from the forwarder's oracle")
    max_token_amount: int = Field(..., ge=0, description="Fee ceiling in fee-token units")
    deadline: int = Field(..., ge=0, description="Absolute UNIX expiry timestamp")
    nonce: int = Field(..., ge=0, description="Forwarder nonce at signing time")
    data: str = Field(default="0x", description="Encoded target call")
    extend_categories: List[int] = Field(default_factory=list, description="Extension category ids")

    @field_validator("data")
    @classmethod
    def _check_hex_data(cls, value: str) -> str:
        if not value.startswith("0x"):
            raise ValueError("data must be 0x-prefixed hex")
        try:
            bytes.fromhex(value[2:])
        except ValueError:
            raise ValueError("data is not valid hexadecimal")
        return value


class ECDSASignature(CanonicalModel):
    """
    ECDSA signature components.

    Attributes:
        v: Recovery ID, normalised to 27 or 28.
        r: 32-byte ``r`` component as 0x-prefixed hex.
        s: 32-byte ``s`` component as 0x-prefixed hex.
    """
    model_config = ConfigDict(frozen=True)

    v: int = Field(..., ge=27, le=28, description="ECDSA recovery ID (27 or 28)")
    r: str = Field(..., description="Signature r component (0x-prefixed, 64 hex chars)")
    s: str = Field(..., description="Signature s component (0x-prefixed, 64 hex chars)")

    @classmethod
    def from_packed_hex(cls, signature: str) -> "ECDSASignature":
        """
        Split a packed 65-byte ``r || s || v`` signature.

        Raises:
            ValueError: When the signature is not exactly 65 bytes.
        """
        raw = signature[2:] if signature.lower().startswith("0x") else signature
        if len(raw) != 130:
            raise ValueError(f"Expected a 65-byte signature, got {len(raw) // 2} bytes")
        v = int(raw[128:130], 16)
        if v < 27:
            v += 27
        return cls(v=v, r="0x" + raw[0:64].lower(), s="0x" + raw[64:128].lower())

    def to_packed_hex(self) -> str:
        r = self.r.replace("0x", "").zfill(64)
        s = self.s.replace("0x", "").zfill(64)
        return "0x" + r + s + format(self.v, "02x")


class SignaturePackage(CanonicalModel):
    """
    A typed-data document paired with the signature computed over it.

    Attributes:
        document: Full EIP-712 document (``types``, ``primaryType``, ``domain``, ``message``).
        signature: Signature as 0x-prefixed hex. 65 bytes for key-holding
            accounts, arbitrary length for contract accounts.
        signer: Address the document was signed for.
        signer_kind: Authentication kind of ``signer``.

    A 65-byte key-holder signature is stored in canonical form: lowercase,
    0x-prefixed, with a recovery ID of 0 or 1 rewritten to 27 or 28.
    """
    model_config = ConfigDict(frozen=True)

    document: Dict[str, Any] = Field(..., description="Signed EIP-712 document")
    signature: str = Field(..., description="0x-prefixed signature bytes")
    signer: str = Field(..., description="Expected signer address")
    signer_kind: SignerKind = Field(default=SignerKind.EOA, description="Signer authentication kind")

    @model_validator(mode="before")
    @classmethod
    def _canonical_signature(cls, data: Any) -> Any:
        if not isinstance(data, dict) or not isinstance(data.get("signature"), str):
            return data
        if SignerKind(data.get("signer_kind", SignerKind.EOA)) != SignerKind.EOA:
            return data
        raw = data["signature"]
        raw = raw[2:] if raw.lower().startswith("0x") else raw
        if len(raw) != 130:
            return data
        try:
            packed = ECDSASignature.from_packed_hex(raw).to_packed_hex()
        except ValueError:
            return data
        return {**data, "signature": packed}

    @property
    def primary_type(self) -> str:
        return self.document["primaryType"]

    def vrs(self) -> Tuple[int, str, str]:
        """
        Return ``(v, r, s)`` for a 65-byte signature.

        Raises:
            ValueError: When the signature is not a packed ECDSA signature.
        """
        sig = ECDSASignature.from_packed_hex(self.signature)
        return sig.v, sig.r, sig.s
