import copy
from dataclasses import dataclass, field
from typing import Dict, Any, List, Union


DOMAIN_TYPE: List[Dict[str, str]] = [
    {"name": "name", "type": "string"},
    {"name": "version", "type": "string"},
    {"name": "chainId", "type": "uint256"},
    {"name": "verifyingContract", "type": "address"},
]

FORWARDER_TYPE: List[Dict[str, str]] = [
    {"name": "from", "type": "address"},
    {"name": "to", "type": "address"},
    {"name": "feeToken", "type": "address"},
    {"name": "useOraclePriceFeed", "type": "bool"},
    {"name": "maxTokenAmount", "type": "uint256"},
    {"name": "deadline", "type": "uint256"},
    {"name": "nonce", "type": "uint256"},
    {"name": "data", "type": "bytes"},
    {"name": "extendCategories", "type": "uint256[]"},
]

PERMIT_TYPE: List[Dict[str, str]] = [
    {"name": "owner", "type": "address"},
    {"name": "spender", "type": "address"},
    {"name": "value", "type": "uint256"},
    {"name": "nonce", "type": "uint256"},
    {"name": "deadline", "type": "uint256"},
]

ALLOWANCE_PERMIT_TYPE: List[Dict[str, str]] = [
    {"name": "holder", "type": "address"},
    {"name": "spender", "type": "address"},
    {"name": "nonce", "type": "uint256"},
    {"name": "expiry", "type": "uint256"},
    {"name": "allowed", "type": "bool"},
]


# -----------------------------
# EIP-712 Domain
# -----------------------------

@dataclass
class EIP712Domain:
    """
    EIP-712 domain separator.
    Binds a signature to exactly one chain and one verifying contract.
    """
    name: str
    version: str
    chainId: int
    verifyingContract: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "version": self.version,
            "chainId": self.chainId,
            "verifyingContract": self.verifyingContract,
        }


def get_domain(contract_address: str, chain_id: int, domain_name: str) -> EIP712Domain:
    return EIP712Domain(
        name=domain_name,
        version="1",
        chainId=chain_id,
        verifyingContract=contract_address,
    )


# -----------------------------
# Forwarder request
# -----------------------------

@dataclass
class ForwarderMessage:
    """
    Message payload of a ``Forwarder`` typed document.

    The typed definition names its first field ``from``, a Python reserved
    word; this class uses ``sender`` and maps it to ``from`` in ``to_dict()``.

    Attributes:
        sender: Account authorizing the call (maps to `from`).
        to: Target contract the forwarder will call.
        feeToken: Token the fee is paid in.
        useOraclePriceFeed: Whether the forwarder prices the fee from an oracle.
        maxTokenAmount: Upper bound of the fee in fee-token units.
        deadline: Absolute UNIX timestamp after which execution is rejected.
        nonce: Forwarder nonce of `sender` at signing time.
        data: Encoded call the target executes (0x-prefixed hex).
        extendCategories: Extension category ids.
    """
    sender: str
    to: str
    feeToken: str
    useOraclePriceFeed: bool
    maxTokenAmount: int
    deadline: int
    nonce: int
    data: str
    extendCategories: List[int] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "from": self.sender,
            "to": self.to,
            "feeToken": self.feeToken,
            "useOraclePriceFeed": self.useOraclePriceFeed,
            "maxTokenAmount": self.maxTokenAmount,
            "deadline": self.deadline,
            "nonce": self.nonce,
            "data": self.data,
            "extendCategories": list(self.extendCategories),
        }


@dataclass
class ForwarderTypedData:
    """
    Container for a ``Forwarder`` typed document.

    ``to_dict()`` yields the ``{types, primaryType, domain, message}`` layout
    consumed by ``eth_account.sign_typed_data`` and ``eth_signTypedData_v4``.
    """
    domain: EIP712Domain
    message: ForwarderMessage

    primary_type: str = "Forwarder"

    types: Dict[str, List[Dict[str, str]]] = field(
        default_factory=lambda: {
            "EIP712Domain": list(DOMAIN_TYPE),
            "Forwarder": list(FORWARDER_TYPE),
        }
    )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "types": self.types,
            "primaryType": self.primary_type,
            "domain": self.domain.to_dict(),
            "message": self.message.to_dict(),
        }


# -----------------------------
# Permits
# -----------------------------

@dataclass
class PermitMessage:
    """
    Standard (EIP-2612) permit message.
    """
    owner: str
    spender: str
    value: int
    nonce: int
    deadline: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "owner": self.owner,
            "spender": self.spender,
            "value": self.value,
            "nonce": self.nonce,
            "deadline": self.deadline,
        }


@dataclass
class AllowancePermitMessage:
    """
    Allowance-style (DAI) permit message. Grants an unlimited allowance when
    ``allowed`` is true and expires at ``expiry``.
    """
    holder: str
    spender: str
    nonce: int
    expiry: int
    allowed: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "holder": self.holder,
            "spender": self.spender,
            "nonce": self.nonce,
            "expiry": self.expiry,
            "allowed": self.allowed,
        }


@dataclass
class PermitTypedData:
    """
    Container for a ``Permit`` typed document of either shape. The type
    schema follows the message class.
    """
    domain: EIP712Domain
    message: Union[PermitMessage, AllowancePermitMessage]

    primary_type: str = "Permit"

    def to_dict(self) -> Dict[str, Any]:
        permit_type = (
            ALLOWANCE_PERMIT_TYPE
            if isinstance(self.message, AllowancePermitMessage)
            else PERMIT_TYPE
        )
        return {
            "types": {
                "EIP712Domain": list(DOMAIN_TYPE),
                "Permit": list(permit_type),
            },
            "primaryType": self.primary_type,
            "domain": self.domain.to_dict(),
            "message": self.message.to_dict(),
        }


# -----------------------------
# Wire encoding
# -----------------------------

def _is_integer_type(type_name: str) -> bool:
    return type_name.startswith("uint") or type_name.startswith("int")


def _encode_value(type_name: str, value: Any) -> Any:
    if type_name.endswith("[]"):
        return [_encode_value(type_name[:-2], item) for item in value]
    if _is_integer_type(type_name) and isinstance(value, int) and not isinstance(value, bool):
        return hex(value)
    return value


def _decode_value(type_name: str, value: Any) -> Any:
    if type_name.endswith("[]"):
        return [_decode_value(type_name[:-2], item) for item in value]
    if _is_integer_type(type_name) and isinstance(value, str):
        return int(value, 16) if value.lower().startswith("0x") else int(value)
    return value


def to_wire_document(document: Dict[str, Any]) -> Dict[str, Any]:
    """
    Encode integer fields of a typed document's message as 0x-prefixed hex.

    The relay expects big numbers as hex strings. The transformation is driven
    by the document's own type schema and is exactly reversed by
    :func:`from_wire_document`. The result is a deep copy that shares no
    nested containers with ``document``.
    """
    primary = document["primaryType"]
    fields = document["types"][primary]
    message = document["message"]
    encoded = {f["name"]: _encode_value(f["type"], message[f["name"]]) for f in fields}
    wire = copy.deepcopy(document)
    wire["message"] = encoded
    return wire


def from_wire_document(document: Dict[str, Any]) -> Dict[str, Any]:
    """Inverse of :func:`to_wire_document`."""
    primary = document["primaryType"]
    fields = document["types"][primary]
    message = document["message"]
    decoded = {f["name"]: _decode_value(f["type"], message[f["name"]]) for f in fields}
    plain = copy.deepcopy(document)
    plain["message"] = decoded
    return plain
