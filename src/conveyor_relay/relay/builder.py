"""
Relay Request Construction

Turns signed documents into the JSON-RPC call the relay executes. The
operation is a pure function of its inputs:

    caller is a contract account      -> executeV2 (tags the signer kind)
    no permit                         -> execute
    permit, allowance-style fee token -> executeWithDAIPermit
    permit, any other fee token       -> executeWithPermit

Parameter layouts:

    execute               [forwardDoc, v, r, s]
    executeWith*Permit    [forwardDoc, v, r, s, permitDoc, pv, pr, ps]
    executeV2             [forwardDoc, signature, signerKind(, permitDoc, permitSignature)]

Integer fields of every document are sent as 0x-prefixed hex strings.
``parse_relay_payload`` reverses the encoding exactly.
"""

import logging
from enum import Enum
from typing import Any, List, Optional, Tuple

from ..evm.schemas import FeeTokenKind, SignaturePackage, SignerKind
from ..evm.standards import from_wire_document, to_wire_document
from ..schemas.rpc import JsonRpcRequest
from ..schemas.versions import RelayApiVersion

logger = logging.getLogger(__name__)


class RelayOperation(str, Enum):
    """Relay methods, appended to ``/v{n}/metaTx/``."""
    EXECUTE = "execute"
    EXECUTE_WITH_PERMIT = "executeWithPermit"
    EXECUTE_WITH_ALLOWANCE_PERMIT = "executeWithDAIPermit"
    EXECUTE_V2 = "executeV2"

    @property
    def requires_permit(self) -> bool:
        return self in (RelayOperation.EXECUTE_WITH_PERMIT, RelayOperation.EXECUTE_WITH_ALLOWANCE_PERMIT)


def select_operation(
    has_permit: bool,
    fee_token_kind: FeeTokenKind = FeeTokenKind.STANDARD_PERMIT,
    caller_is_contract: bool = False,
) -> RelayOperation:
    """
    Choose the relay operation for a call.

    Args:
        has_permit: Whether a permit signature accompanies the request.
        fee_token_kind: Permit schema of the fee token.
        caller_is_contract: Whether the caller address carries code.
    """
    if caller_is_contract:
        return RelayOperation.EXECUTE_V2
    if not has_permit:
        return RelayOperation.EXECUTE
    if fee_token_kind == FeeTokenKind.ALLOWANCE_PERMIT:
        return RelayOperation.EXECUTE_WITH_ALLOWANCE_PERMIT
    return RelayOperation.EXECUTE_WITH_PERMIT


def _ecdsa_params(package: SignaturePackage) -> List[Any]:
    v, r, s = package.vrs()
    return [to_wire_document(package.document), str(v), r, s]


class RelayRequestBuilder:
    """
    Assembles relay payloads for one API version.

    Args:
        api_version: Relay API version used in method paths.

    Example::

        builder = RelayRequestBuilder()
        operation = select_operation(has_permit=False)
        payload = builder.build(operation, forward_package)
        payload.method  # "/v3/metaTx/execute"
    """

    def __init__(self, api_version: RelayApiVersion = RelayApiVersion.V3):
        self.api_version = api_version

    def method_path(self, operation: RelayOperation) -> str:
        return f"{self.api_version.method_prefix()}/{operation.value}"

    def build(
        self,
        operation: RelayOperation,
        forward: SignaturePackage,
        permit: Optional[SignaturePackage] = None,
        caller_is_contract: bool = False,
        request_id: int = 1,
    ) -> JsonRpcRequest:
        """
        Build the relay call.

        Args:
            operation: Relay operation, usually from :func:`select_operation`.
            forward: Signed ``Forwarder`` document.
            permit: Signed ``Permit`` document, when the operation carries one.
            caller_is_contract: Signer kind tagged by ``executeV2``.
            request_id: JSON-RPC id.

        Returns:
            A frozen :class:`JsonRpcRequest`.

        Raises:
            ValueError: The permit is missing for a permit operation, or
                present for plain ``execute``.
        """
        if operation.requires_permit and permit is None:
            raise ValueError(f"{operation.value} requires a permit signature")
        if operation == RelayOperation.EXECUTE and permit is not None:
            raise ValueError("execute does not carry a permit; use a permit operation")

        if operation == RelayOperation.EXECUTE_V2:
            signer_kind = SignerKind.CONTRACT if caller_is_contract else SignerKind.EOA
            params: List[Any] = [
                to_wire_document(forward.document),
                forward.signature,
                signer_kind.value,
            ]
            if permit is not None:
                params += [to_wire_document(permit.document), permit.signature]
        else:
            params = _ecdsa_params(forward)
            if permit is not None:
                params += _ecdsa_params(permit)

        payload = JsonRpcRequest(id=request_id, method=self.method_path(operation), params=tuple(params))
        logger.debug("Built relay payload %s with %d params", payload.method, len(payload.params))
        return payload


def _join_vrs(v: str, r: str, s: str) -> str:
    return "0x" + r.replace("0x", "").zfill(64) + s.replace("0x", "").zfill(64) + format(int(v), "02x")


def parse_relay_payload(
    payload: JsonRpcRequest,
) -> Tuple[RelayOperation, Tuple[Any, str], Optional[Tuple[Any, str]]]:
    """
    Recover the documents and signatures carried by a relay payload.

    Returns:
        ``(operation, (forward_document, forward_signature), permit_pair)``,
        where ``permit_pair`` is ``None`` when no permit is carried. Documents
        come back with integer fields restored, signatures as packed hex.
    """
    operation = RelayOperation(payload.method.rsplit("/", 1)[-1])
    params = payload.params

    if operation == RelayOperation.EXECUTE_V2:
        forward = (from_wire_document(params[0]), params[1])
        permit = (from_wire_document(params[3]), params[4]) if len(params) > 3 else None
        return operation, forward, permit

    forward = (from_wire_document(params[0]), _join_vrs(params[1], params[2], params[3]))
    permit = None
    if len(params) > 4:
        permit = (from_wire_document(params[4]), _join_vrs(params[5], params[6], params[7]))
    return operation, forward, permit
