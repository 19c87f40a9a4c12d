from .bases import CanonicalModel, MetaTxErrorKind, SubmissionPath, RelayOutcome, MetaTxOutcome
from .rpc import ClientRequestHeader, JsonRpcRequest, RelayResult, RelayResponse
from .versions import RelayApiVersion

__all__ = [
    "CanonicalModel",
    "MetaTxErrorKind",
    "SubmissionPath",
    "RelayOutcome",
    "MetaTxOutcome",
    "ClientRequestHeader",
    "JsonRpcRequest",
    "RelayResult",
    "RelayResponse",
    "RelayApiVersion",
]
