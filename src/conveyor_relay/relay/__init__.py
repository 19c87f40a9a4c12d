from .builder import RelayOperation, RelayRequestBuilder, select_operation, parse_relay_payload
from .client import RelayClient

__all__ = [
    "RelayOperation",
    "RelayRequestBuilder",
    "select_operation",
    "parse_relay_payload",
    "RelayClient",
]
