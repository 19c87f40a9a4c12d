"""
On-Chain Reads

Side-effect-free queries the orchestrator makes before signing anything:
whether a target has sponsorship enabled, the caller's forwarder nonce,
whether an address carries code, and fee-token metadata. Also encodes
contract calls for both the forwarded and the direct paths.

Dependencies:
    - web3.py: For blockchain RPC interaction
"""

import logging
from typing import Any, Dict, List, Sequence

from web3 import AsyncWeb3

from .abis import get_conveyor_base_abi, get_decimals_abi, get_nonces_abi

logger = logging.getLogger(__name__)


class ChainReader:
    """
    Read-only view of one chain.

    Args:
        w3: ``AsyncWeb3`` instance for the target chain.

    Example::

        reader = ChainReader(AsyncWeb3(AsyncWeb3.AsyncHTTPProvider(rpc_url)))
        if await reader.is_sponsorship_enabled(target):
            nonce = await reader.current_nonce(forwarder, caller)
    """

    def __init__(self, w3: AsyncWeb3):
        self.w3 = w3

    async def is_sponsorship_enabled(self, target: str) -> bool:
        contract = self.w3.eth.contract(
            address=AsyncWeb3.to_checksum_address(target),
            abi=get_conveyor_base_abi(),
        )
        enabled = await contract.functions.conveyorIsEnabled().call()
        logger.debug("Sponsorship on %s: %s", target, enabled)
        return bool(enabled)

    async def current_nonce(self, forwarder: str, owner: str) -> int:
        """Forwarder request nonce of ``owner``."""
        contract = self.w3.eth.contract(
            address=AsyncWeb3.to_checksum_address(forwarder),
            abi=get_nonces_abi(),
        )
        return int(await contract.functions.nonces(AsyncWeb3.to_checksum_address(owner)).call())

    async def token_nonce(self, token: str, owner: str) -> int:
        """EIP-2612 (or DAI) permit nonce of ``owner`` on ``token``."""
        contract = self.w3.eth.contract(
            address=AsyncWeb3.to_checksum_address(token),
            abi=get_nonces_abi(),
        )
        return int(await contract.functions.nonces(AsyncWeb3.to_checksum_address(owner)).call())

    async def has_on_chain_code(self, address: str) -> bool:
        """True when ``address`` is a contract account."""
        code = await self.w3.eth.get_code(AsyncWeb3.to_checksum_address(address))
        return len(code) > 0

    async def token_decimals(self, token: str) -> int:
        contract = self.w3.eth.contract(
            address=AsyncWeb3.to_checksum_address(token),
            abi=get_decimals_abi(),
        )
        return int(await contract.functions.decimals().call())

    def encode_call(
        self,
        target: str,
        abi: List[Dict[str, Any]],
        method: str,
        params: Sequence[Any] = (),
    ) -> str:
        """
        ABI-encode ``method(*params)`` on ``target``.

        Returns:
            0x-prefixed calldata.
        """
        contract = self.w3.eth.contract(address=AsyncWeb3.to_checksum_address(target), abi=abi)
        return contract.encode_abi(method, args=list(params))
