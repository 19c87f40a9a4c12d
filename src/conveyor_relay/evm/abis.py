"""
Contract ABI Fragments

Minimal ABI definitions for the contracts the meta-transaction client talks to:

    - ERC-20 fee tokens: ``decimals``, ``nonces``, ``approve``
    - The forwarder: ``nonces(address)`` and the ``MetaStatus`` event
    - Sponsorship-aware target contracts (``ConveyorBase``):
      ``conveyorIsEnabled``, ``enableConveyorProtection``,
      ``disableConveyorProtection``

Usage:
    from conveyor_relay.evm.abis import get_forwarder_abi

    forwarder = w3.eth.contract(address=forwarder_address, abi=get_forwarder_abi())
    nonce = await forwarder.functions.nonces(owner).call()
"""

from typing import Dict, Any, List


def get_decimals_abi() -> List[Dict[str, Any]]:
    """
    Get ABI for ERC20 `decimals()`.

    Returns:
        List[Dict[str, Any]]: ABI for ERC20 `decimals` function.
    """
    return [
        {
            "name": "decimals",
            "type": "function",
            "stateMutability": "view",
            "inputs": [],
            "outputs": [{"name": "", "type": "uint8"}],
        }
    ]


def get_nonces_abi() -> List[Dict[str, Any]]:
    """
    Get ABI for `nonces(owner)`.

    Shared by EIP-2612 tokens (permit nonce) and the forwarder (request nonce).

    Returns:
        List[Dict[str, Any]]: ABI for the `nonces` view function.
    """
    return [
        {
            "name": "nonces",
            "type": "function",
            "stateMutability": "view",
            "inputs": [{"name": "owner", "type": "address"}],
            "outputs": [{"name": "", "type": "uint256"}],
        }
    ]


def get_approve_abi() -> List[Dict[str, Any]]:
    """
    Get ABI for ERC20 `approve(spender, amount)`.

    Returns:
        List[Dict[str, Any]]: ABI for ERC20 `approve` function.
    Example:
        abi = get_approve_abi()
        contract = web3.eth.contract(address=token_address, abi=abi)
        tx = contract.functions.approve(spender, amount).build_transaction({...})
    """
    return [
        {
            "name": "approve",
            "type": "function",
            "stateMutability": "nonpayable",
            "inputs": [
                {"name": "spender", "type": "address"},
                {"name": "amount", "type": "uint256"},
            ],
            "outputs": [{"name": "", "type": "bool"}],
        }
    ]


def get_fee_token_abi() -> List[Dict[str, Any]]:
    return get_decimals_abi() + get_nonces_abi() + get_approve_abi()


def get_meta_status_event_abi() -> Dict[str, Any]:
    """
    Get ABI for the forwarder's ``MetaStatus(address sender, bool success, string error)`` event.

    None of the fields are indexed, so all three live in the log's data.
    """
    return {
        "name": "MetaStatus",
        "type": "event",
        "anonymous": False,
        "inputs": [
            {"name": "sender", "type": "address", "indexed": False},
            {"name": "success", "type": "bool", "indexed": False},
            {"name": "error", "type": "string", "indexed": False},
        ],
    }


def get_forwarder_abi() -> List[Dict[str, Any]]:
    return get_nonces_abi() + [get_meta_status_event_abi()]


def get_conveyor_base_abi() -> List[Dict[str, Any]]:
    """
    Get ABI for sponsorship-aware target contracts.

    Returns:
        List[Dict[str, Any]]: ``conveyorIsEnabled`` view plus the owner-only
        ``enableConveyorProtection`` / ``disableConveyorProtection`` toggles.
    """
    return [
        {
            "name": "conveyorIsEnabled",
            "type": "function",
            "stateMutability": "view",
            "inputs": [],
            "outputs": [{"name": "", "type": "bool"}],
        },
        {
            "name": "enableConveyorProtection",
            "type": "function",
            "stateMutability": "nonpayable",
            "inputs": [],
            "outputs": [],
        },
        {
            "name": "disableConveyorProtection",
            "type": "function",
            "stateMutability": "nonpayable",
            "inputs": [],
            "outputs": [],
        },
    ]
