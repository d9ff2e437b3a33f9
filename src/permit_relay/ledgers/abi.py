"""
Facilitator and ERC-20/EIP-2612 Contract ABI Module

Minimal ABI fragments for the calls ``Web3Ledger`` makes.

Usage:
    from .abi import get_token_abi, get_facilitator_abi

    token = web3.eth.contract(address=token_address, abi=get_token_abi())
    balance = await token.functions.balanceOf(holder).call()
"""

from typing import Any, Dict, List


def get_token_abi() -> List[Dict[str, Any]]:
    """
    Get ABI for the token reads: ``balanceOf``, ``decimals``, ``nonces``,
    ``name`` and ``version``.

    Returns:
        List[Dict[str, Any]]: ABI fragments for the token contract.
    """
    return [
        {
            "name": "balanceOf",
            "type": "function",
            "stateMutability": "view",
            "inputs": [{"name": "account", "type": "address"}],
            "outputs": [{"name": "", "type": "uint256"}],
        },
        {
            "name": "decimals",
            "type": "function",
            "stateMutability": "view",
            "inputs": [],
            "outputs": [{"name": "", "type": "uint8"}],
        },
        {
            "name": "nonces",
            "type": "function",
            "stateMutability": "view",
            "inputs": [{"name": "owner", "type": "address"}],
            "outputs": [{"name": "", "type": "uint256"}],
        },
        {
            "name": "name",
            "type": "function",
            "stateMutability": "view",
            "inputs": [],
            "outputs": [{"name": "", "type": "string"}],
        },
        {
            "name": "version",
            "type": "function",
            "stateMutability": "view",
            "inputs": [],
            "outputs": [{"name": "", "type": "string"}],
        },
    ]


def get_facilitator_abi() -> List[Dict[str, Any]]:
    """
    Get ABI for the facilitator contract.

    ``facilitateTransferWithPermit`` calls the token's ``permit`` and then
    ``transferFrom`` for the fee and the net amount in one transaction.
    ``facilitateBulkTransferWithPermit`` does the same for a recipient list.
    Both revert with ``InvalidPermitSignature`` when ``permit`` fails.

    Returns:
        List[Dict[str, Any]]: ABI fragments for the facilitator contract.
    """
    return [
        {
            "name": "facilitateTransferWithPermit",
            "type": "function",
            "stateMutability": "nonpayable",
            "inputs": [
                {"name": "owner", "type": "address"},
                {"name": "to", "type": "address"},
                {"name": "value", "type": "uint256"},
                {"name": "deadline", "type": "uint256"},
                {"name": "v", "type": "uint8"},
                {"name": "r", "type": "bytes32"},
                {"name": "s", "type": "bytes32"},
                {"name": "feeAmount", "type": "uint256"},
            ],
            "outputs": [],
        },
        {
            "name": "facilitateBulkTransferWithPermit",
            "type": "function",
            "stateMutability": "nonpayable",
            "inputs": [
                {"name": "owner", "type": "address"},
                {"name": "recipients", "type": "address[]"},
                {"name": "amounts", "type": "uint256[]"},
                {"name": "totalValue", "type": "uint256"},
                {"name": "deadline", "type": "uint256"},
                {"name": "v", "type": "uint8"},
                {"name": "r", "type": "bytes32"},
                {"name": "s", "type": "bytes32"},
                {"name": "feeAmount", "type": "uint256"},
            ],
            "outputs": [],
        },
    ]
