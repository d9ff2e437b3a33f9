from .bases import Ledger, LedgerReceipt, TransferLeg
from .memory import InMemoryLedger
from .onchain import Web3Ledger

__all__ = [
    "Ledger",
    "LedgerReceipt",
    "TransferLeg",
    "InMemoryLedger",
    "Web3Ledger",
]
