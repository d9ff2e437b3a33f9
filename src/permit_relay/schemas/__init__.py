from .bases import CanonicalModel, BaseSignature, BasePermit, TransactionStatus, BaseTransactionConfirmation

__all__ = [
    "CanonicalModel",
    "BaseSignature",
    "BasePermit",
    "TransactionStatus",
    "BaseTransactionConfirmation",
]
