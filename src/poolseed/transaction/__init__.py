from .sender import TransactionBroadcast, TransactionConfirmed, TransactionSender, receipt_hash

__all__ = (
    "TransactionBroadcast",
    "TransactionConfirmed",
    "TransactionSender",
    "receipt_hash",
)
