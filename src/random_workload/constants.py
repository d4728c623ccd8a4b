from typing import Final
from enum import StrEnum


class OpKind(StrEnum):
    TRANSFER = "Transfer"
    WAIT     = "Wait"


class ReceiptOutcome(StrEnum):
    RECEIVED = "receive_receipt"
    WAITING  = "wait_receipt"
    TIMEOUT  = "receipt_timeout"
    CLEARED  = "effect_clear"


MAX_TRANSFER_AMOUNT: Final = 1000  # drops, exclusive
MAX_WAIT_MS: Final = 10_000  # exclusive

RECEIPT_TIMEOUT = 90.0  # seconds without a receipt before the whole batch is dropped
IDLE_BACKOFF = 5.0  # nothing pending
PENDING_BACKOFF = 1.0  # after a check that found no receipt yet

RPC_TIMEOUT = 2.0
DEFAULT_FEE_DROPS = 10

__all__ = [
    "DEFAULT_FEE_DROPS",
    "IDLE_BACKOFF",
    "MAX_TRANSFER_AMOUNT",
    "MAX_WAIT_MS",
    "PENDING_BACKOFF",
    "RECEIPT_TIMEOUT",
    "RPC_TIMEOUT",

    ######
    "OpKind",
    "ReceiptOutcome",
]
