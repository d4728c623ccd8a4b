from random_workload.chain import ChainClientError, Receipt, SequencedClient, Signer
from random_workload.operations import Effect, Operation, PendingReceipt, Transfer, Wait, execute
from random_workload.run import Run, RunState
from random_workload.script import Operations, ScriptFormatError

__all__ = [
    "ChainClientError",
    "Effect",
    "Operation",
    "Operations",
    "PendingReceipt",
    "Receipt",
    "Run",
    "RunState",
    "ScriptFormatError",
    "SequencedClient",
    "Signer",
    "Transfer",
    "Wait",
    "execute",
]
