import asyncio
import logging
import time
from dataclasses import dataclass, field
from datetime import timedelta

from xrpl.core.addresscodec import encode_classic_address

import random_workload.constants as C
from random_workload import randoms
from random_workload.chain import ChainClient

log = logging.getLogger("random_workload.operations")


@dataclass(frozen=True, slots=True)
class Transfer:
    to: str
    amount: int

    kind = C.OpKind.TRANSFER

    @classmethod
    def sample(cls, rng=None) -> "Transfer":
        rng = rng or randoms.source()
        return cls(to=encode_classic_address(rng.randbytes(20)), amount=rng.randrange(C.MAX_TRANSFER_AMOUNT))

    async def execute(self, client: ChainClient) -> "PendingReceipt":
        tx_hash = await client.submit_transfer(self.to, self.amount)
        log.info("Submitted transaction: %s", tx_hash)
        return PendingReceipt(transfer=self, tx_hash=tx_hash)


@dataclass(frozen=True, slots=True)
class Wait:
    duration: timedelta

    kind = C.OpKind.WAIT

    @classmethod
    def sample(cls, rng=None) -> "Wait":
        rng = rng or randoms.source()
        return cls(duration=timedelta(milliseconds=rng.randrange(C.MAX_WAIT_MS)))

    async def execute(self, client: ChainClient) -> None:
        await asyncio.sleep(self.duration.total_seconds())
        log.info("Finished sleep of %s", self.duration)
        return None


Operation = Transfer | Wait


@dataclass(slots=True)
class PendingReceipt:
    """A submitted transfer whose receipt has not been seen yet."""
    transfer: Transfer
    tx_hash: str
    submitted_at: float = field(default_factory=time.monotonic)

    def elapsed(self) -> float:
        return time.monotonic() - self.submitted_at


# Only one kind of effect exists today.
Effect = PendingReceipt


def sample_operation(rng=None) -> Operation:
    """Draw a Transfer or a Wait with equal probability."""
    rng = rng or randoms.source()
    match rng.randrange(2):
        case 0:
            return Transfer.sample(rng)
        case 1:
            return Wait.sample(rng)
    raise AssertionError("unreachable")


async def execute(operation: Operation, client: ChainClient) -> Effect | None:
    return await operation.execute(client)
