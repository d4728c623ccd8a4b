"""Submit a script of operations and follow every transfer until it lands.

Two tasks share one ``RunState``: ``submit_operations`` walks the script once,
in order, and ``wait_for_effects`` polls receipts for whatever it has queued.
If any receipt takes longer than ``receipt_timeout`` the sequence allocator is
assumed to have drifted from the ledger; everything still queued is dropped and
a fresh ``SequencedClient`` is installed before another transfer can be queued.
"""
import asyncio
import logging
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass, field

import aiorwlock

import random_workload.constants as C
from random_workload.chain import ChainClient, SequencedClient, Signer
from random_workload.operations import Effect, PendingReceipt, Transfer
from random_workload.script import Operations

log = logging.getLogger("random_workload.run")


@dataclass
class RunState:
    client: ChainClient
    pending: deque[Effect] = field(default_factory=deque)
    submit_operations_done: bool = False
    submitted: int = 0
    confirmed: int = 0
    cleared: int = 0
    recoveries: int = 0


class Run:
    def __init__(
        self,
        operations: Operations,
        signer: Signer,
        *,
        client_factory: Callable[[Signer], ChainClient] = SequencedClient,
        receipt_timeout: float = C.RECEIPT_TIMEOUT,
        idle_backoff: float = C.IDLE_BACKOFF,
        pending_backoff: float = C.PENDING_BACKOFF,
    ):
        self.operations = operations
        # Kept so the sequence allocator can be rebuilt from scratch.
        self.signer = signer
        self.client_factory = client_factory
        self.receipt_timeout = receipt_timeout
        self.idle_backoff = idle_backoff
        self.pending_backoff = pending_backoff
        self.lock = aiorwlock.RWLock()
        self.state = RunState(client=client_factory(signer))

    async def submit_operations(self) -> None:
        total = len(self.operations)
        for index, operation in enumerate(self.operations):
            log.info("Submitting operation %6d / %d: %s", index, total, operation)
            if isinstance(operation, Transfer):
                # Hold the read side so the client can't be swapped mid-submit.
                async with self.lock.reader_lock:
                    client = self.state.client
                    effect = await operation.execute(client)
                async with self.lock.writer_lock:
                    self.state.submitted += 1
                    if self.state.client is client:
                        self.state.pending.append(effect)
                    else:
                        # A recovery ran between submit and enqueue; this effect belongs to the old client.
                        self.state.cleared += 1
                        log.info("%s: %s", C.ReceiptOutcome.CLEARED, effect)
            else:
                await operation.execute(self.state.client)

        async with self.lock.writer_lock:
            self.state.submit_operations_done = True
        log.info("Submitted all %s operations", total)

    def _reinit_client(self) -> None:
        """Drop every queued effect and install a fresh client. Caller holds the writer lock."""
        log.info("Removing all pending effects")
        while self.state.pending:
            effect = self.state.pending.popleft()
            self.state.cleared += 1
            log.info("%s: %s", C.ReceiptOutcome.CLEARED, effect)
        log.info("Reinitializing sequence allocator")
        self.state.client = self.client_factory(self.signer)
        self.state.recoveries += 1

    async def _check_receipt(self, effect: PendingReceipt) -> None:
        async with self.lock.reader_lock:
            receipt = await self.state.client.get_receipt(effect.tx_hash)

        elapsed = effect.elapsed()
        if receipt is not None:
            log.info("hash=%s %s=%.3fs", effect.tx_hash, C.ReceiptOutcome.RECEIVED, elapsed)
            async with self.lock.writer_lock:
                self.state.confirmed += 1
            return

        log.info("hash=%s %s=%.3fs", effect.tx_hash, C.ReceiptOutcome.WAITING, elapsed)
        if elapsed > self.receipt_timeout:
            log.info("hash=%s %s", effect.tx_hash, C.ReceiptOutcome.TIMEOUT)
            # One writer lock for drain and swap so no transfer is queued against the stale client.
            async with self.lock.writer_lock:
                self.state.cleared += 1
                self._reinit_client()
        else:
            async with self.lock.writer_lock:
                self.state.pending.append(effect)
            # No receipt for this transaction yet, wait a bit.
            await asyncio.sleep(self.pending_backoff)

    async def wait_for_effects(self) -> None:
        while True:
            async with self.lock.reader_lock:
                log.info("num_pending_effects=%s", len(self.state.pending))
            async with self.lock.writer_lock:
                effect = self.state.pending.popleft() if self.state.pending else None

            if effect is not None:
                await self._check_receipt(effect)
            else:
                # There are no pending effects, wait a bit.
                await asyncio.sleep(self.idle_backoff)

            async with self.lock.reader_lock:
                if self.state.submit_operations_done and not self.state.pending:
                    log.info("All effects completed!")
                    break

    async def run(self) -> None:
        """Run submission and receipt tracking together; a failure in either cancels both."""
        async with asyncio.TaskGroup() as tg:
            tg.create_task(self.submit_operations(), name="submit_operations")
            tg.create_task(self.wait_for_effects(), name="wait_for_effects")

    def snapshot(self) -> dict:
        s = self.state
        return {
            "operations": len(self.operations),
            "account": s.client.address,
            "pending": len(s.pending),
            "submit_operations_done": s.submit_operations_done,
            "submitted": s.submitted,
            "confirmed": s.confirmed,
            "cleared": s.cleared,
            "recoveries": s.recoveries,
        }

    def snapshot_pending(self) -> list[dict]:
        return [
            {
                "tx_hash": e.tx_hash,
                "to": e.transfer.to,
                "amount": e.transfer.amount,
                "age": round(e.elapsed(), 3),
            }
            for e in self.state.pending
        ]
