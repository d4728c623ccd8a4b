"""Shared fakes for exercising runs without a ledger node."""
import asyncio
from dataclasses import dataclass, field

import pytest

from random_workload.chain import ChainClientError, Receipt

ACCOUNT = "rHb9CJAWyB4rj91VRWn96DkukG4bwdtyTh"
DESTINATION = "rrrrrrrrrrrrrrrrrrrrBZbvji"


@dataclass
class FakeSigner:
    address: str = ACCOUNT


@dataclass
class FakeChain:
    """Ledger stand-in shared by every client generation of one run.

    Hashes are ``"<generation>:<sequence>"`` so a test can tell which client
    submitted a transfer and which client looked its receipt up.
    """
    stalled_generations: set[int] = field(default_factory=set)
    lookups_before_receipt: int = 1
    fail_submit: bool = False
    submit_delays: dict[int, float] = field(default_factory=dict)  # by amount
    lookup_delay: float = 0.0
    clients: list["FakeClient"] = field(default_factory=list)
    submitted: list[tuple[int, int, str, int]] = field(default_factory=list)
    lookups: list[tuple[int, str]] = field(default_factory=list)

    def client_factory(self, signer) -> "FakeClient":
        client = FakeClient(signer, self, generation=len(self.clients))
        self.clients.append(client)
        return client

    def receipt_for(self, tx_hash: str) -> Receipt | None:
        generation = int(tx_hash.split(":")[0])
        if generation in self.stalled_generations:
            return None
        seen = sum(1 for _, h in self.lookups if h == tx_hash)
        if seen < self.lookups_before_receipt:
            return None
        return Receipt(tx_hash=tx_hash, ledger_index=100, result="tesSUCCESS")


class FakeClient:
    def __init__(self, signer, chain: FakeChain, generation: int):
        self.signer = signer
        self.chain = chain
        self.generation = generation
        self.next_seq = 0

    @property
    def address(self) -> str:
        return self.signer.address

    async def submit_transfer(self, to: str, amount: int) -> str:
        if self.chain.fail_submit:
            raise ChainClientError("connection refused")
        if delay := self.chain.submit_delays.get(amount):
            await asyncio.sleep(delay)
        seq = self.next_seq
        self.next_seq += 1
        self.chain.submitted.append((self.generation, seq, to, amount))
        return f"{self.generation}:{seq}"

    async def get_receipt(self, tx_hash: str) -> Receipt | None:
        if self.chain.lookup_delay:
            await asyncio.sleep(self.chain.lookup_delay)
        self.chain.lookups.append((self.generation, tx_hash))
        return self.chain.receipt_for(tx_hash)


class ScriptedRng:
    """Random source that replays fixed draws, in order."""

    def __init__(self, draws, address_bytes=b"\x01" * 20):
        self.draws = list(draws)
        self.address_bytes = address_bytes

    def randrange(self, stop):
        value = self.draws.pop(0)
        assert 0 <= value < stop
        return value

    def randbytes(self, n):
        return self.address_bytes[:n]


@pytest.fixture
def chain():
    return FakeChain()


@pytest.fixture
def signer():
    return FakeSigner()
