"""XRPL-backed chain client used by the run coordinator.

``Signer`` is the immutable signing identity: an RPC client plus a wallet.
``SequencedClient`` wraps a signer and hands out account sequence numbers.
It is never repaired in place; when the sequence drifts from the ledger the
caller throws it away and builds a new one from the same signer.
"""
import asyncio
import hashlib
import logging
from dataclasses import dataclass
from typing import Protocol

import httpx

from xrpl.asyncio.clients import AsyncJsonRpcClient
from xrpl.constants import CryptoAlgorithm
from xrpl.core.binarycodec import encode, encode_for_signing
from xrpl.core.keypairs import sign
from xrpl.models import SubmitOnly
from xrpl.models.requests import AccountInfo, Tx
from xrpl.models.transactions import Payment
from xrpl.wallet import Wallet

import random_workload.constants as C

log = logging.getLogger("random_workload.chain")


class ChainClientError(Exception):
    """The node could not be reached or refused an RPC request."""


@dataclass(frozen=True, slots=True)
class Receipt:
    tx_hash: str
    ledger_index: int
    result: str


class ChainClient(Protocol):
    @property
    def address(self) -> str: ...
    async def submit_transfer(self, to: str, amount: int) -> str: ...
    async def get_receipt(self, tx_hash: str) -> Receipt | None: ...


def _sha512half(b: bytes) -> bytes:
    return hashlib.sha512(b).digest()[:32]


def _txid_from_signed_blob_hex(signed_blob_hex: str) -> str:
    # XRPL txid = SHA512Half(0x54584E00 || signed_bytes)
    return _sha512half(bytes.fromhex("54584E00") + bytes.fromhex(signed_blob_hex)).hex().upper()


class Signer:
    def __init__(self, client: AsyncJsonRpcClient, wallet: Wallet, *, rpc_timeout: float = C.RPC_TIMEOUT):
        self.client = client
        self.wallet = wallet
        self.rpc_timeout = rpc_timeout

    @classmethod
    def from_seed(cls, url: str, seed: str, algorithm: str = "secp256k1", **kwargs) -> "Signer":
        wallet = Wallet.from_seed(seed, algorithm=CryptoAlgorithm(algorithm.lower()))
        return cls(AsyncJsonRpcClient(url), wallet, **kwargs)

    @property
    def address(self) -> str:
        return self.wallet.address

    async def request(self, req):
        try:
            resp = await asyncio.wait_for(self.client.request(req), timeout=self.rpc_timeout)
        except asyncio.TimeoutError as e:
            raise ChainClientError(f"{req.method} timed out after {self.rpc_timeout}s") from e
        except httpx.HTTPError as e:
            raise ChainClientError(f"{req.method} failed: {e}") from e
        return resp

    def sign(self, tx: dict) -> tuple[str, str]:
        """Sign a tx_json in place and return ``(signed_blob_hex, tx_hash)``."""
        tx["SigningPubKey"] = self.wallet.public_key
        signing_blob = encode_for_signing(tx)
        to_sign = signing_blob if isinstance(signing_blob, str) else signing_blob.hex()
        tx["TxnSignature"] = sign(to_sign, self.wallet.private_key)
        signed_blob_hex = encode(tx)
        return signed_blob_hex, _txid_from_signed_blob_hex(signed_blob_hex)


class SequencedClient:
    """Assigns monotonically increasing sequence numbers to the signer's transfers.

    The starting sequence is read from the ledger on first use, so a freshly
    constructed instance is always in sync with chain state.
    """

    def __init__(self, signer: Signer, *, fee_drops: int = C.DEFAULT_FEE_DROPS):
        self.signer = signer
        self.fee_drops = fee_drops
        self._lock = asyncio.Lock()
        self.next_seq: int | None = None

    def __repr__(self):
        return f"SequencedClient(address={self.address}, next_seq={self.next_seq})"

    @property
    def address(self) -> str:
        return self.signer.address

    async def alloc_seq(self) -> int:
        async with self._lock:
            if self.next_seq is None:
                ai = await self.signer.request(AccountInfo(account=self.address, ledger_index="current", strict=True))
                if not ai.is_successful():
                    raise ChainClientError(f"account_info failed for {self.address}: {ai.result}")
                self.next_seq = ai.result["account_data"]["Sequence"]
                log.debug("Synced sequence for %s at %s", self.address, self.next_seq)

            s = self.next_seq
            self.next_seq += 1
            return s

    async def submit_transfer(self, to: str, amount: int) -> str:
        # A 0-drop Payment fails with temBAD_AMOUNT and consumes no sequence; later ones stall until recovery.
        tx = Payment(account=self.address, destination=to, amount=str(amount)).to_xrpl()
        if tx.get("Flags") == 0:
            del tx["Flags"]
        tx["Sequence"] = await self.alloc_seq()
        tx["Fee"] = str(self.fee_drops)
        signed_blob_hex, local_txid = self.signer.sign(tx)

        resp = await self.signer.request(SubmitOnly(tx_blob=signed_blob_hex))
        if not resp.is_successful():
            raise ChainClientError(f"submit failed seq={tx['Sequence']}: {resp.result}")

        res = resp.result
        er = res.get("engine_result")
        if isinstance(er, str) and not er.startswith("tes"):
            # Not applied yet, possibly never. The receipt tracker decides.
            log.warning("%s - Payment seq=%s hash=%s", er, tx["Sequence"], local_txid)
        srv_txid = res.get("tx_json", {}).get("hash")
        return srv_txid or local_txid

    async def get_receipt(self, tx_hash: str) -> Receipt | None:
        txr = await self.signer.request(Tx(transaction=tx_hash))
        if not txr.is_successful():
            if txr.result.get("error") == "txnNotFound":
                return None
            raise ChainClientError(f"tx lookup failed for {tx_hash}: {txr.result}")
        if not txr.result.get("validated"):
            return None
        return Receipt(
            tx_hash=tx_hash,
            ledger_index=int(txr.result["ledger_index"]),
            result=txr.result["meta"]["TransactionResult"],
        )
