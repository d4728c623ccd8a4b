import asyncio

import pytest
from xrpl.core.binarycodec import decode
from xrpl.models.requests import AccountInfo, Tx
from xrpl.models.response import Response, ResponseStatus
from xrpl.models import SubmitOnly
from xrpl.wallet import Wallet

from random_workload.chain import ChainClientError, Receipt, SequencedClient, Signer, _txid_from_signed_blob_hex

DESTINATION = Wallet.create().address


def ok(result: dict) -> Response:
    return Response(status=ResponseStatus.SUCCESS, result=result)


def error(result: dict) -> Response:
    return Response(status=ResponseStatus.ERROR, result=result)


class FakeRpc:
    """Answers account_info / submit / tx like a node would."""

    def __init__(self, *, sequence=42, engine_result="tesSUCCESS", delay=0.0):
        self.sequence = sequence
        self.engine_result = engine_result
        self.delay = delay
        self.requests = []
        self.tx_responses: dict[str, Response] = {}
        self.submit_response: Response | None = None

    async def request(self, req):
        self.requests.append(req)
        if self.delay:
            await asyncio.sleep(self.delay)
        if isinstance(req, AccountInfo):
            return ok({"account_data": {"Account": req.account, "Sequence": self.sequence}})
        if isinstance(req, SubmitOnly):
            if self.submit_response is not None:
                return self.submit_response
            tx_json = decode(req.tx_blob)
            tx_json["hash"] = _txid_from_signed_blob_hex(req.tx_blob)
            return ok({"engine_result": self.engine_result, "tx_blob": req.tx_blob, "tx_json": tx_json})
        if isinstance(req, Tx):
            return self.tx_responses.get(req.transaction, error({"error": "txnNotFound"}))
        raise AssertionError(f"unexpected request {req}")

    def of_type(self, kind):
        return [r for r in self.requests if isinstance(r, kind)]


@pytest.fixture
def rpc():
    return FakeRpc()


@pytest.fixture
def signer(rpc):
    return Signer(rpc, Wallet.create(), rpc_timeout=0.5)


@pytest.mark.asyncio
async def test_sequence_synced_once_then_incremented(rpc, signer):
    client = SequencedClient(signer)
    assert [await client.alloc_seq() for _ in range(3)] == [42, 43, 44]
    assert len(rpc.of_type(AccountInfo)) == 1


@pytest.mark.asyncio
async def test_concurrent_allocations_are_unique(rpc, signer):
    client = SequencedClient(signer)
    seqs = await asyncio.gather(*(client.alloc_seq() for _ in range(10)))
    assert sorted(seqs) == list(range(42, 52))
    assert len(rpc.of_type(AccountInfo)) == 1


@pytest.mark.asyncio
async def test_fresh_client_resyncs_from_ledger(rpc, signer):
    first = SequencedClient(signer)
    await first.alloc_seq()
    await first.alloc_seq()

    rpc.sequence = 43
    second = SequencedClient(signer)
    assert await second.alloc_seq() == 43
    assert first.next_seq == 44
    assert len(rpc.of_type(AccountInfo)) == 2


@pytest.mark.asyncio
async def test_submit_transfer_signs_payment(rpc, signer):
    client = SequencedClient(signer, fee_drops=12)

    tx_hash = await client.submit_transfer(DESTINATION, 517)

    [submit] = rpc.of_type(SubmitOnly)
    tx = decode(submit.tx_blob)
    assert tx["TransactionType"] == "Payment"
    assert tx["Account"] == signer.address
    assert tx["Destination"] == DESTINATION
    assert tx["Amount"] == "517"
    assert tx["Sequence"] == 42
    assert tx["Fee"] == "12"
    assert tx["SigningPubKey"] == signer.wallet.public_key
    assert "TxnSignature" in tx
    assert tx_hash == _txid_from_signed_blob_hex(submit.tx_blob)


@pytest.mark.asyncio
async def test_submit_transfer_zero_amount(rpc, signer):
    client = SequencedClient(signer)
    await client.submit_transfer(DESTINATION, 0)
    [submit] = rpc.of_type(SubmitOnly)
    assert decode(submit.tx_blob)["Amount"] == "0"


@pytest.mark.asyncio
async def test_non_success_engine_result_still_returns_hash(signer):
    signer.client.engine_result = "terPRE_SEQ"
    client = SequencedClient(signer)
    tx_hash = await client.submit_transfer(DESTINATION, 1)
    assert len(tx_hash) == 64
    assert client.next_seq == 43


@pytest.mark.asyncio
async def test_submit_rpc_error_is_fatal(rpc, signer):
    rpc.submit_response = error({"error": "invalidParams"})
    client = SequencedClient(signer)
    with pytest.raises(ChainClientError):
        await client.submit_transfer(DESTINATION, 1)


@pytest.mark.asyncio
async def test_rpc_timeout_is_fatal():
    signer = Signer(FakeRpc(delay=1.0), Wallet.create(), rpc_timeout=0.01)
    client = SequencedClient(signer)
    with pytest.raises(ChainClientError):
        await client.submit_transfer(DESTINATION, 1)


@pytest.mark.asyncio
async def test_receipt_not_found(signer):
    assert await SequencedClient(signer).get_receipt("AB" * 32) is None


@pytest.mark.asyncio
async def test_receipt_not_validated_yet(rpc, signer):
    rpc.tx_responses["AB" * 32] = ok({"validated": False})
    assert await SequencedClient(signer).get_receipt("AB" * 32) is None


@pytest.mark.asyncio
async def test_receipt_validated(rpc, signer):
    tx_hash = "CD" * 32
    rpc.tx_responses[tx_hash] = ok({
        "validated": True,
        "ledger_index": 1234,
        "meta": {"TransactionResult": "tecNO_DST_INSUF_XRP"},
    })
    receipt = await SequencedClient(signer).get_receipt(tx_hash)
    assert receipt == Receipt(tx_hash=tx_hash, ledger_index=1234, result="tecNO_DST_INSUF_XRP")


@pytest.mark.asyncio
async def test_receipt_lookup_error_is_fatal(rpc, signer):
    rpc.tx_responses["EF" * 32] = error({"error": "noNetwork"})
    with pytest.raises(ChainClientError):
        await SequencedClient(signer).get_receipt("EF" * 32)
