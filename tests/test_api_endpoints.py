# tests/test_api_endpoints.py
import base64
import hashlib
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from chain_bridge.bridge_api import create_app
from chain_bridge.consensus.client import ABCIQueryResponse
from chain_bridge.errors import TransportError
from chain_bridge.governance import Proposal, Vote
from chain_bridge.runtime.stake_state import Candidate
from chain_bridge.runtime.wire import Encoder

from conftest import CHAIN_ID, make_backend

VOTER = "0x" + "dd" * 20


@pytest.fixture
def client(backend):
    return TestClient(create_app(backend))


def test_health_reports_chain(client):
    body = client.get("/health").json()
    assert body == {"ok": True, "ready": True, "chain_id": CHAIN_ID}


def test_health_learns_chain_id_late(engine, keystore, store):
    backend = make_backend(engine, keystore, store, chain_id=None)
    api = TestClient(create_app(backend))
    engine.network = ""
    assert api.get("/health").json()["ready"] is False
    engine.network = "late-chain"
    body = api.get("/health").json()
    assert body["ready"] is True
    assert body["chain_id"] == "late-chain"


def test_write_before_ready_is_503(engine, keystore, store, signer):
    engine.network = ""
    api = TestClient(create_app(make_backend(engine, keystore, store, chain_id=None)))
    r = api.post("/stake/accept_slot", json={"from": signer, "amount": 1, "slotId": "S1"})
    assert r.status_code == 503
    assert r.json()["detail"]["kind"] == "chain_not_ready"
    assert r.json()["detail"]["retryable"] is True


def test_propose_slot_over_http(client, engine, signer):
    engine.set_sequence(signer, 3)
    r = client.post("/stake/propose_slot", json={"from": signer, "amount": 10, "proposedRoi": 4})
    assert r.status_code == 200
    body = r.json()
    assert body["height"] == 11
    assert body["deliver_tx"]["gas_used"] == 21000
    assert len(engine.broadcasts) == 1


def test_missing_from_is_rejected(client):
    r = client.post("/stake/accept_slot", json={"from": "", "amount": 1, "slotId": "S1"})
    assert r.status_code == 400
    assert r.json()["detail"]["kind"] == "address_required"


def test_unknown_signer_is_400(client):
    r = client.post("/stake/cancel_slot", json={"from": "0x" + "12" * 20, "slotId": "S1"})
    assert r.status_code == 400
    assert r.json()["detail"]["kind"] == "signer_not_found"


def test_rejected_tx_is_returned_verbatim(client, engine, signer):
    engine.commit_result = {"height": "0", "hash": "AB", "check_tx": {"code": 4, "log": "nope"}, "deliver_tx": {}}
    r = client.post("/stake/withdraw_slot", json={"from": signer, "amount": 1, "slotId": "S1"})
    assert r.status_code == 200
    assert r.json()["check_tx"] == {"code": 4, "data": "", "log": "nope", "gas_used": 0}


def test_sequence_endpoint(client, engine, signer):
    engine.set_sequence(signer, 8)
    assert client.get(f"/stake/sequence/{signer}").json() == {"address": signer, "sequence": 8}


def test_validator_no_data_vs_found(client, engine):
    addr = "0x" + "ab" * 20
    engine.handlers["/validator"] = lambda key, h: ABCIQueryResponse(value=b"", height=100)
    r = client.get(f"/stake/validators/{addr}", params={"height": 100})
    assert r.json() == {"height": 100, "found": False, "data": None}

    enc = Encoder()
    Candidate(b"\x02" * 32, bytes.fromhex("ab" * 20), 5, 1, "Y", "t0", "t1").write_to(enc)
    engine.handlers["/validator"] = lambda key, h: ABCIQueryResponse(value=enc.getvalue(), height=105)
    body = client.get(f"/stake/validators/{addr}").json()
    assert body["found"] is True
    assert body["height"] == 105
    assert body["data"]["owner_address"] == addr


def test_query_transport_failure_is_502(client, engine):
    def fail(key, h):
        raise TransportError("engine down", height=h)

    engine.handlers["/slots"] = fail
    r = client.get("/stake/slots")
    assert r.status_code == 502
    assert r.json()["detail"]["kind"] == "transport_error"


def test_negative_height_rejected(client):
    assert client.get("/stake/slots", params={"height": -1}).status_code == 422


def test_governance_reads(client, backend):
    backend.store.save(
        Proposal(
            id="prop1",
            proposer=VOTER,
            block_height=3,
            from_address=VOTER,
            to_address=VOTER,
            amount=Decimal("5"),
            reason="r",
            created_at="t",
        )
    )
    backend.store.save_vote(Vote("PROP1", VOTER, 4, "Y", "t"))

    assert client.get("/governance/proposals/Prop1").json()["id"] == "PROP1"
    assert [p["id"] for p in client.get("/governance/proposals").json()["proposals"]] == ["PROP1"]
    assert client.get("/governance/proposals/prop1/votes").json()["votes"][0]["answer"] == "Y"
    assert client.get(f"/governance/proposals/prop1/votes/{VOTER}").json()["voter"] == VOTER

    assert client.get("/governance/proposals/none").status_code == 404
    assert client.get("/governance/proposals/none/votes").status_code == 404


def test_governance_propose_over_http(client, engine, signer):
    r = client.post(
        "/governance/proposals",
        json={"proposer": signer, "from": signer, "to": "0x" + "ee" * 20, "amount": "42", "reason": "x"},
    )
    assert r.status_code == 200
    assert len(engine.broadcasts) == 1


def test_block_and_tx_lookup(client, engine):
    raw = b"some-tx"
    engine.blocks[5] = {"block": {"data": {"txs": [base64.b64encode(raw).decode("ascii")]}}}
    h = hashlib.sha256(raw).digest()
    engine.txs[h] = {"hash": h.hex().upper(), "height": "5"}

    assert client.get("/cmt/block/5").json()["block"]["data"]["txs"]
    assert client.get(f"/cmt/tx/0x{h.hex()}").json()["height"] == "5"
    assert client.get("/cmt/block/5/tx/0").json()["height"] == "5"

    r = client.get("/cmt/block/5/tx/1")
    assert r.status_code == 404
    assert r.json()["detail"]["message"] == "No transaction in block 5, index 1."


def test_bad_tx_hash_is_400(client):
    assert client.get("/cmt/tx/zz").status_code == 400


def test_net_info(client):
    assert client.get("/net/version").json() == {"version": "15"}
    assert client.get("/net/listening").json() == {"listening": True}
    assert client.get("/net/peer_count").json() == {"peer_count": 0}


def test_health_with_dotted_network_id(engine, keystore, store):
    engine.network = "devchain.1"
    api = TestClient(create_app(make_backend(engine, keystore, store, chain_id=None)))
    r = api.get("/health")
    assert r.status_code == 200
    assert r.json() == {"ok": True, "ready": True, "chain_id": "devchain.1"}


def test_health_with_unusable_network_id(engine, keystore, store):
    engine.network = "n" * 64
    api = TestClient(create_app(make_backend(engine, keystore, store, chain_id=None)))
    r = api.get("/health")
    assert r.status_code == 200
    assert r.json()["ready"] is False
