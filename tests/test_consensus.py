# tests/test_consensus.py
import base64
import json

import httpx
import pytest

from chain_bridge.consensus.client import HTTPConsensusClient
from chain_bridge.consensus.context import ChainContext
from chain_bridge.errors import ChainNotReady, Conflict, TransportError, ValidationError


def _client(handler) -> HTTPConsensusClient:
    return HTTPConsensusClient("http://engine", transport=httpx.MockTransport(handler))


def _result(request, result):
    body = json.loads(request.content)
    return httpx.Response(200, json={"jsonrpc": "2.0", "id": body["id"], "result": result})


def test_abci_query_encodes_request_and_decodes_value():
    seen = {}

    def handler(request):
        seen.update(json.loads(request.content))
        return _result(
            request,
            {"response": {"code": 0, "value": base64.b64encode(b"\x00\x00\x00\x03").decode(), "height": "17"}},
        )

    resp = _client(handler).abci_query("/key", b"\x01\x02", height=0)
    assert seen["method"] == "abci_query"
    assert seen["params"]["data"] == "0102"
    assert seen["params"]["trusted"] is True
    assert resp.value == b"\x00\x00\x00\x03"
    assert resp.height == 17


def test_empty_query_value():
    resp = _client(lambda r: _result(r, {"response": {"height": "4"}})).abci_query("/validators", b"\x00")
    assert resp.value == b""
    assert resp.height == 4


def test_broadcast_sends_base64():
    seen = {}

    def handler(request):
        seen.update(json.loads(request.content))
        return _result(request, {"height": "3", "hash": "AA", "check_tx": {}, "deliver_tx": {}})

    out = _client(handler).broadcast_tx_commit(b"raw-tx")
    assert seen["params"]["tx"] == base64.b64encode(b"raw-tx").decode()
    assert out["hash"] == "AA"


def test_connection_failure_is_transport_error_with_height():
    def handler(request):
        raise httpx.ConnectError("refused", request=request)

    with pytest.raises(TransportError) as ei:
        _client(handler).abci_query("/slots", b"\x00", height=12)
    assert ei.value.height == 12
    assert ei.value.retryable


def test_rpc_error_is_transport_error():
    def handler(request):
        return httpx.Response(200, json={"jsonrpc": "2.0", "id": 1, "error": {"code": -32603, "message": "Internal"}})

    with pytest.raises(TransportError):
        _client(handler).status()


def test_http_500_is_transport_error():
    with pytest.raises(TransportError):
        _client(lambda r: httpx.Response(500, text="oops")).block(1)


# ---------------------------
# ChainContext
# ---------------------------

def test_chain_context_learns_once():
    ctx = ChainContext()
    with pytest.raises(ChainNotReady):
        ctx.require_chain_id()
    client = _client(lambda r: _result(r, {"node_info": {"network": "bridge-test"}}))
    assert ctx.learn(client) == "bridge-test"
    assert ctx.require_chain_id() == "bridge-test"
    ctx.set_chain_id("bridge-test")
    with pytest.raises(Conflict):
        ctx.set_chain_id("another")


def test_chain_context_engine_down():
    def handler(request):
        raise httpx.ConnectError("refused", request=request)

    ctx = ChainContext()
    assert ctx.learn(_client(handler)) is None
    assert not ctx.ready


def test_chain_id_rules():
    assert ChainContext("devchain.1").chain_id == "devchain.1"
    assert ChainContext("x" * 50).ready
    with pytest.raises(ValidationError):
        ChainContext("x" * 51)
    with pytest.raises(ValidationError):
        ChainContext("line\nbreak")


def test_dotted_network_id_is_learned():
    ctx = ChainContext()
    client = _client(lambda r: _result(r, {"node_info": {"network": "devchain.1"}}))
    assert ctx.learn(client) == "devchain.1"
    assert ctx.require_chain_id() == "devchain.1"


def test_unusable_network_id_leaves_chain_not_ready():
    ctx = ChainContext()
    client = _client(lambda r: _result(r, {"node_info": {"network": "n" * 64}}))
    assert ctx.learn(client) is None
    with pytest.raises(ChainNotReady):
        ctx.require_chain_id()
