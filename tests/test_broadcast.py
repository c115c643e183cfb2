# tests/test_broadcast.py
import pytest

from chain_bridge.errors import ExecutionRejected, TransportError
from chain_bridge.runtime import stake_tx
from chain_bridge.runtime.broadcast import BroadcastClient, CommitResult
from chain_bridge.runtime.envelope import Envelope


def test_commit_result_parses_engine_shape():
    res = CommitResult.from_dict(
        {
            "height": "42",
            "hash": "FF00",
            "check_tx": {"code": 0},
            "deliver_tx": {"code": 0, "log": "done", "gas_used": "7"},
        }
    )
    assert res.height == 42
    assert res.ok
    assert res.deliver_tx.gas_used == 7
    assert res.raise_for_code() is res


def test_rejection_is_returned_not_raised(engine):
    engine.commit_result = {
        "height": "0",
        "hash": "AA",
        "check_tx": {"code": 5, "log": "insufficient funds"},
        "deliver_tx": {},
    }
    env = Envelope(outer=stake_tx.new_accept_slot(1, "S1"))
    res = BroadcastClient(engine).broadcast(env)
    assert not res.ok
    assert res.check_tx.code == 5
    with pytest.raises(ExecutionRejected) as ei:
        res.raise_for_code()
    assert ei.value.code == 5
    assert ei.value.log == "insufficient funds"


def test_deliver_failure_raises_with_height():
    res = CommitResult.from_dict({"height": 9, "hash": "BB", "deliver_tx": {"code": 2, "log": "slot closed"}})
    with pytest.raises(ExecutionRejected) as ei:
        res.raise_for_code()
    assert ei.value.height == 9


def test_broadcast_sends_envelope_wire_bytes(engine):
    env = Envelope(outer=stake_tx.new_accept_slot(1, "S1"))
    BroadcastClient(engine).broadcast(env)
    assert engine.broadcasts == [env.to_bytes()]


def test_malformed_commit_result():
    with pytest.raises(TransportError):
        CommitResult.from_dict({"height": "not-a-number"})
