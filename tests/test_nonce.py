# tests/test_nonce.py
import pytest

from chain_bridge.consensus.client import ABCIQueryResponse
from chain_bridge.errors import DecodeError, TransportError
from chain_bridge.runtime.address import signer_set
from chain_bridge.runtime.nonce import KEY_PATH, SequenceResolver, seq_key

ADDR = "0x" + "ab" * 20


def test_seq_key_layout():
    key = seq_key(signer_set(ADDR))
    # b"nonce" 0x00, then the sigs actor: "" chain, "sigs" app, 20 byte address
    assert key == b"nonce\x00" + b"\x00" + b"\x01\x04sigs" + b"\x01\x14" + b"\xab" * 20


def test_unknown_signer_has_sequence_zero(engine):
    assert SequenceResolver(engine).resolve(signer_set(ADDR)) == 0
    name, (path, key, height, trusted) = engine.calls[0]
    assert name == "abci_query"
    assert path == KEY_PATH
    assert key == seq_key(signer_set(ADDR))


def test_stored_sequence_is_returned(engine):
    engine.set_sequence(ADDR, 41)
    assert SequenceResolver(engine).resolve(signer_set(ADDR)) == 41


def test_address_case_does_not_change_key(engine):
    engine.set_sequence(ADDR, 5)
    assert SequenceResolver(engine).resolve(signer_set(ADDR.upper().replace("0X", "0x"))) == 5


def test_corrupt_value_is_decode_error(engine):
    engine.handlers[KEY_PATH] = lambda key, h: ABCIQueryResponse(value=b"\x00\x01\x02", height=9)
    with pytest.raises(DecodeError):
        SequenceResolver(engine).resolve(signer_set(ADDR))


def test_query_error_code_is_transport_error(engine):
    engine.handlers[KEY_PATH] = lambda key, h: ABCIQueryResponse(value=b"", height=9, code=1, log="boom")
    with pytest.raises(TransportError):
        SequenceResolver(engine).resolve(signer_set(ADDR))
