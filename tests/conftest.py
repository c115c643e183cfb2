from typing import Any, Callable, Dict, List, Optional, Tuple

import pytest

from chain_bridge.backend import Backend
from chain_bridge.consensus.client import ABCIQueryResponse
from chain_bridge.consensus.context import ChainContext
from chain_bridge.governance.store import ProposalStore
from chain_bridge.runtime.address import address_hex, signer_set
from chain_bridge.runtime.nonce import seq_key
from chain_bridge.runtime.signing import LocalKeystore

CHAIN_ID = "test-chain"

QueryHandler = Callable[[bytes, int], ABCIQueryResponse]


class FakeConsensus:
    """Records every call; answers from canned handlers."""

    def __init__(self, height: int = 10) -> None:
        self.height = height
        self.calls: List[Tuple[str, Any]] = []
        self.handlers: Dict[str, QueryHandler] = {}
        self.sequences: Dict[bytes, int] = {}
        self.commit_result: Dict[str, Any] = {
            "height": "11",
            "hash": "ABCDEF",
            "check_tx": {"code": 0, "log": ""},
            "deliver_tx": {"code": 0, "log": "ok", "gas_used": "21000"},
        }
        self.broadcasts: List[bytes] = []
        self.blocks: Dict[int, Dict[str, Any]] = {}
        self.txs: Dict[bytes, Dict[str, Any]] = {}
        self.network = CHAIN_ID

    def set_sequence(self, address: str, sequence: int) -> None:
        self.sequences[seq_key(signer_set(address))] = sequence

    def abci_query(self, path: str, key: bytes, height: int = 0, trusted: bool = True) -> ABCIQueryResponse:
        self.calls.append(("abci_query", (path, key, height, trusted)))
        if path == "/key" and key in self.sequences:
            return ABCIQueryResponse(value=self.sequences[key].to_bytes(4, "big"), height=self.height)
        handler = self.handlers.get(path)
        if handler is not None:
            return handler(key, height)
        return ABCIQueryResponse(value=b"", height=height or self.height)

    def broadcast_tx_commit(self, raw: bytes) -> Dict[str, Any]:
        self.calls.append(("broadcast_tx_commit", raw))
        self.broadcasts.append(raw)
        return dict(self.commit_result)

    def block(self, height: int) -> Dict[str, Any]:
        self.calls.append(("block", height))
        return self.blocks[height]

    def tx(self, tx_hash: bytes) -> Dict[str, Any]:
        self.calls.append(("tx", tx_hash))
        return self.txs[tx_hash]

    def status(self) -> Dict[str, Any]:
        self.calls.append(("status", None))
        return {"node_info": {"network": self.network}}


@pytest.fixture
def engine() -> FakeConsensus:
    return FakeConsensus()


@pytest.fixture
def keystore() -> LocalKeystore:
    return LocalKeystore()


@pytest.fixture
def signer(keystore) -> str:
    """Address (0x hex) of a fresh local account."""
    return address_hex(keystore.new_account().address)


@pytest.fixture
def store(tmp_path) -> ProposalStore:
    return ProposalStore(str(tmp_path / "data" / "governance.db"))


def make_backend(engine, keystore, store, chain_id: Optional[str] = CHAIN_ID) -> Backend:
    return Backend.create(engine, keystore, store, chain=ChainContext(chain_id or ""))


@pytest.fixture
def backend(engine, keystore, store) -> Backend:
    return make_backend(engine, keystore, store)
