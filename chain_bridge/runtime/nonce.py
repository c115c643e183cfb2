"""
Remote sequence lookup for signer sets.

The nonce module of the application state stores one uint32 per signer set
under  b"nonce" 0x00 <wire(actor)>...  and the bridge reads it with a plain
"/key" query. Policy:
- empty value (never transacted)  -> 0
- 4 byte big-endian value         -> that sequence
- anything else                   -> DecodeError (corrupt remote state)

No local caching: each build re-reads the remote value.
"""

from __future__ import annotations

import logging
from typing import Sequence

from ..consensus.client import ConsensusClient
from ..errors import TransportError
from .address import Actor, signers_key
from .wire import decode_exact

log = logging.getLogger(__name__)

NONCE_APP = "nonce"
KEY_PATH = "/key"


def prefixed_key(app: str, key: bytes) -> bytes:
    return app.encode("utf-8") + b"\x00" + key


def seq_key(signers: Sequence[Actor]) -> bytes:
    return prefixed_key(NONCE_APP, signers_key(signers))


class SequenceResolver:
    def __init__(self, client: ConsensusClient) -> None:
        self.client = client

    def resolve(self, signers: Sequence[Actor]) -> int:
        resp = self.client.abci_query(KEY_PATH, seq_key(signers))
        if resp.code:
            raise TransportError(f"sequence query failed (code={resp.code}): {resp.log}", height=resp.height)
        if not resp.value:
            return 0
        sequence = decode_exact(resp.value, lambda d: d.read_uint32())
        log.debug("[nonce] %d signer(s) at sequence %d (height %d)", len(signers), sequence, resp.height)
        return sequence
