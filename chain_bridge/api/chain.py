#!/usr/bin/env python3
"""
Chain API
------------------------------------
Read-through access to blocks and transactions held by the consensus
engine, plus static net info for wallets that ask for it.

GET /cmt/block/{height}
GET /cmt/tx/{hash}
GET /cmt/block/{height}/tx/{index}
GET /net/version | /net/listening | /net/peer_count
"""

from __future__ import annotations

import base64
import binascii
import hashlib
import logging
from typing import Any, Dict, List

from fastapi import APIRouter, Depends, Path

from ..backend import Backend
from ..errors import BridgeError, NotFound, TransportError, ValidationError
from ..runtime.address import strip_hex
from .deps import get_backend, http_error

router = APIRouter(prefix="/cmt", tags=["chain"])
net_router = APIRouter(prefix="/net", tags=["net"])
log = logging.getLogger(__name__)


def tx_hash(raw: bytes) -> bytes:
    """Engine tx hash: SHA256 of the raw tx bytes."""
    return hashlib.sha256(raw).digest()


def _block_txs(block: Dict[str, Any]) -> List[bytes]:
    data = ((block.get("block") or {}).get("data") or {})
    out = []
    for item in data.get("txs") or []:
        try:
            out.append(base64.b64decode(item))
        except (binascii.Error, ValueError) as e:
            raise TransportError(f"block carries a non-base64 tx: {e}") from e
    return out


class ChainService:
    def __init__(self, backend: Backend) -> None:
        self.backend = backend

    def get_block(self, height: int) -> Dict[str, Any]:
        return self.backend.client.block(height)

    def get_transaction(self, hash_hex: str) -> Dict[str, Any]:
        try:
            key = binascii.unhexlify(strip_hex(hash_hex))
        except (binascii.Error, ValueError) as e:
            raise ValidationError(f"tx hash is not valid hex: {hash_hex!r}") from e
        return self.backend.client.tx(key)

    def get_transaction_from_block(self, height: int, index: int) -> Dict[str, Any]:
        txs = _block_txs(self.get_block(height))
        if index >= len(txs):
            raise NotFound(f"No transaction in block {height}, index {index}.")
        return self.get_transaction(tx_hash(txs[index]).hex())


def _service(backend: Backend = Depends(get_backend)) -> ChainService:
    return ChainService(backend)


@router.get("/block/{height}")
def get_block(height: int = Path(..., ge=1), svc: ChainService = Depends(_service)) -> Dict[str, Any]:
    try:
        return svc.get_block(height)
    except BridgeError as e:
        raise http_error(e)


@router.get("/tx/{tx_hash_hex}")
def get_transaction(tx_hash_hex: str, svc: ChainService = Depends(_service)) -> Dict[str, Any]:
    try:
        return svc.get_transaction(tx_hash_hex)
    except BridgeError as e:
        raise http_error(e)


@router.get("/block/{height}/tx/{index}")
def get_transaction_from_block(
    height: int = Path(..., ge=1),
    index: int = Path(..., ge=0),
    svc: ChainService = Depends(_service),
) -> Dict[str, Any]:
    try:
        return svc.get_transaction_from_block(height, index)
    except BridgeError as e:
        raise http_error(e)


# ---------------------------
# Net info (single local engine, always listening, no peers of its own)
# ---------------------------

@net_router.get("/version")
def net_version(backend: Backend = Depends(get_backend)) -> Dict[str, Any]:
    return {"version": str(backend.network_version)}


@net_router.get("/listening")
def net_listening() -> Dict[str, Any]:
    return {"listening": True}


@net_router.get("/peer_count")
def net_peer_count() -> Dict[str, Any]:
    return {"peer_count": 0}
