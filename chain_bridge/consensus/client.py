#!/usr/bin/env python3
"""
chain_bridge/consensus/client.py
--------------------------------

Transport to the consensus engine's JSON-RPC endpoint.

Methods consumed by the bridge:
- abci_query(path, key, height, trusted)  -> ABCIQueryResponse
- broadcast_tx_commit(raw)                -> dict (check_tx / deliver_tx / hash / height)
- block(height)                           -> dict
- tx(hash)                                -> dict
- status()                                -> dict (node_info.network is the chain id)

No retry here. The default timeout is None: a commit
broadcast blocks for one or more block intervals, so bounded latency is the
caller's business.
"""

from __future__ import annotations

import base64
import binascii
import itertools
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional, Protocol

import httpx

from chain_bridge.errors import TransportError

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class ABCIQueryResponse:
    value: bytes
    height: int
    code: int = 0
    log: str = ""


class ConsensusClient(Protocol):
    def abci_query(
        self, path: str, key: bytes, height: int = 0, trusted: bool = True
    ) -> ABCIQueryResponse: ...

    def broadcast_tx_commit(self, raw: bytes) -> Dict[str, Any]: ...

    def block(self, height: int) -> Dict[str, Any]: ...

    def tx(self, tx_hash: bytes) -> Dict[str, Any]: ...

    def status(self) -> Dict[str, Any]: ...


def _b64decode(value: Optional[str]) -> bytes:
    if not value:
        return b""
    try:
        return base64.b64decode(value.encode("ascii"), validate=True)
    except (binascii.Error, ValueError) as e:
        raise TransportError(f"engine returned non-base64 value: {e}") from e


def _int(value: Any, default: int = 0) -> int:
    if value is None or value == "":
        return default
    return int(value)


class HTTPConsensusClient:
    """JSON-RPC 2.0 over HTTP POST, one request per call."""

    def __init__(
        self,
        rpc_url: str = "http://127.0.0.1:26657",
        *,
        timeout: Optional[float] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self.rpc_url = rpc_url.rstrip("/")
        self._ids = itertools.count(1)
        self._client = httpx.Client(
            base_url=self.rpc_url,
            timeout=httpx.Timeout(timeout),
            transport=transport,
        )

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "HTTPConsensusClient":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    # ------------------------------------------------------------------
    # JSON-RPC plumbing
    # ------------------------------------------------------------------
    def _call(self, method: str, params: Dict[str, Any], *, height: Optional[int] = None) -> Dict[str, Any]:
        body = {"jsonrpc": "2.0", "id": next(self._ids), "method": method, "params": params}
        try:
            r = self._client.post("/", json=body)
            r.raise_for_status()
            payload = r.json()
        except httpx.HTTPError as e:
            log.warning("[consensus] %s failed: %s", method, e)
            raise TransportError(f"{method}: {e}", height=height) from e
        except ValueError as e:
            raise TransportError(f"{method}: invalid JSON from engine: {e}", height=height) from e

        err = payload.get("error")
        if err:
            msg = err.get("data") or err.get("message") or str(err)
            raise TransportError(f"{method}: {msg}", height=height, code=err.get("code"))

        result = payload.get("result")
        if not isinstance(result, dict):
            raise TransportError(f"{method}: engine returned no result", height=height)
        return result

    # ------------------------------------------------------------------
    # Methods
    # ------------------------------------------------------------------
    def abci_query(self, path: str, key: bytes, height: int = 0, trusted: bool = True) -> ABCIQueryResponse:
        params = {
            "path": path,
            "data": binascii.hexlify(key).decode("ascii"),
            "height": str(int(height)),
            "trusted": bool(trusted),
        }
        result = self._call("abci_query", params, height=height)
        resp = result.get("response") or {}
        return ABCIQueryResponse(
            value=_b64decode(resp.get("value")),
            height=_int(resp.get("height"), default=height),
            code=_int(resp.get("code")),
            log=str(resp.get("log") or ""),
        )

    def broadcast_tx_commit(self, raw: bytes) -> Dict[str, Any]:
        return self._call("broadcast_tx_commit", {"tx": base64.b64encode(raw).decode("ascii")})

    def block(self, height: int) -> Dict[str, Any]:
        return self._call("block", {"height": str(int(height))}, height=height)

    def tx(self, tx_hash: bytes) -> Dict[str, Any]:
        return self._call("tx", {"hash": base64.b64encode(tx_hash).decode("ascii"), "prove": False})

    def status(self) -> Dict[str, Any]:
        return self._call("status", {})
