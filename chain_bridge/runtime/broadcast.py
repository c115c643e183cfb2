"""
Synchronous commit broadcast.

broadcast() blocks until the engine has both included the tx in a block and
executed it, then returns the engine's verdict unchanged. Execution failures
are NOT raised here: a non-zero check_tx / deliver_tx code comes back inside
the CommitResult. Callers who prefer an exception use raise_for_code().
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict

from ..consensus.client import ConsensusClient
from ..errors import ExecutionRejected, TransportError
from .envelope import Envelope

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class TxResult:
    code: int = 0
    data: str = ""
    log: str = ""
    gas_used: int = 0

    @classmethod
    def from_dict(cls, d: Dict[str, Any] | None) -> "TxResult":
        d = d or {}
        return cls(
            code=int(d.get("code") or 0),
            data=str(d.get("data") or ""),
            log=str(d.get("log") or ""),
            gas_used=int(d.get("gas_used") or d.get("gasUsed") or 0),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {"code": self.code, "data": self.data, "log": self.log, "gas_used": self.gas_used}


@dataclass(frozen=True)
class CommitResult:
    height: int
    hash: str
    check_tx: TxResult = field(default_factory=TxResult)
    deliver_tx: TxResult = field(default_factory=TxResult)

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "CommitResult":
        try:
            return cls(
                height=int(d.get("height") or 0),
                hash=str(d.get("hash") or ""),
                check_tx=TxResult.from_dict(d.get("check_tx")),
                deliver_tx=TxResult.from_dict(d.get("deliver_tx")),
            )
        except (TypeError, ValueError) as e:
            raise TransportError(f"malformed commit result from engine: {e}") from e

    @property
    def ok(self) -> bool:
        return self.check_tx.code == 0 and self.deliver_tx.code == 0

    def raise_for_code(self) -> "CommitResult":
        if self.check_tx.code:
            raise ExecutionRejected(code=self.check_tx.code, log=self.check_tx.log, height=self.height)
        if self.deliver_tx.code:
            raise ExecutionRejected(code=self.deliver_tx.code, log=self.deliver_tx.log, height=self.height)
        return self

    def to_dict(self) -> Dict[str, Any]:
        return {
            "height": self.height,
            "hash": self.hash,
            "check_tx": self.check_tx.to_dict(),
            "deliver_tx": self.deliver_tx.to_dict(),
        }


class BroadcastClient:
    def __init__(self, client: ConsensusClient) -> None:
        self.client = client

    def broadcast(self, envelope: Envelope) -> CommitResult:
        raw = envelope.to_bytes()
        log.debug("[broadcast] submitting %d bytes for commit", len(raw))
        result = CommitResult.from_dict(self.client.broadcast_tx_commit(raw))
        if result.ok:
            log.info("[broadcast] committed %s at height %d", result.hash, result.height)
        else:
            log.warning(
                "[broadcast] tx %s rejected: check=%d deliver=%d %s",
                result.hash,
                result.check_tx.code,
                result.deliver_tx.code,
                result.check_tx.log or result.deliver_tx.log,
            )
        return result
