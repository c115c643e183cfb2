"""
Chain identity learned from the consensus engine.

The chain id is resolved once during startup (from config or from the
engine's status) and is read-only afterwards. Components get the context
passed in; nothing reads it from a module global.
"""

from __future__ import annotations

import logging
import threading
from typing import Optional

from ..errors import ChainNotReady, Conflict, TransportError, ValidationError
from .client import ConsensusClient

log = logging.getLogger(__name__)

MAX_CHAIN_ID_LEN = 50


def check_chain_id(chain_id: str) -> None:
    """Any non-empty printable id of at most MAX_CHAIN_ID_LEN characters."""
    if not chain_id:
        raise ValidationError("chain id is required")
    if len(chain_id) > MAX_CHAIN_ID_LEN:
        raise ValidationError(f"chain id longer than {MAX_CHAIN_ID_LEN} characters: {chain_id!r}")
    if not chain_id.isprintable():
        raise ValidationError(f"chain id has non-printable characters: {chain_id!r}")


class ChainContext:
    def __init__(self, chain_id: str = "") -> None:
        self._lock = threading.Lock()
        self._chain_id = ""
        if chain_id:
            self.set_chain_id(chain_id)

    @property
    def chain_id(self) -> str:
        return self._chain_id

    @property
    def ready(self) -> bool:
        return bool(self._chain_id)

    def require_chain_id(self) -> str:
        chain_id = self._chain_id
        if not chain_id:
            raise ChainNotReady()
        return chain_id

    def set_chain_id(self, chain_id: str) -> None:
        chain_id = (chain_id or "").strip()
        check_chain_id(chain_id)
        with self._lock:
            if self._chain_id and self._chain_id != chain_id:
                raise Conflict(f"chain id already set to {self._chain_id!r}, refusing {chain_id!r}")
            self._chain_id = chain_id

    def learn(self, client: ConsensusClient) -> Optional[str]:
        """Ask the engine for its network id. Returns None if it is not up yet."""
        if self.ready:
            return self._chain_id
        try:
            status = client.status()
        except TransportError as e:
            log.warning("[chain] engine status unavailable, chain id unknown: %s", e)
            return None
        network = str(((status or {}).get("node_info") or {}).get("network") or "")
        if not network:
            log.warning("[chain] engine reported an empty network id")
            return None
        try:
            self.set_chain_id(network)
        except ValidationError as e:
            log.warning("[chain] engine reported an unusable network id: %s", e)
            return None
        log.info("[chain] learned chain id %s", network)
        return network
