"""
Height-indexed state queries.

Three distinct outcomes:
- transport failure   -> TransportError (request height echoed on .height)
- empty value         -> QueryResult with data=NO_DATA (not an exception)
- non-empty value     -> decoded; a decode failure is a DecodeError

Queries are "trusted" (no proof verification); the engine is co-located.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Any, Callable, Generic, List, TypeVar, Union

from ..consensus.client import ConsensusClient
from ..errors import DecodeError, TransportError
from .address import canonical_address
from .stake_state import (
    Candidate,
    Slot,
    SlotDelegate,
    decode_candidate,
    decode_candidates,
    decode_slot,
    decode_slot_delegates,
    decode_slots,
)

log = logging.getLogger(__name__)

T = TypeVar("T")

LIST_KEY = b"\x00"
LATEST = 0


class _NoData:
    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "NO_DATA"


NO_DATA = _NoData()


@dataclass(frozen=True)
class QueryResult(Generic[T]):
    height: int
    data: Union[T, _NoData]

    @property
    def no_data(self) -> bool:
        return self.data is NO_DATA

    def to_dict(self, render: Callable[[T], Any] = lambda x: x) -> dict:
        if self.no_data:
            return {"height": self.height, "found": False, "data": None}
        return {"height": self.height, "found": True, "data": render(self.data)}


class StateQueryClient:
    def __init__(self, client: ConsensusClient, *, trusted: bool = True) -> None:
        self.client = client
        self.trusted = trusted
        self._lock = threading.Lock()
        self._highest_height = 0

    @property
    def highest_height(self) -> int:
        return self._highest_height

    def _observe(self, requested: int, served: int) -> None:
        with self._lock:
            if requested == LATEST and served < self._highest_height:
                raise TransportError(
                    f"engine served height {served} for latest, already saw {self._highest_height}",
                    height=served,
                )
            if served > self._highest_height:
                self._highest_height = served

    def query(self, path: str, key: bytes, decode: Callable[[bytes], T], height: int = LATEST) -> QueryResult[T]:
        height = int(height or 0)
        if height < 0:
            raise ValueError("height must be >= 0")

        resp = self.client.abci_query(path, key, height=height, trusted=self.trusted)
        if resp.code:
            raise TransportError(
                f"query {path} failed (code={resp.code}): {resp.log}", height=resp.height or height
            )
        self._observe(height, resp.height)

        if not resp.value:
            log.debug("[query] %s: no data at height %d", path, resp.height)
            return QueryResult(height=resp.height, data=NO_DATA)

        try:
            data = decode(resp.value)
        except DecodeError:
            log.warning("[query] %s: undecodable value at height %d", path, resp.height)
            raise
        return QueryResult(height=resp.height, data=data)

    # ------------------------------------------------------------------
    # Stake reads
    # ------------------------------------------------------------------
    def validators(self, height: int = LATEST) -> QueryResult[List[Candidate]]:
        return self.query("/validators", LIST_KEY, decode_candidates, height)

    def validator(self, address: str, height: int = LATEST) -> QueryResult[Candidate]:
        key = canonical_address(address).encode("ascii")
        return self.query("/validator", key, decode_candidate, height)

    def slots(self, height: int = LATEST) -> QueryResult[List[Slot]]:
        return self.query("/slots", LIST_KEY, decode_slots, height)

    def slot(self, slot_id: str, height: int = LATEST) -> QueryResult[Slot]:
        return self.query("/slot", slot_id.encode("utf-8"), decode_slot, height)

    def delegator(self, address: str, height: int = LATEST) -> QueryResult[List[SlotDelegate]]:
        key = canonical_address(address).encode("ascii")
        return self.query("/delegator", key, decode_slot_delegates, height)
