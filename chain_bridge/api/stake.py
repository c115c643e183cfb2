"""
Stake RPC surface: sequence lookup, candidacy / slot writes, stake reads.

Every write accepts an optional `sequence` (0 or absent = resolve remote
sequence + 1) and a `from` address that signs the envelope and, where the tx
has one, is its economic sender.
"""

from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, ConfigDict, Field

from ..backend import Backend
from ..errors import BridgeError
from ..runtime import stake_tx
from ..runtime.address import signer_set
from ..runtime.broadcast import CommitResult
from ..runtime.query import QueryResult
from .deps import get_backend, http_error

router = APIRouter(prefix="/stake", tags=["stake"])

INT64_MAX = (1 << 63) - 1
UINT32_MAX = (1 << 32) - 1


class _WriteArgs(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    sequence: int = Field(0, ge=0, le=UINT32_MAX)
    from_: str = Field(..., alias="from")


class DeclareCandidacyArgs(_WriteArgs):
    pub_key: str = Field(..., alias="pubKey")


class WithdrawCandidacyArgs(_WriteArgs):
    pass


class EditCandidacyArgs(_WriteArgs):
    new_address: str = Field("", alias="newAddress")


class ProposeSlotArgs(_WriteArgs):
    amount: int = Field(..., le=INT64_MAX)
    proposed_roi: int = Field(..., alias="proposedRoi", le=INT64_MAX)


class AcceptSlotArgs(_WriteArgs):
    amount: int = Field(..., le=INT64_MAX)
    slot_id: str = Field(..., alias="slotId")


class WithdrawSlotArgs(_WriteArgs):
    amount: int = Field(..., le=INT64_MAX)
    slot_id: str = Field(..., alias="slotId")


class CancelSlotArgs(_WriteArgs):
    slot_id: str = Field(..., alias="slotId")


class StakeService:
    def __init__(self, backend: Backend) -> None:
        self.backend = backend

    def _submit(self, tx: stake_tx.InnerTx, args: _WriteArgs) -> CommitResult:
        envelope = self.backend.builder.build(tx, args.from_, args.sequence)
        return self.backend.broadcaster.broadcast(envelope)

    def get_sequence(self, address: str) -> int:
        return self.backend.resolver.resolve(signer_set(address))

    # writes
    def declare_candidacy(self, args: DeclareCandidacyArgs) -> CommitResult:
        return self._submit(stake_tx.new_declare_candidacy(args.pub_key), args)

    def withdraw_candidacy(self, args: WithdrawCandidacyArgs) -> CommitResult:
        return self._submit(stake_tx.new_withdraw_candidacy(args.from_), args)

    def edit_candidacy(self, args: EditCandidacyArgs) -> CommitResult:
        return self._submit(stake_tx.new_edit_candidacy(args.new_address), args)

    def propose_slot(self, args: ProposeSlotArgs) -> CommitResult:
        return self._submit(stake_tx.new_propose_slot(args.from_, args.amount, args.proposed_roi), args)

    def accept_slot(self, args: AcceptSlotArgs) -> CommitResult:
        return self._submit(stake_tx.new_accept_slot(args.amount, args.slot_id), args)

    def withdraw_slot(self, args: WithdrawSlotArgs) -> CommitResult:
        return self._submit(stake_tx.new_withdraw_slot(args.amount, args.slot_id), args)

    def cancel_slot(self, args: CancelSlotArgs) -> CommitResult:
        return self._submit(stake_tx.new_cancel_slot(args.from_, args.slot_id), args)

    # reads
    def query_validators(self, height: int = 0) -> QueryResult:
        return self.backend.queries.validators(height)

    def query_validator(self, address: str, height: int = 0) -> QueryResult:
        return self.backend.queries.validator(address, height)

    def query_slots(self, height: int = 0) -> QueryResult:
        return self.backend.queries.slots(height)

    def query_slot(self, slot_id: str, height: int = 0) -> QueryResult:
        return self.backend.queries.slot(slot_id, height)

    def query_delegator(self, address: str, height: int = 0) -> QueryResult:
        return self.backend.queries.delegator(address, height)


def _service(backend: Backend = Depends(get_backend)) -> StakeService:
    return StakeService(backend)


def _commit(call, args) -> Dict[str, Any]:
    try:
        return call(args).to_dict()
    except BridgeError as e:
        raise http_error(e)


def _render_list(items):
    return [i.to_dict() for i in items]


def _render_one(item):
    return item.to_dict()


def _read(call, *a, render=_render_one) -> Dict[str, Any]:
    try:
        return call(*a).to_dict(render)
    except BridgeError as e:
        raise http_error(e)


@router.get("/sequence/{address}")
def get_sequence(address: str, svc: StakeService = Depends(_service)) -> Dict[str, Any]:
    try:
        return {"address": address, "sequence": svc.get_sequence(address)}
    except BridgeError as e:
        raise http_error(e)


@router.post("/declare_candidacy")
def declare_candidacy(args: DeclareCandidacyArgs, svc: StakeService = Depends(_service)) -> Dict[str, Any]:
    return _commit(svc.declare_candidacy, args)


@router.post("/withdraw_candidacy")
def withdraw_candidacy(args: WithdrawCandidacyArgs, svc: StakeService = Depends(_service)) -> Dict[str, Any]:
    return _commit(svc.withdraw_candidacy, args)


@router.post("/edit_candidacy")
def edit_candidacy(args: EditCandidacyArgs, svc: StakeService = Depends(_service)) -> Dict[str, Any]:
    return _commit(svc.edit_candidacy, args)


@router.post("/propose_slot")
def propose_slot(args: ProposeSlotArgs, svc: StakeService = Depends(_service)) -> Dict[str, Any]:
    return _commit(svc.propose_slot, args)


@router.post("/accept_slot")
def accept_slot(args: AcceptSlotArgs, svc: StakeService = Depends(_service)) -> Dict[str, Any]:
    return _commit(svc.accept_slot, args)


@router.post("/withdraw_slot")
def withdraw_slot(args: WithdrawSlotArgs, svc: StakeService = Depends(_service)) -> Dict[str, Any]:
    return _commit(svc.withdraw_slot, args)


@router.post("/cancel_slot")
def cancel_slot(args: CancelSlotArgs, svc: StakeService = Depends(_service)) -> Dict[str, Any]:
    return _commit(svc.cancel_slot, args)


@router.get("/validators")
def query_validators(height: int = Query(0, ge=0), svc: StakeService = Depends(_service)) -> Dict[str, Any]:
    return _read(svc.query_validators, height, render=_render_list)


@router.get("/validators/{address}")
def query_validator(address: str, height: int = Query(0, ge=0), svc: StakeService = Depends(_service)) -> Dict[str, Any]:
    return _read(svc.query_validator, address, height)


@router.get("/slots")
def query_slots(height: int = Query(0, ge=0), svc: StakeService = Depends(_service)) -> Dict[str, Any]:
    return _read(svc.query_slots, height, render=_render_list)


@router.get("/slots/{slot_id}")
def query_slot(slot_id: str, height: int = Query(0, ge=0), svc: StakeService = Depends(_service)) -> Dict[str, Any]:
    return _read(svc.query_slot, slot_id, height)


@router.get("/delegators/{address}")
def query_delegator(address: str, height: int = Query(0, ge=0), svc: StakeService = Depends(_service)) -> Dict[str, Any]:
    return _read(svc.query_delegator, address, height, render=_render_list)
