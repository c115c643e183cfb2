from __future__ import annotations

from typing import Any, Dict, List

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field

from ..backend import Backend
from ..errors import BridgeError, NotFound
from ..governance.models import Proposal, Vote
from ..runtime import stake_tx
from ..runtime.broadcast import CommitResult
from .deps import get_backend, http_error

__all__ = [
    "GovernanceProposalArgs",
    "GovernanceService",
    "router",
]

router = APIRouter(prefix="/governance", tags=["governance"])


class GovernanceProposalArgs(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    sequence: int = Field(0, ge=0, le=(1 << 32) - 1)
    proposer: str
    from_: str = Field(..., alias="from")
    to: str
    # decimal string, never a float
    amount: str
    reason: str = ""


class GovernanceService:
    def __init__(self, backend: Backend) -> None:
        self.backend = backend

    def propose(self, args: GovernanceProposalArgs) -> CommitResult:
        tx = stake_tx.new_governance_propose(args.proposer, args.from_, args.to, args.amount, args.reason)
        # the proposer signs
        envelope = self.backend.builder.build(tx, args.proposer, args.sequence)
        return self.backend.broadcaster.broadcast(envelope)

    def get_proposal(self, pid: str) -> Proposal:
        proposal = self.backend.store.get_by_id(pid)
        if proposal is None:
            raise NotFound(f"proposal {pid} not found")
        return proposal

    def list_proposals(self) -> List[Proposal]:
        return self.backend.store.list_all()

    def list_votes(self, pid: str) -> List[Vote]:
        self.get_proposal(pid)
        return self.backend.store.list_votes(pid)

    def get_vote(self, pid: str, voter: str) -> Vote:
        vote = self.backend.store.get_vote(pid, voter)
        if vote is None:
            raise NotFound(f"no vote from {voter} on {pid}")
        return vote


def _service(backend: Backend = Depends(get_backend)) -> GovernanceService:
    return GovernanceService(backend)


@router.post("/proposals")
def propose(args: GovernanceProposalArgs, svc: GovernanceService = Depends(_service)) -> Dict[str, Any]:
    try:
        return svc.propose(args).to_dict()
    except BridgeError as e:
        raise http_error(e)


@router.get("/proposals")
def list_proposals(svc: GovernanceService = Depends(_service)) -> Dict[str, Any]:
    try:
        return {"proposals": [p.to_dict() for p in svc.list_proposals()]}
    except BridgeError as e:
        raise http_error(e)


@router.get("/proposals/{pid}")
def get_proposal(pid: str, svc: GovernanceService = Depends(_service)) -> Dict[str, Any]:
    try:
        return svc.get_proposal(pid).to_dict()
    except BridgeError as e:
        raise http_error(e)


@router.get("/proposals/{pid}/votes")
def list_votes(pid: str, svc: GovernanceService = Depends(_service)) -> Dict[str, Any]:
    try:
        return {"votes": [v.to_dict() for v in svc.list_votes(pid)]}
    except BridgeError as e:
        raise http_error(e)


@router.get("/proposals/{pid}/votes/{voter}")
def get_vote(pid: str, voter: str, svc: GovernanceService = Depends(_service)) -> Dict[str, Any]:
    try:
        return svc.get_vote(pid, voter).to_dict()
    except BridgeError as e:
        raise http_error(e)
