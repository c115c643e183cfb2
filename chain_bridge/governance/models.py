from __future__ import annotations

from dataclasses import dataclass, replace
from decimal import Decimal
from typing import Any, Dict


def canonical_id(pid: str) -> str:
    """Proposal ids are case-insensitive; upper-case is canonical."""
    return (pid or "").strip().upper()


@dataclass(frozen=True)
class Proposal:
    id: str
    proposer: str
    block_height: int
    from_address: str
    to_address: str
    amount: Decimal
    reason: str
    created_at: str
    result: str = ""
    result_msg: str = ""
    result_block_height: int = 0
    result_at: str = ""

    @property
    def resolved(self) -> bool:
        return bool(self.result)

    def canonical(self) -> "Proposal":
        return replace(self, id=canonical_id(self.id))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "proposer": self.proposer,
            "block_height": self.block_height,
            "from": self.from_address,
            "to": self.to_address,
            "amount": format(self.amount, "f"),
            "reason": self.reason,
            "created_at": self.created_at,
            "result": self.result,
            "result_msg": self.result_msg,
            "result_block_height": self.result_block_height,
            "result_at": self.result_at,
        }


@dataclass(frozen=True)
class Vote:
    proposal_id: str
    voter: str
    block_height: int
    answer: str
    created_at: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "proposal_id": self.proposal_id,
            "voter": self.voter,
            "block_height": self.block_height,
            "answer": self.answer,
            "created_at": self.created_at,
        }
