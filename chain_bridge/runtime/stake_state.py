"""Stake module state as served by validator / slot / delegator queries."""

from __future__ import annotations

import binascii
from dataclasses import dataclass
from typing import Any, Dict, List

from .address import address_hex
from .wire import Decoder, Encoder, decode_exact


@dataclass(frozen=True)
class Candidate:
    pub_key: bytes
    owner_address: bytes
    shares: int
    voting_power: int
    state: str
    created_at: str
    updated_at: str

    @classmethod
    def read_from(cls, dec: Decoder) -> "Candidate":
        return cls(
            pub_key=dec.read_bytes(),
            owner_address=dec.read_bytes(),
            shares=dec.read_int64(),
            voting_power=dec.read_int64(),
            state=dec.read_string(),
            created_at=dec.read_string(),
            updated_at=dec.read_string(),
        )

    def write_to(self, enc: Encoder) -> None:
        enc.write_bytes(self.pub_key)
        enc.write_bytes(self.owner_address)
        enc.write_int64(self.shares)
        enc.write_int64(self.voting_power)
        enc.write_string(self.state)
        enc.write_string(self.created_at)
        enc.write_string(self.updated_at)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "pub_key": binascii.hexlify(self.pub_key).decode("ascii"),
            "owner_address": address_hex(self.owner_address),
            "shares": self.shares,
            "voting_power": self.voting_power,
            "state": self.state,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }


@dataclass(frozen=True)
class Slot:
    id: str
    validator_address: bytes
    total_amount: int
    available_amount: int
    proposed_roi: int
    state: str
    created_at: str
    updated_at: str

    @classmethod
    def read_from(cls, dec: Decoder) -> "Slot":
        return cls(
            id=dec.read_string(),
            validator_address=dec.read_bytes(),
            total_amount=dec.read_int64(),
            available_amount=dec.read_int64(),
            proposed_roi=dec.read_int64(),
            state=dec.read_string(),
            created_at=dec.read_string(),
            updated_at=dec.read_string(),
        )

    def write_to(self, enc: Encoder) -> None:
        enc.write_string(self.id)
        enc.write_bytes(self.validator_address)
        enc.write_int64(self.total_amount)
        enc.write_int64(self.available_amount)
        enc.write_int64(self.proposed_roi)
        enc.write_string(self.state)
        enc.write_string(self.created_at)
        enc.write_string(self.updated_at)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "validator_address": address_hex(self.validator_address),
            "total_amount": self.total_amount,
            "available_amount": self.available_amount,
            "proposed_roi": self.proposed_roi,
            "state": self.state,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }


@dataclass(frozen=True)
class SlotDelegate:
    delegator_address: bytes
    slot_id: str
    amount: int
    created_at: str
    updated_at: str

    @classmethod
    def read_from(cls, dec: Decoder) -> "SlotDelegate":
        return cls(
            delegator_address=dec.read_bytes(),
            slot_id=dec.read_string(),
            amount=dec.read_int64(),
            created_at=dec.read_string(),
            updated_at=dec.read_string(),
        )

    def write_to(self, enc: Encoder) -> None:
        enc.write_bytes(self.delegator_address)
        enc.write_string(self.slot_id)
        enc.write_int64(self.amount)
        enc.write_string(self.created_at)
        enc.write_string(self.updated_at)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "delegator_address": address_hex(self.delegator_address),
            "slot_id": self.slot_id,
            "amount": self.amount,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }


def decode_candidate(raw: bytes) -> Candidate:
    return decode_exact(raw, Candidate.read_from)


def decode_candidates(raw: bytes) -> List[Candidate]:
    return decode_exact(raw, lambda d: d.read_list(Candidate.read_from))


def decode_slot(raw: bytes) -> Slot:
    return decode_exact(raw, Slot.read_from)


def decode_slots(raw: bytes) -> List[Slot]:
    return decode_exact(raw, lambda d: d.read_list(Slot.read_from))


def decode_slot_delegates(raw: bytes) -> List[SlotDelegate]:
    return decode_exact(raw, lambda d: d.read_list(SlotDelegate.read_from))
