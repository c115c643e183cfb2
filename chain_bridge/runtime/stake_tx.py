"""
Inner (domain) transactions: stake operations and governance proposals.

Every inner tx is a frozen dataclass with:
- TYPE_BYTE              wire tag, registered in TX_TYPES
- write_fields / read_fields
- validate_basic()       local structural checks, raises ValidationError
- signable()             None; the authentication layer carries the capability
"""

from __future__ import annotations

import binascii
import re
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any, ClassVar, Dict, Optional, Type

from ..errors import DecodeError, ValidationError
from .address import address_hex, parse_address, require_address_bytes, strip_hex
from .wire import Decoder, Encoder

PUBKEY_LEN = 32

# uint256 fits in 78 decimal digits
AMOUNT_MAX_DIGITS = 78
_AMOUNT_RE = re.compile(r"^-?[0-9]+$")

# 0x50-0x5f stake, 0x60-0x6f governance
TYPE_DECLARE_CANDIDACY = 0x50
TYPE_WITHDRAW_CANDIDACY = 0x51
TYPE_EDIT_CANDIDACY = 0x52
TYPE_PROPOSE_SLOT = 0x53
TYPE_ACCEPT_SLOT = 0x54
TYPE_WITHDRAW_SLOT = 0x55
TYPE_CANCEL_SLOT = 0x56
TYPE_GOVERNANCE_PROPOSE = 0x60

TX_TYPES: Dict[int, Type["InnerTx"]] = {}


def register(cls):
    if cls.TYPE_BYTE in TX_TYPES:
        raise RuntimeError(f"duplicate tx type byte {cls.TYPE_BYTE:#x}")
    TX_TYPES[cls.TYPE_BYTE] = cls
    return cls


def _require_non_negative(name: str, value: Any) -> None:
    if value < 0:
        raise ValidationError(f"{name} must be non-negative, got {value}")


def _require_slot_id(slot_id: str) -> None:
    if not (slot_id or "").strip():
        raise ValidationError("slot id is required")


def pub_key_from_hex(value: str) -> bytes:
    raw = strip_hex(value)
    try:
        pk = binascii.unhexlify(raw)
    except (binascii.Error, ValueError) as e:
        raise ValidationError(f"pub key is not valid hex: {value!r}") from e
    if len(pk) != PUBKEY_LEN:
        raise ValidationError(f"pub key must be {PUBKEY_LEN} bytes, got {len(pk)}")
    return pk


def check_amount(amount: Decimal) -> None:
    """Whole number of at most AMOUNT_MAX_DIGITS digits, checked without expanding exponents."""
    if not amount.is_finite():
        raise ValidationError("amount must be a finite number")
    _, digits, exponent = amount.as_tuple()
    if exponent > 0:
        raise ValidationError("amount must be written in plain base-10 digits")
    if amount != amount.to_integral_value():
        raise ValidationError("amount must be a whole number")
    if len(digits) + exponent > AMOUNT_MAX_DIGITS:
        raise ValidationError(f"amount exceeds {AMOUNT_MAX_DIGITS} digits")


def parse_amount(value: Any) -> Decimal:
    """Plain base-10 integer (string, int or Decimal) -> Decimal. Floats are refused."""
    if isinstance(value, (float, bool)):
        raise ValidationError("amount must be a decimal string, not a float")
    if isinstance(value, Decimal):
        check_amount(value)
        return Decimal(int(value))
    text = str(value).strip()
    if not _AMOUNT_RE.match(text):
        raise ValidationError(f"amount must be base-10 digits: {value!r}")
    if len(text.lstrip("-")) > AMOUNT_MAX_DIGITS:
        raise ValidationError(f"amount exceeds {AMOUNT_MAX_DIGITS} digits")
    try:
        return Decimal(text)
    except InvalidOperation as e:
        raise ValidationError(f"amount is not a decimal number: {value!r}") from e


class InnerTx:
    TYPE_BYTE: ClassVar[int] = 0
    NAME: ClassVar[str] = ""

    def write_fields(self, enc: Encoder) -> None:
        raise NotImplementedError

    @classmethod
    def read_fields(cls, dec: Decoder) -> "InnerTx":
        raise NotImplementedError

    def validate_basic(self) -> None:
        pass

    def signable(self) -> Optional[Any]:
        return None

    def unwrap(self) -> None:
        return None

    def to_dict(self) -> Dict[str, Any]:
        raise NotImplementedError


@register
@dataclass(frozen=True)
class TxDeclareCandidacy(InnerTx):
    TYPE_BYTE: ClassVar[int] = TYPE_DECLARE_CANDIDACY
    NAME: ClassVar[str] = "stake/declare_candidacy"

    pub_key: bytes

    def write_fields(self, enc: Encoder) -> None:
        enc.write_bytes(self.pub_key)

    @classmethod
    def read_fields(cls, dec: Decoder) -> "TxDeclareCandidacy":
        return cls(pub_key=dec.read_bytes())

    def validate_basic(self) -> None:
        if len(self.pub_key) != PUBKEY_LEN:
            raise ValidationError(f"pub key must be {PUBKEY_LEN} bytes")

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.NAME, "pub_key": binascii.hexlify(self.pub_key).decode("ascii")}


@register
@dataclass(frozen=True)
class TxWithdrawCandidacy(InnerTx):
    TYPE_BYTE: ClassVar[int] = TYPE_WITHDRAW_CANDIDACY
    NAME: ClassVar[str] = "stake/withdraw_candidacy"

    validator_address: bytes

    def write_fields(self, enc: Encoder) -> None:
        enc.write_bytes(self.validator_address)

    @classmethod
    def read_fields(cls, dec: Decoder) -> "TxWithdrawCandidacy":
        return cls(validator_address=dec.read_bytes())

    def validate_basic(self) -> None:
        require_address_bytes(self.validator_address, field="validator address")

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.NAME, "validator_address": address_hex(self.validator_address)}


@register
@dataclass(frozen=True)
class TxEditCandidacy(InnerTx):
    TYPE_BYTE: ClassVar[int] = TYPE_EDIT_CANDIDACY
    NAME: ClassVar[str] = "stake/edit_candidacy"

    new_address: bytes

    def write_fields(self, enc: Encoder) -> None:
        enc.write_bytes(self.new_address)

    @classmethod
    def read_fields(cls, dec: Decoder) -> "TxEditCandidacy":
        return cls(new_address=dec.read_bytes())

    def validate_basic(self) -> None:
        require_address_bytes(self.new_address, field="new address")

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.NAME, "new_address": address_hex(self.new_address)}


@register
@dataclass(frozen=True)
class TxProposeSlot(InnerTx):
    TYPE_BYTE: ClassVar[int] = TYPE_PROPOSE_SLOT
    NAME: ClassVar[str] = "stake/propose_slot"

    validator_address: bytes
    amount: int
    proposed_roi: int

    def write_fields(self, enc: Encoder) -> None:
        enc.write_bytes(self.validator_address)
        enc.write_int64(self.amount)
        enc.write_int64(self.proposed_roi)

    @classmethod
    def read_fields(cls, dec: Decoder) -> "TxProposeSlot":
        return cls(
            validator_address=dec.read_bytes(),
            amount=dec.read_int64(),
            proposed_roi=dec.read_int64(),
        )

    def validate_basic(self) -> None:
        require_address_bytes(self.validator_address, field="validator address")
        _require_non_negative("amount", self.amount)
        _require_non_negative("proposed roi", self.proposed_roi)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.NAME,
            "validator_address": address_hex(self.validator_address),
            "amount": self.amount,
            "proposed_roi": self.proposed_roi,
        }


@dataclass(frozen=True)
class _SlotAmountTx(InnerTx):
    amount: int
    slot_id: str

    def write_fields(self, enc: Encoder) -> None:
        enc.write_int64(self.amount)
        enc.write_string(self.slot_id)

    @classmethod
    def read_fields(cls, dec: Decoder):
        return cls(amount=dec.read_int64(), slot_id=dec.read_string())

    def validate_basic(self) -> None:
        _require_non_negative("amount", self.amount)
        _require_slot_id(self.slot_id)

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.NAME, "amount": self.amount, "slot_id": self.slot_id}


@register
@dataclass(frozen=True)
class TxAcceptSlot(_SlotAmountTx):
    TYPE_BYTE: ClassVar[int] = TYPE_ACCEPT_SLOT
    NAME: ClassVar[str] = "stake/accept_slot"


@register
@dataclass(frozen=True)
class TxWithdrawSlot(_SlotAmountTx):
    TYPE_BYTE: ClassVar[int] = TYPE_WITHDRAW_SLOT
    NAME: ClassVar[str] = "stake/withdraw_slot"


@register
@dataclass(frozen=True)
class TxCancelSlot(InnerTx):
    TYPE_BYTE: ClassVar[int] = TYPE_CANCEL_SLOT
    NAME: ClassVar[str] = "stake/cancel_slot"

    validator_address: bytes
    slot_id: str

    def write_fields(self, enc: Encoder) -> None:
        enc.write_bytes(self.validator_address)
        enc.write_string(self.slot_id)

    @classmethod
    def read_fields(cls, dec: Decoder) -> "TxCancelSlot":
        return cls(validator_address=dec.read_bytes(), slot_id=dec.read_string())

    def validate_basic(self) -> None:
        require_address_bytes(self.validator_address, field="validator address")
        _require_slot_id(self.slot_id)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.NAME,
            "validator_address": address_hex(self.validator_address),
            "slot_id": self.slot_id,
        }


@register
@dataclass(frozen=True)
class TxGovernancePropose(InnerTx):
    TYPE_BYTE: ClassVar[int] = TYPE_GOVERNANCE_PROPOSE
    NAME: ClassVar[str] = "governance/propose"

    proposer: bytes
    from_address: bytes
    to_address: bytes
    amount: Decimal
    reason: str

    def write_fields(self, enc: Encoder) -> None:
        enc.write_bytes(self.proposer)
        enc.write_bytes(self.from_address)
        enc.write_bytes(self.to_address)
        # arbitrary precision: carried as its decimal string
        enc.write_string(format(self.amount, "f"))
        enc.write_string(self.reason)

    @classmethod
    def read_fields(cls, dec: Decoder) -> "TxGovernancePropose":
        proposer = dec.read_bytes()
        from_address = dec.read_bytes()
        to_address = dec.read_bytes()
        raw_amount = dec.read_string()
        try:
            amount = parse_amount(raw_amount)
        except ValidationError as e:
            raise DecodeError(str(e)) from e
        return cls(proposer, from_address, to_address, amount, dec.read_string())

    def validate_basic(self) -> None:
        require_address_bytes(self.proposer, field="proposer")
        require_address_bytes(self.from_address, field="from")
        require_address_bytes(self.to_address, field="to")
        check_amount(self.amount)
        _require_non_negative("amount", self.amount)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.NAME,
            "proposer": address_hex(self.proposer),
            "from": address_hex(self.from_address),
            "to": address_hex(self.to_address),
            "amount": format(self.amount, "f"),
            "reason": self.reason,
        }


# ---------------------------------------------------------------------------
# Constructors taking user-facing (hex / decimal string) input
# ---------------------------------------------------------------------------

def new_declare_candidacy(pub_key_hex: str) -> TxDeclareCandidacy:
    return TxDeclareCandidacy(pub_key=pub_key_from_hex(pub_key_hex))


def new_withdraw_candidacy(validator: str) -> TxWithdrawCandidacy:
    return TxWithdrawCandidacy(validator_address=parse_address(validator, field="from"))


def new_edit_candidacy(new_address: str) -> TxEditCandidacy:
    if not (new_address or "").strip():
        raise ValidationError("must provide new address")
    return TxEditCandidacy(new_address=parse_address(new_address, field="new address"))


def new_propose_slot(validator: str, amount: int, proposed_roi: int) -> TxProposeSlot:
    return TxProposeSlot(
        validator_address=parse_address(validator, field="from"),
        amount=int(amount),
        proposed_roi=int(proposed_roi),
    )


def new_accept_slot(amount: int, slot_id: str) -> TxAcceptSlot:
    return TxAcceptSlot(amount=int(amount), slot_id=slot_id)


def new_withdraw_slot(amount: int, slot_id: str) -> TxWithdrawSlot:
    return TxWithdrawSlot(amount=int(amount), slot_id=slot_id)


def new_cancel_slot(validator: str, slot_id: str) -> TxCancelSlot:
    return TxCancelSlot(validator_address=parse_address(validator, field="from"), slot_id=slot_id)


def new_governance_propose(proposer: str, from_addr: str, to_addr: str, amount: Any, reason: str) -> TxGovernancePropose:
    return TxGovernancePropose(
        proposer=parse_address(proposer, field="proposer"),
        from_address=parse_address(from_addr, field="from"),
        to_address=parse_address(to_addr, field="to"),
        amount=parse_amount(amount),
        reason=reason or "",
    )
