"""
Account addresses and signer actors.

An address is 20 raw bytes, written as 0x-prefixed hex. A signer address
maps deterministically onto a permission actor in the "sigs" app; that actor
is the principal recorded in the nonce layer and in the sequence key.
"""

from __future__ import annotations

import binascii
from dataclasses import dataclass
from typing import Sequence, Tuple

from ..errors import ValidationError
from .wire import Decoder, Encoder

ADDRESS_LEN = 20
ZERO_ADDRESS = b"\x00" * ADDRESS_LEN

SIG_APP = "sigs"


def strip_hex(s: str) -> str:
    s = (s or "").strip()
    if s[:2] in ("0x", "0X"):
        return s[2:]
    return s


def parse_address(value: str, *, field: str = "address") -> bytes:
    """Strict hex -> 20 byte address. Raises ValidationError when malformed."""
    raw = strip_hex(value)
    if len(raw) != ADDRESS_LEN * 2:
        raise ValidationError(f"{field} must be {ADDRESS_LEN} bytes of hex, got {value!r}")
    try:
        return binascii.unhexlify(raw)
    except (binascii.Error, ValueError) as e:
        raise ValidationError(f"{field} is not valid hex: {value!r}") from e


def address_hex(addr: bytes) -> str:
    return "0x" + binascii.hexlify(bytes(addr)).decode("ascii")


def canonical_address(value: str, *, field: str = "address") -> str:
    """Normalize user input to lower-case 0x hex."""
    return address_hex(parse_address(value, field=field))


def require_address_bytes(addr: bytes, *, field: str = "address", allow_zero: bool = False) -> None:
    if len(addr) != ADDRESS_LEN:
        raise ValidationError(f"{field} must be {ADDRESS_LEN} bytes")
    if not allow_zero and addr == ZERO_ADDRESS:
        raise ValidationError(f"{field} must not be the zero address")


@dataclass(frozen=True)
class Actor:
    chain_id: str
    app: str
    address: bytes

    def write_to(self, enc: Encoder) -> None:
        enc.write_string(self.chain_id)
        enc.write_string(self.app)
        enc.write_bytes(self.address)

    @classmethod
    def read_from(cls, dec: Decoder) -> "Actor":
        return cls(chain_id=dec.read_string(), app=dec.read_string(), address=dec.read_bytes())

    def to_bytes(self) -> bytes:
        enc = Encoder()
        self.write_to(enc)
        return enc.getvalue()

    def to_dict(self) -> dict:
        return {"chain_id": self.chain_id, "app": self.app, "address": address_hex(self.address)}


def sig_perm(address: str) -> Actor:
    return Actor(chain_id="", app=SIG_APP, address=parse_address(address, field="from"))


def signer_set(address: str) -> Tuple[Actor, ...]:
    # only the actual signer goes into the nonce; multisig would extend this
    return (sig_perm(address),)


def signers_key(signers: Sequence[Actor]) -> bytes:
    return b"".join(a.to_bytes() for a in signers)
