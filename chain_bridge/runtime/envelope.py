"""
Transaction envelopes.

An envelope wraps an inner tx in three layers, always in this order:

    inner tx -> NonceLayer(sequence, signers)
             -> ChainLayer(chain_id, expires_at)
             -> SigLayer(signature slots)

The receiving state machine unwraps in reverse (Sig -> Chain -> Nonce ->
inner). Each layer is a frozen value that owns its inner value; LAYER_ORDER
is the single place the wrapping sequence is defined.

Wire form of every layer / tx: one type byte followed by its fields.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import Any, Callable, ClassVar, Dict, List, Optional, Tuple, Union

from ..consensus.context import ChainContext, check_chain_id
from ..errors import AddressRequired, DecodeError, SigningError, ValidationError
from .address import Actor, address_hex, signer_set
from .nonce import SequenceResolver
from .signing import SignedShell, SigningAdapter
from .stake_tx import TX_TYPES, InnerTx
from .wire import Decoder, Encoder, decode_exact

log = logging.getLogger(__name__)

TYPE_CHAIN = 0x03
TYPE_SIG = 0x16
TYPE_NONCE = 0x69

MAX_SEQUENCE = 0xFFFFFFFF

Tx = Union["Layer", InnerTx]


def write_tx(enc: Encoder, tx: Tx) -> None:
    enc.write_byte(tx.TYPE_BYTE)
    tx.write_fields(enc)


def read_tx(dec: Decoder) -> Tx:
    tag = dec.read_byte()
    cls = LAYER_TYPES.get(tag) or TX_TYPES.get(tag)
    if cls is None:
        raise DecodeError(f"unknown tx type byte {tag:#04x}")
    return cls.read_fields(dec)


def tx_bytes(tx: Tx) -> bytes:
    enc = Encoder()
    write_tx(enc, tx)
    return enc.getvalue()


# ---------------------------------------------------------------------------
# Layers
# ---------------------------------------------------------------------------

class Layer:
    TYPE_BYTE: ClassVar[int] = 0
    NAME: ClassVar[str] = ""

    tx: Tx

    def unwrap(self) -> Tx:
        return self.tx

    def signable(self) -> Optional[Any]:
        return None

    def validate_basic(self) -> None:
        self.tx.validate_basic()


@dataclass(frozen=True)
class NonceLayer(Layer):
    TYPE_BYTE: ClassVar[int] = TYPE_NONCE
    NAME: ClassVar[str] = "nonce"

    sequence: int
    signers: Tuple[Actor, ...]
    tx: Tx

    def write_fields(self, enc: Encoder) -> None:
        enc.write_uint32(self.sequence)
        enc.write_list(list(self.signers), lambda e, a: a.write_to(e))
        write_tx(enc, self.tx)

    @classmethod
    def read_fields(cls, dec: Decoder) -> "NonceLayer":
        sequence = dec.read_uint32()
        signers = tuple(dec.read_list(Actor.read_from))
        return cls(sequence=sequence, signers=signers, tx=read_tx(dec))

    def validate_basic(self) -> None:
        if not self.signers:
            raise ValidationError("nonce layer has no signers")
        if not 0 < self.sequence <= MAX_SEQUENCE:
            raise ValidationError(f"sequence must be in 1..{MAX_SEQUENCE}, got {self.sequence}")
        super().validate_basic()


@dataclass(frozen=True)
class ChainLayer(Layer):
    TYPE_BYTE: ClassVar[int] = TYPE_CHAIN
    NAME: ClassVar[str] = "chain"

    chain_id: str
    expires_at: int
    tx: Tx

    def write_fields(self, enc: Encoder) -> None:
        enc.write_string(self.chain_id)
        enc.write_uint64(self.expires_at)
        write_tx(enc, self.tx)

    @classmethod
    def read_fields(cls, dec: Decoder) -> "ChainLayer":
        chain_id = dec.read_string()
        expires_at = dec.read_uint64()
        return cls(chain_id=chain_id, expires_at=expires_at, tx=read_tx(dec))

    def validate_basic(self) -> None:
        check_chain_id(self.chain_id)
        super().validate_basic()


@dataclass(frozen=True)
class SignatureSlot:
    signer: bytes
    signature: bytes = b""

    @property
    def signed(self) -> bool:
        return bool(self.signature)

    def write_to(self, enc: Encoder) -> None:
        enc.write_bytes(self.signer)
        enc.write_bytes(self.signature)

    @classmethod
    def read_from(cls, dec: Decoder) -> "SignatureSlot":
        return cls(signer=dec.read_bytes(), signature=dec.read_bytes())


@dataclass(frozen=True)
class SigLayer(Layer):
    """Authentication layer. Carries the Signable capability."""

    TYPE_BYTE: ClassVar[int] = TYPE_SIG
    NAME: ClassVar[str] = "sig"

    tx: Tx
    slots: Tuple[SignatureSlot, ...] = field(default_factory=tuple)

    def write_fields(self, enc: Encoder) -> None:
        write_tx(enc, self.tx)
        enc.write_list(list(self.slots), lambda e, s: s.write_to(e))

    @classmethod
    def read_fields(cls, dec: Decoder) -> "SigLayer":
        tx = read_tx(dec)
        return cls(tx=tx, slots=tuple(dec.read_list(SignatureSlot.read_from)))

    def validate_basic(self) -> None:
        if not self.slots:
            raise ValidationError("authentication layer has no signature slots")
        super().validate_basic()

    # Signable
    def signable(self) -> "SigLayer":
        return self

    def sign_bytes(self) -> bytes:
        return tx_bytes(self.tx)

    def sign(self, signed: SignedShell) -> "SigLayer":
        """Return a copy of this layer with the signer's slot filled."""
        for i, slot in enumerate(self.slots):
            if slot.signer == signed.sender:
                if slot.signed:
                    raise SigningError(f"slot for {address_hex(signed.sender)} is already signed")
                filled = replace(slot, signature=signed.to_bytes())
                return replace(self, slots=self.slots[:i] + (filled,) + self.slots[i + 1 :])
        raise SigningError(f"{address_hex(signed.sender)} is not a signer of this envelope")

    @property
    def fully_signed(self) -> bool:
        return bool(self.slots) and all(s.signed for s in self.slots)


LAYER_TYPES: Dict[int, type] = {
    TYPE_NONCE: NonceLayer,
    TYPE_CHAIN: ChainLayer,
    TYPE_SIG: SigLayer,
}


# ---------------------------------------------------------------------------
# Envelope
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class WrapParams:
    sequence: int
    signers: Tuple[Actor, ...]
    chain_id: str
    expires_at: int = 0


def wrap_nonce(tx: Tx, p: WrapParams) -> NonceLayer:
    return NonceLayer(sequence=p.sequence, signers=p.signers, tx=tx)


def wrap_chain(tx: Tx, p: WrapParams) -> ChainLayer:
    return ChainLayer(chain_id=p.chain_id, expires_at=p.expires_at, tx=tx)


def wrap_sig(tx: Tx, p: WrapParams) -> SigLayer:
    return SigLayer(tx=tx, slots=tuple(SignatureSlot(signer=a.address) for a in p.signers))


# innermost first
LAYER_ORDER: Tuple[Callable[[Tx, WrapParams], Layer], ...] = (wrap_nonce, wrap_chain, wrap_sig)


@dataclass(frozen=True)
class Envelope:
    outer: Tx

    def unwrap(self) -> Tx:
        return self.outer

    def validate_basic(self) -> None:
        self.outer.validate_basic()

    def to_bytes(self) -> bytes:
        return tx_bytes(self.outer)

    @classmethod
    def from_bytes(cls, raw: bytes) -> "Envelope":
        return cls(outer=decode_exact(raw, read_tx))

    def layers(self) -> List[Tx]:
        """Outermost first, ending with the inner tx."""
        out: List[Tx] = []
        cur: Optional[Tx] = self.outer
        while cur is not None:
            out.append(cur)
            cur = cur.unwrap()
        return out


def wrap(inner: InnerTx, params: WrapParams) -> Envelope:
    tx: Tx = inner
    for wrapper in LAYER_ORDER:
        tx = wrapper(tx, params)
    return Envelope(outer=tx)


@dataclass(frozen=True)
class OpenedEnvelope:
    sig: SigLayer
    chain: ChainLayer
    nonce: NonceLayer
    inner: InnerTx


def open_envelope(envelope: Envelope, *, chain_id: Optional[str] = None) -> OpenedEnvelope:
    """Unwrap the way the receiving state machine does: Sig -> Chain -> Nonce -> inner."""
    expected = (SigLayer, ChainLayer, NonceLayer)
    layers = envelope.layers()
    if len(layers) != len(expected) + 1:
        raise ValidationError(f"expected {len(expected)} layers around the tx, got {len(layers) - 1}")
    for layer, kind in zip(layers, expected):
        if not isinstance(layer, kind):
            raise ValidationError(f"expected {kind.NAME} layer, got {type(layer).__name__}")
    sig, chain, nonce, inner = layers
    if not isinstance(inner, InnerTx):
        raise ValidationError("innermost value is not a domain transaction")
    if not sig.fully_signed:
        raise ValidationError("envelope is not signed")
    if chain_id is not None and chain.chain_id != chain_id:
        raise ValidationError(f"chain id mismatch: {chain.chain_id!r} != {chain_id!r}")
    signed_by = {s.signer for s in sig.slots}
    if {a.address for a in nonce.signers} - signed_by:
        raise ValidationError("nonce signers and signature slots disagree")
    envelope.validate_basic()
    return OpenedEnvelope(sig=sig, chain=chain, nonce=nonce, inner=inner)


# ---------------------------------------------------------------------------
# Builder
# ---------------------------------------------------------------------------

class EnvelopeBuilder:
    def __init__(self, resolver: SequenceResolver, signer: SigningAdapter, chain: ChainContext) -> None:
        self.resolver = resolver
        self.signer = signer
        self.chain = chain

    def build(self, inner: InnerTx, signer_address: Optional[str], sequence: int = 0) -> Envelope:
        # fail fast, before any remote call
        chain_id = self.chain.require_chain_id()
        if not signer_address:
            raise AddressRequired()
        inner.validate_basic()

        signers = signer_set(signer_address)
        if sequence is None or sequence <= 0:
            sequence = self.resolver.resolve(signers) + 1

        envelope = wrap(inner, WrapParams(sequence=int(sequence), signers=signers, chain_id=chain_id))
        envelope.validate_basic()

        envelope = self.signer.sign(envelope, signer_address)
        log.info(
            "[envelope] built %s for %s seq=%d chain=%s",
            getattr(inner, "NAME", type(inner).__name__),
            address_hex(signers[0].address),
            sequence,
            chain_id,
        )
        if log.isEnabledFor(logging.DEBUG):
            log.debug("[envelope] %s", describe(envelope))
        return envelope


def describe(envelope: Envelope) -> Dict[str, Any]:
    """JSON-friendly view of every layer, logged at debug level by the builder."""
    out: Dict[str, Any] = {}
    for layer in envelope.layers():
        if isinstance(layer, SigLayer):
            out["signatures"] = [
                {"signer": address_hex(s.signer), "signed": s.signed} for s in layer.slots
            ]
        elif isinstance(layer, ChainLayer):
            out["chain_id"] = layer.chain_id
            out["expires_at"] = layer.expires_at
        elif isinstance(layer, NonceLayer):
            out["sequence"] = layer.sequence
            out["signers"] = [a.to_dict() for a in layer.signers]
        else:
            out["tx"] = layer.to_dict()
    return out
