"""
Signing delegation.

The bridge never holds the signing policy itself. It hands a throw-away
"signing shell" (a zero-value, zero-gas transaction with no recipient whose
payload is the envelope's sign bytes) to an external key manager, then
attaches whatever signature comes back through the envelope's Signable
capability, which yields a new signed layer. The shell is never broadcast.

LocalKeystore is an in-process key manager (secp256k1 via `cryptography`)
for development nodes and tests. Its addresses are dev-only, see
address_from_public_key.
"""

from __future__ import annotations

import hashlib
import logging
import threading
from dataclasses import dataclass, field, replace
from typing import Dict, Optional, Protocol, runtime_checkable

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec

from ..errors import AddressRequired, BridgeError, SignerNotFound, SigningError
from .address import ADDRESS_LEN, ZERO_ADDRESS, address_hex, parse_address
from .wire import Encoder

log = logging.getLogger(__name__)

DEFAULT_AUX_CHAIN_ID = 15


# ---------------------------------------------------------------------------
# Shapes exchanged with the key manager
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class SigningShell:
    payload: bytes
    nonce: int = 0
    to: bytes = ZERO_ADDRESS
    value: int = 0
    gas_limit: int = 0
    gas_price: int = 0

    def write_to(self, enc: Encoder) -> None:
        enc.write_uint64(self.nonce)
        enc.write_bytes(self.to)
        enc.write_uvarint(self.value)
        enc.write_uvarint(self.gas_limit)
        enc.write_uvarint(self.gas_price)
        enc.write_bytes(self.payload)

    def signing_hash(self, aux_chain_id: int) -> bytes:
        enc = Encoder()
        self.write_to(enc)
        enc.write_uint64(aux_chain_id)
        return hashlib.sha256(enc.getvalue()).digest()


@dataclass(frozen=True)
class SignedShell:
    shell: SigningShell
    sender: bytes
    aux_chain_id: int
    signature: bytes

    def to_bytes(self) -> bytes:
        enc = Encoder()
        self.shell.write_to(enc)
        enc.write_uint64(self.aux_chain_id)
        enc.write_bytes(self.sender)
        enc.write_bytes(self.signature)
        return enc.getvalue()


@dataclass(frozen=True)
class Account:
    address: bytes
    url: str = ""


@runtime_checkable
class Signable(Protocol):
    def sign_bytes(self) -> bytes: ...

    def sign(self, signed: SignedShell) -> "Signable":
        """Return a signed copy; the receiver is left untouched."""
        ...


class KeyManager(Protocol):
    def find_account(self, address: bytes) -> Account:
        """Raise SignerNotFound (or KeyError/LookupError) when unknown."""
        ...

    def sign_shell(self, account: Account, shell: SigningShell, aux_chain_id: int) -> SignedShell: ...


# ---------------------------------------------------------------------------
# Adapter
# ---------------------------------------------------------------------------

class SigningAdapter:
    def __init__(self, keys: KeyManager, aux_chain_id: int = DEFAULT_AUX_CHAIN_ID) -> None:
        self.keys = keys
        self.aux_chain_id = int(aux_chain_id)

    def sign(self, envelope, signer_address: Optional[str]):
        """Return the envelope with its outer layer signed (the same envelope if it is not signable)."""
        outer = envelope.unwrap()
        capability = outer.signable() if outer is not None else None
        if capability is None:
            # nothing to sign at this layer
            return envelope
        if not signer_address:
            raise AddressRequired()

        addr = parse_address(signer_address, field="from")
        try:
            account = self.keys.find_account(addr)
        except LookupError as e:
            raise SignerNotFound(f"no account for {address_hex(addr)}") from e

        shell = SigningShell(payload=capability.sign_bytes())
        try:
            signed = self.keys.sign_shell(account, shell, self.aux_chain_id)
        except BridgeError:
            raise
        except Exception as e:
            raise SigningError(f"key manager failed to sign for {address_hex(addr)}: {e}") from e

        signed_outer = capability.sign(signed)
        log.debug("[signing] envelope signed by %s", address_hex(addr))
        return replace(envelope, outer=signed_outer)


# ---------------------------------------------------------------------------
# Local keystore
# ---------------------------------------------------------------------------

def address_from_public_key(pub: ec.EllipticCurvePublicKey) -> bytes:
    """
    Development-only address: last 20 bytes of SHA3-256 over the uncompressed
    point. This is NOT the Keccak-256 derivation of external wallets, so
    LocalKeystore addresses only match keys created by this keystore.
    """
    point = pub.public_bytes(
        encoding=serialization.Encoding.X962,
        format=serialization.PublicFormat.UncompressedPoint,
    )
    return hashlib.sha3_256(point[1:]).digest()[-ADDRESS_LEN:]


@dataclass
class LocalKeystore:
    """In-memory secp256k1 accounts keyed by address."""

    _keys: Dict[bytes, ec.EllipticCurvePrivateKey] = field(default_factory=dict)
    _lock: threading.RLock = field(default_factory=threading.RLock)

    def new_account(self) -> Account:
        return self.import_key(ec.generate_private_key(ec.SECP256K1()))

    def import_key(self, key: ec.EllipticCurvePrivateKey) -> Account:
        if not isinstance(key.curve, ec.SECP256K1):
            raise ValueError("only secp256k1 keys are supported")
        addr = address_from_public_key(key.public_key())
        with self._lock:
            self._keys[addr] = key
        return Account(address=addr, url=f"local://{address_hex(addr)}")

    def find_account(self, address: bytes) -> Account:
        with self._lock:
            if address not in self._keys:
                raise SignerNotFound(f"unknown account {address_hex(address)}")
        return Account(address=address, url=f"local://{address_hex(address)}")

    def sign_shell(self, account: Account, shell: SigningShell, aux_chain_id: int) -> SignedShell:
        with self._lock:
            key = self._keys.get(account.address)
        if key is None:
            raise SignerNotFound(f"unknown account {address_hex(account.address)}")
        sig = key.sign(shell.signing_hash(aux_chain_id), ec.ECDSA(hashes.SHA256()))
        return SignedShell(shell=shell, sender=account.address, aux_chain_id=aux_chain_id, signature=sig)

    def verify(self, signed: SignedShell) -> bool:
        with self._lock:
            key = self._keys.get(signed.sender)
        if key is None:
            return False
        try:
            key.public_key().verify(
                signed.signature,
                signed.shell.signing_hash(signed.aux_chain_id),
                ec.ECDSA(hashes.SHA256()),
            )
        except InvalidSignature:
            return False
        return True
