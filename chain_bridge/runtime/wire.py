# chain_bridge/runtime/wire.py
"""
Binary wire codec shared with the consensus engine.

Layout rules (go-wire style, must stay bit-compatible with the engine):
- uint32 / uint64 / int64 are fixed width, big-endian
- uvarint is one size byte followed by that many big-endian bytes
  (0 is encoded as the single byte 0x00)
- byte strings and text are uvarint length prefixed
- lists are uvarint count prefixed
- interface values (tx layers) are prefixed with a one byte type tag

Encoder and Decoder are symmetric; decoding never guesses and raises
DecodeError on short reads, oversized varints or trailing bytes.
"""

from __future__ import annotations

from typing import Callable, List, TypeVar

from ..errors import DecodeError

T = TypeVar("T")

MAX_UVARINT_SIZE = 8


class Encoder:
    def __init__(self) -> None:
        self._buf = bytearray()

    def getvalue(self) -> bytes:
        return bytes(self._buf)

    def write_byte(self, b: int) -> "Encoder":
        self._buf.append(int(b) & 0xFF)
        return self

    def write_raw(self, data: bytes) -> "Encoder":
        self._buf.extend(data)
        return self

    def write_uint32(self, n: int) -> "Encoder":
        if n < 0 or n > 0xFFFFFFFF:
            raise ValueError(f"uint32 out of range: {n}")
        self._buf.extend(int(n).to_bytes(4, "big", signed=False))
        return self

    def write_uint64(self, n: int) -> "Encoder":
        if n < 0 or n >= 1 << 64:
            raise ValueError(f"uint64 out of range: {n}")
        self._buf.extend(int(n).to_bytes(8, "big", signed=False))
        return self

    def write_int64(self, n: int) -> "Encoder":
        self._buf.extend(int(n).to_bytes(8, "big", signed=True))
        return self

    def write_uvarint(self, n: int) -> "Encoder":
        if n < 0:
            raise ValueError("uvarint must be >= 0")
        size = (int(n).bit_length() + 7) // 8
        if size > MAX_UVARINT_SIZE:
            raise ValueError(f"uvarint too large: {n}")
        self._buf.append(size)
        if size:
            self._buf.extend(int(n).to_bytes(size, "big"))
        return self

    def write_bytes(self, data: bytes) -> "Encoder":
        data = bytes(data or b"")
        self.write_uvarint(len(data))
        self._buf.extend(data)
        return self

    def write_string(self, s: str) -> "Encoder":
        return self.write_bytes((s or "").encode("utf-8"))

    def write_list(self, items: List[T], write_item: Callable[["Encoder", T], None]) -> "Encoder":
        self.write_uvarint(len(items))
        for item in items:
            write_item(self, item)
        return self


class Decoder:
    def __init__(self, data: bytes) -> None:
        self._data = bytes(data)
        self._pos = 0

    @property
    def remaining(self) -> int:
        return len(self._data) - self._pos

    def _take(self, n: int) -> bytes:
        if n < 0 or self._pos + n > len(self._data):
            raise DecodeError(
                f"short read: wanted {n} bytes at offset {self._pos}, have {self.remaining}"
            )
        out = self._data[self._pos : self._pos + n]
        self._pos += n
        return out

    def read_byte(self) -> int:
        return self._take(1)[0]

    def read_uint32(self) -> int:
        return int.from_bytes(self._take(4), "big", signed=False)

    def read_uint64(self) -> int:
        return int.from_bytes(self._take(8), "big", signed=False)

    def read_int64(self) -> int:
        return int.from_bytes(self._take(8), "big", signed=True)

    def read_uvarint(self) -> int:
        size = self.read_byte()
        if size > MAX_UVARINT_SIZE:
            raise DecodeError(f"uvarint size byte too large: {size}")
        if size == 0:
            return 0
        return int.from_bytes(self._take(size), "big")

    def read_bytes(self) -> bytes:
        n = self.read_uvarint()
        return self._take(n)

    def read_string(self) -> str:
        raw = self.read_bytes()
        try:
            return raw.decode("utf-8")
        except UnicodeDecodeError as e:
            raise DecodeError(f"invalid utf-8 string: {e}") from e

    def read_list(self, read_item: Callable[["Decoder"], T]) -> List[T]:
        n = self.read_uvarint()
        # every item costs at least one byte; refuse absurd counts early
        if n > self.remaining:
            raise DecodeError(f"list length {n} exceeds remaining {self.remaining} bytes")
        return [read_item(self) for _ in range(n)]

    def expect_end(self) -> None:
        if self.remaining:
            raise DecodeError(f"{self.remaining} trailing bytes after value")


def decode_exact(data: bytes, read: Callable[[Decoder], T]) -> T:
    """Decode one value that must consume `data` completely."""
    dec = Decoder(data)
    value = read(dec)
    dec.expect_end()
    return value
