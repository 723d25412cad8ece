"""A fixed-capacity set of small non-negative integers packed into 64-bit words."""

from __future__ import annotations

_WORD = 64
_MASK = (1 << _WORD) - 1


class Bitset:
    """A set of bit positions stored in 64-bit chunks.

    Bits 0-63 live in the first chunk, the next 64 in the second, and so on.
    Positions are valid up to the end of the last allocated chunk.
    """

    __slots__ = ("_chunks",)

    def __init__(self, bits: int) -> None:
        if bits < 0:
            raise ValueError(f"bitset size must be non-negative, got {bits}")
        self._chunks = [0] * ((bits + _WORD - 1) // _WORD)

    def _locate(self, pos: int) -> tuple[int, int]:
        major, minor = divmod(pos, _WORD)
        if pos < 0 or major >= len(self._chunks):
            raise IndexError(f"bit position {pos} out of range")
        return major, minor

    def clone(self) -> Bitset:
        """Return an independent copy."""
        copy = Bitset(0)
        copy._chunks = list(self._chunks)
        return copy

    def set(self, pos: int) -> Bitset:
        """Turn bit ``pos`` on and return this bitset."""
        major, minor = self._locate(pos)
        self._chunks[major] |= 1 << minor
        return self

    def clear(self, pos: int) -> Bitset:
        """Turn bit ``pos`` off and return this bitset."""
        major, minor = self._locate(pos)
        self._chunks[major] &= ~(1 << minor) & _MASK
        return self

    def get(self, pos: int) -> bool:
        """Whether bit ``pos`` is on."""
        major, minor = self._locate(pos)
        return bool(self._chunks[major] & (1 << minor))

    def popcount(self) -> int:
        """Number of bits that are on."""
        return sum(chunk.bit_count() for chunk in self._chunks)

    def hash_value(self) -> int:
        """A 64-bit hash: the popcount folded with every chunk by XOR."""
        result = self.popcount()
        for chunk in self._chunks:
            result ^= chunk
        return result & _MASK

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Bitset):
            return NotImplemented
        return self._chunks == other._chunks

    __hash__ = None  # mutable

    def __repr__(self) -> str:
        on = [
            major * _WORD + minor
            for major, chunk in enumerate(self._chunks)
            for minor in range(_WORD)
            if chunk >> minor & 1
        ]
        return f"Bitset(capacity={len(self._chunks) * _WORD}, on={on})"