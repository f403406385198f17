"""Deterministic keystream for the link cipher.

PCG engine with a single 64-bit LCG stream and the RXS-M-XS output function
(``pcg64_once_insecure`` in the PCG reference library). Output words are
emitted little-endian and the last word is cut to the requested length.

Not a CSPRNG. Confidentiality of the link cipher rests on the AEAD layer;
this stream only has to be reproducible from the seed.
"""

from __future__ import annotations

from typing import Union

MASK64 = (1 << 64) - 1
MULTIPLIER = 6364136223846793005
INCREMENT = 1442695040888963407
OUTPUT_MULTIPLIER = 12605985483714917081


def seed_from_bytes(seed: bytes) -> int:
    """Fold a seed buffer into 64 bits, big-endian, keeping the low 64 bits."""
    value = 0
    for byte in seed:
        value = ((value << 8) | byte) & MASK64
    return value


class PCGKeystream:
    def __init__(self, seed: Union[bytes, bytearray, int]):
        if isinstance(seed, (bytes, bytearray)):
            seed = seed_from_bytes(seed)
        self._state = self._bump((seed + INCREMENT) & MASK64)
        self._drawn = 0

    @staticmethod
    def _bump(state: int) -> int:
        return (state * MULTIPLIER + INCREMENT) & MASK64

    @staticmethod
    def _output(state: int) -> int:
        rshift = (state >> 59) & 31
        state ^= state >> (5 + rshift)
        state = (state * OUTPUT_MULTIPLIER) & MASK64
        return state ^ (state >> 43)

    @property
    def bytes_drawn(self) -> int:
        return self._drawn

    def next_word(self) -> int:
        old = self._state
        self._state = self._bump(old)
        return self._output(old)

    def read(self, n: int) -> bytes:
        """Return the next ``n`` keystream bytes."""
        words = (n + 7) // 8
        out = b"".join(self.next_word().to_bytes(8, "little") for _ in range(words))
        self._drawn += n
        return out[:n]
