"""Entropy sources used to seed the shared generator.

A source is asked for seed material at an *effort level*; higher levels
collect more raw samples. A source signals a short attempt by raising
:class:`EntropyUnavailableError`, which the lifecycle treats as a reason to
retry at the next level.
"""

from __future__ import annotations

import enum
import math
import os
from collections import Counter
from typing import Protocol

from seifcore.core.exceptions import EntropyUnavailableError

BASE_SAMPLE_SIZE = 64
MIN_SEED_ENTROPY_BITS = 256


class EntropyStrength(enum.Enum):
    WEAK = "weak"
    MEDIUM = "medium"
    STRONG = "strong"


def classify_effort(effort: int) -> EntropyStrength:
    """Fewer retries mean a healthier source."""
    if effort <= 1:
        return EntropyStrength.STRONG
    if effort <= 3:
        return EntropyStrength.MEDIUM
    return EntropyStrength.WEAK


class EntropySource(Protocol):
    def gather(self, effort: int) -> bytes:
        ...


def estimate_min_entropy_bits(sample: bytes) -> float:
    # Most-common-value estimate: bits per byte times sample length.
    if not sample:
        return 0.0
    most_common = Counter(sample).most_common(1)[0][1]
    per_byte = -math.log2(most_common / len(sample))
    return per_byte * len(sample)


class SystemEntropySource:
    """
    Samples the operating system CSPRNG.

    Effort level ``k`` draws ``BASE_SAMPLE_SIZE * 2**k`` bytes and accepts the
    sample only if its estimated min-entropy reaches ``MIN_SEED_ENTROPY_BITS``.
    """

    def __init__(self, base_sample_size: int = BASE_SAMPLE_SIZE, min_bits: int = MIN_SEED_ENTROPY_BITS):
        self.base_sample_size = base_sample_size
        self.min_bits = min_bits

    def gather(self, effort: int) -> bytes:
        sample = os.urandom(self.base_sample_size << effort)
        bits = estimate_min_entropy_bits(sample)
        if bits < self.min_bits:
            raise EntropyUnavailableError(
                f"collected {bits:.1f} bits at effort {effort}, need {self.min_bits}"
            )
        return sample
