"""
Parameters for the OPE scheme.

Key parameters:
- domain_bits: Plaintext bit width, domain is [0, 2^domain_bits)
- range_bits: Ciphertext bit width, range is [0, 2^range_bits)
- deterministic: If True, the leaf draw is keyed only, so Enc(p) is a function
  of (key, p). Default False: each encryption picks a fresh point in p's
  ciphertext interval.
- min_key_bytes: Shortest key accepted by the engine

Tradeoffs:
- expansion = range_bits - domain_bits sets how much ciphertext space each
  plaintext owns on average (2^expansion). Small expansion makes ciphertexts
  leak more than order, since gaps between them approximate plaintext gaps.
- Search depth is bounded by range_bits, so wide ranges cost linearly more
  sampler calls per operation.
"""

from dataclasses import dataclass
import logging

from .errors import InvalidDomainConfiguration

logger = logging.getLogger(__name__)

# Widest supported domain/range. Bounds recursion depth and sampler precision.
MAX_BITS = 128

# SEC: 128-bit keys. HMAC-SHA256 accepts shorter keys but we refuse them.
MIN_KEY_BYTES = 16

RECOMMENDED_EXPANSION = 8


def _check_bits(name: str, value) -> None:
    # bool is an int subclass; True is not a bit width
    if not isinstance(value, int) or isinstance(value, bool):
        raise InvalidDomainConfiguration(f"{name} must be an int, got {type(value).__name__}")
    if value < 1:
        raise InvalidDomainConfiguration(f"{name} must be at least 1")
    if value > MAX_BITS:
        raise InvalidDomainConfiguration(f"{name} must be at most {MAX_BITS}")


@dataclass(frozen=True)
class Params:
    """Parameters for the OPE scheme."""

    domain_bits: int = 32  # Plaintext bit width (M = 2^domain_bits)
    range_bits: int = 64  # Ciphertext bit width (N = 2^range_bits)
    deterministic: bool = False  # Keyed leaf draw instead of a fresh one
    min_key_bytes: int = MIN_KEY_BYTES

    def __post_init__(self):
        _check_bits("domain_bits", self.domain_bits)
        _check_bits("range_bits", self.range_bits)
        if self.range_bits <= self.domain_bits:
            raise InvalidDomainConfiguration(
                f"range_bits ({self.range_bits}) must exceed domain_bits ({self.domain_bits})"
            )
        if self.min_key_bytes < 1:
            raise InvalidDomainConfiguration(
                f"min_key_bytes must be at least 1, got {self.min_key_bytes}"
            )

        if self.expansion < RECOMMENDED_EXPANSION:
            logger.warning(
                f"Expansion of {self.expansion} bits is small; ciphertexts may leak "
                f"plaintext distance. Recommend range_bits >= domain_bits + {RECOMMENDED_EXPANSION}."
            )
        if self.deterministic:
            logger.warning("Deterministic mode: equal plaintexts give equal ciphertexts.")

    @property
    def domain_size(self) -> int:
        """M = 2^domain_bits."""
        return 1 << self.domain_bits

    @property
    def range_size(self) -> int:
        """N = 2^range_bits."""
        return 1 << self.range_bits

    @property
    def expansion(self) -> int:
        """Extra ciphertext bits per plaintext."""
        return self.range_bits - self.domain_bits

    @property
    def max_depth(self) -> int:
        """Maximum number of splits from root to leaf.

        Each split halves the ciphertext interval, and a plaintext interval
        never outgrows its ciphertext interval.
        """
        return self.range_bits
