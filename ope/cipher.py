"""
Order-preserving encryption engine.

Based on Boldyreva, Chenette, Lee, O'Neill, "Order-Preserving Symmetric
Encryption" (EUROCRYPT 2009), Section 4.

The key defines a random order-preserving function from [0, M) to [0, N):
each plaintext owns a contiguous ciphertext interval, and the intervals are
laid out in plaintext order. The function is never materialized; it is
sampled lazily along one root-to-leaf path per call (see search.py).

    Enc(p) = uniform point in interval(p)
    Dec(c) = the p whose interval contains c

Why order is preserved:
1. Intervals are disjoint and sorted by plaintext
2. Every ciphertext of p lies inside interval(p)
3. So a < b gives every Enc(a) < every Enc(b)
"""

import logging

from .errors import (
    CiphertextOutOfRange,
    PlaintextOutOfRange,
    WeakKey,
)
from .params import Params
from .prg import as_key_bytes
from .search import DecryptMode, EncryptMode, Node, RangeSearch, SearchMode

logger = logging.getLogger(__name__)


def _is_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


class OPE:
    """Order-preserving symmetric encryption over [0, 2^domain_bits)."""

    def __init__(
        self,
        key: bytes,
        domain_bits: int = 32,
        range_bits: int = 64,
        *,
        deterministic: bool = False,
    ):
        """
        Initialize OPE.

        Args:
            key: Master key, at least MIN_KEY_BYTES bytes (str is UTF-8 encoded)
            domain_bits: Plaintext bit width (default: 32)
            range_bits: Ciphertext bit width, must exceed domain_bits (default: 64)
            deterministic: Make Enc(p) a function of (key, p) (default: False)
        """
        self._params = Params(
            domain_bits=domain_bits,
            range_bits=range_bits,
            deterministic=deterministic,
        )

        key = as_key_bytes(key)
        if len(key) < self._params.min_key_bytes:
            raise WeakKey(
                f"Key must be at least {self._params.min_key_bytes} bytes, got {len(key)}"
            )
        self._key = key

    @property
    def params(self) -> Params:
        return self._params

    @property
    def domain_size(self) -> int:
        """Size of the plaintext domain [0, M)."""
        return self._params.domain_size

    @property
    def range_size(self) -> int:
        """Size of the ciphertext range [0, N)."""
        return self._params.range_size

    def __repr__(self) -> str:
        # SEC: never include key material
        return (
            f"OPE(domain_bits={self._params.domain_bits}, "
            f"range_bits={self._params.range_bits}, "
            f"deterministic={self._params.deterministic})"
        )

    def _root(self) -> Node:
        return Node(
            plain_lo=0,
            plain_hi=self.domain_size - 1,
            cipher_lo=0,
            cipher_hi=self.range_size - 1,
        )

    def _search(self, mode: SearchMode) -> RangeSearch:
        return RangeSearch(self._key, self._root(), mode, self._params.max_depth)

    def _check_plaintext(self, plaintext) -> None:
        if not _is_int(plaintext) or not 0 <= plaintext < self.domain_size:
            raise PlaintextOutOfRange(
                f"Plaintext {plaintext!r} out of range [0, {self.domain_size})"
            )

    def _check_ciphertext(self, ciphertext) -> None:
        if not _is_int(ciphertext) or not 0 <= ciphertext < self.range_size:
            raise CiphertextOutOfRange(
                f"Ciphertext {ciphertext!r} out of range [0, {self.range_size})"
            )

    def encrypt(self, plaintext: int) -> int:
        """
        Encrypt a plaintext.

        Args:
            plaintext: Integer in [0, domain_size)

        Returns:
            Ciphertext in [0, range_size)
        """
        self._check_plaintext(plaintext)
        mode = EncryptMode(plaintext, deterministic=self._params.deterministic)
        return self._search(mode).run()

    def decrypt(self, ciphertext: int) -> int:
        """
        Decrypt a ciphertext.

        Args:
            ciphertext: Integer in [0, range_size)

        Returns:
            Plaintext in [0, domain_size)

        Raises:
            CiphertextOutOfRange: ciphertext outside [0, range_size)
            InvalidCiphertext: no plaintext encrypts to this ciphertext
        """
        self._check_ciphertext(ciphertext)
        return self._search(DecryptMode(ciphertext)).run()

    def encrypt_range(self, lo: int, hi: int) -> tuple[int, int]:
        """
        Ciphertext bounds for the plaintext range query lo <= p <= hi.

        Returns (c_lo, c_hi) such that lo <= p <= hi exactly when
        c_lo <= Enc(p) <= c_hi, for every ciphertext Enc(p) could produce.

        Args:
            lo: Lowest plaintext in the query
            hi: Highest plaintext in the query
        """
        self._check_plaintext(lo)
        self._check_plaintext(hi)
        if lo > hi:
            raise ValueError(f"Empty range: lo ({lo}) exceeds hi ({hi})")

        c_lo = self._search(EncryptMode(lo)).leaf().cipher_lo
        c_hi = self._search(EncryptMode(hi)).leaf().cipher_hi
        logger.debug("Range [%d, %d] -> ciphertext bounds [%d, %d]", lo, hi, c_lo, c_hi)
        return c_lo, c_hi

    def trace(self, value: int, decrypting: bool = False) -> list[Node]:
        """
        Nodes visited from the root to the leaf.

        Args:
            value: Plaintext, or ciphertext when decrypting
            decrypting: Follow a ciphertext instead of a plaintext

        Returns:
            List of nodes, root first
        """
        if decrypting:
            self._check_ciphertext(value)
            mode = DecryptMode(value)
        else:
            self._check_plaintext(value)
            mode = EncryptMode(value)
        return list(self._search(mode).walk())
