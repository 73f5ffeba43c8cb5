"""
Keyed pseudorandom stream for the OPE search tree.

Every node of the conceptual search tree gets its own stream:

    seed   = HMAC-SHA256(key, label(node))
    stream = AES-256-CTR keystream under seed

Encryption and decryption re-derive the stream for each node they visit, so
both directions see the same coins and make the same random choices. Nothing
here holds global state; a stream is a pure function of (key, label).
"""

from typing import TYPE_CHECKING

from Crypto.Cipher import AES
from Crypto.Hash import HMAC, SHA256

from .errors import InvalidKey

if TYPE_CHECKING:
    from .search import Node

SEED_BYTES = 32

# SEC: A fixed nonce is safe because every seed is used for exactly one stream.
_NONCE = bytes(8)


def as_key_bytes(key) -> bytes:
    """
    Normalize key material to bytes.

    str keys are UTF-8 encoded. Anything else that is not bytes-like, and any
    empty key, raises InvalidKey.
    """
    if isinstance(key, str):
        key = key.encode("utf-8")
    if not isinstance(key, (bytes, bytearray, memoryview)):
        raise InvalidKey(f"Key must be bytes, got {type(key).__name__}")
    key = bytes(key)
    if not key:
        raise InvalidKey("Key must not be empty")
    return key


def node_label(node: "Node") -> bytes:
    """Unambiguous serialization of a node's four bounds."""
    return f"ope:{node.plain_lo}:{node.plain_hi}:{node.cipher_lo}:{node.cipher_hi}".encode()


def derive_seed(key: bytes, label: bytes) -> bytes:
    """
    Derive a deterministic seed from key and label using HMAC-SHA256.

    Returns 32 bytes suitable for keying the AES-256-CTR stream.
    """
    key = as_key_bytes(key)
    return HMAC.new(key, msg=label, digestmod=SHA256).digest()


class PRG:
    """
    Pseudorandom generator using AES-256 in counter mode.

    Deterministic: same seed produces same sequence. Reads advance through
    the keystream, so the order of calls matters.
    """

    def __init__(self, seed: bytes):
        """
        Initialize with a seed.

        Args:
            seed: 32-byte seed (typically from derive_seed)
        """
        if len(seed) != SEED_BYTES:
            raise ValueError(f"Seed must be {SEED_BYTES} bytes, got {len(seed)}")
        self._cipher = AES.new(seed, AES.MODE_CTR, nonce=_NONCE)

    def random_bytes(self, n: int) -> bytes:
        """Get the next n keystream bytes."""
        if n < 0:
            raise ValueError("n must be non-negative")
        if n == 0:
            return b""
        return self._cipher.encrypt(bytes(n))

    def random_bits(self, k: int) -> int:
        """Get an integer in [0, 2^k) from the next ceil(k/8) bytes, big-endian."""
        if k < 0:
            raise ValueError("k must be non-negative")
        if k == 0:
            return 0
        nbytes = (k + 7) // 8
        value = int.from_bytes(self.random_bytes(nbytes), "big")
        return value >> (8 * nbytes - k)

    def randbelow(self, n: int) -> int:
        """
        Get a uniform integer in [0, n).

        Rejection sampling on bit_length(n) bits: no modular bias, expected
        fewer than two reads.
        """
        if n <= 0:
            raise ValueError("n must be positive")
        if n == 1:
            return 0
        k = n.bit_length()
        while True:
            value = self.random_bits(k)
            if value < n:
                return value

    def uniform_int(self, lo: int, hi: int) -> int:
        """Get a uniform integer in [lo, hi] (inclusive)."""
        if lo > hi:
            raise ValueError(f"Empty interval [{lo}, {hi}]")
        return lo + self.randbelow(hi - lo + 1)


def derive_stream(key: bytes, node: "Node", salt: bytes = b"") -> PRG:
    """
    Stream for a search-tree node.

    A non-empty salt gives a stream unrelated to the node's keyed stream;
    encryption uses it for the final, non-replayed leaf draw.
    """
    label = node_label(node)
    if salt:
        label += b"|" + salt
    return PRG(derive_seed(key, label))
