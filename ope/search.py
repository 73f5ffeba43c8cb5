"""
Range-splitting search over the implicit OPE tree.

Each node pairs a plaintext interval with a ciphertext interval. Splitting a
node cuts the ciphertext interval at its midpoint and samples, from the
node's keyed stream, how many of the node's plaintexts land on the left:

    cmid  = cipher_lo + (cipher_hi - cipher_lo) // 2
    k     ~ HG(cipher_size, plain_size, cmid - cipher_lo + 1)
    left  = [plain_lo, plain_lo + k - 1]  x  [cipher_lo, cmid]
    right = [plain_lo + k, plain_hi]      x  [cmid + 1, cipher_hi]

Plaintexts are unlabeled, so lower plaintexts always go left and every
plaintext ends up owning a contiguous ciphertext interval, in order.

Encryption walks down by comparing the plaintext to the split; decryption
walks down by comparing the ciphertext to cmid. Both go through the same
RangeSearch loop, parameterized by a SearchMode, so they visit identical
nodes.
"""

from collections.abc import Iterator
from dataclasses import dataclass
import logging
import secrets
from typing import Protocol

from .errors import InvalidCiphertext
from .hgd import sample_hgd
from .prg import derive_stream

logger = logging.getLogger(__name__)

# SEC: Fresh randomness mixed into the leaf stream in probabilistic mode.
LEAF_SALT_BYTES = 16


@dataclass(frozen=True)
class Node:
    """
    A node in the OPE search tree.

    Represents plaintexts [plain_lo, plain_hi] mapped into ciphertexts
    [cipher_lo, cipher_hi]. A plaintext interval may be empty
    (plain_hi == plain_lo - 1) when the split sent every plaintext the
    other way.
    """
    plain_lo: int
    plain_hi: int
    cipher_lo: int
    cipher_hi: int

    @property
    def plain_size(self) -> int:
        return self.plain_hi - self.plain_lo + 1

    @property
    def cipher_size(self) -> int:
        return self.cipher_hi - self.cipher_lo + 1

    def is_leaf(self) -> bool:
        """Check if this node holds a single plaintext."""
        return self.plain_size == 1

    def is_empty(self) -> bool:
        """Check if no plaintext maps into this node."""
        return self.plain_size == 0

    def midpoint(self) -> int:
        """Last ciphertext of the left half (ties go to the lower half)."""
        return self.cipher_lo + (self.cipher_hi - self.cipher_lo) // 2

    def split(self, k: int) -> tuple["Node", "Node"]:
        """
        Children when k plaintexts go left.

        Args:
            k: Number of plaintexts in the left child, 0 <= k <= plain_size

        Returns:
            (left, right)
        """
        if not 0 <= k <= self.plain_size:
            raise ValueError(f"Split {k} outside [0, {self.plain_size}]")
        cmid = self.midpoint()
        left = Node(
            plain_lo=self.plain_lo,
            plain_hi=self.plain_lo + k - 1,
            cipher_lo=self.cipher_lo,
            cipher_hi=cmid,
        )
        right = Node(
            plain_lo=self.plain_lo + k,
            plain_hi=self.plain_hi,
            cipher_lo=cmid + 1,
            cipher_hi=self.cipher_hi,
        )
        return left, right


class SearchMode(Protocol):
    """
    What differs between encryption and decryption.

    The tree, the splits and the order of stream reads are shared; only the
    branch decision and the action at the leaf change.
    """

    def choose_left(self, node: Node, cmid: int, k: int) -> bool:
        """Whether the search continues into the left child."""
        ...

    def finish(self, node: Node, key: bytes) -> int:
        """Result at the leaf node."""
        ...


class EncryptMode:
    """Follow a plaintext down the tree and draw a ciphertext at its leaf."""

    def __init__(self, plaintext: int, deterministic: bool = False):
        self.plaintext = plaintext
        self.deterministic = deterministic

    def choose_left(self, node: Node, cmid: int, k: int) -> bool:
        return self.plaintext <= node.plain_lo + k - 1

    def finish(self, node: Node, key: bytes) -> int:
        """
        Uniform draw from the leaf's ciphertext interval.

        Deterministic mode reads the leaf's keyed stream, so the result is a
        function of (key, plaintext). Otherwise the stream is salted with
        fresh bytes and repeated encryptions land on independent points of
        the same interval.
        """
        salt = b"" if self.deterministic else secrets.token_bytes(LEAF_SALT_BYTES)
        prg = derive_stream(key, node, salt)
        return prg.uniform_int(node.cipher_lo, node.cipher_hi)


class DecryptMode:
    """Follow a ciphertext down the tree and report its leaf's plaintext."""

    def __init__(self, ciphertext: int):
        self.ciphertext = ciphertext

    def choose_left(self, node: Node, cmid: int, k: int) -> bool:
        return self.ciphertext <= cmid

    def finish(self, node: Node, key: bytes) -> int:
        if not node.cipher_lo <= self.ciphertext <= node.cipher_hi:
            raise RuntimeError(
                f"Ciphertext {self.ciphertext} escaped leaf interval "
                f"[{node.cipher_lo}, {node.cipher_hi}]"
            )
        return node.plain_lo


class RangeSearch:
    """
    Iterative walk from a root node to a leaf.

    At most max_depth splits happen before a leaf is reached; the ciphertext
    interval halves at each one.
    """

    def __init__(self, key: bytes, root: Node, mode: SearchMode, max_depth: int):
        """
        Args:
            key: Master key
            root: Starting node, normally (0, M-1, 0, N-1)
            mode: EncryptMode or DecryptMode
            max_depth: Bound on the number of splits
        """
        self._key = key
        self._root = root
        self._mode = mode
        self._max_depth = max_depth

    def children(self, node: Node) -> tuple[Node, Node, int]:
        """
        Split a node using its keyed stream.

        Returns:
            (left, right, k) where k is the number of plaintexts going left
        """
        if node.is_leaf() or node.is_empty():
            raise ValueError("Cannot compute children of a leaf or empty node")

        cmid = node.midpoint()
        prg = derive_stream(self._key, node)
        k = sample_hgd(prg, node.cipher_size, node.plain_size, cmid - node.cipher_lo + 1)
        left, right = node.split(k)
        return left, right, k

    def walk(self) -> Iterator[Node]:
        """
        Yield every node on the path from the root to the leaf.

        Raises:
            InvalidCiphertext: The path entered a node with no plaintexts
            RuntimeError: The depth bound was exceeded
        """
        node = self._root
        for depth in range(self._max_depth + 1):
            if node.is_empty():
                raise InvalidCiphertext(
                    f"No plaintext maps into ciphertext interval "
                    f"[{node.cipher_lo}, {node.cipher_hi}]"
                )
            yield node
            if node.is_leaf():
                return

            left, right, k = self.children(node)
            go_left = self._mode.choose_left(node, node.midpoint(), k)
            logger.debug(
                "depth %d: plain [%d, %d] cipher [%d, %d] k=%d -> %s",
                depth, node.plain_lo, node.plain_hi, node.cipher_lo, node.cipher_hi,
                k, "left" if go_left else "right",
            )
            node = left if go_left else right

        raise RuntimeError(f"Search exceeded depth bound {self._max_depth}")

    def leaf(self) -> Node:
        """Walk to the leaf and return it."""
        node = self._root
        for node in self.walk():
            pass
        return node

    def run(self) -> int:
        """Walk to the leaf and apply the mode's final action."""
        return self._mode.finish(self.leaf(), self._key)
