"""
Order-Preserving Symmetric Encryption

A Python implementation of the OPE scheme from:
"Order-Preserving Symmetric Encryption"
by Alexandra Boldyreva, Nathan Chenette, Younho Lee, and Adam O'Neill (EUROCRYPT 2009)

Modules:
- prg: Keyed pseudorandom stream per search-tree node (HMAC-SHA256 + AES-CTR)
- hgd: Hypergeometric sampler
- search: Range-splitting search over (plaintext, ciphertext) interval pairs
- cipher: OPE engine (encrypt / decrypt / encrypt_range)
"""

from .errors import (
    OPEError,
    InvalidKey,
    WeakKey,
    InvalidDomainConfiguration,
    PlaintextOutOfRange,
    CiphertextOutOfRange,
    InvalidCiphertext,
    DomainTooLarge,
)
from .params import Params
from .search import Node
from .cipher import OPE

__version__ = "0.1.0"
__all__ = [
    "OPE",
    "Params",
    "Node",
    "OPEError",
    "InvalidKey",
    "WeakKey",
    "InvalidDomainConfiguration",
    "PlaintextOutOfRange",
    "CiphertextOutOfRange",
    "InvalidCiphertext",
    "DomainTooLarge",
]
