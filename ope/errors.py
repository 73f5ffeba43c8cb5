"""
Exception taxonomy for the OPE library.

Every error is a caller-input or configuration error, detected synchronously.
Validation errors also subclass ValueError so callers that already catch
ValueError for bad arguments keep working.
"""


class OPEError(Exception):
    """Base class for all OPE errors."""


class InvalidKey(OPEError, ValueError):
    """Key material is missing, empty, or not bytes-like."""


class WeakKey(InvalidKey):
    """Key is shorter than the configured minimum length."""


class InvalidDomainConfiguration(OPEError, ValueError):
    """Domain/range bit widths are not usable."""


class PlaintextOutOfRange(OPEError, ValueError):
    """Plaintext is not an integer in [0, M)."""


class CiphertextOutOfRange(OPEError, ValueError):
    """Ciphertext is not an integer in [0, N)."""


class InvalidCiphertext(CiphertextOutOfRange):
    """Ciphertext lies in [0, N) but no plaintext encrypts into its interval."""


class DomainTooLarge(OPEError, OverflowError):
    """Interval widths exceed what the sampler supports."""
