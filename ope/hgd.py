"""
Hypergeometric sampling driven by a keyed PRG.

sample_hgd(prg, population, successes, draws) returns the number of successes
seen when `draws` items are taken without replacement from `population` items
of which `successes` are marked. The OPE search uses it to decide how many
plaintexts fall into the left half of a ciphertext interval.

Two algorithms, chosen deterministically from the arguments so encryption
and decryption always agree:

- HYP: exact draw-by-draw simulation. Every draw is one integer comparison
  against randbelow(remaining), so there is no floating point at all. Used
  when the draw count or the scarcer colour is at most HYP_THRESHOLD (after
  the symmetries below), which keeps it O(HYP_THRESHOLD).
- HRUA*: Stadlober's ratio-of-uniforms rejection sampler with Ivan Frohne's
  correction, as in numpy's legacy generator. O(1) expected iterations for
  any parameter size.

HRUA* compares differences of log-factorials around the mode. With interval
widths up to 2^128, the log-factorials are ~10^40 while the test needs
absolute error well below 1, so doubles are useless. The arithmetic runs in
decimal with a precision sized to the population's digit count.

Symmetries used (all exact):
    HG(N, K, n) = K - HG(N, K, N - n)     complementary draw
    HG(N, K, n) = HG(N, n, K)             swap marked and drawn
"""

from decimal import Decimal, ROUND_FLOOR, getcontext, localcontext
from functools import lru_cache
import logging

from .errors import DomainTooLarge
from .prg import PRG

logger = logging.getLogger(__name__)

# OPT: Threshold between HYP and HRUA*. HYP costs one randbelow per draw; HRUA*
# costs ~8 decimal log-gammas per iteration. 16 keeps both under ~100us.
HYP_THRESHOLD = 16

MAX_POPULATION_BITS = 256

# Digits beyond the population's own digit count kept by the decimal context.
PRECISION_GUARD_DIGITS = 24

# Bits beyond the population's own bit length in each HRUA* uniform.
UNIFORM_GUARD_BITS = 53

# HRUA* constants: D1 = 2*sqrt(2/e), D2 = 3 - 2*sqrt(3/e)
_D1 = Decimal("1.7155277699214135")
_D2 = Decimal("0.8989161620588988")
_HALF = Decimal("0.5")

_PI = Decimal(
    "3.14159265358979323846264338327950288419716939937510"
    "58209749445923078164062862089986280348253421170679"
    "82148086513282306647093844609550582231725359408128"
)

# Stirling series coefficients B_2k / (2k (2k - 1)), k = 1..10
_STIRLING = (
    (1, 12),
    (-1, 360),
    (1, 1260),
    (-1, 1680),
    (1, 1188),
    (-691, 360360),
    (1, 156),
    (-3617, 122400),
    (43867, 244188),
    (-174611, 125400),
)


@lru_cache(maxsize=None)
def _series_constants(prec: int) -> tuple[tuple[Decimal, ...], Decimal]:
    """Stirling coefficients and 0.5*ln(2*pi) rounded to `prec` digits."""
    with localcontext() as ctx:
        ctx.prec = prec
        coeffs = tuple(Decimal(num) / Decimal(den) for num, den in _STIRLING)
        half_log_2pi = (2 * _PI).ln() / 2
    return coeffs, half_log_2pi


def loggam(x) -> Decimal:
    """
    ln(Gamma(x)) for x > 0, in the current decimal context.

    SPECFUN (Zhang & Jin, "Computation of Special Functions", 1996):

        ln Gamma(x) ~ (x - 0.5) ln x - x + 0.5 ln(2 pi) + sum_k a_k / x^(2k-1)

    For x <= 7 the series is evaluated at x + n > 6 and shifted back with
    Gamma(x) = Gamma(x + n) / (x (x+1) ... (x+n-1)).
    """
    if not isinstance(x, Decimal):
        x = Decimal(x)
    if x <= 0:
        raise ValueError(f"loggam requires x > 0, got {x}")
    if x == 1 or x == 2:
        return Decimal(0)

    coeffs, half_log_2pi = _series_constants(getcontext().prec)

    x0 = x
    n = 0
    if x <= 7:
        n = int(7 - x)
        x0 = x + n

    x2 = 1 / (x0 * x0)
    gl0 = coeffs[-1]
    for a in reversed(coeffs[:-1]):
        gl0 = gl0 * x2 + a
    gl = gl0 / x0 + half_log_2pi + (x0 - _HALF) * x0.ln() - x0

    for _ in range(n):
        x0 -= 1
        gl -= x0.ln()
    return gl


def _log_weight(z: int, mingoodbad: int, m: int, maxgoodbad: int) -> Decimal:
    """Sum of the four log-factorials in the HG(popsize, mingoodbad, m) pmf at z."""
    return (
        loggam(z + 1)
        + loggam(mingoodbad - z + 1)
        + loggam(m - z + 1)
        + loggam(maxgoodbad - m + z + 1)
    )


def _uniform(prg: PRG, bits: int) -> Decimal:
    """Uniform on [0, 1) with `bits` bits of resolution, in the current decimal context."""
    return Decimal(prg.random_bits(bits)) / Decimal(1 << bits)


def hypergeometric_hyp(prg: PRG, good: int, bad: int, sample: int) -> int:
    """
    Exact sequential sampler.

    Draws `sample` items one at a time, tracking how many of the scarcer
    colour remain. Cost is min(sample, popsize - sample) stream reads.
    """
    popsize = good + bad
    if sample > popsize - sample:
        return good - hypergeometric_hyp(prg, good, bad, popsize - sample)

    scarce = min(good, bad)
    y = scarce
    remaining = popsize
    for _ in range(sample):
        if y == 0:
            break
        if prg.randbelow(remaining) < y:
            y -= 1
        remaining -= 1

    z = scarce - y
    if good > bad:
        z = sample - z
    return z


def hypergeometric_hrua(prg: PRG, good: int, bad: int, sample: int) -> int:
    """
    HRUA* ratio-of-uniforms rejection sampler.

    Works on the reduced problem HG(popsize, min(good, bad), min(sample,
    popsize - sample)), whose support starts at 0, then maps back.
    Requires popsize >= 2.
    """
    mingoodbad = min(good, bad)
    maxgoodbad = max(good, bad)
    popsize = good + bad
    m = min(sample, popsize - sample)

    with localcontext() as ctx:
        ctx.prec = len(str(popsize)) + PRECISION_GUARD_DIGITS

        d4 = Decimal(mingoodbad) / popsize
        d5 = 1 - d4
        d6 = m * d4 + _HALF
        d7 = ((popsize - m) * sample * d4 * d5 / (popsize - 1) + _HALF).sqrt()
        d8 = _D1 * d7 + _D2
        d9 = (m + 1) * (mingoodbad + 1) // (popsize + 2)
        d10 = _log_weight(d9, mingoodbad, m, maxgoodbad)
        # 16 standard deviations past the mean is beyond any acceptable sample
        d11 = min(
            min(m, mingoodbad) + 1,
            int((d6 + 16 * d7).to_integral_value(rounding=ROUND_FLOOR)),
        )
        # Resolution must stay finer than 1/d8 or some integers in [0, d11)
        # become unreachable; 53-bit floats fail once d7 passes 2^53.
        bits = popsize.bit_length() + UNIFORM_GUARD_BITS

        while True:
            x = _uniform(prg, bits)
            y = _uniform(prg, bits)
            if x == 0:
                continue
            w = d6 + d8 * (y - _HALF) / x

            # fast rejection
            if w < 0 or w >= d11:
                continue

            z = int(w.to_integral_value(rounding=ROUND_FLOOR))
            t = d10 - _log_weight(z, mingoodbad, m, maxgoodbad)

            # fast acceptance
            if x * (4 - x) - 3 <= t:
                break
            # fast rejection
            if x * (x - t) >= 1:
                continue
            # acceptance
            if 2 * x.ln() <= t:
                break

    # Undo the min(good, bad) reduction
    if good > bad:
        z = m - z
    # Undo the min(sample, popsize - sample) reduction
    if m < sample:
        z = good - z
    return z


def sample_hgd(prg: PRG, population: int, successes: int, draws: int) -> int:
    """
    Sample from Hypergeometric(population, successes, draws).

    Degenerate cases return without reading the stream.

    Args:
        prg: Stream for the current node
        population: Total items (ciphertext interval size)
        successes: Marked items (plaintext interval size)
        draws: Items drawn (left ciphertext half size)

    Returns:
        k in [max(0, draws - (population - successes)), min(draws, successes)]
    """
    for name, value in (("population", population), ("successes", successes), ("draws", draws)):
        if value < 0:
            raise ValueError(f"{name} must be non-negative, got {value}")
    if successes > population:
        raise ValueError(f"successes ({successes}) exceeds population ({population})")
    if draws > population:
        raise ValueError(f"draws ({draws}) exceeds population ({population})")
    if population > 1 << MAX_POPULATION_BITS:
        raise DomainTooLarge(f"population exceeds 2^{MAX_POPULATION_BITS}")

    if successes == 0 or draws == 0:
        return 0
    if successes == population:
        return draws
    if draws == population:
        return successes

    good, bad = successes, population - successes
    m = min(draws, population - draws)
    scarce = min(good, bad)

    if min(m, scarce) <= HYP_THRESHOLD:
        if scarce < m:
            algorithm = "hyp-swapped"
            k = hypergeometric_hyp(prg, draws, population - draws, successes)
        else:
            algorithm = "hyp"
            k = hypergeometric_hyp(prg, good, bad, draws)
    else:
        algorithm = "hrua"
        k = hypergeometric_hrua(prg, good, bad, draws)

    logger.debug(
        "sample_hgd(population=%d, successes=%d, draws=%d) = %d via %s",
        population, successes, draws, k, algorithm,
    )
    return k
