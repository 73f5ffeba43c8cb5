"""Tests for the hypergeometric sampler."""

from decimal import Decimal, localcontext
import math

import pytest
from ope.errors import DomainTooLarge
from ope.hgd import (
    HYP_THRESHOLD,
    MAX_POPULATION_BITS,
    hypergeometric_hrua,
    hypergeometric_hyp,
    loggam,
    sample_hgd,
)
from ope.prg import PRG, derive_seed

KEY = b"hypergeometric!!"


def make_prg(i: int = 0) -> PRG:
    return PRG(derive_seed(KEY, f"sample:{i}".encode()))


def draw_many(count: int, population: int, successes: int, draws: int) -> list[int]:
    return [sample_hgd(make_prg(i), population, successes, draws) for i in range(count)]


def support(population: int, successes: int, draws: int) -> tuple[int, int]:
    return max(0, draws - (population - successes)), min(draws, successes)


class TestLoggam:
    """Tests for the log-gamma function."""

    def test_exact_points(self):
        """Gamma(1) = Gamma(2) = 1."""
        assert loggam(1) == 0
        assert loggam(2) == 0

    def test_reference_values(self):
        """Compare against known values of ln Gamma."""
        assert abs(loggam(Decimal("0.5")) - Decimal("0.5723649429247001")) < Decimal("1e-12")
        assert abs(loggam(3) - Decimal(2).ln()) < Decimal("1e-14")
        assert abs(loggam(5) - Decimal(24).ln()) < Decimal("1e-14")
        assert abs(loggam(100) - Decimal("359.134205369575")) < Decimal("1e-9")
        assert abs(loggam(1000) - Decimal("5905.220423209181")) < Decimal("1e-8")

    def test_matches_log_factorial(self):
        """loggam(n + 1) = ln(n!) for small n."""
        with localcontext() as ctx:
            ctx.prec = 50
            for n in [3, 6, 7, 8, 30]:
                expected = Decimal(math.factorial(n)).ln()
                assert abs(loggam(n + 1) - expected) < Decimal("1e-15")

    def test_recurrence_at_large_arguments(self):
        """loggam(x + 1) - loggam(x) = ln(x) even when loggam(x) ~ 10^32."""
        with localcontext() as ctx:
            ctx.prec = 60
            x = 2**100
            diff = loggam(x + 1) - loggam(x)
            assert abs(diff - Decimal(x).ln()) < Decimal("1e-20")

    def test_accepts_floats(self):
        assert abs(loggam(0.5) - loggam(Decimal("0.5"))) < Decimal("1e-20")

    def test_non_positive(self):
        with pytest.raises(ValueError):
            loggam(0)
        with pytest.raises(ValueError):
            loggam(-2)


class TestHyp:
    """Tests for the exact sequential sampler."""

    def test_support(self):
        for i in range(50):
            z = hypergeometric_hyp(make_prg(i), 3, 2, 4)
            assert 2 <= z <= 3

    def test_complement_draw(self):
        """Drawing everything but one item leaves at most one success undrawn."""
        for i in range(50):
            z = hypergeometric_hyp(make_prg(i), 5, 1000, 1004)
            assert 4 <= z <= 5

    def test_more_good_than_bad(self):
        for i in range(50):
            z = hypergeometric_hyp(make_prg(i), 19, 4, 10)
            assert 6 <= z <= 10


class TestHrua:
    """Tests for the HRUA* rejection sampler."""

    def test_support_small(self):
        for i in range(50):
            z = hypergeometric_hrua(make_prg(i), 20, 20, 25)
            assert 5 <= z <= 20

    def test_support_asymmetric(self):
        for i in range(50):
            z = hypergeometric_hrua(make_prg(i), 50, 111, 67)
            assert 0 <= z <= 50

    def test_sample_over_half(self):
        """Draws above popsize / 2 use the complementary draw."""
        for i in range(50):
            z = hypergeometric_hrua(make_prg(i), 111, 50, 140)
            assert 90 <= z <= 111


class TestSampleHgd:
    """Tests for sample_hgd."""

    def test_degenerate_cases_consume_nothing(self):
        """Degenerate parameters return fixed values without reading the stream."""
        cases = [
            ((100, 0, 50), 0),
            ((100, 100, 50), 50),
            ((100, 40, 0), 0),
            ((100, 40, 100), 40),
            ((0, 0, 0), 0),
        ]
        for args, expected in cases:
            prg = make_prg()
            assert sample_hgd(prg, *args) == expected
            assert prg.random_bytes(16) == make_prg().random_bytes(16)

    def test_deterministic(self):
        """Same stream, same parameters, same sample."""
        for args in [(1000, 300, 400), (100, 30, 10), (2**64, 2**32, 2**63)]:
            assert sample_hgd(make_prg(7), *args) == sample_hgd(make_prg(7), *args)

    def test_support_bounds(self):
        """Samples never leave the hypergeometric support."""
        params = [
            (10, 3, 5),
            (10, 9, 5),
            (40, 20, 25),
            (256, 16, 128),
            (256, 200, 128),
            (1000, 990, 700),
            (2**20, 2**10, 2**19),
        ]
        for population, successes, draws in params:
            lo, hi = support(population, successes, draws)
            for k in draw_many(30, population, successes, draws):
                assert lo <= k <= hi

    def test_mean_hrua_path(self):
        """Empirical mean matches draws * successes / population (HRUA*)."""
        samples = draw_many(500, 1000, 300, 400)
        mean = sum(samples) / len(samples)
        assert abs(mean - 120) < 1.5

    def test_mean_hyp_path(self):
        """Empirical mean matches draws * successes / population (HYP)."""
        samples = draw_many(1000, 100, 30, 10)
        mean = sum(samples) / len(samples)
        assert abs(mean - 3) < 0.25

    def test_mean_swapped_hyp_path(self):
        """Few successes with many draws uses HYP with roles swapped."""
        samples = draw_many(1000, 1000, 3, 500)
        assert all(0 <= k <= 3 for k in samples)
        mean = sum(samples) / len(samples)
        assert abs(mean - 1.5) < 0.15

    def test_distribution_matches_pmf(self):
        """HRUA* output is close to the exact pmf in total variation."""
        population, successes, draws = 60, 25, 30
        assert min(draws, successes) > HYP_THRESHOLD

        count = 2000
        counts: dict[int, int] = {}
        for k in draw_many(count, population, successes, draws):
            counts[k] = counts.get(k, 0) + 1

        total = math.comb(population, draws)
        tv = 0.0
        lo, hi = support(population, successes, draws)
        for k in range(lo, hi + 1):
            pmf = math.comb(successes, k) * math.comb(population - successes, draws - k) / total
            tv += abs(counts.get(k, 0) / count - pmf)
        assert tv / 2 < 0.08

    def test_huge_population(self):
        """128-bit populations sample near the mean without overflow."""
        population, successes, draws = 2**128, 2**64, 2**127
        for i in range(5):
            k = sample_hgd(make_prg(i), population, successes, draws)
            assert 0 <= k <= successes
            # Standard deviation is ~2^31
            assert abs(k - 2**63) < 2**40

    def test_invalid_arguments(self):
        prg = make_prg()
        with pytest.raises(ValueError):
            sample_hgd(prg, -1, 0, 0)
        with pytest.raises(ValueError):
            sample_hgd(prg, 10, 11, 5)
        with pytest.raises(ValueError):
            sample_hgd(prg, 10, 5, 11)
        with pytest.raises(ValueError):
            sample_hgd(prg, 10, -1, 5)

    def test_domain_too_large(self):
        """Populations beyond the supported width raise DomainTooLarge."""
        with pytest.raises(DomainTooLarge):
            sample_hgd(make_prg(), 2 ** (MAX_POPULATION_BITS + 1), 5, 7)
        with pytest.raises(OverflowError):
            sample_hgd(make_prg(), 2 ** (MAX_POPULATION_BITS + 1), 5, 7)

    def test_uniform_resolution_tracks_population(self):
        """HRUA* uniforms carry more bits than the population's bit length."""
        population, successes, draws = 2**128, 2**127, 2**127
        prg = RecordingPRG(derive_seed(KEY, b"resolution"))
        k = sample_hgd(prg, population, successes, draws)
        assert 0 <= k <= successes
        assert prg.requests
        assert all(bits >= population.bit_length() + 53 for bits in prg.requests)

    def test_wide_interval_low_bits_vary(self):
        """Samples at 2^127 scale still differ in their lowest bits."""
        samples = draw_many(16, 2**128, 2**127, 2**127)
        assert len({k % 256 for k in samples}) > 4


class RecordingPRG(PRG):
    """PRG that remembers the width of every random_bits request."""

    def __init__(self, seed: bytes):
        super().__init__(seed)
        self.requests: list[int] = []

    def random_bits(self, k: int) -> int:
        self.requests.append(k)
        return super().random_bits(k)


class TestFixedOutputs:
    """
    Samples pinned to fixed values.

    Encryption and decryption of stored ciphertexts depend on every sample
    being reproducible across releases, not just within one process.
    """

    def test_hyp_values(self):
        assert sample_hgd(make_prg(0), 100, 40, 7) == 3
        assert hypergeometric_hyp(make_prg(0), 40, 60, 7) == 3

    def test_swapped_hyp_values(self):
        assert sample_hgd(make_prg(0), 256, 16, 128) == 10
        assert sample_hgd(make_prg(0), 100, 3, 50) == 2

    def test_hrua_values(self):
        assert sample_hgd(make_prg(0), 1000, 400, 500) == 196
        assert sample_hgd(make_prg(1), 1000, 400, 500) == 203
        assert sample_hgd(make_prg(0), 1000, 300, 600) == 185
        assert sample_hgd(make_prg(1), 1000, 300, 600) == 177

    def test_hrua_direct_call_matches(self):
        """sample_hgd adds no stream reads before HRUA*."""
        assert hypergeometric_hrua(make_prg(1), 300, 700, 600) == 177


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
