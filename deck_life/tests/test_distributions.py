"""
Unit tests for random variate generators.

STRATEGY:
    1. Same seed gives the same stream of draws
    2. Normal draws pass a goodness-of-fit check against scipy's normal
    3. Lognormal draws are positive and match the requested mean and CoV
    4. Degenerate inputs (zero uniform, zero mean) do not raise
"""

import math
import unittest

import numpy as np
from scipy import stats

from deck_life.distributions import RandomVariate, lognormal_distribution, lognormal_params


class _FixedUniforms:
    """Stand-in generator that replays a fixed list of uniforms."""

    def __init__(self, values):
        self.values = list(values)

    def random(self):
        return self.values.pop(0)


class TestRandomVariate(unittest.TestCase):

    def test_reproducibility_with_seed(self):
        """Same seed should produce identical draws."""
        rv1 = RandomVariate(random_seed=42)
        rv2 = RandomVariate(random_seed=42)
        draws1 = [rv1.normal(0.0, 1.0) for _ in range(100)]
        draws2 = [rv2.normal(0.0, 1.0) for _ in range(100)]
        np.testing.assert_array_equal(draws1, draws2)

    def test_injected_generator(self):
        """An injected numpy Generator is used as the uniform source."""
        rv1 = RandomVariate(rng=np.random.default_rng(7))
        rv2 = RandomVariate(random_seed=7)
        self.assertEqual(rv1.uniform(), rv2.uniform())

    def test_uniform_range(self):
        rv = RandomVariate(random_seed=1)
        draws = np.array([rv.uniform() for _ in range(1000)])
        self.assertTrue(np.all(draws >= 0.0))
        self.assertTrue(np.all(draws < 1.0))

    def test_bernoulli_extremes(self):
        rv = RandomVariate(random_seed=1)
        self.assertFalse(any(rv.bernoulli(0.0) for _ in range(200)))
        self.assertTrue(all(rv.bernoulli(1.0) for _ in range(200)))

    def test_normal_fits_standard_normal(self):
        """Box-Muller draws should be indistinguishable from N(0, 1)."""
        rv = RandomVariate(random_seed=42)
        draws = [rv.normal(0.0, 1.0) for _ in range(5000)]
        _, p_value = stats.kstest(draws, "norm")
        self.assertGreater(p_value, 0.001)

    def test_normal_mean_and_std(self):
        rv = RandomVariate(random_seed=3)
        draws = np.array([rv.normal(36.5, 8.0) for _ in range(20000)])
        self.assertAlmostEqual(np.mean(draws), 36.5, delta=0.3)
        self.assertAlmostEqual(np.std(draws), 8.0, delta=0.3)

    def test_zero_first_uniform_is_redrawn(self):
        """A zero first uniform must not reach log(0)."""
        rv = RandomVariate(rng=_FixedUniforms([0.0, 0.5, 0.5]))
        z = rv.normal(0.0, 1.0)
        self.assertAlmostEqual(z, -math.sqrt(2.0 * math.log(2.0)), places=12)

    def test_lognormal_positive(self):
        rv = RandomVariate(random_seed=11)
        draws = np.array([rv.lognormal(0.2, 0.45) for _ in range(2000)])
        self.assertTrue(np.all(draws > 0))

    def test_lognormal_mean_and_cov(self):
        """Arithmetic mean and CoV of the draws match the parameters."""
        rv = RandomVariate(random_seed=42)
        draws = np.array([rv.lognormal(1.88, 0.2) for _ in range(20000)])
        self.assertAlmostEqual(np.mean(draws), 1.88, delta=0.02)
        self.assertAlmostEqual(np.std(draws) / np.mean(draws), 0.2, delta=0.01)


class TestLognormalParams(unittest.TestCase):

    def test_zero_cov(self):
        mu, sigma = lognormal_params(1.0, 0.0)
        self.assertAlmostEqual(mu, 0.0)
        self.assertAlmostEqual(sigma, 0.0)

    def test_moment_matching(self):
        mu, sigma = lognormal_params(0.1, 0.25)
        mean = math.exp(mu + sigma ** 2 / 2)
        std = math.sqrt((math.exp(sigma ** 2) - 1) * math.exp(2 * mu + sigma ** 2))
        self.assertAlmostEqual(mean, 0.1, places=10)
        self.assertAlmostEqual(std / mean, 0.25, places=10)

    def test_zero_mean_gives_nan(self):
        mu, sigma = lognormal_params(0.0, 0.2)
        self.assertTrue(math.isnan(mu))
        self.assertTrue(math.isnan(sigma))

    def test_scipy_distribution_matches(self):
        dist = lognormal_distribution(1.88, 0.2)
        self.assertAlmostEqual(dist.mean(), 1.88, places=10)
        self.assertAlmostEqual(dist.std() / dist.mean(), 0.2, places=10)

    def test_exported_from_package(self):
        import deck_life

        self.assertIs(deck_life.lognormal_distribution, lognormal_distribution)
        self.assertIn("lognormal_distribution", deck_life.__all__)
        self.assertIn("RandomVariate", deck_life.__all__)

    def test_draws_follow_scipy_distribution(self):
        rv = RandomVariate(random_seed=5)
        draws = [rv.lognormal(0.2, 0.45) for _ in range(3000)]
        _, p_value = stats.kstest(draws, lognormal_distribution(0.2, 0.45).cdf)
        self.assertGreater(p_value, 0.001)


if __name__ == "__main__":
    unittest.main()
