"""
PURPOSE: Random variate generators for the deterioration Monte Carlo.

RESPONSIBILITIES:
- Draw uniform, Bernoulli, normal (Box-Muller) and lognormal (mean/CoV) variates
- Derive lognormal (mu, sigma) from an arithmetic mean and coefficient of variation
- Expose the matching scipy distribution for analytic checks
- Single responsibility: only sampling, no I/O or aggregation
"""

import math

import numpy as np
from scipy.stats import lognorm


class RandomVariate:
    """
    Scalar variate generator over an injectable uniform source.

    The uniform source is a ``numpy.random.Generator``. Passing the same seed
    reproduces the same stream of draws.
    """

    def __init__(self, rng=None, random_seed=None):
        """
        Args:
            rng: numpy Generator to draw uniforms from (takes precedence)
            random_seed: Seed for a fresh generator when rng is None
        """
        if rng is None:
            rng = np.random.default_rng(random_seed)
        self.rng = rng

    def uniform(self):
        """Uniform draw in [0, 1)."""
        return float(self.rng.random())

    def bernoulli(self, probability):
        """True with the given probability."""
        return self.uniform() < probability

    def normal(self, mean=0.0, std=1.0):
        """
        Sample from a normal distribution using the Box-Muller transform.

        A zero first uniform is re-drawn so that log(0) never occurs.
        """
        u1 = self.uniform()
        u2 = self.uniform()
        while u1 == 0.0:
            u1 = self.uniform()
        z = math.sqrt(-2.0 * math.log(u1)) * math.cos(2.0 * math.pi * u2)
        return mean + z * std

    def lognormal(self, mean, cov):
        """
        Sample a strictly positive value with arithmetic mean ``mean`` and
        coefficient of variation ``cov``.
        """
        mu, sigma = lognormal_params(mean, cov)
        with np.errstate(over="ignore"):
            return float(np.exp(self.normal(mu, sigma)))


def lognormal_params(mean, cov):
    """Compute lognormal parameters (mu, sigma) from an arithmetic mean and CoV.

    Uses the moment-matching identities:
        variance = (cov * mean)^2
        mu = ln(mean^2 / sqrt(variance + mean^2))
        sigma = sqrt(ln(1 + variance / mean^2))

    Args:
        mean: Expected value of the lognormal distribution (> 0)
        cov: Coefficient of variation (std / mean)

    Returns:
        tuple: (mu, sigma) of the underlying normal; NaN for a zero or NaN mean
    """
    mean = np.float64(mean)
    with np.errstate(divide="ignore", invalid="ignore"):
        variance = (cov * mean) ** 2
        mu = np.log(mean ** 2 / np.sqrt(variance + mean ** 2))
        sigma = np.sqrt(np.log(1 + variance / mean ** 2))
    return float(mu), float(sigma)


def lognormal_distribution(mean, cov):
    """Frozen scipy lognormal with the same parametrization as RandomVariate.lognormal."""
    mu, sigma = lognormal_params(mean, cov)
    return lognorm(s=sigma, scale=np.exp(mu))
