"""
PURPOSE: Closed-form deterioration models for a concrete deck.

Carbonation, frost and bearing-edge models as pure functions. Every function
accepts Python scalars or numpy arrays (broadcast against each other); scalar
arguments return a float.

Carbonation (two-phase dampened sqrt(t)):
    t <= t_d:  x = k * sqrt(t)
    t >  t_d:  x = k * sqrt(t_d) + k * alpha * sqrt(t - t_d)

Frost (geometric accumulation of an accelerating annual rate):
    D(t) = r * (a^t - 1) / (a - 1),   D(t) = r * t when a == 1

Bearing (linear edge loss, clamped):
    l(t) = max(0, l0 - edge_factor * v * t)
"""

import math

import numpy as np

from deck_life.config import DEFAULT_EDGE_FACTOR, FROST_LINEAR_TOLERANCE


def _result(value, *args):
    if all(np.ndim(a) == 0 for a in args):
        return float(value)
    return value


def _dampening_active(dampening_age, dampening_factor) -> bool:
    if dampening_age is None or dampening_factor is None:
        return False
    if math.isnan(dampening_age) or math.isnan(dampening_factor):
        return False
    return dampening_age > 0 and dampening_factor < 1.0


def carbonation_depth(k, t, dampening_age=None, dampening_factor=None):
    """
    Carbonation depth (mm) at age t (years from construction).

    Args:
        k: Phase-1 carbonation coefficient (mm/sqrt(year))
        t: Age in years; negative ages are treated as 0
        dampening_age: Age at which the rate drops, None to disable
        dampening_factor: Fraction of the rate kept after dampening_age

    Returns:
        Depth in mm; 0 for t <= 0 or k <= 0.
    """
    k_arr = np.asarray(k, dtype=float)
    t_arr = np.maximum(np.asarray(t, dtype=float), 0.0)
    with np.errstate(invalid="ignore", over="ignore"):
        depth = k_arr * np.sqrt(t_arr)
        if _dampening_active(dampening_age, dampening_factor):
            phase2 = k_arr * math.sqrt(dampening_age) + k_arr * dampening_factor * np.sqrt(
                np.maximum(t_arr - dampening_age, 0.0)
            )
            depth = np.where(t_arr <= dampening_age, depth, phase2)
        depth = np.where((t_arr <= 0) | (k_arr <= 0), 0.0, depth)
    return _result(depth, k, t)


def carbonation_inverse_age(k, target_depth, dampening_age=None, dampening_factor=None):
    """
    Inverse of carbonation_depth: the age at which ``target_depth`` is reached.

    Used to convert an accumulated depth into an equivalent age under a
    different coefficient. Returns 0 for target_depth <= 0 or k <= 0 and
    +inf when the dampened phase has a non-positive rate.
    """
    k_arr = np.asarray(k, dtype=float)
    d_arr = np.asarray(target_depth, dtype=float)
    with np.errstate(divide="ignore", invalid="ignore", over="ignore"):
        age = (d_arr / k_arr) ** 2
        if _dampening_active(dampening_age, dampening_factor):
            phase1_max = k_arr * math.sqrt(dampening_age)
            k2 = k_arr * dampening_factor
            phase2 = np.where(
                k2 > 0,
                dampening_age + ((d_arr - phase1_max) / k2) ** 2,
                np.inf,
            )
            age = np.where(d_arr <= phase1_max, age, phase2)
        age = np.where((d_arr <= 0) | (k_arr <= 0), 0.0, age)
    return _result(age, k, target_depth)


def carbonation_reaches_rebar(k, cover, dampening_age=None, dampening_factor=None):
    """Years from construction until the carbonation front reaches ``cover``; +inf for k <= 0."""
    k_arr = np.asarray(k, dtype=float)
    age = np.asarray(carbonation_inverse_age(k, cover, dampening_age, dampening_factor), dtype=float)
    age = np.where(k_arr <= 0, np.inf, age)
    return _result(age, k, cover)


def frost_damage(t, base_rate, acceleration_factor):
    """
    Cumulative frost damage depth (mm) after t years of exposure.

    Args:
        t: Years since critical saturation
        base_rate: Damage rate in the first year (mm/year)
        acceleration_factor: Annual growth factor of the rate (1.0 = linear)
    """
    t_arr = np.asarray(t, dtype=float)
    r_arr = np.asarray(base_rate, dtype=float)
    if abs(acceleration_factor - 1.0) < FROST_LINEAR_TOLERANCE:
        damage = r_arr * t_arr
    else:
        with np.errstate(over="ignore", invalid="ignore"):
            damage = r_arr * (np.power(acceleration_factor, t_arr) - 1) / (acceleration_factor - 1)
    damage = np.where(t_arr <= 0, 0.0, damage)
    return _result(damage, t, base_rate)


def frost_damage_rate(t, base_rate, acceleration_factor):
    """Instantaneous frost damage rate (mm/year) in year t; 0 for t <= 0."""
    t_arr = np.asarray(t, dtype=float)
    with np.errstate(over="ignore"):
        rate = np.asarray(base_rate, dtype=float) * np.power(acceleration_factor, t_arr - 1)
    rate = np.where(t_arr <= 0, 0.0, rate)
    return _result(rate, t, base_rate)


def effective_bearing(original_depth, deterioration_rate, t, edge_factor=DEFAULT_EDGE_FACTOR):
    """
    Remaining bearing length (mm) after t years of edge loss.

    Args:
        original_depth: Bearing length when new (mm)
        deterioration_rate: Edge loss rate (mm/year)
        t: Years of exposure
        edge_factor: Edge loss multiplier (1.0 = one edge, 2.0 = both edges equally)
    """
    loss = edge_factor * np.asarray(deterioration_rate, dtype=float) * np.asarray(t, dtype=float)
    length = np.maximum(0.0, original_depth - loss)
    return _result(length, original_depth, deterioration_rate, t)
