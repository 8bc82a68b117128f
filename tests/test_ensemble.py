import math

import numpy as np
import pytest

from pipeflow_uq.engine import sample_lognormal, sample_uniform
from pipeflow_uq.ensemble import (
    DistributedValue,
    concatenate,
    divide,
    mean,
    multiply,
    power,
    sample_one,
    scale,
)
from pipeflow_uq.errors import DivisionDomainError, InvalidParameterError


@pytest.fixture
def rng():
    return np.random.default_rng(123)


def test_samples_are_read_only(rng):
    value = sample_uniform(0.0, 1.0, rng=rng, n_samples=10)
    with pytest.raises(ValueError):
        value.samples[0] = 5.0


def test_summaries_do_not_consume_the_ensemble(rng):
    value = sample_uniform(0.0, 1.0, rng=rng, n_samples=1000)
    before = value.samples.copy()

    assert mean(value) == mean(value)
    first = sample_one(value, np.random.default_rng(5))
    second = sample_one(value, np.random.default_rng(5))

    assert first == second
    assert first in before
    np.testing.assert_array_equal(value.samples, before)


def test_multiply_is_elementwise_and_tracks_support(rng):
    a = sample_uniform(1.0, 2.0, rng=rng, n_samples=500)
    b = sample_uniform(-3.0, -1.0, rng=rng, n_samples=500)
    c = multiply(a, b)

    np.testing.assert_allclose(c.samples, a.samples * b.samples)
    assert c.support == (-6.0, -1.0)
    assert isinstance(c, DistributedValue)


def test_scalar_operands_and_operators(rng):
    a = sample_uniform(1.0, 2.0, rng=rng, n_samples=500)

    np.testing.assert_allclose((a * 2).samples, 2 * a.samples)
    np.testing.assert_allclose((3 * a).samples, 3 * a.samples)
    np.testing.assert_allclose(scale(a, 0.5).samples, 0.5 * a.samples)
    np.testing.assert_allclose((a / 4).samples, a.samples / 4)
    np.testing.assert_allclose((1 / a).samples, 1 / a.samples)
    np.testing.assert_allclose((a ** 2).samples, a.samples ** 2)
    np.testing.assert_allclose((a - a).samples, np.zeros(500))
    np.testing.assert_allclose((-a).samples, -a.samples)
    assert (1 / a).support == (0.5, 1.0)


def test_divide_rejects_denominator_straddling_zero(rng):
    num = sample_uniform(1.0, 2.0, rng=rng, n_samples=100)
    den = sample_uniform(-0.5, 0.5, rng=rng, n_samples=100, name="cross_section")
    with pytest.raises(DivisionDomainError) as excinfo:
        divide(num, den)
    assert excinfo.value.parameter == "cross_section"
    assert excinfo.value.distribution == "uniform"


def test_divide_rejects_support_touching_zero_even_if_unsampled(rng):
    den = sample_uniform(0.0, 1.0, rng=rng, n_samples=10)
    with pytest.raises(DivisionDomainError):
        divide(1.0, den)


def test_divide_rejects_zero_constant():
    with pytest.raises(DivisionDomainError):
        divide(1.0, DistributedValue.constant(0.0, n_samples=3))


def test_division_by_lognormal_is_allowed(rng):
    den = sample_lognormal(1.0, 0.1, rng=rng, n_samples=100)
    out = divide(2.0, den)
    assert np.all(np.isfinite(out.samples))
    assert out.support[0] > 0.0
    assert np.all(out.samples > 0.0)


def test_square_of_signed_value_has_non_negative_support(rng):
    a = sample_uniform(-1.0, 2.0, rng=rng, n_samples=100)
    sq = power(a, 2)
    assert sq.support == (0.0, 4.0)
    assert np.all(sq.samples >= 0.0)


def test_odd_power_keeps_sign(rng):
    a = sample_uniform(-2.0, 1.0, rng=rng, n_samples=100)
    assert power(a, 3).support == (-8.0, 1.0)


def test_negative_power_uses_division_domain(rng):
    a = sample_uniform(-1.0, 1.0, rng=rng, n_samples=100)
    with pytest.raises(DivisionDomainError):
        power(a, -2)


def test_fractional_power_of_negative_support(rng):
    a = sample_uniform(-1.0, 1.0, rng=rng, n_samples=100)
    with pytest.raises(InvalidParameterError):
        power(a, 0.5)


def test_mismatched_ensemble_sizes(rng):
    a = sample_uniform(0.0, 1.0, rng=rng, n_samples=10)
    b = sample_uniform(0.0, 1.0, rng=rng, n_samples=20)
    with pytest.raises(ValueError):
        multiply(a, b)


def test_single_member_constant_broadcasts(rng):
    a = sample_uniform(1.0, 2.0, rng=rng, n_samples=10)
    out = multiply(a, DistributedValue.constant(2.0))
    assert out.n_samples == 10


def test_quantiles_and_standard_error(rng):
    value = sample_uniform(0.0, 1.0, rng=rng, n_samples=100_000)
    qs = value.quantiles([0.25, 0.5, 0.75])
    assert qs[0.5] == pytest.approx(0.5, abs=0.01)
    assert qs[0.25] < qs[0.5] < qs[0.75]
    assert value.standard_error() == pytest.approx(value.std() / math.sqrt(100_000))
    with pytest.raises(ValueError):
        value.quantiles([1.5])


def test_single_member_has_zero_spread():
    value = DistributedValue([1.25])
    assert value.std() == 0.0
    assert value.standard_error() == 0.0


def test_concatenate_pools_members_and_support(rng):
    a = sample_uniform(0.0, 1.0, rng=rng, n_samples=3)
    b = sample_uniform(2.0, 3.0, rng=rng, n_samples=4)
    pooled = concatenate([a, b], name="x")
    assert pooled.n_samples == 7
    assert pooled.support == (0.0, 3.0)
    np.testing.assert_array_equal(pooled.samples[:3], a.samples)


def test_distribution_kind_survives_power_and_negation(rng):
    a = sample_uniform(1.0, 2.0, rng=rng, n_samples=10, name="cross_section")
    assert a.distribution == "uniform"
    assert power(a, 2).distribution == "uniform"
    assert (-a).distribution == "uniform"
    assert power(a, 2).name == "cross_section"


def test_divide_rejects_overflowing_quotient():
    den = DistributedValue([1e-320, 1.0], support=(1e-320, 1.0), name="area_squared")
    with pytest.raises(DivisionDomainError) as excinfo:
        divide(1.0, den)
    assert excinfo.value.parameter == "area_squared"
    assert "overflows for 1 member" in str(excinfo.value)


def test_divide_lets_infinite_numerator_through():
    num = DistributedValue([np.inf, 1.0], support=(1.0, np.inf))
    out = divide(num, 2.0)
    assert out.samples[0] == np.inf
