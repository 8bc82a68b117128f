import math

import numpy as np
import pytest

from pipeflow_uq.distributions import LogNormal, Uniform
from pipeflow_uq.errors import DivisionDomainError, InvalidParameterError, InvalidRangeError
from pipeflow_uq.metrics import convergence_study
from pipeflow_uq.physics import (
    Fluid,
    Pipe,
    compute_pressure_drop,
    compute_pressure_drop_parallel,
    input_specs,
    linearized_pressure_drop,
    point_estimate_pressure_drop,
)

# 8 * pi * 0.001 * 1 * 0.5 / 0.1**2
REFERENCE_DP = 0.4 * math.pi


@pytest.fixture
def water():
    return Fluid(
        mean_flow_rate=0.5,
        flow_rate_stdev=0.0001,
        mean_dynamic_viscosity=0.001,
        dynamic_viscosity_stdev=0.000000002,
    )


@pytest.fixture
def pipe():
    return Pipe(length=1.0, length_tolerance=0.01, cross_section=0.1, cross_section_tolerance=0.001)


def test_defaults_match_reference_case(water, pipe):
    assert Fluid() == water
    assert Pipe() == pipe


def test_point_estimate(water, pipe):
    assert point_estimate_pressure_drop(water, pipe) == pytest.approx(REFERENCE_DP, rel=1e-12)
    assert point_estimate_pressure_drop(water, pipe) == pytest.approx(1.2566, abs=1e-4)


def test_zero_tolerance_ensemble_collapses_to_point_estimate():
    fluid = Fluid(0.5, 0.0, 0.001, 0.0)
    pipe = Pipe(1.0, 0.0, 0.1, 0.0)
    dp = compute_pressure_drop(fluid, pipe, rng=np.random.default_rng(0), n_samples=16)

    np.testing.assert_allclose(dp.samples, np.full(16, REFERENCE_DP), rtol=1e-12)
    assert dp.std() == pytest.approx(0.0, abs=1e-12)


def test_monte_carlo_agrees_with_linearized_propagation(water, pipe):
    dp = compute_pressure_drop(water, pipe, rng=np.random.default_rng(42), n_samples=200_000)
    value, u = linearized_pressure_drop(water, pipe)

    assert value == pytest.approx(REFERENCE_DP)
    assert dp.mean() == pytest.approx(value, rel=1e-3)
    assert dp.std() == pytest.approx(u, rel=0.05)
    assert dp.name == "pressure_drop"


def test_output_stays_within_propagated_support(water, pipe):
    dp = compute_pressure_drop(water, pipe, rng=np.random.default_rng(1), n_samples=50_000)
    lo, hi = dp.support
    assert lo > 0.0
    assert np.all(dp.samples >= lo)
    assert np.all(dp.samples <= hi)


def test_fixed_seed_is_reproducible(water, pipe):
    a = compute_pressure_drop(water, pipe, rng=np.random.default_rng(2024), n_samples=1000)
    b = compute_pressure_drop(water, pipe, rng=np.random.default_rng(2024), n_samples=1000)
    np.testing.assert_array_equal(a.samples, b.samples)


def test_repeated_evaluations_are_independent(water, pipe):
    rng = np.random.default_rng(5)
    a = compute_pressure_drop(water, pipe, rng=rng, n_samples=100)
    b = compute_pressure_drop(water, pipe, rng=rng, n_samples=100)
    assert not np.array_equal(a.samples, b.samples)


def test_single_draw_evaluation(water, pipe):
    dp = compute_pressure_drop(water, pipe, rng=np.random.default_rng(0), n_samples=1)
    assert dp.n_samples == 1
    assert dp.mean() == pytest.approx(REFERENCE_DP, rel=0.05)


def test_cross_section_reaching_zero_raises(water):
    pipe = Pipe(length=1.0, length_tolerance=0.01, cross_section=0.1, cross_section_tolerance=0.1)
    with pytest.raises(DivisionDomainError) as excinfo:
        compute_pressure_drop(water, pipe, rng=np.random.default_rng(0), n_samples=1000)
    assert excinfo.value.parameter == "cross_section"
    assert excinfo.value.distribution == "uniform"
    assert "cross_section (uniform)" in str(excinfo.value)


def test_underflowing_cross_section_raises_instead_of_infinity():
    pipe = Pipe(cross_section=1e-160, cross_section_tolerance=0.0)
    with pytest.raises(DivisionDomainError) as excinfo:
        compute_pressure_drop(Fluid(), pipe, rng=np.random.default_rng(0), n_samples=4)
    assert excinfo.value.parameter == "cross_section"
    assert excinfo.value.distribution == "uniform"


def test_negative_cross_section_range_raises(water):
    pipe = Pipe(cross_section=0.1, cross_section_tolerance=0.3)
    with pytest.raises(DivisionDomainError):
        compute_pressure_drop(water, pipe, rng=np.random.default_rng(0), n_samples=10)


def test_point_estimate_zero_cross_section(water):
    with pytest.raises(DivisionDomainError):
        point_estimate_pressure_drop(water, Pipe(cross_section=0.0, cross_section_tolerance=0.0))


@pytest.mark.parametrize(
    "fluid, pipe, error, parameter, distribution",
    [
        (Fluid(flow_rate_stdev=-0.1), Pipe(), InvalidRangeError, "flow_rate", "uniform"),
        (Fluid(dynamic_viscosity_stdev=-1e-9), Pipe(), InvalidParameterError, "dynamic_viscosity", "lognormal"),
        (Fluid(), Pipe(length_tolerance=-0.5), InvalidRangeError, "length", "uniform"),
        (Fluid(), Pipe(cross_section_tolerance=-0.01), InvalidRangeError, "cross_section", "uniform"),
    ],
)
def test_draw_failures_name_parameter_and_distribution(fluid, pipe, error, parameter, distribution):
    with pytest.raises(error) as excinfo:
        compute_pressure_drop(fluid, pipe, rng=np.random.default_rng(0), n_samples=10)
    assert excinfo.value.parameter == parameter
    assert excinfo.value.distribution == distribution
    assert f"{parameter} ({distribution})" in str(excinfo.value)


def test_parallel_result_independent_of_worker_count(water, pipe):
    a = compute_pressure_drop_parallel(water, pipe, seed=9, n_samples=10_001, n_chunks=4, n_workers=1)
    b = compute_pressure_drop_parallel(water, pipe, seed=9, n_samples=10_001, n_chunks=4, n_workers=4)

    assert a.n_samples == 10_001
    np.testing.assert_array_equal(a.samples, b.samples)
    assert a.mean() == pytest.approx(REFERENCE_DP, rel=1e-3)


def test_parallel_propagates_errors(water):
    pipe = Pipe(cross_section_tolerance=0.1)
    with pytest.raises(DivisionDomainError):
        compute_pressure_drop_parallel(water, pipe, seed=0, n_samples=100, n_chunks=4, n_workers=2)


def test_standard_error_shrinks_with_ensemble_size(water, pipe):
    def evaluate(rng, n):
        return compute_pressure_drop(water, pipe, rng=rng, n_samples=n)

    rows = convergence_study(evaluate, sizes=[100, 1_000, 10_000, 100_000], seed=3, repeats=5)
    errors = [r["standard_error"] for r in rows]

    assert [r["n_samples"] for r in rows] == [100, 1_000, 10_000, 100_000]
    assert all(later <= earlier for earlier, later in zip(errors, errors[1:]))
    assert rows[-1]["spread_of_means"] < rows[0]["spread_of_means"]
    assert errors[-1] == pytest.approx(errors[0] / math.sqrt(1000), rel=0.2)


def test_input_override_replaces_default_distribution(water, pipe):
    overrides = {"dynamic_viscosity": Uniform(0.0009, 0.0011)}
    dp = compute_pressure_drop(water, pipe, rng=np.random.default_rng(8), n_samples=50_000, overrides=overrides)
    value, u = linearized_pressure_drop(water, pipe, overrides=overrides)

    assert input_specs(water, pipe, overrides)["dynamic_viscosity"] == Uniform(0.0009, 0.0011)
    assert point_estimate_pressure_drop(water, pipe, overrides) == pytest.approx(REFERENCE_DP)
    assert dp.mean() == pytest.approx(value, rel=2e-3)
    assert dp.std() == pytest.approx(u, rel=0.05)
    # Viscosity spread now dominates the default case.
    assert u > linearized_pressure_drop(water, pipe)[1] * 4


def test_lognormal_cross_section_override_is_strictly_positive(water, pipe):
    dp = compute_pressure_drop(
        water, pipe, rng=np.random.default_rng(4), n_samples=1000,
        overrides={"cross_section": LogNormal(0.1, 0.001)},
    )
    assert np.all(np.isfinite(dp.samples))
    assert dp.support[0] > 0.0


def test_override_of_unknown_input(water, pipe):
    with pytest.raises(KeyError):
        compute_pressure_drop(water, pipe, rng=np.random.default_rng(0), n_samples=10, overrides={"density": Uniform(1, 2)})
