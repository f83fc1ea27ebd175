import numpy as np
import pytest
from scipy import stats

from erchmm import erlang_density, branch_densities


@pytest.mark.parametrize("rate", [.1, 1., 2., 37.5])
def test_order_one_is_exponential(rate):
    for x in np.linspace(0, 10, num=41):
        np.testing.assert_allclose(erlang_density(x, rate, 1), rate * np.exp(-rate * x), rtol=1e-12)


@pytest.mark.parametrize("order", [1, 2, 3, 5, 12])
@pytest.mark.parametrize("rate", [.5, 4.])
def test_matches_scipy_erlang(order, rate):
    x = np.linspace(0, 8, num=33)
    ref = stats.erlang.pdf(x, a=order, scale=1. / rate)
    values = np.array([erlang_density(xi, rate, order) for xi in x])
    np.testing.assert_allclose(values, ref, rtol=1e-10, atol=1e-300)


def test_density_at_zero():
    np.testing.assert_equal(erlang_density(0., 3., 1), 3.)
    for order in [2, 3, 7]:
        np.testing.assert_equal(erlang_density(0., 3., order), 0.)


def test_branch_densities_matrix():
    times = np.array([0., .1, .5, 2., 7.])
    rates = np.array([1., 10., .3])
    orders = np.array([1, 4, 2])
    densities = branch_densities(times, rates, orders)
    np.testing.assert_equal(densities.shape, (5, 3))
    for k, x in enumerate(times):
        for m in range(3):
            np.testing.assert_allclose(densities[k, m], erlang_density(x, rates[m], orders[m]), rtol=1e-12)


def test_branch_densities_writes_into_buffer(float_dtype):
    times = np.array([.2, 1.3], dtype=float_dtype)
    out = np.full((2, 2), np.nan, dtype=float_dtype)
    result = branch_densities(times, np.array([1., 2.]), np.array([1, 3]), out=out)
    assert result is out
    assert np.all(np.isfinite(out))
    np.testing.assert_allclose(out[1, 1], stats.erlang.pdf(1.3, a=3, scale=.5), rtol=1e-5)
