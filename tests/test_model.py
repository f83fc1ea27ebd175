import pickle

import numpy as np
import pytest
from numpy.testing import assert_allclose, assert_equal

from erchmm import ErChmm, FitStatus
from erchmm.util import ConfigurationError


@pytest.mark.parametrize("kwargs", [
    dict(orders=[1, 2, 3]),
    dict(orders=[0, 1]),
    dict(orders=[1.5, 1.]),
    dict(orders=[]),
    dict(initial_probabilities=[.5, .25, .25]),
    dict(initial_probabilities=[-.5, 1.5]),
    dict(rates=[1., 0.]),
    dict(rates=[1., -2.]),
    dict(rates=[1., np.inf]),
    dict(transition_matrix=[[.5, .5]]),
    dict(transition_matrix=[[.5, .5, 0.], [.5, .5, 0.]]),
    dict(transition_matrix=[[1.5, -.5], [.5, .5]]),
    dict(transition_matrix=[[np.nan, 1.], [.5, .5]]),
], ids=lambda kw: str(kw))
def test_malformed_parameters(kwargs):
    params = dict(orders=[1, 2], initial_probabilities=[.5, .5], rates=[1., 2.],
                  transition_matrix=[[.5, .5], [.5, .5]])
    params.update(kwargs)
    with pytest.raises(ConfigurationError):
        ErChmm(**params)


def test_configuration_error_is_value_error():
    with pytest.raises(ValueError):
        ErChmm([1], [1.], [-1.], [[1.]])


def test_parameters_are_copied_and_read_only():
    rates = np.array([1., 2.])
    model = ErChmm([1, 2], [.5, .5], rates, [[.5, .5], [.5, .5]])
    rates[0] = 100.
    assert_equal(model.rates, [1., 2.])
    for arr in (model.orders, model.initial_probabilities, model.rates, model.transition_matrix):
        with pytest.raises(ValueError):
            arr[0] = 5


def test_properties(two_branch_model):
    assert_equal(two_branch_model.n_branches, 2)
    assert_equal(two_branch_model.orders, [2, 1])
    assert two_branch_model.log_likelihood is None
    assert two_branch_model.likelihoods is None
    assert_equal(two_branch_model.n_iterations, 0)
    assert two_branch_model.status is None
    assert not two_branch_model.converged


def test_stationary_distribution(two_branch_model):
    mu = two_branch_model.stationary_distribution
    assert_allclose(mu, [4. / 7., 3. / 7.])
    assert_allclose(mu @ two_branch_model.transition_matrix, mu)


def test_mean(two_branch_model):
    assert_allclose(two_branch_model.mean, 4. / 7. * 2. / 10. + 3. / 7. * 1. / .5)


def test_simulate(two_branch_model):
    times, branches = two_branch_model.simulate(20000, seed=11)
    assert_equal(times.shape, (20000,))
    assert_equal(branches.shape, (20000,))
    assert np.all(times >= 0)
    assert set(np.unique(branches)) <= {0, 1}
    assert_allclose(np.bincount(branches) / 20000., two_branch_model.stationary_distribution, atol=.03)
    assert_allclose(times.mean(), two_branch_model.mean, rtol=.05)
    assert_allclose(times[branches == 0].mean(), 2. / 10., rtol=.05)
    assert_allclose(times[branches == 1].mean(), 1. / .5, rtol=.05)


def test_simulate_reproducible(two_branch_model):
    times1, branches1 = two_branch_model.simulate(50, seed=3)
    times2, branches2 = two_branch_model.simulate(50, seed=3)
    assert_equal(times1, times2)
    assert_equal(branches1, branches2)


def test_observation_likelihood_single_branch():
    model = ErChmm([1], [1.], [2.], [[1.]])
    times = np.array([.1, .7, 1.3, .02])
    assert_allclose(model.compute_observation_likelihood(times), np.sum(np.log(2.) - 2. * times))


def test_observation_likelihood_short_sequence(two_branch_model):
    times = np.array([.3, 2.5, .1])
    f = two_branch_model.branch_densities(times)
    pi, P = two_branch_model.initial_probabilities, two_branch_model.transition_matrix
    likelihood = 0.
    for s0 in range(2):
        for s1 in range(2):
            for s2 in range(2):
                likelihood += pi[s0] * f[0, s0] * P[s0, s1] * f[1, s1] * P[s1, s2] * f[2, s2]
    assert_allclose(two_branch_model.compute_observation_likelihood(times), np.log(likelihood))


def test_params_and_repr(two_branch_model):
    params = two_branch_model.get_params()
    assert set(params.keys()) == {'orders', 'initial_probabilities', 'rates', 'transition_matrix',
                                  'log_likelihood', 'likelihoods', 'n_iterations', 'status'}
    assert 'ErChmm' in repr(two_branch_model)
    assert "'transition_matrix'" in repr(two_branch_model)


def test_copy_and_pickle(two_branch_model):
    fitted = ErChmm(two_branch_model.orders, two_branch_model.initial_probabilities, two_branch_model.rates,
                    two_branch_model.transition_matrix, log_likelihood=-3., likelihoods=np.array([-5., -3.]),
                    n_iterations=1, status=FitStatus.CONVERGED)
    for other in (fitted.copy(), pickle.loads(pickle.dumps(fitted))):
        assert other is not fitted
        assert_equal(other.rates, fitted.rates)
        assert_equal(other.transition_matrix, fitted.transition_matrix)
        assert_equal(other.likelihoods, fitted.likelihoods)
        assert other.converged
