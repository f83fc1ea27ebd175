import enum
from typing import Optional, Tuple

import numpy as np
import scipy.linalg as la

from .base import Model
from ._density import branch_densities
from . import _forward_backward as fb
from .util.exceptions import ConfigurationError
from .util.types import ensure_integer_array, ensure_number_array, ensure_interarrival_times


class FitStatus(enum.Enum):
    r""" Termination state of an EM fit. """
    RUNNING = 'running'
    CONVERGED = 'converged'
    MAX_ITERATIONS_REACHED = 'max_iterations_reached'
    DEGENERATE = 'degenerate'


def _readonly_copy(arr, dtype=np.float64):
    arr = np.array(arr, dtype=dtype, copy=True)
    arr.setflags(write=False)
    return arr


class ErChmm(Model):
    r""" Erlang-branch Coxian hidden Markov model (ER-CHMM) of an inter-arrival time process.

    Consecutive inter-arrival times are generated by a Markov chain over `B` branches: the first branch is drawn
    from the initial probabilities, each inter-arrival time is Erlang distributed with the order and rate of the
    current branch, and the next branch is drawn from the row of the transition matrix belonging to the current
    branch.

    Parameters
    ----------
    orders : (B,) array_like of int
        Erlang order (number of stages) of each branch, all at least one.
    initial_probabilities : (B,) array_like
        Initial branch probabilities. These should sum to one, which is not enforced.
    rates : (B,) array_like
        Positive stage rate of each branch.
    transition_matrix : (B, B) array_like
        Row-stochastic transition matrix between branches. Row sums are not enforced.
    log_likelihood : float, optional, default=None
        Log-likelihood of the data this model was fit to.
    likelihoods : (k,) ndarray, optional, default=None
        Log-likelihood of each EM iteration, if the model was estimated.
    n_iterations : int, optional, default=0
        Number of performed maximization steps, if the model was estimated.
    status : FitStatus, optional, default=None
        How the fit terminated, None if the model was not estimated.

    See Also
    --------
    ErChmmEstimator : EM estimation of ER-CHMMs.
    """

    def __init__(self, orders, initial_probabilities, rates, transition_matrix,
                 log_likelihood: Optional[float] = None, likelihoods: Optional[np.ndarray] = None,
                 n_iterations: int = 0, status: Optional[FitStatus] = None):
        super().__init__()
        orders = ensure_integer_array(orders, ndim=1, name='orders')
        n_branches = orders.shape[0]
        if n_branches < 1:
            raise ConfigurationError("An ER-CHMM requires at least one branch.")
        if np.any(orders < 1):
            raise ConfigurationError(f"Erlang orders must be positive, but got {orders}.")
        initial_probabilities = ensure_number_array(initial_probabilities, shape=(n_branches,),
                                                    name='initial probabilities')
        rates = ensure_number_array(rates, shape=(n_branches,), name='rates')
        transition_matrix = ensure_number_array(transition_matrix, shape=(n_branches, n_branches),
                                                name='transition matrix')
        if not np.all(np.isfinite(rates)) or np.any(rates <= 0):
            raise ConfigurationError(f"Branch rates must be positive and finite, but got {rates}.")
        if not np.all(np.isfinite(initial_probabilities)) or np.any(initial_probabilities < 0):
            raise ConfigurationError("Initial probabilities must be non-negative and finite.")
        if not np.all(np.isfinite(transition_matrix)) or np.any(transition_matrix < 0):
            raise ConfigurationError("Transition matrix elements must be non-negative and finite.")

        self._orders = _readonly_copy(orders, dtype=np.int64)
        self._initial_probabilities = _readonly_copy(initial_probabilities)
        self._rates = _readonly_copy(rates)
        self._transition_matrix = _readonly_copy(transition_matrix)
        self._log_likelihood = log_likelihood
        self._likelihoods = likelihoods
        self._n_iterations = n_iterations
        self._status = status

    @property
    def n_branches(self) -> int:
        r""" Number of branches. """
        return self._orders.shape[0]

    @property
    def orders(self) -> np.ndarray:
        r""" Erlang order of each branch. """
        return self._orders

    @property
    def initial_probabilities(self) -> np.ndarray:
        r""" Initial branch probabilities. """
        return self._initial_probabilities

    @property
    def rates(self) -> np.ndarray:
        r""" Stage rate of each branch. """
        return self._rates

    @property
    def transition_matrix(self) -> np.ndarray:
        r""" Transition matrix between branches. """
        return self._transition_matrix

    @property
    def log_likelihood(self) -> Optional[float]:
        r""" Log-likelihood of the data the model was fit to, None for models which were not estimated. """
        return self._log_likelihood

    @property
    def likelihoods(self) -> Optional[np.ndarray]:
        r""" Log-likelihood progression over the EM iterations. """
        return self._likelihoods

    @property
    def n_iterations(self) -> int:
        r""" Number of EM maximization steps that lead to this model. """
        return self._n_iterations

    @property
    def status(self) -> Optional[FitStatus]:
        r""" Termination state of the fit. """
        return self._status

    @property
    def converged(self) -> bool:
        r""" Whether the fit terminated because the log-likelihood increment fell below the threshold. """
        return self._status == FitStatus.CONVERGED

    @property
    def stationary_distribution(self) -> np.ndarray:
        r""" Stationary distribution of the branch chain, i.e., the normalized left eigenvector of the
        transition matrix to the eigenvalue with the largest real part.
        """
        vals, vecs = la.eig(self.transition_matrix, left=True, right=False)
        nu = np.abs(vecs[:, np.argmax(vals.real)])
        return nu / np.sum(nu)

    @property
    def mean(self) -> float:
        r""" Mean inter-arrival time of the stationary process, :math:`\sum_i \mu_i r_i / \lambda_i`. """
        return float(np.dot(self.stationary_distribution, self.orders / self.rates))

    def branch_densities(self, times) -> np.ndarray:
        r""" Evaluates the Erlang density of each branch at the given inter-arrival times.

        Parameters
        ----------
        times : (T,) array_like
            Inter-arrival times.

        Returns
        -------
        densities : (T, B) ndarray
            Branch densities.
        """
        times = ensure_interarrival_times(times)
        return branch_densities(times, self.rates, self.orders)

    def compute_observation_likelihood(self, times) -> float:
        r""" Computes the log-likelihood of an inter-arrival time sequence under this model.

        Internally, the scaled backward pass is used.

        Parameters
        ----------
        times : (T,) array_like
            Inter-arrival times.

        Returns
        -------
        log_likelihood : float
            The log-likelihood, -inf if the sequence has zero likelihood.
        """
        densities = self.branch_densities(times)
        beta = np.zeros_like(densities)
        beta_scale = np.zeros(densities.shape[0], dtype=np.int64)
        fb.backward(self.transition_matrix, densities, beta, beta_scale)
        return fb.log_likelihood(self.initial_probabilities, beta, beta_scale)[0]

    def simulate(self, n_samples: int, seed: Optional[int] = None) -> Tuple[np.ndarray, np.ndarray]:
        r""" Generates a realization of inter-arrival times.

        Parameters
        ----------
        n_samples : int
            Number of inter-arrival times.
        seed : int, optional, default=None
            Seed of the random generator, fixes the realization if given.

        Returns
        -------
        times : (n_samples,) ndarray
            The inter-arrival times.
        branches : (n_samples,) ndarray
            The branch that generated each inter-arrival time.

        Examples
        --------
        >>> model = ErChmm([2, 1], [.5, .5], [10., .5], [[.7, .3], [.4, .6]])
        >>> times, branches = model.simulate(100, seed=13)
        >>> times.shape
        (100,)
        """
        rng = np.random.default_rng(seed)
        branches = np.empty(n_samples, dtype=np.int64)
        if n_samples == 0:
            return np.empty(0), branches
        initial = self.initial_probabilities / self.initial_probabilities.sum()
        transitions = self.transition_matrix / self.transition_matrix.sum(axis=1, keepdims=True)
        branches[0] = rng.choice(self.n_branches, p=initial)
        for k in range(1, n_samples):
            branches[k] = rng.choice(self.n_branches, p=transitions[branches[k - 1]])
        times = rng.gamma(shape=self.orders[branches], scale=1. / self.rates[branches])
        return times, branches
