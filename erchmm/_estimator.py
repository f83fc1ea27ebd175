import logging
import warnings
from typing import Optional

import numpy as np

from .base import Estimator
from ._cascaded_sum import CascadedSum
from ._density import branch_densities
from ._model import ErChmm, FitStatus
from . import _forward_backward as fb
from .util import callbacks
from .util.exceptions import ConfigurationError, DegenerateFitWarning, NotConvergedWarning, raise_or_warn
from .util.types import ensure_interarrival_times

log = logging.getLogger(__name__)


class _FitSession:
    r""" Owns the parameters and all working buffers of one EM fit. Buffers are allocated once and reused
    in every iteration.
    """

    def __init__(self, model: ErChmm, times: np.ndarray, n_sum_levels: int, max_phi: float, dtype):
        n_obs, n_branches = times.shape[0], model.n_branches
        self.times = times
        self.orders = model.orders.copy()
        self.initial_probabilities = np.array(model.initial_probabilities, dtype=dtype)
        self.rates = np.array(model.rates, dtype=dtype)
        self.transition_matrix = np.array(model.transition_matrix, dtype=dtype)

        self.densities = np.zeros((n_obs, n_branches), dtype=dtype)
        self.alpha = np.zeros((n_obs, n_branches), dtype=dtype)
        self.beta = np.zeros((n_obs, n_branches), dtype=dtype)
        self.alpha_scale = np.zeros(n_obs, dtype=np.int64)
        self.beta_scale = np.zeros(n_obs, dtype=np.int64)
        self.gamma = np.zeros((n_obs, n_branches), dtype=dtype)
        self.xi = np.zeros((max(n_obs - 1, 0), n_branches, n_branches), dtype=dtype)
        self.raw_likelihood = dtype(0)

        self.occupancy = CascadedSum((n_branches,), n_sum_levels, max_phi, dtype=dtype)
        self.time_weighted_occupancy = CascadedSum((n_branches,), n_sum_levels, max_phi, dtype=dtype)
        self.transitions = CascadedSum((n_branches, n_branches), n_sum_levels, max_phi, dtype=dtype)

    @property
    def n_obs(self) -> int:
        return self.times.shape[0]

    def evaluate(self):
        r""" Runs densities and the scaled forward-backward passes for the current parameters.

        Returns
        -------
        log_likelihood : float
            Log-likelihood of the current parameters.
        degeneracy : str or None
            Description of a numerical degeneracy, None if there was none.
        """
        branch_densities(self.times, self.rates, self.orders, out=self.densities)
        fwd = fb.forward(self.initial_probabilities, self.transition_matrix, self.densities,
                         self.alpha, self.alpha_scale)
        bwd = fb.backward(self.transition_matrix, self.densities, self.beta, self.beta_scale)
        log_likelihood, self.raw_likelihood = fb.log_likelihood(self.initial_probabilities, self.beta,
                                                                self.beta_scale)
        if fwd is not None:
            return log_likelihood, f"Forward vector vanished at observation {fwd}."
        if bwd is not None:
            return log_likelihood, f"Backward vector vanished at observation {bwd}."
        if not (self.raw_likelihood > 0 and np.isfinite(self.raw_likelihood)):
            return log_likelihood, f"Likelihood is not representable ({self.raw_likelihood})."
        return log_likelihood, None

    def accumulate(self):
        r""" Expectation step: accumulates posterior occupancy, time-weighted occupancy and transitions
        of the last :meth:`evaluate` into the cascaded sums. """
        self.occupancy.reset()
        self.time_weighted_occupancy.reset()
        self.transitions.reset()

        fb.state_probabilities(self.initial_probabilities, self.alpha, self.beta, out=self.gamma)
        fb.transition_weights(self.initial_probabilities, self.transition_matrix, self.densities,
                              self.alpha, self.alpha_scale, self.beta, self.beta_scale, self.raw_likelihood,
                              out=self.xi)
        self.transitions.add_all(self.xi)
        self.occupancy.add_all(self.gamma)
        self.time_weighted_occupancy.add_all(self.times[:, None] * self.gamma)

    def maximize(self):
        r""" Maximization step: re-estimates parameters in place from the accumulated statistics. Rates and
        transition rows without posterior mass are left unchanged. """
        occupancy = self.occupancy.total()
        time_weighted = self.time_weighted_occupancy.total()
        transitions = self.transitions.total()

        valid_rates = (occupancy > 0) & (time_weighted > 0)
        with np.errstate(over='ignore'):
            rates = self.orders[valid_rates] * occupancy[valid_rates] / time_weighted[valid_rates]
        valid_rates[valid_rates] = np.isfinite(rates)
        self.rates[valid_rates] = rates[np.isfinite(rates)]
        if not np.all(valid_rates):
            warnings.warn(f"Branches {np.flatnonzero(~valid_rates)} received no time-weighted posterior mass, "
                          f"their rates are left unchanged.", DegenerateFitWarning, stacklevel=4)

        self.initial_probabilities[:] = occupancy / self.n_obs

        row_sums = transitions.sum(axis=1)
        valid_rows = np.isfinite(row_sums) & (row_sums > 0)
        self.transition_matrix[valid_rows] = transitions[valid_rows] / row_sums[valid_rows, None]
        if not np.all(valid_rows):
            warnings.warn(f"Branches {np.flatnonzero(~valid_rows)} received no (finite) posterior transition mass, "
                          f"their transition rows are left unchanged.", DegenerateFitWarning, stacklevel=4)


class ErChmmEstimator(Estimator):
    r""" Maximum likelihood estimator of :class:`ER-CHMMs <ErChmm>` for inter-arrival time sequences.

    Starting from an initial model, the parameters are improved with expectation-maximization derived from the
    Baum-Welch algorithm. Forward and backward vectors are rescaled by powers of two in each step so that
    long sequences do not under- or overflow, and the posterior statistics are accumulated with a
    cascaded summation (see :class:`CascadedSum`) to preserve precision.

    The number of branches and the Erlang orders are taken from the initial model and stay fixed.

    Parameters
    ----------
    initial_model : ErChmm
        Initial guess. EM is prone to local optima, so several initial models should be tried and compared.
    min_iterations : int, optional, default=0
        Convergence is not tested before iteration `min_iterations + 2`.
    max_iterations : int, optional, default=1000
        Maximum number of iterations. The log-likelihood of the last parameters is evaluated but no further
        maximization step is performed once this number is reached. Zero yields the log-likelihood of the
        initial model.
    epsilon : float, optional, default=1e-6
        The iteration stops once the log-likelihood increases by less than :math:`\ln(1 + \epsilon)`.
    n_sum_levels : int, optional, default=4
        Number of levels of the cascaded summation.
    max_phi : float, optional, default=1e4
        Carry threshold of the cascaded summation.
    on_degenerate : str, optional, default='raise'
        What happens if forward or backward vectors vanish: :code:`'raise'` raises a :class:`DegenerateFitError`,
        :code:`'warn'` emits a :class:`DegenerateFitWarning` and stops the iteration.
    dtype : numpy floating type, optional, default=np.float64
        Floating point precision of the fit.
    progress : object, optional, default=None
        Progress bar type, tested for tqdm. None disables progress reporting.
    """

    def __init__(self, initial_model: ErChmm, min_iterations: int = 0, max_iterations: int = 1000,
                 epsilon: float = 1e-6, n_sum_levels: int = 4, max_phi: float = 1e4,
                 on_degenerate: str = 'raise', dtype=np.float64, progress=None):
        super().__init__()
        self.initial_model = initial_model
        self.min_iterations = min_iterations
        self.max_iterations = max_iterations
        self.epsilon = epsilon
        self.n_sum_levels = n_sum_levels
        self.max_phi = max_phi
        self.on_degenerate = on_degenerate
        self.dtype = dtype
        self.progress = progress

    def fetch_model(self) -> Optional[ErChmm]:
        r""" Yields the estimated model or None if :meth:`fit` was not called yet.

        Returns
        -------
        model : ErChmm or None
            The model.
        """
        return self._model

    @property
    def initial_model(self) -> ErChmm:
        r""" The initial guess. """
        return self._initial_model

    @initial_model.setter
    def initial_model(self, value: ErChmm):
        if value is not None and not isinstance(value, ErChmm):
            raise ConfigurationError(f"Initial model must be an ErChmm, but was {type(value)}.")
        self._initial_model = value

    @property
    def n_branches(self) -> int:
        r""" Number of branches, coincides with the number of branches of the initial model. """
        return self.initial_model.n_branches

    @property
    def min_iterations(self) -> int:
        r""" Number of iterations before convergence is tested. """
        return self._min_iterations

    @min_iterations.setter
    def min_iterations(self, value: int):
        value = int(value)
        if value < 0:
            raise ConfigurationError(f"Minimum number of iterations must be non-negative but was {value}.")
        self._min_iterations = value

    @property
    def max_iterations(self) -> int:
        r""" Maximum number of iterations. """
        return self._max_iterations

    @max_iterations.setter
    def max_iterations(self, value: int):
        value = int(value)
        if value < 0:
            raise ConfigurationError(f"Maximum number of iterations must be non-negative but was {value}.")
        self._max_iterations = value

    @property
    def epsilon(self) -> float:
        r""" Relative likelihood threshold of the convergence test. """
        return self._epsilon

    @epsilon.setter
    def epsilon(self, value: float):
        value = float(value)
        if not np.isfinite(value) or value < 0:
            raise ConfigurationError(f"Epsilon must be non-negative and finite but was {value}.")
        self._epsilon = value

    @property
    def n_sum_levels(self) -> int:
        r""" Number of levels of the cascaded summation. """
        return self._n_sum_levels

    @n_sum_levels.setter
    def n_sum_levels(self, value: int):
        value = int(value)
        if value < 1:
            raise ConfigurationError(f"Number of summation levels must be positive but was {value}.")
        self._n_sum_levels = value

    @property
    def max_phi(self) -> float:
        r""" Carry threshold of the cascaded summation. """
        return self._max_phi

    @max_phi.setter
    def max_phi(self, value: float):
        value = float(value)
        if not value > 0:
            raise ConfigurationError(f"max_phi must be positive but was {value}.")
        self._max_phi = value

    @property
    def on_degenerate(self) -> str:
        r""" Either :code:`'raise'` or :code:`'warn'`. """
        return self._on_degenerate

    @on_degenerate.setter
    def on_degenerate(self, value: str):
        if value not in ('raise', 'warn'):
            raise ConfigurationError(f"on_degenerate must be 'raise' or 'warn' but was {value}.")
        self._on_degenerate = value

    @property
    def dtype(self):
        r""" Floating point type used during the fit. """
        return self._dtype

    @dtype.setter
    def dtype(self, value):
        if not np.issubdtype(value, np.floating):
            raise ConfigurationError(f"dtype must be a floating point type but was {value}.")
        self._dtype = np.dtype(value).type

    def fit(self, data, initial_model: Optional[ErChmm] = None, **kwargs):
        r""" Fits an ER-CHMM to a sequence of inter-arrival times.

        Parameters
        ----------
        data : (T,) array_like
            Non-negative inter-arrival times.
        initial_model : ErChmm, optional, default=None
            Override for :attr:`initial_model`.
        **kwargs
            Ignored kwargs for scikit-learn compatibility.

        Returns
        -------
        self : ErChmmEstimator
            Reference to self.
        """
        if initial_model is None:
            initial_model = self.initial_model
        if initial_model is None or not isinstance(initial_model, ErChmm):
            raise ConfigurationError("For estimation, an initial model of type `erchmm.ErChmm` is required.")
        times = ensure_interarrival_times(data, dtype=self.dtype)
        session = _FitSession(initial_model, times, self.n_sum_levels, self.max_phi, self.dtype)

        stop_criterion = np.log1p(self.epsilon)
        likelihoods = []
        log_likelihood = -np.inf
        n_iterations = 0
        status = FitStatus.RUNNING

        with _EMCallback(self.progress, self.max_iterations + 1, likelihoods) as callback:
            for iteration in range(self.max_iterations + 1):
                previous_log_likelihood = log_likelihood
                log_likelihood, degeneracy = session.evaluate()
                increment = log_likelihood - previous_log_likelihood
                callback(1, increment, log_likelihood)
                log.debug(f"Iteration {iteration}: log-likelihood {log_likelihood}, increment {increment}.")

                if degeneracy is not None:
                    raise_or_warn(f"Degenerate fit in iteration {iteration}: {degeneracy}", self.on_degenerate)
                    status = FitStatus.DEGENERATE
                    break
                if iteration > self.min_iterations + 1 and increment < stop_criterion:
                    status = FitStatus.CONVERGED
                    log.info(f"Converged after {iteration} iterations with log-likelihood {log_likelihood}.")
                    break
                if iteration == self.max_iterations:
                    status = FitStatus.MAX_ITERATIONS_REACHED
                    break

                session.accumulate()
                session.maximize()
                n_iterations += 1

        if status == FitStatus.MAX_ITERATIONS_REACHED and self.max_iterations > 0:
            warnings.warn(f"EM did not converge after {self.max_iterations} iteration(s). "
                          f"Last increment: {likelihoods[-1] - likelihoods[-2] if len(likelihoods) > 1 else np.nan}",
                          NotConvergedWarning)

        self._model = ErChmm(orders=session.orders, initial_probabilities=session.initial_probabilities,
                             rates=session.rates, transition_matrix=session.transition_matrix,
                             log_likelihood=log_likelihood, likelihoods=np.array(likelihoods),
                             n_iterations=n_iterations, status=status)
        return self


class _EMCallback(callbacks.ProgressCallback):
    r""" Increments a progress bar once per EM iteration and records the log-likelihoods.

    Parameters
    ----------
    progress : object
        Progress bar type, may be None.
    total : int
        Maximum number of callbacks.
    log_likelihoods_list : list, optional
        A list to append the log-likelihoods to.
    """

    def __init__(self, progress, total, log_likelihoods_list=None):
        super().__init__(progress, total=total, description="Fitting ER-CHMM")
        self.log_likelihoods = log_likelihoods_list

    def __call__(self, inc, error, log_likelihood=0.):
        super().__call__(inc, error=error)
        if self.log_likelihoods is not None:
            self.log_likelihoods.append(log_likelihood)
