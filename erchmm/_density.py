import numpy as np


def erlang_density(x, rate, order):
    r""" Probability density of an Erlang distribution with `order` stages of rate `rate` at point `x`.

    The density :math:`\lambda^r x^{r-1} e^{-\lambda x} / (r-1)!` is evaluated incrementally as

    .. math::
        e^{-\lambda x} \lambda \prod_{n=1}^{r-1} \frac{\lambda x}{n},

    so that no factorial has to be evaluated separately.

    Parameters
    ----------
    x : float
        Non-negative evaluation point.
    rate : float
        Positive rate :math:`\lambda` of each stage.
    order : int
        Number of stages :math:`r \geq 1`.

    Returns
    -------
    density : float
        The density value.
    """
    factor = rate
    for n in range(1, order):
        factor *= rate * x / n
    return np.exp(-rate * x) * factor


def branch_densities(times, rates, orders, out=None):
    r""" Evaluates the Erlang density of every branch at every inter-arrival time.

    Parameters
    ----------
    times : (T,) ndarray
        Inter-arrival times.
    rates : (B,) ndarray
        Branch rates.
    orders : (B,) ndarray
        Branch Erlang orders.
    out : (T, B) ndarray, optional, default=None
        Output buffer. A new array of the dtype of `times` is allocated if None.

    Returns
    -------
    densities : (T, B) ndarray
        :code:`densities[k, m]` is the density of branch `m` at :code:`times[k]`.
    """
    if out is None:
        out = np.empty((times.shape[0], rates.shape[0]), dtype=times.dtype)
    scaled = np.multiply.outer(times, rates).astype(out.dtype, copy=False)
    out[:] = rates
    for n in range(1, int(np.max(orders))):
        out[:, orders > n] *= scaled[:, orders > n] / n
    out *= np.exp(-scaled)
    return out
