r""" Forward-backward recursion of the ER-CHMM with base-2 exponent rescaling.

All rows are stored scaled: the true value of :code:`alpha[k]` is :code:`alpha[k] * 2**alpha_scale[k]`,
likewise for :code:`beta`. After each step the row is divided by the power of two closest above its sum,
which keeps the stored magnitudes around one irrespective of the sequence length.
"""
from typing import Optional

import numpy as np


def _rescale(row: np.ndarray, row_sum) -> int:
    scale_diff = int(np.ceil(np.log2(row_sum)))
    row[:] = np.ldexp(row, -scale_diff)
    return scale_diff


def _is_degenerate(row_sum) -> bool:
    return not (row_sum > 0 and np.isfinite(row_sum))


def forward(initial_probabilities, transition_matrix, densities, alpha_out, scale_out) -> Optional[int]:
    r""" Scaled forward pass.

    :code:`alpha[k, i]` is the joint density of the first k+1 observations and the branch at step k+1 being i.

    Parameters
    ----------
    initial_probabilities : (B,) ndarray
        Initial branch probabilities.
    transition_matrix : (B, B) ndarray
        Branch transition matrix.
    densities : (T, B) ndarray
        Branch densities at the observations.
    alpha_out : (T, B) ndarray
        Output buffer for the scaled forward rows.
    scale_out : (T,) ndarray of int
        Output buffer for the base-2 scale exponents.

    Returns
    -------
    degenerate_index : int or None
        Index of the first row whose sum vanished (or was not finite), None if the pass was regular. Rows from that
        index on are zero and carry the last valid scale.
    """
    n_obs = densities.shape[0]
    scale_out[:] = 0
    np.dot(initial_probabilities * densities[0], transition_matrix, out=alpha_out[0])
    if _is_degenerate(alpha_out[0].sum()):
        alpha_out[1:] = 0
        return 0
    for k in range(1, n_obs):
        np.dot(alpha_out[k - 1] * densities[k], transition_matrix, out=alpha_out[k])
        asum = alpha_out[k].sum()
        if _is_degenerate(asum):
            alpha_out[k:] = 0
            scale_out[k:] = scale_out[k - 1]
            return k
        scale_out[k] = scale_out[k - 1] + _rescale(alpha_out[k], asum)
    return None


def backward(transition_matrix, densities, beta_out, scale_out) -> Optional[int]:
    r""" Scaled backward pass.

    :code:`beta[k, j]` is the density of the observations k, ..., T-1 given that the branch at step k is j.

    Parameters
    ----------
    transition_matrix : (B, B) ndarray
        Branch transition matrix.
    densities : (T, B) ndarray
        Branch densities at the observations.
    beta_out : (T, B) ndarray
        Output buffer for the scaled backward rows.
    scale_out : (T,) ndarray of int
        Output buffer for the base-2 scale exponents.

    Returns
    -------
    degenerate_index : int or None
        Index of the first row (counting down from T-1) whose sum vanished, None if the pass was regular.
    """
    last = densities.shape[0] - 1
    scale_out[:] = 0
    np.multiply(densities[last], transition_matrix.sum(axis=1), out=beta_out[last])
    if _is_degenerate(beta_out[last].sum()):
        beta_out[:last] = 0
        return last
    for k in range(last - 1, -1, -1):
        np.multiply(densities[k], np.dot(transition_matrix, beta_out[k + 1]), out=beta_out[k])
        bsum = beta_out[k].sum()
        if _is_degenerate(bsum):
            beta_out[:k + 1] = 0
            scale_out[:k + 1] = scale_out[k + 1]
            return k
        scale_out[k] = scale_out[k + 1] + _rescale(beta_out[k], bsum)
    return None


def log_likelihood(initial_probabilities, beta, beta_scale):
    r""" Reconstructs the log-likelihood from the scaled first backward row.

    Parameters
    ----------
    initial_probabilities : (B,) ndarray
        Initial branch probabilities.
    beta : (T, B) ndarray
        Scaled backward rows.
    beta_scale : (T,) ndarray of int
        Backward scale exponents.

    Returns
    -------
    log_likelihood : float
        :math:`\ln(\sum_i \pi_i \beta_{0i}) + s_0 \ln 2`, -inf if the raw likelihood vanishes.
    raw_likelihood : float
        The scaled likelihood :math:`\sum_i \pi_i \beta_{0i}`.
    """
    raw = np.dot(initial_probabilities, beta[0])
    with np.errstate(divide='ignore'):
        value = np.log(raw) + beta_scale[0] * np.log(2.)
    return float(value), raw


def state_probabilities(initial_probabilities, alpha, beta, out=None):
    r""" Posterior branch occupancy for every observation, normalized per observation.

    The unnormalized occupancy of observation k is :code:`alpha[k-1] * beta[k]` (with the initial probabilities
    in place of the non-existing row :code:`alpha[-1]`); scales cancel in the normalization.

    Parameters
    ----------
    initial_probabilities : (B,) ndarray
        Initial branch probabilities.
    alpha : (T, B) ndarray
        Scaled forward rows.
    beta : (T, B) ndarray
        Scaled backward rows.
    out : (T, B) ndarray, optional, default=None
        Output buffer.

    Returns
    -------
    gamma : (T, B) ndarray
        Posterior occupancy, rows sum to one (or are zero where nothing could be assigned).
    """
    if out is None:
        out = np.empty_like(beta)
    out[0] = initial_probabilities * beta[0]
    np.multiply(alpha[:-1], beta[1:], out=out[1:])
    norm = out.sum(axis=1, keepdims=True)
    np.divide(out, norm, out=out, where=norm > 0)
    return out


def transition_weights(initial_probabilities, transition_matrix, densities, alpha, alpha_scale, beta, beta_scale,
                       raw_likelihood, out=None):
    r""" Posterior probability of each branch transition between consecutive observations.

    For :math:`0 \leq k < T-1` the weight of the transition from branch m to branch j is

    .. math::
        \tilde\alpha_{k-1,m} f_{km} P_{mj} \tilde\beta_{k+1,j} \cdot 2^{s^\alpha_{k-1} + s^\beta_{k+1} - s^\beta_0}
        / \tilde L,

    where tildes denote scaled quantities, :math:`\tilde\alpha_{-1} = \pi` and :math:`s^\alpha_{-1} = 0`.

    Parameters
    ----------
    initial_probabilities : (B,) ndarray
        Initial branch probabilities.
    transition_matrix : (B, B) ndarray
        Branch transition matrix.
    densities : (T, B) ndarray
        Branch densities.
    alpha, beta : (T, B) ndarray
        Scaled forward and backward rows.
    alpha_scale, beta_scale : (T,) ndarray of int
        Scale exponents of forward and backward rows.
    raw_likelihood : float
        Scaled likelihood as returned by :meth:`log_likelihood`.
    out : (T-1, B, B) ndarray, optional, default=None
        Output buffer.

    Returns
    -------
    weights : (T-1, B, B) ndarray
        Transition weights per observation pair.
    """
    n_obs, n_branches = densities.shape
    if out is None:
        out = np.empty((max(n_obs - 1, 0), n_branches, n_branches), dtype=densities.dtype)
    if n_obs < 2:
        return out
    exponents = beta_scale[1:] - beta_scale[0]
    exponents[1:] += alpha_scale[:-2]

    # scale after multiplying the densities, 2**exponent alone overflows for subnormal densities
    predecessor = np.empty((n_obs - 1, n_branches), dtype=densities.dtype)
    predecessor[0] = initial_probabilities
    predecessor[1:] = alpha[:-2]
    predecessor *= densities[:-1]
    predecessor[:] = np.ldexp(predecessor, exponents[:, None])
    predecessor /= raw_likelihood

    np.multiply(predecessor[:, :, None], transition_matrix[None, :, :], out=out)
    out *= beta[1:, None, :]
    return out
