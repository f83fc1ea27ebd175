import numpy as np


class ProgressMock:
    def __init__(self):
        self.total = 1
        self.n = 0
        self.n_close_calls = 0
        self.n_update_calls = 0

    def set_description(self, *_): ...

    def update(self, n=1):
        self.n += n
        self.n_update_calls += 1

    def close(self): self.n_close_calls += 1


def unscaled_forward_backward(initial_probabilities, transition_matrix, densities):
    r""" Plain forward-backward recursion without any rescaling, only usable for short sequences. """
    n_obs, n_branches = densities.shape
    alpha = np.zeros((n_obs, n_branches))
    beta = np.zeros((n_obs, n_branches))
    alpha[0] = (initial_probabilities * densities[0]) @ transition_matrix
    for k in range(1, n_obs):
        alpha[k] = (alpha[k - 1] * densities[k]) @ transition_matrix
    beta[-1] = densities[-1] * transition_matrix.sum(axis=1)
    for k in range(n_obs - 2, -1, -1):
        beta[k] = densities[k] * (transition_matrix @ beta[k + 1])
    return alpha, beta
