import numpy as np


class CascadedSum:
    r""" Multi-level accumulator which keeps precision when summing values of widely varying magnitude.

    Every cell of the accumulated array owns `n_levels` slots. A new value enters at level 0: it is added to the
    slot if the slot's content is less than `max_phi` times the value. Otherwise the slot's content is carried one
    level up (where the same rule applies) and the slot restarts with the new value. The last level accepts
    everything. This keeps values of similar magnitude together until they are reduced, smallest level first,
    in :meth:`total`.

    Parameters
    ----------
    shape : tuple of int
        Shape of the accumulated array, e.g., :code:`(B,)` or :code:`(B, B)`.
    n_levels : int
        Number of slots per cell, at least one.
    max_phi : float
        Ratio between slot content and incoming value from which on the slot is carried upwards.
    dtype : numpy dtype, optional, default=np.float64
        Floating point type of the slots.

    Examples
    --------
    >>> acc = CascadedSum((2,), n_levels=3, max_phi=1e3)
    >>> acc.add(np.array([1e8, 1.]))
    >>> acc.add(np.array([1., 1.]))
    >>> print(acc.total()[1])
    2.0
    """

    def __init__(self, shape, n_levels: int, max_phi: float, dtype=np.float64):
        if n_levels < 1:
            raise ValueError(f"Number of levels must be positive but was {n_levels}.")
        self._n_levels = int(n_levels)
        self._max_phi = np.dtype(dtype).type(max_phi)
        self._slots = np.zeros((self._n_levels,) + tuple(shape), dtype=dtype)
        self._ratio = np.zeros(tuple(shape), dtype=dtype)

    @property
    def n_levels(self) -> int:
        r""" Number of slots per cell. """
        return self._n_levels

    @property
    def max_phi(self):
        r""" Carry threshold on the ratio of slot content to incoming value. """
        return self._max_phi

    @property
    def slots(self) -> np.ndarray:
        r""" The slots, shape :code:`(n_levels, *shape)`. Level 0 holds the total after :meth:`total`. """
        return self._slots

    def reset(self):
        r""" Zeroes all slots. """
        self._slots.fill(0)

    def add(self, values: np.ndarray):
        r""" Adds one value to each cell.

        Parameters
        ----------
        values : ndarray
            Values of the accumulator's shape. Zeros are skipped.
        """
        carry = np.array(values, dtype=self._slots.dtype, copy=True)
        active = carry != 0
        for level in range(self._n_levels - 1):
            if not active.any():
                return
            slot = self._slots[level]
            np.divide(slot, carry, out=self._ratio, where=active)
            direct = active & (self._ratio < self._max_phi)
            slot[direct] += carry[direct]
            active &= ~direct
            displaced = slot[active]
            slot[active] = carry[active]
            carry[active] = displaced
        self._slots[-1][active] += carry[active]

    def add_all(self, values: np.ndarray):
        r""" Adds a sequence of values, one after another along the first axis.

        Parameters
        ----------
        values : ndarray
            Array of shape :code:`(n, *shape)`.
        """
        for value in values:
            self.add(value)

    def total(self) -> np.ndarray:
        r""" Reduces all levels into level 0 and returns it.

        Returns
        -------
        total : ndarray
            View on level 0 holding the accumulated sums.
        """
        for level in range(1, self._n_levels):
            self._slots[0] += self._slots[level]
        self._slots[1:] = 0
        return self._slots[0]
