from typing import Optional, Tuple

import numpy as np

from .exceptions import ConfigurationError


def ensure_array(arr, shape: Optional[Tuple] = None, ndim: Optional[int] = None, dtype=None,
                 size=None, name: str = 'array') -> np.ndarray:
    r""" Converts input to an ndarray and checks its shape, dimension, size and dtype kind.

    Parameters
    ----------
    arr : array_like
        The input.
    shape : tuple, optional, default=None
        Required shape.
    ndim : int, optional, default=None
        Required number of dimensions.
    dtype : numpy dtype, optional, default=None
        Required abstract dtype, e.g., :code:`np.integer` or :code:`np.floating`.
    size : int, optional, default=None
        Required number of elements.
    name : str, optional, default='array'
        Name used in error messages.

    Returns
    -------
    arr : ndarray
        The input as array.

    Raises
    ------
    ConfigurationError
        If any of the requirements is violated.
    """
    arr = np.asanyarray(arr)
    if shape is not None and arr.shape != shape:
        raise ConfigurationError(f"Shape of {name} was {arr.shape} != {shape}")
    if ndim is not None and arr.ndim != ndim:
        raise ConfigurationError(f"ndim of {name} was {arr.ndim} != {ndim}")
    if size is not None and np.size(arr) != size:
        raise ConfigurationError(f"size of {name} was {np.size(arr)} != {size}")
    if dtype is not None and not np.issubdtype(arr.dtype, dtype):
        raise ConfigurationError(f"{name} got incompatible dtype: {arr.dtype} is not a subtype of {dtype}.")
    return arr


def ensure_integer_array(arr, shape: Tuple = None, ndim: int = None, size=None, name='array') -> np.ndarray:
    return ensure_array(arr, shape=shape, ndim=ndim, size=size, dtype=np.integer, name=name)


def ensure_number_array(arr, shape: Tuple = None, ndim: int = None, size=None, name='array') -> np.ndarray:
    return ensure_array(arr, shape=shape, ndim=ndim, size=size, dtype=np.number, name=name)


def ensure_interarrival_times(times, dtype=np.float64) -> np.ndarray:
    r""" Validates a sequence of inter-arrival times and returns a contiguous copy in the requested dtype.

    Parameters
    ----------
    times : array_like
        One-dimensional sequence of non-negative, finite inter-arrival times.
    dtype : numpy dtype, optional, default=np.float64
        Floating point type of the copy.

    Returns
    -------
    times : (T,) ndarray
        Validated copy of the input.

    Raises
    ------
    ConfigurationError
        If the sequence is empty, not one-dimensional, or contains negative or non-finite values.
    """
    times = ensure_number_array(times, ndim=1, name='inter-arrival times')
    if times.shape[0] == 0:
        raise ConfigurationError("The inter-arrival time sequence must not be empty.")
    if not np.all(np.isfinite(times)):
        raise ConfigurationError("Inter-arrival times must be finite.")
    if np.any(times < 0):
        raise ConfigurationError("Inter-arrival times must be non-negative.")
    return np.array(times, dtype=dtype, order='C', copy=True)
