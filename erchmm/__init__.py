r"""
.. currentmodule: erchmm

Fitting of Erlang-branch Coxian hidden Markov models (ER-CHMMs) to inter-arrival time sequences.

.. autosummary::
    :toctree: generated/
    :template: class_nomodule.rst

    ErChmm
    ErChmmEstimator
    FitStatus
    CascadedSum
    erlang_density
    branch_densities
"""
import logging

__version__ = '0.1.0'

from . import util
from ._density import erlang_density, branch_densities
from ._cascaded_sum import CascadedSum
from ._model import ErChmm, FitStatus
from ._estimator import ErChmmEstimator

# set up null handler
logging.getLogger(__name__).addHandler(logging.NullHandler())
