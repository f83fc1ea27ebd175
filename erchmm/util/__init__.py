r"""
.. currentmodule: erchmm.util

===============================================================================
Errors and warnings
===============================================================================

.. autosummary::
    :toctree: generated/
    :template: class_nomodule.rst

    exceptions.ConfigurationError
    exceptions.DegenerateFitError
    exceptions.DegenerateFitWarning
    exceptions.NotConvergedWarning

===============================================================================
Other utilities
===============================================================================
.. autosummary::
    :toctree: generated/
    :template: class_nomodule.rst

    types.ensure_array
    types.ensure_interarrival_times

    callbacks.ProgressCallback
    callbacks.handle_progress_bar
"""

from . import types
from . import callbacks
from .exceptions import ConfigurationError, DegenerateFitError, DegenerateFitWarning, NotConvergedWarning
