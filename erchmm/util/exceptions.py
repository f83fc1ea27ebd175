import warnings


class ConfigurationError(ValueError):
    r""" Raised when model parameters, estimator settings or input data are malformed. """


class NotConvergedWarning(RuntimeWarning):
    r"""
    This warning indicates that the EM iteration reached the maximum number of
    iterations before the log-likelihood increment fell below the requested threshold.
    """


class DegenerateFitWarning(RuntimeWarning):
    r"""
    This warning indicates a numerical degeneracy during fitting, e.g., forward or backward
    vectors which vanish entirely, or a branch which does not receive any posterior mass.
    """


class DegenerateFitError(RuntimeError):
    r""" Raised instead of :class:`DegenerateFitWarning` if the estimator is configured to fail on degeneracies. """


def raise_or_warn(msg, on_error, warning=DegenerateFitWarning, exception=DegenerateFitError):
    if on_error == 'raise':
        raise exception(msg)
    elif on_error == 'warn':
        warnings.warn(msg, warning, stacklevel=3)
    else:
        raise ValueError(f'Unsupported value of on_error ({on_error}). Should be "raise" or "warn".')
