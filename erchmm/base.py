import abc
from collections import defaultdict
from inspect import signature
from typing import Optional

from sklearn.utils._pprint import _EstimatorPrettyPrinter


class _BaseMethodsMixin(abc.ABC):
    """ Common methods of estimators and models: parameter introspection, pretty printing and pickling. """

    def __repr__(self):
        name = f'{self.__class__.__name__}-{id(self)}:'
        printer = _EstimatorPrettyPrinter(compact=True, indent=1, indent_at_name=True)
        return f'{name}{printer.pformat(self.get_params())}'

    def get_params(self, deep=False):
        r"""Get the parameters, i.e., the arguments of the constructor.

        Returns
        -------
        params : mapping of string to any
            Parameter names mapped to their values.
        """
        cls = self.__class__
        init_sign = signature(cls.__init__)
        args = []
        for parameter in init_sign.parameters.values():
            if parameter.kind == parameter.VAR_POSITIONAL:
                raise RuntimeError(f"{cls} must specify its parameters in the signature of its __init__ "
                                   f"(no varargs).")
            if parameter.kind != parameter.VAR_KEYWORD and parameter.name != 'self':
                args.append(parameter.name)
        return {arg: getattr(self, arg, None) for arg in args}

    def set_params(self, **params):
        r""" Set the parameters of this object. Nested objects can be addressed via ``<component>__<parameter>``.

        Parameters
        ----------
        **params : dict
            Parameter values.

        Returns
        -------
        self : object
            Reference to self.
        """
        if not params:
            return self
        valid_params = self.get_params(deep=True)

        nested_params = defaultdict(dict)
        for key, value in params.items():
            key, delim, sub_key = key.partition('__')
            if key not in valid_params:
                raise ValueError(f'Invalid parameter {key} for {self.__class__.__name__}. Check the list of '
                                 f'available parameters with `get_params().keys()`.')
            if delim:
                nested_params[key][sub_key] = value
            else:
                setattr(self, key, value)
                valid_params[key] = value

        for key, sub_params in nested_params.items():
            valid_params[key].set_params(**sub_params)

        return self

    def __getstate__(self):
        state = self.__dict__
        if type(self).__module__.startswith('erchmm.'):
            from erchmm import __version__
            return dict(state.items(), _erchmm_version=__version__)
        return state

    def __setstate__(self, state):
        from erchmm import __version__
        if type(self).__module__.startswith('erchmm.'):
            pickle_version = state.pop("_erchmm_version", None)
            if pickle_version != __version__:
                import warnings
                warnings.warn(f"Trying to unpickle {self.__class__.__name__} from version {pickle_version} when "
                              f"using version {__version__}. This might lead to breaking code or invalid results.",
                              UserWarning)
        self.__dict__.update(state)


class Model(_BaseMethodsMixin):
    r""" The model superclass. """

    def copy(self) -> "Model":
        r""" Makes a deep copy of this model.

        Returns
        -------
        copy
            A new copy of this model.
        """
        import copy
        return copy.deepcopy(self)


class Estimator(_BaseMethodsMixin):
    r""" Base class of all estimators.

    Parameters
    ----------
    model : Model, optional, default=None
        A model which can be used for initialization.
    """

    # whether input arrays of fit may be written to during the call
    _MUTABLE_INPUT_DATA = False

    def __init__(self, model=None):
        self._model = model

    @abc.abstractmethod
    def fit(self, data, **kwargs):
        r""" Fits data to the estimator's internal :class:`Model` and overwrites it, so that every call to
        :meth:`fetch_model` yields an autonomous model instance.

        Parameters
        ----------
        data : array_like
            Data that is used to fit a model.
        **kwargs
            Additional kwargs.

        Returns
        -------
        self : Estimator
            Reference to self.
        """

    def fetch_model(self) -> Optional[Model]:
        r""" Yields the estimated model. Can be None if :meth:`fit` was not called.

        Returns
        -------
        model : Model or None
            The estimated model or None.
        """
        return self._model

    def fit_fetch(self, data, **kwargs):
        r""" Fits the internal model on data and subsequently fetches it in one call.

        Parameters
        ----------
        data : array_like
            Data that is used to fit the model.
        **kwargs
            Additional arguments to :meth:`fit`.

        Returns
        -------
        model
            The estimated model.
        """
        self.fit(data, **kwargs)
        return self.fetch_model()

    @property
    def model(self):
        """ Shortcut to :meth:`fetch_model`. """
        return self.fetch_model()

    @property
    def has_model(self) -> bool:
        r""" Whether this estimator contains an estimated model.

        :type: bool
        """
        return self._model is not None

    def __getattribute__(self, item):
        if item == 'fit' and not self._MUTABLE_INPUT_DATA:
            fit = super(Estimator, self).__getattribute__(item)
            return _ImmutableInputData(fit)

        return super(_BaseMethodsMixin, self).__getattribute__(item)


class _ImmutableInputData:
    """ Wraps Estimator.fit() so that ndarray input is flagged read-only for the duration of the call. """

    def __init__(self, fit_method):
        self.fit_method = fit_method
        self._data = []
        self._old_writable_flags = []

    def _collect(self, args, kwargs):
        import numpy as np
        if len(args) == 0:
            if 'data' in kwargs:
                args = [kwargs['data']]
            elif len(kwargs) == 1:
                args = list(kwargs.values())
            else:
                raise InputFormatError(f'No input at all for fit(). Input was {args}, kw={kwargs}')
        value = args[0]
        if isinstance(value, np.ndarray):
            self._data = [value]
        elif isinstance(value, (list, tuple)):
            self._data = [x for x in value if isinstance(x, np.ndarray)]
        else:
            raise InputFormatError(f'Only ndarray or list/tuple of numbers allowed, '
                                   f'but was of type {type(value)}: {value}.')

    def __enter__(self):
        self._old_writable_flags = []
        for d in self._data:
            self._old_writable_flags.append(d.flags.writeable)
            d.setflags(write=False)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        for d, writable in zip(self._data, self._old_writable_flags):
            if writable:
                d.setflags(write=True)
        return False

    def __call__(self, *args, **kwargs):
        self._collect(args, kwargs)
        with self:
            return self.fit_method(*args, **kwargs)


class InputFormatError(ValueError):
    """Input data for Estimator is not allowed."""
