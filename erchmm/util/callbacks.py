def handle_progress_bar(progress):
    r"""Takes a (potential) progress bar factory, if None, returns a factory for a bar that does nothing.

    Parameters
    ----------
    progress : progress bar or None, optional
        The progress bar type, e.g., :code:`tqdm.tqdm`.

    Returns
    -------
    progress_bar : callable
        A progress bar factory (or no-op progress bar if input was None).
    """
    if progress is None:
        class progress:
            def __init__(self, **kw):
                self.total = kw.get('total', None)
                self.n = 0

            def update(self, n=1): self.n += n
            def close(self): pass
            def set_description(self, *_): pass

    return progress


class ProgressCallback:
    r"""Callback advancing a progress bar by one step per EM iteration. The log-likelihood increment of the
    iteration is shown next to the description if passed as keyword argument `error`.

    Parameters
    ----------
    progress : object
       Tested for a tqdm progress bar. Should implement `update()`, `set_description()`, and `close()`. Should
       also possess a `total` constructor keyword argument and an `n` attribute.
    total : int
       Maximum number of iterations.
    description : string
       text to display in front of the progress bar.
    """

    def __init__(self, progress, description=None, total=None):
        self.progress_bar = handle_progress_bar(progress)(total=total)
        self.description = description
        self.progress_bar.set_description(description)

    def __call__(self, inc=1, **kw):
        self.progress_bar.update(inc)
        if 'error' in kw:
            self.progress_bar.set_description(f"{self.description} - [inc: {kw['error']:.1e}]")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if exc_type is None:
            self.progress_bar.total = self.progress_bar.n  # force finish
        self.progress_bar.close()
