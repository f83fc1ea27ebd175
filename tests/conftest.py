# pytest specific configuration file containing eg fixtures.
import numpy as np
import pytest

from erchmm import ErChmm


@pytest.fixture
def two_branch_model():
    return ErChmm(orders=[2, 1], initial_probabilities=[4. / 7., 3. / 7.], rates=[10., .5],
                  transition_matrix=[[.7, .3], [.4, .6]])


@pytest.fixture(params=[np.float32, np.float64], ids=lambda x: x.__name__)
def float_dtype(request):
    yield request.param
