import panda3d.core as p3d
import pytest

import ltcfit

PRC_BASE = """
notify-level-ltcfit warning
"""

#pylint:disable=redefined-outer-name

@pytest.fixture(autouse=True, scope='session')
def prc_page():
    page = p3d.load_prc_file_data('', PRC_BASE)
    yield page
    p3d.ConfigPageManager.get_global_ptr().delete_explicit_page(page)


@pytest.fixture
def settings(request):
    overrides = request.param if hasattr(request, 'param') else {}
    values = {
        'table_size': 3,
        'num_samples': 4,
        'max_iterations': 25,
    }
    values.update(overrides)
    return ltcfit.FitSettings(**values)


@pytest.fixture
def ggx():
    return ltcfit.GGXBRDF()


@pytest.fixture
def lambert():
    return ltcfit.LambertBRDF()


class LTCBRDF:
    '''A BRDF that is exactly the given lobe'''
    name = 'ltc'

    def __init__(self, ltc):
        self.ltc = ltc

    def eval(self, view, light, alpha):
        value = self.ltc.eval(light)
        return value, value / self.ltc.amplitude

    def sample(self, view, alpha, u1, u2):
        return self.ltc.sample(u1, u2)


@pytest.fixture
def make_ltc_brdf():
    return LTCBRDF


class ZeroBRDF:
    '''A BRDF that reflects nothing, which makes every fit error zero'''
    name = 'zero'

    def eval(self, view, light, alpha):
        return 0.0, 0.0

    def sample(self, view, alpha, u1, u2):
        return p3d.LVector3f(0, 0, 1)


@pytest.fixture
def zero_brdf():
    return ZeroBRDF()
