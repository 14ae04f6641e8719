import math

import panda3d.core as p3d
import pytest

import ltcfit
from ltcfit import FitSettings, LTC, LTCFitter, LTCTable, load_table
from ltcfit.fitter import roughness_alpha, view_cos_theta, view_direction
from ltcfit.ltc import MIN_SCALE


def test_view_parameterisation():
    assert view_cos_theta(0, 5) == 1.0
    assert view_cos_theta(2, 5) == pytest.approx(0.75)
    # grazing angle is clamped above the horizon
    assert 0.0 < view_cos_theta(4, 5) < 1e-3

    view = view_direction(2, 5)
    assert view.y == 0.0
    assert view.length() == pytest.approx(1.0, rel=1e-6)
    assert view.z == pytest.approx(0.75, rel=1e-6)


def test_roughness_alpha():
    assert roughness_alpha(4, 5, 0.0001) == 1.0
    assert roughness_alpha(2, 5, 0.0001) == pytest.approx(0.25)
    assert roughness_alpha(0, 5, 0.0001) == 0.0001


def test_fit_cell_lambert_normal_incidence(lambert):
    settings = FitSettings(table_size=4, num_samples=8, max_iterations=300)
    fitter = LTCFitter(lambert, settings)
    ltc, error = fitter.fit_cell(LTCTable(4), 3, 0)

    assert ltc.m11 == pytest.approx(1.0, abs=0.02)
    assert ltc.m22 == ltc.m11
    assert ltc.m13 == 0.0
    assert ltc.m23 == 0.0
    assert ltc.amplitude == pytest.approx(1.0)
    assert ltc.fresnel == pytest.approx(0.0, abs=0.01)
    assert error == pytest.approx(0.0, abs=1e-6)


def test_fit_cell_warm_starts_from_rougher_row(zero_brdf):
    settings = FitSettings(table_size=4, num_samples=4, max_iterations=0)
    table = LTCTable(4)
    rougher = LTC()
    rougher.set((0.5, 0.5, 0.0, 0.0), isotropic=True)
    table[3, 0] = rougher

    ltc, _ = LTCFitter(zero_brdf, settings).fit_cell(table, 2, 0)
    assert ltc.parameters == pytest.approx((0.5, 0.5, 0.0, 0.0))


def test_fit_cell_warm_starts_from_previous_angle(zero_brdf):
    settings = FitSettings(table_size=4, num_samples=4, max_iterations=0)
    table = LTCTable(4)
    previous = LTC()
    previous.set((0.5, 0.6, 0.1, 0.2), isotropic=False)
    table[2, 1] = previous

    ltc, _ = LTCFitter(zero_brdf, settings).fit_cell(table, 2, 2)
    assert ltc.parameters == pytest.approx((0.5, 0.6, 0.1, 0.2))


def test_fit_cell_missing_predecessor(lambert, settings):
    with pytest.raises(RuntimeError):
        LTCFitter(lambert, settings).fit_cell(LTCTable(3), 1, 2)


def test_fit_cell_aligned_frame(ggx):
    settings = FitSettings(
        table_size=3, num_samples=4, max_iterations=0, align_to_average_direction=True
    )
    table = LTCTable(3)
    table[1, 0] = LTC()
    ltc, _ = LTCFitter(ggx, settings).fit_cell(table, 1, 1)

    xaxis, yaxis, zaxis = ltc.frame
    assert yaxis == p3d.LVector3f(0, 1, 0)
    assert zaxis.length() == pytest.approx(1.0, rel=1e-5)
    assert xaxis.dot(zaxis) == pytest.approx(0.0, abs=1e-6)
    assert zaxis != p3d.LVector3f(0, 0, 1)


def test_fit_cell_smoothest_row_warm_start(ggx):
    settings = FitSettings(table_size=64, num_samples=8, max_iterations=50)
    table = LTCTable(64)
    rougher = LTC()
    rougher.set((2.5e-4, 2.5e-4, 0.0, 0.0), isotropic=True)
    table[1, 0] = rougher

    fitter = LTCFitter(ggx, settings)
    ltc, error = fitter.fit_cell(table, 0, 0)
    assert math.isfinite(error)
    assert ltc.m11 >= MIN_SCALE
    assert ltc.m22 == ltc.m11
    assert ltc.transform.determinant > 0
    assert math.isfinite(ltc.eval(p3d.LVector3f(0, 0, 1)))

    table[0, 0] = ltc
    ltc, error = fitter.fit_cell(table, 0, 1)
    assert math.isfinite(error)
    assert ltc.m11 >= MIN_SCALE
    assert ltc.m22 >= MIN_SCALE
    assert ltc.transform.determinant > 0


def test_fit_fills_table(ggx, settings):
    table = LTCFitter(ggx, settings).fit()
    assert table.is_complete()
    for (_, theta_index), ltc in table.cells():
        assert ltc.amplitude > 0.0
        if theta_index == 0:
            assert ltc.m22 == ltc.m11
            assert ltc.m13 == 0.0
            assert ltc.m23 == 0.0


@pytest.mark.parametrize('start_row', [0, -3])
def test_fit_start_row(ggx, settings, start_row):
    settings.start_row = start_row
    table = LTCFitter(ggx, settings).fit()
    assert table.filled_count() == 3
    assert [index for index, _ in table.cells()] == [(0, 0), (0, 1), (0, 2)]


def test_fit_is_deterministic(ggx, settings, tmp_path):
    first = tmp_path / 'first.ltc'
    second = tmp_path / 'second.ltc'
    LTCFitter(ggx, settings).fit(first)
    LTCFitter(ggx, settings).fit(second)
    assert first.read_bytes() == second.read_bytes()


def test_fit_resume_complete_table(ggx, settings, tmp_path):
    path = tmp_path / 'table.ltc'
    table = LTCFitter(ggx, settings).fit(path)
    data = path.read_bytes()

    calls = []
    resumed = LTCFitter(ggx, settings, observer=calls.append).fit(path)
    assert not calls
    assert resumed == table
    assert path.read_bytes() == data


def test_fit_resume_partial_table(ggx, settings, tmp_path):
    path = tmp_path / 'table.ltc'
    complete = LTCFitter(ggx, settings).fit()
    LTCFitter(ggx, settings).fit(path)
    full = load_table(path, 3)
    assert full == complete

    # drop the last row and fit it again
    for theta_index in range(3):
        full[0, theta_index] = None
    ltcfit.save_table(full, path)

    calls = []
    resumed = LTCFitter(ggx, settings, observer=calls.append).fit(path)
    assert len(calls) == 3
    assert resumed == complete


def test_fit_rows_are_saved(ggx, settings, tmp_path):
    path = tmp_path / 'table.ltc'
    saved_counts = []

    def observer(progress):
        if path.exists():
            saved_counts.append(load_table(path, 3).filled_count())
        else:
            saved_counts.append(0)

    LTCFitter(ggx, settings, observer=observer).fit(path)
    assert saved_counts == [0, 0, 0, 3, 3, 3, 6, 6, 6]
    assert load_table(path, 3).is_complete()


def test_observer(ggx, settings):
    progress = []
    observed = LTCFitter(ggx, settings, observer=progress.append).fit()
    unobserved = LTCFitter(ggx, settings).fit()

    assert observed == unobserved
    assert len(progress) == 9
    fractions = [item.fraction_complete for item in progress]
    assert fractions == pytest.approx([count / 9 for count in range(1, 10)])
    assert progress[0].alpha == 1.0
    assert progress[0].theta == pytest.approx(0.0)
    assert progress[-1].theta == pytest.approx(math.acos(view_cos_theta(2, 3)))
    assert progress[0].brdf is ggx
    for item in progress:
        assert math.isfinite(item.error)
        assert item.error >= 0.0


def test_fit_table_helper(lambert, tmp_path):
    path = tmp_path / 'table.ltc'
    table = ltcfit.fit_table(
        lambert, path, table_size=2, num_samples=4, max_iterations=10
    )
    assert table.is_complete()
    assert load_table(path, 2) == table
