import logging
import pickle

import hist
import numpy as np
import pytest

from utils.binning import AxisSpec
from utils.histograms import SparseHist, check_range, fill_checked, get_axis, make_sparse

TITLE = "Mass, Pt, Nch"
SPECS = (AxisSpec("Mass", 10, 0.0, 1.0), AxisSpec("Pt", 4, 0.0, 2.0), AxisSpec("Nch", 5, 0.0, 5.0))


@pytest.fixture
def thn():
    return make_sparse("test_thn", TITLE, SPECS)


def test_make_sparse_axes(thn):
    """Axis labels come from the title, binning from the specs."""
    assert thn.ndim == 3
    assert [axis.label for axis in thn.axes] == ["Mass", "Pt", "Nch"]
    assert thn.axes[0].size == 10
    assert thn.n_filled_bins == 0


def test_make_sparse_rejects_mismatched_title():
    """A title with fewer entries than binnings is an error."""
    with pytest.raises(ValueError):
        make_sparse("bad", "Mass, Pt", SPECS)


def test_fill_scalar_and_weights(thn):
    """Repeated fills accumulate sum of weights and squared weights."""
    thn.fill(0.55, 1.2, 3, weight=2.0)
    thn.fill(0.56, 1.3, 3.5, weight=3.0)
    index = thn.find_bin(0.55, 1.2, 3)
    assert index == (5, 2, 3)
    assert thn.get_bin_content(index) == pytest.approx(5.0)
    assert thn.get_bin_error(index) == pytest.approx(np.sqrt(13.0))
    assert thn.entries == 2
    assert thn.n_filled_bins == 1


def test_fill_arrays_only_stores_filled_bins(thn):
    """Vectorised fills touch one stored bin per distinct coordinate tuple."""
    mass = np.array([0.05, 0.05, 0.95, 0.5])
    pt = np.array([0.1, 0.1, 1.9, 1.0])
    thn.fill(mass, pt, 1)
    assert thn.entries == 4
    assert thn.n_filled_bins == 3
    assert thn.sum() == pytest.approx(4.0)


def test_fill_flow_bins(thn):
    """Values outside the axis range land in the under/overflow bins."""
    thn.fill(-1.0, 5.0, 2)
    assert thn.get_bin_content((-1, 4, 2)) == pytest.approx(1.0)


def test_fill_dimension_mismatch_raises(thn):
    """The fill primitive rejects a wrong number of coordinates."""
    with pytest.raises(ValueError):
        thn.fill(0.5, 1.0)


def test_fill_checked_skips_mismatch(thn, caplog):
    """fill_checked logs and skips a fill with the wrong dimension."""
    with caplog.at_level(logging.ERROR):
        assert not fill_checked(thn, [0.5, 1.0], caller="test")
    assert "dimension mismatch" in caplog.text
    assert thn.entries == 0
    assert fill_checked(thn, [0.5, 1.0, 2.0], caller="test")
    assert thn.entries == 1


def test_project_keeps_flow(thn):
    """Projections are dense hist objects including flow contents."""
    thn.fill(np.array([0.15, 0.15, 2.0]), np.array([0.1, 1.5, 0.1]), np.array([0, 1, 2]))
    mass = thn.project("Mass")
    assert isinstance(mass, hist.Hist)
    assert mass.values()[1] == pytest.approx(2.0)
    assert mass.values(flow=True)[-1] == pytest.approx(1.0)

    mass_pt = thn.project(0, 1)
    assert mass_pt.ndim == 2
    assert mass_pt.sum(flow=True).value == pytest.approx(3.0)


def test_to_hist_and_reset(thn):
    """Dense conversion keeps all entries; reset empties the store."""
    thn.fill(0.5, 1.0, 2.0)
    assert thn.to_hist().sum().value == pytest.approx(1.0)
    thn.reset()
    assert thn.n_filled_bins == 0
    assert thn.entries == 0


def test_sparse_hist_pickles(thn):
    """Output containers are pickled, so are sparse histograms."""
    thn.fill(0.5, 1.0, 2.0, weight=4.0)
    restored = pickle.loads(pickle.dumps(thn))
    assert isinstance(restored, SparseHist)
    assert restored.get_bin_content(thn.find_bin(0.5, 1.0, 2.0)) == pytest.approx(4.0)


def test_check_range_scalar():
    """Values on or beyond the edges are moved inside by epsilon."""
    assert check_range(6.0, 0.0, 5.12) == pytest.approx(5.119)
    assert check_range(5.12, 0.0, 5.12) == pytest.approx(5.119)
    assert check_range(0.0, 0.0, 5.12) == pytest.approx(0.001)
    assert check_range(-3.0, 0.0, 5.12) == pytest.approx(0.001)
    assert check_range(2.5, 0.0, 5.12) == 2.5


def test_check_range_array():
    """Arrays are clamped element-wise without modifying the input."""
    values = np.array([-1.0, 0.3, 0.64, 9.0])
    clamped = check_range(values, 0.0, 0.64)
    np.testing.assert_allclose(clamped, [0.001, 0.3, 0.639, 0.639])
    assert values[0] == -1.0


def test_get_axis():
    """Axis lookup ignores case and whitespace."""
    assert get_axis(TITLE, "mass") == 0
    assert get_axis(TITLE, "NCH") == 2
    assert get_axis(" Mass ,  Pt", "pt") == 1


def test_get_axis_missing(caplog):
    """A missing axis is reported and -1 returned."""
    with caplog.at_level(logging.ERROR):
        assert get_axis(TITLE, "Eta") == -1
    assert "ETA" in caplog.text


def test_get_axis_too_many_entries():
    """Titles with 20 or more entries are refused."""
    title = ", ".join(f"a{i}" for i in range(20))
    assert get_axis(title, "a0") == -1
    title = ", ".join(f"a{i}" for i in range(19))
    assert get_axis(title, "a18") == 18
