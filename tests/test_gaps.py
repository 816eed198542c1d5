import numpy as np
import pytest

from utils.binning import GAP_MAX, GapBin, GapBit
from utils.gaps import (
    encode_gap_config,
    gap_condition,
    get_gap_bin,
    get_gap_triggers,
    get_no_gap_triggers,
    make_gap_run_hist,
)

CENT = int(GapBit.CENT_ACT)


def test_double_gap_requires_central_activity():
    """Without activity on either side the central activity bit decides."""
    assert get_gap_bin("V0", CENT) == GapBin.DG
    assert get_gap_bin("V0", 0) == GapBin.NG
    assert get_gap_bin("V0", 0, check_central_activity=False) == GapBin.DG


def test_single_and_no_gap():
    """Activity on one side only gives a single gap on the other side."""
    assert get_gap_bin("V0", int(GapBit.V0A) | CENT) == GapBin.GC
    assert get_gap_bin("V0", int(GapBit.V0C) | CENT) == GapBin.GA
    assert get_gap_bin("V0", int(GapBit.V0A | GapBit.V0C) | CENT) == GapBin.NG


def test_combined_detectors_or_their_sides():
    """Tags select several detectors, case insensitive."""
    config = int(GapBit.FMDC) | CENT
    assert get_gap_bin("V0", config) == GapBin.DG
    assert get_gap_bin("V0-FMD", config) == GapBin.GA
    assert get_gap_bin("v0fmd", config) == GapBin.GA
    config = int(GapBit.SPDA | GapBit.TPCC) | CENT
    assert get_gap_bin("SPD-TPC", config) == GapBin.NG
    assert get_gap_bin("ZDC", int(GapBit.ZDCA) | CENT) == GapBin.GC


def test_gap_bin_vectorised():
    """Integer arrays are classified element-wise."""
    configs = np.array([CENT, int(GapBit.V0A) | CENT, int(GapBit.V0C) | CENT, 0])
    np.testing.assert_array_equal(
        get_gap_bin("V0", configs),
        [GapBin.DG, GapBin.GC, GapBin.GA, GapBin.NG],
    )


def test_encode_gap_config():
    """Per-side flags become a configuration word."""
    assert encode_gap_config(v0a=True, cent_act=True) == int(GapBit.V0A | GapBit.CENT_ACT)
    assert encode_gap_config(v0a=False) == 0
    words = encode_gap_config(spda=np.array([True, False]), spdc=np.array([True, True]))
    np.testing.assert_array_equal(words, [int(GapBit.SPDA | GapBit.SPDC), int(GapBit.SPDC)])
    with pytest.raises(KeyError):
        encode_gap_config(xyz=True)


def test_gap_condition_mask():
    """Conditions cover both sides of every named detector."""
    assert gap_condition("V0") == int(GapBit.V0A | GapBit.V0C)
    assert gap_condition("V0-FMD") == int(GapBit.V0A | GapBit.V0C | GapBit.FMDA | GapBit.FMDC)


def test_gap_and_no_gap_triggers():
    """Events of a run are split by activity in the condition bits."""
    gaprun = make_gap_run_hist(100, 102)
    assert gaprun.axes[1].size == GAP_MAX
    words = np.array([0, int(GapBit.V0A), CENT, int(GapBit.V0C | GapBit.FMDA)])
    gaprun.fill(np.full(len(words), 101), words)
    gaprun.fill(100, 0)

    condition = gap_condition("V0")
    assert get_gap_triggers(gaprun, condition, 101) == (2.0, 4.0)
    assert get_no_gap_triggers(gaprun, condition, 101) == (2.0, 4.0)

    condition = gap_condition("V0-FMD")
    assert get_gap_triggers(gaprun, condition, 101) == (2.0, 4.0)
    assert get_gap_triggers(gaprun, gap_condition("TPC"), 101) == (4.0, 4.0)
    assert get_gap_triggers(gaprun, condition, 100) == (1.0, 1.0)
    assert get_gap_triggers(gaprun, condition, 102) == (0.0, 0.0)


def test_six_digit_runs_keep_their_own_bins():
    """Every run of a realistic range maps to bin run - run_min."""
    gaprun = make_gap_run_hist(110000, 130000)
    runs = np.arange(110000, 130001)
    gaprun.fill(runs, np.zeros(len(runs), dtype=int))
    assert gaprun.n_filled_bins == len(runs)
    assert sorted(key[0] for key, _ in gaprun.items()) == list(range(len(runs)))
    assert gaprun.find_bin(110002, 0) == (2, 0)


def test_gap_triggers_of_adjacent_six_digit_runs():
    """Triggers of neighbouring runs are not mixed up."""
    gaprun = make_gap_run_hist(110000, 130000)
    runs = list(range(110000, 110010))
    for n, run in enumerate(runs, start=1):
        gaprun.fill(np.full(n, run), np.zeros(n, dtype=int))
        gaprun.fill(run, int(GapBit.V0A))
    condition = gap_condition("V0")
    for n, run in enumerate(runs, start=1):
        assert get_gap_triggers(gaprun, condition, run) == (float(n), float(n + 1))
        assert get_no_gap_triggers(gaprun, condition, run) == (1.0, float(n + 1))
