"""
Gap topology helpers.

A gap configuration word carries one activity bit per detector side (see
``GapBit``). Combining the bits of a subset of detectors classifies an event
as double gap, single gap on either side, or no gap.
"""

import logging
from typing import Tuple, Union

import hist
import numpy as np

from utils.binning import GAP_MAX, GapBin, GapBit
from utils.histograms import SparseHist

logger = logging.getLogger(__name__)

# detector tag -> (A side bit, C side bit)
DETECTOR_BITS = {
    "V0": (GapBit.V0A, GapBit.V0C),
    "FMD": (GapBit.FMDA, GapBit.FMDC),
    "SPD": (GapBit.SPDA, GapBit.SPDC),
    "TPC": (GapBit.TPCA, GapBit.TPCC),
    "ZDC": (GapBit.ZDCA, GapBit.ZDCC),
}


def _side_masks(tag: str) -> Tuple[int, int]:
    tag = tag.upper()
    mask_a = mask_c = 0
    for detector, (bit_a, bit_c) in DETECTOR_BITS.items():
        if detector in tag:
            mask_a |= int(bit_a)
            mask_c |= int(bit_c)
    return mask_a, mask_c


def get_gap_bin(
    tag: str,
    gap_config: Union[int, np.ndarray],
    check_central_activity: bool = True,
) -> Union[int, np.ndarray]:
    """
    Classify the gap topology seen by the detectors named in ``tag``.

    Parameters
    ----------
    tag : str
        Detector selection, e.g. "V0", "V0-FMD" or "tpcspd" (case insensitive).
    gap_config : int or np.ndarray
        Gap configuration word(s).
    check_central_activity : bool, optional
        If True a double gap additionally requires the central activity bit,
        by default True.

    Returns
    -------
    int or np.ndarray
        ``GapBin`` value(s): NG if both sides are active, GC if only the A side
        is active, GA if only the C side is active, DG if neither side is
        active (and central activity is seen or not required), NG otherwise.
    """
    mask_a, mask_c = _side_masks(tag)
    config = np.asarray(gap_config, dtype=np.int64)

    active_a = (config & mask_a) != 0
    active_c = (config & mask_c) != 0
    if check_central_activity:
        double_gap = np.where((config & int(GapBit.CENT_ACT)) != 0, int(GapBin.DG), int(GapBin.NG))
    else:
        double_gap = np.full(config.shape, int(GapBin.DG))

    result = np.select(
        [active_a & active_c, ~active_a & ~active_c, ~active_c],
        [int(GapBin.NG), double_gap, int(GapBin.GC)],
        default=int(GapBin.GA),
    )
    if result.ndim == 0:
        return int(result)
    return result


def encode_gap_config(**sides: Union[bool, np.ndarray]) -> Union[int, np.ndarray]:
    """
    Build gap configuration words from per-side activity flags.

    Keyword names are ``GapBit`` member names, case insensitive, e.g.
    ``encode_gap_config(v0a=True, spdc=mask, cent_act=True)``.
    """
    word = np.int64(0)
    for side, active in sides.items():
        try:
            bit = GapBit[side.upper()]
        except KeyError:
            logger.error(f"Unknown gap bit '{side}'")
            raise
        word = word | np.where(np.asarray(active, dtype=bool), int(bit), 0)
    if np.ndim(word) == 0:
        return int(word)
    return word.astype(np.int64)


def gap_condition(tag: str) -> int:
    """Bit mask of both sides of every detector named in ``tag``."""
    mask_a, mask_c = _side_masks(tag)
    return mask_a | mask_c


def make_gap_run_hist(run_min: int, run_max: int, name: str = "CDMeson_GapRun") -> SparseHist:
    """Sparse run x gap-configuration histogram, one bin per run and word."""
    axes = [
        hist.axis.Integer(run_min, run_max + 1, name="run", label="run"),
        hist.axis.Integer(0, GAP_MAX, name="gap_config", label="gap configuration"),
    ]
    return SparseHist(axes, name=name, title="run, gap configuration")


def _count_triggers(gaprun: SparseHist, condition: int, run: int, with_gap: bool) -> Tuple[float, float]:
    run_bin = int(gaprun.axes[0].index(run))
    triggers = 0.0
    total = 0.0
    for word in range(GAP_MAX):
        content = gaprun.get_bin_content((run_bin, word))
        has_gap = not (word & condition)
        if has_gap == with_gap:
            triggers += content
        total += content
    return triggers, total


def get_gap_triggers(gaprun: SparseHist, gap_condition: int, run: int) -> Tuple[float, float]:
    """
    Count events of ``run`` showing no activity in any bit of ``gap_condition``.

    Returns
    -------
    tuple of float
        (events with the gap, all events of the run)
    """
    return _count_triggers(gaprun, gap_condition, run, with_gap=True)


def get_no_gap_triggers(gaprun: SparseHist, gap_condition: int, run: int) -> Tuple[float, float]:
    """Counterpart of ``get_gap_triggers`` counting events *with* activity."""
    return _count_triggers(gaprun, gap_condition, run, with_gap=False)
