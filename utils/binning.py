"""
Static binning tables and bin enumerations.

The axis tables fix the shape of every multi-dimensional histogram used by the
diffractive (CD meson) and multiplicity (KNO) studies. Enumerations give the
integer value filled for categorical observables such as gap topologies or
particle-identification combinations.
"""

from enum import IntEnum, IntFlag
from typing import NamedTuple

import hist
import numpy as np


class AxisSpec(NamedTuple):
    """Regular binning of one histogram axis."""

    name: str
    nbins: int
    low: float
    high: float

    def regular(self, label: str = None) -> hist.axis.Regular:
        """Build the matching ``hist`` axis (with under/overflow)."""
        return hist.axis.Regular(
            self.nbins,
            self.low,
            self.high,
            name=axis_identifier(self.name),
            label=label or self.name,
        )


def axis_identifier(name: str) -> str:
    """Turn a title token (e.g. 'FMD-A') into a valid axis name ('FMD_A')."""
    return "".join(c if c.isalnum() else "_" for c in name.strip())


# ==============================================================================
#  Invariant mass distributions (mother histogram)
# ==============================================================================

# number of charged primaries, combined (can include soft tracks)
NCOMBINED = AxisSpec("Ncombined", 2, 2.0, 4.0)
# unlike sign or like sign pair
COMB_CH = AxisSpec("CombCh", 2, 1.0, 3.0)
# two-track PID combination
COMB_PID = AxisSpec("CombPID", 13, 1.0, 14.0)
# gap configuration, reused for every detector
GAP_CONFIG = AxisSpec("GapConfig", 4, 1.0, 5.0)
MASS = AxisSpec("Mass", 1024, 0.0, 5.12)
MOTHER_PT = AxisSpec("Pt", 128, 0.0, 0.64)
# cosine theta* in the two-track rest frame
CTS = AxisSpec("CTS", 2, -1.0, -0.9)
# opening angle in the lab frame
OA = AxisSpec("OA", 20, -1.0, 1.0)
DAUGHTER_PT = AxisSpec("DaughterPt", 128, 0.0, 6.4)
TRACK_RESIDUALS = AxisSpec("TrackResiduals", 2, 0.0, 2.0)
VERTEX_Z_IN_RNG = AxisSpec("VertexZinRng", 2, 0.0, 2.0)
VERTEX_COINCIDENCE = AxisSpec("VertexCoincidence", 2, 0.0, 2.0)
TRACKLET_RESIDUALS = AxisSpec("TrackletResiduals", 2, 0.0, 2.0)
PROCESS_TYPE = AxisSpec("ProcessType", 4, 0.0, 4.0)

# ==============================================================================
#  Empty event study
# ==============================================================================

EVENT_TYPE = AxisSpec("EventType", 5, 1.0, 6.0)
MULT = AxisSpec("Mult", 32, 0.0, 31.0)
MULT_W = AxisSpec("MultW", 64, 0.0, 63.0)

# ==============================================================================
#  Multiplicity study
# ==============================================================================

NCH = AxisSpec("Nch", 51, 0.0, 51.0)
NSOFT = AxisSpec("Nsoft", 11, 0.0, 11.0)
NCOMB = AxisSpec("Ncombined", 61, 0.0, 61.0)
NRESIDUAL_TRACKS = AxisSpec("NresidualTracks", 11, 0.0, 11.0)
NRESIDUAL_TRACKLETS = AxisSpec("NresidualTracklets", 21, 0.0, 21.0)
VERTEX_Z = AxisSpec("VertexZ", 20, -10.0, 10.0)
VERTICES_DISTANCE = AxisSpec("VerticesDistance", 10, 0.0, 5.0)


class GapBit(IntFlag):
    """Detector activity bits of the gap configuration word."""

    CONFIGURATION_SET = 1 << 0
    SPDA = 1 << 1
    SPDC = 1 << 2
    TPCA = 1 << 3
    TPCC = 1 << 4
    V0A = 1 << 5
    V0C = 1 << 6
    FMDA = 1 << 7
    FMDC = 1 << 8
    CENT_ACT = 1 << 9
    ZDCA = 1 << 10
    ZDCC = 1 << 11


# number of distinct gap configuration words
GAP_MAX = 1 << 12


class GapBin(IntEnum):
    DG = 1  # double gap
    GC = 2  # gap on C side only
    GA = 3  # gap on A side only
    NG = 4  # no gap


class ChargeBin(IntEnum):
    PM = 1  # unlike sign
    PPMM = 2  # like sign


class PIDBin(IntEnum):
    PION_E = 1
    PION = 2
    SINGLE_PION = 3
    KAON_E = 4
    KAON = 5
    SINGLE_KAON = 6
    PROTON_E = 7
    PROTON = 8
    SINGLE_PROTON = 9
    ELECTRON_E = 10
    ELECTRON = 11
    SINGLE_ELECTRON = 12
    PID_UNKNOWN = 13


class TrackPID(IntEnum):
    """Single-track identification, as delivered with the track collection."""

    UNKNOWN = 0
    PION = 1
    KAON = 2
    PROTON = 3
    ELECTRON = 4


class ProcessTypeBin(IntEnum):
    ND = 0
    CD = 1
    SD = 2
    DD = 3


class EventTypeBin(IntEnum):
    EVENT_I = 1
    EVENT_A = 2
    EVENT_C = 3
    EVENT_AC = 4
    EVENT_E = 5


class StatsFlowBin(IntEnum):
    TOTAL_INPUT = 0
    GOOD_INPUT = 1
    V0_OR = 2
    V0_AND = 3
    EVENTS_AFTER_CUTS = 4
    EVENTS_WITHOUT_PILE_UP = 5
    V0_GAP = 6
    V0_FMD_GAP = 7
    V0_FMD_SPD_GAP = 8
    V0_FMD_SPD_TPC_GAP = 9
    V0_FMD_SPD_TPC_ZDC_GAP = 10
    FMD_GAP = 11
    SPD_GAP = 12
    TPC_GAP = 13
    TPC_SPD_GAP = 14
    TPC_SPD_FMD_GAP = 15
    TPC_SPD_FMD_V0_GAP = 16
    SPD_FMD_GAP = 17
    SPD_FMD_V0_GAP = 18
    TWO_TRACK_EVENTS = 19
    THREE_TRACK_EVENTS = 20
    PION_EVENTS = 21
    KAON_EVENTS = 22
    PROTON_EVENTS = 23
    ELECTRON_EVENTS = 24
    UNKNOWN_PID_EVENTS = 25
    RESIDUAL_TRACKS = 26
    RESIDUAL_TRACKLETS = 27
    CD_ONLY_EVENTS = 28
    LAST_VALUE = 29


# ==============================================================================
#  KNO / underlying-event binning
# ==============================================================================

KNO_NCH = AxisSpec("Nch", 300, -0.5, 299.5)
KNO_NCH_TS = AxisSpec("NchTS", 100, -0.5, 99.5)
KNO_DPHI = AxisSpec("DeltaPhi", 64, -np.pi / 2.0, 3.0 * np.pi / 2.0)
KNO_PHI = AxisSpec("Phi", 64, 0.0, 2.0 * np.pi)
KNO_REF_MULT = AxisSpec("RefMult08", 200, -0.5, 199.5)
KNO_V0M_MULT = AxisSpec("V0Mmult", 100, 0.0, 100.0)
KNO_Z = AxisSpec("z", 50, 0.0, 10.0)

KNO_PT_EDGES = (
    0.15, 0.2, 0.25, 0.3, 0.35, 0.4, 0.45, 0.5, 0.6, 0.7, 0.8, 0.9,
    1.0, 1.25, 1.5, 2.0, 2.5, 3.0, 3.5, 4.0, 5.0, 6.0, 8.0, 10.0,
    13.0, 20.0, 30.0, 40.0, 50.0,
)
KNO_V0M_PERCENTILE_EDGES = (0.0, 1.0, 5.0, 10.0, 15.0, 20.0, 30.0, 40.0, 50.0, 70.0, 100.0)

REGION_NAMES = ("toward", "transverse", "away")


class AxisType(IntEnum):
    """Observables available to the axes of a pair function."""

    TRACK1_P = 0
    TRACK2_P = 1
    TRACK1_PT = 2
    TRACK2_PT = 3
    PAIR_INV_MASS = 4
    PAIR_INV_MASS_MC = 5
    PAIR_INV_MASS_RES = 6
    PAIR_PT = 7
    PAIR_ETA = 8
    PAIR_MT = 9
    PAIR_Y = 10
    EVENT_MULT = 11
