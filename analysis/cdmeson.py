"""
Central-diffractive meson study: histogram definitions and two-track task.

The module-level functions book and fill the three sparse histograms of the
study (invariant mass "mother", empty events, multiplicity) together with the
bookkeeping histograms (stats flow, PID combinations, VZERO response). The
axes of the sparse histograms are listed, in order, in their titles; the
``get_axis_*`` helpers translate an axis title into its position.
"""

import logging
from typing import Any, Dict, List, Optional

import awkward as ak
import hist
import numpy as np
from tabulate import tabulate

from analysis.base import AnalysisTask
from utils import binning as B
from utils.binning import GapBin, GapBit, PIDBin, ProcessTypeBin, StatsFlowBin, TrackPID
from utils.cuts import cdmeson_event_selection
from utils.gaps import gap_condition, get_gap_bin, get_gap_triggers, make_gap_run_hist
from utils.histograms import SparseHist, check_range, fill_checked, get_axis, labelled_axis, make_sparse
from utils.kinematics import (
    combine_charges,
    combine_pid,
    cos_opening_angle,
    cos_theta_star,
    sanitize_pid,
    to_momentum4d,
)
from utils.schema import CDMesonConfig

logger = logging.getLogger("CDMeson")

PION_MASS = 0.13957

TITLE_MOTHER = (
    "Ncombined, CombCh, CombPID, V0, FMD, SPD, TPC,"
    " Mass, Pt, CTS, OA, DaughterPt, TrackResiduals, VertexZinRng,"
    " ProcessType, VertexCoincidence, TrackletResiduals"
)
MOTHER_SPECS = (
    B.NCOMBINED, B.COMB_CH, B.COMB_PID, B.GAP_CONFIG, B.GAP_CONFIG,
    B.GAP_CONFIG, B.GAP_CONFIG, B.MASS, B.MOTHER_PT, B.CTS, B.OA,
    B.DAUGHTER_PT, B.TRACK_RESIDUALS, B.VERTEX_Z_IN_RNG, B.PROCESS_TYPE,
    B.VERTEX_COINCIDENCE, B.TRACKLET_RESIDUALS,
)

TITLE_EMPTY_EVENTS = (
    "EventType, FMD-A, FMD-C, SPD-I-A, SPD-I-C, SPD-O-A, SPD-O-C"
    ", SPDtrkltA, SPDtrkltC"
    ", fmdSum1I, fmdSum2I, fmdSum2O, fmdSum3I, fmdSum3O"
)
EMPTY_EVENTS_SPECS = (B.EVENT_TYPE, B.MULT_W, B.MULT_W) + (B.MULT,) * 11

TITLE_MULTIPLICITY = (
    "Nch, Nsoft, Ncombined, V0, FMD, SPD, TPC, NresidualTracks"
    ", NresidualTracklets, VertexZ, VerticesDistance, ProcessType"
)
MULTIPLICITY_SPECS = (
    B.NCH, B.NSOFT, B.NCOMB, B.GAP_CONFIG, B.GAP_CONFIG, B.GAP_CONFIG,
    B.GAP_CONFIG, B.NRESIDUAL_TRACKS, B.NRESIDUAL_TRACKLETS, B.VERTEX_Z,
    B.VERTICES_DISTANCE, B.PROCESS_TYPE,
)

STATS_FLOW_LABELS = {
    StatsFlowBin.TOTAL_INPUT: "total Input",
    StatsFlowBin.GOOD_INPUT: "good ESDs",
    StatsFlowBin.V0_OR: "V0-OR",
    StatsFlowBin.V0_AND: "V0-AND",
    StatsFlowBin.EVENTS_AFTER_CUTS: "after cuts",
    StatsFlowBin.EVENTS_WITHOUT_PILE_UP: "w/o pile up",
    StatsFlowBin.V0_GAP: "with V0 DG gap",
    StatsFlowBin.V0_FMD_GAP: "with V0-FMD DG gap",
    StatsFlowBin.V0_FMD_SPD_GAP: "with V0-FMD-SPD DG gap",
    StatsFlowBin.V0_FMD_SPD_TPC_GAP: "with V0-FMD-SPD-TPC DG gap",
    StatsFlowBin.V0_FMD_SPD_TPC_ZDC_GAP: "with V0-FMD-SPD-TPC-ZDC DG gap",
    StatsFlowBin.FMD_GAP: "with FMD DG gap",
    StatsFlowBin.SPD_GAP: "with SPD DG gap",
    StatsFlowBin.TPC_GAP: "with TPC DG gap",
    StatsFlowBin.TPC_SPD_GAP: "with TPC-SPD DG gap",
    StatsFlowBin.TPC_SPD_FMD_GAP: "with TPC-SPD-FMD DG gap",
    StatsFlowBin.TPC_SPD_FMD_V0_GAP: "with TPC-SPD-FMD-V0 DG gap",
    StatsFlowBin.SPD_FMD_GAP: "with SPD FMD gap",
    StatsFlowBin.SPD_FMD_V0_GAP: "with SPD FMD V0 gap",
    StatsFlowBin.TWO_TRACK_EVENTS: "with two tracks",
    StatsFlowBin.THREE_TRACK_EVENTS: "with three tracks",
    StatsFlowBin.PION_EVENTS: "with two pions",
    StatsFlowBin.KAON_EVENTS: "with two kaons",
    StatsFlowBin.PROTON_EVENTS: "with two proton",
    StatsFlowBin.ELECTRON_EVENTS: "with two electron",
    StatsFlowBin.UNKNOWN_PID_EVENTS: "with unknown PID",
    StatsFlowBin.RESIDUAL_TRACKS: "without residual tracks",
    StatsFlowBin.RESIDUAL_TRACKLETS: "without residual tracklets",
    StatsFlowBin.CD_ONLY_EVENTS: "CD only events",
}

# stats-flow stage -> detectors that must show a double gap
GAP_STAGES = {
    StatsFlowBin.V0_GAP: "V0",
    StatsFlowBin.V0_FMD_GAP: "V0-FMD",
    StatsFlowBin.V0_FMD_SPD_GAP: "V0-FMD-SPD",
    StatsFlowBin.V0_FMD_SPD_TPC_GAP: "V0-FMD-SPD-TPC",
    StatsFlowBin.V0_FMD_SPD_TPC_ZDC_GAP: "V0-FMD-SPD-TPC-ZDC",
    StatsFlowBin.FMD_GAP: "FMD",
    StatsFlowBin.SPD_GAP: "SPD",
    StatsFlowBin.TPC_GAP: "TPC",
    StatsFlowBin.TPC_SPD_GAP: "TPC-SPD",
    StatsFlowBin.TPC_SPD_FMD_GAP: "TPC-SPD-FMD",
    StatsFlowBin.TPC_SPD_FMD_V0_GAP: "TPC-SPD-FMD-V0",
    StatsFlowBin.SPD_FMD_GAP: "SPD-FMD",
    StatsFlowBin.SPD_FMD_V0_GAP: "SPD-FMD-V0",
}

# two-track PID combination -> stats-flow stage
PID_STAGES = {
    PIDBin.PION_E: StatsFlowBin.PION_EVENTS,
    PIDBin.KAON_E: StatsFlowBin.KAON_EVENTS,
    PIDBin.PROTON_E: StatsFlowBin.PROTON_EVENTS,
    PIDBin.ELECTRON_E: StatsFlowBin.ELECTRON_EVENTS,
    PIDBin.PID_UNKNOWN: StatsFlowBin.UNKNOWN_PID_EVENTS,
}

PID_LABELS = {
    PIDBin.PION_E: "#pi (ex)",
    PIDBin.PION: "#pi",
    PIDBin.SINGLE_PION: "-",
    PIDBin.KAON_E: "K (ex)",
    PIDBin.KAON: "K",
    PIDBin.SINGLE_KAON: ",",
    PIDBin.PROTON_E: "p (ex)",
    PIDBin.PROTON: "p",
    PIDBin.SINGLE_PROTON: "_",
    PIDBin.ELECTRON_E: "e (ex)",
    PIDBin.ELECTRON: "e",
    PIDBin.SINGLE_ELECTRON: ".",
    PIDBin.PID_UNKNOWN: "X",
}

# single-track identification as shown on the PID study axes
TRACK_PID_BINS = {
    TrackPID.UNKNOWN: PIDBin.PID_UNKNOWN,
    TrackPID.PION: PIDBin.PION,
    TrackPID.KAON: PIDBin.KAON,
    TrackPID.PROTON: PIDBin.PROTON,
    TrackPID.ELECTRON: PIDBin.ELECTRON,
}

N_VZERO_CHANNELS = 64


# ==============================================================================
#  Mother (invariant mass) histogram
# ==============================================================================

def get_thn_mother(name: str = "CDMeson_Mother") -> SparseHist:
    """Book the sparse histogram used for the invariant mass distributions."""
    return make_sparse(name, TITLE_MOTHER, MOTHER_SPECS)


def fill_thn_mother(
    thn: SparseHist,
    n_combined,
    comb_ch,
    comb_pid,
    v0,
    fmd,
    spd,
    tpc,
    mass,
    pt,
    cts,
    oa,
    daughter_pt,
    track_residuals,
    vertex_z_in_range,
    process_type,
    vertex_coincidence,
    tracklet_residuals,
    weight=1.0,
) -> bool:
    """
    Fill the mother histogram; every argument may be a scalar or an array.

    Mass, pair pT and daughter pT are clamped into their axis ranges, so that
    no pair ends up in a flow bin of these axes.

    Values are filled in title order, CTS on the CTS axis and OA on the OA
    axis. The legacy fill passed (pT, OA, CTS), so its CTS axis held the
    opening angle and vice versa; compare those two axes swapped.

    Returns
    -------
    bool
        False if ``thn`` does not have the mother dimension (nothing filled).
    """
    values = [
        n_combined, comb_ch, comb_pid, v0, fmd, spd, tpc, mass, pt, cts, oa,
        daughter_pt, track_residuals, vertex_z_in_range, process_type,
        vertex_coincidence, tracklet_residuals,
    ]
    if len(values) != thn.ndim:
        return fill_checked(thn, values, caller="fill_thn_mother")

    values[7] = check_range(values[7], B.MASS.low, B.MASS.high)
    values[8] = check_range(values[8], B.MOTHER_PT.low, B.MOTHER_PT.high)
    values[11] = check_range(values[11], B.DAUGHTER_PT.low, B.DAUGHTER_PT.high)

    return fill_checked(thn, values, caller="fill_thn_mother", weight=weight)


def get_axis_mother(name: str) -> int:
    return get_axis(TITLE_MOTHER, name)


# ==============================================================================
#  Empty event study
# ==============================================================================

def get_thn_empty_events() -> SparseHist:
    """Book the sparse histogram of the empty event study."""
    return make_sparse("CDMeson_EmptyEvents", TITLE_EMPTY_EVENTS, EMPTY_EVENTS_SPECS)


def fill_thn_empty_events(
    thn: SparseHist,
    event_type,
    mult_fmd_a,
    mult_fmd_c,
    mult_spd_ia,
    mult_spd_ic,
    mult_spd_oa,
    mult_spd_oc,
    mult_spd_tracklet_a,
    mult_spd_tracklet_c,
    fmd_sum_1i,
    fmd_sum_2i,
    fmd_sum_2o,
    fmd_sum_3i,
    fmd_sum_3o,
) -> bool:
    """Fill the empty event histogram (no clamping)."""
    values = [
        event_type, mult_fmd_a, mult_fmd_c, mult_spd_ia, mult_spd_ic,
        mult_spd_oa, mult_spd_oc, mult_spd_tracklet_a, mult_spd_tracklet_c,
        fmd_sum_1i, fmd_sum_2i, fmd_sum_2o, fmd_sum_3i, fmd_sum_3o,
    ]
    return fill_checked(thn, values, caller="fill_thn_empty_events")


def get_axis_empty_events(name: str) -> int:
    return get_axis(TITLE_EMPTY_EVENTS, name)


# ==============================================================================
#  Multiplicity study
# ==============================================================================

def get_thn_multiplicity() -> SparseHist:
    """Book the sparse histogram of the multiplicity study."""
    return make_sparse("CDMeson_Multiplicity", TITLE_MULTIPLICITY, MULTIPLICITY_SPECS)


def fill_thn_multiplicity(
    thn: SparseHist,
    n_ch,
    n_soft,
    n_combined,
    v0,
    fmd,
    spd,
    tpc,
    n_residual_tracks,
    n_residual_tracklets,
    vertex_z,
    vertices_distance,
    process_type,
) -> bool:
    """Fill the multiplicity histogram (no clamping)."""
    values = [
        n_ch, n_soft, n_combined, v0, fmd, spd, tpc, n_residual_tracks,
        n_residual_tracklets, vertex_z, vertices_distance, process_type,
    ]
    return fill_checked(thn, values, caller="fill_thn_multiplicity")


def get_axis_multiplicity(name: str) -> int:
    return get_axis(TITLE_MULTIPLICITY, name)


# ==============================================================================
#  Bookkeeping histograms
# ==============================================================================

def get_hist_stats_flow() -> hist.Hist:
    """Event counter with one labelled bin per selection stage."""
    labels = [STATS_FLOW_LABELS[stage] for stage in sorted(STATS_FLOW_LABELS)]
    return hist.Hist(
        labelled_axis(labels, name="stage", label="selection stage"),
        storage=hist.storage.Double(),
        name="c00_statsFlow",
    )


def fill_stats_flow(stats_flow: hist.Hist, stage: StatsFlowBin, count: float = 1.0) -> None:
    if count:
        stats_flow.fill(stage=STATS_FLOW_LABELS[StatsFlowBin(stage)], weight=float(count))


def get_hist_pid_studies(name: str) -> hist.Hist:
    """Particle 1 x particle 2 identification matrix with labelled bins."""
    labels = [PID_LABELS[b] for b in sorted(PID_LABELS)]
    return hist.Hist(
        labelled_axis(labels, name="particle1", label="particle 1"),
        labelled_axis(labels, name="particle2", label="particle 2"),
        storage=hist.storage.Double(),
        name=name,
    )


def fill_pid_studies(pid_hist: hist.Hist, pid1, pid2) -> None:
    """Fill ``PIDBin`` values (scalars or arrays) of both particles."""
    to_label = np.vectorize(lambda b: PID_LABELS[PIDBin(int(b))], otypes=[object])
    pid1 = np.atleast_1d(pid1)
    pid2 = np.atleast_1d(pid2)
    if pid1.size == 0:
        return
    pid_hist.fill(particle1=to_label(pid1).tolist(), particle2=to_label(pid2).tolist())


def get_hist_vzero_studies(output: Dict[str, Any]) -> List[hist.Hist]:
    """
    Book the VZERO trigger study histograms.

    Two 2D histograms per photomultiplier: ADC versus trigger threshold and
    ADC versus multiplicity. Every histogram is also registered in ``output``.

    Returns
    -------
    list of hist.Hist
        The 64 threshold histograms followed by the 64 multiplicity ones.
    """
    histograms = []
    for channel in range(N_VZERO_CHANNELS):
        histograms.append(
            hist.Hist(
                hist.axis.Regular(400, 0.0, 4000.0, name="adc", label="ADC Counts"),
                hist.axis.Regular(48, 2.0, 50.0, name="threshold", label="Trigger Threshold (ADC Counts)"),
                name=f"h00_{channel:02d}_ADC_TriggerThr",
            )
        )
    for channel in range(N_VZERO_CHANNELS):
        histograms.append(
            hist.Hist(
                hist.axis.Regular(400, 0.0, 4000.0, name="adc", label="ADC Counts"),
                hist.axis.Regular(250, 0.0, 250.0, name="multiplicity", label="Multiplicity"),
                name=f"h01_{channel:02d}_ADC_Multiplicity",
            )
        )
    for h in histograms:
        output[h.name] = h
    return histograms


# ==============================================================================
#  Two-track task
# ==============================================================================

class CDMesonTask(AnalysisTask):
    """
    Two-track central-diffractive analysis.

    Expected event fields: ``run``, ``gap_config``, ``is_good_input``,
    ``pass_event_cuts``, ``is_pileup``, ``n_soft``, ``n_residual_tracks``,
    ``n_residual_tracklets``, ``vertex_distance``, ``Vertex`` (``z``,
    ``n_contributors``) and ``Track`` (``pt``, ``eta``, ``phi``, ``charge``,
    ``pid``). Simulated events may add ``process_type``; ``VZERO``
    (``adc``, ``threshold``, ``multiplicity`` per channel) is read when the
    VZERO study is enabled.
    """

    def __init__(self, config: CDMesonConfig, seed: Optional[int] = None) -> None:
        super().__init__("CDMesonTask", config, seed)
        self.thn_mother: Optional[SparseHist] = None
        self.thn_multiplicity: Optional[SparseHist] = None
        self.stats_flow: Optional[hist.Hist] = None
        self.pid_studies: Optional[hist.Hist] = None
        self.gap_run: Optional[SparseHist] = None
        self.vzero: List[hist.Hist] = []

    def create_output_objects(self) -> None:
        self.thn_mother = self.add_output(get_thn_mother())
        self.thn_multiplicity = self.add_output(get_thn_multiplicity())
        self.stats_flow = self.add_output(get_hist_stats_flow())
        self.pid_studies = self.add_output(get_hist_pid_studies("c01_PIDstudies"))
        if self.config.run_range is not None:
            self.gap_run = self.add_output(make_gap_run_hist(*self.config.run_range))
        if self.config.vzero_studies:
            self.vzero = get_hist_vzero_studies(self.output)

    def required_fields(self):
        return (
            "run", "gap_config", "is_good_input", "pass_event_cuts", "is_pileup",
            "n_soft", "n_residual_tracks", "n_residual_tracklets",
            "vertex_distance", "Vertex", "Track",
        )

    def _gap_bins(self, gap_config: np.ndarray) -> List[np.ndarray]:
        cca = self.config.check_central_activity
        return [get_gap_bin(tag, gap_config, cca) for tag in ("V0", "FMD", "SPD", "TPC")]

    def _process_type(self, events: ak.Array) -> np.ndarray:
        if "process_type" in events.fields:
            return ak.to_numpy(events.process_type).astype(float)
        return np.full(len(events), float(ProcessTypeBin.ND))

    def fill_selection_stages(self, events: ak.Array, selection) -> None:
        gap_config = ak.to_numpy(events.gap_config).astype(np.int64)
        good = selection.all("good_input")
        clean = selection.all("good_input", "after_cuts", "no_pileup")
        two_tracks = selection.all("cdmeson")
        n_tracks = ak.to_numpy(ak.num(events.Track, axis=1))

        v0_a = (gap_config & int(GapBit.V0A)) != 0
        v0_c = (gap_config & int(GapBit.V0C)) != 0

        counts = {
            StatsFlowBin.TOTAL_INPUT: len(events),
            StatsFlowBin.GOOD_INPUT: good.sum(),
            StatsFlowBin.V0_OR: (good & (v0_a | v0_c)).sum(),
            StatsFlowBin.V0_AND: (good & v0_a & v0_c).sum(),
            StatsFlowBin.EVENTS_AFTER_CUTS: selection.all("good_input", "after_cuts").sum(),
            StatsFlowBin.EVENTS_WITHOUT_PILE_UP: clean.sum(),
            StatsFlowBin.TWO_TRACK_EVENTS: two_tracks.sum(),
            StatsFlowBin.THREE_TRACK_EVENTS: (clean & (n_tracks == 3)).sum(),
            StatsFlowBin.RESIDUAL_TRACKS: (
                two_tracks & (ak.to_numpy(events.n_residual_tracks) == 0)
            ).sum(),
            StatsFlowBin.RESIDUAL_TRACKLETS: (
                two_tracks & (ak.to_numpy(events.n_residual_tracklets) == 0)
            ).sum(),
            StatsFlowBin.CD_ONLY_EVENTS: (
                two_tracks & (self._process_type(events) == ProcessTypeBin.CD)
            ).sum(),
        }
        for stage, tag in GAP_STAGES.items():
            double_gap = get_gap_bin(tag, gap_config, self.config.check_central_activity) == GapBin.DG
            counts[stage] = (clean & double_gap).sum()

        if two_tracks.any():
            pids = events.Track.pid[two_tracks]
            comb = combine_pid(ak.to_numpy(pids[:, 0]), ak.to_numpy(pids[:, 1]))
            for pid_bin, stage in PID_STAGES.items():
                counts[stage] = (comb == pid_bin).sum()

        for stage, count in counts.items():
            fill_stats_flow(self.stats_flow, stage, count)

    def process(self, events: ak.Array) -> None:
        selection = cdmeson_event_selection(events, self.config.vertex_z_max)
        self.fill_selection_stages(events, selection)

        clean = selection.all("good_input", "after_cuts", "no_pileup")
        gap_config = ak.to_numpy(events.gap_config).astype(np.int64)
        process_type = self._process_type(events)

        if self.gap_run is not None and clean.any():
            self.gap_run.fill(ak.to_numpy(events.run[clean]), gap_config[clean])

        # ---------------------
        # Multiplicity study, every clean event
        # ---------------------
        if clean.any():
            selected = events[clean]
            n_ch = ak.to_numpy(ak.num(selected.Track, axis=1))
            n_soft = ak.to_numpy(selected.n_soft)
            fill_thn_multiplicity(
                self.thn_multiplicity,
                n_ch,
                n_soft,
                n_ch + n_soft,
                *self._gap_bins(gap_config[clean]),
                ak.to_numpy(selected.n_residual_tracks),
                ak.to_numpy(selected.n_residual_tracklets),
                ak.to_numpy(selected.Vertex.z),
                ak.to_numpy(selected.vertex_distance),
                process_type[clean],
            )

        if self.vzero:
            self.fill_vzero(events[clean])

        # ---------------------
        # Two-track events
        # ---------------------
        two_tracks = selection.all("cdmeson")
        if not two_tracks.any():
            return
        selected = events[two_tracks]
        tracks = selected.Track
        first = to_momentum4d(tracks[:, 0], PION_MASS)
        second = to_momentum4d(tracks[:, 1], PION_MASS)
        mother = first + second

        # pT of one daughter, picked at random
        pick_first = self.rng.random(len(selected)) < 0.5
        daughter_pt = np.where(pick_first, ak.to_numpy(first.pt), ak.to_numpy(second.pt))

        pid1 = sanitize_pid(ak.to_numpy(tracks.pid[:, 0]))
        pid2 = sanitize_pid(ak.to_numpy(tracks.pid[:, 1]))
        n_soft = ak.to_numpy(selected.n_soft)

        fill_thn_mother(
            self.thn_mother,
            n_combined=2 + n_soft,
            comb_ch=combine_charges(ak.to_numpy(tracks.charge[:, 0]), ak.to_numpy(tracks.charge[:, 1])),
            comb_pid=combine_pid(pid1, pid2),
            **dict(zip(("v0", "fmd", "spd", "tpc"), self._gap_bins(gap_config[two_tracks]))),
            mass=ak.to_numpy(mother.mass),
            pt=ak.to_numpy(mother.pt),
            cts=ak.to_numpy(cos_theta_star(first, second)),
            oa=ak.to_numpy(cos_opening_angle(first, second)),
            daughter_pt=daughter_pt,
            track_residuals=(ak.to_numpy(selected.n_residual_tracks) > 0).astype(float),
            vertex_z_in_range=(
                np.abs(ak.to_numpy(selected.Vertex.z)) < self.config.vertex_z_in_range
            ).astype(float),
            process_type=process_type[two_tracks],
            vertex_coincidence=(
                ak.to_numpy(selected.vertex_distance) < self.config.vertex_coincidence
            ).astype(float),
            tracklet_residuals=(ak.to_numpy(selected.n_residual_tracklets) > 0).astype(float),
        )

        to_pid_bin = np.vectorize(lambda p: int(TRACK_PID_BINS[TrackPID(int(p))]), otypes=[np.int64])
        fill_pid_studies(self.pid_studies, to_pid_bin(pid1), to_pid_bin(pid2))

    def fill_vzero(self, events: ak.Array) -> None:
        if "VZERO" not in events.fields or len(events) == 0:
            logger.debug("No VZERO information in this batch")
            return
        vzero = events.VZERO
        channel = ak.to_numpy(ak.flatten(ak.local_index(vzero.adc, axis=1)))
        adc = ak.to_numpy(ak.flatten(vzero.adc))
        threshold = ak.to_numpy(ak.flatten(vzero.threshold))
        multiplicity = ak.to_numpy(ak.flatten(vzero.multiplicity))
        for pmt in range(N_VZERO_CHANNELS):
            in_channel = channel == pmt
            self.vzero[pmt].fill(adc[in_channel], threshold[in_channel])
            self.vzero[N_VZERO_CHANNELS + pmt].fill(adc[in_channel], multiplicity[in_channel])

    def terminate(self) -> None:
        super().terminate()
        if self.gap_run is None or self.gap_run.n_filled_bins == 0:
            return

        run_axis = self.gap_run.axes[0]
        runs = sorted({int(run_axis.value(key[0])) for key, _ in self.gap_run.items()
                       if 0 <= key[0] < run_axis.size})
        rows = []
        for run in runs:
            row = [run]
            for tag in self.config.gap_conditions:
                triggers, total = get_gap_triggers(self.gap_run, gap_condition(tag), run)
                row.append(f"{triggers / total:.4f}" if total else "-")
            rows.append(row)
        logger.info(
            "Double-gap fraction per run:\n"
            + tabulate(rows, headers=["run"] + list(self.config.gap_conditions), tablefmt="grid")
        )
