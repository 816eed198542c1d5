"""
Multiplicity distributions in the underlying event (KNO scaling).

Each event is split into three azimuthal regions around the leading particle:
toward (|dphi| < pi/3), away (|dphi - pi| < pi/3) and transverse (the rest).
The transverse multiplicity NchTS is the event activity estimator of the
underlying event. Simulated events fill generated and reconstructed
distributions, the detector response and the bin-by-bin corrections; real
data fill the reconstructed distributions together with the V0M percentile
and reference-multiplicity correlations.
"""

import logging
from typing import Dict, List, NamedTuple, Optional

import awkward as ak
import hist
import numpy as np
from tabulate import tabulate

from analysis.base import AnalysisTask
from utils import binning as B
from utils.cuts import (
    charged_primary_mask,
    has_rec_vertex as _has_rec_vertex,
    kno_event_selection,
    leading_in_window,
    track_mask,
)
from utils.histograms import labelled_axis, variable_axis
from utils.kinematics import delta_phi
from utils.logging import _banner
from utils.schema import KnoConfig

logger = logging.getLogger("KnoTask")

TOWARD, TRANSVERSE, AWAY = range(3)
REGION_WIDTH = np.pi / 3.0

COUNTER_LABELS = (
    "input",
    "event cuts",
    "rec vertex",
    "gen leading in window",
    "rec leading in window",
)

__all__ = ["KnoTask", "delta_phi", "region_index", "kno_scaled"]


class LeadingObject(NamedTuple):
    pt: np.ndarray
    phi: np.ndarray
    index: np.ndarray


class UnderlyingEvent(NamedTuple):
    """Per-event activity around the leading object."""

    leading: LeadingObject
    in_window: np.ndarray
    particles: ak.Array  # selected particles, leading excluded
    dphi: ak.Array
    region: ak.Array
    nch: np.ndarray
    nch_ts: np.ndarray


def region_index(dphi):
    """TOWARD, TRANSVERSE or AWAY for every azimuthal distance."""
    toward = abs(dphi) < REGION_WIDTH
    away = abs(dphi - np.pi) < REGION_WIDTH
    if isinstance(dphi, ak.Array):
        return ak.where(toward, TOWARD, ak.where(away, AWAY, TRANSVERSE))
    return np.where(toward, TOWARD, np.where(away, AWAY, TRANSVERSE))


def kno_scaled(h: hist.Hist, name: str) -> Optional[hist.Hist]:
    """
    KNO representation of a 1D multiplicity distribution.

    The distribution is normalised to unit area, P(N), and refilled as
    <N> P(N) versus z = N / <N>.

    Returns
    -------
    hist.Hist or None
        None if the input is empty or has a non-positive mean.
    """
    counts = h.values()
    total = counts.sum()
    if total <= 0:
        return None
    centers = h.axes[0].centers
    probability = counts / total
    mean = float((centers * probability).sum())
    if mean <= 0:
        return None

    scaled = hist.Hist(B.KNO_Z.regular(label="z = N/<N>"), storage=hist.storage.Weight(), name=name)
    scaled.fill(centers / mean, weight=mean * probability)
    return scaled


def _flat(array) -> np.ndarray:
    return ak.to_numpy(ak.flatten(array, axis=1))


def _per_particle(values: np.ndarray, particles: ak.Array) -> np.ndarray:
    """Broadcast an event quantity onto the particles of each event and flatten."""
    return _flat(ak.broadcast_arrays(ak.Array(values), particles.pt)[0])


def _axis(spec: B.AxisSpec, name: str) -> hist.axis.Regular:
    return spec._replace(name=name).regular(label=spec.name)


def _pt_axis() -> hist.axis.Variable:
    return variable_axis(B.KNO_PT_EDGES, name="pt", label="p_{T} (GeV/c)")


def _percentile_axis() -> hist.axis.Variable:
    return variable_axis(B.KNO_V0M_PERCENTILE_EDGES, name="percentile", label="V0M percentile")


def _hist(name: str, *axes) -> hist.Hist:
    return hist.Hist(*axes, storage=hist.storage.Double(), name=name)


class KnoTask(AnalysisTask):
    """
    Multiplicity distributions of simulated or real collisions.

    Expected event fields: ``pass_event_cuts``, ``Vertex`` (``z``,
    ``n_contributors``) and ``Track`` (``pt``, ``eta``, ``phi``, ``charge``,
    ``pass_filter``, ``pass_leading_filter``). Simulated events add
    ``MCParticle`` (``pt``, ``eta``, ``phi``, ``charge``, ``is_primary``) and
    ``Track.is_primary``; real data add ``ref_mult08``, ``v0m_percentile``
    and, for p-Pb, ``v0a_percentile``.
    """

    def __init__(self, config: KnoConfig, seed: Optional[int] = None) -> None:
        super().__init__("KnoTask", config, seed)
        self.hists: Dict[str, hist.Hist] = {}

    def _book(self, h: hist.Hist) -> hist.Hist:
        self.hists[h.name] = self.add_output(h)
        return h

    # ------------------------------------------------------------------
    # Booking
    # ------------------------------------------------------------------
    def create_output_objects(self) -> None:
        self._book(_hist("hCounter", labelled_axis(COUNTER_LABELS, name="step")))
        if self.config.use_mc:
            self._book_mc()
        else:
            self._book_data()

    def _book_mc(self) -> None:
        for level in ("Gen", "Rec"):
            for suffix in ("", "Test"):
                self._book(_hist(f"hNch{level}{suffix}", _axis(B.KNO_NCH, "nch")))
                self._book(_hist(f"hNchTS{level}{suffix}", _axis(B.KNO_NCH_TS, "nch_ts")))
            for region, region_name in enumerate(B.REGION_NAMES):
                self._book(_hist(
                    f"hPtVsUE{level}Test_{region_name}", _pt_axis(), _axis(B.KNO_NCH_TS, "nch_ts")
                ))
                self._book(_hist(
                    f"hPtVsNch{level}Test_{region_name}", _pt_axis(), _axis(B.KNO_NCH, "nch")
                ))
                self._book(_hist(f"hPhi{level}_{region_name}", _axis(B.KNO_PHI, "phi")))
            self._book(_hist(
                f"hDphiVsUE{level}Test", _axis(B.KNO_DPHI, "dphi"), _axis(B.KNO_NCH_TS, "nch_ts")
            ))
            self._book(_hist(
                f"hDphiVsNch{level}Test", _axis(B.KNO_DPHI, "dphi"), _axis(B.KNO_NCH, "nch")
            ))

        self._book(_hist(
            "hNchResponse",
            _axis(B.KNO_NCH_TS._replace(name="NchTS rec"), "nch_ts_rec"),
            _axis(B.KNO_NCH_TS._replace(name="NchTS gen"), "nch_ts_gen"),
        ))
        for name in ("hPtInPrim", "hPtOut", "hPtOutPrim", "hPtOutSec"):
            self._book(_hist(name, _pt_axis()))

    def _book_data(self) -> None:
        self._book(_hist("hNchData", _axis(B.KNO_NCH, "nch")))
        self._book(_hist("hNchTSData", _axis(B.KNO_NCH_TS, "nch_ts")))
        for region_name in B.REGION_NAMES:
            self._book(_hist(f"hPtVsUEData_{region_name}", _pt_axis(), _axis(B.KNO_NCH_TS, "nch_ts")))
            self._book(_hist(f"hPtVsNchData_{region_name}", _pt_axis(), _axis(B.KNO_NCH, "nch")))
            self._book(_hist(
                f"hPtVsUEvsNchData_V0M_{region_name}",
                _pt_axis(),
                _axis(B.KNO_NCH_TS, "nch_ts"),
                _percentile_axis(),
            ))
        self._book(_hist("hDphiVsUEData", _axis(B.KNO_DPHI, "dphi"), _axis(B.KNO_NCH_TS, "nch_ts")))
        self._book(_hist("hDphiVsNchData", _axis(B.KNO_DPHI, "dphi"), _axis(B.KNO_NCH, "nch")))
        self._book(_hist(
            "hDphiVsUEvsNchData_V0M",
            _axis(B.KNO_DPHI, "dphi"),
            _axis(B.KNO_NCH_TS, "nch_ts"),
            _percentile_axis(),
        ))
        self._book(_hist(
            "hV0MVsUEvsRef",
            _percentile_axis(),
            _axis(B.KNO_NCH_TS, "nch_ts"),
            _axis(B.KNO_REF_MULT, "ref_mult"),
        ))
        self._book(_hist("hRefMult08", _axis(B.KNO_REF_MULT, "ref_mult")))
        self._book(_hist("hV0Mmult", _axis(B.KNO_V0M_MULT, "v0m")))
        self._book(_hist("hRefMultvsV0Mmult", _axis(B.KNO_REF_MULT, "ref_mult"), _axis(B.KNO_V0M_MULT, "v0m")))
        self._book(_hist("hV0MmultvsUE", _axis(B.KNO_V0M_MULT, "v0m"), _axis(B.KNO_NCH_TS, "nch_ts")))
        self._book(_hist("hRefmultvsUE", _axis(B.KNO_REF_MULT, "ref_mult"), _axis(B.KNO_NCH_TS, "nch_ts")))

    # ------------------------------------------------------------------
    # Event level helpers
    # ------------------------------------------------------------------
    def required_fields(self):
        fields = ("pass_event_cuts", "Vertex", "Track")
        if self.config.use_mc:
            return fields + ("MCParticle",)
        percentile = "v0a_percentile" if self.config.is_pPb else "v0m_percentile"
        return fields + ("ref_mult08", percentile)

    def has_rec_vertex(self, events: ak.Array) -> np.ndarray:
        return ak.to_numpy(_has_rec_vertex(events.Vertex, self.config.vertex_z_max))

    def _selected(self, events: ak.Array, is_mc: bool, leading: bool = False) -> ak.Array:
        """Particles entering the analysis, tagged with their position in the event."""
        cfg = self.config
        if is_mc:
            collection = events.MCParticle
            mask = charged_primary_mask(collection, cfg.eta_cut, cfg.pt_min)
        else:
            collection = events.Track
            filter_field = "pass_leading_filter" if leading else "pass_filter"
            mask = track_mask(collection, cfg.eta_cut, cfg.pt_min, filter_field)
        collection = ak.with_field(collection, ak.local_index(collection, axis=1), "index")
        return collection[mask]

    def get_leading_object(self, events: ak.Array, is_mc: bool) -> LeadingObject:
        """
        Highest-pT generated particle (``is_mc``) or leading-filter track.

        Events without candidates get pT -1 and index -1.
        """
        candidates = self._selected(events, is_mc, leading=True)
        best = ak.argmax(candidates.pt, axis=1, keepdims=True)
        lead = ak.firsts(candidates[best])
        return LeadingObject(
            pt=ak.to_numpy(ak.fill_none(lead.pt, -1.0)),
            phi=ak.to_numpy(ak.fill_none(lead.phi, 0.0)),
            index=ak.to_numpy(ak.fill_none(lead.index, -1)),
        )

    def underlying_event(self, events: ak.Array, is_mc: bool) -> UnderlyingEvent:
        leading = self.get_leading_object(events, is_mc)
        selected = self._selected(events, is_mc)
        others = selected[selected.index != ak.Array(leading.index)]
        dphi = delta_phi(others.phi, ak.Array(leading.phi))
        region = region_index(dphi)
        return UnderlyingEvent(
            leading=leading,
            in_window=leading_in_window(leading.pt, self.config.lead_pt_min, self.config.lead_pt_max),
            particles=others,
            dphi=dphi,
            region=region,
            nch=ak.to_numpy(ak.num(selected, axis=1)),
            nch_ts=ak.to_numpy(ak.sum(region == TRANSVERSE, axis=1)),
        )

    def _count(self, step: str, count) -> None:
        if count:
            self.hists["hCounter"].fill(step=step, weight=float(count))

    # ------------------------------------------------------------------
    # Filling
    # ------------------------------------------------------------------
    def _fill_region_spectra(self, ue: UnderlyingEvent, events_mask: np.ndarray, names: Dict[str, str]) -> None:
        """pT and dphi versus NchTS and Nch for the events in ``events_mask``."""
        particles = ue.particles[events_mask]
        dphi = ue.dphi[events_mask]
        region = ue.region[events_mask]
        nch_ts = _per_particle(ue.nch_ts[events_mask], particles)
        nch = _per_particle(ue.nch[events_mask], particles)
        pt = _flat(particles.pt)
        flat_region = _flat(region)

        for r, region_name in enumerate(B.REGION_NAMES):
            in_region = flat_region == r
            self.hists[f"{names['pt_ue']}_{region_name}"].fill(pt[in_region], nch_ts[in_region])
            self.hists[f"{names['pt_nch']}_{region_name}"].fill(pt[in_region], nch[in_region])

        self.hists[names["dphi_ue"]].fill(_flat(dphi), nch_ts)
        self.hists[names["dphi_nch"]].fill(_flat(dphi), nch)

    def get_multiplicity_distributions(self, ue: UnderlyingEvent, level: str, test: np.ndarray) -> None:
        """
        Closure-test distributions of one level ("Gen" or "Rec").

        Fills the Test multiplicity histograms, pT and dphi versus NchTS and
        Nch per region, and the azimuthal distribution per region.
        """
        window = ue.in_window
        selected = window & test
        self.hists[f"hNch{level}Test"].fill(ue.nch[selected])
        self.hists[f"hNchTS{level}Test"].fill(ue.nch_ts[selected])
        self._fill_region_spectra(
            ue,
            selected,
            {
                "pt_ue": f"hPtVsUE{level}Test",
                "pt_nch": f"hPtVsNch{level}Test",
                "dphi_ue": f"hDphiVsUE{level}Test",
                "dphi_nch": f"hDphiVsNch{level}Test",
            },
        )

        phi = _flat(ue.particles.phi[window])
        region = _flat(ue.region[window])
        for r, region_name in enumerate(B.REGION_NAMES):
            self.hists[f"hPhi{level}_{region_name}"].fill(np.mod(phi[region == r], 2.0 * np.pi))

    def get_detector_response(self, gen: UnderlyingEvent, rec: UnderlyingEvent, corrections: np.ndarray) -> None:
        """Multiplicity distributions used to unfold, and the NchTS response matrix."""
        gen_window = gen.in_window & corrections
        rec_window = rec.in_window & corrections
        self.hists["hNchGen"].fill(gen.nch[gen_window])
        self.hists["hNchTSGen"].fill(gen.nch_ts[gen_window])
        self.hists["hNchRec"].fill(rec.nch[rec_window])
        self.hists["hNchTSRec"].fill(rec.nch_ts[rec_window])

        both = gen_window & rec_window
        self.hists["hNchResponse"].fill(rec.nch_ts[both], gen.nch_ts[both])

    def get_bin_by_bin_corrections(self, events: ak.Array, corrections: np.ndarray) -> None:
        """pT spectra of generated primaries and of reconstructed tracks."""
        events = events[corrections]
        generated = self._selected(events, is_mc=True)
        self.hists["hPtInPrim"].fill(_flat(generated.pt))

        tracks = self._selected(events, is_mc=False)
        self.hists["hPtOut"].fill(_flat(tracks.pt))
        is_primary = _flat(tracks.is_primary).astype(bool)
        pt = _flat(tracks.pt)
        self.hists["hPtOutPrim"].fill(pt[is_primary])
        self.hists["hPtOutSec"].fill(pt[~is_primary])

    def get_multiplicity_distributions_data(self, events: ak.Array, rec: UnderlyingEvent) -> None:
        """Reconstructed distributions and multiplicity-estimator correlations of real data."""
        percentile = ak.to_numpy(events.v0a_percentile if self.config.is_pPb else events.v0m_percentile)
        ref_mult = ak.to_numpy(events.ref_mult08)

        self.hists["hRefMult08"].fill(ref_mult)
        self.hists["hV0Mmult"].fill(percentile)
        self.hists["hRefMultvsV0Mmult"].fill(ref_mult, percentile)

        window = rec.in_window
        self.hists["hNchData"].fill(rec.nch[window])
        self.hists["hNchTSData"].fill(rec.nch_ts[window])
        self.hists["hV0MmultvsUE"].fill(percentile[window], rec.nch_ts[window])
        self.hists["hRefmultvsUE"].fill(ref_mult[window], rec.nch_ts[window])
        self.hists["hV0MVsUEvsRef"].fill(percentile[window], rec.nch_ts[window], ref_mult[window])

        self._fill_region_spectra(
            rec,
            window,
            {
                "pt_ue": "hPtVsUEData",
                "pt_nch": "hPtVsNchData",
                "dphi_ue": "hDphiVsUEData",
                "dphi_nch": "hDphiVsNchData",
            },
        )

        particles = rec.particles[window]
        pt = _flat(particles.pt)
        region = _flat(rec.region[window])
        nch_ts = _per_particle(rec.nch_ts[window], particles)
        particle_percentile = _per_particle(percentile[window], particles)
        for r, region_name in enumerate(B.REGION_NAMES):
            in_region = region == r
            self.hists[f"hPtVsUEvsNchData_V0M_{region_name}"].fill(
                pt[in_region], nch_ts[in_region], particle_percentile[in_region]
            )
        self.hists["hDphiVsUEvsNchData_V0M"].fill(_flat(rec.dphi[window]), nch_ts, particle_percentile)

    def process(self, events: ak.Array) -> None:
        selection = kno_event_selection(events, self.config.vertex_z_max)
        self._count("input", len(events))
        self._count("event cuts", selection.all("event_cuts").sum())
        self._count("rec vertex", selection.all("kno_event").sum())

        events = events[selection.all("kno_event")]
        if len(events) == 0:
            return

        rec = self.underlying_event(events, is_mc=False)
        self._count("rec leading in window", rec.in_window.sum())

        if not self.config.use_mc:
            self.get_multiplicity_distributions_data(events, rec)
            return

        gen = self.underlying_event(events, is_mc=True)
        self._count("gen leading in window", gen.in_window.sum())

        if self.config.mc_closure:
            test = self.rng.random(len(events)) < self.config.closure_fraction
            corrections = ~test
        else:
            test = corrections = np.ones(len(events), dtype=bool)

        self.get_multiplicity_distributions(gen, "Gen", test)
        self.get_multiplicity_distributions(rec, "Rec", test)
        self.get_detector_response(gen, rec, corrections)
        self.get_bin_by_bin_corrections(events, corrections)

    def terminate(self) -> None:
        logger.info(_banner("KNO scaling"))
        rows: List[list] = []
        for name, h in list(self.hists.items()):
            if not name.startswith("hNch") or h.ndim != 1:
                continue
            scaled = kno_scaled(h, f"{name}_KNO")
            if scaled is None:
                logger.warning(f"{name} is empty, no KNO distribution")
                continue
            self.add_output(scaled)
            total = h.values().sum()
            mean = float((h.axes[0].centers * h.values()).sum() / total)
            rows.append([name, f"{total:.0f}", f"{mean:.3f}"])
        if rows:
            logger.info("\n" + tabulate(rows, headers=["Distribution", "Events", "<N>"], tablefmt="grid"))
        super().terminate()
