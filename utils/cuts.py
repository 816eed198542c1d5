import awkward as ak
from coffea.analysis_tools import PackedSelection
import numpy as np


#===================
# Object selections
#===================
def charged_primary_mask(
    particles: ak.Array,
    eta_cut: float,
    pt_min: float,
) -> ak.Array:
    """
    Select charged physical primaries inside the kinematic acceptance.

    Parameters
    ----------
    particles : ak.Array
        Generated particle collection with ``charge``, ``is_primary``,
        ``eta`` and ``pt`` fields.
    eta_cut : float
        Maximum absolute pseudorapidity.
    pt_min : float
        Minimum transverse momentum in GeV/c.

    Returns
    -------
    ak.Array
        Jagged boolean mask matching ``particles``.
    """
    return (
        (particles.charge != 0)
        & particles.is_primary
        & (abs(particles.eta) < eta_cut)
        & (particles.pt >= pt_min)
    )


def track_mask(
    tracks: ak.Array,
    eta_cut: float,
    pt_min: float,
    filter_field: str = "pass_filter",
) -> ak.Array:
    """
    Select reconstructed tracks passing a track filter inside the acceptance.

    Parameters
    ----------
    tracks : ak.Array
        Track collection with ``eta``, ``pt`` and the boolean filter field.
    eta_cut : float
        Maximum absolute pseudorapidity.
    pt_min : float
        Minimum transverse momentum in GeV/c.
    filter_field : str, optional
        Name of the filter decision to require, by default "pass_filter".
        The leading-track search uses "pass_leading_filter".

    Returns
    -------
    ak.Array
        Jagged boolean mask matching ``tracks``.
    """
    return (
        tracks[filter_field]
        & (abs(tracks.eta) < eta_cut)
        & (tracks.pt >= pt_min)
    )


#===================
# Event selections
#===================
def has_rec_vertex(vertex: ak.Array, vertex_z_max: float = 10.0) -> ak.Array:
    """
    Events with a reconstructed primary vertex within ``vertex_z_max`` cm.

    Parameters
    ----------
    vertex : ak.Array
        Per-event vertex record with ``z`` and ``n_contributors``.
    vertex_z_max : float, optional
        Maximum absolute z position in cm, by default 10.

    Returns
    -------
    ak.Array
        Boolean per-event mask.
    """
    return (vertex.n_contributors > 0) & (abs(vertex.z) < vertex_z_max)


def kno_event_selection(
    events: ak.Array,
    vertex_z_max: float = 10.0,
) -> PackedSelection:
    """
    Event selection of the multiplicity analysis.

    Parameters
    ----------
    events : ak.Array
        Events with ``pass_event_cuts`` and a ``Vertex`` record.
    vertex_z_max : float, optional
        Maximum absolute vertex z position in cm.

    Returns
    -------
    PackedSelection
        Selection with the steps "event_cuts", "rec_vertex" and the composite
        "kno_event".
    """
    selections = PackedSelection(dtype="uint64")

    # ---------------------
    # External physics selection and vertex
    # ---------------------
    selections.add("event_cuts", ak.to_numpy(events.pass_event_cuts))
    selections.add("rec_vertex", ak.to_numpy(has_rec_vertex(events.Vertex, vertex_z_max)))

    # ---------------------
    # Composite mask
    # ---------------------
    selections.add("kno_event", selections.all("event_cuts", "rec_vertex"))

    return selections


def leading_in_window(
    leading_pt: ak.Array,
    lead_pt_min: float,
    lead_pt_max: float,
) -> np.ndarray:
    """Events whose leading pT lies in [lead_pt_min, lead_pt_max)."""
    leading_pt = ak.to_numpy(ak.fill_none(leading_pt, -1.0))
    return (leading_pt >= lead_pt_min) & (leading_pt < lead_pt_max)


def cdmeson_event_selection(
    events: ak.Array,
    vertex_z_max: float = 10.0,
) -> PackedSelection:
    """
    Cumulative selection steps of the two-track (CD meson) analysis.

    Parameters
    ----------
    events : ak.Array
        Events with ``is_good_input``, ``pass_event_cuts``, ``is_pileup``,
        a ``Vertex`` record and a ``Track`` collection.
    vertex_z_max : float, optional
        Maximum absolute vertex z position in cm.

    Returns
    -------
    PackedSelection
        Steps "good_input", "after_cuts", "no_pileup", "two_tracks" and the
        composite "cdmeson".
    """
    selections = PackedSelection(dtype="uint64")

    selections.add("good_input", ak.to_numpy(events.is_good_input))
    selections.add(
        "after_cuts",
        ak.to_numpy(
            events.pass_event_cuts & has_rec_vertex(events.Vertex, vertex_z_max)
        ),
    )
    selections.add("no_pileup", ak.to_numpy(~events.is_pileup))
    selections.add("two_tracks", ak.to_numpy(ak.num(events.Track, axis=1) == 2))

    selections.add(
        "cdmeson",
        selections.all("good_input", "after_cuts", "no_pileup", "two_tracks"),
    )

    return selections
