import awkward as ak
import numpy as np
import pytest

from utils.binning import GapBit, TrackPID

CENTRAL_ONLY = int(GapBit.CONFIGURATION_SET | GapBit.CENT_ACT)


def _track(pt, eta, phi, charge, pid=int(TrackPID.PION)):
    return {"pt": pt, "eta": eta, "phi": phi, "charge": charge, "pid": pid}


def _cdmeson_event(tracks, gap_config=CENTRAL_ONLY, good=True, cuts=True, pileup=False, run=101):
    return {
        "run": run,
        "gap_config": gap_config,
        "is_good_input": good,
        "pass_event_cuts": cuts,
        "is_pileup": pileup,
        "n_soft": 0,
        "n_residual_tracks": 0,
        "n_residual_tracklets": 1,
        "vertex_distance": 0.1,
        "Vertex": {"z": 1.0, "n_contributors": 5},
        "Track": tracks,
    }


@pytest.fixture
def cdmeson_events():
    """Five events: two clean two-track events, one with three tracks, one bad, one pile-up."""
    pion_pair = [_track(0.5, 0.1, 0.0, 1), _track(0.5, -0.1, np.pi, -1)]
    kaon_pair = [
        _track(0.6, 0.2, 0.5, 1, int(TrackPID.KAON)),
        _track(0.4, -0.3, 3.0, 1, int(TrackPID.KAON)),
    ]
    three = pion_pair + [_track(0.3, 0.0, 1.0, 1)]
    return ak.Array(
        [
            _cdmeson_event(pion_pair),
            _cdmeson_event(kaon_pair, gap_config=CENTRAL_ONLY | int(GapBit.V0A)),
            _cdmeson_event(three),
            _cdmeson_event(pion_pair, good=False),
            _cdmeson_event(pion_pair, pileup=True),
        ]
    )


def _particle(pt, phi, charge=1, eta=0.1, primary=True):
    return {"pt": pt, "eta": eta, "phi": phi, "charge": charge, "is_primary": primary}


def _reco(pt, phi, charge=1, eta=0.1, primary=True, leading=True):
    return {
        "pt": pt,
        "eta": eta,
        "phi": phi,
        "charge": charge,
        "pass_filter": True,
        "pass_leading_filter": leading,
        "is_primary": primary,
    }


@pytest.fixture
def kno_mc_events():
    """
    Two simulated events.

    The first has a 6 GeV/c leading particle at phi 0 and one particle in each
    region plus a neutral one; the second has no leading particle in the
    [5, 40) window.
    """
    in_window = {
        "MCParticle": [
            _particle(6.0, 0.0),
            _particle(1.0, 0.3),
            _particle(1.0, np.pi / 2),
            _particle(1.0, np.pi),
            _particle(2.0, 1.0, charge=0),
        ],
        "Track": [
            _reco(5.8, 0.01),
            _reco(0.9, 0.31),
            _reco(0.9, np.pi / 2 + 0.01),
            _reco(0.9, np.pi - 0.01, primary=False),
        ],
    }
    below = {
        "MCParticle": [_particle(2.0, 0.0), _particle(1.0, np.pi / 2)],
        "Track": [_reco(1.9, 0.0), _reco(0.9, np.pi / 2)],
    }
    events = []
    for content in (in_window, below):
        events.append(
            {
                "pass_event_cuts": True,
                "Vertex": {"z": 0.5, "n_contributors": 10},
                **content,
            }
        )
    return ak.Array(events)


@pytest.fixture
def kno_data_events(kno_mc_events):
    """The simulated events without generated particles, with estimators."""
    events = kno_mc_events[["pass_event_cuts", "Vertex", "Track"]]
    events = ak.with_field(events, np.array([12, 3]), "ref_mult08")
    events = ak.with_field(events, np.array([2.5, 60.0]), "v0m_percentile")
    return events


@pytest.fixture
def kaon_tracks():
    """Jagged kaon candidates: (+, +, -) and (+)."""
    kaon_mass = 0.493677
    return ak.Array(
        [
            [
                {"pt": 1.0, "eta": 0.1, "phi": 0.2, "charge": 1, "mass": kaon_mass},
                {"pt": 0.8, "eta": -0.2, "phi": 0.5, "charge": 1, "mass": kaon_mass},
                {"pt": 1.2, "eta": 0.0, "phi": 0.3, "charge": -1, "mass": kaon_mass},
            ],
            [
                {"pt": 0.7, "eta": 0.4, "phi": -1.0, "charge": 1, "mass": kaon_mass},
            ],
        ]
    )
