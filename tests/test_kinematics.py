import awkward as ak
import numpy as np
import pytest

from utils.binning import ChargeBin, PIDBin, TrackPID
from utils.kinematics import (
    combine_charges,
    combine_pid,
    cos_opening_angle,
    cos_theta_star,
    delta_phi,
    sanitize_pid,
    to_momentum4d,
    transverse_mass,
)


def test_delta_phi_folding():
    """Differences are folded into [-pi/2, 3pi/2)."""
    assert delta_phi(0.5, 0.0) == pytest.approx(0.5)
    assert delta_phi(0.0, 0.5) == pytest.approx(-0.5)
    assert delta_phi(-np.pi, 0.0) == pytest.approx(np.pi)
    assert delta_phi(0.0, np.pi) == pytest.approx(np.pi)
    assert delta_phi(0.0, -1.8) == pytest.approx(1.8)
    assert delta_phi(0.0, 1.8) == pytest.approx(2.0 * np.pi - 1.8)


def test_delta_phi_custom_range_and_jagged():
    """The range is configurable and jagged arrays are supported."""
    assert delta_phi(3.0, 0.0, -np.pi, np.pi) == pytest.approx(3.0)
    assert delta_phi(4.0, 0.0, -np.pi, np.pi) == pytest.approx(4.0 - 2.0 * np.pi)
    phis = ak.Array([[0.1, 2.0], [5.0]])
    folded = delta_phi(phis, ak.Array([0.0, 0.0]))
    assert ak.all(folded >= -np.pi / 2) and ak.all(folded < 3 * np.pi / 2)
    assert ak.to_list(ak.num(folded)) == [2, 1]


def _pions(pt1, phi1, eta1, pt2, phi2, eta2):
    records = ak.Array(
        [{"pt": pt1, "eta": eta1, "phi": phi1}, {"pt": pt2, "eta": eta2, "phi": phi2}]
    )
    p4 = to_momentum4d(records, 0.13957)
    return p4[0:1], p4[1:2]


def test_back_to_back_pair():
    """A back-to-back pair has cos(OA) = -1 and zero transverse momentum."""
    p1, p2 = _pions(0.5, 0.0, 0.0, 0.5, np.pi, 0.0)
    assert ak.to_numpy(cos_opening_angle(p1, p2))[0] == pytest.approx(-1.0)
    mother = p1 + p2
    assert ak.to_numpy(mother.pt)[0] == pytest.approx(0.0, abs=1e-9)
    expected_mass = 2.0 * np.sqrt(0.5**2 + 0.13957**2)
    assert ak.to_numpy(mother.mass)[0] == pytest.approx(expected_mass)
    # the decay angle needs a pair with non-zero momentum
    p1, p2 = _pions(1.0, 0.1, 0.2, 0.6, 0.4, -0.3)
    cts = ak.to_numpy(cos_theta_star(p1, p2))[0]
    assert -1.0 <= cts <= 1.0


def test_transverse_mass():
    """mT = sqrt(m^2 + pT^2)."""
    p4 = to_momentum4d(ak.Array([{"pt": 3.0, "eta": 0.0, "phi": 0.0}]), 4.0)
    assert ak.to_numpy(transverse_mass(p4))[0] == pytest.approx(5.0)


def test_combine_charges():
    """Unlike-sign pairs go to PM, like-sign to PPMM."""
    assert combine_charges(1, -1) == ChargeBin.PM
    assert combine_charges(-1, -1) == ChargeBin.PPMM
    np.testing.assert_array_equal(
        combine_charges(np.array([1, 1]), np.array([-1, 1])), [ChargeBin.PM, ChargeBin.PPMM]
    )


def test_combine_pid():
    """Exclusive, inclusive, single and unknown PID combinations."""
    assert combine_pid(TrackPID.PION, TrackPID.PION) == PIDBin.PION_E
    assert combine_pid(TrackPID.KAON, TrackPID.UNKNOWN) == PIDBin.KAON
    assert combine_pid(TrackPID.UNKNOWN, TrackPID.PROTON) == PIDBin.PROTON
    assert combine_pid(TrackPID.PION, TrackPID.KAON) == PIDBin.SINGLE_PION
    assert combine_pid(TrackPID.ELECTRON, TrackPID.PROTON) == PIDBin.SINGLE_PROTON
    assert combine_pid(TrackPID.UNKNOWN, TrackPID.UNKNOWN) == PIDBin.PID_UNKNOWN
    np.testing.assert_array_equal(
        combine_pid(np.array([4, 2]), np.array([4, 0])), [PIDBin.ELECTRON_E, PIDBin.KAON]
    )


def test_unknown_pid_codes():
    """Codes outside the known species count as unidentified."""
    np.testing.assert_array_equal(sanitize_pid(np.array([-1, 2, 9])), [TrackPID.UNKNOWN, TrackPID.KAON, TrackPID.UNKNOWN])
    assert sanitize_pid(-1) == TrackPID.UNKNOWN
    assert combine_pid(-1, TrackPID.PION) == PIDBin.PION
    np.testing.assert_array_equal(
        combine_pid(np.array([-1, 7]), np.array([-1, 2])), [PIDBin.PID_UNKNOWN, PIDBin.KAON]
    )
