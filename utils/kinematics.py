import logging

import awkward as ak
import numpy as np
import vector

from utils.binning import ChargeBin, PIDBin, TrackPID

logger = logging.getLogger(__name__)

# -----------------------------
# Register backends
# -----------------------------
vector.register_awkward()

# (exclusive, inclusive, single) combination bins per identified species
_PID_BINS = {
    TrackPID.PION: (PIDBin.PION_E, PIDBin.PION, PIDBin.SINGLE_PION),
    TrackPID.KAON: (PIDBin.KAON_E, PIDBin.KAON, PIDBin.SINGLE_KAON),
    TrackPID.PROTON: (PIDBin.PROTON_E, PIDBin.PROTON, PIDBin.SINGLE_PROTON),
    TrackPID.ELECTRON: (PIDBin.ELECTRON_E, PIDBin.ELECTRON, PIDBin.SINGLE_ELECTRON),
}


def to_momentum4d(particles: ak.Array, mass=None) -> ak.Array:
    """
    Zip (pt, eta, phi, mass) of a collection into ``Momentum4D`` records.

    Parameters
    ----------
    particles : ak.Array
        Collection with ``pt``, ``eta`` and ``phi`` fields and, unless
        ``mass`` is given, a ``mass`` field.
    mass : float or ak.Array, optional
        Mass hypothesis replacing the stored mass.

    Returns
    -------
    ak.Array
        Four-momenta with ``vector`` behaviour.
    """
    if mass is None:
        mass = particles.mass
    return ak.zip(
        {
            "pt": particles.pt,
            "eta": particles.eta,
            "phi": particles.phi,
            "mass": particles.pt * 0 + mass,
        },
        with_name="Momentum4D",
    )


def delta_phi(phi_a, phi_b, range_min: float = -np.pi / 2.0, range_max: float = 3.0 * np.pi / 2.0):
    """
    Azimuthal difference ``phi_a - phi_b`` folded into [range_min, range_max).

    Works on scalars, numpy and (jagged) awkward arrays.
    """
    period = range_max - range_min
    return np.mod(phi_a - phi_b - range_min, period) + range_min


def cos_opening_angle(p1, p2):
    """Cosine of the lab-frame opening angle between two momenta."""
    dot = p1.px * p2.px + p1.py * p2.py + p1.pz * p2.pz
    return dot / (p1.p * p2.p)


def cos_theta_star(p1, p2):
    """
    Cosine of the angle between the first daughter, boosted into the pair
    rest frame, and the pair flight direction.
    """
    mother = p1 + p2
    daughter = p1.boostCM_of_p4(mother)
    dot = daughter.px * mother.px + daughter.py * mother.py + daughter.pz * mother.pz
    norm = daughter.p * mother.p
    # pairs at rest have no flight direction, cos = 1 as for a null vector angle
    with np.errstate(divide="ignore", invalid="ignore"):
        cos = dot / norm
    return ak.where(norm > 0, cos, 1.0)


def transverse_mass(p):
    """sqrt(m^2 + pT^2) of a four-momentum."""
    return np.sqrt(p.mass**2 + p.pt**2)


def combine_charges(charge1, charge2):
    """``ChargeBin.PM`` for unlike-sign pairs, ``ChargeBin.PPMM`` otherwise."""
    unlike = np.asarray(charge1) * np.asarray(charge2) < 0
    result = np.where(unlike, int(ChargeBin.PM), int(ChargeBin.PPMM))
    return int(result) if result.ndim == 0 else result


def sanitize_pid(pid):
    """Map PID codes outside ``TrackPID`` (e.g. -1) to ``TrackPID.UNKNOWN``."""
    pid = np.asarray(pid, dtype=np.int64)
    known = np.isin(pid, [int(p) for p in TrackPID])
    result = np.where(known, pid, int(TrackPID.UNKNOWN))
    return int(result) if result.ndim == 0 else result


def _combine_pid_scalar(pid1: int, pid2: int) -> int:
    pid1, pid2 = TrackPID(sanitize_pid(pid1)), TrackPID(sanitize_pid(pid2))
    if pid1 == pid2:
        if pid1 == TrackPID.UNKNOWN:
            return int(PIDBin.PID_UNKNOWN)
        return int(_PID_BINS[pid1][0])
    if TrackPID.UNKNOWN in (pid1, pid2):
        identified = pid2 if pid1 == TrackPID.UNKNOWN else pid1
        return int(_PID_BINS[identified][1])
    # two different identified species: the lighter hypothesis wins
    return int(_PID_BINS[min(pid1, pid2)][2])


def combine_pid(pid1, pid2):
    """
    Two-track PID combination bin.

    Both tracks of the same species give the exclusive bin (e.g. ``PION_E``),
    one identified track next to an unidentified one gives the inclusive bin
    (``PION``), two different species give the single bin of the species
    listed first in ``TrackPID`` (``SINGLE_PION``), and two unidentified
    tracks give ``PID_UNKNOWN``.
    """
    if np.ndim(pid1) == 0 and np.ndim(pid2) == 0:
        return _combine_pid_scalar(pid1, pid2)
    combine = np.vectorize(_combine_pid_scalar, otypes=[np.int64])
    return combine(np.asarray(pid1), np.asarray(pid2))
