"""
Generic pair analysis functions.

A :class:`PairFunction` defines one output histogram whose axes are computed
from the pair (and event) currently set on it. The resonance task builds the
pairs of every batch, hands them to each function and calls :meth:`fill`; new
kinds of computation are added by subclassing and overriding
:meth:`PairFunction.init_histogram` and :meth:`PairFunction.fill`.
"""

import copy
import logging
from dataclasses import dataclass
from typing import Any, List, Optional, Sequence

import awkward as ak
import hist
import numpy as np

from utils.binning import AxisType
from utils.histograms import SparseHist, fill_checked
from utils.kinematics import transverse_mass

logger = logging.getLogger(__name__)


@dataclass
class PairDef:
    """Daughter mass hypotheses and charges defining a pair type."""

    name: str
    mass1: float
    mass2: float
    charge1: int
    charge2: int
    mother_pdg: int = 0

    @property
    def is_symmetric(self) -> bool:
        """True if both daughters share the same hypothesis and charge."""
        return self.mass1 == self.mass2 and self.charge1 == self.charge2


class PairParticle:
    """
    Columnar set of two-daughter pairs.

    ``daughter1``/``daughter2`` are ``Momentum4D`` arrays carrying the pair
    definition masses; ``mc1``/``mc2`` the matching generated momenta, when
    available, and ``is_true`` flags pairs from the same mother.
    """

    def __init__(self, daughter1, daughter2, mc1=None, mc2=None, is_true=None) -> None:
        self.daughter1 = daughter1
        self.daughter2 = daughter2
        self.mc1 = mc1
        self.mc2 = mc2
        if is_true is None:
            is_true = np.zeros(len(daughter1), dtype=bool)
        self.is_true = np.asarray(is_true, dtype=bool)

    def __len__(self) -> int:
        return len(self.daughter1)

    def __getitem__(self, mask) -> "PairParticle":
        return PairParticle(
            self.daughter1[mask],
            self.daughter2[mask],
            None if self.mc1 is None else self.mc1[mask],
            None if self.mc2 is None else self.mc2[mask],
            self.is_true[mask],
        )

    @property
    def has_mc(self) -> bool:
        return self.mc1 is not None and self.mc2 is not None

    @property
    def mother(self):
        return self.daughter1 + self.daughter2

    @property
    def mother_mc(self):
        if not self.has_mc:
            raise ValueError("Pairs carry no generated momenta")
        return self.mc1 + self.mc2


class FunctionAxis:
    """One histogram axis of a pair function: an observable and its binning."""

    def __init__(
        self,
        axis_type: AxisType,
        nbins: Optional[int] = None,
        low: Optional[float] = None,
        high: Optional[float] = None,
        edges: Optional[Sequence[float]] = None,
    ) -> None:
        self.axis_type = AxisType(axis_type)
        if edges is None and None in (nbins, low, high):
            raise ValueError(
                f"Axis {self.axis_type.name}: give either edges or nbins, low and high"
            )
        self.nbins = nbins
        self.low = low
        self.high = high
        self.edges = None if edges is None else list(edges)

    def __repr__(self) -> str:
        if self.edges is not None:
            return f"FunctionAxis({self.axis_type.name}, edges={self.edges})"
        return f"FunctionAxis({self.axis_type.name}, {self.nbins}, {self.low}, {self.high})"

    @property
    def name(self) -> str:
        return self.axis_type.name.lower()

    def hist_axis(self):
        if self.edges is not None:
            return hist.axis.Variable(self.edges, name=self.name, label=self.name)
        return hist.axis.Regular(self.nbins, self.low, self.high, name=self.name, label=self.name)

    def eval(self, pair: PairParticle, event: Any = None) -> np.ndarray:
        """
        Value of the observable for every pair.

        Parameters
        ----------
        pair : PairParticle
            Pairs being processed.
        event : mapping, optional
            Per-pair event quantities; ``EVENT_MULT`` reads ``event["multiplicity"]``.
        """
        kind = self.axis_type
        if kind == AxisType.TRACK1_P:
            values = pair.daughter1.p
        elif kind == AxisType.TRACK2_P:
            values = pair.daughter2.p
        elif kind == AxisType.TRACK1_PT:
            values = pair.daughter1.pt
        elif kind == AxisType.TRACK2_PT:
            values = pair.daughter2.pt
        elif kind == AxisType.PAIR_INV_MASS:
            values = pair.mother.mass
        elif kind == AxisType.PAIR_INV_MASS_MC:
            values = pair.mother_mc.mass
        elif kind == AxisType.PAIR_INV_MASS_RES:
            mass_mc = pair.mother_mc.mass
            values = (mass_mc - pair.mother.mass) / mass_mc
        elif kind == AxisType.PAIR_PT:
            values = pair.mother.pt
        elif kind == AxisType.PAIR_ETA:
            values = pair.mother.eta
        elif kind == AxisType.PAIR_MT:
            values = transverse_mass(pair.mother)
        elif kind == AxisType.PAIR_Y:
            values = pair.mother.rapidity
        elif kind == AxisType.EVENT_MULT:
            if event is None:
                raise ValueError("EVENT_MULT axis needs an event")
            values = event["multiplicity"]
        else:
            raise ValueError(f"Unsupported axis type {kind!r}")
        return np.asarray(ak.to_numpy(values) if isinstance(values, ak.Array) else values, dtype=float)


class PairFunction:
    """
    Base class of computations over the pairs of the current event batch.

    Flags
    -----
    only_true : bool
        Keep only pairs whose daughters come from the same mother.
    mixing : bool
        The function is filled with pairs built across different events.
    """

    def __init__(
        self,
        pair_def: Optional[PairDef] = None,
        only_true: bool = False,
        mixing: bool = False,
    ) -> None:
        self.pair_def = pair_def
        self.only_true = only_true
        self.mixing = mixing
        self.axes: List[FunctionAxis] = []
        self.track = None
        self.pair: Optional[PairParticle] = None
        self.event = None
        self.histogram: Optional[SparseHist] = None

    def clone(self) -> "PairFunction":
        """Copy definition, flags and axes; the histogram is not copied."""
        other = copy.copy(self)
        other.axes = [copy.copy(axis) for axis in self.axes]
        other.track = other.pair = other.event = None
        other.histogram = None
        return other

    # setters follow the processing sequence of the resonance task
    def set_pair_def(self, pair_def: PairDef) -> None:
        self.pair_def = pair_def

    def set_track(self, track) -> None:
        self.track = track

    def set_pair(self, pair: PairParticle) -> None:
        self.pair = pair

    def set_event(self, event) -> None:
        self.event = event

    @property
    def name(self) -> str:
        parts = [self.pair_def.name if self.pair_def else "noPairDef"]
        parts.extend(axis.name for axis in self.axes)
        if self.only_true:
            parts.append("true")
        if self.mixing:
            parts.append("mix")
        return "_".join(parts)

    @property
    def n_axes(self) -> int:
        return len(self.axes)

    def add_axis(self, axis: FunctionAxis) -> None:
        self.axes.append(axis)

    def create_histogram(self, name: str, title: str) -> SparseHist:
        """Book a sparse histogram with one dimension per axis."""
        if not self.axes:
            raise ValueError(f"{name}: no axes defined")
        self.histogram = SparseHist(
            [axis.hist_axis() for axis in self.axes], name=name, title=title
        )
        return self.histogram

    def init_histogram(self, prefix: str = "") -> SparseHist:
        """Book the output histogram, named after the function."""
        title = ", ".join(axis.name for axis in self.axes)
        return self.create_histogram(f"{prefix}{self.name}", title)

    def fill(self) -> bool:
        """
        Fill the histogram with the current pairs.

        Returns
        -------
        bool
            False if nothing could be filled (no histogram, no pairs, or an
            axis count differing from the histogram dimension).
        """
        if self.histogram is None:
            logger.error(f"{self.name}: histogram not initialised")
            return False
        if self.pair is None:
            logger.error(f"{self.name}: no pair set")
            return False

        pair, event = self.pair, self.event
        if self.only_true:
            pair = pair[pair.is_true]
            if event is not None:
                event = {key: np.asarray(value)[self.pair.is_true] for key, value in event.items()}
        if len(pair) == 0:
            return True

        values = [axis.eval(pair, event) for axis in self.axes]
        return fill_checked(self.histogram, values, caller=self.name)
