import logging
from typing import Dict, List, Tuple

import awkward as ak
import numpy as np

from analysis.base import AnalysisTask
from analysis.function import FunctionAxis, PairDef, PairFunction, PairParticle
from utils.kinematics import to_momentum4d
from utils.schema import ResonanceConfig, parse_binning

logger = logging.getLogger("ResonanceTask")


def build_functions(config: ResonanceConfig) -> Tuple[Dict[str, PairDef], List[PairFunction]]:
    """
    Instantiate pair definitions and pair functions from the configuration.

    Returns
    -------
    tuple
        (pair definitions by name, list of pair functions)
    """
    pair_defs = {
        pd.name: PairDef(pd.name, pd.mass1, pd.mass2, pd.charge1, pd.charge2, pd.mother_pdg)
        for pd in config.pair_defs
    }
    functions = []
    for fcfg in config.functions:
        function = PairFunction(pair_defs[fcfg.pair_def], fcfg.only_true, fcfg.mixing)
        for acfg in fcfg.axes:
            binning = parse_binning(acfg.binning)
            if isinstance(binning, tuple):
                function.add_axis(FunctionAxis(acfg.type, *binning))
            else:
                function.add_axis(FunctionAxis(acfg.type, edges=binning))
        functions.append(function)
    return pair_defs, functions


def _true_pair_mask(first: ak.Array, second: ak.Array, mother_pdg: int) -> np.ndarray:
    if "mother" not in first.fields or "mother_pdg" not in first.fields:
        return np.zeros(len(first), dtype=bool)
    same_mother = (first.mother >= 0) & (first.mother == second.mother)
    if mother_pdg:
        same_mother = same_mother & (abs(first.mother_pdg) == abs(mother_pdg))
    return ak.to_numpy(same_mother)


def make_pairs(tracks: ak.Array, pair_def: PairDef, mixing: bool = False) -> Tuple[PairParticle, np.ndarray]:
    """
    Build the pairs of a batch for one pair definition.

    Parameters
    ----------
    tracks : ak.Array
        Jagged track collection with ``pt``, ``eta``, ``phi``, ``charge``;
        optionally ``mc_pt``, ``mc_eta``, ``mc_phi``, ``mother``, ``mother_pdg``.
    pair_def : PairDef
        Charges and mass hypotheses of the daughters.
    mixing : bool, optional
        If True the second daughter is taken from the next event of the batch
        (the last event is mixed with the first).

    Returns
    -------
    tuple
        (flat ``PairParticle``, event index of every pair)
    """
    tracks = ak.with_field(tracks, ak.local_index(tracks, axis=1), "index")
    first = tracks[tracks.charge == pair_def.charge1]
    second = tracks[tracks.charge == pair_def.charge2]

    if mixing:
        second = second[np.roll(np.arange(len(tracks)), -1)]
        pairs = ak.cartesian([first, second], axis=1)
    elif pair_def.is_symmetric:
        pairs = ak.combinations(first, 2, axis=1)
    else:
        pairs = ak.cartesian([first, second], axis=1)
        pairs = pairs[pairs["0"]["index"] != pairs["1"]["index"]]

    event_index = ak.to_numpy(ak.flatten(ak.broadcast_arrays(ak.local_index(pairs, axis=0), pairs["0"].pt)[0]))
    d1 = ak.flatten(pairs["0"])
    d2 = ak.flatten(pairs["1"])

    mc1 = mc2 = None
    if "mc_pt" in d1.fields:
        mc1 = to_momentum4d(ak.zip({"pt": d1.mc_pt, "eta": d1.mc_eta, "phi": d1.mc_phi}), pair_def.mass1)
        mc2 = to_momentum4d(ak.zip({"pt": d2.mc_pt, "eta": d2.mc_eta, "phi": d2.mc_phi}), pair_def.mass2)

    is_true = np.zeros(len(d1), dtype=bool) if mixing else _true_pair_mask(d1, d2, pair_def.mother_pdg)
    pair = PairParticle(
        to_momentum4d(d1, pair_def.mass1),
        to_momentum4d(d2, pair_def.mass2),
        mc1,
        mc2,
        is_true,
    )
    return pair, event_index


class ResonanceTask(AnalysisTask):
    """Fills every configured pair function from same-event and mixed pairs."""

    def __init__(self, config: ResonanceConfig, seed=None) -> None:
        super().__init__("ResonanceTask", config, seed)
        self.pair_defs, self.functions = build_functions(config)

    def create_output_objects(self) -> None:
        for function in self.functions:
            self.add_output(function.init_histogram(prefix="RSN_"))

    def required_fields(self):
        return ("Track",)

    def process(self, events: ak.Array) -> None:
        tracks = events.Track
        multiplicity = ak.to_numpy(ak.num(tracks, axis=1))

        for pair_def in self.pair_defs.values():
            for mixing in (False, True):
                functions = [
                    f for f in self.functions if f.pair_def is pair_def and f.mixing == mixing
                ]
                if not functions:
                    continue
                if mixing and len(events) < 2:
                    logger.warning("Event mixing needs at least two events per batch")
                    continue
                pairs, event_index = make_pairs(tracks, pair_def, mixing=mixing)
                logger.debug(
                    f"{pair_def.name}: {len(pairs)} {'mixed' if mixing else 'same-event'} pairs"
                )
                event = {"multiplicity": multiplicity[event_index]}
                for function in functions:
                    function.set_pair(pairs)
                    function.set_event(event)
                    if not function.fill():
                        logger.warning(f"{function.name}: fill skipped")
