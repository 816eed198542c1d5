import logging
import pickle
from pathlib import Path
from typing import Any, Dict, Union

import hist
import numpy as np
import uproot

from utils.histograms import SparseHist

# Configure module-level logger
logger = logging.getLogger(__name__)

# largest dense dimension ROOT histograms can hold
MAX_ROOT_DIM = 3


def save_histograms_to_pickle(
    histograms: Dict[str, Any],
    pickle_path: Union[str, Path]
) -> None:
    """
    Save an output container to a pickle file.

    Parameters
    ----------
    histograms : dict
        Mapping from output names to histogram objects (dense or sparse).
    pickle_path : str or Path
        Path to the output pickle file. The directory will be
        created if it does not exist.

    Raises
    ------
    IOError
        If writing to the pickle file fails.
    """
    path = Path(pickle_path)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("wb") as file:
            pickle.dump(histograms, file)
        logger.info(f"Histograms successfully pickled to {path}")
    except Exception as exc:
        logger.error(f"Failed to pickle histograms to {path}: {exc}")
        raise


def load_histograms_from_pickle(
    pickle_path: Union[str, Path]
) -> Dict[str, Any]:
    """
    Load an output container from a pickle file.

    Raises
    ------
    FileNotFoundError
        If the specified pickle file does not exist.
    """
    path = Path(pickle_path)
    if not path.exists():
        raise FileNotFoundError(f"Pickle file not found: {path}")

    try:
        with path.open("rb") as file:
            histograms = pickle.load(file)
        logger.info(f"Histograms successfully loaded from {path}")
        return histograms
    except Exception as exc:
        logger.error(f"Failed to load histograms from {path}: {exc}")
        raise


def _to_writable(h: hist.Hist):
    """Category axes are written as plain bin numbers."""
    if any(isinstance(axis, hist.axis.StrCategory) for axis in h.axes):
        if h.ndim == 1:
            return h.values(), np.arange(h.axes[0].size + 1, dtype=float)
        if h.ndim == 2:
            return (
                h.values(),
                np.arange(h.axes[0].size + 1, dtype=float),
                np.arange(h.axes[1].size + 1, dtype=float),
            )
        return None
    return h


def root_objects(histograms: Dict[str, Any]) -> Dict[str, Any]:
    """
    Objects of an output container that can be stored in a ROOT file.

    Dense histograms with up to three axes are kept as they are, sparse
    histograms are replaced by their one-dimensional projections, named
    ``<name>__<axis>``. Everything else is skipped.
    """
    writable: Dict[str, Any] = {}
    for name, obj in histograms.items():
        if isinstance(obj, SparseHist):
            for axis in obj.axes:
                writable[f"{name}__{axis.name}"] = obj.project(axis.name)
        elif isinstance(obj, hist.Hist) and obj.ndim <= MAX_ROOT_DIM:
            converted = _to_writable(obj)
            if converted is None:
                logger.warning(f"Skipping {name}: category histograms above 2D")
                continue
            writable[name] = converted
        else:
            logger.warning(f"Skipping {name}: cannot be written to ROOT")
    return writable


def save_histograms_to_root(
    histograms: Dict[str, Any],
    root_path: Union[str, Path],
    skip_empty: bool = True,
) -> None:
    """
    Save histograms to a ROOT file using uproot.

    Parameters
    ----------
    histograms : dict
        Output container; see :func:`root_objects` for what gets written.
    root_path : str or Path
        Path to the output ROOT (.root) file. The directory will be
        created if it does not exist.
    skip_empty : bool, optional
        If True (default), histograms without entries are not written.
    """
    path = Path(root_path)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with uproot.recreate(str(path)) as root_file:
            for key, obj in root_objects(histograms).items():
                values = obj[0] if isinstance(obj, tuple) else obj.values(flow=True)
                if skip_empty and not np.any(values):
                    logger.debug(f"Skipping empty histogram: {key}")
                    continue
                root_file[key] = obj
                logger.debug(f"Saved ROOT histogram: {key}")
        logger.info(f"Histograms successfully written to ROOT file {path}")
    except Exception as exc:
        logger.error(f"Failed to write ROOT file {path}: {exc}")
        raise
