import logging
from pathlib import Path
from typing import Any, Dict, Optional, Sequence, Union

import hist
import matplotlib

matplotlib.use("Agg")

import matplotlib.pyplot as plt
import mplhep as hep
import numpy as np

from utils.histograms import SparseHist

logger = logging.getLogger(__name__)

REGION_COLORS = {"toward": "tab:blue", "transverse": "tab:orange", "away": "tab:green"}


def _save(fig: plt.Figure, path: Union[str, Path]) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    fig.savefig(path, bbox_inches="tight")
    plt.close(fig)
    logger.debug(f"Saved figure {path}")
    return path


def plot_kno_distributions(
    outputs: Dict[str, Any],
    path: Union[str, Path],
    names: Optional[Sequence[str]] = None,
) -> Optional[Path]:
    """
    Overlay KNO-scaled multiplicity distributions.

    Parameters
    ----------
    outputs : Dict[str, Any]
        Output container of the multiplicity task.
    path : str or Path
        Destination of the figure.
    names : Sequence[str], optional
        Output names to draw; by default every ``*_KNO`` histogram.

    Returns
    -------
    Path or None
        Path of the figure, None if there was nothing to draw.
    """
    if names is None:
        names = [name for name in outputs if name.endswith("_KNO")]
    names = [name for name in names if name in outputs]
    if not names:
        logger.warning("No KNO distributions to draw")
        return None

    hep.style.use("ALICE")
    fig, ax = plt.subplots(figsize=(8, 6))
    for name in names:
        hep.histplot(outputs[name], ax=ax, label=name.replace("_KNO", ""))
    ax.set_yscale("log")
    ax.set_xlabel(r"$z = N_{ch}/\langle N_{ch}\rangle$")
    ax.set_ylabel(r"$\langle N_{ch}\rangle P(N_{ch})$")
    ax.legend(fontsize="small")
    return _save(fig, path)


def plot_stats_flow(stats_flow: hist.Hist, path: Union[str, Path]) -> Path:
    """Bar chart of the event counts per selection stage."""
    labels = list(stats_flow.axes[0])
    counts = stats_flow.values()

    fig, ax = plt.subplots(figsize=(10, 6))
    ax.bar(np.arange(len(labels)), counts, color="tab:blue")
    ax.set_xticks(np.arange(len(labels)))
    ax.set_xticklabels(labels, rotation=90, fontsize="small")
    ax.set_yscale("log")
    ax.set_ylabel("Events")
    return _save(fig, path)


def plot_projection(thn: SparseHist, axis: Union[int, str], path: Union[str, Path]) -> Path:
    """Draw the one-dimensional projection of a sparse histogram."""
    projection = thn.project(axis)
    fig, ax = plt.subplots(figsize=(8, 6))
    hep.histplot(projection, ax=ax, histtype="errorbar", color="black")
    ax.set_xlabel(projection.axes[0].label)
    ax.set_ylabel("Entries")
    ax.set_title(thn.name)
    return _save(fig, path)


def plot_phi_by_region(outputs: Dict[str, Any], level: str, path: Union[str, Path]) -> Optional[Path]:
    """Azimuthal distributions of the three regions at one level ("Gen" or "Rec")."""
    names = {region: f"hPhi{level}_{region}" for region in REGION_COLORS}
    if not any(name in outputs for name in names.values()):
        return None

    fig, ax = plt.subplots(figsize=(8, 6))
    for region, name in names.items():
        if name in outputs:
            hep.histplot(outputs[name], ax=ax, label=region, color=REGION_COLORS[region])
    ax.set_xlabel(r"$\varphi$ (rad)")
    ax.set_ylabel("Particles")
    ax.legend()
    return _save(fig, path)
