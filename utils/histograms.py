import logging
from typing import Dict, Iterable, List, Sequence, Tuple, Union

import hist
import numpy as np

from utils.binning import AxisSpec

logger = logging.getLogger(__name__)

# upper bound of entries accepted when parsing a histogram title
MAX_TITLE_ENTRIES = 20
CLAMP_EPSILON = 1e-3

ArrayLike = Union[float, int, np.ndarray, Sequence[float]]


def _axis_index(axis, values):
    # integer axes map value v to bin v - start exactly
    if isinstance(axis, hist.axis.Integer):
        return axis.index(np.rint(values).astype(np.int64))
    return axis.index(values)


class SparseHist:
    """
    N-dimensional histogram storing only the bins that received entries.

    Each axis is a regular, variable or integer ``hist`` axis (with under-
    and overflow), the contents live in a mapping
    ``bin-index tuple -> [sumw, sumw2]``. Flow bins use the ``hist``
    convention: index -1 is the underflow and ``axis.size`` the overflow.
    """

    def __init__(self, axes: Iterable, name: str = "", title: str = "") -> None:
        self.axes: Tuple = tuple(axes)
        self.name = name
        self.title = title
        self.entries = 0
        self._bins: Dict[Tuple[int, ...], List[float]] = {}

    def __repr__(self) -> str:
        return (
            f"SparseHist(name={self.name!r}, ndim={self.ndim}, "
            f"filled_bins={self.n_filled_bins}, entries={self.entries})"
        )

    @property
    def ndim(self) -> int:
        return len(self.axes)

    @property
    def n_filled_bins(self) -> int:
        return len(self._bins)

    def fill(self, *values: ArrayLike, weight: ArrayLike = 1.0) -> None:
        """
        Fill one point per row of the broadcast ``values``.

        Parameters
        ----------
        *values : float or array-like
            One coordinate (or an array of coordinates) per dimension.
        weight : float or array-like, optional
            Weight of each point, by default 1.

        Raises
        ------
        ValueError
            If the number of coordinates differs from ``ndim``.
        """
        if len(values) != self.ndim:
            raise ValueError(
                f"{self.name}: expected {self.ndim} coordinates, got {len(values)}"
            )

        coords = np.broadcast_arrays(
            *[np.atleast_1d(np.asarray(v, dtype=float)) for v in values]
        )
        n_points = coords[0].size
        if n_points == 0:
            return
        weights = np.broadcast_to(np.asarray(weight, dtype=float), coords[0].shape).ravel()

        indices = np.stack(
            [np.asarray(_axis_index(axis, c.ravel())) for axis, c in zip(self.axes, coords)],
            axis=-1,
        )
        unique_bins, inverse = np.unique(indices, axis=0, return_inverse=True)
        inverse = inverse.ravel()
        sumw = np.bincount(inverse, weights=weights, minlength=len(unique_bins))
        sumw2 = np.bincount(inverse, weights=weights**2, minlength=len(unique_bins))

        for key, w, w2 in zip(map(tuple, unique_bins.tolist()), sumw, sumw2):
            content = self._bins.setdefault(key, [0.0, 0.0])
            content[0] += w
            content[1] += w2
        self.entries += n_points

    def find_bin(self, *values: float) -> Tuple[int, ...]:
        """Bin-index tuple of a single point."""
        return tuple(int(_axis_index(axis, v)) for axis, v in zip(self.axes, values))

    def get_bin_content(self, index: Sequence[int]) -> float:
        return self._bins.get(tuple(index), (0.0, 0.0))[0]

    def get_bin_error(self, index: Sequence[int]) -> float:
        return float(np.sqrt(self._bins.get(tuple(index), (0.0, 0.0))[1]))

    def sum(self) -> float:
        """Sum of weights over all bins, flow included."""
        return float(sum(content[0] for content in self._bins.values()))

    def items(self):
        """Iterate over ``(bin-index tuple, (sumw, sumw2))`` of filled bins."""
        for key, content in self._bins.items():
            yield key, tuple(content)

    def axis_index(self, axis: Union[int, str]) -> int:
        if isinstance(axis, int):
            return axis
        for idx, ax in enumerate(self.axes):
            if axis in (ax.name, ax.label):
                return idx
        raise KeyError(f"{self.name}: no axis named '{axis}'")

    def project(self, *axes: Union[int, str]) -> hist.Hist:
        """
        Project onto a subset of axes as a dense ``hist.Hist``.

        Parameters
        ----------
        *axes : int or str
            Axis positions or names to keep, in output order.

        Returns
        -------
        hist.Hist
            Dense histogram with weight storage; flow bins are kept.
        """
        keep = [self.axis_index(ax) for ax in axes]
        projection = hist.Hist(
            *[self.axes[i] for i in keep],
            storage=hist.storage.Weight(),
            name=self.name,
        )
        shape = tuple(self.axes[i].size + 2 for i in keep)
        sumw = np.zeros(shape)
        sumw2 = np.zeros(shape)
        if self._bins:
            keys = np.array(list(self._bins.keys()), dtype=int)
            contents = np.array(list(self._bins.values()))
            # shift by one so that the underflow lands on position 0
            positions = tuple(keys[:, i] + 1 for i in keep)
            np.add.at(sumw, positions, contents[:, 0])
            np.add.at(sumw2, positions, contents[:, 1])

        view = projection.view(flow=True)
        view["value"][...] = sumw
        view["variance"][...] = sumw2
        return projection

    def to_hist(self) -> hist.Hist:
        """Dense copy with every axis; only sensible for small histograms."""
        return self.project(*range(self.ndim))

    def reset(self) -> None:
        self._bins.clear()
        self.entries = 0


def make_sparse(name: str, title: str, specs: Sequence[AxisSpec]) -> SparseHist:
    """
    Build a sparse histogram from a binning table.

    Parameters
    ----------
    name : str
        Histogram name, used as output key.
    title : str
        Comma separated list of axis titles, one per spec.
    specs : Sequence[AxisSpec]
        Axis binning, in the same order as the title entries.

    Returns
    -------
    SparseHist
        Empty histogram.
    """
    labels = [token.strip() for token in title.split(",")]
    if len(labels) != len(specs):
        raise ValueError(
            f"{name}: title lists {len(labels)} axes but {len(specs)} binnings given"
        )
    axes = []
    for label, spec in zip(labels, specs):
        axes.append(AxisSpec(label, spec.nbins, spec.low, spec.high).regular(label))
    return SparseHist(axes, name=name, title=title)


def check_range(value: ArrayLike, low: float, high: float, eps: float = CLAMP_EPSILON):
    """
    Clamp ``value`` into the open interval (low, high).

    Values at or above ``high`` become ``high - eps``, values at or below
    ``low`` become ``low + eps``. Scalars stay scalars.
    """
    if np.ndim(value) == 0:
        value = float(value)
        if value >= high:
            value = high - eps
        if value <= low:
            value = low + eps
        return value

    clamped = np.asarray(value, dtype=float).copy()
    clamped[clamped >= high] = high - eps
    clamped[clamped <= low] = low + eps
    return clamped


def get_axis(title: str, name: str) -> int:
    """
    Axis number of ``name`` in a comma separated histogram title.

    The comparison ignores case and whitespace. Returns -1 and logs an error
    when the axis is missing or the title lists too many axes.
    """
    entries = title.upper().replace(" ", "").split(",")
    if len(entries) >= MAX_TITLE_ENTRIES:
        logger.error(
            f"Title lists {len(entries)} axes, at most {MAX_TITLE_ENTRIES - 1} supported"
        )
        return -1

    wanted = name.upper()
    for idx, entry in enumerate(entries):
        if entry == wanted:
            return idx

    logger.error(f"Axis '{wanted}' not found in '{','.join(entries)}'")
    for idx, entry in enumerate(entries):
        logger.debug(f"  axis {idx}: '{entry}'")
    return -1


def fill_checked(thn: SparseHist, values: Sequence[ArrayLike], caller: str, weight: ArrayLike = 1.0) -> bool:
    """
    Fill ``thn`` after checking the number of coordinates.

    A mismatch between ``len(values)`` and the histogram dimension is logged
    and the fill skipped.

    Returns
    -------
    bool
        True if the histogram was filled.
    """
    if len(values) != thn.ndim:
        logger.error(
            f"{caller}: dimension mismatch, {len(values)} values for "
            f"{thn.ndim}-dimensional histogram '{thn.name}'"
        )
        return False
    thn.fill(*values, weight=weight)
    return True


def regular_hist(name: str, *specs: AxisSpec, title: str = "") -> hist.Hist:
    """Dense ``hist.Hist`` with regular axes and double storage."""
    return hist.Hist(
        *[spec.regular() for spec in specs],
        storage=hist.storage.Double(),
        name=name,
        label=title or name,
    )


def variable_axis(edges: Sequence[float], name: str, label: str = None) -> hist.axis.Variable:
    return hist.axis.Variable(list(edges), name=name, label=label or name)


def labelled_axis(labels: Sequence[str], name: str, label: str = None) -> hist.axis.StrCategory:
    """Category axis whose bins carry the given labels, in order."""
    return hist.axis.StrCategory(list(labels), name=name, label=label or name)
