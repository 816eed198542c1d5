import glob
import logging
from pathlib import Path
from typing import Dict, Iterator, List, Union

import awkward as ak
import uproot
from tabulate import tabulate
from tqdm import tqdm

from utils.schema import DatasetConfig

# Configure module-level logger
logger = logging.getLogger(__name__)


def resolve_files(dataset: DatasetConfig, max_files: int = -1) -> List[str]:
    """
    Expand the file patterns of a dataset.

    Parameters
    ----------
    dataset : DatasetConfig
        Dataset definition; entries of ``files`` may be glob patterns.
    max_files : int, optional
        Maximum number of files to keep, -1 (default) for all.

    Returns
    -------
    list of str
        Sorted, de-duplicated file paths.

    Raises
    ------
    FileNotFoundError
        If no file matches the patterns of the dataset.
    """
    if max_files < -1:
        raise ValueError(f"max_files must be -1 or non-negative; got {max_files}")

    files: List[str] = []
    for pattern in dataset.files:
        matches = sorted(glob.glob(pattern)) if glob.has_magic(pattern) else [pattern]
        files.extend(m for m in matches if m not in files)

    if not files:
        raise FileNotFoundError(f"No input files found for dataset '{dataset.name}'")
    if max_files != -1:
        files = files[:max_files]

    logger.debug(f"Dataset {dataset.name}: {len(files)} files")
    return files


def log_dataset_summary(datasets: List[DatasetConfig], max_files: int = -1) -> None:
    """Log a table with the resolved inputs of every dataset."""
    summary_data = []
    for dataset in datasets:
        files = resolve_files(dataset, max_files)
        summary_data.append(
            [dataset.name, "MC" if dataset.is_mc else "data", dataset.tree_name, len(files)]
        )
    logger.info(
        "Dataset Summary:\n"
        + tabulate(summary_data, headers=["Dataset", "Type", "Tree", "# Files"], tablefmt="grid")
    )


def group_collections(arrays: ak.Array) -> ak.Array:
    """
    Build the event record from flat branches.

    Branches named ``<Collection>_<field>``, with a capitalised collection
    name, are zipped into one collection per prefix; all other branches
    stay per-event fields. Counters ``n<Collection>`` are dropped once their
    collection is built.

    Parameters
    ----------
    arrays : ak.Array
        Record array as returned by ``uproot`` with ``library="ak"``.

    Returns
    -------
    ak.Array
        Events with jagged (or per-event) collection records.
    """
    collections: Dict[str, Dict[str, ak.Array]] = {}
    flat: Dict[str, ak.Array] = {}
    for branch in arrays.fields:
        prefix, _, field = branch.partition("_")
        if field and prefix[:1].isupper():
            collections.setdefault(prefix, {})[field] = arrays[branch]
        else:
            flat[branch] = arrays[branch]

    for name, fields in collections.items():
        flat.pop(f"n{name}", None)
        # jagged collections zip per particle, per-event records stay flat
        flat[name] = ak.zip(fields)

    return ak.zip(flat, depth_limit=1)


def iterate_events(
    dataset: DatasetConfig,
    step_size: int = 100_000,
    max_files: int = -1,
) -> Iterator[ak.Array]:
    """
    Iterate over the events of a dataset in batches.

    Parameters
    ----------
    dataset : DatasetConfig
        Dataset to read.
    step_size : int, optional
        Number of events per batch.
    max_files : int, optional
        Maximum number of files to read, -1 for all.

    Yields
    ------
    ak.Array
        Batches of events with grouped collections.
    """
    files = resolve_files(dataset, max_files)
    iterable = uproot.iterate(
        {path: dataset.tree_name for path in files},
        step_size=step_size,
        library="ak",
    )
    for arrays in tqdm(iterable, desc=f"Reading {dataset.name}", unit="chunk"):
        if len(arrays) == 0:
            logger.debug("Empty chunk, skipping")
            continue
        yield group_collections(arrays)


def write_events(events: ak.Array, path: Union[str, Path], tree_name: str = "Events") -> None:
    """
    Write events to a ROOT tree readable by :func:`iterate_events`.

    Jagged collections become ``<Collection>_<field>`` branches with a
    ``n<Collection>`` counter, per-event records one branch per field.
    """
    branches: Dict[str, ak.Array] = {}
    for name in events.fields:
        column = events[name]
        if column.fields and column.ndim == 1:
            for field in column.fields:
                branches[f"{name}_{field}"] = column[field]
        else:
            branches[name] = column

    with uproot.recreate(str(path)) as output:
        output[tree_name] = branches
    logger.info(f"Wrote {len(events)} events to {path}:{tree_name}")
