import logging
from typing import Any, Dict, Iterable, List, Optional, Tuple

import awkward as ak
import numpy as np

from utils.logging import format_output_summary

# -----------------------------
# Logging Configuration
# -----------------------------
logger = logging.getLogger("AnalysisTask")


class AnalysisTask:
    """
    Base class for event-processing tasks.

    The host loop calls :meth:`create_output_objects` once, :meth:`process`
    for every batch of events and :meth:`terminate` at the end. Histograms
    are owned by the task and published through the ``output`` container.
    """

    def __init__(self, name: str, config: Any = None, seed: Optional[int] = None) -> None:
        """
        Parameters
        ----------
        name : str
            Task name, used as logger prefix and output label.
        config : Any, optional
            Task configuration section.
        seed : int, optional
            Seed of the task random generator.
        """
        self.name = name
        self.config = config
        self.output: Dict[str, Any] = {}
        self.rng = np.random.default_rng(seed)
        self.n_processed = 0
        self._created = False

    def add_output(self, obj: Any, name: Optional[str] = None) -> Any:
        """
        Register ``obj`` in the output container.

        Raises
        ------
        KeyError
            If an output of the same name already exists.
        """
        key = name or getattr(obj, "name", None)
        if not key:
            raise ValueError("Output objects need a name")
        if key in self.output:
            logger.error(f"{self.name}: duplicate output '{key}'")
            raise KeyError(f"Duplicate output: {key}")
        self.output[key] = obj
        return obj

    def create_output_objects(self) -> None:
        """Book the histograms; called once before the first batch."""
        raise NotImplementedError

    def process(self, events: ak.Array) -> None:
        """Fill the histograms from one batch of events."""
        raise NotImplementedError

    def terminate(self) -> None:
        """Post-process the filled histograms; called after the last batch."""
        logger.info(
            f"{self.name}: processed {self.n_processed} events\n"
            + format_output_summary(self.output)
        )

    def ensure_created(self) -> None:
        if not self._created:
            self.create_output_objects()
            self._created = True

    def required_fields(self) -> Tuple[str, ...]:
        """Event fields read by :meth:`process`."""
        return ()

    def check_fields(self, events: ak.Array) -> None:
        """
        Raises
        ------
        KeyError
            If a field listed by :meth:`required_fields` is missing.
        """
        missing = [field for field in self.required_fields() if field not in events.fields]
        if missing:
            logger.error(f"{self.name}: input lacks {missing}, available: {events.fields}")
            raise KeyError(f"Missing input fields: {missing}")

    def __call__(self, events: ak.Array) -> None:
        self.ensure_created()
        self.check_fields(events)
        self.process(events)
        self.n_processed += len(events)


def run_task(task: AnalysisTask, batches: Iterable[ak.Array]) -> Dict[str, Any]:
    """
    Drive ``task`` over event batches.

    Parameters
    ----------
    task : AnalysisTask
        Task to run.
    batches : Iterable[ak.Array]
        Event batches, e.g. from :func:`utils.input_files.iterate_events`.

    Returns
    -------
    Dict[str, Any]
        The task output container.
    """
    return run_tasks([task], batches)[task.name]


def run_tasks(tasks: List[AnalysisTask], batches: Iterable[ak.Array]) -> Dict[str, Dict[str, Any]]:
    """
    Drive several tasks over the same event batches, reading them once.

    Returns
    -------
    Dict[str, Dict[str, Any]]
        Output container of every task, keyed by task name.
    """
    names = [task.name for task in tasks]
    if len(names) != len(set(names)):
        raise ValueError(f"Task names must be unique: {names}")

    for task in tasks:
        task.ensure_created()
    for batch in batches:
        if len(batch) == 0:
            continue
        for task in tasks:
            logger.debug(f"{task.name}: processing batch of {len(batch)} events")
            task(batch)
    for task in tasks:
        task.terminate()
    return {task.name: task.output for task in tasks}
