import awkward as ak
import hist
import pytest

from analysis.base import AnalysisTask, run_task, run_tasks


class CountingTask(AnalysisTask):
    def create_output_objects(self):
        self.add_output(hist.Hist(hist.axis.Regular(5, 0.0, 5.0), name="x"))
        self.batches = 0

    def required_fields(self):
        return ("x",)

    def process(self, events):
        self.batches += 1
        self.output["x"].fill(ak.to_numpy(events.x))


def _batches():
    return [ak.Array({"x": [1.0, 2.0]}), ak.Array({"x": []}), ak.Array({"x": [3.0]})]


def test_run_task_skips_empty_batches():
    """Every non-empty batch is processed once."""
    task = CountingTask("counting")
    output = run_task(task, _batches())
    assert task.batches == 2
    assert task.n_processed == 3
    assert output["x"].sum() == 3


def test_run_tasks_share_batches():
    """Several tasks read the same batches."""
    tasks = [CountingTask("a"), CountingTask("b")]
    outputs = run_tasks(tasks, iter(_batches()))
    assert set(outputs) == {"a", "b"}
    assert outputs["a"]["x"].sum() == outputs["b"]["x"].sum() == 3


def test_run_tasks_rejects_duplicate_names():
    with pytest.raises(ValueError):
        run_tasks([CountingTask("a"), CountingTask("a")], _batches())


def test_duplicate_output_and_missing_fields():
    """Outputs need unique names and the inputs the required fields."""
    task = CountingTask("counting")
    task.ensure_created()
    with pytest.raises(KeyError):
        task.add_output(hist.Hist(hist.axis.Regular(5, 0.0, 5.0), name="x"))
    with pytest.raises(KeyError):
        task(ak.Array({"y": [1.0]}))
