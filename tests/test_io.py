import awkward as ak
import hist
import numpy as np
import pytest
import uproot

from analysis.cdmeson import get_hist_stats_flow
from utils.binning import AxisSpec
from utils.histograms import make_sparse
from utils.input_files import group_collections, iterate_events, resolve_files, write_events
from utils.output_files import (
    load_histograms_from_pickle,
    root_objects,
    save_histograms_to_pickle,
    save_histograms_to_root,
)
from utils.schema import DatasetConfig


def test_group_collections():
    """Prefixed branches become collections, counters are dropped."""
    flat = ak.Array(
        {
            "run": [1, 2],
            "nTrack": [2, 0],
            "Track_pt": [[1.0, 2.0], []],
            "Track_eta": [[0.1, 0.2], []],
            "Vertex_z": [0.5, -1.0],
            "n_soft": [0, 3],
        }
    )
    events = group_collections(flat)
    assert set(events.fields) == {"run", "Track", "Vertex", "n_soft"}
    assert ak.to_list(ak.num(events.Track)) == [2, 0]
    assert ak.to_list(events.Vertex.z) == [0.5, -1.0]


def test_resolve_files(tmp_path):
    """Glob patterns are expanded, sorted and truncated."""
    for name in ("b.root", "a.root", "c.root"):
        (tmp_path / name).touch()
    dataset = DatasetConfig(name="d", files=[str(tmp_path / "*.root")])
    files = resolve_files(dataset, max_files=2)
    assert [f.split("/")[-1] for f in files] == ["a.root", "b.root"]
    with pytest.raises(FileNotFoundError):
        resolve_files(DatasetConfig(name="e", files=[str(tmp_path / "*.txt")]))


def test_write_and_iterate_events(tmp_path, kno_mc_events):
    """Events written to a tree are read back with the same collections."""
    path = tmp_path / "events.root"
    write_events(kno_mc_events, path)
    dataset = DatasetConfig(name="mc", files=[str(path)], is_mc=True)
    batches = list(iterate_events(dataset, step_size=1))
    assert len(batches) == 2
    events = ak.concatenate(batches)
    assert set(events.fields) == {"pass_event_cuts", "Vertex", "MCParticle", "Track"}
    np.testing.assert_allclose(ak.to_numpy(ak.flatten(events.Track.pt)), ak.to_numpy(ak.flatten(kno_mc_events.Track.pt)))
    assert ak.to_list(events.Vertex.n_contributors) == [10, 10]


def _output():
    thn = make_sparse("thn", "Mass, Pt", (AxisSpec("Mass", 10, 0.0, 1.0), AxisSpec("Pt", 5, 0.0, 5.0)))
    thn.fill(0.5, 1.0)
    dense = hist.Hist(hist.axis.Regular(10, 0.0, 1.0, name="x"))
    dense.fill([0.2, 0.3])
    empty = hist.Hist(hist.axis.Regular(10, 0.0, 1.0, name="x"), name="empty")
    big = hist.Hist(*[hist.axis.Regular(2, 0.0, 1.0, name=f"a{i}") for i in range(4)])
    stats_flow = get_hist_stats_flow()
    stats_flow.fill("total Input")
    return {"thn": thn, "dense": dense, "empty": empty, "big": big, "c00_statsFlow": stats_flow}


def test_root_objects():
    """Sparse histograms are projected, histograms above 3D skipped."""
    objects = root_objects(_output())
    assert set(objects) == {"thn__Mass", "thn__Pt", "dense", "empty", "c00_statsFlow"}
    values, edges = objects["c00_statsFlow"]
    assert len(edges) == len(values) + 1


def test_save_histograms_to_root(tmp_path):
    """Empty histograms are left out of the ROOT file."""
    path = tmp_path / "out" / "histograms.root"
    save_histograms_to_root(_output(), path)
    with uproot.open(path) as root_file:
        keys = set(root_file.keys(cycle=False))
        assert keys == {"thn__Mass", "thn__Pt", "dense", "c00_statsFlow"}
        assert root_file["dense"].values().sum() == pytest.approx(2.0)


def test_pickle_round_trip(tmp_path):
    path = tmp_path / "out" / "histograms.pkl"
    save_histograms_to_pickle(_output(), path)
    restored = load_histograms_from_pickle(path)
    assert restored["thn"].entries == 1
    assert restored["dense"].sum() == pytest.approx(2.0)
    with pytest.raises(FileNotFoundError):
        load_histograms_from_pickle(tmp_path / "missing.pkl")
