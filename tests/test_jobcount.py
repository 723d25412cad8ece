import os
from unittest.mock import patch

from labkit.mr.worker import KeyValue
from labkit.mrapps import jobcount


def _markers(directory):
    return sorted(n for n in os.listdir(directory) if n.startswith("mr-worker-jobcount"))


@patch("time.sleep")
def test_map_writes_marker_and_pauses(sleep, tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    assert jobcount.map_func("in.txt", "data") == [KeyValue("a", "x")]
    markers = _markers(tmp_path)
    assert len(markers) == 1
    assert (tmp_path / markers[0]).read_text() == "x"
    assert markers[0].startswith(f"mr-worker-jobcount-{os.getpid()}-")
    (delay,), _ = sleep.call_args
    assert 2 <= delay < 5


@patch("time.sleep")
def test_each_map_gets_its_own_marker(sleep, tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    results = [jobcount.map_func("a.txt", ""), jobcount.map_func("b.txt", "")]
    assert results == [[KeyValue("a", "x")], [KeyValue("a", "x")]]
    assert len(_markers(tmp_path)) == 2


@patch("time.sleep")
def test_reduce_counts_map_invocations(sleep, tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    for _ in range(3):
        jobcount.map_func("x.txt", "")
    (tmp_path / "unrelated.txt").write_text("y")
    assert jobcount.reduce_func("a", ["x", "x", "x"]) == str(len(_markers(tmp_path)))
    assert jobcount.reduce_func("a", []) == "3"


def test_reduce_with_no_markers(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    assert jobcount.reduce_func("a", ["x"]) == "0"