import socket
import time

import pytest

from labkit.labgob import Decoder, Encoder
from labkit.mr.coordinator import Coordinator
from labkit.mr.rpc import ExampleArgs, FileStatus, RequestArgs, RequestType, WorkType


def _work(worker_id):
    return RequestArgs(worker_id, RequestType.WORK)


def _file(worker_id):
    return RequestArgs(worker_id, RequestType.FILE)


def test_maps_handed_out_in_order():
    with Coordinator(["in/a.txt", "in/b.txt"], 3) as c:
        first = c.work_handler(_work(1))
        second = c.work_handler(_work(2))
        assert first.wtype is WorkType.MAP
        assert first.filename == "in/a.txt"
        assert (first.n_map, first.n_reduce) == (2, 3)
        assert second.filename == "in/b.txt"


def test_reduce_assigned_after_maps():
    with Coordinator(["a.txt"], 2) as c:
        c.work_handler(_work(1))
        reply = c.work_handler(_work(2))
        assert reply.wtype is WorkType.REDUCE
        assert reply.rnumber == 0
        assert c.work_handler(_work(3)).rnumber == 1


def test_full_job_flow():
    with Coordinator(["dir/a.txt"], 1) as c:
        assert c.done() is False
        assert c.work_handler(_work(1)).wtype is WorkType.MAP
        assert c.work_handler(_work(2)).wtype is WorkType.REDUCE
        assert c.work_handler(_work(3)).wtype is WorkType.WAIT
        # worker 1 reports its map done
        assert c.work_handler(_work(1)).wtype is WorkType.WAIT
        files = c.file_handler(_file(2))
        assert files.status is FileStatus.NORMAL
        assert files.filenames == ["mr-a.txt-0"]
        assert c.file_handler(_file(2)).filenames == []
        assert c.work_handler(_work(2)).wtype is WorkType.EXIT
        assert c.done() is True


def test_unknown_reducer_gets_exception():
    with Coordinator(["a.txt"], 1) as c:
        reply = c.file_handler(_file(77))
        assert reply.status is FileStatus.EXCEPTION
        assert reply.filenames == []


def test_wrong_request_type_raises():
    with Coordinator(["a.txt"], 1) as c:
        with pytest.raises(ValueError):
            c.work_handler(_file(1))
        with pytest.raises(ValueError):
            c.file_handler(_work(1))


def test_timed_out_task_is_reassigned():
    with Coordinator(["a.txt"], 1, task_timeout=0.05) as c:
        first = c.work_handler(_work(1))
        time.sleep(0.3)
        again = c.work_handler(_work(2))
        assert again.wtype is WorkType.MAP
        assert again.filename == first.filename


def test_example_adds_one():
    with Coordinator([], 1) as c:
        assert c.example(ExampleArgs(99)).y == 100


def _rpc(path, method, args):
    with socket.socket(socket.AF_UNIX, socket.SOCK_STREAM) as sock:
        sock.connect(str(path))
        with sock.makefile("rwb") as stream:
            Encoder(stream).encode((method, args))
            stream.flush()
            return Decoder(stream).decode()


def test_serve_answers_over_socket(tmp_path):
    path = tmp_path / "c.sock"
    c = Coordinator(["a.txt"], 1)
    c.serve(str(path))
    try:
        error, reply = _rpc(path, "Coordinator.Example", ExampleArgs(99))
        assert error is None
        assert reply.y == 100
        error, reply = _rpc(path, "Coordinator.WorkHandler", _work(5))
        assert error is None
        assert reply.wtype is WorkType.MAP
        error, reply = _rpc(path, "Coordinator.FileHandler", _work(5))
        assert error == "rtype wrong"
        assert reply is None
        error, _ = _rpc(path, "Coordinator.Missing", _work(5))
        assert "Coordinator.Missing" in error
    finally:
        c.close()
    assert not path.exists()