"""The MapReduce coordinator: hands out map and reduce tasks to workers."""

from __future__ import annotations

import enum
import os
import socketserver
import threading
from dataclasses import dataclass, field
from typing import Any, List, Optional, Sequence, Tuple, Union

from labkit.labgob import Decoder, Encoder
from labkit.mr.rpc import (
    ExampleArgs,
    ExampleReply,
    FileRequestReply,
    FileStatus,
    RequestArgs,
    RequestType,
    WorkRequestReply,
    WorkType,
    coordinator_sock,
)


class _State(enum.Enum):
    IDLE = 0
    IN_PROGRESS = 1
    COMPLETED = 2


@dataclass
class _MapTask:
    filename: str
    worker_id: int = 0
    state: _State = _State.IDLE


@dataclass
class _ReduceTask:
    worker_id: int = 0
    state: _State = _State.IDLE
    filenames: List[str] = field(default_factory=list)
    finished_num: int = 0  # intermediate files already handed to the worker


class _RPCServer(socketserver.ThreadingUnixStreamServer):
    daemon_threads = True
    coordinator: "Coordinator"


class _RPCHandler(socketserver.StreamRequestHandler):
    def handle(self) -> None:
        decoder = Decoder(self.rfile)
        encoder = Encoder(self.wfile)
        while True:
            try:
                method, args = decoder.decode()
            except EOFError:
                return
            except (ValueError, TypeError) as exc:
                encoder.encode((f"rpc: bad request: {exc}", None))
                return
            encoder.encode(self.server.coordinator._dispatch(method, args))


class Coordinator:
    """Tracks map and reduce tasks; a task not finished in time goes back to idle."""

    def __init__(self, files: Sequence[str], n_reduce: int, task_timeout: float = 10.0) -> None:
        self._n_map = len(files)
        self._n_reduce = n_reduce
        self._task_timeout = task_timeout
        self._map_tasks = [_MapTask(name) for name in files]
        self._reduce_tasks = [_ReduceTask() for _ in range(n_reduce)]
        self._finished = 0
        self._lock = threading.Lock()
        self._timers: List[threading.Timer] = []
        self._server: Optional[_RPCServer] = None
        self._address: Optional[str] = None

    def __enter__(self) -> Coordinator:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def _start_timer(self, task: Union[_MapTask, _ReduceTask]) -> None:
        timer = threading.Timer(self._task_timeout, self._expire, args=(task,))
        timer.daemon = True
        self._timers.append(timer)
        timer.start()

    def _expire(self, task: Union[_MapTask, _ReduceTask]) -> None:
        with self._lock:
            if task.state is not _State.COMPLETED:
                task.state = _State.IDLE
                task.worker_id = 0
                if isinstance(task, _ReduceTask):
                    task.finished_num = 0

    def work_handler(self, args: RequestArgs) -> WorkRequestReply:
        """Treat the request as a report of the worker's current task, then assign work.

        Replies EXIT when nothing is left and WAIT while tasks are still running.
        """
        if args.rtype != RequestType.WORK:
            raise ValueError("rtype wrong")
        with self._lock:
            self._record_finish(args.worker_id)

            busy = False
            for task in self._map_tasks:
                if task.state is _State.IDLE:
                    self._start_timer(task)
                    task.state = _State.IN_PROGRESS
                    task.worker_id = args.worker_id
                    return WorkRequestReply(
                        WorkType.MAP, self._n_reduce, self._n_map, filename=task.filename
                    )
                if task.state is _State.IN_PROGRESS:
                    busy = True

            for number, task in enumerate(self._reduce_tasks):
                if task.state is _State.IDLE:
                    self._start_timer(task)
                    task.state = _State.IN_PROGRESS
                    task.worker_id = args.worker_id
                    return WorkRequestReply(
                        WorkType.REDUCE, self._n_reduce, self._n_map, rnumber=number
                    )
                if task.state is _State.IN_PROGRESS:
                    busy = True

            return WorkRequestReply(WorkType.WAIT if busy else WorkType.EXIT)

    def _record_finish(self, worker_id: int) -> None:
        for task in self._map_tasks:
            if task.worker_id == worker_id and task.state is _State.IN_PROGRESS:
                task.state = _State.COMPLETED
                base = os.path.basename(task.filename)
                for number, reduce_task in enumerate(self._reduce_tasks):
                    reduce_task.filenames.append(f"mr-{base}-{number}")
                return
        for task in self._reduce_tasks:
            if task.worker_id == worker_id and task.state is _State.IN_PROGRESS:
                task.state = _State.COMPLETED
                self._finished += 1
                return

    def file_handler(self, args: RequestArgs) -> FileRequestReply:
        """Give a reduce worker the intermediate files it has not seen yet.

        A worker that no longer holds a reduce task gets an EXCEPTION status,
        telling it to drop its work and ask for new work.
        """
        if args.rtype != RequestType.FILE:
            raise ValueError("rtype wrong")
        with self._lock:
            for task in self._reduce_tasks:
                if task.worker_id == args.worker_id and task.state is _State.IN_PROGRESS:
                    fresh = task.filenames[task.finished_num:]
                    task.finished_num = len(task.filenames)
                    return FileRequestReply(FileStatus.NORMAL, fresh)
        return FileRequestReply(FileStatus.EXCEPTION, [])

    def example(self, args: ExampleArgs) -> ExampleReply:
        """Reply with the argument plus one."""
        return ExampleReply(args.x + 1)

    def _dispatch(self, method: str, args: Any) -> Tuple[Optional[str], Any]:
        handlers = {
            "Coordinator.WorkHandler": self.work_handler,
            "Coordinator.FileHandler": self.file_handler,
            "Coordinator.Example": self.example,
        }
        handler = handlers.get(method)
        if handler is None:
            return f"rpc: can't find method {method}", None
        try:
            return None, handler(args)
        except (ValueError, TypeError, AttributeError) as exc:
            return str(exc), None

    def serve(self, address: Optional[str] = None) -> None:
        """Listen for workers on a UNIX-domain socket in a background thread.

        Each request is one labgob value ``(method name, args)``, with method
        names such as ``"Coordinator.WorkHandler"``; each answer is one value
        ``(error message or None, reply)``.
        """
        if self._server is not None:
            raise RuntimeError("coordinator is already serving")
        path = address or coordinator_sock()
        try:
            os.remove(path)
        except FileNotFoundError:
            pass
        server = _RPCServer(path, _RPCHandler)
        server.coordinator = self
        self._server = server
        self._address = path
        threading.Thread(target=server.serve_forever, daemon=True).start()

    def close(self) -> None:
        """Stop the timers and the RPC listener."""
        with self._lock:
            timers, self._timers = self._timers, []
        for timer in timers:
            timer.cancel()
        if self._server is not None:
            self._server.shutdown()
            self._server.server_close()
            self._server = None
            try:
                os.remove(self._address)
            except FileNotFoundError:
                pass

    def done(self) -> bool:
        """Whether every reduce task has finished."""
        with self._lock:
            return self._finished == self._n_reduce


def make_coordinator(files: Sequence[str], n_reduce: int) -> Coordinator:
    """Create a coordinator and start serving on the default socket."""
    coordinator = Coordinator(files, n_reduce)
    coordinator.serve()
    return coordinator