"""The MapReduce worker: asks the coordinator for tasks and runs them."""

from __future__ import annotations

import itertools
import json
import os
import socket
import tempfile
import time
from dataclasses import dataclass
from operator import attrgetter
from typing import Any, Callable, List, Sequence

from labkit.labgob import Decoder, Encoder
from labkit.mr.rpc import (
    ExampleArgs,
    FileRequestReply,
    FileStatus,
    RequestArgs,
    RequestType,
    WorkRequestReply,
    WorkType,
    coordinator_sock,
)

_FNV_OFFSET = 0x811C9DC5
_FNV_PRIME = 0x01000193
_RETRIES = 10
_FILE_POLL = 0.1
_WAIT_PAUSE = 1.0


@dataclass(frozen=True)
class KeyValue:
    """One key/value pair emitted by a map function."""

    key: str
    value: str


MapFunc = Callable[[str, str], List[KeyValue]]
ReduceFunc = Callable[[str, List[str]], str]


class _RemoteError(RuntimeError):
    """The coordinator answered a call with an error."""


def ihash(key: str) -> int:
    """32-bit FNV-1a of the key, masked to a non-negative int.

    Use ``ihash(key) % n_reduce`` to choose the reduce task for a key.
    """
    value = _FNV_OFFSET
    for byte in key.encode():
        value = ((value ^ byte) * _FNV_PRIME) & 0xFFFFFFFF
    return value & 0x7FFFFFFF


def _intermediate_name(filename: str, number: int) -> str:
    return f"mr-{os.path.basename(filename)}-{number}"


def run_map(mapf: MapFunc, filename: str, n_reduce: int) -> List[str]:
    """Map one input file into ``n_reduce`` intermediate files in the current directory.

    Returns the names of the intermediate files.
    """
    with open(filename, encoding="utf-8") as handle:
        content = handle.read()
    buckets: List[List[KeyValue]] = [[] for _ in range(n_reduce)]
    for kv in mapf(filename, content):
        buckets[ihash(kv.key) % n_reduce].append(kv)

    names = []
    for number, bucket in enumerate(buckets):
        name = _intermediate_name(filename, number)
        with open(name, "w", encoding="utf-8") as out:
            for kv in bucket:
                out.write(json.dumps({"Key": kv.key, "Value": kv.value}) + "\n")
        names.append(name)
    return names


def _read_intermediate(filename: str) -> List[KeyValue]:
    pairs = []
    with open(filename, encoding="utf-8") as handle:
        for line in handle:
            try:
                record = json.loads(line)
            except json.JSONDecodeError:
                break
            pairs.append(KeyValue(record["Key"], record["Value"]))
    return pairs


def run_reduce(
    reducef: ReduceFunc,
    rnumber: int,
    n_map: int,
    ask_file: Callable[[], FileRequestReply],
) -> bool:
    """Reduce partition ``rnumber`` into ``mr-out-<rnumber>``.

    Polls ``ask_file`` until all ``n_map`` intermediate files have arrived.
    Returns False, writing nothing, if the coordinator no longer assigns
    this task to the worker.
    """
    intermediate: List[KeyValue] = []
    read = 0
    while read < n_map:
        reply = ask_file()
        if reply.status == FileStatus.EXCEPTION:
            # we were probably too slow and deemed dead; drop the work
            return False
        read += len(reply.filenames)
        for filename in reply.filenames:
            intermediate.extend(_read_intermediate(filename))
        if read != n_map:
            time.sleep(_FILE_POLL)

    intermediate.sort(key=attrgetter("key"))
    oname = f"mr-out-{rnumber}"
    fd, tmpname = tempfile.mkstemp(dir=".", prefix=oname)
    with os.fdopen(fd, "w", encoding="utf-8") as out:
        for key, group in itertools.groupby(intermediate, key=attrgetter("key")):
            output = reducef(key, [kv.value for kv in group])
            out.write(f"{key} {output}\n")
    os.replace(tmpname, oname)
    return True


def worker(mapf: MapFunc, reducef: ReduceFunc) -> None:
    """Ask for tasks and run them until the coordinator says to exit."""
    while True:
        reply = ask_work()
        if reply.wtype == WorkType.MAP:
            run_map(mapf, reply.filename, reply.n_reduce)
        elif reply.wtype == WorkType.REDUCE:
            run_reduce(reducef, reply.rnumber, reply.n_map, ask_file)
        elif reply.wtype == WorkType.EXIT:
            return
        elif reply.wtype == WorkType.WAIT:
            time.sleep(_WAIT_PAUSE)


def _call_with_retries(rpcname: str, args: Any, label: str) -> Any:
    last: _RemoteError | None = None
    for _ in range(_RETRIES + 1):
        try:
            return call(rpcname, args)
        except _RemoteError as exc:
            last = exc
    raise RuntimeError(f"{label}: max retries exceeded.") from last


def ask_work() -> WorkRequestReply:
    """Ask for a task; also reports that the previous task is finished."""
    args = RequestArgs(os.getpid(), RequestType.WORK)
    return _call_with_retries("Coordinator.WorkHandler", args, "ask_work")


def ask_file() -> FileRequestReply:
    """Ask for intermediate file names not yet seen by this reduce worker."""
    args = RequestArgs(os.getpid(), RequestType.FILE)
    return _call_with_retries("Coordinator.FileHandler", args, "ask_file")


def call_example() -> int:
    """Send the example RPC with 99, print the answer and return it."""
    reply = call("Coordinator.Example", ExampleArgs(99))
    print(f"reply.Y {reply.y}")
    return reply.y


def call(rpcname: str, args: Any) -> Any:
    """Send one request to the coordinator and return its reply.

    Raises OSError if the coordinator cannot be reached and RuntimeError if
    it answers with an error.
    """
    with socket.socket(socket.AF_UNIX, socket.SOCK_STREAM) as sock:
        sock.connect(coordinator_sock())
        with sock.makefile("wb") as out:
            Encoder(out).encode((rpcname, args))
        with sock.makefile("rb") as inp:
            error, reply = Decoder(inp).decode()
    if error is not None:
        print(error)
        raise _RemoteError(error)
    return reply


__all__: Sequence[str] = (
    "KeyValue",
    "ihash",
    "run_map",
    "run_reduce",
    "worker",
    "ask_work",
    "ask_file",
    "call_example",
    "call",
)