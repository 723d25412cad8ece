"""Messages between MapReduce workers and the coordinator."""

from __future__ import annotations

import enum
import os
from dataclasses import dataclass, field
from typing import List

from labkit.labgob import register


class WorkType(enum.IntEnum):
    """What a worker is told to do."""

    MAP = 0
    REDUCE = 1
    EXIT = 2
    WAIT = 3  # wait for others to finish


class RequestType(enum.IntEnum):
    """What a worker is asking for."""

    WORK = 0
    FILE = 1  # intermediate file names, sent by reduce workers


class FileStatus(enum.IntEnum):
    NORMAL = 0
    EXCEPTION = 1


@dataclass
class RequestArgs:
    """A request from a worker, identified by its process id."""

    worker_id: int
    rtype: RequestType


@dataclass
class WorkRequestReply:
    """A task assignment; ``filename`` is valid for map, ``rnumber`` for reduce."""

    wtype: WorkType
    n_reduce: int = 0
    n_map: int = 0
    filename: str = ""
    rnumber: int = 0


@dataclass
class FileRequestReply:
    status: FileStatus
    filenames: List[str] = field(default_factory=list)


@dataclass
class ExampleArgs:
    x: int = 0


@dataclass
class ExampleReply:
    y: int = 0


for _message_type in (
    WorkType,
    RequestType,
    FileStatus,
    RequestArgs,
    WorkRequestReply,
    FileRequestReply,
    ExampleArgs,
    ExampleReply,
):
    register(_message_type)


def coordinator_sock() -> str:
    """A per-user UNIX-domain socket path for the coordinator."""
    return "/var/tmp/824-mr-" + str(os.getuid())