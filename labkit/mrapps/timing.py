"""MapReduce applications that test whether tasks run in parallel.

Each task leaves a file named after its process id and counts the files of
processes that are still alive.
"""

from __future__ import annotations

import os
import re
import time
from typing import List

from labkit.mr.worker import KeyValue

_OVERLAP_SECONDS = 1


def _is_alive(pid: int) -> bool:
    try:
        os.kill(pid, 0)
    except (OSError, OverflowError):
        return False
    return True


def nparallel(phase: str) -> int:
    """Count live workers of ``phase``, this one included, over a one-second window."""
    myfilename = f"mr-worker-{phase}-{os.getpid()}"
    with open(myfilename, "w", encoding="utf-8") as handle:
        handle.write("x")

    pattern = re.compile(rf"mr-worker-{re.escape(phase)}-([+-]?\d+)")
    running = 0
    for name in os.listdir("."):
        found = pattern.match(name)
        if found and _is_alive(int(found.group(1))):
            running += 1

    time.sleep(_OVERLAP_SECONDS)
    os.remove(myfilename)
    return running


def mtiming_map(filename: str, contents: str) -> List[KeyValue]:
    """Report this worker's start time and how many map workers ran with it."""
    started = time.time()
    pid = os.getpid()
    running = nparallel("map")
    return [
        KeyValue(f"times-{pid}", f"{started:.1f}"),
        KeyValue(f"parallel-{pid}", str(running)),
    ]


def mtiming_reduce(key: str, values: List[str]) -> str:
    """The values sorted and joined with spaces, for deterministic output."""
    return " ".join(sorted(values))


def rtiming_map(filename: str, contents: str) -> List[KeyValue]:
    """Emit "1" for each of the keys a to j."""
    return [KeyValue(key, "1") for key in "abcdefghij"]


def rtiming_reduce(key: str, values: List[str]) -> str:
    """How many reduce workers ran at the same time as this one."""
    return str(nparallel("reduce"))