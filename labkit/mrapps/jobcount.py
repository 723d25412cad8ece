"""A MapReduce application that counts how many times map tasks run.

Each map invocation leaves a marker file; reduce counts the markers, so a
job that assigns tasks more than once shows a larger count.
"""

from __future__ import annotations

import itertools
import os
import random
import time
from typing import List

from labkit.mr.worker import KeyValue

_PREFIX = "mr-worker-jobcount"
_invocations = itertools.count()


def map_func(filename: str, contents: str) -> List[KeyValue]:
    """Leave a marker file, pause two to five seconds and emit ("a", "x")."""
    marker = f"{_PREFIX}-{os.getpid()}-{next(_invocations)}"
    with open(marker, "w", encoding="utf-8") as handle:
        handle.write("x")
    time.sleep((2000 + random.randrange(3000)) / 1000)
    return [KeyValue("a", "x")]


def reduce_func(key: str, values: List[str]) -> str:
    """The number of marker files in the current directory."""
    return str(sum(1 for name in os.listdir(".") if name.startswith(_PREFIX)))