"""A MapReduce application whose reduce tasks for some keys run long.

It checks that workers do not exit while other tasks are still running.
"""

from __future__ import annotations

import time
from typing import List

from labkit.mr.worker import KeyValue

_SLOW_KEYS = ("sherlock", "tom")
_SLOW_SECONDS = 3


def map_func(filename: str, contents: str) -> List[KeyValue]:
    """Emit one pair per input file: the filename and "1"."""
    return [KeyValue(filename, "1")]


def reduce_func(key: str, values: List[str]) -> str:
    """The number of occurrences of the file; slow for some keys."""
    if any(word in key for word in _SLOW_KEYS):
        time.sleep(_SLOW_SECONDS)
    return str(len(values))