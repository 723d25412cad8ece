"""A MapReduce application that sometimes crashes and sometimes stalls.

It exercises the framework's recovery from failed and slow workers.
"""

from __future__ import annotations

import os
import secrets
import time
from typing import List

from labkit.mr.worker import KeyValue


def maybe_crash() -> None:
    """Exit the process a third of the time; stall up to ten seconds another third."""
    roll = secrets.randbelow(1000)
    if roll < 330:
        os._exit(1)
    elif roll < 660:
        time.sleep(secrets.randbelow(10 * 1000) / 1000)


def map_func(filename: str, contents: str) -> List[KeyValue]:
    """Emit the filename, its length, the contents' length and a constant."""
    maybe_crash()
    return [
        KeyValue("a", filename),
        KeyValue("b", str(len(filename.encode()))),
        KeyValue("c", str(len(contents.encode()))),
        KeyValue("d", "xyzzy"),
    ]


def reduce_func(key: str, values: List[str]) -> str:
    """The values sorted and joined with spaces, for deterministic output."""
    maybe_crash()
    return " ".join(sorted(values))