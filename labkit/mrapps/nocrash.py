"""The crash application's outputs without any crashes or stalls."""

from __future__ import annotations

from typing import List

from labkit.mr.worker import KeyValue


def map_func(filename: str, contents: str) -> List[KeyValue]:
    """Emit the filename, its length, the contents' length and a constant."""
    return [
        KeyValue("a", filename),
        KeyValue("b", str(len(filename.encode()))),
        KeyValue("c", str(len(contents.encode()))),
        KeyValue("d", "xyzzy"),
    ]


def reduce_func(key: str, values: List[str]) -> str:
    """The values sorted and joined with spaces, for deterministic output."""
    return " ".join(sorted(values))