"""Word count for MapReduce."""

from __future__ import annotations

import itertools
from typing import List

from labkit.mr.worker import KeyValue


def _words(text: str) -> List[str]:
    return ["".join(chars) for letter, chars in itertools.groupby(text, str.isalpha) if letter]


def map_func(filename: str, contents: str) -> List[KeyValue]:
    """Emit (word, "1") for each word; words are runs of letters."""
    return [KeyValue(word, "1") for word in _words(contents)]


def reduce_func(key: str, values: List[str]) -> str:
    """The number of occurrences of the word."""
    return str(len(values))