"""An inverted index for MapReduce: which documents contain each word."""

from __future__ import annotations

import itertools
from typing import List

from labkit.mr.worker import KeyValue


def map_func(document: str, value: str) -> List[KeyValue]:
    """Emit (word, document) once for each distinct word in the document."""
    words = (
        "".join(chars) for letter, chars in itertools.groupby(value, str.isalpha) if letter
    )
    return [KeyValue(word, document) for word in dict.fromkeys(words)]


def reduce_func(key: str, values: List[str]) -> str:
    """The number of documents and their sorted, comma-separated names."""
    return f"{len(values)} {','.join(sorted(values))}"