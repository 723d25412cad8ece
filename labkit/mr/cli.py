"""Command-line entry points: sequential MapReduce, coordinator and worker."""

from __future__ import annotations

import itertools
import os
import sys
import time
from operator import attrgetter
from typing import Dict, List, Optional, Sequence, Tuple

from labkit.mr.coordinator import make_coordinator
from labkit.mr.worker import KeyValue, MapFunc, ReduceFunc, worker
from labkit.mrapps import crash, early_exit, indexer, jobcount, nocrash, timing, wc

_N_REDUCE = 10
_POLL_SECONDS = 1.0

_APPS: Dict[str, Tuple[MapFunc, ReduceFunc]] = {
    "wc": (wc.map_func, wc.reduce_func),
    "indexer": (indexer.map_func, indexer.reduce_func),
    "crash": (crash.map_func, crash.reduce_func),
    "nocrash": (nocrash.map_func, nocrash.reduce_func),
    "early_exit": (early_exit.map_func, early_exit.reduce_func),
    "jobcount": (jobcount.map_func, jobcount.reduce_func),
    "mtiming": (timing.mtiming_map, timing.mtiming_reduce),
    "rtiming": (timing.rtiming_map, timing.rtiming_reduce),
}


def load_app(name: str) -> Tuple[MapFunc, ReduceFunc]:
    """Return the map and reduce functions of an application.

    ``name`` may be a bare name such as ``"wc"`` or a path such as
    ``"../mrapps/wc.so"``; the directory and extension are ignored.
    """
    key, _ = os.path.splitext(os.path.basename(name))
    try:
        return _APPS[key]
    except KeyError:
        raise LookupError(f"cannot load application {name}") from None


def sequential(
    mapf: MapFunc,
    reducef: ReduceFunc,
    filenames: Sequence[str],
    output: str = "mr-out-0",
) -> None:
    """Run a whole MapReduce job in this process and write the result to ``output``.

    Each output line is ``"<key> <reduced value>"``, in key order.
    """
    intermediate: List[KeyValue] = []
    for filename in filenames:
        with open(filename, encoding="utf-8") as handle:
            intermediate.extend(mapf(filename, handle.read()))

    intermediate.sort(key=attrgetter("key"))
    with open(output, "w", encoding="utf-8") as out:
        for key, group in itertools.groupby(intermediate, key=attrgetter("key")):
            out.write(f"{key} {reducef(key, [kv.value for kv in group])}\n")


def _arguments(argv: Optional[Sequence[str]]) -> List[str]:
    return sys.argv[1:] if argv is None else list(argv)


def mrsequential_main(argv: Optional[Sequence[str]] = None) -> int:
    """``mrsequential app inputfiles...``: write the job's result to mr-out-0."""
    args = _arguments(argv)
    if len(args) < 2:
        print("Usage: mrsequential xxx.so inputfiles...", file=sys.stderr)
        return 1
    try:
        mapf, reducef = load_app(args[0])
    except LookupError:
        print(f"cannot load plugin {args[0]}", file=sys.stderr)
        return 1
    try:
        sequential(mapf, reducef, args[1:], "mr-out-0")
    except OSError as exc:
        print(f"cannot open {exc.filename}", file=sys.stderr)
        return 1
    return 0


def mrcoordinator_main(argv: Optional[Sequence[str]] = None) -> int:
    """``mrcoordinator inputfiles...``: serve tasks until the job is done."""
    args = _arguments(argv)
    if not args:
        print("Usage: mrcoordinator inputfiles...", file=sys.stderr)
        return 1
    coordinator = make_coordinator(args, _N_REDUCE)
    try:
        while not coordinator.done():
            time.sleep(_POLL_SECONDS)
        time.sleep(_POLL_SECONDS)
    finally:
        coordinator.close()
    return 0


def mrworker_main(argv: Optional[Sequence[str]] = None) -> int:
    """``mrworker app``: run tasks for the coordinator until told to exit."""
    args = _arguments(argv)
    if len(args) != 1:
        print("Usage: mrworker xxx.so", file=sys.stderr)
        return 1
    try:
        mapf, reducef = load_app(args[0])
    except LookupError:
        print(f"cannot load plugin {args[0]}", file=sys.stderr)
        return 1
    worker(mapf, reducef)
    return 0