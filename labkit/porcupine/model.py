"""Histories, models and results for linearizability checking."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Any, Callable, List, Sequence, Tuple


@dataclass(frozen=True)
class Operation:
    """A completed operation with its invocation and response times."""

    input: Any
    call: int
    output: Any
    ret: int
    client_id: int = 0


class EventKind(enum.Enum):
    """Whether an event is an invocation or a response."""

    CALL = False
    RETURN = True


@dataclass(frozen=True)
class Event:
    """One half of an operation; a call and its return share an id."""

    kind: EventKind
    value: Any
    id: int
    client_id: int = 0


def no_partition(history: Sequence[Operation]) -> List[List[Operation]]:
    """Treat the whole history as a single partition."""
    return [list(history)]


def no_partition_event(history: Sequence[Event]) -> List[List[Event]]:
    """Treat the whole event history as a single partition."""
    return [list(history)]


def shallow_equal(state1: Any, state2: Any) -> bool:
    """Plain equality on states."""
    return state1 == state2


def default_describe_operation(input_value: Any, output_value: Any) -> str:
    """Describe an operation as ``input -> output``."""
    return f"{input_value} -> {output_value}"


def default_describe_state(state: Any) -> str:
    """Describe a state by its string form."""
    return f"{state}"


@dataclass(frozen=True)
class Model:
    """A sequential specification of a system.

    ``step(state, input, output)`` returns whether the step is allowed and
    the new state; it must not mutate the given state. A history is
    linearizable exactly when each of its partitions is.
    """

    init: Callable[[], Any]
    step: Callable[[Any, Any, Any], Tuple[bool, Any]]
    partition: Callable[[Sequence[Operation]], List[List[Operation]]] = no_partition
    partition_event: Callable[[Sequence[Event]], List[List[Event]]] = no_partition_event
    equal: Callable[[Any, Any], bool] = shallow_equal
    describe_operation: Callable[[Any, Any], str] = default_describe_operation
    describe_state: Callable[[Any], str] = default_describe_state


class CheckResult(str, enum.Enum):
    """Outcome of a linearizability check."""

    UNKNOWN = "Unknown"  # timed out
    OK = "Ok"
    ILLEGAL = "Illegal"