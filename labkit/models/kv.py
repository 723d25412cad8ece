"""A sequential model of a key/value store for linearizability checks."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Sequence, Tuple

from labkit.porcupine.model import Model, Operation

_GET = 0
_PUT = 1
_APPEND = 2


@dataclass(frozen=True)
class KvInput:
    """An operation on one key: op 0 is get, 1 is put, 2 is append."""

    op: int
    key: str
    value: str = ""


@dataclass(frozen=True)
class KvOutput:
    """The value a get returned; empty for put and append."""

    value: str = ""


def kv_partition(history: Sequence[Operation]) -> List[List[Operation]]:
    """Split a history by key, ordering partitions by key."""
    by_key: Dict[str, List[Operation]] = {}
    for op in history:
        by_key.setdefault(op.input.key, []).append(op)
    return [by_key[key] for key in sorted(by_key)]


def kv_init() -> str:
    """The initial value of a single key."""
    # partitions hold one key each, so the state is just that key's value
    return ""


def kv_step(state: str, input_value: KvInput, output_value: KvOutput) -> Tuple[bool, str]:
    """Apply one operation to the value of a key."""
    if input_value.op == _GET:
        return output_value.value == state, state
    if input_value.op == _PUT:
        return True, input_value.value
    return True, state + input_value.value


def kv_describe_operation(input_value: KvInput, output_value: KvOutput) -> str:
    """Describe an operation for visualization."""
    match input_value.op:
        case 0:
            return f"get('{input_value.key}') -> '{output_value.value}'"
        case 1:
            return f"put('{input_value.key}', '{input_value.value}')"
        case 2:
            return f"append('{input_value.key}', '{input_value.value}')"
        case _:
            return "<invalid>"


KV_MODEL = Model(
    init=kv_init,
    step=kv_step,
    partition=kv_partition,
    describe_operation=kv_describe_operation,
)