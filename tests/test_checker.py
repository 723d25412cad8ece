import time

import pytest

from labkit.porcupine.checker import (
    LinearizationInfo,
    check_events,
    check_events_timeout,
    check_events_verbose,
    check_operations,
    check_operations_timeout,
    check_operations_verbose,
)
from labkit.porcupine.model import CheckResult, Event, EventKind, Model, Operation


def _register_step(state, inp, out):
    op, value = inp
    if op == "put":
        return True, value
    return out == state, state


REGISTER = Model(init=lambda: 0, step=_register_step)


def _put(value, call, ret, client=0):
    return Operation(input=("put", value), call=call, output=None, ret=ret, client_id=client)


def _get(value, call, ret, client=1):
    return Operation(input=("get", None), call=call, output=value, ret=ret, client_id=client)


SEQUENTIAL_OK = [_put(1, 0, 10), _get(1, 20, 30)]
SEQUENTIAL_BAD = [_put(1, 0, 10), _get(0, 20, 30)]
CONCURRENT_OK = [_put(1, 0, 100), _get(0, 10, 20), _get(1, 30, 40, client=2)]
CONCURRENT_BAD = [_put(1, 0, 100), _get(1, 10, 20), _get(0, 30, 40, client=2)]


def _replays(model, ops, ids):
    state = model.init()
    for op_id in ids:
        ok, state = model.step(state, ops[op_id].input, ops[op_id].output)
        if not ok:
            return False
    return True


@pytest.mark.parametrize(
    "history,expected",
    [
        (SEQUENTIAL_OK, True),
        (SEQUENTIAL_BAD, False),
        (CONCURRENT_OK, True),
        (CONCURRENT_BAD, False),
    ],
)
def test_check_operations(history, expected):
    assert check_operations(REGISTER, history) is expected


def test_empty_history_is_linearizable():
    assert check_operations(REGISTER, [])


def test_timeout_zero_means_no_timeout():
    assert check_operations_timeout(REGISTER, CONCURRENT_OK, 0) is CheckResult.OK
    assert check_operations_timeout(REGISTER, CONCURRENT_BAD, None) is CheckResult.ILLEGAL


def test_timeout_gives_unknown():
    def slow_step(state, inp, out):
        time.sleep(0.3)
        return _register_step(state, inp, out)

    model = Model(init=lambda: 0, step=slow_step)
    assert check_operations_timeout(model, SEQUENTIAL_OK, 0.05) is CheckResult.UNKNOWN


def test_step_error_propagates():
    def failing_step(state, inp, out):
        raise ValueError("bad step")

    model = Model(init=lambda: 0, step=failing_step)
    with pytest.raises(ValueError, match="bad step"):
        check_operations(model, SEQUENTIAL_OK)


def test_verbose_ok_gives_full_linearization():
    result, info = check_operations_verbose(REGISTER, CONCURRENT_OK, None)
    assert result is CheckResult.OK
    assert len(info.history) == 1
    assert len(info.history[0]) == 2 * len(CONCURRENT_OK)
    partials = info.partial_linearizations[0]
    assert len(partials) == 1
    assert sorted(partials[0]) == list(range(len(CONCURRENT_OK)))
    assert _replays(REGISTER, CONCURRENT_OK, partials[0])


def test_verbose_illegal_partials_are_legal_prefixes():
    result, info = check_operations_verbose(REGISTER, CONCURRENT_BAD, None)
    assert result is CheckResult.ILLEGAL
    partials = info.partial_linearizations[0]
    assert partials
    for seq in partials:
        assert len(seq) < len(CONCURRENT_BAD)
        assert _replays(REGISTER, CONCURRENT_BAD, seq)


def test_verbose_illegal_sequential_prefix():
    _, info = check_operations_verbose(REGISTER, SEQUENTIAL_BAD, None)
    assert [0] in info.partial_linearizations[0]


def test_non_verbose_info_is_empty():
    from labkit.porcupine.checker import _check_operations

    result, info = _check_operations(REGISTER, SEQUENTIAL_OK, False, None)
    assert result is CheckResult.OK
    assert info == LinearizationInfo()


def _keyed_step(state, inp, out):
    key, op, value = inp
    if op == "put":
        return True, value
    return out == state, state


def _by_key(history):
    groups = {}
    for op in history:
        groups.setdefault(op.input[0], []).append(op)
    return [groups[k] for k in sorted(groups)]


KEYED = Model(init=lambda: 0, step=_keyed_step, partition=_by_key)


def test_partitions_checked_independently():
    history = [
        Operation(("a", "put", 5), 0, None, 10),
        Operation(("b", "put", 7), 0, None, 10),
        Operation(("a", "get", None), 20, 5, 30),
        Operation(("b", "get", None), 20, 7, 30),
    ]
    result, info = check_operations_verbose(KEYED, history, None)
    assert result is CheckResult.OK
    assert len(info.history) == 2
    assert all(len(part) == 4 for part in info.history)


def test_one_bad_partition_makes_history_illegal():
    history = [
        Operation(("a", "put", 5), 0, None, 10),
        Operation(("b", "put", 7), 0, None, 10),
        Operation(("a", "get", None), 20, 5, 30),
        Operation(("b", "get", None), 20, 5, 30),
    ]
    assert not check_operations(KEYED, history)


def test_empty_partition_list_is_ok():
    assert check_operations(KEYED, [])


def _events(pairs):
    """Build events from (kind, value, id) triples."""
    return [Event(kind, value, ev_id) for kind, value, ev_id in pairs]


GOOD_EVENTS = _events(
    [
        (EventKind.CALL, ("put", 1), 7),
        (EventKind.CALL, ("get", None), 3),
        (EventKind.RETURN, None, 7),
        (EventKind.RETURN, 1, 3),
    ]
)

BAD_EVENTS = _events(
    [
        (EventKind.CALL, ("put", 1), 7),
        (EventKind.RETURN, None, 7),
        (EventKind.CALL, ("get", None), 3),
        (EventKind.RETURN, 0, 3),
    ]
)


def test_check_events():
    assert check_events(REGISTER, GOOD_EVENTS)
    assert not check_events(REGISTER, BAD_EVENTS)


def test_check_events_timeout():
    assert check_events_timeout(REGISTER, GOOD_EVENTS, 0) is CheckResult.OK
    assert check_events_timeout(REGISTER, BAD_EVENTS, 0) is CheckResult.ILLEGAL


def test_check_events_verbose_renumbers_ids():
    result, info = check_events_verbose(REGISTER, GOOD_EVENTS, None)
    assert result is CheckResult.OK
    ids = sorted({entry.id for entry in info.history[0]})
    assert ids == [0, 1]
    assert [entry.time for entry in info.history[0]] == list(range(len(GOOD_EVENTS)))
    assert sorted(info.partial_linearizations[0][0]) == [0, 1]