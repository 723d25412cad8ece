"""Framed, self-describing serialization that warns about fields unfit for transport.

Each value is written as a 4-byte big-endian length followed by a JSON body.
Dataclass instances and enum members carry a registered type name so that
they decode to the same classes. Dataclass fields whose names start with an
underscore are reported, as are decodes into objects that already hold
non-default values.
"""

from __future__ import annotations

import base64
import dataclasses
import enum
import json
import logging
import struct
import threading
from typing import Any, BinaryIO, Dict

_log = logging.getLogger(__name__)

_lock = threading.Lock()
_errors = 0
_checked: set = set()
_by_name: Dict[str, type] = {}
_by_type: Dict[type, str] = {}

_HEADER = struct.Struct(">I")
_MAX_DEFAULT_DEPTH = 3


def error_count() -> int:
    """Number of problems reported so far."""
    with _lock:
        return _errors


def _default_name(cls: type) -> str:
    return f"{cls.__module__}.{cls.__qualname__}"


def _is_instance_of_dataclass(value: Any) -> bool:
    return dataclasses.is_dataclass(value) and not isinstance(value, type)


def _registrable(cls: type) -> bool:
    return dataclasses.is_dataclass(cls) or issubclass(cls, enum.Enum)


def _bind_strict(name: str, cls: type) -> None:
    with _lock:
        bound_cls = _by_name.get(name)
        bound_name = _by_type.get(cls)
        if bound_cls is not None and bound_cls is not cls:
            raise ValueError(f"labgob: name {name!r} is already registered for {bound_cls!r}")
        if bound_name is not None and bound_name != name:
            raise ValueError(f"labgob: {cls!r} is already registered as {bound_name!r}")
        _by_name[name] = cls
        _by_type[cls] = name


def _name_for(cls: type) -> str:
    with _lock:
        name = _by_type.get(cls)
        if name is not None:
            return name
        base = name = _default_name(cls)
        suffix = 1
        while name in _by_name:
            suffix += 1
            name = f"{base}#{suffix}"
        _by_name[name] = cls
        _by_type[cls] = name
        return name


def _lookup(name: str) -> type:
    with _lock:
        cls = _by_name.get(name)
    if cls is None:
        raise ValueError(f"labgob: type {name!r} is not registered")
    return cls


def _check_type(cls: type) -> None:
    global _errors
    with _lock:
        # complain only once per type
        if cls in _checked:
            return
        _checked.add(cls)
    if not dataclasses.is_dataclass(cls):
        return
    for fld in dataclasses.fields(cls):
        if fld.name.startswith("_"):
            _log.warning(
                "labgob error: private field %s of %s in RPC or persist/snapshot "
                "will break your Raft",
                fld.name,
                cls.__name__,
            )
            with _lock:
                _errors += 1


def _check_value(value: Any) -> None:
    if isinstance(value, type):
        _check_type(value)
    elif _is_instance_of_dataclass(value):
        _check_type(type(value))
        for fld in dataclasses.fields(value):
            _check_value(getattr(value, fld.name, None))
    elif isinstance(value, dict):
        for key, item in value.items():
            _check_value(key)
            _check_value(item)
    elif isinstance(value, (list, tuple)):
        for item in value:
            _check_value(item)


def _check_default(value: Any, depth: int = 1, name: str = "") -> None:
    global _errors
    if depth > _MAX_DEFAULT_DEPTH:
        return
    if _is_instance_of_dataclass(value):
        for fld in dataclasses.fields(value):
            path = f"{name}.{fld.name}" if name else fld.name
            _check_default(getattr(value, fld.name, None), depth + 1, path)
        return
    plain = value.value if isinstance(value, enum.Enum) else value
    if isinstance(plain, (bool, int, float, str)) and plain != type(plain)():
        with _lock:
            if _errors < 1:
                _log.warning(
                    "labgob warning: Decoding into a non-default variable/field %s may not work",
                    name or type(value).__name__,
                )
            _errors += 1


def _to_wire(value: Any) -> Any:
    if value is None:
        return None
    if isinstance(value, enum.Enum):
        return {"E": _name_for(type(value)), "v": _to_wire(value.value)}
    if isinstance(value, (bool, str, int, float)):
        return value
    if isinstance(value, (bytes, bytearray)):
        return {"B": base64.b64encode(bytes(value)).decode("ascii")}
    if isinstance(value, list):
        return {"L": [_to_wire(item) for item in value]}
    if isinstance(value, tuple):
        return {"T": [_to_wire(item) for item in value]}
    if isinstance(value, dict):
        return {"D": [[_to_wire(k), _to_wire(v)] for k, v in value.items()]}
    if _is_instance_of_dataclass(value):
        fields = {fld.name: _to_wire(getattr(value, fld.name)) for fld in dataclasses.fields(value)}
        return {"O": _name_for(type(value)), "F": fields}
    raise TypeError(f"labgob: cannot encode value of type {type(value).__name__}")


def _build_dataclass(cls: type, raw_fields: Dict[str, Any]) -> Any:
    obj = object.__new__(cls)
    for fld in dataclasses.fields(cls):
        if fld.name in raw_fields:
            item = _from_wire(raw_fields[fld.name])
        elif fld.default is not dataclasses.MISSING:
            item = fld.default
        elif fld.default_factory is not dataclasses.MISSING:
            item = fld.default_factory()
        else:
            raise ValueError(f"labgob: field {fld.name!r} of {cls.__name__} missing")
        object.__setattr__(obj, fld.name, item)
    return obj


def _from_wire(data: Any) -> Any:
    if isinstance(data, list):
        raise ValueError("labgob: malformed value")
    if not isinstance(data, dict):
        return data
    if "L" in data:
        return [_from_wire(item) for item in data["L"]]
    if "T" in data:
        return tuple(_from_wire(item) for item in data["T"])
    if "D" in data:
        return {_from_wire(k): _from_wire(v) for k, v in data["D"]}
    if "B" in data:
        return base64.b64decode(data["B"])
    if "E" in data:
        return _lookup(data["E"])(_from_wire(data["v"]))
    if "O" in data:
        return _build_dataclass(_lookup(data["O"]), data["F"])
    raise ValueError("labgob: malformed value")


class Encoder:
    """Writes framed values to a binary stream."""

    def __init__(self, stream: BinaryIO) -> None:
        self._stream = stream

    def encode(self, value: Any) -> None:
        """Check and write one value."""
        _check_value(value)
        body = json.dumps(_to_wire(value), separators=(",", ":"), ensure_ascii=False).encode()
        self._stream.write(_HEADER.pack(len(body)) + body)


class Decoder:
    """Reads framed values from a binary stream."""

    def __init__(self, stream: BinaryIO) -> None:
        self._stream = stream

    def _read_exact(self, size: int) -> bytes:
        chunks = []
        remaining = size
        while remaining:
            chunk = self._stream.read(remaining)
            if not chunk:
                break
            chunks.append(chunk)
            remaining -= len(chunk)
        return b"".join(chunks)

    def decode(self) -> Any:
        """Read the next value; raises EOFError when the stream is exhausted."""
        header = self._read_exact(_HEADER.size)
        if not header:
            raise EOFError("labgob: no more values")
        if len(header) < _HEADER.size:
            raise ValueError("labgob: truncated header")
        (length,) = _HEADER.unpack(header)
        body = self._read_exact(length)
        if len(body) < length:
            raise ValueError("labgob: truncated value")
        value = _from_wire(json.loads(body.decode()))
        _check_value(value)
        return value

    def decode_into(self, target: Any) -> Any:
        """Read the next value into the fields of a dataclass instance."""
        if not _is_instance_of_dataclass(target):
            raise TypeError("labgob: decode_into needs a dataclass instance")
        _check_value(target)
        _check_default(target)
        value = self.decode()
        if type(value) is not type(target):
            raise TypeError(
                f"labgob: expected {type(target).__name__}, got {type(value).__name__}"
            )
        for fld in dataclasses.fields(target):
            object.__setattr__(target, fld.name, getattr(value, fld.name))
        return target


def register(value: Any) -> None:
    """Register a dataclass or enum (class or instance) under its default name."""
    _check_value(value)
    cls = value if isinstance(value, type) else type(value)
    if not _registrable(cls):
        raise TypeError(f"labgob: cannot register {cls.__name__}")
    _bind_strict(_default_name(cls), cls)


def register_name(name: str, value: Any) -> None:
    """Register a dataclass or enum (class or instance) under ``name``."""
    _check_value(value)
    cls = value if isinstance(value, type) else type(value)
    if not _registrable(cls):
        raise TypeError(f"labgob: cannot register {cls.__name__}")
    _bind_strict(name, cls)