"""Messages exchanged between key/value clerks and servers."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Optional


class Err(str, enum.Enum):
    """Outcome of a key/value request."""

    OK = "OK"
    ERR_NO_KEY = "ErrNoKey"
    ERR_WRONG_LEADER = "ErrWrongLeader"


@dataclass
class PutAppendArgs:
    """A Put or Append request; ``op`` is "Put" or "Append"."""

    key: str
    value: str
    op: str
    version: int
    client_id: int


@dataclass
class PutAppendReply:
    err: Optional[Err] = None


@dataclass
class GetArgs:
    key: str


@dataclass
class GetReply:
    err: Optional[Err] = None
    value: str = ""