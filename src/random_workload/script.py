"""Random operation scripts and their on-disk form.

A script is generated once, saved, and can be replayed verbatim later:

    [
      {"Transfer": {"to": "r...", "amount": 517}},
      {"Wait": {"secs": 3, "nanos": 250000000}}
    ]
"""
import json
import logging
from dataclasses import dataclass, field
from datetime import timedelta
from pathlib import Path

import random_workload.constants as C
from random_workload.operations import Operation, Transfer, Wait, sample_operation

log = logging.getLogger("random_workload.script")


class ScriptFormatError(ValueError):
    """Raised when a saved script cannot be decoded into operations."""


def wait_budget_exceeded(wait_time: timedelta, total_duration: timedelta) -> bool:
    return wait_time > total_duration


def encode_operation(op: Operation) -> dict:
    if isinstance(op, Transfer):
        return {op.kind: {"to": op.to, "amount": op.amount}}
    if isinstance(op, Wait):
        secs, rem = divmod(op.duration, timedelta(seconds=1))
        return {op.kind: {"secs": secs, "nanos": rem // timedelta(microseconds=1) * 1000}}
    raise TypeError(f"unsupported operation: {type(op)}")


def _uint(body: dict, key: str, stop: int | None = None) -> int:
    value = body[key]
    # bool is an int subclass; JSON true/false is not a number here.
    if type(value) is not int or value < 0 or (stop is not None and value >= stop):
        raise ScriptFormatError(f"{key} must be an integer in [0, {stop or 'inf'}), got {value!r}")
    return value


def decode_operation(data) -> Operation:
    if not isinstance(data, dict) or len(data) != 1:
        raise ScriptFormatError(f"expected a single-key object, got {data!r}")
    [(tag, body)] = data.items()
    try:
        match tag:
            case C.OpKind.TRANSFER:
                if not isinstance(body["to"], str):
                    raise ScriptFormatError(f"to must be an address string, got {body['to']!r}")
                return Transfer(to=body["to"], amount=_uint(body, "amount"))
            case C.OpKind.WAIT:
                secs, nanos = _uint(body, "secs"), _uint(body, "nanos", stop=10**9)
                return Wait(duration=timedelta(seconds=secs, microseconds=nanos // 1000))
    except (KeyError, TypeError, ValueError) as e:
        raise ScriptFormatError(f"malformed {tag} operation: {body!r}") from e
    raise ScriptFormatError(f"unknown operation {tag!r}")


@dataclass
class Operations:
    ops: list[Operation] = field(default_factory=list)

    def __len__(self):
        return len(self.ops)

    def __iter__(self):
        return iter(self.ops)

    def total_wait(self) -> timedelta:
        return sum((op.duration for op in self.ops if isinstance(op, Wait)), timedelta())

    @classmethod
    def generate(cls, total_duration: timedelta, rng=None) -> "Operations":
        """Draw operations until the summed Wait time is strictly greater than ``total_duration``."""
        wait_time = timedelta()
        operations = []
        while True:
            operation = sample_operation(rng)
            if isinstance(operation, Wait):
                wait_time += operation.duration
            operations.append(operation)
            if wait_budget_exceeded(wait_time, total_duration):
                break
        log.info("Generated %s operations, %s of waiting", len(operations), wait_time)
        return cls(operations)

    def save(self, path: Path) -> None:
        data = json.dumps([encode_operation(op) for op in self.ops], indent=2)
        Path(path).write_text(data)

    @classmethod
    def load(cls, path: Path) -> "Operations":
        data = json.loads(Path(path).read_text())
        if not isinstance(data, list):
            raise ScriptFormatError(f"{path}: expected a list of operations")
        return cls([decode_operation(item) for item in data])
