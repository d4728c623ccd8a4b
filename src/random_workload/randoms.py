"""Process-wide random source for script generation.

Everything that draws randomness goes through here so a run can be reproduced
by seeding once at startup.
"""
import random

_rng = random.Random()


def seed(value: int | str | None) -> None:
    _rng.seed(value)


def source() -> random.Random:
    return _rng
