"""Shared fixtures: scripted random sources for deterministic rolls."""

import pytest


class ScriptedRandom:
    """Replays queued values from randint, checking each against its range."""

    def __init__(self, values):
        self.values = list(values)

    def randint(self, a: int, b: int) -> int:
        if not self.values:
            raise AssertionError("ran out of scripted rolls")
        value = self.values.pop(0)
        assert a <= value <= b, f"scripted value {value} outside [{a}, {b}]"
        return value


@pytest.fixture
def scripted():
    return ScriptedRandom
