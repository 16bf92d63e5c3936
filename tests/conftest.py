"""
Tuner Signal Monitor Test Configuration

Shared fixtures: pinned device output samples and a scripted fake of the
hdhomerun_config runner.
"""

from pathlib import Path
from typing import Dict, Any

import pytest

from device_command import DeviceCommandError

FIXTURES_DIR = Path(__file__).parent / "fixtures"

_MISSING = object()


def read_fixture(name: str) -> str:
    return (FIXTURES_DIR / name).read_text()


class FakeRunner:
    """
    Scripted stand-in for DeviceCommandRunner.

    responses maps a key to an answer:
      ("get", device, path), ("set", device, path, value),
      ("scan", device, tuner, channel_map), ("discover", host_or_None)
    An answer may be a string, an Exception instance (raised) or a list of
    answers consumed in order (the last one repeats).
    """

    def __init__(self, responses: Dict[tuple, Any] = None):
        self.responses = dict(responses or {})
        self.calls = []

    def _answer(self, key, default=_MISSING):
        self.calls.append(key)
        if key not in self.responses:
            if default is not _MISSING:
                return default
            raise DeviceCommandError(f"no scripted response for {key}")

        answer = self.responses[key]
        if isinstance(answer, list):
            answer = answer.pop(0) if len(answer) > 1 else answer[0]
        if isinstance(answer, Exception):
            raise answer
        return answer

    async def get(self, device, path, timeout=None):
        return self._answer(("get", device, path))

    async def set(self, device, path, value, timeout=None):
        return self._answer(("set", device, path, value), default="")

    async def scan(self, device, tuner, channel_map, timeout=None):
        return self._answer(("scan", device, tuner, channel_map))

    async def discover(self, host=None, timeout=None):
        return self._answer(("discover", host))

    def count(self, key) -> int:
        return sum(1 for call in self.calls if call == key)


@pytest.fixture
def fixture_text():
    """Load a pinned raw device output sample by file name"""
    return read_fixture


@pytest.fixture
def make_runner():
    """Build a FakeRunner from a responses mapping"""
    return FakeRunner


@pytest.fixture
def device_config() -> Dict[str, Any]:
    return {
        'poll_timeout_seconds': 0.75,
        'command_timeout_seconds': 5,
        'scan_timeout_seconds': 90,
    }
