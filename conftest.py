import os
from datetime import datetime, timedelta, timezone

import pytest

from library import Library


class FakeClock:
    """Returns a fixed start time, then moves forward one minute per call."""

    def __init__(self, start: datetime = datetime(2024, 3, 1, 10, 0, tzinfo=timezone.utc)) -> None:
        self.current = start

    def __call__(self) -> datetime:
        value = self.current
        self.current = self.current + timedelta(minutes=1)
        return value


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def data_file(tmp_path, request):
    # A separate data file for every test
    return str(tmp_path / f"library_{request.node.name}.json")


@pytest.fixture
def lib(data_file, clock):
    lib = Library(data_file=data_file, clock=clock)
    yield lib
    if os.path.exists(data_file):
        os.remove(data_file)
