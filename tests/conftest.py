import random
from typing import Callable

import pytest

from crazytie.core.scheduler import ManualClock, TimerScheduler
from crazytie.utils.rng import build_rng


def run_until(scheduler: TimerScheduler, predicate: Callable[[], bool], *, limit: float = 120.0) -> float:
    """Fire timers one deadline at a time until ``predicate`` holds; return the clock."""

    start = scheduler.now()
    while not predicate():
        wait = scheduler.time_until_next()
        if wait is None:
            raise AssertionError("scheduler went idle before the condition was met")
        if scheduler.now() + wait - start > limit:
            raise AssertionError(f"condition not met within {limit}s of simulated time")
        scheduler.advance(wait)
    return scheduler.now()


@pytest.fixture()
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture()
def scheduler(clock: ManualClock) -> TimerScheduler:
    return TimerScheduler(clock)


@pytest.fixture()
def rng() -> random.Random:
    return build_rng(seed=7)


@pytest.fixture()
def advance_until():
    return run_until
