"""Scheduling: fixed-period poll loop with a non-overlap cycle guard."""

from ordermint.live.cycle_guard import CycleGuard, LocalCycleGuard, RedisCycleGuard
from ordermint.live.poll_loop import PollLoop, PollLoopStats

__all__ = [
    "CycleGuard",
    "LocalCycleGuard",
    "PollLoop",
    "PollLoopStats",
    "RedisCycleGuard",
]
