#!/usr/bin/env python3
## vi: tabstop=4 shiftwidth=4 softtabstop=4 expandtab
## ---------------------------------------------------------------------
##
## Copyright (C) 2026 by the addiis authors
##
## This file is part of addiis.
##
## addiis is free software: you can redistribute it and/or modify
## it under the terms of the GNU General Public License as published
## by the Free Software Foundation, either version 3 of the License, or
## (at your option) any later version.
##
## addiis is distributed in the hope that it will be useful,
## but WITHOUT ANY WARRANTY; without even the implied warranty of
## MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the
## GNU General Public License for more details.
##
## You should have received a copy of the GNU General Public License
## along with addiis. If not, see <http://www.gnu.org/licenses/>.
##
## ---------------------------------------------------------------------
import time
import functools
from contextlib import contextmanager


class Timer:
    """Accumulates the wall time spent in named tasks."""
    def __init__(self):
        self.intervals: dict[str, list[float]] = {}

    @contextmanager
    def record(self, task: str):
        """Context manager recording the time spent in the block under `task`."""
        start = time.perf_counter()
        try:
            yield self
        finally:
            self.intervals.setdefault(task, []).append(
                time.perf_counter() - start
            )

    @property
    def tasks(self) -> list[str]:
        return list(self.intervals.keys())

    def count(self, task: str) -> int:
        """Number of times the task has been recorded"""
        return len(self.intervals.get(task, []))

    def total(self, task: str) -> float:
        """Total time spent in the task"""
        return sum(self.intervals.get(task, []))

    def describe(self) -> str:
        lines = []
        for task in sorted(self.intervals):
            lines.append(f"{task:<30s} {self.count(task):6d} calls "
                         f"{self.total(task):12.6f} s")
        return "\n".join(lines)


def timed_member_call(timer: str = "timer", task: str = None):
    """
    Decorator recording the time spent in the decorated member function
    in the `Timer` stored under the attribute `timer` of the instance.
    The task name defaults to the name of the function.
    """
    def decorator(function):
        name = task if task is not None else function.__name__

        @functools.wraps(function)
        def wrapper(self, *args, **kwargs):
            with getattr(self, timer).record(name):
                return function(self, *args, **kwargs)
        return wrapper
    return decorator
