"""
animation.py — Frames and Sub-Stepping
=======================================
The animation driver (GUI loop, CLI, tests) thinks in frames; the
physics thinks in time steps. PhysicsAnimation sits between the two:

  frame (1/60 s) → N sub-steps → on_advance_time_step(Δt/N) each

N is either fixed or chosen per frame by `number_of_sub_time_steps`,
which subclasses override with a stability criterion (CFL).
"""

import logging
from dataclasses import dataclass

log = logging.getLogger(__name__)


@dataclass
class Frame:
    """An animation frame: its index and how much time it covers."""

    index: int = 0
    time_interval_in_seconds: float = 1.0 / 60.0

    def time_in_seconds(self) -> float:
        return self.index * self.time_interval_in_seconds

    def advance(self, delta: int = 1) -> "Frame":
        self.index += delta
        return self


class PhysicsAnimation:
    """
    Base class for time integrators with adaptive or fixed sub-stepping.

    Subclasses implement:
      - on_initialize()                   — once, before the first step
      - on_advance_time_step(dt)          — one sub-step
      - number_of_sub_time_steps(dt)      — adaptive sub-step count
    """

    def __init__(self):
        self._current_frame = Frame(index=-1)
        self._current_time = 0.0
        self._initialized = False
        self.use_fixed_sub_time_steps = True
        self._number_of_fixed_sub_time_steps = 1

    @property
    def current_time(self) -> float:
        return self._current_time

    @property
    def current_frame(self) -> Frame:
        return self._current_frame

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    @property
    def number_of_fixed_sub_time_steps(self) -> int:
        return self._number_of_fixed_sub_time_steps

    @number_of_fixed_sub_time_steps.setter
    def number_of_fixed_sub_time_steps(self, count: int):
        self._number_of_fixed_sub_time_steps = max(int(count), 1)

    # ── Overridables ──────────────────────────────────────────────────────
    def on_initialize(self):
        pass

    def on_advance_time_step(self, time_interval: float):
        raise NotImplementedError

    def number_of_sub_time_steps(self, time_interval: float) -> int:
        return self._number_of_fixed_sub_time_steps

    # ── Driving ──────────────────────────────────────────────────────────
    def initialize(self):
        """Run `on_initialize` exactly once; later calls do nothing."""
        if self._initialized:
            return
        self._initialized = True
        self.on_initialize()

    def sub_step_count(self, time_interval: float) -> int:
        if self.use_fixed_sub_time_steps:
            return self._number_of_fixed_sub_time_steps
        return max(int(self.number_of_sub_time_steps(time_interval)), 1)

    def advance(self, time_interval: float) -> int:
        """
        Advance by `time_interval` seconds.

        Returns: the number of sub-steps taken
        """
        self.initialize()
        count = self.sub_step_count(time_interval)
        sub_interval = time_interval / count
        for _ in range(count):
            self.on_advance_time_step(sub_interval)
            self._current_time += sub_interval
        return count

    def advance_frame(self, frame: Frame):
        """Advance to `frame`, stepping through every frame in between."""
        if frame.index <= self._current_frame.index:
            log.warning("Frame %d is not ahead of current frame %d, ignoring",
                        frame.index, self._current_frame.index)
            return
        for index in range(self._current_frame.index + 1, frame.index + 1):
            self.advance(frame.time_interval_in_seconds)
            self._current_frame = Frame(index, frame.time_interval_in_seconds)
