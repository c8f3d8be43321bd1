"""Translate arrival-rate phases into Locust shape ticks.

A phase starts ``arrival_rate`` new virtual users per second for ``duration``
seconds, each running the journey once and then stopping. Locust shapes steer
a target user count and refill users that stopped on their own, so
``ArrivalPlan`` targets the arrivals due so far minus the journeys already
finished. Each arrival is therefore started exactly once.
"""

from __future__ import annotations

import math
from typing import Sequence

from loadflow.core.profiles import Phase


def total_duration(phases: Sequence[Phase]) -> int:
    return sum(phase.duration for phase in phases)


def _phase_arrivals(phase: Phase) -> int:
    return math.ceil(phase.arrival_rate * phase.duration)


def total_arrivals(phases: Sequence[Phase]) -> int:
    return sum(_phase_arrivals(phase) for phase in phases)


def plan_tick(phases: Sequence[Phase], run_time: float) -> tuple[int, float] | None:
    """Return ``(arrivals_due, arrival_rate)`` at ``run_time`` seconds, or ``None`` after the last phase.

    ``arrivals_due`` is cumulative over all phases. The first arrival of a
    phase happens at its start, so a phase with rate 2/s has 1 arrival due at
    0 s, 2 at 0.5 s and never more than ``ceil(rate * duration)``.
    """

    if run_time < 0:
        raise ValueError("run_time must not be negative")
    phase_start = 0.0
    arrivals = 0
    for phase in phases:
        phase_end = phase_start + phase.duration
        if run_time < phase_end:
            in_phase = run_time - phase_start
            current = min(_phase_arrivals(phase), math.floor(phase.arrival_rate * in_phase) + 1)
            return arrivals + current, phase.arrival_rate
        arrivals += _phase_arrivals(phase)
        phase_start = phase_end
    return None


def describe_phases(phases: Sequence[Phase]) -> list[str]:
    lines = []
    offset = 0
    for index, phase in enumerate(phases, start=1):
        label = phase.name or f"phase {index}"
        lines.append(
            f"{offset:>5}s +{phase.duration:<4}s {phase.arrival_rate:g} users/s "
            f"({_phase_arrivals(phase)} arrivals) {label}"
        )
        offset += phase.duration
    return lines


class ArrivalPlan:
    """Shape state for one load test run.

    ``finished`` counts users that ended their journey; together with the
    live user count it tells how many arrivals were already started. After
    the last phase the plan keeps the live users until they finish and then
    ends the test.
    """

    def __init__(self, phases: Sequence[Phase]) -> None:
        self.phases = tuple(phases)
        self.finished = 0
        self._last_target = 0

    def reset(self) -> None:
        self.finished = 0
        self._last_target = 0

    def record_finished(self) -> None:
        self.finished += 1

    def tick(self, run_time: float, live_users: int) -> tuple[int, float] | None:
        """Return ``(user_count, spawn_rate)`` for Locust, or ``None`` when done."""

        planned = plan_tick(self.phases, run_time)
        if planned is not None:
            due, rate = planned
        elif self.phases:
            due, rate = total_arrivals(self.phases), self.phases[-1].arrival_rate
        else:
            due, rate = 0, 1.0
        target = max(live_users, due - self.finished)
        if planned is None and target == 0:
            return None
        # Locust walks from its previous target in spawn-rate sized steps and
        # refills each step from the live count, so the change must be one step.
        spawn_rate = float(max(rate, target, self._last_target, 1))
        self._last_target = target
        return target, spawn_rate
