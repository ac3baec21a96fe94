"""Timed task models: the idle task ledger.

Every long-running action (gather, smelt, engineer, colonize, contact,
grow) is a :class:`TimedTask` held in the :class:`TaskLedger` of its
activity class.  A task is due once ``now - start_time >= duration``;
what happens then is decided by the owning service.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional


class ActivityClass(Enum):
    """Activity classes with their own task ledger."""

    GATHER = "gather"
    SMELT = "smelt"
    ENGINEER = "engineer"
    COLONIZE = "colonize"
    CONTACT = "contact"
    GROW = "grow"


# Only one of these may run at a time (combat is exclusive with all of them).
PRODUCTIVE_CLASSES = (ActivityClass.GATHER, ActivityClass.SMELT, ActivityClass.ENGINEER)


@dataclass
class TimedTask:
    """A single timed action.

    Attributes:
        subject_id: Resource, recipe, building, planet or plot id.
        start_time: Wall-clock ms when the task started.
        duration: Task length in ms.
        completed: Set once the completion effects were applied.
        auto_resume: Restart automatically after completion.
    """

    subject_id: str
    start_time: int
    duration: int
    completed: bool = False
    auto_resume: bool = False

    @property
    def deadline(self) -> int:
        return self.start_time + self.duration

    def is_due(self, now: int) -> bool:
        return now - self.start_time >= self.duration

    def remaining_ms(self, now: int) -> int:
        return max(0, self.deadline - now)


@dataclass
class TaskLedger:
    """Tasks of one activity class keyed by subject id.

    At most one task exists per subject; starting again replaces it.
    """

    activity: ActivityClass
    tasks: dict[str, TimedTask] = field(default_factory=dict)

    def start(self, subject_id: str, duration: int, now: int,
              auto_resume: bool = False) -> TimedTask:
        """Create or replace the task for *subject_id*."""
        task = TimedTask(subject_id=subject_id, start_time=now,
                         duration=max(0, int(duration)), auto_resume=auto_resume)
        self.tasks[subject_id] = task
        return task

    def stop(self, subject_id: str) -> Optional[TimedTask]:
        """Remove and return the task for *subject_id*."""
        return self.tasks.pop(subject_id, None)

    def stop_all(self) -> list[str]:
        """Remove every task, returning the subject ids that were removed."""
        removed = list(self.tasks)
        self.tasks.clear()
        return removed

    def get(self, subject_id: str) -> Optional[TimedTask]:
        return self.tasks.get(subject_id)

    def active(self) -> list[TimedTask]:
        """Tasks whose completion effects have not been applied yet."""
        return [t for t in self.tasks.values() if not t.completed]

    def due(self, now: int) -> list[TimedTask]:
        """Active tasks whose deadline has passed, oldest deadline first."""
        ready = [t for t in self.tasks.values() if not t.completed and t.is_due(now)]
        ready.sort(key=lambda t: t.deadline)
        return ready

    def __len__(self) -> int:
        return len(self.tasks)


@dataclass
class GatherCycleState:
    """Per-resource gather counter.

    Attributes:
        count: Successful gathers since the last respawn.
        auto_resume: Keep gathering after completions and respawns.
        respawn_deadline: Wall-clock ms until which the resource is
            depleted (None = available).
    """

    count: int = 0
    auto_resume: bool = False
    respawn_deadline: Optional[int] = None

    def on_cooldown(self, now: int) -> bool:
        return self.respawn_deadline is not None and now < self.respawn_deadline
