"""Ordered, optionally repeating chain of tasks forming one multi-step job."""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional, Sequence

if TYPE_CHECKING:
    from .tasks import Task


class TaskList:
    """A job such as withdraw -> deliver -> wait, worked one task at a time.

    The cursor always indexes a live task. ``advance`` moves it forward,
    wrapping to 0 when ``repeat`` is set, and returns None once a
    non-repeating list is exhausted (the cursor is left on the last task).
    """

    def __init__(self, tasks: Sequence[Task], repeat: bool = False, primary_index: int = 0):
        if not tasks:
            raise ValueError("TaskList needs at least one task")
        if not 0 <= primary_index < len(tasks):
            raise ValueError(f"primary_index {primary_index} out of range for {len(tasks)} tasks")
        self._tasks: list[Task] = list(tasks)
        self.repeat = repeat
        self._cursor = 0
        self._primary_index = primary_index

    @classmethod
    def single(cls, task: Task) -> TaskList:
        return cls([task])

    @property
    def cursor(self) -> int:
        return self._cursor

    @property
    def primary_index(self) -> int:
        return self._primary_index

    @property
    def tasks(self) -> tuple[Task, ...]:
        return tuple(self._tasks)

    def __len__(self) -> int:
        return len(self._tasks)

    def current_task(self) -> Task:
        return self._tasks[self._cursor]

    def current_task_mutable(self) -> Task:
        # Tasks carry their own retry state; the scheduler steps this instance in place.
        return self._tasks[self._cursor]

    def primary_task(self) -> Task:
        return self._tasks[self._primary_index]

    def advance(self) -> Optional[Task]:
        if self._cursor + 1 >= len(self._tasks):
            if not self.repeat:
                return None
            self._cursor = 0
        else:
            self._cursor += 1
        return self._tasks[self._cursor]

    def describe(self) -> str:
        parts = []
        for idx, task in enumerate(self._tasks):
            marker = ">" if idx == self._cursor else ""
            parts.append(f"{marker}{task.task_type.value}")
        suffix = " (repeat)" if self.repeat else ""
        return "[" + ", ".join(parts) + "]" + suffix

    def __repr__(self) -> str:
        return f"TaskList({self.describe()})"
