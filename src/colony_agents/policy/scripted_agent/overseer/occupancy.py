"""
Occupancy bookkeeping for target deconfliction.

Three maps, all rebuilt from the assignment table at the end of every tick:
- by archetype: zone -> archetype -> number of assigned agents
- by position:  zone -> position  -> number of assigned agents
- by target:    occupancy key -> number of assigned agents (follows moving targets)

Between rebuilds, ``record_assignment`` applies provisional increments so
agents assigned later in the same tick see the earlier claims.

Usage:
    tracker = OccupancyTracker()
    if not tracker.is_position_occupied(zone, pos):
        tracker.record_assignment(agent, task_list)
    tracker.recompute(assignments, roster, exempt)
"""

from __future__ import annotations

from collections import defaultdict
from typing import Iterable, Mapping, Optional

from colony_agents.policy.scripted_agent.common.geometry import Position

from .task_list import TaskList
from .types import AgentView


def job_position(task_list: TaskList) -> Optional[Position]:
    """Where a job counts for occupancy: the primary target, else the current task's target."""
    position = task_list.primary_task().target_position
    if position is None:
        position = task_list.current_task().target_position
    return position


def job_key(task_list: TaskList) -> Optional[str]:
    """Which target a job holds, independent of where that target currently stands."""
    key = task_list.primary_task().occupancy_key()
    if key is None:
        key = task_list.current_task().occupancy_key()
    return key


class OccupancyTracker:
    def __init__(self) -> None:
        self.by_archetype: dict[str, dict[str, int]] = defaultdict(lambda: defaultdict(int))
        self.by_position: dict[str, dict[Position, int]] = defaultdict(lambda: defaultdict(int))
        self.by_target: dict[str, int] = defaultdict(int)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def is_position_occupied(self, zone: str, position: Position, target_count: int = 1) -> bool:
        return self.position_count(zone, position) >= target_count

    def position_count(self, zone: str, position: Position) -> int:
        counts = self.by_position.get(zone)
        return counts.get(position, 0) if counts else 0

    def target_count(self, key: str) -> int:
        return self.by_target.get(key, 0)

    def archetype_count(self, zone: str, archetype: str) -> int:
        counts = self.by_archetype.get(zone)
        return counts.get(archetype, 0) if counts else 0

    # ------------------------------------------------------------------
    # Updates
    # ------------------------------------------------------------------

    def record_assignment(self, agent: AgentView, task_list: TaskList, exempt: frozenset[str] = frozenset()) -> None:
        """Provisional increments for an assignment made mid-tick."""
        key = job_key(task_list)
        if key is not None:
            self.by_target[key] += 1
        position = job_position(task_list)
        if position is None:
            return
        self.by_position[position.zone][position] += 1
        if position.zone != agent.zone and agent.archetype not in exempt:
            self.by_archetype[position.zone][agent.archetype] += 1
            current = self.by_archetype[agent.zone]
            current[agent.archetype] = max(0, current[agent.archetype] - 1)

    def recompute(
        self,
        assignments: Mapping[str, TaskList],
        roster: Iterable[AgentView],
        exempt: frozenset[str] = frozenset(),
    ) -> None:
        """Rebuild all maps from scratch.

        Exempt archetypes still hold their target positions and keys but never
        count toward a zone's archetype occupancy.
        """
        self.by_archetype = defaultdict(lambda: defaultdict(int))
        self.by_position = defaultdict(lambda: defaultdict(int))
        self.by_target = defaultdict(int)
        for agent in roster:
            task_list = assignments.get(agent.id)
            if task_list is None:
                continue
            key = job_key(task_list)
            if key is not None:
                self.by_target[key] += 1
            position = job_position(task_list)
            zone = position.zone if position is not None else agent.zone
            if position is not None:
                self.by_position[zone][position] += 1
            if agent.archetype not in exempt:
                self.by_archetype[zone][agent.archetype] += 1

    def snapshot(self) -> dict[str, dict[str, int]]:
        """Plain-dict copy of the archetype map for reports."""
        return {zone: dict(counts) for zone, counts in self.by_archetype.items() if counts}
