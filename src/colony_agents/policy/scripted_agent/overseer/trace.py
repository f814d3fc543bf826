"""Per-agent task annotations for the Overseer policy."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from colony_agents.policy.scripted_agent.common.geometry import Position

IDLE = "idle"


@dataclass
class TraceEntry:
    """What one agent was doing at the end of a tick."""

    task: str
    task_list: str = ""
    idle_ticks: int = 0  # Consecutive ticks without an assignment


@dataclass
class TaskTrace:
    """In-memory annotation sink. Overwritten every tick; no behavioral effect."""

    entries: dict[str, TraceEntry] = field(default_factory=dict)

    def annotate(self, agent_id: str, task: str, task_list: str) -> None:
        prev = self.entries.get(agent_id)
        idle_ticks = 0
        if task == IDLE:
            idle_ticks = prev.idle_ticks + 1 if prev is not None else 1
        self.entries[agent_id] = TraceEntry(task=task, task_list=task_list, idle_ticks=idle_ticks)

    def get(self, agent_id: str) -> Optional[TraceEntry]:
        return self.entries.get(agent_id)

    def forget(self, agent_ids: set[str]) -> None:
        """Drop entries for agents that left the roster."""
        for agent_id in [a for a in self.entries if a not in agent_ids]:
            del self.entries[agent_id]

    def format_line(self, tick: int, agent_id: str, archetype: str, pos: Position, level: int = 1) -> str:
        """Format one agent's annotation as a single line."""
        entry = self.entries.get(agent_id)
        if entry is None:
            entry = TraceEntry(task=IDLE)
        idle_str = f" IDLE={entry.idle_ticks}" if entry.idle_ticks >= 20 else ""
        prefix = f"[t={tick} a={agent_id} {archetype} ({pos.x},{pos.y})@{pos.zone}{idle_str}]"

        if level == 1 or not entry.task_list:
            return f"{prefix} {entry.task}"
        return f"{prefix} {entry.task} → {entry.task_list}"
