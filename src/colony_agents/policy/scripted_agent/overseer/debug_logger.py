"""
Debug logging for the Overseer policy.

Provides structured, per-tick debug output for diagnosing scheduling and
population decisions.

Verbosity levels (set via URI param ``overseer?debug=0/1/2``):
    0: disabled (default)
    1: per-tick summary: assignment counts, outcomes, requisitions
    2: full detail: per-agent task/task-list, scheduler events, cpu usage

All output lines are prefixed with ``[overseer:debug]`` so they can be grepped
from mixed output. The end-of-run summary is a single JSON line prefixed with
``[overseer:debug:summary]``.
"""

from __future__ import annotations

import json
import sys
from collections import Counter
from dataclasses import dataclass
from typing import Any, Optional

from colony_agents.policy.scripted_agent.common.geometry import Position

# ---------------------------------------------------------------------------
# Per-agent tick record
# ---------------------------------------------------------------------------


@dataclass
class AgentTickRecord:
    """Snapshot of one agent's scheduling state for a single tick."""

    agent_id: str
    archetype: str
    position: Position
    task: str
    task_list: str = ""
    energy: int = 0
    ticks_to_live: Optional[int] = None


# ---------------------------------------------------------------------------
# Tick summary
# ---------------------------------------------------------------------------


@dataclass
class TickSummary:
    """Counts of what the scheduler and population controller did in one tick."""

    tick: int
    active: int = 0
    idle: int = 0
    assigned: int = 0
    completed: int = 0
    cancelled: int = 0
    switched: int = 0
    spawned: int = 0

    def as_dict(self) -> dict[str, int]:
        return {
            "tick": self.tick,
            "active": self.active,
            "idle": self.idle,
            "assigned": self.assigned,
            "completed": self.completed,
            "cancelled": self.cancelled,
            "switched": self.switched,
            "spawned": self.spawned,
        }


@dataclass
class SchedulerEvent:
    """One notable event: a removed directive, a rejected requisition, a step error."""

    tick: int
    kind: str
    detail: str


@dataclass
class CpuSample:
    tick: int
    phase: str
    used: float


# ---------------------------------------------------------------------------
# DebugLogger
# ---------------------------------------------------------------------------


class DebugLogger:
    """Collects and emits structured debug output each tick.

    Instantiated once per ``OverseerPolicy`` when ``debug >= 1``. The scheduler
    records events and agent snapshots as it goes; the policy calls
    :meth:`flush_tick` once the population controller has run.

    Parameters
    ----------
    level : int
        Verbosity level (1 or 2).
    output : file-like, optional
        Where to write output. Defaults to ``sys.stderr``.
    """

    PREFIX = "[overseer:debug]"

    def __init__(self, level: int = 1, output: Any = None) -> None:
        self.level = level
        self._out = output or sys.stderr

        # Per-tick accumulators, cleared on flush
        self._tick_records: list[AgentTickRecord] = []
        self._tick_events: list[SchedulerEvent] = []
        self._tick_cpu: list[CpuSample] = []
        self._summary: Optional[TickSummary] = None

        # Persistent trackers
        self._history: list[TickSummary] = []
        self._event_counts: Counter[str] = Counter()
        self._cancel_reasons: Counter[str] = Counter()
        self._spawned: Counter[str] = Counter()

    # ------------------------------------------------------------------
    # Recording
    # ------------------------------------------------------------------

    def record_agent_tick(
        self,
        agent_id: str,
        archetype: str,
        position: Position,
        task: str,
        task_list: str = "",
        energy: int = 0,
        ticks_to_live: Optional[int] = None,
    ) -> None:
        self._tick_records.append(
            AgentTickRecord(
                agent_id=agent_id,
                archetype=archetype,
                position=position,
                task=task,
                task_list=task_list,
                energy=energy,
                ticks_to_live=ticks_to_live,
            )
        )

    def record_event(self, tick: int, kind: str, detail: str) -> None:
        self._tick_events.append(SchedulerEvent(tick=tick, kind=kind, detail=detail))
        self._event_counts[kind] += 1

    def record_cancel(self, reason: str) -> None:
        self._cancel_reasons[reason] += 1

    def record_spawn(self, archetype: str) -> None:
        self._spawned[archetype] += 1
        if self._summary is not None:
            self._summary.spawned += 1

    def record_cpu(self, tick: int, phase: str, used: float) -> None:
        self._tick_cpu.append(CpuSample(tick=tick, phase=phase, used=used))

    def record_tick(self, summary: TickSummary) -> None:
        self._summary = summary

    # ------------------------------------------------------------------
    # Flush (called once per tick after scheduling and spawning)
    # ------------------------------------------------------------------

    def flush_tick(self) -> None:
        """Emit debug output for the current tick and reset accumulators."""
        summary = self._summary
        if summary is None:
            return
        self._history.append(summary)

        # --- Level 1: counts ---
        self._emit(
            f"t={summary.tick} active={summary.active} idle={summary.idle} "
            f"+{summary.assigned} done={summary.completed} cancel={summary.cancelled} "
            f"switch={summary.switched} spawn={summary.spawned}"
        )

        # --- Level 2: per-agent detail, events, cpu ---
        if self.level >= 2:
            for rec in sorted(self._tick_records, key=lambda r: r.agent_id):
                ttl = f" ttl={rec.ticks_to_live}" if rec.ticks_to_live is not None else ""
                self._emit(
                    f"  a={rec.agent_id} {rec.archetype} "
                    f"({rec.position.x},{rec.position.y})@{rec.position.zone} "
                    f"e={rec.energy}{ttl} "
                    f"task={rec.task} list={rec.task_list}"
                )
            for ev in self._tick_events:
                self._emit(f"  event {ev.kind}: {ev.detail}")
            if self._tick_cpu:
                cpu = " ".join(f"{s.phase}={s.used:.2f}" for s in self._tick_cpu)
                self._emit(f"  cpu {cpu}")

        self._tick_records.clear()
        self._tick_events.clear()
        self._tick_cpu.clear()
        self._summary = None

    # ------------------------------------------------------------------
    # End-of-run summary
    # ------------------------------------------------------------------

    def emit_run_summary(self, run: int = 0) -> None:
        """Emit a structured JSON summary at the end of a run."""
        summary = {
            "run": run,
            "total_ticks": len(self._history),
            "timeline": [s.as_dict() for s in self._history],
            "events": dict(sorted(self._event_counts.items())),
            "cancel_reasons": dict(sorted(self._cancel_reasons.items())),
            "spawned": dict(sorted(self._spawned.items())),
        }
        line = json.dumps(summary, separators=(",", ":"))
        print(f"[overseer:debug:summary] {line}", file=self._out, flush=True)

    def reset_run(self) -> None:
        """Reset state between runs."""
        self._tick_records.clear()
        self._tick_events.clear()
        self._tick_cpu.clear()
        self._summary = None
        self._history.clear()
        self._event_counts.clear()
        self._cancel_reasons.clear()
        self._spawned.clear()

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _emit(self, msg: str) -> None:
        print(f"{self.PREFIX} {msg}", file=self._out, flush=True)
