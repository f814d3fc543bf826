"""
Overseer scheduler: matches idle agents to work and steps every assignment once per tick.

Tick phases, in order:
1. cleanup      drop assignments for agents no longer in the roster
2. generate     directive candidates + per-zone candidates
3. assign       idle agents: directives -> own zone -> other zones -> default fallback
4. relays       node-side relays push their contents
5. execute      one step per assigned agent, outcomes buffered
6. reconcile    completions, then cancellations, then switches
7. recompute    rebuild occupancy from the assignment table
8. annotate     write task descriptions to the annotation sinks

The assignment table and the occupancy maps are owned by the scheduler and
only mutated during these phases.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Optional, Sequence

import numpy as np

from colony_agents.policy.scripted_agent.common.geometry import Position
from colony_agents.policy.scripted_agent.common.roles import ARCHETYPE_TASK_PINS

from .candidates import DirectiveCandidates, default_task_list, directive_candidates, zone_candidates
from .config import SchedulerConfig
from .debug_logger import DebugLogger, TickSummary
from .occupancy import OccupancyTracker
from .relays import dispatch_relays
from .task_list import TaskList
from .tasks import OutcomeKind, StepOutcome, list_capabilities
from .trace import IDLE, TaskTrace
from .types import AgentView, CancelReason, TaskType
from .world import AnnotationSink, CpuMeter, WorldState


@dataclass
class CandidatePool:
    """Everything offered to idle agents this tick. Taken candidates are removed."""

    directives: list[TaskList] = field(default_factory=list)
    zones: dict[str, list[TaskList]] = field(default_factory=dict)
    rally: Optional[Position] = None
    pending_claims: int = 0


@dataclass
class TickReport:
    tick: int
    active: list[str] = field(default_factory=list)
    idle: list[str] = field(default_factory=list)
    assigned: list[str] = field(default_factory=list)
    completed: list[str] = field(default_factory=list)
    cancelled: dict[str, CancelReason] = field(default_factory=dict)
    switched: list[str] = field(default_factory=list)
    errors: dict[str, str] = field(default_factory=dict)
    relay_transfers: int = 0
    pending_claims: int = 0
    spawned: list[str] = field(default_factory=list)


class Scheduler:
    """Owns the agent -> TaskList table for the whole run."""

    def __init__(
        self,
        config: Optional[SchedulerConfig] = None,
        debug_logger: Optional[DebugLogger] = None,
        sink: Optional[AnnotationSink] = None,
    ) -> None:
        self.config = config or SchedulerConfig()
        self.assignments: dict[str, TaskList] = {}
        self.occupancy = OccupancyTracker()
        self.trace = sink if sink is not None else TaskTrace()
        self._debug_logger = debug_logger

    # ------------------------------------------------------------------
    # Tick
    # ------------------------------------------------------------------

    def tick(self, world: WorldState) -> TickReport:
        report = TickReport(tick=world.tick)
        roster = world.agents()

        self.cleanup(roster)
        self._cpu(world, "cleanup")

        pool = self.generate(world)
        report.pending_claims = pool.pending_claims
        self._cpu(world, "generate")

        report.idle = [a.id for a in self.idle_agents(roster, world.tick)]
        report.assigned = self.assign(world, pool, roster)
        self._cpu(world, "assign")

        report.relay_transfers = dispatch_relays(world, self.config, self._debug_logger)

        outcomes = self.execute(world, report)
        self.reconcile(outcomes, report)
        self._cpu(world, "execute")

        roster = world.agents()
        self.occupancy.recompute(self.assignments, roster, self.config.occupancy_exempt)
        self.annotate(world, roster)
        report.active = sorted(self.assignments)

        if self._debug_logger is not None:
            self._debug_logger.record_tick(
                TickSummary(
                    tick=world.tick,
                    active=len(report.active),
                    idle=len(report.idle) - len(report.assigned),
                    assigned=len(report.assigned),
                    completed=len(report.completed),
                    cancelled=len(report.cancelled),
                    switched=len(report.switched),
                )
            )
        return report

    # ------------------------------------------------------------------
    # Phases
    # ------------------------------------------------------------------

    def cleanup(self, roster: Sequence[AgentView]) -> None:
        present = {a.id for a in roster}
        for agent_id in [a for a in self.assignments if a not in present]:
            del self.assignments[agent_id]

    def generate(self, world: WorldState) -> CandidatePool:
        directives: DirectiveCandidates = directive_candidates(world, self.occupancy, self._debug_logger)
        pool = CandidatePool(
            directives=directives.task_lists,
            rally=directives.rally,
            pending_claims=directives.pending_claims,
        )
        for zone in world.zones():
            pool.zones[zone.name] = zone_candidates(zone, self.occupancy, self.config)
        return pool

    def idle_agents(self, roster: Sequence[AgentView], tick: int) -> list[AgentView]:
        """Unassigned, fully built agents in processing order."""
        idle = [a for a in roster if a.id not in self.assignments and a.ticks_to_live is not None]
        if self.config.rotate_idle_agents and idle:
            shift = tick % len(idle)
            idle = idle[shift:] + idle[:shift]
        return idle

    def assign(self, world: WorldState, pool: CandidatePool, roster: Sequence[AgentView]) -> list[str]:
        assigned: list[str] = []
        for agent in self.idle_agents(roster, world.tick):
            task_list = self._match(agent, world, pool, roster)
            if task_list is None:
                continue
            self.assignments[agent.id] = task_list
            self.occupancy.record_assignment(agent, task_list, self.config.occupancy_exempt)
            assigned.append(agent.id)
        return assigned

    def execute(self, world: WorldState, report: TickReport) -> list[tuple[str, StepOutcome]]:
        """Step every assignment once. Nothing in the table changes until reconcile."""
        outcomes: list[tuple[str, StepOutcome]] = []
        for agent_id, task_list in list(self.assignments.items()):
            agent = world.get_agent(agent_id)
            if agent is None or agent.ticks_to_live is None:
                continue
            task = task_list.current_task_mutable()
            try:
                outcome = task.step(agent, world, self.config)
            except Exception as exc:  # Logged, then handled as a cancellation
                report.errors[agent_id] = f"{type(exc).__name__}: {exc}"
                self._event(world.tick, "step_error", f"{agent_id} {task.describe()}: {exc!r}")
                outcome = StepOutcome.cancel(CancelReason.ERROR)
            outcomes.append((agent_id, outcome))
        return outcomes

    def reconcile(self, outcomes: list[tuple[str, StepOutcome]], report: TickReport) -> None:
        by_kind: dict[OutcomeKind, list[tuple[str, StepOutcome]]] = {kind: [] for kind in OutcomeKind}
        for agent_id, outcome in outcomes:
            by_kind[outcome.kind].append((agent_id, outcome))

        for agent_id, _ in by_kind[OutcomeKind.COMPLETE]:
            self._advance(agent_id)
            report.completed.append(agent_id)

        for agent_id, outcome in by_kind[OutcomeKind.CANCEL]:
            self._advance(agent_id)
            report.cancelled[agent_id] = outcome.reason
            if self._debug_logger is not None and outcome.reason is not None:
                self._debug_logger.record_cancel(outcome.reason.value)

        for agent_id, outcome in by_kind[OutcomeKind.SWITCH]:
            self.assignments[agent_id] = outcome.task_list
            report.switched.append(agent_id)

    def annotate(self, world: WorldState, roster: Sequence[AgentView]) -> None:
        sinks = [self.trace]
        if isinstance(world, AnnotationSink):
            sinks.append(world)
        for agent in roster:
            task, task_list = self.describe(agent.id)
            for sink in sinks:
                sink.annotate(agent.id, task, task_list)
            if self._debug_logger is not None and self._debug_logger.level >= 2:
                self._debug_logger.record_agent_tick(
                    agent_id=agent.id,
                    archetype=agent.archetype,
                    position=agent.position,
                    task=task,
                    task_list=task_list,
                    energy=agent.store.used,
                    ticks_to_live=agent.ticks_to_live,
                )
        if isinstance(self.trace, TaskTrace):
            self.trace.forget({a.id for a in roster})

    def describe(self, agent_id: str) -> tuple[str, str]:
        task_list = self.assignments.get(agent_id)
        if task_list is None:
            return IDLE, ""
        return task_list.current_task().describe(), task_list.describe()

    # ------------------------------------------------------------------
    # Matching
    # ------------------------------------------------------------------

    def _match(
        self, agent: AgentView, world: WorldState, pool: CandidatePool, roster: Sequence[AgentView]
    ) -> Optional[TaskList]:
        taken = self._take(agent, pool.directives)
        if taken is not None:
            return taken

        taken = self._take(agent, pool.zones.get(agent.zone, []))
        if taken is not None:
            return taken

        for zone_name, candidates in pool.zones.items():
            if zone_name == agent.zone or not candidates:
                continue
            if self.occupancy.archetype_count(zone_name, agent.archetype) > 0:
                continue
            taken = self._take(agent, candidates)
            if taken is not None:
                return taken

        fallback = default_task_list(agent, world, self.occupancy, self.config, roster, pool.rally)
        if fallback is not None and list_capabilities(fallback) <= agent.capabilities:
            return fallback
        return None

    def _take(self, agent: AgentView, candidates: list[TaskList]) -> Optional[TaskList]:
        index = select_candidate(agent, candidates)
        if index is None:
            return None
        return candidates.pop(index)

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _advance(self, agent_id: str) -> None:
        task_list = self.assignments.get(agent_id)
        if task_list is not None and task_list.advance() is None:
            del self.assignments[agent_id]

    def _event(self, tick: int, kind: str, detail: str) -> None:
        if self._debug_logger is not None:
            self._debug_logger.record_event(tick, kind, detail)

    def _cpu(self, world: WorldState, phase: str) -> None:
        if self._debug_logger is None or self._debug_logger.level < 2:
            return
        if isinstance(world, CpuMeter):
            self._debug_logger.record_cpu(world.tick, phase, world.cpu_used())


# ---------------------------------------------------------------------------
# Candidate selection
# ---------------------------------------------------------------------------


def is_eligible(agent: AgentView, task_list: TaskList) -> bool:
    if not list_capabilities(task_list) <= agent.capabilities:
        return False
    pins = ARCHETYPE_TASK_PINS.get(agent.archetype)
    if pins is not None and task_list.primary_task().task_type.value not in pins:
        return False
    current = task_list.current_task()
    if current.requires_cargo and agent.store.is_empty:
        return False
    return True


def select_candidate(agent: AgentView, candidates: Sequence[TaskList]) -> Optional[int]:
    """Index of the best eligible candidate, or None.

    The first eligible candidate fixes the task type; the contiguous run of
    eligible candidates of that type is ranked by distance to the primary
    target (Repair: by priority weight). Ties go to the earliest.
    """
    eligible = [i for i, task_list in enumerate(candidates) if is_eligible(agent, task_list)]
    if not eligible:
        return None

    run_type = candidates[eligible[0]].primary_task().task_type
    run: list[int] = []
    for i in eligible:
        if candidates[i].primary_task().task_type != run_type:
            break
        run.append(i)
    if len(run) == 1:
        return run[0]

    if run_type == TaskType.REPAIR:
        scores = [candidates[i].primary_task().priority_weight() for i in run]
    else:
        scores = [_distance(agent, candidates[i]) for i in run]
    return run[int(np.argmin(np.asarray(scores, dtype=float)))]


def _distance(agent: AgentView, task_list: TaskList) -> float:
    position = task_list.primary_task().target_position
    if position is None:
        return math.inf
    return float(agent.position.range_to(position))
