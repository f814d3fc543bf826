"""
Overseer Policy -- task scheduling and population control for a colony of agents.

One ``step`` is one tick: the scheduler matches idle agents to work and steps
every assignment once, then the population controller requisitions new agents
against the spawn goals. The scheduler and the controller share nothing but
the world's live roster.

URI: colony://policy/overseer
Parameters: ?debug=0/1/2
            ?trace=1&trace_level=2
            ?repair_limit=3&attack_slots=2&move_failure_limit=3&expiry_ticks=3
            ?refill_guard_count=3&default_goals=1
"""

from __future__ import annotations

from typing import Any, Optional, Sequence

from .config import OverseerConfig, SpawnGoal
from .debug_logger import DebugLogger
from .population import PopulationController, default_spawn_goals
from .scheduler import Scheduler, TickReport
from .world import WorldState


class OverseerPolicy:
    """Colony policy owning one scheduler and one population controller for the whole run.

    URI: colony://policy/overseer
    Parameters:
        ?debug=0/1/2              -- debug logging
        ?trace=1&trace_level=2    -- per-agent task lines
    """

    short_names = ["overseer"]

    def __init__(
        self,
        # Tracing
        trace: int = 0,
        trace_level: int = 1,
        # Debug output stream (defaults to stderr)
        output: Any = None,
        # Everything else is routed into OverseerConfig
        **params: Any,
    ) -> None:
        self.config = OverseerConfig.from_params(params)
        self._trace_enabled = bool(int(trace))
        self._trace_level = int(trace_level)

        self._debug_logger: Optional[DebugLogger] = None
        if self.config.debug >= 1:
            self._debug_logger = DebugLogger(level=self.config.debug, output=output)

        self.scheduler = Scheduler(self.config.scheduler, self._debug_logger)
        self.population = PopulationController(self.config.population, self._debug_logger)
        self._paused = False
        self._runs = 0

    @property
    def paused(self) -> bool:
        return self._paused

    def pause(self) -> None:
        """Abort all further processing for the rest of the run."""
        self._paused = True

    def step(self, world: WorldState, goals: Optional[Sequence[SpawnGoal]] = None) -> Optional[TickReport]:
        """Run one tick. Returns None once paused."""
        if self._paused:
            return None

        report = self.scheduler.tick(world)

        if goals is None:
            goals = default_spawn_goals(report.pending_claims) if self.config.default_goals else []
        requests = self.population.run(world, goals) if goals else []
        report.spawned = [r.name for r in requests if r.accepted]

        if self._trace_enabled:
            self._emit_trace(world)

        if self._debug_logger is not None:
            self._debug_logger.flush_tick()
        return report

    def describe(self, agent_id: str) -> tuple[str, str]:
        return self.scheduler.describe(agent_id)

    def end_run(self) -> None:
        """Emit the run summary and reset for the next run."""
        if self._debug_logger is not None:
            self._debug_logger.emit_run_summary(self._runs)
            self._debug_logger.reset_run()
        self._runs += 1
        self._paused = False
        self.scheduler = Scheduler(self.config.scheduler, self._debug_logger)

    def _emit_trace(self, world: WorldState) -> None:
        trace = self.scheduler.trace
        for agent in world.agents():
            line = trace.format_line(
                tick=world.tick,
                agent_id=agent.id,
                archetype=agent.archetype,
                pos=agent.position,
                level=self._trace_level,
            )
            print(f"[overseer] {line}")
