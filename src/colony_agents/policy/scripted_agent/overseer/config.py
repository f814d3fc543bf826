"""
Configuration models for the Overseer policy.

URI: colony://policy/overseer
Parameters: ?debug=0/1/2
            ?repair_limit=3&attack_slots=2&move_failure_limit=3&expiry_ticks=3
            ?refill_guard_count=3&default_goals=1

Flat URI/kwarg parameters are routed to whichever section declares them.
"""

from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from colony_agents.policy.scripted_agent.common.roles import OCCUPANCY_EXEMPT_ARCHETYPES, Archetype

from .types import Capability, loadout_cost


class SchedulerConfig(BaseModel):
    """Thresholds for task execution, candidate generation and matching."""

    model_config = ConfigDict(frozen=True)

    # Task execution
    move_failure_limit: int = Field(default=3, ge=1)
    expiry_ticks: int = Field(default=3, ge=0)
    harvest_full_margin: int = Field(default=10, ge=0)

    # Candidate generation
    attack_slots: int = Field(default=2, ge=1)
    occupancy_cap: int = Field(default=1, ge=1)
    repair_limit: int = Field(default=3, ge=0)
    wall_min_controller_level: int = 3
    wall_repair_ceiling: int = 25_000
    rampart_repair_ceiling: int = 100_000
    downgrade_threshold: int = 9_000
    bootstrap_controller_level: int = 2
    relay_link_range: int = 2
    harvester_relay_range: int = 4

    # Fallbacks
    rally_range: int = 3
    busy_node_penalty: int = 20
    dedicated_node_penalty: int = 1_000
    node_occupancy_weight: int = 10

    # Relay dispatch
    relay_min_free: int = 50

    # Assignment
    rotate_idle_agents: bool = True
    occupancy_exempt: frozenset[str] = OCCUPANCY_EXEMPT_ARCHETYPES


class PopulationConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    # A spawner with room left to fill waits while its zone already has this many of the archetype.
    refill_guard_archetype: str = Archetype.WORKER.value
    refill_guard_count: int = Field(default=3, ge=0)


class SpawnGoal(BaseModel):
    """Declarative target population and loadout for one archetype. Supplied fresh each tick."""

    model_config = ConfigDict(frozen=True)

    archetype: str = Field(min_length=1)
    loadout: list[Capability] = Field(min_length=1)
    additive_loadout: list[Capability] = Field(default_factory=list)
    max_additions: int = Field(default=0, ge=0)
    node_scaling: int = Field(default=0, ge=0)
    count: int = Field(default=1, ge=0)
    is_global: bool = False
    target_count: Optional[int] = Field(default=None, ge=0)
    zones: Optional[frozenset[str]] = None

    def applies_to(self, zone: str) -> bool:
        return self.zones is None or zone in self.zones

    def base_cost(self) -> int:
        return loadout_cost(self.loadout)

    def addition_cost(self) -> int:
        """Cost of one additive copy plus its one-unit overhead."""
        return loadout_cost(self.additive_loadout) + 1

    def target_for(self, node_count: int) -> int:
        if self.target_count is not None:
            return self.target_count
        return self.count + max(0, self.count * (node_count - 1) * self.node_scaling)

    def additions_for(self, energy: int) -> int:
        if not self.additive_loadout:
            return 0
        remaining = max(energy - self.base_cost(), 0)
        return min(remaining // self.addition_cost(), self.max_additions)

    def build_loadout(self, energy: int) -> list[Capability]:
        loadout = list(self.loadout)
        for _ in range(self.additions_for(energy)):
            loadout.extend(self.additive_loadout)
        return loadout


class OverseerConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    debug: int = Field(default=0, ge=0, le=2)
    default_goals: bool = True
    scheduler: SchedulerConfig = Field(default_factory=SchedulerConfig)
    population: PopulationConfig = Field(default_factory=PopulationConfig)

    @classmethod
    def from_params(cls, params: dict[str, Any]) -> OverseerConfig:
        """Build from flat kwargs / URI query values, routing each key to its section."""
        top: dict[str, Any] = {}
        scheduler: dict[str, Any] = {}
        population: dict[str, Any] = {}
        for key, value in params.items():
            if key in SchedulerConfig.model_fields:
                scheduler[key] = value
            elif key in PopulationConfig.model_fields:
                population[key] = value
            elif key in ("debug", "default_goals"):
                top[key] = value
            else:
                raise ValueError(f"Unknown overseer parameter '{key}'")
        return cls(
            scheduler=SchedulerConfig(**scheduler),
            population=PopulationConfig(**population),
            **top,
        )
