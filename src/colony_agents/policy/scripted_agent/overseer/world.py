"""
World state provider boundary for the Overseer policy.

The policy never simulates anything. Each tick it reads descriptors from a
``WorldState`` and issues action primitives that return ``ActionResult`` codes.
"""

from __future__ import annotations

from typing import Any, Optional, Protocol, Sequence, runtime_checkable

from colony_agents.policy.scripted_agent.common.geometry import Position

from .types import ActionResult, AgentView, Capability, DirectiveMarker, SpawnerView, ZoneView


class WorldState(Protocol):
    """Everything the scheduler and population controller consume."""

    @property
    def tick(self) -> int: ...

    # --- enumeration ----------------------------------------------------

    def agents(self) -> list[AgentView]: ...

    def get_agent(self, agent_id: str) -> Optional[AgentView]: ...

    def zones(self) -> list[ZoneView]: ...

    def get_zone(self, name: str) -> Optional[ZoneView]: ...

    def directives(self) -> list[DirectiveMarker]: ...

    def remove_directive(self, name: str) -> None: ...

    def resolve(self, object_id: str) -> Optional[Any]:
        """Live descriptor for any id, or None when the object no longer exists."""
        ...

    # --- agent actions --------------------------------------------------

    def move_to(self, agent_id: str, position: Position) -> ActionResult: ...

    def harvest(self, agent_id: str, node_id: str) -> ActionResult: ...

    def transfer(self, agent_id: str, target_id: str) -> ActionResult: ...

    def withdraw(self, agent_id: str, target_id: str) -> ActionResult: ...

    def build(self, agent_id: str, site_id: str) -> ActionResult: ...

    def repair(self, agent_id: str, structure_id: str) -> ActionResult: ...

    def attack(self, agent_id: str, target_id: str) -> ActionResult: ...

    def heal(self, agent_id: str, target_id: str) -> ActionResult: ...

    def claim(self, agent_id: str, controller_id: str) -> ActionResult: ...

    def upgrade(self, agent_id: str, controller_id: str) -> ActionResult: ...

    # --- structures -----------------------------------------------------

    def relay_transfer(self, relay_id: str, target_id: str) -> ActionResult: ...

    def spawners(self) -> list[SpawnerView]: ...

    def energy_available(self, zone: str) -> int: ...

    def spawn(self, spawner_id: str, name: str, loadout: Sequence[Capability]) -> ActionResult: ...


@runtime_checkable
class AnnotationSink(Protocol):
    """Optional per-agent diagnostic sink. No behavioral effect."""

    def annotate(self, agent_id: str, task: str, task_list: str) -> None: ...


@runtime_checkable
class CpuMeter(Protocol):
    def cpu_used(self) -> float: ...
